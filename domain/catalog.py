"""
Domain: Price and repair catalog.

The catalog maps (model, storage) to a base buy price and damage codes to a
flat repair deduction. It is a pure value object; the persisted copy lives in
the price_catalog and repair_catalog tables (see repositories/pricing_repository.py)
and DEFAULT_CATALOG is the seed for both.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Mapping, Tuple

from .errors import InvalidModel, InvalidStorage


def _storage_sort_key(storage: str) -> int:
    digits = "".join(ch for ch in storage if ch.isdigit())
    size = int(digits) if digits else 0
    return size * 1024 if storage.upper().endswith("TB") else size


@dataclass(frozen=True, slots=True)
class PriceCatalog:
    """
    Immutable pricing tables.

    base_prices: model -> storage -> base price
    damage_costs: damage code -> deduction
    """

    base_prices: Mapping[str, Mapping[str, Decimal]]
    damage_costs: Mapping[str, Decimal]

    def base_price(self, model: str, storage: str) -> Decimal:
        tiers = self.base_prices.get(model)
        if tiers is None:
            raise InvalidModel(model)
        price = tiers.get(storage)
        if price is None:
            raise InvalidStorage(model, storage)
        return price

    def damage_cost(self, code: str) -> Decimal:
        """Unknown damage codes contribute nothing."""
        return self.damage_costs.get(code, Decimal("0"))

    def models(self) -> List[str]:
        return sorted(self.base_prices)

    def storage_options(self, model: str) -> List[str]:
        tiers = self.base_prices.get(model)
        if tiers is None:
            raise InvalidModel(model)
        return sorted(tiers, key=_storage_sort_key)

    def price_rows(self) -> List[Tuple[str, str, Decimal]]:
        return [
            (model, storage, price)
            for model, tiers in sorted(self.base_prices.items())
            for storage, price in sorted(tiers.items(), key=lambda kv: _storage_sort_key(kv[0]))
        ]

    @staticmethod
    def from_rows(
        price_rows: List[Tuple[str, str, Decimal]],
        damage_rows: List[Tuple[str, Decimal]],
    ) -> "PriceCatalog":
        prices: Dict[str, Dict[str, Decimal]] = {}
        for model, storage, price in price_rows:
            prices.setdefault(model, {})[storage] = Decimal(str(price))
        damages = {code: Decimal(str(cost)) for code, cost in damage_rows}
        return PriceCatalog(base_prices=prices, damage_costs=damages)


def _tiers(**prices: int) -> Dict[str, Decimal]:
    # Keyword names can't start with a digit, so storage tiers are passed as s128=..., s1TB=...
    return {name[1:] + ("GB" if name[-1].isdigit() else ""): Decimal(value) for name, value in prices.items()}


DEFAULT_CATALOG = PriceCatalog(
    base_prices={
        "iPhone 6": _tiers(s16=60, s64=70, s128=80),
        "iPhone 6s": _tiers(s32=70, s64=80, s128=90),
        "iPhone 7": _tiers(s32=90, s128=100, s256=110),
        "iPhone 8": _tiers(s64=110, s128=120, s256=130),
        "iPhone SE": _tiers(s64=120, s128=140, s256=160),
        "iPhone X": _tiers(s64=140, s128=150, s256=200),
        "iPhone 11": _tiers(s64=200, s128=250, s256=250),
        "iPhone 11 Pro": _tiers(s64=230, s256=300, s512=350),
        "iPhone 11 Pro Max": _tiers(s64=280, s256=350, s512=400),
        "iPhone 12 Mini": _tiers(s64=280, s128=300, s256=350),
        "iPhone 12": _tiers(s64=330, s128=350, s256=400),
        "iPhone 12 Pro": _tiers(s128=400, s256=450, s512=500),
        "iPhone 12 Pro Max": _tiers(s128=450, s256=500, s512=550),
        "iPhone 13 Mini": _tiers(s128=450, s256=500, s512=550),
        "iPhone 13": _tiers(s128=600, s256=650, s512=700),
        "iPhone 13 Pro": _tiers(s128=650, s256=700, s512=750, s1TB=800),
        "iPhone 13 Pro Max": _tiers(s128=700, s256=750, s512=800, s1TB=850),
        "iPhone 14": _tiers(s128=650, s256=700, s512=750),
        "iPhone 14 Plus": _tiers(s128=700, s256=750, s512=800),
        "iPhone 14 Pro": _tiers(s128=750, s256=800, s512=850, s1TB=900),
        "iPhone 14 Pro Max": _tiers(s128=850, s256=900, s512=950, s1TB=1000),
        "iPhone 15": _tiers(s128=850, s256=900, s512=950),
        "iPhone 15 Plus": _tiers(s128=900, s256=950, s512=1000),
        "iPhone 15 Pro": _tiers(s128=1050, s256=1100, s512=1150, s1TB=1200),
        "iPhone 15 Pro Max": _tiers(s256=1150, s512=1200, s1TB=1250),
        "iPhone 16": _tiers(s128=950, s256=1000, s512=1050),
        "iPhone 16 Plus": _tiers(s128=1050, s256=1100, s512=1150),
        "iPhone 16 Pro": _tiers(s128=1200, s256=1250, s512=1300, s1TB=1350),
        "iPhone 16 Pro Max": _tiers(s256=1300, s512=1350, s1TB=1400),
    },
    damage_costs={
        "cracked_screen": Decimal("80"),
        "cracked_back": Decimal("60"),
        "battery_issues": Decimal("40"),
        "charging_port": Decimal("40"),
        "camera_damage": Decimal("60"),
        "face_id": Decimal("100"),
        "speaker_microphone": Decimal("30"),
        "buttons": Decimal("30"),
        "water_damage": Decimal("150"),
    },
)


__all__ = ["DEFAULT_CATALOG", "PriceCatalog"]
