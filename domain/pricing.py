"""
Domain: Pricing engine.

Pure computation of a buy offer from device, condition and accessory inputs.
No I/O; callers persist the result.

Rules:
- base_price comes from the catalog (InvalidModel / InvalidStorage otherwise).
- Activation-locked devices bypass the formula and get a fixed tier by device
  type (Pro Max > Pro > base); legacy families are overridden to the minimum
  tier. damage_deduction and margin are 0 in that branch.
- Otherwise:
    damage_deduction = sum(cost(code) for code in damages) + accessory charge
    margin           = round_half_up(base_price * margin_rate)
    final_quote      = max(base_price - damage_deduction - margin, floor)
  The accessory charge is applied once if the box OR the charger is missing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import FrozenSet, Mapping, Sequence

from .catalog import DEFAULT_CATALOG, PriceCatalog
from .device import Device, DeviceType
from .errors import QuoteIntegrityError

LEGACY_FAMILIES: FrozenSet[str] = frozenset(
    {"iPhone X", "iPhone 8", "iPhone 7", "iPhone 6s", "iPhone 6", "iPhone SE"}
)


@dataclass(frozen=True, slots=True)
class PricingPolicy:
    margin_rate: Decimal = Decimal("0.30")
    floor: Decimal = Decimal("50")
    accessory_deduction: Decimal = Decimal("20")
    locked_tiers: Mapping[DeviceType, Decimal] = field(
        default_factory=lambda: {
            DeviceType.PRO_MAX: Decimal("150"),
            DeviceType.PRO: Decimal("100"),
            DeviceType.BASE: Decimal("50"),
        }
    )
    legacy_locked_tier: Decimal = Decimal("20")
    legacy_families: FrozenSet[str] = LEGACY_FAMILIES


@dataclass(frozen=True, slots=True)
class QuoteBreakdown:
    """Result of a quote computation. All amounts are whole currency units."""

    device: Device
    base_price: Decimal
    damage_deduction: Decimal
    margin: Decimal
    final_quote: Decimal
    is_activation_locked: bool


def _round_half_up(value: Decimal) -> Decimal:
    return value.quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def locked_tier_for(device: Device, policy: PricingPolicy) -> Decimal:
    if device.family in policy.legacy_families:
        return policy.legacy_locked_tier
    return policy.locked_tiers[device.type]


def compute_quote(
    model: str,
    storage: str,
    damages: Sequence[str],
    has_box: bool,
    has_charger: bool,
    is_activation_locked: bool,
    catalog: PriceCatalog = DEFAULT_CATALOG,
    policy: PricingPolicy = PricingPolicy(),
) -> QuoteBreakdown:
    """
    Compute the buy offer for a device.

    Raises:
        InvalidModel: model is not in the catalog
        InvalidStorage: storage tier is not offered for the model

    Example:
        compute_quote("iPhone 13", "128GB", ["cracked_screen"], True, False, False)
        # base 600, deduction 80 + 20, margin 180 -> final 320
    """
    base_price = catalog.base_price(model, storage)
    device = Device.from_model(model, storage)

    if is_activation_locked:
        return QuoteBreakdown(
            device=device,
            base_price=base_price,
            damage_deduction=Decimal("0"),
            margin=Decimal("0"),
            final_quote=locked_tier_for(device, policy),
            is_activation_locked=True,
        )

    damage_deduction = sum((catalog.damage_cost(code) for code in damages), Decimal("0"))
    if not has_box or not has_charger:
        damage_deduction += policy.accessory_deduction

    margin = _round_half_up(base_price * policy.margin_rate)
    final_quote = max(base_price - damage_deduction - margin, policy.floor)

    return QuoteBreakdown(
        device=device,
        base_price=base_price,
        damage_deduction=damage_deduction,
        margin=margin,
        final_quote=final_quote,
        is_activation_locked=False,
    )


def verify_submitted_quote(
    breakdown: QuoteBreakdown,
    submitted_final_quote: Decimal,
    tolerance: Decimal,
) -> None:
    """
    Reject a client-submitted final quote that drifted from the recomputed one.

    Raises:
        QuoteIntegrityError: |recomputed - submitted| > tolerance
    """
    submitted = Decimal(str(submitted_final_quote))
    if abs(breakdown.final_quote - submitted) > tolerance:
        raise QuoteIntegrityError(
            submitted=submitted,
            recomputed=breakdown.final_quote,
            tolerance=tolerance,
        )


__all__ = [
    "LEGACY_FAMILIES",
    "PricingPolicy",
    "QuoteBreakdown",
    "compute_quote",
    "locked_tier_for",
    "verify_submitted_quote",
]
