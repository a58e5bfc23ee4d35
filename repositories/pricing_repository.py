"""
Pricing repository for the price and repair catalogs.

Loads the active rows of price_catalog / repair_catalog into a PriceCatalog
and upserts a catalog back (used by scripts/seed_catalog.py).
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any

from domain.catalog import PriceCatalog
from repositories.rows import response_rows, to_iso_utc

logger = logging.getLogger(__name__)

_PRICE_TABLE: str = "price_catalog"
_REPAIR_TABLE: str = "repair_catalog"


class PricingRepository:
    def __init__(self, client: Any):
        self._client = client

    def load_price_catalog(self) -> PriceCatalog:
        """
        Fetch the active catalog.

        Returns:
            PriceCatalog built from active price and repair rows (possibly empty)
        """

        price_response = (
            self._client.table(_PRICE_TABLE)
            .select("model, storage, base_price")
            .eq("is_active", True)
            .execute()
        )
        price_rows = response_rows(price_response, "load price catalog")

        repair_response = (
            self._client.table(_REPAIR_TABLE)
            .select("damage_type, cost")
            .eq("is_active", True)
            .execute()
        )
        repair_rows = response_rows(repair_response, "load repair catalog")

        return PriceCatalog.from_rows(
            [(str(r["model"]), str(r["storage"]), Decimal(str(r["base_price"]))) for r in price_rows],
            [(str(r["damage_type"]), Decimal(str(r["cost"]))) for r in repair_rows],
        )

    def save_catalog(self, catalog: PriceCatalog, now: datetime) -> int:
        """
        Upsert every price and repair row of `catalog` as active.

        Returns:
            Number of rows written across both tables
        """

        updated_at = to_iso_utc(now, name="now")
        price_payload = [
            {
                "model": model,
                "storage": storage,
                "base_price": str(price),
                "is_active": True,
                "updated_at_utc": updated_at,
            }
            for model, storage, price in catalog.price_rows()
        ]
        repair_payload = [
            {"damage_type": code, "cost": str(cost), "is_active": True}
            for code, cost in sorted(catalog.damage_costs.items())
        ]

        if price_payload:
            response = (
                self._client.table(_PRICE_TABLE)
                .upsert(price_payload, on_conflict="model,storage")
                .execute()
            )
            response_rows(response, "save price catalog")
        if repair_payload:
            response = (
                self._client.table(_REPAIR_TABLE)
                .upsert(repair_payload, on_conflict="damage_type")
                .execute()
            )
            response_rows(response, "save repair catalog")

        written = len(price_payload) + len(repair_payload)
        logger.info("Saved catalog: %d price rows, %d repair rows", len(price_payload), len(repair_payload))
        return written


__all__ = ["PricingRepository"]
