#!/usr/bin/env python3
"""
Catalog Seeder

Writes the built-in price and repair catalog to the price_catalog and
repair_catalog tables (upsert, so re-running only refreshes prices).

Usage:
    python seed_catalog.py
    python seed_catalog.py --dry-run
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from domain.catalog import DEFAULT_CATALOG
from domain.time import utc_now
from repositories.client import create_supabase_client
from repositories.pricing_repository import PricingRepository


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(description="Seed the price and repair catalogs")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the rows without writing to the database",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    if args.dry_run:
        for model, storage, price in DEFAULT_CATALOG.price_rows():
            print(f"{model:<20} {storage:<6} {price}")
        for code, cost in sorted(DEFAULT_CATALOG.damage_costs.items()):
            print(f"{code:<20} {cost}")
        return 0

    repository = PricingRepository(create_supabase_client())
    written = repository.save_catalog(DEFAULT_CATALOG, utc_now())
    print(f"Seeded {written} catalog rows")
    print("Running APIs keep their cached catalog until POST /api/v1/admin/catalog/refresh")
    return 0


if __name__ == "__main__":
    sys.exit(main())
