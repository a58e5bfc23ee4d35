#!/usr/bin/env python3
"""
Quote Expiration Sweep

Marks every active quote past its expiry as expired and reports quotes that
expire within the look-ahead window. Safe to run repeatedly (cron).

Usage:
    python expire_quotes.py
    python expire_quotes.py --lookahead-hours 48
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import timedelta
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from arq import create_pool

from domain.errors import BuybackError
from repositories.client import create_supabase_client
from repositories.quote_repository import QuoteRepository
from services.config import Settings
from services.event_service import EventDispatcher
from services.event_worker import get_redis_settings
from services.quote_expiration_service import ExpirationResult, QuoteExpirationService

logger = logging.getLogger("expire_quotes")


async def _sweep(settings: Settings, lookahead: timedelta) -> ExpirationResult:
    client = create_supabase_client(settings.supabase_url, settings.supabase_key)
    redis = await asyncio.wait_for(create_pool(get_redis_settings(settings.redis_url)), timeout=20.0)
    events = EventDispatcher(redis, asyncio.get_running_loop())
    service = QuoteExpirationService(QuoteRepository(client), events, lookahead=lookahead)
    try:
        # The sweep is synchronous; events are enqueued on this loop meanwhile
        return await asyncio.to_thread(service.sweep_expired_quotes)
    finally:
        await events.close()


def main() -> int:
    """Main entry point for the CLI."""
    settings = Settings.from_env()

    parser = argparse.ArgumentParser(description="Expire stale quotes and report quotes expiring soon")
    parser.add_argument(
        "--lookahead-hours",
        type=int,
        default=settings.near_expiry_hours,
        help=f"Near-expiry window in hours (default: {settings.near_expiry_hours})",
    )
    parser.add_argument("--verbose", action="store_true", help="Log at DEBUG level")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        result = asyncio.run(_sweep(settings, timedelta(hours=args.lookahead_hours)))
    except BuybackError:
        logger.exception("Quote expiration sweep failed")
        return 1

    print("=" * 60)
    print("QUOTE EXPIRATION SUMMARY")
    print("=" * 60)
    print(f"Expired this run:   {result.expired}")
    print(f"Expiring soon:      {result.near_expiry}")
    print(f"Active quotes:      {result.total}")
    for quote in result.near_expiry_quotes[:10]:
        print(f"  - {quote.quote_id} (lead {quote.lead_id}) expires {quote.expires_at.isoformat()}")
    print("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
