"""
Service wiring.

BuybackServices builds the Supabase client, repositories, event dispatcher,
routing provider, verification notifier and services once, and tears them
down in aclose(). The API lifespan owns one instance; nothing here is a
module-level singleton.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional

from arq import create_pool

from domain.catalog import DEFAULT_CATALOG, PriceCatalog
from domain.schedule import SchedulePolicy
from domain.time import utc_now
from repositories.client import create_supabase_client
from repositories.lead_repository import LeadRepository
from repositories.pricing_repository import PricingRepository
from repositories.quote_repository import QuoteRepository
from repositories.schedule_repository import ScheduleRepository
from services.config import Settings
from services.distance_service import DistanceEligibilityService, GoogleRoutesProvider
from services.event_service import EventDispatcher
from services.event_worker import get_redis_settings
from services.lead_service import LeadService
from services.notification_service import WebhookVerificationNotifier
from services.quote_expiration_service import QuoteExpirationService
from services.scheduling_service import SchedulingService

logger = logging.getLogger(__name__)


class CatalogCache:
    """Loads the catalog from the store on first use; falls back to the built-in one when empty."""

    def __init__(self, repository: Optional[PricingRepository]):
        self._repository = repository
        self._catalog: Optional[PriceCatalog] = None

    def __call__(self) -> PriceCatalog:
        if self._catalog is None:
            catalog = self._repository.load_price_catalog() if self._repository else DEFAULT_CATALOG
            if not catalog.base_prices:
                logger.warning("price_catalog is empty, using the built-in catalog")
                catalog = DEFAULT_CATALOG
            self._catalog = catalog
        return self._catalog

    def invalidate(self) -> None:
        self._catalog = None


@dataclass
class BuybackServices:
    settings: Settings
    events: EventDispatcher
    catalog: CatalogCache
    distance: DistanceEligibilityService
    leads: LeadService
    scheduling: SchedulingService
    expiration: QuoteExpirationService
    schedule_policy: SchedulePolicy
    routes: Optional[GoogleRoutesProvider] = None
    notifier: Optional[WebhookVerificationNotifier] = None
    clock: Callable[[], datetime] = utc_now

    @staticmethod
    async def create(settings: Settings) -> "BuybackServices":
        """Open the Redis pool for event publishing and build the container on the running loop."""

        redis = await asyncio.wait_for(create_pool(get_redis_settings(settings.redis_url)), timeout=20.0)
        events = EventDispatcher(redis, asyncio.get_running_loop())
        return BuybackServices.from_settings(settings, events)

    @staticmethod
    def from_settings(settings: Settings, events: EventDispatcher, client: Any = None) -> "BuybackServices":
        client = client or create_supabase_client(settings.supabase_url, settings.supabase_key)

        lead_repository = LeadRepository(client)
        schedule_repository = ScheduleRepository(client)

        routes = GoogleRoutesProvider(
            api_key=settings.google_routes_api_key,
            origin_address=settings.origin_address,
            timeout_seconds=settings.routing_timeout_seconds,
        )
        notifier = None
        if settings.verification_webhook_url:
            notifier = WebhookVerificationNotifier(
                settings.verification_webhook_url,
                settings.public_base_url,
                timeout_seconds=settings.notification_timeout_seconds,
            )
        else:
            logger.warning("VERIFICATION_WEBHOOK_URL is not set, verification emails will not be sent")
        distance = DistanceEligibilityService(routes)
        catalog = CatalogCache(PricingRepository(client))
        schedule_policy = SchedulePolicy(timezone=settings.business_timezone)

        return BuybackServices(
            settings=settings,
            events=events,
            catalog=catalog,
            distance=distance,
            leads=LeadService(
                lead_repository,
                events,
                distance,
                catalog,
                tolerance=settings.quote_tolerance,
                quote_validity=settings.quote_validity,
                verification_ttl=settings.verification_ttl,
                notifier=notifier,
            ),
            scheduling=SchedulingService(
                schedule_repository,
                lead_repository,
                events,
                policy=schedule_policy,
            ),
            expiration=QuoteExpirationService(
                QuoteRepository(client),
                events,
                lookahead=settings.near_expiry_window,
            ),
            schedule_policy=schedule_policy,
            routes=routes,
            notifier=notifier,
        )

    async def aclose(self) -> None:
        await self.events.close()
        if self.routes is not None:
            self.routes.close()
        if self.notifier is not None:
            self.notifier.close()


__all__ = ["BuybackServices", "CatalogCache"]
