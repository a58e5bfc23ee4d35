"""
Pricing service for calculating buy quotes.

Combines the pure pricing engine (domain/pricing.py) with pickup distance
resolution and a preview of upcoming appointment slots.

Flow:
- compute the breakdown (InvalidModel / InvalidStorage on bad input)
- activation-locked devices skip routing and get pickup_fee = 0
- pickup with an address: resolve distance; > 60 km raises PickupOutOfRange,
  an unreachable provider raises RoutingUnavailable
- drop-off carries no distance and no pickup fee
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from itertools import islice
from typing import List, Optional, Tuple

from domain.catalog import DEFAULT_CATALOG, PriceCatalog
from domain.errors import PickupOutOfRange
from domain.lead import QUOTE_VALIDITY, SellMethod
from domain.pricing import PricingPolicy, QuoteBreakdown, compute_quote
from domain.schedule import (
    SchedulePolicy,
    SlotCandidate,
    is_same_day_eligible,
    iter_candidate_windows,
)
from domain.time import require_utc_timestamp, to_local
from services.distance_service import DistanceEligibilityService

logger = logging.getLogger(__name__)

PREVIEW_SLOT_LIMIT = 10
PREVIEW_DAYS_AHEAD = 7


@dataclass(frozen=True, slots=True)
class QuoteRequest:
    model: str
    storage: str
    damages: Tuple[str, ...] = ()
    has_box: bool = True
    has_charger: bool = True
    is_activation_locked: bool = False
    sell_method: SellMethod = SellMethod.DROPOFF
    address: Optional[str] = None


@dataclass(frozen=True, slots=True)
class PricedQuote:
    """
    A quote ready to show (or persist).

    pickup_fee is None for drop-off, 0 for activation-locked devices.
    """

    breakdown: QuoteBreakdown
    pickup_fee: Optional[Decimal]
    distance: Optional[float]
    duration: Optional[int]
    created_at: datetime
    expires_at: datetime
    available_slots: List[SlotCandidate] = field(default_factory=list)

    @property
    def final_quote(self) -> Decimal:
        return self.breakdown.final_quote


def preview_slots(
    now: datetime,
    sell_method: SellMethod,
    distance: Optional[float],
    schedule_policy: SchedulePolicy,
    limit: int = PREVIEW_SLOT_LIMIT,
) -> List[SlotCandidate]:
    """Next `limit` open slot windows (persisted availability is not consulted)."""

    now_local = to_local(now, schedule_policy.tz)
    windows = iter_candidate_windows(now_local, PREVIEW_DAYS_AHEAD, schedule_policy)
    return [
        SlotCandidate(
            slot_date=day,
            start_time=start,
            end_time=end,
            is_same_day=is_same_day_eligible(day, now_local, sell_method, distance, schedule_policy),
        )
        for day, start, end in islice(windows, limit)
    ]


def calculate_quote(
    request: QuoteRequest,
    *,
    now: datetime,
    distance_service: Optional[DistanceEligibilityService],
    catalog: PriceCatalog = DEFAULT_CATALOG,
    policy: PricingPolicy = PricingPolicy(),
    schedule_policy: SchedulePolicy = SchedulePolicy(),
    include_slots: bool = True,
    validity: timedelta = QUOTE_VALIDITY,
) -> PricedQuote:
    """
    Calculate a quote for a device, including pickup fee where relevant.

    Raises:
        InvalidModel, InvalidStorage: unknown device configuration
        PickupOutOfRange: pickup address beyond the maximum pickup distance
        RoutingUnavailable: distance could not be resolved

    Example:
        quote = calculate_quote(QuoteRequest("iPhone 13", "128GB", ("cracked_screen",),
                                             has_charger=False), now=utc_now(),
                                distance_service=None)
        # quote.final_quote == Decimal("320")
    """

    require_utc_timestamp("now", now)
    breakdown = compute_quote(
        request.model,
        request.storage,
        request.damages,
        request.has_box,
        request.has_charger,
        request.is_activation_locked,
        catalog=catalog,
        policy=policy,
    )

    pickup_fee: Optional[Decimal] = None
    distance: Optional[float] = None
    duration: Optional[int] = None

    if breakdown.is_activation_locked:
        pickup_fee = Decimal("0")
    elif request.sell_method is SellMethod.PICKUP and request.address:
        if distance_service is None:
            raise RuntimeError("Pickup quotes need a distance service")
        resolved = distance_service.resolve(request.address)
        if not resolved.is_eligible:
            raise PickupOutOfRange(resolved.distance, distance_service.max_distance)
        pickup_fee = resolved.pickup_fee
        distance = resolved.distance
        duration = resolved.duration

    slots: List[SlotCandidate] = []
    if include_slots:
        slots = preview_slots(now, request.sell_method, distance, schedule_policy)

    logger.info(
        "Quoted %s: final %s (locked=%s, pickup_fee=%s)",
        breakdown.device.display_name,
        breakdown.final_quote,
        breakdown.is_activation_locked,
        pickup_fee,
    )

    return PricedQuote(
        breakdown=breakdown,
        pickup_fee=pickup_fee,
        distance=distance,
        duration=duration,
        created_at=now,
        expires_at=now + validity,
        available_slots=slots,
    )


__all__ = ["PricedQuote", "QuoteRequest", "calculate_quote", "preview_slots"]
