"""
Quote expiration sweep.

Flips is_expired on every active quote past its expires_at, emits
quote_expired per quote this run flipped, and reports quotes entering the
near-expiry window so reminders can be sent. Safe to run repeatedly and
concurrently with lead creation and booking: it never deletes anything and
never touches leads or appointments.

expiration_stats reports quote outcomes for the admin dashboard.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from domain.events import DomainEvent, EventName
from domain.time import require_utc_timestamp, utc_now
from repositories.quote_repository import QuoteExpiry, QuoteRepository
from services.event_service import EventDispatcher

logger = logging.getLogger(__name__)

NEAR_EXPIRY_WINDOW = timedelta(hours=24)
DEFAULT_STATS_PERIOD_DAYS = 30


@dataclass(frozen=True, slots=True)
class ExpirationResult:
    expired: int
    near_expiry: int
    total: int
    near_expiry_quotes: List[QuoteExpiry]
    swept_at: datetime


@dataclass(frozen=True, slots=True)
class ExpirationStats:
    period_days: int
    total_quotes: int
    expired_quotes: int
    converted_quotes: int
    active_quotes: int
    expiring_soon: int
    expiration_rate: float
    conversion_rate: float
    generated_at: datetime


class QuoteExpirationService:
    def __init__(
        self,
        repository: QuoteRepository,
        events: EventDispatcher,
        lookahead: timedelta = NEAR_EXPIRY_WINDOW,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._repository = repository
        self._events = events
        self._lookahead = lookahead
        self._clock = clock

    def sweep_expired_quotes(self, now: Optional[datetime] = None) -> ExpirationResult:
        """
        Run one sweep.

        Returns:
            ExpirationResult(expired=flipped this run, near_expiry=active quotes
            expiring within the lookahead, total=active quotes remaining)
        """

        now = now or self._clock()
        require_utc_timestamp("now", now)

        expired = self._repository.expire_due_quotes(now)
        for quote in expired:
            self._events.emit(
                DomainEvent(
                    name=EventName.QUOTE_EXPIRED,
                    occurred_at=now,
                    lead_id=quote.lead_id,
                    properties={"quote_id": str(quote.quote_id), "final_quote": str(quote.final_quote)},
                )
            )

        near_expiry = self._repository.list_quotes_expiring_between(now, now + self._lookahead)
        for quote in near_expiry:
            logger.info(
                "Quote %s for lead %s expires at %s",
                quote.quote_id,
                quote.lead_id,
                quote.expires_at.isoformat(),
            )

        total = self._repository.count_active_quotes()
        logger.info(
            "Quote sweep: %d expired, %d near expiry, %d active",
            len(expired),
            len(near_expiry),
            total,
        )
        return ExpirationResult(
            expired=len(expired),
            near_expiry=len(near_expiry),
            total=total,
            near_expiry_quotes=near_expiry,
            swept_at=now,
        )


    def expiration_stats(self, period_days: int = DEFAULT_STATS_PERIOD_DAYS) -> ExpirationStats:
        """
        Quote outcomes over the last `period_days` days plus the current
        active and near-expiry counts. Rates are percentages of quotes created
        in the period, rounded to two places.
        """

        if period_days < 1:
            raise ValueError("period_days must be >= 1")
        now = self._clock()
        counts = self._repository.quote_counts(
            since=now - timedelta(days=period_days),
            now=now,
            soon_until=now + self._lookahead,
        )
        return ExpirationStats(
            period_days=period_days,
            total_quotes=counts.created,
            expired_quotes=counts.expired,
            converted_quotes=counts.converted,
            active_quotes=counts.active,
            expiring_soon=counts.expiring_soon,
            expiration_rate=_rate(counts.expired, counts.created),
            conversion_rate=_rate(counts.converted, counts.created),
            generated_at=now,
        )


def _rate(part: int, whole: int) -> float:
    return round(part / whole * 100, 2) if whole else 0.0


__all__ = [
    "DEFAULT_STATS_PERIOD_DAYS",
    "ExpirationResult",
    "ExpirationStats",
    "NEAR_EXPIRY_WINDOW",
    "QuoteExpirationService",
]
