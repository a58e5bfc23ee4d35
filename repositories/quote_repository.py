"""
Quote repository: the expiration sweep's view of the quotes table, plus the
counts behind the admin expiration stats.

The only mutation here is flipping is_expired false -> true, done as one
conditional UPDATE so repeated or concurrent sweeps are idempotent.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, List, Mapping
from uuid import UUID

from repositories.rows import parse_utc_datetime, response_rows, to_iso_utc

_QUOTES_TABLE: str = "quotes"
_APPOINTMENTS_TABLE: str = "appointments"
_SUMMARY_COLUMNS = "quote_id, lead_id, final_quote, expires_at_utc"
_CONVERTED_STATUSES = ("confirmed", "completed")


@dataclass(frozen=True, slots=True)
class QuoteExpiry:
    """Minimal quote projection used by the sweep and its notifications."""

    quote_id: UUID
    lead_id: UUID
    final_quote: Decimal
    expires_at: datetime


@dataclass(frozen=True, slots=True)
class QuoteCounts:
    created: int
    expired: int
    converted: int
    active: int
    expiring_soon: int


def _row_to_expiry(row: Mapping[str, Any]) -> QuoteExpiry:
    return QuoteExpiry(
        quote_id=UUID(str(row["quote_id"])),
        lead_id=UUID(str(row["lead_id"])),
        final_quote=Decimal(str(row["final_quote"])),
        expires_at=parse_utc_datetime(row["expires_at_utc"]),
    )


class QuoteRepository:
    def __init__(self, client: Any):
        self._client = client

    def expire_due_quotes(self, now: datetime) -> List[QuoteExpiry]:
        """
        Mark every active quote with expires_at < now as expired.

        Returns only the quotes this call flipped; a second call with the same
        `now` returns an empty list.
        """

        response = (
            self._client.table(_QUOTES_TABLE)
            .update({"is_expired": True})
            .lt("expires_at_utc", to_iso_utc(now, name="now"))
            .eq("is_expired", False)
            .execute()
        )
        rows = response_rows(response, "expire quotes")
        return [_row_to_expiry(row) for row in rows]

    def list_quotes_expiring_between(self, start: datetime, end: datetime) -> List[QuoteExpiry]:
        """Active quotes with start <= expires_at <= end, soonest first."""

        response = (
            self._client.table(_QUOTES_TABLE)
            .select(_SUMMARY_COLUMNS)
            .eq("is_expired", False)
            .gte("expires_at_utc", to_iso_utc(start, name="start"))
            .lte("expires_at_utc", to_iso_utc(end, name="end"))
            .order("expires_at_utc")
            .execute()
        )
        rows = response_rows(response, "list quotes near expiry")
        return [_row_to_expiry(row) for row in rows]

    def count_active_quotes(self) -> int:
        return self._count(
            self._client.table(_QUOTES_TABLE).select("quote_id", count="exact").eq("is_expired", False),
            "count active quotes",
        )

    def quote_counts(self, since: datetime, now: datetime, soon_until: datetime) -> QuoteCounts:
        """
        Counts behind the admin expiration stats.

        created/expired/converted cover records created at or after `since`;
        active and expiring_soon are current.
        """

        since_iso = to_iso_utc(since, name="since")
        return QuoteCounts(
            created=self._count(
                self._client.table(_QUOTES_TABLE)
                .select("quote_id", count="exact")
                .gte("created_at_utc", since_iso),
                "count quotes",
            ),
            expired=self._count(
                self._client.table(_QUOTES_TABLE)
                .select("quote_id", count="exact")
                .gte("created_at_utc", since_iso)
                .eq("is_expired", True),
                "count expired quotes",
            ),
            converted=self._count(
                self._client.table(_APPOINTMENTS_TABLE)
                .select("appointment_id", count="exact")
                .gte("created_at_utc", since_iso)
                .in_("status", list(_CONVERTED_STATUSES)),
                "count converted quotes",
            ),
            active=self.count_active_quotes(),
            expiring_soon=self._count(
                self._client.table(_QUOTES_TABLE)
                .select("quote_id", count="exact")
                .eq("is_expired", False)
                .gte("expires_at_utc", to_iso_utc(now, name="now"))
                .lte("expires_at_utc", to_iso_utc(soon_until, name="soon_until")),
                "count quotes near expiry",
            ),
        )

    @staticmethod
    def _count(query: Any, action: str) -> int:
        response = query.execute()
        rows = response_rows(response, action)
        count = getattr(response, "count", None)
        return int(count) if count is not None else len(rows)


__all__ = ["QuoteCounts", "QuoteExpiry", "QuoteRepository"]
