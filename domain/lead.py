"""
Domain: Lead, Quote and Verification entities.

Lifecycle rules implemented here:
- A Lead is created once per unique email and moves new -> verified exactly once.
- A Quote is created with its Lead, expires 7 days later, and is only ever
  mutated by the expiration sweep (is_expired false -> true).
- A Verification token expires 15 minutes after issue and may be consumed at
  most once, only before it expires, and only while its Lead is unverified.
  "expired" is derived from expires_at; it is never stored.

All entities are frozen; transitions return new instances.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple
from uuid import UUID

from .device import Device
from .errors import AlreadyVerified, TokenAlreadyUsed, TokenExpired
from .pricing import QuoteBreakdown
from .time import require_utc_timestamp

QUOTE_VALIDITY = timedelta(days=7)
VERIFICATION_TTL = timedelta(minutes=15)


class SellMethod(str, Enum):
    PICKUP = "pickup"
    DROPOFF = "dropoff"


def normalize_email(email: str) -> str:
    return email.strip().lower()


def normalize_phone(phone: str) -> str:
    return "".join(ch for ch in phone if ch.isdigit() or ch == "+")


@dataclass(frozen=True, slots=True)
class Lead:
    """
    A prospective seller.

    is_verified is monotonic: use verified() to obtain the verified copy.
    """

    lead_id: UUID
    email: str
    first_name: Optional[str]
    last_name: Optional[str]
    phone_number: Optional[str]
    address: Optional[str]
    sell_method: SellMethod
    created_at: datetime
    distance: Optional[float] = None
    pickup_fee: Optional[Decimal] = None
    is_verified: bool = False

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)

    def verified(self) -> "Lead":
        if self.is_verified:
            raise AlreadyVerified()
        return replace(self, is_verified=True)

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)


@dataclass(frozen=True, slots=True)
class Quote:
    """Priced offer for one device configuration, owned by one Lead."""

    quote_id: UUID
    lead_id: UUID
    device: Device
    damages: Tuple[str, ...]
    has_box: bool
    has_charger: bool
    is_activation_locked: bool
    base_price: Decimal
    damage_deduction: Decimal
    margin: Decimal
    final_quote: Decimal
    created_at: datetime
    expires_at: datetime
    pickup_fee: Optional[Decimal] = None
    is_expired: bool = False

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)
        require_utc_timestamp("expires_at", self.expires_at)
        if self.damage_deduction < 0:
            raise ValueError("damage_deduction must be >= 0")
        if self.margin < 0:
            raise ValueError("margin must be >= 0")
        if self.final_quote <= 0:
            raise ValueError("final_quote must be > 0")

    @staticmethod
    def from_breakdown(
        *,
        quote_id: UUID,
        lead_id: UUID,
        breakdown: QuoteBreakdown,
        damages: Tuple[str, ...],
        has_box: bool,
        has_charger: bool,
        pickup_fee: Optional[Decimal],
        created_at: datetime,
        validity: timedelta = QUOTE_VALIDITY,
    ) -> "Quote":
        return Quote(
            quote_id=quote_id,
            lead_id=lead_id,
            device=breakdown.device,
            damages=tuple(damages),
            has_box=has_box,
            has_charger=has_charger,
            is_activation_locked=breakdown.is_activation_locked,
            base_price=breakdown.base_price,
            damage_deduction=breakdown.damage_deduction,
            margin=breakdown.margin,
            final_quote=breakdown.final_quote,
            pickup_fee=pickup_fee,
            created_at=created_at,
            expires_at=created_at + validity,
        )

    def is_due(self, now: datetime) -> bool:
        """True once the validity window has passed and the flag is not yet set."""
        require_utc_timestamp("now", now)
        return not self.is_expired and self.expires_at < now

    def expired(self) -> "Quote":
        if self.is_expired:
            return self
        return replace(self, is_expired=True)


@dataclass(frozen=True, slots=True)
class Verification:
    """One-time email verification token tied to a Lead."""

    verification_id: UUID
    lead_id: UUID
    token: str
    created_at: datetime
    expires_at: datetime
    is_used: bool = False

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)
        require_utc_timestamp("expires_at", self.expires_at)

    @staticmethod
    def issue(
        *,
        verification_id: UUID,
        lead_id: UUID,
        created_at: datetime,
        ttl: timedelta = VERIFICATION_TTL,
    ) -> "Verification":
        return Verification(
            verification_id=verification_id,
            lead_id=lead_id,
            token=secrets.token_urlsafe(32),
            created_at=created_at,
            expires_at=created_at + ttl,
        )

    def is_expired(self, now: datetime) -> bool:
        require_utc_timestamp("now", now)
        return self.expires_at < now

    def check_consumable(self, lead: Lead, now: datetime) -> None:
        """
        Validate that this token may be consumed now.

        Order: TokenExpired, TokenAlreadyUsed, AlreadyVerified.
        """
        if self.is_expired(now):
            raise TokenExpired()
        if self.is_used:
            raise TokenAlreadyUsed()
        if lead.is_verified:
            raise AlreadyVerified()

    def used(self) -> "Verification":
        if self.is_used:
            raise TokenAlreadyUsed()
        return replace(self, is_used=True)


@dataclass(frozen=True, slots=True)
class VerificationContext:
    """Read model returned when looking a token up: the token with its lead and quote."""

    verification: Verification
    lead: Lead
    quote: Optional[Quote]


__all__ = [
    "Lead",
    "QUOTE_VALIDITY",
    "Quote",
    "SellMethod",
    "VERIFICATION_TTL",
    "Verification",
    "VerificationContext",
    "normalize_email",
    "normalize_phone",
]
