"""
Lead / quote / verification lifecycle.

create_lead:
    validate -> recompute quote server-side -> integrity check against the
    submitted amount -> one atomic store call (duplicate + blacklist checks,
    device find-or-create, lead + quote + verification) -> lead_created event
    -> verification message.
confirm_verification:
    atomic consume of the token (InvalidToken, TokenExpired, TokenAlreadyUsed,
    AlreadyVerified in that order) -> lead_verified event.
inspect_verification:
    same checks, read-only.
resend_verification:
    send the link again for an unverified lead whose token is still usable.

Events and verification messages go out only after the store call
committed. A failed send after create_lead is logged; the lead stays.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Optional
from uuid import UUID, uuid4

from domain.catalog import PriceCatalog
from domain.errors import (
    AlreadyVerified,
    Blacklisted,
    InvalidToken,
    LeadNotFound,
    QuoteIntegrityError,
    VerificationDeliveryFailed,
)
from domain.events import DomainEvent, EventName
from domain.lead import (
    QUOTE_VALIDITY,
    VERIFICATION_TTL,
    Lead,
    Quote,
    SellMethod,
    Verification,
    VerificationContext,
    normalize_email,
    normalize_phone,
)
from domain.pricing import PricingPolicy, verify_submitted_quote
from domain.time import utc_now
from repositories.lead_repository import LeadRepository
from services.distance_service import DistanceEligibilityService
from services.event_service import EventDispatcher
from services.notification_service import LoggingVerificationNotifier, VerificationNotifier
from services.pricing_service import QuoteRequest, calculate_quote

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LeadRequest:
    email: str
    quote: QuoteRequest
    submitted_final_quote: Decimal
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone_number: Optional[str] = None


@dataclass(frozen=True, slots=True)
class LeadCreated:
    lead: Lead
    quote: Quote
    verification: Verification


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class LeadService:
    def __init__(
        self,
        repository: LeadRepository,
        events: EventDispatcher,
        distance_service: Optional[DistanceEligibilityService],
        catalog_provider: Callable[[], PriceCatalog],
        pricing_policy: PricingPolicy = PricingPolicy(),
        tolerance: Decimal = Decimal("5"),
        quote_validity: timedelta = QUOTE_VALIDITY,
        verification_ttl: timedelta = VERIFICATION_TTL,
        clock: Callable[[], datetime] = utc_now,
        notifier: Optional[VerificationNotifier] = None,
    ):
        self._repository = repository
        self._events = events
        self._distance_service = distance_service
        self._catalog_provider = catalog_provider
        self._pricing_policy = pricing_policy
        self._tolerance = tolerance
        self._quote_validity = quote_validity
        self._verification_ttl = verification_ttl
        self._clock = clock
        self._notifier = notifier or LoggingVerificationNotifier()

    def create_lead(self, request: LeadRequest) -> LeadCreated:
        """
        Create a lead with its quote and a verification token.

        Raises:
            ValueError: missing email, or pickup without an address
            InvalidModel, InvalidStorage, PickupOutOfRange, RoutingUnavailable
            QuoteIntegrityError: submitted amount drifted beyond tolerance
            DuplicateEmail, Blacklisted, PersistenceError
        """

        email = normalize_email(request.email or "")
        if not email or "@" not in email:
            raise ValueError("A valid email address is required")
        quote_request = request.quote
        address = _clean(quote_request.address)
        if quote_request.sell_method is SellMethod.PICKUP and not address:
            raise ValueError("Pickup requires an address")

        now = self._clock()
        priced = calculate_quote(
            quote_request,
            now=now,
            distance_service=self._distance_service,
            catalog=self._catalog_provider(),
            policy=self._pricing_policy,
            include_slots=False,
            validity=self._quote_validity,
        )

        try:
            verify_submitted_quote(priced.breakdown, request.submitted_final_quote, self._tolerance)
        except QuoteIntegrityError as e:
            logger.warning(
                "Quote integrity check failed for %s: submitted %s, recomputed %s",
                priced.breakdown.device.display_name,
                e.submitted,
                e.recomputed,
            )
            raise

        lead = Lead(
            lead_id=uuid4(),
            email=email,
            first_name=_clean(request.first_name),
            last_name=_clean(request.last_name),
            phone_number=normalize_phone(request.phone_number) if request.phone_number else None,
            address=address,
            sell_method=quote_request.sell_method,
            created_at=now,
            distance=priced.distance,
            pickup_fee=priced.pickup_fee,
        )
        quote = Quote.from_breakdown(
            quote_id=uuid4(),
            lead_id=lead.lead_id,
            breakdown=priced.breakdown,
            damages=tuple(quote_request.damages),
            has_box=quote_request.has_box,
            has_charger=quote_request.has_charger,
            pickup_fee=priced.pickup_fee,
            created_at=now,
            validity=self._quote_validity,
        )
        verification = Verification.issue(
            verification_id=uuid4(),
            lead_id=lead.lead_id,
            created_at=now,
            ttl=self._verification_ttl,
        )

        try:
            self._repository.create_lead(lead, quote, verification)
        except Blacklisted:
            logger.warning("Rejected lead creation for a blacklisted contact")
            raise

        logger.info("Created lead %s with quote %s", lead.lead_id, quote.final_quote)
        self._events.emit(
            DomainEvent(
                name=EventName.LEAD_CREATED,
                occurred_at=now,
                lead_id=lead.lead_id,
                properties={
                    "model": quote.device.model,
                    "storage": quote.device.storage,
                    "final_quote": str(quote.final_quote),
                    "sell_method": lead.sell_method.value,
                },
            )
        )

        try:
            self._notifier.send_verification(lead, quote, verification)
        except Exception:
            logger.exception("Failed to send verification for lead %s", lead.lead_id)

        return LeadCreated(lead=lead, quote=quote, verification=verification)

    def resend_verification(self, lead_id: UUID) -> Verification:
        """
        Send the verification link again.

        Raises:
            LeadNotFound
            AlreadyVerified: the lead confirmed already
            InvalidToken: the lead has no verification token
            TokenExpired, TokenAlreadyUsed
            VerificationDeliveryFailed: the delivery service rejected the message
        """

        lead = self.get_lead(lead_id)
        if lead.is_verified:
            raise AlreadyVerified()
        context = self._repository.find_verification_for_lead(lead_id)
        if context is None:
            raise InvalidToken(f"Lead {lead_id} has no verification token")
        now = self._clock()
        context.verification.check_consumable(context.lead, now)

        try:
            self._notifier.send_verification(context.lead, context.quote, context.verification)
        except Exception as e:
            logger.exception("Failed to resend verification for lead %s", lead_id)
            raise VerificationDeliveryFailed(f"Verification delivery failed for lead {lead_id}") from e

        logger.info("Resent verification for lead %s", lead_id)
        self._events.emit(
            DomainEvent(name=EventName.VERIFICATION_EMAIL_SENT, occurred_at=now, lead_id=lead_id)
        )
        return context.verification

    def inspect_verification(self, token: str) -> VerificationContext:
        """Validate a token without consuming it."""

        context = self._repository.find_verification(token) if token else None
        if context is None:
            raise InvalidToken()
        context.verification.check_consumable(context.lead, self._clock())
        return context

    def confirm_verification(self, token: str) -> UUID:
        """
        Consume a token and mark its lead verified.

        Returns:
            lead_id of the verified lead
        """

        if not token:
            raise InvalidToken()
        now = self._clock()
        lead_id = self._repository.confirm_verification(token, now)

        logger.info("Verified lead %s", lead_id)
        self._events.emit(DomainEvent(name=EventName.LEAD_VERIFIED, occurred_at=now, lead_id=lead_id))
        return lead_id

    def get_lead(self, lead_id: UUID) -> Lead:
        lead = self._repository.get_lead(lead_id)
        if lead is None:
            raise LeadNotFound()
        return lead


__all__ = ["LeadCreated", "LeadRequest", "LeadService"]
