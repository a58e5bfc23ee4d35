"""
Domain errors for the buyback platform.

Every error carries:
- code: stable machine-readable identifier returned to callers
- status_code: HTTP status the API boundary responds with
- retryable: whether the caller may safely retry the same request
- public_message: text that is safe to show to the end user

The internal message (str(error)) may contain details for logs; the public
message never does.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

GENERIC_FAILURE_CODE = "INTERNAL_ERROR"
GENERIC_FAILURE_MESSAGE = "Something went wrong while processing your request. Please try again later."


class BuybackError(Exception):
    """Base class for all typed errors raised by the core."""

    code: str = "BUYBACK_ERROR"
    status_code: int = 400
    retryable: bool = False
    public_message: str = "The request could not be processed."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.public_message)


# ============================================================================
# Pricing
# ============================================================================

class InvalidModel(BuybackError):
    code = "INVALID_MODEL"
    public_message = "Invalid phone model"

    def __init__(self, model: str):
        self.model = model
        super().__init__(f"Unknown device model: {model!r}")


class InvalidStorage(BuybackError):
    code = "INVALID_STORAGE"
    public_message = "Invalid storage option"

    def __init__(self, model: str, storage: str):
        self.model = model
        self.storage = storage
        super().__init__(f"Storage {storage!r} is not offered for {model!r}")


class QuoteIntegrityError(BuybackError):
    """Submitted final quote drifted from the recomputed amount beyond tolerance."""

    code = "QUOTE_INTEGRITY"
    public_message = "Your quote has changed. Please request a new quote."

    def __init__(self, submitted: Decimal, recomputed: Decimal, tolerance: Decimal):
        self.submitted = submitted
        self.recomputed = recomputed
        self.tolerance = tolerance
        super().__init__(
            f"Submitted quote {submitted} differs from recomputed {recomputed} "
            f"(tolerance {tolerance})"
        )


class PickupOutOfRange(BuybackError):
    code = "PICKUP_OUT_OF_RANGE"
    public_message = "Pickup is not available at your location. Please choose drop-off."

    def __init__(self, distance: float, max_distance: float):
        self.distance = distance
        self.max_distance = max_distance
        super().__init__(f"Pickup distance {distance}km exceeds the {max_distance}km limit")


class RoutingUnavailable(BuybackError):
    """The external routing provider failed; never defaulted to a free pickup."""

    code = "ROUTING_UNAVAILABLE"
    retryable = True
    public_message = (
        "Unable to calculate distance to your address. Please try again or contact support."
    )


# ============================================================================
# Lead creation
# ============================================================================

class DuplicateEmail(BuybackError):
    code = "DUPLICATE_EMAIL"
    status_code = 409
    public_message = "A quote has already been requested with this email address."


class Blacklisted(BuybackError):
    """
    Lead creation refused for a blacklisted email or phone number.

    The public code, status and message are the generic failure's so callers
    cannot enumerate blacklist entries.
    """

    code = GENERIC_FAILURE_CODE
    status_code = 500
    public_message = GENERIC_FAILURE_MESSAGE


# ============================================================================
# Verification
# ============================================================================

class InvalidToken(BuybackError):
    code = "INVALID_TOKEN"
    public_message = "Invalid verification token"


class TokenExpired(BuybackError):
    code = "TOKEN_EXPIRED"
    public_message = "Verification token has expired"


class TokenAlreadyUsed(BuybackError):
    code = "TOKEN_ALREADY_USED"
    public_message = "Verification token already used"


class AlreadyVerified(BuybackError):
    code = "ALREADY_VERIFIED"
    public_message = "Lead already verified"


class VerificationDeliveryFailed(BuybackError):
    """The verification message could not be handed to the delivery service."""

    code = "VERIFICATION_DELIVERY_FAILED"
    status_code = 502
    retryable = True
    public_message = "Failed to send verification email"


# ============================================================================
# Scheduling
# ============================================================================

class LeadNotFound(BuybackError):
    code = "LEAD_NOT_FOUND"
    status_code = 404
    public_message = "Lead not found"


class LeadNotVerified(BuybackError):
    code = "LEAD_NOT_VERIFIED"
    public_message = "Lead not verified"


class AppointmentExists(BuybackError):
    code = "APPOINTMENT_EXISTS"
    status_code = 409
    public_message = "Appointment already exists"


class OutsideOperatingHours(BuybackError):
    code = "OUTSIDE_OPERATING_HOURS"
    public_message = "Selected time is outside operating hours (12:00-20:00, Monday to Saturday)"


class SlotUnavailable(BuybackError):
    code = "SLOT_UNAVAILABLE"
    status_code = 409
    public_message = "Selected time slot is not available"


class AppointmentNotFound(BuybackError):
    code = "APPOINTMENT_NOT_FOUND"
    status_code = 404
    public_message = "Appointment not found"


class InvalidStatusTransition(BuybackError):
    code = "INVALID_STATUS_TRANSITION"
    status_code = 409
    public_message = "Appointment status cannot be changed that way"

    def __init__(self, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(f"Cannot move appointment from {from_status!r} to {to_status!r}")


# ============================================================================
# Infrastructure
# ============================================================================

class PersistenceError(BuybackError):
    """Unclassified store failure. Details go to logs, never to callers."""

    code = GENERIC_FAILURE_CODE
    status_code = 500
    public_message = GENERIC_FAILURE_MESSAGE


__all__ = [
    "AlreadyVerified",
    "AppointmentExists",
    "AppointmentNotFound",
    "Blacklisted",
    "BuybackError",
    "DuplicateEmail",
    "GENERIC_FAILURE_CODE",
    "GENERIC_FAILURE_MESSAGE",
    "InvalidModel",
    "InvalidStatusTransition",
    "InvalidStorage",
    "InvalidToken",
    "LeadNotFound",
    "LeadNotVerified",
    "OutsideOperatingHours",
    "PersistenceError",
    "PickupOutOfRange",
    "QuoteIntegrityError",
    "RoutingUnavailable",
    "SlotUnavailable",
    "TokenAlreadyUsed",
    "TokenExpired",
    "VerificationDeliveryFailed",
]
