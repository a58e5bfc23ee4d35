"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
"""

from datetime import date, datetime, time
from decimal import Decimal
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field


# ============================================================================
# Shared
# ============================================================================

class ErrorResponse(BaseModel):
    """Body returned for every typed error."""
    error: str
    message: str


ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid request"},
    404: {"model": ErrorResponse, "description": "Not found"},
    409: {"model": ErrorResponse, "description": "Conflict"},
    500: {"model": ErrorResponse, "description": "Internal error"},
    502: {"model": ErrorResponse, "description": "Upstream service failed"},
}


class SlotResponse(BaseModel):
    slot_date: date
    start_time: time
    end_time: time
    is_same_day: bool


# ============================================================================
# Quote Models
# ============================================================================

class QuoteRequest(BaseModel):
    """Device configuration to price."""
    model: str = Field(..., min_length=1)
    storage: str = Field(..., min_length=1)
    damages: List[str] = Field(default_factory=list)
    has_box: bool = True
    has_charger: bool = True
    is_activation_locked: bool = False
    sell_method: Literal["pickup", "dropoff"] = "dropoff"
    address: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "model": "iPhone 13",
                "storage": "128GB",
                "damages": ["cracked_screen"],
                "has_box": True,
                "has_charger": False,
                "is_activation_locked": False,
                "sell_method": "pickup",
                "address": "12 High St, Penrith NSW 2750",
            }
        }


class QuoteResponse(BaseModel):
    """Priced quote with pickup details and upcoming slots."""
    model: str
    storage: str
    base_price: Decimal
    damage_deduction: Decimal
    margin: Decimal
    final_quote: Decimal
    is_activation_locked: bool
    pickup_fee: Optional[Decimal] = None
    distance: Optional[float] = None
    duration: Optional[int] = None
    expires_at: datetime
    available_slots: List[SlotResponse]

    class Config:
        json_schema_extra = {
            "example": {
                "model": "iPhone 13",
                "storage": "128GB",
                "base_price": "600",
                "damage_deduction": "100",
                "margin": "180",
                "final_quote": "320",
                "is_activation_locked": False,
                "pickup_fee": "30",
                "distance": 18.4,
                "duration": 22,
                "expires_at": "2025-01-08T02:00:00Z",
                "available_slots": [],
            }
        }


# ============================================================================
# Lead Models
# ============================================================================

class LeadCreateRequest(QuoteRequest):
    """Contact details plus the quote the customer accepted."""
    email: str = Field(..., min_length=3)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone_number: Optional[str] = None
    final_quote: Decimal = Field(..., gt=0, description="Amount shown to the customer")


class LeadCreateResponse(BaseModel):
    lead_id: UUID
    quote_id: UUID
    final_quote: Decimal
    pickup_fee: Optional[Decimal] = None
    quote_expires_at: datetime
    verification_expires_at: datetime


# ============================================================================
# Verification Models
# ============================================================================

class VerifyConfirmRequest(BaseModel):
    token: str = Field(..., min_length=1)


class VerifyConfirmResponse(BaseModel):
    success: bool
    lead_id: UUID


class VerificationDetailsResponse(BaseModel):
    """What the verification page shows before the customer confirms."""
    lead_id: UUID
    email: str
    first_name: Optional[str] = None
    sell_method: str
    model: Optional[str] = None
    storage: Optional[str] = None
    final_quote: Optional[Decimal] = None
    pickup_fee: Optional[Decimal] = None
    token_expires_at: datetime


# ============================================================================
# Scheduling Models
# ============================================================================

class AvailableSlotsResponse(BaseModel):
    lead_id: UUID
    slots: List[SlotResponse]
    total_count: int


class BookingRequest(BaseModel):
    lead_id: UUID
    slot_date: date
    start_time: time
    end_time: Optional[time] = None
    notes: Optional[str] = Field(default=None, max_length=1000)

    class Config:
        json_schema_extra = {
            "example": {
                "lead_id": "123e4567-e89b-12d3-a456-426614174000",
                "slot_date": "2025-01-07",
                "start_time": "14:00",
                "end_time": "15:00",
                "notes": "Side gate",
            }
        }


class AppointmentResponse(BaseModel):
    appointment_id: UUID
    lead_id: UUID
    slot_date: date
    start_time: time
    end_time: time
    status: str
    is_same_day: bool
    notes: Optional[str] = None


class AppointmentStatusRequest(BaseModel):
    status: Literal["scheduled", "confirmed", "completed", "cancelled"]
    reason: Optional[str] = None
    notes: Optional[str] = Field(default=None, max_length=1000)


class StateLogResponse(BaseModel):
    from_state: Optional[str] = None
    to_state: str
    reason: str
    created_at: datetime


# ============================================================================
# Cron Models
# ============================================================================

class QuoteExpirationResponse(BaseModel):
    success: bool
    expired: int
    near_expiry: int
    total: int
    timestamp: datetime


# ============================================================================
# Verification Delivery Models
# ============================================================================

class VerifySendRequest(BaseModel):
    lead_id: UUID


class VerifySendResponse(BaseModel):
    success: bool
    token_expires_at: datetime


# ============================================================================
# Catalog Models
# ============================================================================

class CatalogModelResponse(BaseModel):
    model: str
    storage_options: List[str]


class CatalogRefreshResponse(BaseModel):
    success: bool
    model_count: int


# ============================================================================
# Admin Models
# ============================================================================

class ExpirationStatsResponse(BaseModel):
    period_days: int
    total_quotes: int
    expired_quotes: int
    converted_quotes: int
    active_quotes: int
    expiring_soon: int
    expiration_rate: float
    conversion_rate: float
    generated_at: datetime
