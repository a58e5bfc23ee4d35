"""
Domain: Audit / analytics events emitted by the core.

Events are facts about operations that already committed. Delivery is
fire-and-forget: nothing in the core depends on an event being recorded.
event_id makes redelivery idempotent.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional
from uuid import UUID, uuid4

from .time import require_utc_timestamp


class EventName(str, Enum):
    LEAD_CREATED = "lead_created"
    LEAD_VERIFIED = "lead_verified"
    APPOINTMENT_SCHEDULED = "appointment_scheduled"
    APPOINTMENT_STATUS_UPDATED = "appointment_status_updated"
    QUOTE_EXPIRED = "quote_expired"
    VERIFICATION_EMAIL_SENT = "verification_email_sent"


@dataclass(frozen=True, slots=True)
class DomainEvent:
    name: EventName
    occurred_at: datetime
    lead_id: Optional[UUID] = None
    properties: Mapping[str, Any] = field(default_factory=dict)
    event_id: UUID = field(default_factory=uuid4)

    def __post_init__(self) -> None:
        require_utc_timestamp("occurred_at", self.occurred_at)
