"""
Domain: Appointment state log.

Append-only record of every appointment status transition. One entry per
transition; entries are never mutated or deleted. The first entry of every
appointment has from_state=None and to_state="scheduled".
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

from .schedule import AppointmentStatus
from .time import require_utc_timestamp

INITIAL_REASON = "Initial appointment creation"
DEFAULT_UPDATE_REASON = "Admin update"


@dataclass(frozen=True, slots=True)
class StateLogEntry:
    appointment_id: UUID
    from_state: Optional[AppointmentStatus]
    to_state: AppointmentStatus
    reason: str
    created_at: datetime
    log_id: Optional[UUID] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)
