"""
Domain: Schedule slots, appointments and the booking policy.

Rules implemented here:
- Operating hours are 12:00-20:00 local time in one-hour slots (last slot
  starts at 19:00). Closed days (Sunday) have no slots at all.
- A slot is identified by (slot_date, start_time) in business-local time.
  Until first booked it is only a candidate; a persisted row defers to its
  is_available / is_blocked flags.
- Same-day eligibility: the slot is today, local time is at or before the
  cutoff (15:00), and for pickups the lead's distance is known and within the
  same-day radius (20). It is computed once at booking and frozen.
- Appointment status moves forward only:
    scheduled -> confirmed | cancelled
    confirmed -> completed | cancelled
  completed and cancelled are terminal.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import FrozenSet, Iterator, List, Optional
from uuid import UUID
from zoneinfo import ZoneInfo

from .errors import InvalidStatusTransition, OutsideOperatingHours, SlotUnavailable
from .lead import SellMethod
from .time import require_utc_timestamp

SUNDAY = 6


@dataclass(frozen=True, slots=True)
class SchedulePolicy:
    opening_hour: int = 12
    closing_hour: int = 20
    same_day_cutoff: time = time(15, 0)
    same_day_max_distance: float = 20.0
    closed_weekdays: FrozenSet[int] = field(default_factory=lambda: frozenset({SUNDAY}))
    timezone: str = "Australia/Sydney"

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @property
    def slot_length(self) -> timedelta:
        return timedelta(hours=1)

    def slot_starts(self) -> List[time]:
        return [time(hour, 0) for hour in range(self.opening_hour, self.closing_hour)]

    def is_open_on(self, day: date) -> bool:
        return day.weekday() not in self.closed_weekdays


def _add_hour(start: time) -> time:
    return (datetime.combine(date.min, start) + timedelta(hours=1)).time()


def validate_slot_window(
    slot_date: date,
    start_time: time,
    end_time: Optional[time],
    policy: SchedulePolicy,
) -> time:
    """
    Check that (slot_date, start_time[, end_time]) is a bookable slot shape.

    Returns the slot's end time.

    Raises:
        OutsideOperatingHours: closed day, start not on the hour, start outside
            the operating window, or end not exactly one hour after start
    """
    if not policy.is_open_on(slot_date):
        raise OutsideOperatingHours(f"{slot_date.isoformat()} is not an operating day")
    if start_time.minute or start_time.second or start_time.microsecond:
        raise OutsideOperatingHours(f"Slots start on the hour, got {start_time.isoformat()}")
    if not policy.opening_hour <= start_time.hour < policy.closing_hour:
        raise OutsideOperatingHours(
            f"{start_time.isoformat()} is outside {policy.opening_hour}:00-{policy.closing_hour}:00"
        )

    expected_end = _add_hour(start_time)
    if end_time is not None and end_time != expected_end:
        raise OutsideOperatingHours(
            f"Slot {start_time.isoformat()}-{end_time.isoformat()} is not one hour long"
        )
    return expected_end


def is_same_day_eligible(
    slot_date: date,
    now_local: datetime,
    sell_method: SellMethod,
    distance: Optional[float],
    policy: SchedulePolicy,
) -> bool:
    if slot_date != now_local.date():
        return False
    if now_local.time() > policy.same_day_cutoff:
        return False
    if sell_method is SellMethod.PICKUP:
        return distance is not None and distance <= policy.same_day_max_distance
    return True


def iter_candidate_windows(
    now_local: datetime,
    days_ahead: int,
    policy: SchedulePolicy,
) -> Iterator[tuple[date, time, time]]:
    """
    Yield (slot_date, start_time, end_time) for every future slot in the window.

    The window starts today (local) and spans days_ahead calendar days.
    Closed days and slots starting at or before now_local are skipped.
    """
    if days_ahead < 0:
        raise ValueError("days_ahead must be >= 0")

    today = now_local.date()
    for offset in range(days_ahead):
        day = today + timedelta(days=offset)
        if not policy.is_open_on(day):
            continue
        for start in policy.slot_starts():
            if datetime.combine(day, start, tzinfo=now_local.tzinfo) <= now_local:
                continue
            yield day, start, _add_hour(start)


@dataclass(frozen=True, slots=True)
class ScheduleSlot:
    """A persisted one-hour window. is_available flips to False exactly once."""

    slot_date: date
    start_time: time
    end_time: time
    slot_id: Optional[UUID] = None
    is_available: bool = True
    is_blocked: bool = False

    @property
    def key(self) -> tuple[date, time]:
        return (self.slot_date, self.start_time)

    @property
    def is_bookable(self) -> bool:
        return self.is_available and not self.is_blocked

    def claimed(self) -> "ScheduleSlot":
        if not self.is_bookable:
            raise SlotUnavailable()
        return replace(self, is_available=False)


@dataclass(frozen=True, slots=True)
class SlotCandidate:
    """A slot offered to a lead; not necessarily persisted yet."""

    slot_date: date
    start_time: time
    end_time: time
    is_same_day: bool

    def starts_at(self, tz: ZoneInfo) -> datetime:
        return datetime.combine(self.slot_date, self.start_time, tzinfo=tz)


class AppointmentStatus(str, Enum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    def can_transition_to(self, target: "AppointmentStatus") -> bool:
        return target in _TRANSITIONS[self]

    @property
    def is_terminal(self) -> bool:
        return not _TRANSITIONS[self]


_TRANSITIONS = {
    AppointmentStatus.SCHEDULED: frozenset({AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED}),
    AppointmentStatus.CONFIRMED: frozenset({AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED}),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
}


def require_transition(current: AppointmentStatus, target: AppointmentStatus) -> None:
    if not current.can_transition_to(target):
        raise InvalidStatusTransition(current.value, target.value)


@dataclass(frozen=True, slots=True)
class Address:
    """
    Pickup address. Parsing into structured fields is out of scope, so the
    raw text is kept in street / formatted_address and the rest are placeholders.
    """

    address_id: UUID
    street: str
    suburb: str = "Unknown"
    postcode: str = "0000"
    state: str = "NSW"
    formatted_address: Optional[str] = None

    @staticmethod
    def unparsed(address_id: UUID, raw: str) -> "Address":
        return Address(address_id=address_id, street=raw, formatted_address=raw)


@dataclass(frozen=True, slots=True)
class Appointment:
    """Binds one Lead to one ScheduleSlot. is_same_day never changes after creation."""

    appointment_id: UUID
    lead_id: UUID
    slot_id: UUID
    slot_date: date
    start_time: time
    end_time: time
    status: AppointmentStatus
    is_same_day: bool
    created_at: datetime
    notes: Optional[str] = None
    address_id: Optional[UUID] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)

    def with_status(self, status: AppointmentStatus, notes: Optional[str] = None) -> "Appointment":
        require_transition(self.status, status)
        return replace(self, status=status, notes=notes if notes is not None else self.notes)


__all__ = [
    "Address",
    "Appointment",
    "AppointmentStatus",
    "SchedulePolicy",
    "ScheduleSlot",
    "SlotCandidate",
    "is_same_day_eligible",
    "iter_candidate_windows",
    "require_transition",
    "validate_slot_window",
]
