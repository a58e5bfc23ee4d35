"""
Slot allocator and appointment status service.

list_available_slots: lazy generator over candidate windows for the next N
days, merged with persisted slot rows (rows defer to is_available/is_blocked,
missing rows are available).

book: lifecycle checks (lead exists, verified, no appointment yet) and the
operating-hours check run here first so callers get precise errors; the
atomic store call then re-checks the lead under a row lock and claims the slot
with a conditional update, so at most one booking wins per slot.

update_appointment_status: forward-only transitions, each one logged.

list_appointments: the admin day schedule.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from typing import Callable, Iterator, List, Optional
from uuid import UUID, uuid4

from domain.errors import (
    AppointmentExists,
    AppointmentNotFound,
    LeadNotFound,
    LeadNotVerified,
    SlotUnavailable,
)
from domain.events import DomainEvent, EventName
from domain.lead import Lead, SellMethod
from domain.schedule import (
    Address,
    Appointment,
    AppointmentStatus,
    SchedulePolicy,
    SlotCandidate,
    is_same_day_eligible,
    iter_candidate_windows,
    require_transition,
    validate_slot_window,
)
from domain.state_log import DEFAULT_UPDATE_REASON, StateLogEntry
from domain.time import to_local, utc_now
from repositories.lead_repository import LeadRepository
from repositories.schedule_repository import ScheduleRepository
from services.event_service import EventDispatcher

logger = logging.getLogger(__name__)

DEFAULT_DAYS_AHEAD = 7


class SchedulingService:
    def __init__(
        self,
        schedule_repository: ScheduleRepository,
        lead_repository: LeadRepository,
        events: EventDispatcher,
        policy: SchedulePolicy = SchedulePolicy(),
        clock: Callable[[], datetime] = utc_now,
    ):
        self._slots = schedule_repository
        self._leads = lead_repository
        self._events = events
        self._policy = policy
        self._clock = clock

    def _require_lead(self, lead_id: UUID) -> Lead:
        lead = self._leads.get_lead(lead_id)
        if lead is None:
            raise LeadNotFound()
        return lead

    def list_available_slots(
        self,
        lead_id: UUID,
        days_ahead: int = DEFAULT_DAYS_AHEAD,
    ) -> Iterator[SlotCandidate]:
        """
        Yield bookable slots for a lead, soonest first.

        The lead is checked eagerly (LeadNotFound is raised on the call, not on
        first iteration). `now` is captured once, so the sequence is finite and
        consistent even if it is consumed slowly.
        """

        lead = self._require_lead(lead_id)
        now_local = to_local(self._clock(), self._policy.tz)
        return self._iter_slots(lead, now_local, days_ahead)

    def _iter_slots(self, lead: Lead, now_local: datetime, days_ahead: int) -> Iterator[SlotCandidate]:
        today = now_local.date()
        persisted = {}
        if days_ahead > 0:
            rows = self._slots.list_slots(today, today + timedelta(days=days_ahead - 1))
            persisted = {slot.key: slot for slot in rows}

        for slot_date, start, end in iter_candidate_windows(now_local, days_ahead, self._policy):
            row = persisted.get((slot_date, start))
            if row is not None and not row.is_bookable:
                continue
            yield SlotCandidate(
                slot_date=slot_date,
                start_time=start,
                end_time=end,
                is_same_day=is_same_day_eligible(
                    slot_date, now_local, lead.sell_method, lead.distance, self._policy
                ),
            )

    def book(
        self,
        lead_id: UUID,
        slot_date: date,
        start_time: time,
        end_time: Optional[time] = None,
        notes: Optional[str] = None,
    ) -> Appointment:
        """
        Book a slot for a verified lead.

        Raises:
            LeadNotFound, LeadNotVerified, AppointmentExists
            OutsideOperatingHours: closed day, off-hour start, wrong length
            SlotUnavailable: slot in the past, already claimed, or blocked
        """

        lead = self._require_lead(lead_id)
        if not lead.is_verified:
            raise LeadNotVerified()
        if self._slots.get_appointment_for_lead(lead_id) is not None:
            raise AppointmentExists()

        end = validate_slot_window(slot_date, start_time, end_time, self._policy)

        now = self._clock()
        now_local = to_local(now, self._policy.tz)
        if datetime.combine(slot_date, start_time, tzinfo=self._policy.tz) <= now_local:
            raise SlotUnavailable(f"Slot {slot_date} {start_time} has already started")

        is_same_day = is_same_day_eligible(
            slot_date, now_local, lead.sell_method, lead.distance, self._policy
        )
        address = None
        if lead.sell_method is SellMethod.PICKUP and lead.address:
            address = Address.unparsed(uuid4(), lead.address)

        appointment = self._slots.book_slot(
            appointment_id=uuid4(),
            lead_id=lead_id,
            slot_date=slot_date,
            start_time=start_time,
            end_time=end,
            is_same_day=is_same_day,
            notes=notes,
            address=address,
            now=now,
        )

        logger.info(
            "Booked appointment %s for lead %s on %s %s (same_day=%s)",
            appointment.appointment_id,
            lead_id,
            slot_date.isoformat(),
            start_time.isoformat(timespec="minutes"),
            is_same_day,
        )
        self._events.emit(
            DomainEvent(
                name=EventName.APPOINTMENT_SCHEDULED,
                occurred_at=now,
                lead_id=lead_id,
                properties={
                    "appointment_id": str(appointment.appointment_id),
                    "slot_date": slot_date.isoformat(),
                    "start_time": start_time.isoformat(timespec="minutes"),
                    "is_same_day": is_same_day,
                },
            )
        )
        return appointment

    def get_appointment(self, appointment_id: UUID) -> Appointment:
        appointment = self._slots.get_appointment(appointment_id)
        if appointment is None:
            raise AppointmentNotFound()
        return appointment

    def list_appointments(
        self,
        day: Optional[date] = None,
        status: Optional[AppointmentStatus] = None,
    ) -> List[Appointment]:
        """Day schedule, ordered by slot start. day defaults to today in the business timezone."""

        if day is None:
            day = to_local(self._clock(), self._policy.tz).date()
        return self._slots.list_appointments(day, status)

    def update_appointment_status(
        self,
        appointment_id: UUID,
        status: AppointmentStatus,
        reason: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Appointment:
        """
        Move an appointment forward (scheduled -> confirmed -> completed, or
        cancelled from either). The slot is not released on cancellation.

        Raises:
            AppointmentNotFound
            InvalidStatusTransition: not allowed, or the status changed concurrently
        """

        current = self.get_appointment(appointment_id)
        require_transition(current.status, status)

        now = self._clock()
        self._slots.update_appointment_status(
            appointment_id=appointment_id,
            from_status=current.status,
            to_status=status,
            reason=reason or DEFAULT_UPDATE_REASON,
            notes=notes,
            now=now,
        )
        updated = current.with_status(status, notes)

        logger.info(
            "Appointment %s: %s -> %s", appointment_id, current.status.value, status.value
        )
        self._events.emit(
            DomainEvent(
                name=EventName.APPOINTMENT_STATUS_UPDATED,
                occurred_at=now,
                lead_id=current.lead_id,
                properties={
                    "appointment_id": str(appointment_id),
                    "from_status": current.status.value,
                    "to_status": status.value,
                },
            )
        )
        return updated

    def list_state_log(self, appointment_id: UUID) -> List[StateLogEntry]:
        return self._slots.list_state_log(appointment_id)


__all__ = ["SchedulingService"]
