"""
Schedule repository (persistence).

Reads slots, appointments and the state log with the table API. Booking and
status changes go through book_slot_atomic() / update_appointment_status_atomic(),
which hold the row locks and run the conditional updates that make the
"one booking per slot" and "forward-only status" rules hold under concurrency.
"""

from __future__ import annotations

from datetime import date, datetime, time
from typing import Any, List, Mapping, Optional
from uuid import UUID

from domain.errors import (
    AppointmentExists,
    AppointmentNotFound,
    InvalidStatusTransition,
    LeadNotFound,
    LeadNotVerified,
    PersistenceError,
    SlotUnavailable,
)
from domain.schedule import Address, Appointment, AppointmentStatus, ScheduleSlot
from domain.state_log import StateLogEntry
from repositories.rows import (
    call_atomic_function,
    parse_date,
    parse_time,
    parse_utc_datetime,
    response_rows,
    to_iso_utc,
)

_SLOTS_TABLE: str = "schedule_slots"
_APPOINTMENTS_TABLE: str = "appointments"
_STATE_LOGS_TABLE: str = "state_logs"
_APPOINTMENT_COLUMNS = "*, schedule_slots(slot_date, start_time, end_time)"
# !inner drops appointments whose slot does not match the slot filter
_DAY_APPOINTMENT_COLUMNS = "*, schedule_slots!inner(slot_date, start_time, end_time)"

_BOOKING_ERRORS = {
    "LEAD_NOT_FOUND": LeadNotFound,
    "LEAD_NOT_VERIFIED": LeadNotVerified,
    "APPOINTMENT_EXISTS": AppointmentExists,
    "SLOT_UNAVAILABLE": SlotUnavailable,
}


def _row_to_slot(row: Mapping[str, Any]) -> ScheduleSlot:
    return ScheduleSlot(
        slot_date=parse_date(row["slot_date"]),
        start_time=parse_time(row["start_time"]),
        end_time=parse_time(row["end_time"]),
        slot_id=UUID(str(row["slot_id"])),
        is_available=bool(row["is_available"]),
        is_blocked=bool(row.get("is_blocked", False)),
    )


def _row_to_appointment(row: Mapping[str, Any]) -> Appointment:
    slot = row["schedule_slots"]
    return Appointment(
        appointment_id=UUID(str(row["appointment_id"])),
        lead_id=UUID(str(row["lead_id"])),
        slot_id=UUID(str(row["slot_id"])),
        slot_date=parse_date(slot["slot_date"]),
        start_time=parse_time(slot["start_time"]),
        end_time=parse_time(slot["end_time"]),
        status=AppointmentStatus(str(row["status"])),
        is_same_day=bool(row.get("is_same_day", False)),
        created_at=parse_utc_datetime(row["created_at_utc"]),
        notes=row.get("notes"),
        address_id=UUID(str(row["address_id"])) if row.get("address_id") else None,
    )


def _row_to_state_log(row: Mapping[str, Any]) -> StateLogEntry:
    from_state = row.get("from_state")
    return StateLogEntry(
        log_id=UUID(str(row["log_id"])),
        appointment_id=UUID(str(row["appointment_id"])),
        from_state=AppointmentStatus(from_state) if from_state else None,
        to_state=AppointmentStatus(str(row["to_state"])),
        reason=row.get("reason") or "",
        created_at=parse_utc_datetime(row["created_at_utc"]),
    )


def _address_payload(address: Address) -> dict[str, Any]:
    return {
        "address_id": str(address.address_id),
        "street": address.street,
        "suburb": address.suburb,
        "postcode": address.postcode,
        "state": address.state,
        "formatted_address": address.formatted_address,
    }


class ScheduleRepository:
    def __init__(self, client: Any):
        self._client = client

    def list_slots(self, start_date: date, end_date: date) -> List[ScheduleSlot]:
        """Persisted slots with start_date <= slot_date <= end_date."""

        response = (
            self._client.table(_SLOTS_TABLE)
            .select("*")
            .gte("slot_date", start_date.isoformat())
            .lte("slot_date", end_date.isoformat())
            .execute()
        )
        rows = response_rows(response, "list slots")
        return [_row_to_slot(row) for row in rows]

    def get_appointment(self, appointment_id: UUID) -> Optional[Appointment]:
        response = (
            self._client.table(_APPOINTMENTS_TABLE)
            .select(_APPOINTMENT_COLUMNS)
            .eq("appointment_id", str(appointment_id))
            .limit(1)
            .execute()
        )
        rows = response_rows(response, "get appointment")
        return _row_to_appointment(rows[0]) if rows else None

    def get_appointment_for_lead(self, lead_id: UUID) -> Optional[Appointment]:
        response = (
            self._client.table(_APPOINTMENTS_TABLE)
            .select(_APPOINTMENT_COLUMNS)
            .eq("lead_id", str(lead_id))
            .limit(1)
            .execute()
        )
        rows = response_rows(response, "get appointment for lead")
        return _row_to_appointment(rows[0]) if rows else None

    def list_appointments(
        self,
        day: date,
        status: Optional[AppointmentStatus] = None,
    ) -> List[Appointment]:
        """Appointments whose slot falls on `day`, ordered by slot start."""

        query = (
            self._client.table(_APPOINTMENTS_TABLE)
            .select(_DAY_APPOINTMENT_COLUMNS)
            .eq("schedule_slots.slot_date", day.isoformat())
        )
        if status is not None:
            query = query.eq("status", status.value)
        rows = response_rows(query.execute(), "list appointments")
        return sorted((_row_to_appointment(row) for row in rows), key=lambda a: a.start_time)

    def book_slot(
        self,
        *,
        appointment_id: UUID,
        lead_id: UUID,
        slot_date: date,
        start_time: time,
        end_time: time,
        is_same_day: bool,
        notes: Optional[str],
        address: Optional[Address],
        now: datetime,
    ) -> Appointment:
        """
        Claim the slot and create the appointment via book_slot_atomic().

        Raises:
            LeadNotFound, LeadNotVerified, AppointmentExists: re-checked under a row lock
            SlotUnavailable: the slot was claimed or blocked first
        """

        result = call_atomic_function(
            self._client,
            "book_slot_atomic",
            {
                "p_appointment_id": str(appointment_id),
                "p_lead_id": str(lead_id),
                "p_slot_date": slot_date.isoformat(),
                "p_start_time": start_time.isoformat(),
                "p_end_time": end_time.isoformat(),
                "p_is_same_day": is_same_day,
                "p_notes": notes,
                "p_address": _address_payload(address) if address else None,
                "p_now": to_iso_utc(now, name="now"),
            },
        )
        if not result.success:
            error_type = _BOOKING_ERRORS.get(result.error_code or "")
            if error_type is not None:
                raise error_type()
            raise PersistenceError(f"book_slot_atomic: {result.error_code} {result.error_message}")

        address_id = result.data.get("address_id")
        return Appointment(
            appointment_id=appointment_id,
            lead_id=lead_id,
            slot_id=UUID(str(result.data["slot_id"])),
            slot_date=slot_date,
            start_time=start_time,
            end_time=end_time,
            status=AppointmentStatus.SCHEDULED,
            is_same_day=is_same_day,
            created_at=now,
            notes=notes,
            address_id=UUID(str(address_id)) if address_id else None,
        )

    def update_appointment_status(
        self,
        *,
        appointment_id: UUID,
        from_status: AppointmentStatus,
        to_status: AppointmentStatus,
        reason: str,
        notes: Optional[str],
        now: datetime,
    ) -> None:
        """Apply a validated transition; fails if the status moved underneath us."""

        result = call_atomic_function(
            self._client,
            "update_appointment_status_atomic",
            {
                "p_appointment_id": str(appointment_id),
                "p_from_status": from_status.value,
                "p_to_status": to_status.value,
                "p_reason": reason,
                "p_notes": notes,
                "p_now": to_iso_utc(now, name="now"),
            },
        )
        if result.success:
            return
        if result.error_code == "APPOINTMENT_NOT_FOUND":
            raise AppointmentNotFound()
        if result.error_code == "INVALID_STATUS_TRANSITION":
            current = result.data.get("current_status") or from_status.value
            raise InvalidStatusTransition(str(current), to_status.value)
        raise PersistenceError(
            f"update_appointment_status_atomic: {result.error_code} {result.error_message}"
        )

    def list_state_log(self, appointment_id: UUID) -> List[StateLogEntry]:
        response = (
            self._client.table(_STATE_LOGS_TABLE)
            .select("*")
            .eq("appointment_id", str(appointment_id))
            .order("created_at_utc")
            .execute()
        )
        rows = response_rows(response, "list state log")
        return [_row_to_state_log(row) for row in rows]


__all__ = ["ScheduleRepository"]
