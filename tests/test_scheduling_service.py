"""
Tests for `services/scheduling_service.py`.

Covers contract rules:
- Only verified leads without an appointment can book.
- Concurrent bookings of one slot: exactly one succeeds.
- Booking writes the initial state log entry and freezes is_same_day.
- Available slots synthesize unpersisted candidates and respect persisted flags.
- Status updates only move forward and are logged.
- The day schedule lists a local day in slot order.
"""

from __future__ import annotations

import threading
from datetime import time, timedelta
from uuid import uuid4

import pytest

from domain.errors import (
    AppointmentExists,
    AppointmentNotFound,
    InvalidStatusTransition,
    LeadNotFound,
    LeadNotVerified,
    OutsideOperatingHours,
    SlotUnavailable,
)
from domain.lead import SellMethod
from domain.schedule import AppointmentStatus, ScheduleSlot
from domain.state_log import DEFAULT_UPDATE_REASON, INITIAL_REASON
from fakes import MONDAY, SUNDAY
from helpers import create_verified_lead, lead_request

TUESDAY = MONDAY + timedelta(days=1)


def test_book_creates_appointment_and_state_log(lead_service, scheduling_service, store, events) -> None:
    created = create_verified_lead(lead_service)

    appointment = scheduling_service.book(created.lead.lead_id, TUESDAY, time(14, 0), time(15, 0), "Gate code 12")

    assert appointment.status is AppointmentStatus.SCHEDULED
    assert appointment.end_time == time(15, 0)
    assert appointment.is_same_day is False
    assert store.slots[(TUESDAY, time(14, 0))].is_available is False
    log = scheduling_service.list_state_log(appointment.appointment_id)
    assert len(log) == 1
    assert log[0].from_state is None
    assert log[0].to_state is AppointmentStatus.SCHEDULED
    assert log[0].reason == INITIAL_REASON
    assert events.names()[-1] == "appointment_scheduled"


def test_end_time_defaults_to_one_hour(lead_service, scheduling_service) -> None:
    created = create_verified_lead(lead_service)

    appointment = scheduling_service.book(created.lead.lead_id, TUESDAY, time(19, 0))

    assert appointment.end_time == time(20, 0)


def test_pickup_booking_creates_address(lead_service, scheduling_service, store, route_provider) -> None:
    route_provider.distance_km = 12.0
    created = create_verified_lead(
        lead_service, sell_method=SellMethod.PICKUP, address="1 Station St, Penrith NSW"
    )

    appointment = scheduling_service.book(created.lead.lead_id, TUESDAY, time(13, 0))

    address = store.addresses[appointment.address_id]
    assert address.street == "1 Station St, Penrith NSW"
    assert address.suburb == "Unknown"
    assert address.postcode == "0000"
    assert address.state == "NSW"


def test_unknown_lead(scheduling_service) -> None:
    with pytest.raises(LeadNotFound):
        scheduling_service.book(uuid4(), TUESDAY, time(14, 0))
    with pytest.raises(LeadNotFound):
        scheduling_service.list_available_slots(uuid4())


def test_unverified_lead_cannot_book(lead_service, scheduling_service, store) -> None:
    created = lead_service.create_lead(lead_request())

    with pytest.raises(LeadNotVerified):
        scheduling_service.book(created.lead.lead_id, TUESDAY, time(14, 0))

    assert store.slots == {}


def test_second_booking_for_lead_rejected(lead_service, scheduling_service) -> None:
    created = create_verified_lead(lead_service)
    scheduling_service.book(created.lead.lead_id, TUESDAY, time(14, 0))

    with pytest.raises(AppointmentExists):
        scheduling_service.book(created.lead.lead_id, TUESDAY, time(16, 0))


@pytest.mark.parametrize(
    "slot_date, start, end",
    [
        (TUESDAY, time(11, 0), None),
        (TUESDAY, time(20, 0), None),
        (TUESDAY, time(14, 30), None),
        (TUESDAY, time(14, 0), time(16, 0)),
        (SUNDAY, time(14, 0), None),
    ],
)
def test_outside_operating_hours(lead_service, scheduling_service, store, slot_date, start, end) -> None:
    created = create_verified_lead(lead_service)

    with pytest.raises(OutsideOperatingHours):
        scheduling_service.book(created.lead.lead_id, slot_date, start, end)

    assert store.appointments == {}


def test_past_slot_unavailable(lead_service, scheduling_service, clock) -> None:
    created = create_verified_lead(lead_service)
    clock.advance(timedelta(hours=5))  # 15:00 local

    with pytest.raises(SlotUnavailable):
        scheduling_service.book(created.lead.lead_id, MONDAY, time(14, 0))


def test_blocked_slot_unavailable(lead_service, scheduling_service, schedule_repository) -> None:
    schedule_repository.add_slot(ScheduleSlot(TUESDAY, time(14, 0), time(15, 0), is_blocked=True))
    created = create_verified_lead(lead_service)

    with pytest.raises(SlotUnavailable):
        scheduling_service.book(created.lead.lead_id, TUESDAY, time(14, 0))


def test_concurrent_bookings_of_one_slot_have_one_winner(lead_service, scheduling_service, store) -> None:
    lead_ids = [
        create_verified_lead(lead_service, email=f"seller{i}@example.com").lead.lead_id
        for i in range(10)
    ]
    outcomes = []
    barrier = threading.Barrier(len(lead_ids))

    def book(lead_id) -> None:
        barrier.wait()
        try:
            scheduling_service.book(lead_id, TUESDAY, time(14, 0))
            outcomes.append("booked")
        except SlotUnavailable:
            outcomes.append("unavailable")

    threads = [threading.Thread(target=book, args=(lead_id,)) for lead_id in lead_ids]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert outcomes.count("booked") == 1
    assert outcomes.count("unavailable") == 9
    assert len(store.appointments) == 1
    assert len(store.state_logs) == 1


def test_same_day_dropoff_before_cutoff(lead_service, scheduling_service) -> None:
    created = create_verified_lead(lead_service)

    appointment = scheduling_service.book(created.lead.lead_id, MONDAY, time(16, 0))

    assert appointment.is_same_day is True


def test_same_day_frozen_at_booking(lead_service, scheduling_service, clock, store) -> None:
    created = create_verified_lead(lead_service)
    appointment = scheduling_service.book(created.lead.lead_id, MONDAY, time(16, 0))
    clock.advance(timedelta(hours=6))

    updated = scheduling_service.update_appointment_status(
        appointment.appointment_id, AppointmentStatus.CONFIRMED
    )

    assert updated.is_same_day is True
    assert store.appointments[appointment.appointment_id].is_same_day is True


def test_same_day_pickup_too_far(lead_service, scheduling_service, route_provider) -> None:
    route_provider.distance_km = 25.0
    created = create_verified_lead(
        lead_service, sell_method=SellMethod.PICKUP, address="Far St, Katoomba NSW"
    )

    appointment = scheduling_service.book(created.lead.lead_id, MONDAY, time(16, 0))

    assert appointment.is_same_day is False


def test_same_day_after_cutoff(lead_service, scheduling_service, clock) -> None:
    created = create_verified_lead(lead_service)
    clock.advance(timedelta(hours=5, minutes=1))  # 15:01 local

    appointment = scheduling_service.book(created.lead.lead_id, MONDAY, time(17, 0))

    assert appointment.is_same_day is False


def test_available_slots_synthesize_and_respect_flags(
    lead_service, scheduling_service, schedule_repository
) -> None:
    created = create_verified_lead(lead_service)
    schedule_repository.add_slot(ScheduleSlot(MONDAY, time(13, 0), time(14, 0), is_available=False))
    schedule_repository.add_slot(ScheduleSlot(MONDAY, time(15, 0), time(16, 0), is_blocked=True))
    schedule_repository.add_slot(ScheduleSlot(MONDAY, time(16, 0), time(17, 0)))

    slots = list(scheduling_service.list_available_slots(created.lead.lead_id, days_ahead=1))

    assert [slot.start_time.hour for slot in slots] == [12, 14, 16, 17, 18, 19]
    assert all(slot.slot_date == MONDAY for slot in slots)
    assert all(slot.is_same_day for slot in slots)


def test_available_slots_are_lazy_and_bounded(lead_service, scheduling_service) -> None:
    created = create_verified_lead(lead_service)

    slots = scheduling_service.list_available_slots(created.lead.lead_id)
    first = next(slots)
    rest = list(slots)

    assert first.slot_date == MONDAY and first.start_time == time(12, 0)
    # Monday-Saturday of the 7-day window, 8 slots each, Sunday skipped
    assert len(rest) + 1 == 6 * 8
    assert all(slot.slot_date != SUNDAY for slot in rest)
    assert all(not slot.is_same_day for slot in rest if slot.slot_date != MONDAY)


def test_booked_slot_disappears_from_listing(lead_service, scheduling_service) -> None:
    first = create_verified_lead(lead_service, email="first@example.com")
    second = create_verified_lead(lead_service, email="second@example.com")
    scheduling_service.book(first.lead.lead_id, TUESDAY, time(14, 0))

    slots = scheduling_service.list_available_slots(second.lead.lead_id)

    assert (TUESDAY, time(14, 0)) not in {(s.slot_date, s.start_time) for s in slots}


def test_status_updates_forward_and_logged(lead_service, scheduling_service, events, store) -> None:
    created = create_verified_lead(lead_service)
    appointment = scheduling_service.book(created.lead.lead_id, TUESDAY, time(14, 0))

    scheduling_service.update_appointment_status(appointment.appointment_id, AppointmentStatus.CONFIRMED)
    done = scheduling_service.update_appointment_status(
        appointment.appointment_id, AppointmentStatus.COMPLETED, reason="Device collected"
    )

    assert done.status is AppointmentStatus.COMPLETED
    log = scheduling_service.list_state_log(appointment.appointment_id)
    assert [(e.from_state, e.to_state) for e in log] == [
        (None, AppointmentStatus.SCHEDULED),
        (AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED),
        (AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED),
    ]
    assert log[1].reason == DEFAULT_UPDATE_REASON
    assert log[2].reason == "Device collected"
    assert events.names().count("appointment_status_updated") == 2

    with pytest.raises(InvalidStatusTransition):
        scheduling_service.update_appointment_status(appointment.appointment_id, AppointmentStatus.CANCELLED)
    assert len(scheduling_service.list_state_log(appointment.appointment_id)) == 3


def test_cancellation_keeps_slot_claimed(lead_service, scheduling_service, store) -> None:
    created = create_verified_lead(lead_service)
    appointment = scheduling_service.book(created.lead.lead_id, TUESDAY, time(14, 0))

    scheduling_service.update_appointment_status(appointment.appointment_id, AppointmentStatus.CANCELLED)

    assert store.slots[(TUESDAY, time(14, 0))].is_available is False


def test_status_update_unknown_appointment(scheduling_service) -> None:
    with pytest.raises(AppointmentNotFound):
        scheduling_service.update_appointment_status(uuid4(), AppointmentStatus.CONFIRMED)


def test_day_schedule_ordered_by_start_and_filtered(lead_service, scheduling_service) -> None:
    late = create_verified_lead(lead_service, "late@example.com")
    early = create_verified_lead(lead_service, "early@example.com")
    other_day = create_verified_lead(lead_service, "tuesday@example.com")
    late_appointment = scheduling_service.book(late.lead.lead_id, MONDAY, time(18, 0))
    early_appointment = scheduling_service.book(early.lead.lead_id, MONDAY, time(13, 0))
    scheduling_service.book(other_day.lead.lead_id, TUESDAY, time(12, 0))
    scheduling_service.update_appointment_status(late_appointment.appointment_id, AppointmentStatus.CONFIRMED)

    monday = scheduling_service.list_appointments(MONDAY)
    confirmed = scheduling_service.list_appointments(MONDAY, AppointmentStatus.CONFIRMED)

    assert [a.appointment_id for a in monday] == [
        early_appointment.appointment_id,
        late_appointment.appointment_id,
    ]
    assert [a.appointment_id for a in confirmed] == [late_appointment.appointment_id]


def test_day_schedule_defaults_to_local_today(lead_service, scheduling_service, clock) -> None:
    created = create_verified_lead(lead_service)
    appointment = scheduling_service.book(created.lead.lead_id, MONDAY, time(16, 0))

    # 10:00 Monday in Sydney is still Sunday in UTC
    assert clock.now.date() != MONDAY
    assert [a.appointment_id for a in scheduling_service.list_appointments()] == [appointment.appointment_id]
