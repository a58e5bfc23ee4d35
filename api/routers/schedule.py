"""
Schedule API Endpoints.

Listing bookable slots for a lead and booking one.
"""

from itertools import islice
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_services
from api.models import AppointmentResponse, AvailableSlotsResponse, BookingRequest, SlotResponse
from domain.schedule import Appointment
from services.container import BuybackServices

router = APIRouter()

MAX_SLOTS = 200


def to_appointment_response(appointment: Appointment) -> AppointmentResponse:
    return AppointmentResponse(
        appointment_id=appointment.appointment_id,
        lead_id=appointment.lead_id,
        slot_date=appointment.slot_date,
        start_time=appointment.start_time,
        end_time=appointment.end_time,
        status=appointment.status.value,
        is_same_day=appointment.is_same_day,
        notes=appointment.notes,
    )


@router.get(
    "/schedule",
    response_model=AvailableSlotsResponse,
    summary="List Available Slots",
)
def list_slots(
    lead_id: UUID,
    days_ahead: int = Query(default=7, ge=1, le=28),
    services: BuybackServices = Depends(get_services),
):
    slots = [
        SlotResponse(
            slot_date=slot.slot_date,
            start_time=slot.start_time,
            end_time=slot.end_time,
            is_same_day=slot.is_same_day,
        )
        for slot in islice(services.scheduling.list_available_slots(lead_id, days_ahead), MAX_SLOTS)
    ]
    return AvailableSlotsResponse(lead_id=lead_id, slots=slots, total_count=len(slots))


@router.post(
    "/schedule",
    response_model=AppointmentResponse,
    status_code=201,
    summary="Book Appointment",
)
def book_appointment(request: BookingRequest, services: BuybackServices = Depends(get_services)):
    """
    Book a one-hour slot (12:00-20:00, Monday to Saturday) for a verified lead.
    Concurrent requests for the same slot: exactly one succeeds, the others get
    SLOT_UNAVAILABLE.
    """
    appointment = services.scheduling.book(
        request.lead_id,
        request.slot_date,
        request.start_time,
        request.end_time,
        request.notes,
    )
    return to_appointment_response(appointment)
