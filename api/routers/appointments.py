"""
Appointments API Endpoints (admin).
"""

from datetime import date
from typing import List, Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_services, require_admin
from api.models import AppointmentResponse, AppointmentStatusRequest, StateLogResponse
from api.routers.schedule import to_appointment_response
from domain.schedule import AppointmentStatus
from services.container import BuybackServices

router = APIRouter(dependencies=[Depends(require_admin)])


@router.get(
    "/appointments",
    response_model=List[AppointmentResponse],
    summary="Day Schedule",
)
def list_appointments(
    day: Optional[date] = Query(default=None, description="Local date; defaults to today"),
    status: Optional[Literal["scheduled", "confirmed", "completed", "cancelled"]] = None,
    services: BuybackServices = Depends(get_services),
):
    appointments = services.scheduling.list_appointments(
        day,
        AppointmentStatus(status) if status else None,
    )
    return [to_appointment_response(appointment) for appointment in appointments]


@router.put(
    "/appointments/{appointment_id}",
    response_model=AppointmentResponse,
    summary="Update Appointment Status",
)
def update_appointment(
    appointment_id: UUID,
    request: AppointmentStatusRequest,
    services: BuybackServices = Depends(get_services),
):
    appointment = services.scheduling.update_appointment_status(
        appointment_id,
        AppointmentStatus(request.status),
        reason=request.reason,
        notes=request.notes,
    )
    return to_appointment_response(appointment)


@router.get(
    "/appointments/{appointment_id}/history",
    response_model=List[StateLogResponse],
    summary="Appointment State Log",
)
def appointment_history(appointment_id: UUID, services: BuybackServices = Depends(get_services)):
    services.scheduling.get_appointment(appointment_id)
    return [
        StateLogResponse(
            from_state=entry.from_state.value if entry.from_state else None,
            to_state=entry.to_state.value,
            reason=entry.reason,
            created_at=entry.created_at,
        )
        for entry in services.scheduling.list_state_log(appointment_id)
    ]
