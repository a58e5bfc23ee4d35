"""
Leads API Endpoints.

Creates a lead with its quote and verification token in one step.
"""

from fastapi import APIRouter, Depends

from api.dependencies import get_services
from api.models import LeadCreateRequest, LeadCreateResponse
from api.routers.quotes import to_service_request
from services.container import BuybackServices
from services.lead_service import LeadRequest

router = APIRouter()


@router.post(
    "/leads",
    response_model=LeadCreateResponse,
    status_code=201,
    summary="Create Lead",
    description="Recompute the quote, check it against the submitted amount and store the lead.",
)
def create_lead(request: LeadCreateRequest, services: BuybackServices = Depends(get_services)):
    """
    The quote is recomputed server-side; a submitted final_quote more than the
    configured tolerance away from it is rejected with QUOTE_INTEGRITY.
    The verification token is delivered out of band and never returned here.
    """
    created = services.leads.create_lead(
        LeadRequest(
            email=request.email,
            quote=to_service_request(request),
            submitted_final_quote=request.final_quote,
            first_name=request.first_name,
            last_name=request.last_name,
            phone_number=request.phone_number,
        )
    )
    return LeadCreateResponse(
        lead_id=created.lead.lead_id,
        quote_id=created.quote.quote_id,
        final_quote=created.quote.final_quote,
        pickup_fee=created.quote.pickup_fee,
        quote_expires_at=created.quote.expires_at,
        verification_expires_at=created.verification.expires_at,
    )
