"""
Verification API Endpoints.
"""

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_services
from api.models import (
    VerificationDetailsResponse,
    VerifyConfirmRequest,
    VerifyConfirmResponse,
    VerifySendRequest,
    VerifySendResponse,
)
from services.container import BuybackServices

router = APIRouter()


@router.get(
    "/verify",
    response_model=VerificationDetailsResponse,
    summary="Inspect Verification Token",
)
def inspect_verification(
    token: str = Query(..., min_length=1),
    services: BuybackServices = Depends(get_services),
):
    context = services.leads.inspect_verification(token)
    quote = context.quote
    return VerificationDetailsResponse(
        lead_id=context.lead.lead_id,
        email=context.lead.email,
        first_name=context.lead.first_name,
        sell_method=context.lead.sell_method.value,
        model=quote.device.model if quote else None,
        storage=quote.device.storage if quote else None,
        final_quote=quote.final_quote if quote else None,
        pickup_fee=quote.pickup_fee if quote else None,
        token_expires_at=context.verification.expires_at,
    )


@router.post(
    "/verify",
    response_model=VerifyConfirmResponse,
    summary="Confirm Verification Token",
)
def confirm_verification(
    request: VerifyConfirmRequest,
    services: BuybackServices = Depends(get_services),
):
    lead_id = services.leads.confirm_verification(request.token)
    return VerifyConfirmResponse(success=True, lead_id=lead_id)


@router.post(
    "/verify/send",
    response_model=VerifySendResponse,
    summary="Resend Verification Email",
)
def resend_verification(
    request: VerifySendRequest,
    services: BuybackServices = Depends(get_services),
):
    verification = services.leads.resend_verification(request.lead_id)
    return VerifySendResponse(success=True, token_expires_at=verification.expires_at)
