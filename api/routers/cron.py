"""
Cron API Endpoints.

Called by the scheduler with `Authorization: Bearer $CRON_SECRET`.
"""

from fastapi import APIRouter, Depends

from api.dependencies import get_services, require_cron_secret
from api.models import QuoteExpirationResponse
from services.container import BuybackServices

router = APIRouter(dependencies=[Depends(require_cron_secret)])


@router.post(
    "/cron/quote-expiration",
    response_model=QuoteExpirationResponse,
    summary="Run Quote Expiration Sweep",
)
def run_quote_expiration(services: BuybackServices = Depends(get_services)):
    result = services.expiration.sweep_expired_quotes()
    return QuoteExpirationResponse(
        success=True,
        expired=result.expired,
        near_expiry=result.near_expiry,
        total=result.total,
        timestamp=result.swept_at,
    )
