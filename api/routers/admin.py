"""
Admin API Endpoints.

Dashboard stats and catalog cache control, behind `Authorization: Bearer $ADMIN_API_TOKEN`.
"""

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_services, require_admin
from api.models import CatalogRefreshResponse, ExpirationStatsResponse
from services.container import BuybackServices
from services.quote_expiration_service import DEFAULT_STATS_PERIOD_DAYS

router = APIRouter(dependencies=[Depends(require_admin)])


@router.get(
    "/admin/stats",
    response_model=ExpirationStatsResponse,
    summary="Quote Expiration Stats",
)
def expiration_stats(
    days: int = Query(default=DEFAULT_STATS_PERIOD_DAYS, ge=1, le=365),
    services: BuybackServices = Depends(get_services),
):
    stats = services.expiration.expiration_stats(days)
    return ExpirationStatsResponse(
        period_days=stats.period_days,
        total_quotes=stats.total_quotes,
        expired_quotes=stats.expired_quotes,
        converted_quotes=stats.converted_quotes,
        active_quotes=stats.active_quotes,
        expiring_soon=stats.expiring_soon,
        expiration_rate=stats.expiration_rate,
        conversion_rate=stats.conversion_rate,
        generated_at=stats.generated_at,
    )


@router.post(
    "/admin/catalog/refresh",
    response_model=CatalogRefreshResponse,
    summary="Reload Price Catalog",
)
def refresh_catalog(services: BuybackServices = Depends(get_services)):
    """
    Drop the cached catalog and load it again.

    Run after editing price_catalog or repair_catalog (e.g. with scripts/seed_catalog.py).
    """
    services.catalog.invalidate()
    catalog = services.catalog()
    return CatalogRefreshResponse(success=True, model_count=len(catalog.models()))
