"""
Quotes API Endpoints.

Endpoints for pricing a device before the customer leaves their details.
"""

from typing import List

from fastapi import APIRouter, Depends

from api.dependencies import get_services
from api.models import CatalogModelResponse, QuoteRequest, QuoteResponse, SlotResponse
from domain.lead import SellMethod
from services.container import BuybackServices
from services.pricing_service import QuoteRequest as ServiceQuoteRequest
from services.pricing_service import calculate_quote

router = APIRouter()


def to_service_request(request: QuoteRequest) -> ServiceQuoteRequest:
    return ServiceQuoteRequest(
        model=request.model,
        storage=request.storage,
        damages=tuple(request.damages),
        has_box=request.has_box,
        has_charger=request.has_charger,
        is_activation_locked=request.is_activation_locked,
        sell_method=SellMethod(request.sell_method),
        address=request.address,
    )


@router.post(
    "/quotes",
    response_model=QuoteResponse,
    summary="Calculate Buy Quote",
    description="Price a device. Pickup requests with an address also get distance and pickup fee.",
)
def create_quote(request: QuoteRequest, services: BuybackServices = Depends(get_services)):
    """
    Calculate a buy quote.

    **How it works:**
    1. Looks up the base price for model + storage
    2. Deducts damages and missing accessories, then the margin (floor 50)
    3. Activation-locked devices get a fixed tier and no pickup fee
    4. Pickup addresses beyond 60 km are rejected with PICKUP_OUT_OF_RANGE
    """
    quote = calculate_quote(
        to_service_request(request),
        now=services.clock(),
        distance_service=services.distance,
        catalog=services.catalog(),
        schedule_policy=services.schedule_policy,
        validity=services.settings.quote_validity,
    )
    breakdown = quote.breakdown
    return QuoteResponse(
        model=breakdown.device.model,
        storage=breakdown.device.storage,
        base_price=breakdown.base_price,
        damage_deduction=breakdown.damage_deduction,
        margin=breakdown.margin,
        final_quote=breakdown.final_quote,
        is_activation_locked=breakdown.is_activation_locked,
        pickup_fee=quote.pickup_fee,
        distance=quote.distance,
        duration=quote.duration,
        expires_at=quote.expires_at,
        available_slots=[
            SlotResponse(
                slot_date=slot.slot_date,
                start_time=slot.start_time,
                end_time=slot.end_time,
                is_same_day=slot.is_same_day,
            )
            for slot in quote.available_slots
        ],
    )


@router.get(
    "/quotes/devices",
    response_model=List[CatalogModelResponse],
    summary="List Priced Devices",
)
def list_devices(services: BuybackServices = Depends(get_services)):
    """Models the catalog can price, with their storage tiers smallest first."""
    catalog = services.catalog()
    return [
        CatalogModelResponse(model=model, storage_options=catalog.storage_options(model))
        for model in catalog.models()
    ]
