"""Builders shared by the service and API tests."""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from typing import Optional, Tuple
from uuid import uuid4

from domain.device import Device
from domain.lead import Lead, Quote, SellMethod, Verification
from fakes import MONDAY_10AM_SYDNEY
from services.lead_service import LeadCreated, LeadRequest, LeadService
from services.pricing_service import QuoteRequest


def lead_request(
    email: str = "Seller@Example.com",
    *,
    sell_method: SellMethod = SellMethod.DROPOFF,
    address: Optional[str] = None,
    submitted: Decimal = Decimal("320"),
    phone_number: Optional[str] = "0400 000 000",
    damages: Tuple[str, ...] = ("cracked_screen",),
    has_charger: bool = False,
    is_activation_locked: bool = False,
) -> LeadRequest:
    return LeadRequest(
        email=email,
        quote=QuoteRequest(
            model="iPhone 13",
            storage="128GB",
            damages=damages,
            has_box=True,
            has_charger=has_charger,
            is_activation_locked=is_activation_locked,
            sell_method=sell_method,
            address=address,
        ),
        submitted_final_quote=submitted,
        first_name="Sam",
        last_name="Seller",
        phone_number=phone_number,
    )


def create_verified_lead(service: LeadService, email: str = "seller@example.com", **kwargs) -> LeadCreated:
    created = service.create_lead(lead_request(email, **kwargs))
    service.confirm_verification(created.verification.token)
    return created


def lead_quote_verification() -> Tuple[Lead, Quote, Verification]:
    lead_id = uuid4()
    lead = Lead(
        lead_id=lead_id,
        email="seller@example.com",
        first_name="Sam",
        last_name=None,
        phone_number="0400000000",
        address=None,
        sell_method=SellMethod.DROPOFF,
        created_at=MONDAY_10AM_SYDNEY,
    )
    quote = Quote(
        quote_id=uuid4(),
        lead_id=lead_id,
        device=Device.from_model("iPhone 13", "128GB"),
        damages=("cracked_screen",),
        has_box=True,
        has_charger=False,
        is_activation_locked=False,
        base_price=Decimal("600"),
        damage_deduction=Decimal("100"),
        margin=Decimal("180"),
        final_quote=Decimal("320"),
        pickup_fee=None,
        created_at=MONDAY_10AM_SYDNEY,
        expires_at=MONDAY_10AM_SYDNEY + timedelta(days=7),
    )
    verification = Verification.issue(verification_id=uuid4(), lead_id=lead_id, created_at=MONDAY_10AM_SYDNEY)
    return lead, quote, verification
