"""
Lead repository (persistence).

This module provides *only* persistence for Lead, Quote and Verification.
Business rules (pricing, integrity checks, token validation order) live in
domain/ and services/; the Postgres functions re-check the rules that must
hold under concurrency.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Mapping, Optional
from uuid import UUID

from domain.device import Device, DeviceType
from domain.errors import (
    AlreadyVerified,
    Blacklisted,
    DuplicateEmail,
    InvalidToken,
    PersistenceError,
    TokenAlreadyUsed,
    TokenExpired,
)
from domain.lead import Lead, Quote, SellMethod, Verification, VerificationContext
from repositories.rows import (
    call_atomic_function,
    money,
    optional_decimal,
    parse_utc_datetime,
    response_rows,
    to_iso_utc,
)

logger = logging.getLogger(__name__)

# Supabase table names. Keep these aligned with sql/001_schema.sql.
_LEADS_TABLE: str = "leads"
_QUOTES_TABLE: str = "quotes"
_VERIFICATIONS_TABLE: str = "verifications"

_CONFIRM_ERRORS = {
    "INVALID_TOKEN": InvalidToken,
    "TOKEN_EXPIRED": TokenExpired,
    "TOKEN_ALREADY_USED": TokenAlreadyUsed,
    "ALREADY_VERIFIED": AlreadyVerified,
}


def _row_to_lead(row: Mapping[str, Any]) -> Lead:
    distance = row.get("distance")
    return Lead(
        lead_id=UUID(str(row["lead_id"])),
        email=str(row["email"]),
        first_name=row.get("first_name"),
        last_name=row.get("last_name"),
        phone_number=row.get("phone_number"),
        address=row.get("address"),
        sell_method=SellMethod(str(row["sell_method"])),
        created_at=parse_utc_datetime(row["created_at_utc"]),
        distance=float(distance) if distance is not None else None,
        pickup_fee=optional_decimal(row.get("pickup_fee")),
        is_verified=bool(row.get("is_verified", False)),
    )


def _row_to_device(row: Mapping[str, Any]) -> Device:
    return Device(
        model=str(row["model"]),
        storage=str(row["storage"]),
        family=str(row["family"]),
        type=DeviceType(str(row["type"])),
        device_id=UUID(str(row["device_id"])) if row.get("device_id") else None,
    )


def _row_to_quote(row: Mapping[str, Any]) -> Quote:
    return Quote(
        quote_id=UUID(str(row["quote_id"])),
        lead_id=UUID(str(row["lead_id"])),
        device=_row_to_device(row["devices"]),
        damages=tuple(row.get("damages") or ()),
        has_box=bool(row["has_box"]),
        has_charger=bool(row["has_charger"]),
        is_activation_locked=bool(row["is_activation_locked"]),
        base_price=optional_decimal(row["base_price"]),
        damage_deduction=optional_decimal(row["damage_deduction"]),
        margin=optional_decimal(row["margin"]),
        final_quote=optional_decimal(row["final_quote"]),
        pickup_fee=optional_decimal(row.get("pickup_fee")),
        created_at=parse_utc_datetime(row["created_at_utc"]),
        expires_at=parse_utc_datetime(row["expires_at_utc"]),
        is_expired=bool(row.get("is_expired", False)),
    )


def _row_to_verification(row: Mapping[str, Any]) -> Verification:
    return Verification(
        verification_id=UUID(str(row["verification_id"])),
        lead_id=UUID(str(row["lead_id"])),
        token=str(row["token"]),
        created_at=parse_utc_datetime(row["created_at_utc"]),
        expires_at=parse_utc_datetime(row["expires_at_utc"]),
        is_used=bool(row.get("is_used", False)),
    )


def _lead_payload(lead: Lead) -> dict[str, Any]:
    return {
        "lead_id": str(lead.lead_id),
        "email": lead.email,
        "first_name": lead.first_name,
        "last_name": lead.last_name,
        "phone_number": lead.phone_number,
        "address": lead.address,
        "sell_method": lead.sell_method.value,
        "distance": lead.distance,
        "pickup_fee": money(lead.pickup_fee),
        "created_at_utc": to_iso_utc(lead.created_at, name="created_at"),
    }


def _quote_payload(quote: Quote) -> dict[str, Any]:
    return {
        "quote_id": str(quote.quote_id),
        "model": quote.device.model,
        "storage": quote.device.storage,
        "family": quote.device.family,
        "type": quote.device.type.value,
        "damages": list(quote.damages),
        "has_box": quote.has_box,
        "has_charger": quote.has_charger,
        "is_activation_locked": quote.is_activation_locked,
        "base_price": money(quote.base_price),
        "damage_deduction": money(quote.damage_deduction),
        "margin": money(quote.margin),
        "final_quote": money(quote.final_quote),
        "pickup_fee": money(quote.pickup_fee),
        "created_at_utc": to_iso_utc(quote.created_at, name="created_at"),
        "expires_at_utc": to_iso_utc(quote.expires_at, name="expires_at"),
    }


def _verification_payload(verification: Verification) -> dict[str, Any]:
    return {
        "verification_id": str(verification.verification_id),
        "token": verification.token,
        "created_at_utc": to_iso_utc(verification.created_at, name="created_at"),
        "expires_at_utc": to_iso_utc(verification.expires_at, name="expires_at"),
    }


class LeadRepository:
    """Supabase-backed store for leads, their quote and their verification token."""

    def __init__(self, client: Any):
        self._client = client

    def get_lead(self, lead_id: UUID) -> Optional[Lead]:
        response = (
            self._client.table(_LEADS_TABLE)
            .select("*")
            .eq("lead_id", str(lead_id))
            .limit(1)
            .execute()
        )
        rows = response_rows(response, "get lead")
        return _row_to_lead(rows[0]) if rows else None

    def get_quote_for_lead(self, lead_id: UUID) -> Optional[Quote]:
        response = (
            self._client.table(_QUOTES_TABLE)
            .select("*, devices(*)")
            .eq("lead_id", str(lead_id))
            .limit(1)
            .execute()
        )
        rows = response_rows(response, "get quote")
        return _row_to_quote(rows[0]) if rows else None

    def find_verification(self, token: str) -> Optional[VerificationContext]:
        """Look a token up together with its lead and quote. None if unknown."""

        return self._find_verification("token", token, "find verification")

    def find_verification_for_lead(self, lead_id: UUID) -> Optional[VerificationContext]:
        """The lead's verification token with its lead and quote. None if it has none."""

        return self._find_verification("lead_id", str(lead_id), "find verification for lead")

    def _find_verification(self, column: str, value: str, action: str) -> Optional[VerificationContext]:
        response = (
            self._client.table(_VERIFICATIONS_TABLE)
            .select("*")
            .eq(column, value)
            .limit(1)
            .execute()
        )
        rows = response_rows(response, action)
        if not rows:
            return None

        verification = _row_to_verification(rows[0])
        lead = self.get_lead(verification.lead_id)
        if lead is None:
            # verifications.lead_id is a cascading foreign key
            raise PersistenceError(f"Verification {verification.verification_id} has no lead")
        return VerificationContext(
            verification=verification,
            lead=lead,
            quote=self.get_quote_for_lead(lead.lead_id),
        )

    def create_lead(self, lead: Lead, quote: Quote, verification: Verification) -> UUID:
        """
        Insert lead, quote and verification atomically via create_lead_atomic().

        Returns:
            device_id of the (found or created) Device

        Raises:
            DuplicateEmail: the email is already registered
            Blacklisted: the email or phone is on the active blacklist
            PersistenceError: any other store failure
        """

        result = call_atomic_function(
            self._client,
            "create_lead_atomic",
            {
                "p_lead": _lead_payload(lead),
                "p_quote": _quote_payload(quote),
                "p_verification": _verification_payload(verification),
            },
        )
        if result.success:
            return UUID(str(result.data["device_id"]))

        if result.error_code == "DUPLICATE_EMAIL":
            raise DuplicateEmail(f"Email already registered: {lead.email}")
        if result.error_code == "BLACKLISTED":
            raise Blacklisted(f"Blacklisted contact for lead {lead.lead_id}")
        raise PersistenceError(f"create_lead_atomic: {result.error_code} {result.error_message}")

    def confirm_verification(self, token: str, now: datetime) -> UUID:
        """
        Consume a verification token via confirm_verification_atomic().

        Returns:
            lead_id of the newly verified lead
        """

        result = call_atomic_function(
            self._client,
            "confirm_verification_atomic",
            {"p_token": token, "p_now": to_iso_utc(now, name="now")},
        )
        if result.success:
            return UUID(str(result.data["lead_id"]))

        error_type = _CONFIRM_ERRORS.get(result.error_code or "")
        if error_type is not None:
            raise error_type()
        raise PersistenceError(
            f"confirm_verification_atomic: {result.error_code} {result.error_message}"
        )


__all__ = ["LeadRepository"]
