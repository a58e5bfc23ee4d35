"""
Tests for `services/lead_service.py`.

Covers contract rules:
- Lead, Quote and Verification are stored together or not at all.
- Tampered quotes are rejected before anything is written.
- Duplicate and blacklisted contacts are refused; blacklist refusals look
  like generic failures.
- A token confirms its lead exactly once, only within 15 minutes.
- lead_created / lead_verified are emitted after the write succeeds.
- The verification link is sent after the write; resends re-check the token.
"""

from __future__ import annotations

import logging
import threading
from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from domain.errors import (
    GENERIC_FAILURE_CODE,
    GENERIC_FAILURE_MESSAGE,
    AlreadyVerified,
    Blacklisted,
    DuplicateEmail,
    InvalidToken,
    LeadNotFound,
    PersistenceError,
    QuoteIntegrityError,
    TokenAlreadyUsed,
    TokenExpired,
    VerificationDeliveryFailed,
)
from domain.lead import SellMethod
from helpers import lead_request


def test_create_lead_persists_lead_quote_and_verification(lead_service, store, events, clock) -> None:
    created = lead_service.create_lead(lead_request())

    assert created.lead.email == "seller@example.com"
    assert created.lead.is_verified is False
    assert created.quote.final_quote == Decimal("320")
    assert created.quote.expires_at == clock.now + timedelta(days=7)
    assert created.verification.expires_at == clock.now + timedelta(minutes=15)
    assert store.leads[created.lead.lead_id] == created.lead
    assert store.quote_for_lead(created.lead.lead_id).quote_id == created.quote.quote_id
    assert store.verifications[created.verification.token].lead_id == created.lead.lead_id
    assert events.names() == ["lead_created"]


def test_pickup_lead_records_distance_and_fee(lead_service, route_provider) -> None:
    route_provider.distance_km = 18.0

    created = lead_service.create_lead(
        lead_request(sell_method=SellMethod.PICKUP, address="1 Station St, Penrith NSW")
    )

    assert created.lead.distance == 18.0
    assert created.lead.pickup_fee == Decimal("30")
    assert created.quote.pickup_fee == Decimal("30")


def test_pickup_without_address_rejected(lead_service, store) -> None:
    with pytest.raises(ValueError):
        lead_service.create_lead(lead_request(sell_method=SellMethod.PICKUP, address="  "))

    assert store.leads == {}


def test_tampered_quote_rejected_before_writing(lead_service, store, events) -> None:
    with pytest.raises(QuoteIntegrityError):
        lead_service.create_lead(lead_request(submitted=Decimal("500")))

    assert store.leads == {}
    assert store.quotes == {}
    assert store.verifications == {}
    assert events.events == []


def test_quote_within_tolerance_accepted(lead_service) -> None:
    created = lead_service.create_lead(lead_request(submitted=Decimal("324")))

    # The stored quote is the recomputed one, not the submitted one
    assert created.quote.final_quote == Decimal("320")


def test_duplicate_email_rejected_case_insensitively(lead_service, store) -> None:
    lead_service.create_lead(lead_request("seller@example.com"))

    with pytest.raises(DuplicateEmail):
        lead_service.create_lead(lead_request("SELLER@example.com"))

    assert len(store.leads) == 1


def test_blacklisted_contact_looks_like_generic_failure(lead_service, store, events) -> None:
    store.blacklisted_phones.add("0400000000")

    with pytest.raises(Blacklisted) as exc_info:
        lead_service.create_lead(lead_request("someone@example.com"))

    error = exc_info.value
    generic = PersistenceError()
    assert error.code == generic.code == GENERIC_FAILURE_CODE
    assert error.status_code == generic.status_code
    assert error.public_message == generic.public_message == GENERIC_FAILURE_MESSAGE
    assert store.leads == {}
    assert events.events == []


def test_confirm_verification_once(lead_service, store, events) -> None:
    created = lead_service.create_lead(lead_request())
    token = created.verification.token

    lead_id = lead_service.confirm_verification(token)

    assert lead_id == created.lead.lead_id
    assert store.leads[lead_id].is_verified is True
    assert store.verifications[token].is_used is True
    assert events.names() == ["lead_created", "lead_verified"]

    with pytest.raises(TokenAlreadyUsed):
        lead_service.confirm_verification(token)
    assert events.names() == ["lead_created", "lead_verified"]


def test_confirm_after_fifteen_minutes_fails(lead_service, store, clock) -> None:
    created = lead_service.create_lead(lead_request())
    clock.advance(timedelta(minutes=15, seconds=1))

    with pytest.raises(TokenExpired):
        lead_service.confirm_verification(created.verification.token)

    assert store.leads[created.lead.lead_id].is_verified is False


def test_confirm_at_exactly_fifteen_minutes_succeeds(lead_service, clock) -> None:
    created = lead_service.create_lead(lead_request())
    clock.advance(timedelta(minutes=15))

    assert lead_service.confirm_verification(created.verification.token) == created.lead.lead_id


def test_unknown_token(lead_service) -> None:
    with pytest.raises(InvalidToken):
        lead_service.confirm_verification("not-a-token")
    with pytest.raises(InvalidToken):
        lead_service.inspect_verification("")


def test_concurrent_confirmations_have_one_winner(lead_service) -> None:
    created = lead_service.create_lead(lead_request())
    token = created.verification.token
    outcomes = []
    barrier = threading.Barrier(8)

    def confirm() -> None:
        barrier.wait()
        try:
            lead_service.confirm_verification(token)
            outcomes.append("ok")
        except (TokenAlreadyUsed, AlreadyVerified):
            outcomes.append("rejected")

    threads = [threading.Thread(target=confirm) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert outcomes.count("ok") == 1
    assert outcomes.count("rejected") == 7


def test_inspect_verification_does_not_consume(lead_service, store) -> None:
    created = lead_service.create_lead(lead_request())

    context = lead_service.inspect_verification(created.verification.token)

    assert context.lead.lead_id == created.lead.lead_id
    assert context.quote.final_quote == Decimal("320")
    assert store.verifications[created.verification.token].is_used is False
    assert store.leads[created.lead.lead_id].is_verified is False


def test_inspect_reports_expiry(lead_service, clock) -> None:
    created = lead_service.create_lead(lead_request())
    clock.advance(timedelta(hours=1))

    with pytest.raises(TokenExpired):
        lead_service.inspect_verification(created.verification.token)


def test_get_lead(lead_service) -> None:
    created = lead_service.create_lead(lead_request())

    assert lead_service.get_lead(created.lead.lead_id) == created.lead
    with pytest.raises(LeadNotFound):
        lead_service.get_lead(uuid4())


# ============================================================================
# Verification delivery
# ============================================================================

def test_create_lead_sends_verification_after_commit(lead_service, notifier, store) -> None:
    created = lead_service.create_lead(lead_request())

    assert notifier.sent == [(created.lead.lead_id, created.verification.token)]
    assert created.verification.token in store.verifications


def test_failed_send_keeps_the_lead(lead_service, notifier, store, events, caplog) -> None:
    notifier.error = ConnectionError("mail relay down")

    with caplog.at_level(logging.ERROR, logger="services.lead_service"):
        created = lead_service.create_lead(lead_request())

    assert created.lead.lead_id in store.leads
    assert events.names() == ["lead_created"]
    assert "Failed to send verification" in caplog.text


def test_resend_verification(lead_service, notifier, events, clock) -> None:
    created = lead_service.create_lead(lead_request())
    clock.advance(timedelta(minutes=5))

    verification = lead_service.resend_verification(created.lead.lead_id)

    assert verification.token == created.verification.token
    assert notifier.sent[-1] == (created.lead.lead_id, created.verification.token)
    assert len(notifier.sent) == 2
    assert events.names() == ["lead_created", "verification_email_sent"]


def test_resend_refuses_verified_lead(lead_service, notifier) -> None:
    created = lead_service.create_lead(lead_request())
    lead_service.confirm_verification(created.verification.token)

    with pytest.raises(AlreadyVerified):
        lead_service.resend_verification(created.lead.lead_id)
    assert len(notifier.sent) == 1


def test_resend_refuses_expired_token(lead_service, notifier, clock) -> None:
    created = lead_service.create_lead(lead_request())
    clock.advance(timedelta(minutes=15, seconds=1))

    with pytest.raises(TokenExpired):
        lead_service.resend_verification(created.lead.lead_id)
    assert len(notifier.sent) == 1


def test_resend_refuses_used_token(lead_service, store) -> None:
    created = lead_service.create_lead(lead_request())
    token = created.verification.token
    store.verifications[token] = store.verifications[token].used()

    with pytest.raises(TokenAlreadyUsed):
        lead_service.resend_verification(created.lead.lead_id)


def test_resend_unknown_lead(lead_service) -> None:
    with pytest.raises(LeadNotFound):
        lead_service.resend_verification(uuid4())


def test_resend_delivery_failure_is_reported(lead_service, notifier, events) -> None:
    created = lead_service.create_lead(lead_request())
    notifier.error = ConnectionError("mail relay down")

    with pytest.raises(VerificationDeliveryFailed):
        lead_service.resend_verification(created.lead.lead_id)
    assert events.names() == ["lead_created"]
