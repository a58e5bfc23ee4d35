"""
Verification delivery.

The verification link is sent through a VerificationNotifier once the lead is
stored. In production that is WebhookVerificationNotifier, which hands the
message to the email-delivery service configured in VERIFICATION_WEBHOOK_URL.
Without a webhook, LoggingVerificationNotifier records that nothing was sent.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol
from urllib.parse import urlencode

import httpx

from domain.lead import Lead, Quote, Verification
from repositories.rows import to_iso_utc

logger = logging.getLogger(__name__)


class VerificationNotifier(Protocol):
    def send_verification(self, lead: Lead, quote: Optional[Quote], verification: Verification) -> None: ...


def verification_url(public_base_url: str, token: str) -> str:
    return f"{public_base_url.rstrip('/')}/verify?{urlencode({'token': token})}"


class LoggingVerificationNotifier:
    def send_verification(self, lead: Lead, quote: Optional[Quote], verification: Verification) -> None:
        logger.warning("Verification delivery is not configured; lead %s was not emailed", lead.lead_id)


class WebhookVerificationNotifier:
    """
    POSTs the verification message as JSON to an email-delivery webhook.

    Owns an httpx.Client with a bounded timeout; call close() when done.
    """

    def __init__(
        self,
        webhook_url: str,
        public_base_url: str,
        timeout_seconds: float = 8.0,
        http_client: Optional[httpx.Client] = None,
    ):
        self._webhook_url = webhook_url
        self._public_base_url = public_base_url
        self._http = http_client or httpx.Client(timeout=timeout_seconds)

    def send_verification(self, lead: Lead, quote: Optional[Quote], verification: Verification) -> None:
        body = {
            "template": "verify_quote",
            "to": lead.email,
            "first_name": lead.first_name,
            "verification_url": verification_url(self._public_base_url, verification.token),
            "token_expires_at": to_iso_utc(verification.expires_at, name="expires_at"),
            "sell_method": lead.sell_method.value,
        }
        if quote is not None:
            body.update(
                {
                    "device": quote.device.display_name,
                    "final_quote": str(quote.final_quote),
                    "pickup_fee": str(quote.pickup_fee) if quote.pickup_fee is not None else None,
                    "quote_expires_at": to_iso_utc(quote.expires_at, name="expires_at"),
                }
            )

        response = self._http.post(self._webhook_url, json=body)
        response.raise_for_status()

    def close(self) -> None:
        self._http.close()


__all__ = [
    "LoggingVerificationNotifier",
    "VerificationNotifier",
    "WebhookVerificationNotifier",
    "verification_url",
]
