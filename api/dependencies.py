"""
Request-scoped dependencies: the service container and bearer-token guards.
"""

from __future__ import annotations

import hmac
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request

from services.container import BuybackServices


def get_services(request: Request) -> BuybackServices:
    return request.app.state.services


def _check_bearer(expected: Optional[str], authorization: Optional[str]) -> None:
    # An unset secret locks the endpoint rather than opening it.
    if not expected or not authorization:
        raise HTTPException(status_code=401, detail="Unauthorized")
    if not hmac.compare_digest(authorization, f"Bearer {expected}"):
        raise HTTPException(status_code=401, detail="Unauthorized")


def require_cron_secret(
    authorization: Optional[str] = Header(default=None),
    services: BuybackServices = Depends(get_services),
) -> None:
    _check_bearer(services.settings.cron_secret, authorization)


def require_admin(
    authorization: Optional[str] = Header(default=None),
    services: BuybackServices = Depends(get_services),
) -> None:
    _check_bearer(services.settings.admin_api_token, authorization)
