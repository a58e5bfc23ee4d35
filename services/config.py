"""
Runtime configuration.

Values come from the environment (a .env file is loaded first, see
repositories/client.py) with the business defaults below. Settings is an
immutable value; services receive the pieces they need from it.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import Optional

from repositories.client import load_environment

DEFAULT_ORIGIN_ADDRESS = "Penrith NSW 2750, Australia"
DEFAULT_TIMEZONE = "Australia/Sydney"
DEFAULT_PUBLIC_BASE_URL = "http://localhost:3000"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise RuntimeError(f"Environment variable {name} must be an integer, got {raw!r}") from e


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise RuntimeError(f"Environment variable {name} must be a number, got {raw!r}") from e


@dataclass(frozen=True, slots=True)
class Settings:
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    google_routes_api_key: Optional[str] = None
    origin_address: str = DEFAULT_ORIGIN_ADDRESS
    business_timezone: str = DEFAULT_TIMEZONE
    routing_timeout_seconds: float = 8.0
    quote_tolerance: Decimal = Decimal("5")
    quote_validity_days: int = 7
    verification_ttl_minutes: int = 15
    near_expiry_hours: int = 24
    cron_secret: Optional[str] = None
    admin_api_token: Optional[str] = None
    redis_url: Optional[str] = None
    public_base_url: str = DEFAULT_PUBLIC_BASE_URL
    verification_webhook_url: Optional[str] = None
    notification_timeout_seconds: float = 8.0

    @property
    def quote_validity(self) -> timedelta:
        return timedelta(days=self.quote_validity_days)

    @property
    def verification_ttl(self) -> timedelta:
        return timedelta(minutes=self.verification_ttl_minutes)

    @property
    def near_expiry_window(self) -> timedelta:
        return timedelta(hours=self.near_expiry_hours)

    @staticmethod
    def from_env() -> "Settings":
        load_environment()
        return Settings(
            supabase_url=os.getenv("SUPABASE_URL"),
            supabase_key=os.getenv("SUPABASE_KEY"),
            google_routes_api_key=os.getenv("GOOGLE_ROUTES_API_KEY"),
            origin_address=os.getenv("BUSINESS_ORIGIN_ADDRESS", DEFAULT_ORIGIN_ADDRESS),
            business_timezone=os.getenv("BUSINESS_TIMEZONE", DEFAULT_TIMEZONE),
            routing_timeout_seconds=_env_float("ROUTING_TIMEOUT_SECONDS", 8.0),
            quote_tolerance=Decimal(str(_env_float("QUOTE_TOLERANCE", 5.0))),
            quote_validity_days=_env_int("QUOTE_VALIDITY_DAYS", 7),
            verification_ttl_minutes=_env_int("VERIFICATION_TTL_MINUTES", 15),
            near_expiry_hours=_env_int("NEAR_EXPIRY_HOURS", 24),
            cron_secret=os.getenv("CRON_SECRET") or None,
            admin_api_token=os.getenv("ADMIN_API_TOKEN") or None,
            redis_url=os.getenv("REDIS_URL") or None,
            public_base_url=os.getenv("PUBLIC_BASE_URL", DEFAULT_PUBLIC_BASE_URL),
            verification_webhook_url=os.getenv("VERIFICATION_WEBHOOK_URL") or None,
            notification_timeout_seconds=_env_float("NOTIFICATION_TIMEOUT_SECONDS", 8.0),
        )


__all__ = ["Settings"]
