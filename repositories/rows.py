"""
Shared helpers for Supabase row mapping and atomic RPC calls.

Repositories read with the table API and write multi-row changes through
Postgres functions (sql/002_atomic_functions.sql). Those functions answer with
a JSON object {"success": bool, "error": CODE, "message": str, ...ids}.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

from postgrest.exceptions import APIError

from domain.errors import PersistenceError
from domain.time import require_utc_timestamp

logger = logging.getLogger(__name__)


def to_iso_utc(dt: datetime, *, name: str) -> str:
    """Serialize a UTC datetime to ISO-8601 (timezone-aware, offset 0)."""

    require_utc_timestamp(name, dt)
    return dt.astimezone(timezone.utc).isoformat()


def parse_utc_datetime(value: Any) -> datetime:
    """
    Parse a Supabase timestamp into a timezone-aware UTC datetime.

    Supabase commonly returns ISO-8601 strings, sometimes with a trailing 'Z'.
    """

    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        raise TypeError(f"Unsupported timestamp type: {type(value)!r}")

    if dt.tzinfo is None or dt.utcoffset() is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def parse_time(value: Any) -> time:
    if isinstance(value, time):
        return value
    return time.fromisoformat(str(value))


def optional_decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(str(value))


def money(value: Optional[Decimal]) -> Optional[str]:
    """Numeric columns are sent as strings so Decimal precision survives JSON."""

    return None if value is None else str(value)


def response_rows(response: Any, action: str) -> List[Dict[str, Any]]:
    """Return response.data, raising PersistenceError if the response carries an error."""

    error = getattr(response, "error", None)
    if error:
        logger.error("Supabase request failed while trying to %s: %s", action, error)
        raise PersistenceError(f"Failed to {action}: {error}")
    return getattr(response, "data", None) or []


@dataclass(frozen=True, slots=True)
class AtomicResult:
    """Result from one of the *_atomic PostgreSQL functions."""

    success: bool
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    data: Mapping[str, Any] = field(default_factory=dict)


def _as_result(payload: Mapping[str, Any]) -> AtomicResult:
    if payload.get("success") is True:
        return AtomicResult(success=True, data=dict(payload))
    return AtomicResult(
        success=False,
        error_code=payload.get("error"),
        error_message=payload.get("message"),
        data=dict(payload),
    )


def call_atomic_function(client: Any, function_name: str, params: Mapping[str, Any]) -> AtomicResult:
    """
    Execute a Postgres function that returns the {"success": ...} envelope.

    Business rejections come back as AtomicResult(success=False, error_code=...).
    Anything the function did not classify is logged and raised as
    PersistenceError.
    """

    try:
        response = client.rpc(function_name, dict(params)).execute()
    except APIError as e:
        # supabase-py raises APIError when the function returns a bare JSON
        # object, for success and error envelopes alike.
        try:
            error_data = e.json() if callable(getattr(e, "json", None)) else {}
        except ValueError:
            error_data = {}

        if isinstance(error_data, Mapping) and "success" in error_data:
            return _as_result(error_data)

        logger.exception("RPC %s failed", function_name)
        raise PersistenceError(f"{function_name} failed: {e}") from e

    error = getattr(response, "error", None)
    if error:
        logger.error("RPC %s returned an error: %s", function_name, error)
        raise PersistenceError(f"{function_name} failed: {error}")

    payload = getattr(response, "data", None)
    if isinstance(payload, list):
        payload = payload[0] if payload else None
    if not isinstance(payload, Mapping) or "success" not in payload:
        logger.error("RPC %s returned an unexpected payload: %r", function_name, payload)
        raise PersistenceError(f"{function_name} returned an unexpected payload")

    return _as_result(payload)


__all__ = [
    "AtomicResult",
    "call_atomic_function",
    "money",
    "optional_decimal",
    "parse_date",
    "parse_time",
    "parse_utc_datetime",
    "response_rows",
    "to_iso_utc",
]
