"""
Tests for `services/distance_service.py`.

Covers contract rules:
- pickup_fee is non-decreasing in distance.
- distance > 60 is ineligible regardless of fee.
- Provider failures (HTTP errors, timeouts, bad payloads) raise
  RoutingUnavailable and never default to a free pickup.
"""

from __future__ import annotations

import json
from decimal import Decimal

import httpx
import pytest

from domain.errors import RoutingUnavailable
from services.distance_service import (
    DistanceEligibilityService,
    GoogleRoutesProvider,
    pickup_fee_for,
)
from fakes import StubRouteProvider


@pytest.mark.parametrize(
    "distance, fee",
    [
        (0.0, Decimal("0")),
        (15.9, Decimal("0")),
        (16.0, Decimal("30")),
        (23.9, Decimal("30")),
        (24.0, Decimal("30")),
        (30.0, Decimal("40")),
        (39.9, Decimal("50")),
        (40.0, Decimal("50")),
        (60.0, Decimal("50")),
        (85.0, Decimal("50")),
    ],
)
def test_fee_bands(distance, fee) -> None:
    assert pickup_fee_for(distance) == fee


def test_fee_is_non_decreasing() -> None:
    fees = [pickup_fee_for(tenths / 10) for tenths in range(0, 1000)]

    assert all(a <= b for a, b in zip(fees, fees[1:]))


def test_resolve_within_range() -> None:
    service = DistanceEligibilityService(StubRouteProvider(distance_km=18.2, duration_minutes=21))

    result = service.resolve("1 Station St, Penrith NSW")

    assert result.distance == 18.2
    assert result.duration == 21
    assert result.pickup_fee == Decimal("30")
    assert result.is_eligible is True


def test_beyond_max_distance_is_ineligible() -> None:
    service = DistanceEligibilityService(StubRouteProvider(distance_km=60.1))

    result = service.resolve("Far away")

    assert result.is_eligible is False


def test_unexpected_provider_error_becomes_routing_unavailable() -> None:
    service = DistanceEligibilityService(StubRouteProvider(error=ConnectionError("boom")))

    with pytest.raises(RoutingUnavailable) as exc_info:
        service.resolve("Anywhere")

    assert exc_info.value.retryable is True


def _provider(handler) -> GoogleRoutesProvider:
    return GoogleRoutesProvider(
        api_key="test-key",
        origin_address="Penrith NSW 2750, Australia",
        http_client=httpx.Client(transport=httpx.MockTransport(handler)),
    )


def test_google_routes_parses_distance_and_duration() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        seen["key"] = request.headers["X-Goog-Api-Key"]
        return httpx.Response(200, json={"routes": [{"distanceMeters": 18240, "duration": "1290s"}]})

    route = _provider(handler).route_to("1 Station St, Penrith NSW")

    assert route.distance_km == 18.2
    assert route.duration_minutes == 22
    assert seen["key"] == "test-key"
    assert seen["body"]["origin"] == {"address": "Penrith NSW 2750, Australia"}
    assert seen["body"]["destination"] == {"address": "1 Station St, Penrith NSW"}


def test_google_routes_http_error() -> None:
    provider = _provider(lambda request: httpx.Response(503, json={"error": "unavailable"}))

    with pytest.raises(RoutingUnavailable):
        provider.route_to("Anywhere")


def test_google_routes_timeout() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(RoutingUnavailable):
        _provider(handler).route_to("Anywhere")


def test_google_routes_no_route() -> None:
    provider = _provider(lambda request: httpx.Response(200, json={}))

    with pytest.raises(RoutingUnavailable):
        provider.route_to("Nowhere")


def test_google_routes_malformed_route() -> None:
    provider = _provider(lambda request: httpx.Response(200, json={"routes": [{"duration": "60s"}]}))

    with pytest.raises(RoutingUnavailable):
        provider.route_to("Somewhere")


def test_google_routes_without_api_key() -> None:
    provider = GoogleRoutesProvider(api_key=None, origin_address="Penrith NSW 2750, Australia")

    with pytest.raises(RoutingUnavailable):
        provider.route_to("Anywhere")
    provider.close()
