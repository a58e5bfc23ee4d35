"""
Distance eligibility service.

Turns a customer address into driving distance, duration and pickup fee.
Routing itself is delegated to a RouteProvider; this module owns the policy
layered on top:

- distance > max_distance (60 km) is ineligible, whatever the fee
- pickup_fee is non-decreasing in distance, taken from a band table
- any provider failure raises RoutingUnavailable; there is no estimated
  fallback, so an unreachable provider can never make a location look free
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Optional, Protocol, Sequence

import httpx

from domain.errors import RoutingUnavailable

logger = logging.getLogger(__name__)

GOOGLE_ROUTES_URL = "https://routes.googleapis.com/directions/v2:computeRoutes"
_FIELD_MASK = "routes.duration,routes.distanceMeters"


@dataclass(frozen=True, slots=True)
class Route:
    distance_km: float
    duration_minutes: int


class RouteProvider(Protocol):
    def route_to(self, destination: str) -> Route: ...


@dataclass(frozen=True, slots=True)
class FeeBand:
    """Fee for distances in [lower, upper). upper=None means unbounded."""

    lower: float
    upper: Optional[float]
    fee: Callable[[float], Decimal]

    def contains(self, distance: float) -> bool:
        return distance >= self.lower and (self.upper is None or distance < self.upper)


def _flat(amount: int) -> Callable[[float], Decimal]:
    return lambda _distance: Decimal(amount)


def _per_km_to_nearest_5(distance: float) -> Decimal:
    raw = Decimal(str(distance)) * Decimal("1.25") / 5
    fee = raw.quantize(Decimal("1"), rounding=ROUND_HALF_UP) * 5
    return min(max(fee, Decimal("30")), Decimal("50"))


DEFAULT_FEE_BANDS: Sequence[FeeBand] = (
    FeeBand(0, 16, _flat(0)),
    FeeBand(16, 24, _flat(30)),
    FeeBand(24, 40, _per_km_to_nearest_5),
    FeeBand(40, None, _flat(50)),
)


def pickup_fee_for(distance: float, bands: Sequence[FeeBand] = DEFAULT_FEE_BANDS) -> Decimal:
    for band in bands:
        if band.contains(distance):
            return band.fee(distance)
    raise ValueError(f"No fee band covers distance {distance}")


@dataclass(frozen=True, slots=True)
class DistanceResult:
    distance: float
    duration: int
    pickup_fee: Decimal
    is_eligible: bool


class GoogleRoutesProvider:
    """
    Google Routes API (computeRoutes) client.

    Owns an httpx.Client with a bounded timeout; call close() when done.
    """

    def __init__(
        self,
        api_key: Optional[str],
        origin_address: str,
        timeout_seconds: float = 8.0,
        http_client: Optional[httpx.Client] = None,
    ):
        self._api_key = api_key
        self._origin = origin_address
        self._http = http_client or httpx.Client(timeout=timeout_seconds)

    def route_to(self, destination: str) -> Route:
        if not self._api_key:
            raise RoutingUnavailable("GOOGLE_ROUTES_API_KEY is not configured")

        body = {
            "origin": {"address": self._origin},
            "destination": {"address": destination},
            "travelMode": "DRIVE",
            "routingPreference": "TRAFFIC_AWARE",
            "computeAlternativeRoutes": False,
        }
        headers = {
            "Content-Type": "application/json",
            "X-Goog-Api-Key": self._api_key,
            "X-Goog-FieldMask": _FIELD_MASK,
        }

        try:
            response = self._http.post(GOOGLE_ROUTES_URL, json=body, headers=headers)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            logger.warning("Routing request failed: %s", e)
            raise RoutingUnavailable(f"Routing request failed: {e}") from e
        except ValueError as e:
            raise RoutingUnavailable("Routing provider returned invalid JSON") from e

        routes = data.get("routes") if isinstance(data, dict) else None
        if not routes:
            raise RoutingUnavailable("No route found")

        route = routes[0]
        try:
            meters = float(route["distanceMeters"])
            seconds = int(str(route["duration"]).rstrip("s"))
        except (KeyError, TypeError, ValueError) as e:
            raise RoutingUnavailable(f"Malformed route payload: {route!r}") from e

        return Route(
            distance_km=round(meters / 1000, 1),
            duration_minutes=round(seconds / 60),
        )

    def close(self) -> None:
        self._http.close()


class DistanceEligibilityService:
    def __init__(
        self,
        provider: RouteProvider,
        max_distance: float = 60.0,
        fee_bands: Sequence[FeeBand] = DEFAULT_FEE_BANDS,
    ):
        self._provider = provider
        self.max_distance = max_distance
        self._fee_bands = fee_bands

    def resolve(self, address: str) -> DistanceResult:
        """
        Raises:
            RoutingUnavailable: the provider could not produce a route
        """

        try:
            route = self._provider.route_to(address)
        except RoutingUnavailable:
            raise
        except Exception as e:
            logger.exception("Route provider raised an unexpected error")
            raise RoutingUnavailable(str(e)) from e

        result = DistanceResult(
            distance=route.distance_km,
            duration=route.duration_minutes,
            pickup_fee=pickup_fee_for(route.distance_km, self._fee_bands),
            is_eligible=route.distance_km <= self.max_distance,
        )
        logger.info(
            "Resolved pickup distance %.1fkm (%d min), fee %s, eligible=%s",
            result.distance,
            result.duration,
            result.pickup_fee,
            result.is_eligible,
        )
        return result


__all__ = [
    "DEFAULT_FEE_BANDS",
    "DistanceEligibilityService",
    "DistanceResult",
    "FeeBand",
    "GoogleRoutesProvider",
    "Route",
    "RouteProvider",
    "pickup_fee_for",
]
