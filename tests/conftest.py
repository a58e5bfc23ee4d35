"""
Pytest configuration and shared fixtures.

Adds the project root to the Python path so tests can import domain,
repositories and services, and wires the services to in-memory repositories.
"""

import sys
from decimal import Decimal
from pathlib import Path

import pytest

# Add the project root to the Python path
# so tests can import domain, repositories, etc.
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))
sys.path.insert(0, str(Path(__file__).parent))

from fakes import (  # noqa: E402
    FakeLeadRepository,
    FakeQuoteRepository,
    FakeScheduleRepository,
    FixedClock,
    InMemoryStore,
    RecordingEvents,
    RecordingNotifier,
    StubRouteProvider,
)


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def events():
    return RecordingEvents()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def route_provider():
    return StubRouteProvider(distance_km=10.0)


@pytest.fixture
def lead_repository(store):
    return FakeLeadRepository(store)


@pytest.fixture
def schedule_repository(store):
    return FakeScheduleRepository(store)


@pytest.fixture
def quote_repository(store):
    return FakeQuoteRepository(store)


@pytest.fixture
def lead_service(lead_repository, events, route_provider, clock, notifier):
    from domain.catalog import DEFAULT_CATALOG
    from services.distance_service import DistanceEligibilityService
    from services.lead_service import LeadService

    return LeadService(
        lead_repository,
        events,
        DistanceEligibilityService(route_provider),
        lambda: DEFAULT_CATALOG,
        tolerance=Decimal("5"),
        clock=clock,
        notifier=notifier,
    )


@pytest.fixture
def scheduling_service(schedule_repository, lead_repository, events, clock):
    from services.scheduling_service import SchedulingService

    return SchedulingService(schedule_repository, lead_repository, events, clock=clock)
