"""Shared fixtures for registry, sweeper and route tests."""

from __future__ import annotations

from typing import Any, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

from main import create_app
from models.session_models import GeoResult, TrackingSession, Visit
from services.session_registry import VisitRegistry


class FakeClock:
    """Manually advanced clock for deterministic expiry tests."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeGeoResolver:
    """Return a fixed GeoResult and remember which IPs were resolved."""

    def __init__(self, result: Optional[GeoResult] = None) -> None:
        self.result = result or GeoResult.unknown()
        self.calls: List[str] = []

    async def resolve(self, ip: str) -> GeoResult:
        self.calls.append(ip)
        return self.result


class RecordingNotifier:
    """Capture dispatched notifications instead of sending them."""

    def __init__(self) -> None:
        self.dispatched: List[Tuple[TrackingSession, Visit, int]] = []

    def dispatch(self, session: TrackingSession, visit: Visit, visit_number: int) -> Any:
        self.dispatched.append((session, visit, visit_number))
        return None

    async def aclose(self) -> None:
        return None


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry(clock: FakeClock) -> VisitRegistry:
    return VisitRegistry(clock=clock)


@pytest.fixture
def geo_resolver() -> FakeGeoResolver:
    return FakeGeoResolver(
        GeoResult(city="Lisbon", region="Lisbon", country="Portugal", timezone="Europe/Lisbon", resolved=True)
    )


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def client(registry, geo_resolver, notifier):
    app = create_app(
        registry=registry,
        geo_resolver=geo_resolver,
        notifier=notifier,
        start_sweeper=False,
        landing_url="https://example.org/landing",
    )
    with TestClient(app) as test_client:
        yield test_client
