from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest
from fastapi.testclient import TestClient

from waywise.config import Settings
from waywise.container import build_container
from waywise.main import create_app
from waywise.models.domain import Coordinates, TrafficForecast, TravelTime
from waywise.persistence.store import InMemoryEntityStore
from waywise.services.parsing import RuleBasedScheduleParser


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@dataclass
class StubTrafficProvider:
    """Every leg takes ``free_flow_minutes`` plus ``delay_minutes`` unless overridden."""

    free_flow_minutes: float = 30.0
    delay_minutes: float = 15.0
    overrides: dict = field(default_factory=dict)
    geometry: Optional[str] = None
    healthy: bool = True
    name: str = "stub"
    calls: int = 0

    def forecast(self, origin, destination, departure_time, preferences=None) -> TrafficForecast:
        self.calls += 1
        free, delay = self.overrides.get(
            (origin, destination), (self.free_flow_minutes, self.delay_minutes)
        )
        current = free + delay
        return TrafficForecast(
            origin=origin,
            destination=destination,
            departure_time=departure_time,
            travel_time=TravelTime(
                typical_minutes=current,
                current_minutes=current,
                best_case_minutes=free,
                worst_case_minutes=current * 1.35,
            ),
            distance_meters=free * 1000.0,
            traffic_conditions="moderate",
            delay_minutes=delay,
            confidence=0.9,
            retrieved_at=departure_time,
        )

    def route_geometry(self, points, preferences=None):
        return self.geometry

    def check_health(self) -> bool:
        return self.healthy


# Monday 2026-03-02 12:00 UTC
START = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)
ORIGIN = Coordinates(lat=37.7649, lon=-122.4294)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(START)


@pytest.fixture
def traffic() -> StubTrafficProvider:
    return StubTrafficProvider()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        environment="test",
        jwt_secret="test-secret-value",
        password_hash_rounds=4,
        frontend_allowed_origins=(),
        traffic_base_url=None,
        parser_base_url=None,
        geocoder_base_url=None,
        store_backend="memory",
    )


@pytest.fixture
def container(settings: Settings, clock: FakeClock, traffic: StubTrafficProvider):
    built = build_container(
        settings,
        clock=clock,
        store=InMemoryEntityStore(shards=4, clock=clock),
        traffic=traffic,
        parser=RuleBasedScheduleParser(),
    )
    yield built
    built.close()


@pytest.fixture
def api_client(settings: Settings, container) -> TestClient:
    app = create_app(settings=settings, container=container)
    return TestClient(app)


@pytest.fixture
def login_as(api_client: TestClient):
    """Register a user and return Authorization headers for them."""

    def _login(email: str, password: str = "secret123", name: str = "Tester") -> dict:
        client = api_client
        response = client.post(
            "/api/v1/auth/register",
            json={"email": email, "password": password, "name": name},
        )
        assert response.status_code == 201, response.text
        response = client.post("/api/v1/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['access_token']}"}

    return _login
