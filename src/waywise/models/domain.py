"""Immutable domain models for schedules, routes and traffic forecasts."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, time, timezone
from enum import Enum
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ConstraintKind(str, Enum):
    ARRIVE_BY = "arrive_by"
    DEPART_AFTER = "depart_after"
    FLEXIBLE = "flexible"


@dataclass(frozen=True, slots=True)
class TimeConstraint:
    """Wall-clock constraint attached to a destination.

    ``at`` is a local time of day in the owning schedule's timezone and is
    required for every kind except ``FLEXIBLE``.
    """

    kind: ConstraintKind = ConstraintKind.FLEXIBLE
    at: Optional[time] = None

    def __post_init__(self) -> None:
        if self.kind is ConstraintKind.FLEXIBLE and self.at is not None:
            raise ValueError("Flexible constraints cannot carry a time")
        if self.kind is not ConstraintKind.FLEXIBLE and self.at is None:
            raise ValueError(f"{self.kind.value} constraints require a time")

    @classmethod
    def arrive_by(cls, at: time) -> "TimeConstraint":
        return cls(ConstraintKind.ARRIVE_BY, at)

    @classmethod
    def depart_after(cls, at: time) -> "TimeConstraint":
        return cls(ConstraintKind.DEPART_AFTER, at)

    @classmethod
    def flexible(cls) -> "TimeConstraint":
        return cls()

    def describe(self) -> str:
        if self.at is None:
            return "be visited at any time"
        verb = "arrive by" if self.kind is ConstraintKind.ARRIVE_BY else "depart after"
        return f"{verb} {self.at.strftime('%H:%M')}"


@dataclass(frozen=True, slots=True)
class Coordinates:
    """GPS coordinates of a place."""

    lat: float
    lon: float

    def __post_init__(self) -> None:
        if not -90 <= self.lat <= 90:
            raise ValueError(f"Latitude must be between -90 and 90, got {self.lat}")
        if not -180 <= self.lon <= 180:
            raise ValueError(f"Longitude must be between -180 and 180, got {self.lon}")


@dataclass(frozen=True, slots=True)
class Destination:
    id: str
    name: str
    address: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    time_constraint: TimeConstraint = field(default_factory=TimeConstraint)
    required: bool = True
    visit_minutes: Optional[float] = None


@dataclass(frozen=True, slots=True)
class Schedule:
    schedule_id: str
    owner_id: str
    original_text: str
    timezone: str
    destinations: tuple[Destination, ...]
    ambiguities: tuple[str, ...]
    created_at: datetime
    expires_at: datetime


@dataclass(frozen=True, slots=True)
class RoutePreferences:
    avoid_tolls: bool = False
    avoid_highways: bool = False


@dataclass(frozen=True, slots=True)
class TravelTime:
    typical_minutes: float
    current_minutes: float
    best_case_minutes: float
    worst_case_minutes: float


@dataclass(frozen=True, slots=True)
class TrafficForecast:
    origin: Coordinates
    destination: Coordinates
    departure_time: datetime
    travel_time: TravelTime
    distance_meters: float
    traffic_conditions: str
    delay_minutes: float
    confidence: float
    retrieved_at: datetime


@dataclass(frozen=True, slots=True)
class Stop:
    order: int
    destination: Destination
    arrival_time: datetime
    departure_time: datetime
    travel_time_from_previous_minutes: float
    traffic_delay_minutes: float
    distance_from_previous_meters: float
    wait_minutes: float = 0.0


@dataclass(frozen=True, slots=True)
class RouteSummary:
    total_distance_meters: float
    total_time_minutes: float
    total_traffic_delay_minutes: float
    departure_time: datetime
    arrival_time: Optional[datetime]
    completion_time: Optional[datetime]
    skipped_destinations: tuple[Destination, ...] = ()
    algorithm: str = "exhaustive"


@dataclass(frozen=True, slots=True)
class Route:
    route_id: str
    owner_id: str
    origin: Coordinates
    optimized_sequence: tuple[Stop, ...]
    summary: RouteSummary
    polyline: str
    created_at: datetime
    expires_at: datetime
    schedule_id: Optional[str] = None
    timezone: str = "UTC"


@dataclass(frozen=True, slots=True)
class User:
    user_id: str
    email: str
    name: str
    password_hash: str
    created_at: datetime
