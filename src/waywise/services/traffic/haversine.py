"""Offline traffic provider using great-circle distance."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional, Sequence

from ...models.domain import Coordinates, RoutePreferences, TrafficForecast, utc_now
from ..geospatial import encode_polyline, haversine_km
from .base import CongestionModel

AVOID_HIGHWAYS_PENALTY = 1.15
AVOID_TOLLS_PENALTY = 1.05


@dataclass
class HaversineTrafficProvider:
    """Estimates road legs as haversine distance times a detour factor.

    Used when no routing service is configured and as the reference provider
    in tests.
    """

    average_speed_kmh: float = 40.0
    detour_factor: float = 1.3
    congestion: CongestionModel = field(default_factory=CongestionModel)
    clock: Callable[[], datetime] = utc_now
    name: str = "haversine"

    def free_flow(
        self,
        origin: Coordinates,
        destination: Coordinates,
        preferences: Optional[RoutePreferences] = None,
    ) -> tuple[float, float]:
        """Return (seconds, meters) for the leg without congestion."""
        distance_km = haversine_km(origin.lat, origin.lon, destination.lat, destination.lon)
        road_km = distance_km * self.detour_factor
        seconds = road_km / self.average_speed_kmh * 3600.0
        if preferences is not None:
            if preferences.avoid_highways:
                seconds *= AVOID_HIGHWAYS_PENALTY
            if preferences.avoid_tolls:
                seconds *= AVOID_TOLLS_PENALTY
        return seconds, road_km * 1000.0

    def forecast(
        self,
        origin: Coordinates,
        destination: Coordinates,
        departure_time: datetime,
        preferences: Optional[RoutePreferences] = None,
    ) -> TrafficForecast:
        seconds, meters = self.free_flow(origin, destination, preferences)
        return self.congestion.build_forecast(
            origin=origin,
            destination=destination,
            departure_time=departure_time,
            free_flow_seconds=seconds,
            distance_meters=meters,
            retrieved_at=self.clock(),
        )

    def route_geometry(
        self,
        points: Sequence[Coordinates],
        preferences: Optional[RoutePreferences] = None,
    ) -> Optional[str]:
        return encode_polyline([(point.lat, point.lon) for point in points])

    def check_health(self) -> bool:
        return True
