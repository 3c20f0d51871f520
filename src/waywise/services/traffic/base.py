"""Traffic provider contract and the time-of-day congestion model."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from typing import Optional, Protocol, Sequence

from ...models.domain import Coordinates, RoutePreferences, TrafficForecast, TravelTime

WORST_CASE_FACTOR = 1.35

# Hour-of-day multipliers applied to free-flow travel time.
WEEKDAY_FACTORS: tuple[float, ...] = (
    1.00, 1.00, 1.00, 1.00, 1.00, 1.05,  # 00-05
    1.20, 1.50, 1.55, 1.30, 1.15, 1.15,  # 06-11
    1.20, 1.15, 1.15, 1.25, 1.45, 1.60,  # 12-17
    1.55, 1.30, 1.15, 1.10, 1.05, 1.00,  # 18-23
)
WEEKEND_FACTORS: tuple[float, ...] = (
    1.00, 1.00, 1.00, 1.00, 1.00, 1.00,
    1.00, 1.00, 1.05, 1.10, 1.20, 1.25,
    1.30, 1.30, 1.25, 1.25, 1.20, 1.15,
    1.10, 1.10, 1.05, 1.05, 1.00, 1.00,
)


class TrafficProvider(Protocol):
    """Port for distance/traffic estimates.

    Implementations must be safe to call from several threads at once and
    must raise ``UpstreamUnavailable`` instead of transport errors.
    """

    name: str

    def forecast(
        self,
        origin: Coordinates,
        destination: Coordinates,
        departure_time: datetime,
        preferences: Optional[RoutePreferences] = None,
    ) -> TrafficForecast:
        ...

    def route_geometry(
        self,
        points: Sequence[Coordinates],
        preferences: Optional[RoutePreferences] = None,
    ) -> Optional[str]:
        """Encoded polyline following the road network, or None when unsupported."""
        ...

    def check_health(self) -> bool:
        ...


def classify_conditions(factor: float) -> str:
    if factor < 1.1:
        return "light"
    if factor < 1.3:
        return "moderate"
    if factor < 1.6:
        return "heavy"
    return "severe"


@dataclass(frozen=True, slots=True)
class CongestionModel:
    """Derives forecasts from free-flow leg estimates.

    The factor for a departure is interpolated between the two surrounding
    hour marks of the local weekday or weekend profile.
    """

    weekday_factors: tuple[float, ...] = WEEKDAY_FACTORS
    weekend_factors: tuple[float, ...] = WEEKEND_FACTORS
    local_timezone: Optional[tzinfo] = field(default=None)

    def factor_at(self, moment: datetime) -> float:
        local = moment.astimezone(self.local_timezone) if self.local_timezone else moment
        profile = self.weekend_factors if local.weekday() >= 5 else self.weekday_factors
        hour = local.hour
        fraction = local.minute / 60.0
        start = profile[hour]
        end = profile[(hour + 1) % 24]
        return start + (end - start) * fraction

    @staticmethod
    def confidence_for(lead_seconds: float) -> float:
        hours_ahead = max(lead_seconds, 0.0) / 3600.0
        if hours_ahead <= 1:
            return 0.9
        week = 7 * 24.0
        if hours_ahead >= week:
            return 0.5
        return 0.9 - 0.4 * (hours_ahead - 1) / (week - 1)

    def build_forecast(
        self,
        *,
        origin: Coordinates,
        destination: Coordinates,
        departure_time: datetime,
        free_flow_seconds: float,
        distance_meters: float,
        retrieved_at: datetime,
    ) -> TrafficForecast:
        factor = self.factor_at(departure_time)
        free_flow_minutes = free_flow_seconds / 60.0
        current_minutes = free_flow_minutes * factor
        return TrafficForecast(
            origin=origin,
            destination=destination,
            departure_time=departure_time,
            travel_time=TravelTime(
                typical_minutes=current_minutes,
                current_minutes=current_minutes,
                best_case_minutes=free_flow_minutes,
                worst_case_minutes=current_minutes * WORST_CASE_FACTOR,
            ),
            distance_meters=distance_meters,
            traffic_conditions=classify_conditions(factor),
            delay_minutes=current_minutes - free_flow_minutes,
            confidence=self.confidence_for((departure_time - retrieved_at).total_seconds()),
            retrieved_at=retrieved_at,
        )
