"""Route optimisation service.

Turns destinations with time constraints into an ordered, timed list of
stops using traffic forecasts evaluated at each leg's own departure time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Sequence
from zoneinfo import ZoneInfo

from ...errors import ConstraintViolation, InfeasibleSchedule, InvalidRequest, UpstreamUnavailable
from ...models.domain import (
    ConstraintKind,
    Coordinates,
    Destination,
    RoutePreferences,
    RouteSummary,
    Stop,
)
from ..geospatial import decode_polyline, encode_polyline
from ..traffic.base import TrafficProvider
from .legs import LegMatrix
from .models import Itinerary, Visit, VisitWindow
from .search import earliest_deadline_order, exhaustive_search, heuristic_search, simulate

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class OptimizedRoute:
    stops: tuple[Stop, ...]
    summary: RouteSummary
    polyline: str


class RouteOptimizer:
    """Orders destinations to satisfy constraints and minimise total time."""

    def __init__(
        self,
        traffic: TrafficProvider,
        *,
        exhaustive_threshold: int = 8,
        max_destinations: int = 25,
        local_search_iterations: int = 200,
        max_workers: int = 8,
        time_bucket_seconds: int = 300,
        prefetch_timeout: float = 30.0,
        default_visit_minutes: float = 30.0,
    ) -> None:
        self.traffic = traffic
        self.exhaustive_threshold = exhaustive_threshold
        self.max_destinations = max_destinations
        self.local_search_iterations = local_search_iterations
        self.max_workers = max_workers
        self.time_bucket_seconds = time_bucket_seconds
        self.prefetch_timeout = prefetch_timeout
        self.default_visit_minutes = default_visit_minutes

    def optimize(
        self,
        destinations: Sequence[Destination],
        origin: Coordinates,
        departure_time: datetime,
        *,
        timezone: str = "UTC",
        preferences: Optional[RoutePreferences] = None,
    ) -> OptimizedRoute:
        self._validate(destinations)
        zone = ZoneInfo(timezone)
        if departure_time.tzinfo is None:
            departure_time = departure_time.replace(tzinfo=zone)
        departure_local = departure_time.astimezone(zone)

        windows = [
            self._window(node, destination, departure_local)
            for node, destination in enumerate(destinations, start=1)
        ]
        legs = LegMatrix(
            self.traffic,
            [origin, *(destination.coordinates for destination in destinations)],
            departure_local,
            preferences,
            bucket_seconds=self.time_bucket_seconds,
            max_workers=self.max_workers,
            prefetch_timeout=self.prefetch_timeout,
        )
        legs.prefetch()

        if len(windows) <= self.exhaustive_threshold:
            algorithm = "exhaustive"
            itinerary = exhaustive_search(windows, legs, max_workers=self.max_workers)
            if itinerary is None:
                itinerary = simulate(earliest_deadline_order(windows), windows, legs)
        else:
            algorithm = "heuristic"
            itinerary = heuristic_search(windows, legs, iterations=self.local_search_iterations)

        if not itinerary.is_feasible:
            raise InfeasibleSchedule(self._violation(itinerary.violations[0], departure_local))

        stops = self._stops(itinerary, departure_local)
        logger.info(
            f"Optimised {len(destinations)} destinations with {algorithm} search: "
            f"{len(stops)} stops, {len(itinerary.skipped)} skipped"
        )
        return OptimizedRoute(
            stops=stops,
            summary=self._summary(itinerary, stops, departure_local, algorithm),
            polyline=self._polyline(origin, stops, preferences),
        )

    def _validate(self, destinations: Sequence[Destination]) -> None:
        if not destinations:
            raise InvalidRequest("At least one destination is required")
        if len(destinations) > self.max_destinations:
            raise InvalidRequest(
                f"Too many destinations: {len(destinations)} (maximum {self.max_destinations})"
            )
        missing = [destination.name for destination in destinations if destination.coordinates is None]
        if missing:
            raise InvalidRequest(
                "Every destination needs coordinates before it can be routed",
                details={"missing_coordinates": missing},
            )
        seen: set[str] = set()
        duplicates = []
        for destination in destinations:
            if destination.id in seen:
                duplicates.append(destination.id)
            seen.add(destination.id)
        if duplicates:
            raise InvalidRequest("Destination ids must be unique", details={"duplicate_ids": duplicates})

    def _window(self, node: int, destination: Destination, departure: datetime) -> VisitWindow:
        minutes = destination.visit_minutes
        if minutes is None:
            minutes = self.default_visit_minutes
        constraint = destination.time_constraint
        arrive_by = depart_after = None
        if constraint.at is not None:
            deadline = datetime.combine(departure.date(), constraint.at, tzinfo=departure.tzinfo)
            offset = int((deadline - departure).total_seconds())
            if constraint.kind is ConstraintKind.ARRIVE_BY:
                arrive_by = offset
            elif constraint.kind is ConstraintKind.DEPART_AFTER:
                depart_after = offset
        return VisitWindow(
            node=node,
            destination=destination,
            visit_seconds=int(round(minutes * 60)),
            arrive_by=arrive_by,
            depart_after=depart_after,
            required=destination.required,
        )

    def _violation(self, visit: Visit, departure: datetime) -> ConstraintViolation:
        destination = visit.window.destination
        projected = departure + timedelta(seconds=visit.arrival)
        return ConstraintViolation(
            destination_id=destination.id,
            destination_name=destination.name,
            constraint=destination.time_constraint.describe(),
            required_time=destination.time_constraint.at.strftime("%H:%M"),
            projected_time=projected.strftime("%H:%M"),
            lateness_minutes=round((visit.arrival - visit.window.arrive_by) / 60, 2),
        )

    def _stops(self, itinerary: Itinerary, departure: datetime) -> tuple[Stop, ...]:
        return tuple(
            Stop(
                order=position,
                destination=visit.window.destination,
                arrival_time=departure + timedelta(seconds=visit.arrival),
                departure_time=departure + timedelta(seconds=visit.departure),
                travel_time_from_previous_minutes=round(visit.leg.seconds / 60, 2),
                traffic_delay_minutes=round(visit.leg.delay_seconds / 60, 2),
                distance_from_previous_meters=round(visit.leg.meters, 1),
                wait_minutes=round(visit.wait / 60, 2),
            )
            for position, visit in enumerate(itinerary.visits, start=1)
        )

    def _summary(
        self,
        itinerary: Itinerary,
        stops: Sequence[Stop],
        departure: datetime,
        algorithm: str,
    ) -> RouteSummary:
        return RouteSummary(
            total_distance_meters=round(sum(visit.leg.meters for visit in itinerary.visits), 1),
            total_time_minutes=round(itinerary.total_seconds / 60, 2),
            total_traffic_delay_minutes=round(
                sum(visit.leg.delay_seconds for visit in itinerary.visits) / 60, 2
            ),
            departure_time=departure,
            arrival_time=stops[-1].arrival_time if stops else None,
            completion_time=stops[-1].departure_time if stops else None,
            skipped_destinations=tuple(window.destination for window in itinerary.skipped),
            algorithm=algorithm,
        )

    def _polyline(
        self,
        origin: Coordinates,
        stops: Sequence[Stop],
        preferences: Optional[RoutePreferences],
    ) -> str:
        points = [origin, *(stop.destination.coordinates for stop in stops)]
        straight = encode_polyline([(point.lat, point.lon) for point in points])
        if len(points) < 2:
            return straight
        try:
            geometry = self.traffic.route_geometry(points, preferences)
        except UpstreamUnavailable as exc:
            logger.warning(f"Route geometry unavailable, using straight segments: {exc.message}")
            return straight
        if not geometry:
            return straight
        try:
            decoded = decode_polyline(geometry)
        except ValueError as exc:
            logger.warning(f"Malformed route geometry from {self.traffic.name}, using straight segments: {exc}")
            return straight
        if len(decoded) < 2 or any(abs(lat) > 90 or abs(lon) > 180 for lat, lon in decoded):
            logger.warning(f"Implausible route geometry from {self.traffic.name}, using straight segments")
            return straight
        return geometry
