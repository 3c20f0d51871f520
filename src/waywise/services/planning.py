"""Route planning: resolve destinations, optimise, persist."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional, Sequence

from ..errors import InvalidRequest, ScheduleNotFound
from ..models.domain import Coordinates, Destination, Route, RoutePreferences, utc_now
from ..persistence.repositories import RouteRepository
from .resources import ResourceAccessService
from .routing.optimizer import RouteOptimizer

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PlanRequest:
    origin: Coordinates
    departure_time: datetime
    schedule_id: Optional[str] = None
    destinations: Optional[Sequence[Destination]] = None
    timezone: Optional[str] = None
    preferences: RoutePreferences = field(default_factory=RoutePreferences)


class RoutePlanningService:
    def __init__(
        self,
        optimizer: RouteOptimizer,
        resources: ResourceAccessService,
        routes: RouteRepository,
        *,
        ttl_seconds: int = 3600,
        default_timezone: str = "UTC",
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.optimizer = optimizer
        self.resources = resources
        self.routes = routes
        self.ttl = timedelta(seconds=ttl_seconds)
        self.default_timezone = default_timezone
        self.clock = clock

    def resolve_destinations(
        self, request: PlanRequest, requester_id: str
    ) -> tuple[tuple[Destination, ...], str, Optional[str]]:
        """Return (destinations, timezone, schedule_id used).

        A schedule that resolves for the requester wins over inline
        destinations; inline destinations are only a fallback for a schedule
        that is gone. Ownership failures never fall back.
        """
        inline = tuple(request.destinations or ())
        inline_timezone = request.timezone or self.default_timezone

        if request.schedule_id:
            try:
                schedule = self.resources.get_schedule(request.schedule_id, requester_id)
            except ScheduleNotFound:
                if not inline:
                    raise
                logger.info(
                    f"Schedule {request.schedule_id} not found; using {len(inline)} inline destinations"
                )
                return inline, inline_timezone, None
            return schedule.destinations, schedule.timezone, schedule.schedule_id

        if not inline:
            raise InvalidRequest("Provide a schedule_id or a non-empty destinations list")
        return inline, inline_timezone, None

    def plan(self, request: PlanRequest, requester_id: str) -> Route:
        destinations, timezone, schedule_id = self.resolve_destinations(request, requester_id)
        optimized = self.optimizer.optimize(
            destinations,
            request.origin,
            request.departure_time,
            timezone=timezone,
            preferences=request.preferences,
        )
        created_at = self.clock()
        route = Route(
            route_id=str(uuid.uuid4()),
            owner_id=requester_id,
            origin=request.origin,
            optimized_sequence=optimized.stops,
            summary=optimized.summary,
            polyline=optimized.polyline,
            created_at=created_at,
            expires_at=created_at + self.ttl,
            schedule_id=schedule_id,
            timezone=timezone,
        )
        self.routes.add(route)
        logger.info(f"Stored route {route.route_id} ({len(route.optimized_sequence)} stops)")
        return route
