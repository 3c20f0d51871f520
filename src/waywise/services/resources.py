"""Owner-scoped access to stored schedules and routes."""

from __future__ import annotations

import logging

from ..errors import Forbidden, RouteNotFound, ScheduleNotFound
from ..models.domain import Route, Schedule
from ..persistence.repositories import RouteRepository, ScheduleRepository
from ..persistence.store import EntryNotFound

logger = logging.getLogger(__name__)


class ResourceAccessService:
    """Existence is checked before ownership.

    An absent or expired entity is ``NotFound`` for every caller, including
    its former owner; only a live entity owned by someone else is
    ``Forbidden``.
    """

    def __init__(self, schedules: ScheduleRepository, routes: RouteRepository) -> None:
        self.schedules = schedules
        self.routes = routes

    def get_schedule(self, schedule_id: str, requester_id: str) -> Schedule:
        try:
            schedule = self.schedules.get(schedule_id)
        except EntryNotFound as exc:
            raise ScheduleNotFound() from exc
        if schedule.owner_id != requester_id:
            logger.warning(f"User {requester_id} denied access to schedule {schedule_id}")
            raise Forbidden("You do not have access to this schedule")
        return schedule

    def get_route(self, route_id: str, requester_id: str) -> Route:
        try:
            route = self.routes.get(route_id)
        except EntryNotFound as exc:
            raise RouteNotFound() from exc
        if route.owner_id != requester_id:
            logger.warning(f"User {requester_id} denied access to route {route_id}")
            raise Forbidden("You do not have access to this route")
        return route
