"""Typed repositories over the entity store.

Each repository owns a key namespace and the codec for its entity; lookups
raise ``EntryNotFound`` for absent and expired keys alike.
"""

from __future__ import annotations

import threading

from ..errors import EmailExists
from ..models.domain import Route, Schedule, User
from ..services.outputs.serializers import (
    route_from_json,
    route_to_json,
    schedule_from_json,
    schedule_to_json,
    user_from_json,
    user_to_json,
)
from .store import EntityStore, EntryNotFound


class ScheduleRepository:
    prefix = "schedule:"

    def __init__(self, store: EntityStore) -> None:
        self._store = store

    def add(self, schedule: Schedule) -> None:
        ttl = (schedule.expires_at - schedule.created_at).total_seconds()
        self._store.put(self.prefix + schedule.schedule_id, schedule_to_json(schedule), ttl)

    def get(self, schedule_id: str) -> Schedule:
        return schedule_from_json(self._store.get(self.prefix + schedule_id))


class RouteRepository:
    prefix = "route:"

    def __init__(self, store: EntityStore) -> None:
        self._store = store

    def add(self, route: Route) -> None:
        ttl = (route.expires_at - route.created_at).total_seconds()
        self._store.put(self.prefix + route.route_id, route_to_json(route), ttl)

    def get(self, route_id: str) -> Route:
        return route_from_json(self._store.get(self.prefix + route_id))


class UserRepository:
    prefix = "user:"

    def __init__(self, store: EntityStore) -> None:
        self._store = store
        self._registration_lock = threading.Lock()

    @staticmethod
    def normalize_email(email: str) -> str:
        return email.strip().lower()

    def add(self, user: User) -> None:
        key = self.prefix + self.normalize_email(user.email)
        with self._registration_lock:
            try:
                self._store.get(key)
            except EntryNotFound:
                self._store.put(key, user_to_json(user), None)
                return
        raise EmailExists()

    def get_by_email(self, email: str) -> User:
        return user_from_json(self._store.get(self.prefix + self.normalize_email(email)))
