"""Explicit wiring of the service graph.

One ``Container`` is built per application instance at startup and closed at
shutdown; request handlers reach it through ``app.state``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

from .auth import AuthService, PasswordHasher, TokenService
from .config import Settings
from .db import get_supabase_client
from .errors import AppError, StorageUnavailable
from .models.domain import utc_now
from .persistence.repositories import RouteRepository, ScheduleRepository, UserRepository
from .persistence.store import EntityStore, InMemoryEntityStore
from .persistence.supabase_store import SupabaseEntityStore
from .services.parsing import HttpScheduleParser, NominatimGeocoder, RuleBasedScheduleParser, ScheduleParser
from .services.planning import RoutePlanningService
from .services.resources import ResourceAccessService
from .services.routing import RouteOptimizer
from .services.schedules import ScheduleService
from .services.traffic import HaversineTrafficProvider, OSRMTrafficProvider, TrafficProvider

logger = logging.getLogger(__name__)

_HEALTH_PROBE_KEY = "health:probe"


@dataclass
class Container:
    settings: Settings
    store: EntityStore
    traffic: TrafficProvider
    parser: ScheduleParser
    auth: AuthService
    tokens: TokenService
    resources: ResourceAccessService
    schedules: ScheduleService
    planning: RoutePlanningService
    clock: Callable[[], datetime] = utc_now
    closeables: list[Any] = field(default_factory=list)

    def service_health(self) -> dict[str, str]:
        return {
            "store": _status(self._store_healthy()),
            "traffic": _status(_probe(self.traffic)),
            "parser": _status(_probe(self.parser)),
        }

    def _store_healthy(self) -> bool:
        stamp = self.clock().isoformat()
        try:
            self.store.put(_HEALTH_PROBE_KEY, {"checked_at": stamp}, 60)
            return self.store.get(_HEALTH_PROBE_KEY).get("checked_at") == stamp
        except (AppError, LookupError) as exc:
            logger.warning(f"Store health probe failed: {exc}")
            return False

    def close(self) -> None:
        for resource in reversed(self.closeables):
            resource.close()
        self.closeables.clear()


def _status(healthy: bool) -> str:
    return "healthy" if healthy else "unhealthy"


def _probe(component: Any) -> bool:
    try:
        return bool(component.check_health())
    except AppError as exc:
        logger.warning(f"Health probe for {getattr(component, 'name', component)} failed: {exc}")
        return False


def _build_store(settings: Settings, clock: Callable[[], datetime]) -> EntityStore:
    if settings.store_backend == "supabase":
        client = get_supabase_client(settings.supabase_url, settings.supabase_key)
        if client is None:
            raise StorageUnavailable("Supabase store selected but the client could not be created")
        logger.info(f"Using Supabase entity store (table={settings.supabase_entities_table})")
        return SupabaseEntityStore(client, table=settings.supabase_entities_table, clock=clock)
    return InMemoryEntityStore(
        shards=settings.store_shards,
        max_entries=settings.store_max_entries,
        clock=clock,
    )


def _build_traffic(settings: Settings, clock: Callable[[], datetime]) -> TrafficProvider:
    if settings.traffic_base_url:
        logger.info(f"Using OSRM traffic provider at {settings.traffic_base_url}")
        return OSRMTrafficProvider(
            settings.traffic_base_url,
            profile=settings.traffic_profile,
            timeout=settings.traffic_timeout_seconds,
            max_retries=settings.traffic_max_retries,
            backoff_seconds=settings.traffic_backoff_seconds,
            clock=clock,
        )
    return HaversineTrafficProvider(
        average_speed_kmh=settings.average_speed_kmh,
        detour_factor=settings.road_detour_factor,
        clock=clock,
    )


def _build_parser(settings: Settings, closeables: list[Any]) -> ScheduleParser:
    if settings.parser_base_url:
        logger.info(f"Using schedule parser service at {settings.parser_base_url}")
        parser = HttpScheduleParser(
            settings.parser_base_url,
            api_key=settings.parser_api_key,
            timeout=settings.parser_timeout_seconds,
        )
        closeables.append(parser)
        return parser
    geocoder = None
    if settings.geocoder_base_url:
        geocoder = NominatimGeocoder(
            settings.geocoder_base_url,
            timeout=settings.geocoder_timeout_seconds,
            user_agent=f"waywise-backend/{settings.app_version}",
            min_delay_seconds=settings.geocoder_min_delay_seconds,
            max_retries=settings.geocoder_max_retries,
        )
    return RuleBasedScheduleParser(geocoder=geocoder)


def build_container(
    settings: Settings,
    *,
    clock: Callable[[], datetime] = utc_now,
    store: Optional[EntityStore] = None,
    traffic: Optional[TrafficProvider] = None,
    parser: Optional[ScheduleParser] = None,
) -> Container:
    """Assemble the service graph; explicit collaborators override settings."""
    closeables: list[Any] = []

    if store is None:
        store = _build_store(settings, clock)
    closeables.append(store)
    if traffic is None:
        traffic = _build_traffic(settings, clock)
        if hasattr(traffic, "close"):
            closeables.append(traffic)
    if parser is None:
        parser = _build_parser(settings, closeables)

    schedule_repo = ScheduleRepository(store)
    route_repo = RouteRepository(store)
    resources = ResourceAccessService(schedule_repo, route_repo)
    tokens = TokenService(
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        ttl_seconds=settings.access_token_ttl_seconds,
        clock=clock,
    )
    optimizer = RouteOptimizer(
        traffic,
        exhaustive_threshold=settings.optimizer_exhaustive_threshold,
        max_destinations=settings.optimizer_max_destinations,
        local_search_iterations=settings.optimizer_local_search_iterations,
        max_workers=settings.optimizer_max_workers,
        time_bucket_seconds=settings.optimizer_time_bucket_seconds,
        prefetch_timeout=settings.optimizer_prefetch_timeout_seconds,
        default_visit_minutes=settings.default_visit_minutes,
    )

    return Container(
        settings=settings,
        store=store,
        traffic=traffic,
        parser=parser,
        auth=AuthService(
            UserRepository(store),
            PasswordHasher(settings.password_hash_rounds),
            tokens,
            clock=clock,
        ),
        tokens=tokens,
        resources=resources,
        schedules=ScheduleService(
            parser,
            schedule_repo,
            ttl_seconds=settings.schedule_ttl_seconds,
            clock=clock,
        ),
        planning=RoutePlanningService(
            optimizer,
            resources,
            route_repo,
            ttl_seconds=settings.route_ttl_seconds,
            default_timezone=settings.default_timezone,
            clock=clock,
        ),
        clock=clock,
        closeables=closeables,
    )
