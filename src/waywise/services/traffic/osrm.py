"""Traffic provider backed by an OSRM routing service."""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime
from typing import Callable, Optional, Sequence

import httpx

from ...errors import UpstreamUnavailable
from ...models.domain import Coordinates, RoutePreferences, TrafficForecast, utc_now
from .base import CongestionModel

logger = logging.getLogger(__name__)

# Probe coordinates (Berlin) used for health checks; public OSRM has no /health.
_HEALTH_PROBE = "13.388860,52.517037;13.385983,52.496891"


def _coordinate_path(points: Sequence[Coordinates]) -> str:
    return ";".join(f"{point.lon},{point.lat}" for point in points)


def _exclude_param(preferences: Optional[RoutePreferences]) -> Optional[str]:
    if preferences is None:
        return None
    classes = []
    if preferences.avoid_highways:
        classes.append("motorway")
    if preferences.avoid_tolls:
        classes.append("toll")
    return ",".join(classes) or None


class OSRMTrafficProvider:
    """Free-flow legs from OSRM's route endpoint, scaled by the congestion model.

    Free-flow answers do not depend on the departure time, so they are memoized
    per (origin, destination, exclusions); the time-dependent part is local.
    """

    name = "osrm"

    def __init__(
        self,
        base_url: str,
        *,
        profile: str = "driving",
        timeout: float = 10.0,
        max_retries: int = 2,
        backoff_seconds: float = 0.5,
        congestion: Optional[CongestionModel] = None,
        clock: Callable[[], datetime] = utc_now,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        if not base_url:
            raise ValueError("OSRM base URL is not configured.")
        self.base_url = base_url.rstrip("/")
        self.profile = profile
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self.congestion = congestion or CongestionModel()
        self.clock = clock
        self._client = httpx.Client(
            timeout=httpx.Timeout(timeout, connect=min(timeout, 5.0)),
            transport=transport,
        )
        self._legs: dict[tuple, tuple[float, float]] = {}
        self._legs_lock = threading.Lock()

    def close(self) -> None:
        self._client.close()

    def _request(self, points: Sequence[Coordinates], params: dict) -> dict:
        url = f"{self.base_url}/route/v1/{self.profile}/{_coordinate_path(points)}"
        attempt = 0
        while True:
            try:
                response = self._client.get(url, params=params)
                if response.status_code >= 500:
                    response.raise_for_status()
                data = response.json()
                if not isinstance(data, dict):
                    raise ValueError("expected a JSON object")
                if data.get("code") != "Ok" or not data.get("routes"):
                    message = data.get("message", data.get("code", "unknown error"))
                    raise UpstreamUnavailable(f"OSRM route request failed: {message}", service=self.name)
                return data
            except httpx.TimeoutException as exc:
                attempt += 1
                if attempt > self.max_retries:
                    logger.warning(f"OSRM request timed out after {self.max_retries} retries: {exc}")
                    raise UpstreamUnavailable(
                        "Traffic service timed out", service=self.name, timed_out=True
                    ) from exc
                wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                logger.debug(f"OSRM timeout, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries})")
                time.sleep(wait_time)
            except httpx.HTTPError as exc:
                attempt += 1
                if attempt > self.max_retries:
                    raise UpstreamUnavailable(
                        f"Failed to reach OSRM service at {self.base_url}: {exc}", service=self.name
                    ) from exc
                wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                logger.debug(f"OSRM network error, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries}): {exc}")
                time.sleep(wait_time)
            except ValueError as exc:
                raise UpstreamUnavailable(
                    f"Malformed OSRM response: {exc}", service=self.name
                ) from exc

    def free_flow(
        self,
        origin: Coordinates,
        destination: Coordinates,
        preferences: Optional[RoutePreferences] = None,
    ) -> tuple[float, float]:
        """Return (seconds, meters) for the leg without congestion."""
        exclude = _exclude_param(preferences)
        key = (origin, destination, exclude)
        with self._legs_lock:
            cached = self._legs.get(key)
        if cached is not None:
            return cached

        params = {"overview": "false", "steps": "false"}
        if exclude:
            params["exclude"] = exclude
        data = self._request([origin, destination], params)
        try:
            route = data["routes"][0]
            leg = (float(route["duration"]), float(route["distance"]))
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise UpstreamUnavailable(f"Malformed OSRM route payload: {exc}", service=self.name) from exc

        with self._legs_lock:
            self._legs[key] = leg
        return leg

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
        if len(points) < 2:
            return None
        params = {"overview": "full", "geometries": "polyline", "steps": "false"}
        exclude = _exclude_param(preferences)
        if exclude:
            params["exclude"] = exclude
        data = self._request(points, params)
        geometry = data["routes"][0].get("geometry")
        return geometry if isinstance(geometry, str) else None

    def check_health(self) -> bool:
        url = f"{self.base_url}/route/v1/{self.profile}/{_HEALTH_PROBE}"
        try:
            response = self._client.get(url, params={"overview": "false"}, timeout=5.0)
            response.raise_for_status()
            return response.json().get("code") == "Ok"
        except (httpx.HTTPError, ValueError):
            return False
