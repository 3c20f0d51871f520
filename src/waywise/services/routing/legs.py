"""Time-dependent leg lookups shared by the route search."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FuturesTimeout
from datetime import datetime, timedelta
from typing import Optional, Sequence

from ...errors import UpstreamUnavailable
from ...models.domain import Coordinates, RoutePreferences
from ..traffic.base import TrafficProvider
from .models import LegEstimate

logger = logging.getLogger(__name__)


class LegMatrix:
    """Memoized travel estimates between route nodes.

    Node 0 is the origin, nodes 1..n are destinations. A leg is looked up at
    the departure bucket it actually starts in, so later legs see the traffic
    of their own (cumulative) start time.
    """

    def __init__(
        self,
        provider: TrafficProvider,
        points: Sequence[Coordinates],
        departure_time: datetime,
        preferences: Optional[RoutePreferences] = None,
        *,
        bucket_seconds: int = 300,
        max_workers: int = 8,
        prefetch_timeout: float = 30.0,
    ) -> None:
        self.provider = provider
        self.points = tuple(points)
        self.departure_time = departure_time
        self.preferences = preferences
        self.bucket_seconds = max(1, bucket_seconds)
        self.max_workers = max(1, max_workers)
        self.prefetch_timeout = prefetch_timeout
        self._cache: dict[tuple[int, int, int], LegEstimate] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self.points)

    def leg(self, origin: int, destination: int, offset_seconds: int) -> LegEstimate:
        bucket = (max(offset_seconds, 0) // self.bucket_seconds) * self.bucket_seconds
        key = (origin, destination, bucket)
        with self._lock:
            cached = self._cache.get(key)
        if cached is not None:
            return cached

        forecast = self.provider.forecast(
            self.points[origin],
            self.points[destination],
            self.departure_time + timedelta(seconds=bucket),
            self.preferences,
        )
        estimate = LegEstimate(
            seconds=int(round(forecast.travel_time.current_minutes * 60)),
            delay_seconds=int(round(forecast.delay_minutes * 60)),
            best_case_seconds=int(round(forecast.travel_time.best_case_minutes * 60)),
            meters=forecast.distance_meters,
        )
        with self._lock:
            self._cache.setdefault(key, estimate)
        return estimate

    def lower_bound(self, origin: int, destination: int) -> int:
        """Free-flow seconds for a leg; no departure time can beat it."""
        return self.leg(origin, destination, 0).best_case_seconds

    def prefetch(self) -> None:
        """Look up every leg at the route departure, concurrently."""
        count = len(self.points)
        pairs = [(i, j) for i in range(count) for j in range(1, count) if i != j]
        if not pairs:
            return

        executor = ThreadPoolExecutor(max_workers=min(self.max_workers, len(pairs)))
        try:
            futures = [executor.submit(self.leg, i, j, 0) for i, j in pairs]
            for future in as_completed(futures, timeout=self.prefetch_timeout):
                future.result()
        except FuturesTimeout as exc:
            logger.warning(
                f"Traffic prefetch exceeded {self.prefetch_timeout:.1f}s for {len(pairs)} legs"
            )
            raise UpstreamUnavailable(
                "Traffic lookups timed out",
                service=getattr(self.provider, "name", "traffic"),
                timed_out=True,
            ) from exc
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
        logger.debug(f"Prefetched {len(pairs)} legs")
