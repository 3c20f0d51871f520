"""Place lookup for the rule-based parser."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Protocol
from urllib.parse import urlsplit

from geopy.exc import GeocoderServiceError, GeocoderTimedOut
from geopy.extra.rate_limiter import RateLimiter
from geopy.geocoders import Nominatim

from ...errors import UpstreamUnavailable
from ...models.domain import Coordinates


@dataclass(frozen=True, slots=True)
class GeocodeResult:
    coordinates: Coordinates
    address: str


class Geocoder(Protocol):
    def lookup(self, query: str) -> Optional[GeocodeResult]:
        """Return the best match for ``query`` or None when nothing matches."""
        ...


@dataclass
class NominatimGeocoder:
    """Nominatim lookups, rate limited to respect the service's usage policy.

    ``base_url`` may point at the public instance or a self-hosted one.
    Timeouts surface as UPSTREAM_TIMEOUT; other service errors (unavailable,
    quota, rate limited) surface as UPSTREAM_UNAVAILABLE once retries are spent.
    """

    base_url: str
    timeout: float = 5.0
    user_agent: str = "waywise-backend/1.0"
    min_delay_seconds: float = 1.0
    max_retries: int = 2
    error_wait_seconds: float = 2.0
    geolocator: Optional[Any] = None
    name: str = "nominatim"

    _geocode_fn: Optional[Callable[..., Any]] = field(default=None, init=False, repr=False)
    _logger: logging.Logger = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._logger = logging.getLogger(__name__)

    def _get_geocoder(self) -> Callable[..., Any]:
        if self._geocode_fn is not None:
            return self._geocode_fn

        if self.geolocator is None:
            parts = urlsplit(self.base_url if "//" in self.base_url else f"https://{self.base_url}")
            self.geolocator = Nominatim(
                user_agent=self.user_agent,
                timeout=self.timeout,
                domain=f"{parts.netloc}{parts.path}".rstrip("/"),
                scheme=parts.scheme or "https",
            )
            self._logger.debug(
                "Initialized Nominatim geocoder",
                extra={"domain": self.geolocator.domain, "timeout": self.timeout},
            )

        self._geocode_fn = RateLimiter(
            self.geolocator.geocode,
            min_delay_seconds=self.min_delay_seconds,
            max_retries=self.max_retries,
            error_wait_seconds=self.error_wait_seconds,
            swallow_exceptions=False,
        )
        return self._geocode_fn

    def lookup(self, query: str) -> Optional[GeocodeResult]:
        if not query or not query.strip():
            return None
        try:
            location = self._get_geocoder()(query.strip(), exactly_one=True)
        except GeocoderTimedOut as exc:
            raise UpstreamUnavailable("Geocoder timed out", service=self.name, timed_out=True) from exc
        except GeocoderServiceError as exc:
            raise UpstreamUnavailable(f"Geocoder unavailable: {exc}", service=self.name) from exc

        if location is None:
            self._logger.info(f"No geocoding match for '{query}'")
            return None
        try:
            coordinates = Coordinates(lat=float(location.latitude), lon=float(location.longitude))
        except (TypeError, ValueError) as exc:
            raise UpstreamUnavailable(f"Malformed geocoder result: {exc}", service=self.name) from exc
        return GeocodeResult(coordinates=coordinates, address=str(location.address or query))
