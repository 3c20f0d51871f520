"""Traffic forecast endpoint."""

from __future__ import annotations

from typing import Annotated
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, Query, status

from ...auth import TokenClaims
from ...container import Container
from ...models.domain import Coordinates, RoutePreferences
from ...schemas.traffic import ForecastQuery
from ...services.outputs.serializers import forecast_to_json
from ..deps import get_container, get_current_user

router = APIRouter(prefix="/traffic", tags=["traffic"])


@router.get("/forecast", status_code=status.HTTP_200_OK)
def forecast(
    query: Annotated[ForecastQuery, Query()],
    user: TokenClaims = Depends(get_current_user),
    container: Container = Depends(get_container),
) -> dict:
    """Travel-time forecast between two points; departure defaults to now.

    Congestion is read at the local hour of ``timezone`` (default timezone when
    omitted); a departure_time without offset is taken as that local time.
    """
    zone = ZoneInfo(query.timezone or container.settings.default_timezone)
    departure = query.departure_time or container.clock()
    if departure.tzinfo is None:
        departure = departure.replace(tzinfo=zone)
    departure = departure.astimezone(zone)
    result = container.traffic.forecast(
        Coordinates(lat=query.origin_lat, lon=query.origin_lon),
        Coordinates(lat=query.dest_lat, lon=query.dest_lon),
        departure,
        RoutePreferences(avoid_tolls=query.avoid_tolls, avoid_highways=query.avoid_highways),
    )
    return forecast_to_json(result)
