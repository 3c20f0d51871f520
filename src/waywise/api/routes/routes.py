"""Route optimisation endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ...auth import TokenClaims
from ...container import Container
from ...schemas.routes import OptimizeRouteRequest
from ...services.outputs.serializers import coordinates_to_json, route_to_json
from ...services.planning import PlanRequest
from ...services.routing import build_route_steps
from ..deps import get_container, get_current_user

router = APIRouter(prefix="/routes", tags=["routes"])


@router.post("/optimize", status_code=status.HTTP_200_OK)
def optimize(
    payload: OptimizeRouteRequest,
    user: TokenClaims = Depends(get_current_user),
    container: Container = Depends(get_container),
) -> dict:
    request = PlanRequest(
        origin=payload.origin.to_domain(),
        departure_time=payload.departure_time,
        schedule_id=payload.schedule_id,
        destinations=(
            [dest.to_domain() for dest in payload.destinations]
            if payload.destinations is not None
            else None
        ),
        timezone=payload.timezone,
        preferences=payload.preferences.to_domain(),
    )
    route = container.planning.plan(request, user.user_id)
    return route_to_json(route)


@router.get("/{route_id}", status_code=status.HTTP_200_OK)
def get_route(
    route_id: str,
    user: TokenClaims = Depends(get_current_user),
    container: Container = Depends(get_container),
) -> dict:
    route = container.resources.get_route(route_id, user.user_id)
    body = route_to_json(route)
    body["steps"] = [
        {
            "instruction": step.instruction,
            "distance_meters": step.distance_meters,
            "duration_seconds": step.duration_seconds,
            "start_location": coordinates_to_json(step.start_location),
            "end_location": coordinates_to_json(step.end_location),
            "maneuver": step.maneuver,
        }
        for step in build_route_steps(route)
    ]
    return body
