"""Schedule endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ...auth import TokenClaims
from ...container import Container
from ...schemas.schedules import ParseScheduleRequest
from ...services.outputs.serializers import destination_to_json, schedule_to_json
from ..deps import get_container, get_current_user

router = APIRouter(prefix="/schedules", tags=["schedules"])


@router.post("/parse", status_code=status.HTTP_200_OK)
def parse_schedule(
    payload: ParseScheduleRequest,
    user: TokenClaims = Depends(get_current_user),
    container: Container = Depends(get_container),
) -> dict:
    timezone = payload.timezone or container.settings.default_timezone
    schedule = container.schedules.parse_and_store(payload.schedule_text, timezone, user.user_id)
    return {
        "schedule_id": schedule.schedule_id,
        "user_id": schedule.owner_id,
        "timezone": schedule.timezone,
        "destinations": [destination_to_json(dest) for dest in schedule.destinations],
        "ambiguities": list(schedule.ambiguities),
        "created_at": schedule.created_at.isoformat(),
        "expires_at": schedule.expires_at.isoformat(),
    }


@router.get("/{schedule_id}", status_code=status.HTTP_200_OK)
def get_schedule(
    schedule_id: str,
    user: TokenClaims = Depends(get_current_user),
    container: Container = Depends(get_container),
) -> dict:
    schedule = container.resources.get_schedule(schedule_id, user.user_id)
    return schedule_to_json(schedule)
