"""Route optimisation request schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from ..models.domain import RoutePreferences
from .common import CoordinatesModel, DestinationModel, validate_timezone


class PreferencesModel(BaseModel):
    avoid_tolls: bool = False
    avoid_highways: bool = False

    def to_domain(self) -> RoutePreferences:
        return RoutePreferences(avoid_tolls=self.avoid_tolls, avoid_highways=self.avoid_highways)


class OptimizeRouteRequest(BaseModel):
    schedule_id: Optional[str] = Field(default=None, min_length=1, max_length=128)
    destinations: Optional[List[DestinationModel]] = Field(
        default=None,
        description="Used when no schedule_id is given, or when the schedule has expired.",
    )
    origin: CoordinatesModel
    departure_time: datetime = Field(..., description="ISO 8601 departure timestamp.")
    timezone: Optional[str] = Field(
        default=None,
        description="Timezone for the wall-clock times of inline destinations.",
    )
    preferences: PreferencesModel = Field(default_factory=PreferencesModel)

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: Optional[str]) -> Optional[str]:
        return validate_timezone(value)
