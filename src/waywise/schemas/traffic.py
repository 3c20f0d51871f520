"""Traffic forecast query parameters."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .common import validate_timezone


class ForecastQuery(BaseModel):
    origin_lat: float = Field(..., ge=-90, le=90)
    origin_lon: float = Field(..., ge=-180, le=180)
    dest_lat: float = Field(..., ge=-90, le=90)
    dest_lon: float = Field(..., ge=-180, le=180)
    departure_time: Optional[datetime] = None
    avoid_tolls: bool = False
    avoid_highways: bool = False
    timezone: Optional[str] = Field(
        default=None,
        description="Zone whose local hour drives the congestion profile; also applied to a departure_time without offset.",
    )

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: Optional[str]) -> Optional[str]:
        return validate_timezone(value)
