"""Shared request models."""

from __future__ import annotations

from datetime import time
from typing import Literal, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, model_validator

from ..models.domain import ConstraintKind, Coordinates, Destination, TimeConstraint


def validate_timezone(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone '{value}'") from exc
    return value


class CoordinatesModel(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)

    def to_domain(self) -> Coordinates:
        return Coordinates(lat=self.lat, lon=self.lon)


class TimeConstraintModel(BaseModel):
    type: Literal["arrive_by", "depart_after", "flexible"] = "flexible"
    time: Optional[str] = Field(
        default=None,
        pattern=r"^([01]\d|2[0-3]):[0-5]\d$",
        description="Local wall-clock time (HH:MM) in the request timezone.",
    )

    @model_validator(mode="after")
    def _time_matches_type(self) -> "TimeConstraintModel":
        if self.type == "flexible" and self.time is not None:
            raise ValueError("flexible constraints cannot carry a time")
        if self.type != "flexible" and self.time is None:
            raise ValueError(f"{self.type} constraints require a time")
        return self

    def to_domain(self) -> TimeConstraint:
        at = time.fromisoformat(self.time) if self.time else None
        return TimeConstraint(ConstraintKind(self.type), at)


class DestinationModel(BaseModel):
    id: str = Field(..., min_length=1, max_length=128)
    name: str = Field(..., min_length=1, max_length=200)
    address: Optional[str] = Field(default=None, max_length=500)
    coordinates: Optional[CoordinatesModel] = None
    time_constraint: TimeConstraintModel = Field(default_factory=TimeConstraintModel)
    required: bool = True
    visit_minutes: Optional[float] = Field(default=None, ge=0, le=24 * 60)

    def to_domain(self) -> Destination:
        return Destination(
            id=self.id,
            name=self.name,
            address=self.address,
            coordinates=self.coordinates.to_domain() if self.coordinates else None,
            time_constraint=self.time_constraint.to_domain(),
            required=self.required,
            visit_minutes=self.visit_minutes,
        )
