"""Schedule request schemas."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .common import validate_timezone


class ParseScheduleRequest(BaseModel):
    schedule_text: str = Field(..., min_length=1, max_length=5000)
    timezone: Optional[str] = Field(default=None, description="IANA timezone, e.g. 'America/New_York'.")

    @field_validator("schedule_text")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("schedule_text must not be blank")
        return value

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: Optional[str]) -> Optional[str]:
        return validate_timezone(value)
