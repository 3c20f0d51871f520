"""Adapter for an external (LLM or NLP) schedule parsing service."""

from __future__ import annotations

import logging
import uuid
from datetime import time as wall_time
from typing import List, Literal, Optional

import httpx
from pydantic import BaseModel, Field, ValidationError, model_validator

from ...errors import ParseFailure, UpstreamUnavailable
from ...models.domain import ConstraintKind, Coordinates, Destination, TimeConstraint
from .base import ParsedSchedule

logger = logging.getLogger(__name__)


class _ProviderCoordinates(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)


class _ProviderConstraint(BaseModel):
    type: Literal["arrive_by", "depart_after", "flexible"] = "flexible"
    time: Optional[str] = Field(default=None, pattern=r"^([01]\d|2[0-3]):[0-5]\d(:[0-5]\d)?$")

    @model_validator(mode="after")
    def _time_matches_type(self) -> "_ProviderConstraint":
        if self.type != "flexible" and self.time is None:
            raise ValueError(f"'{self.type}' constraint requires a time")
        if self.type == "flexible":
            self.time = None
        return self


class _ProviderDestination(BaseModel):
    id: Optional[str] = None
    name: str = Field(..., min_length=1)
    address: Optional[str] = None
    coordinates: Optional[_ProviderCoordinates] = None
    time_constraint: _ProviderConstraint = Field(default_factory=_ProviderConstraint)
    required: bool = True


class _ProviderResponse(BaseModel):
    destinations: List[_ProviderDestination] = Field(default_factory=list)
    ambiguities: List[str] = Field(default_factory=list)


def _to_destination(item: _ProviderDestination) -> Destination:
    constraint = TimeConstraint.flexible()
    if item.time_constraint.time is not None:
        hour, minute = (int(part) for part in item.time_constraint.time.split(":")[:2])
        constraint = TimeConstraint(ConstraintKind(item.time_constraint.type), wall_time(hour, minute))
    return Destination(
        id=item.id or str(uuid.uuid4()),
        name=item.name.strip(),
        address=item.address,
        coordinates=Coordinates(item.coordinates.lat, item.coordinates.lon) if item.coordinates else None,
        time_constraint=constraint,
        required=item.required,
    )


class HttpScheduleParser:
    name = "http"

    def __init__(
        self,
        base_url: str,
        *,
        api_key: Optional[str] = None,
        timeout: float = 15.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(timeout=timeout, headers=headers, transport=transport)

    def close(self) -> None:
        self._client.close()

    def parse(self, text: str, timezone: str) -> ParsedSchedule:
        try:
            response = self._client.post(f"{self.base_url}/parse", json={"text": text, "timezone": timezone})
        except httpx.TimeoutException as exc:
            logger.warning(f"Schedule parser timed out: {exc}")
            raise UpstreamUnavailable("Schedule parser timed out", service=self.name, timed_out=True) from exc
        except httpx.HTTPError as exc:
            logger.warning(f"Schedule parser unreachable: {exc}")
            raise UpstreamUnavailable(f"Schedule parser unreachable: {exc}", service=self.name) from exc

        if response.status_code >= 500 or response.status_code == 429:
            raise UpstreamUnavailable(
                f"Schedule parser returned HTTP {response.status_code}", service=self.name
            )
        if response.status_code >= 400:
            raise ParseFailure(details=f"Parser rejected the text (HTTP {response.status_code})")

        try:
            payload = _ProviderResponse.model_validate_json(response.content)
        except ValidationError as exc:
            logger.warning(f"Malformed schedule parser output: {exc.error_count()} errors")
            raise ParseFailure(details="Parser returned malformed output") from exc

        if not payload.destinations:
            raise ParseFailure(details="No destinations found in the provided text")

        return ParsedSchedule(
            destinations=tuple(_to_destination(item) for item in payload.destinations),
            ambiguities=tuple(payload.ambiguities),
        )

    def check_health(self) -> bool:
        try:
            response = self._client.get(f"{self.base_url}/health", timeout=5.0)
        except httpx.HTTPError:
            return False
        return response.status_code < 500
