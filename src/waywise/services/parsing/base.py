"""Schedule parser contract."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from ...models.domain import Destination


@dataclass(frozen=True, slots=True)
class ParsedSchedule:
    destinations: tuple[Destination, ...]
    ambiguities: tuple[str, ...] = field(default_factory=tuple)


class ScheduleParser(Protocol):
    """Turns free text into structured destinations.

    ``parse`` raises ``ParseFailure`` when no destination can be extracted or
    the provider's answer is malformed, and ``UpstreamUnavailable`` when the
    provider cannot be reached in time.
    """

    name: str

    def parse(self, text: str, timezone: str) -> ParsedSchedule:
        ...

    def check_health(self) -> bool:
        ...
