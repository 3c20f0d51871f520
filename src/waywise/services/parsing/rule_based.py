"""Rule-based schedule parser.

Handles short errand lists such as ``"dentist at 2pm, grocery store"``:
fragments are split on list separators, each fragment may carry one time
phrase, and the rest of the fragment names the place.
"""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass, field
from datetime import time
from typing import Optional

import dateparser

from ...errors import ParseFailure
from ...models.domain import ConstraintKind, Destination, TimeConstraint
from .base import ParsedSchedule
from .geocoder import Geocoder

logger = logging.getLogger(__name__)

_SPLIT_RE = re.compile(r"\s*(?:[,;\n]+|\band then\b|\bthen\b|\band\b)\s*", re.IGNORECASE)
_TIME_RE = re.compile(
    r"\b(?:(?P<prep>at|by|before|after|from|around)\s+)?"
    r"(?P<phrase>noon|midnight|(?P<hour>\d{1,2})(?::(?P<minute>[0-5]\d))?\s*(?P<meridiem>[ap]\.?m\.?)?)"
    r"(?=[\s,.;!?)]|$)",
    re.IGNORECASE,
)
_OPTIONAL_RE = re.compile(r"\(?\b(?:optional|maybe|if (?:there(?:'s| is) )?time)\b\)?", re.IGNORECASE)
_LEADING_VERBS_RE = re.compile(
    r"^(?:go to|go|visit|stop at|stop by|drop by|drop off at|head to|pick up at|then)\s+",
    re.IGNORECASE,
)
_DEPART_AFTER_PREPS = {"after", "from"}


@dataclass(frozen=True, slots=True)
class _TimeMatch:
    kind: ConstraintKind
    at: Optional[time]
    span: tuple[int, int]
    note: Optional[str] = None


def _normalize_clock(match: re.Match) -> tuple[Optional[str], Optional[str]]:
    """Return a dateparser-friendly clock string plus an ambiguity note."""
    phrase = match.group("phrase").lower()
    if phrase == "noon":
        return "12:00 pm", None
    if phrase == "midnight":
        return "12:00 am", None

    hour = int(match.group("hour"))
    minute = int(match.group("minute") or 0)
    meridiem = (match.group("meridiem") or "").replace(".", "").lower()
    if meridiem:
        if not 1 <= hour <= 12:
            return None, f"Ignored invalid time '{match.group(0).strip()}'"
        return f"{hour}:{minute:02d} {meridiem}", None
    if hour > 23:
        return None, f"Ignored invalid time '{match.group(0).strip()}'"
    if 1 <= hour <= 6:
        note = f"Assumed {hour}:{minute:02d} PM for '{match.group(0).strip()}'"
        return f"{hour}:{minute:02d} pm", note
    return f"{hour}:{minute:02d}", None


def _find_time(fragment: str) -> Optional[_TimeMatch]:
    for match in _TIME_RE.finditer(fragment):
        explicit = (
            match.group("prep")
            or match.group("meridiem")
            or match.group("minute")
            or match.group("hour") is None
        )
        if not explicit:
            continue
        clock, note = _normalize_clock(match)
        parsed = dateparser.parse(clock, languages=["en"]) if clock else None
        kind = (
            ConstraintKind.DEPART_AFTER
            if (match.group("prep") or "").lower() in _DEPART_AFTER_PREPS
            else ConstraintKind.ARRIVE_BY
        )
        if parsed is None:
            note = note or f"Could not understand time '{match.group(0).strip()}'"
            return _TimeMatch(kind, None, match.span(), note)
        return _TimeMatch(kind, parsed.time().replace(second=0, microsecond=0), match.span(), note)
    return None


def _clean_name(text: str) -> str:
    name = _LEADING_VERBS_RE.sub("", text.strip())
    name = re.sub(r"\s{2,}", " ", name)
    return name.strip(" -:.!?()")


@dataclass
class RuleBasedScheduleParser:
    geocoder: Optional[Geocoder] = None
    name: str = "rule_based"
    _logger: logging.Logger = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._logger = logging.getLogger(__name__)

    def parse(self, text: str, timezone: str) -> ParsedSchedule:
        destinations: list[Destination] = []
        ambiguities: list[str] = []

        for fragment in _SPLIT_RE.split(text):
            if not fragment or not fragment.strip():
                continue
            required = True
            if _OPTIONAL_RE.search(fragment):
                required = False
                fragment = _OPTIONAL_RE.sub(" ", fragment)

            constraint = TimeConstraint.flexible()
            found = _find_time(fragment)
            if found is not None:
                start, end = found.span
                fragment = f"{fragment[:start]} {fragment[end:]}"
                if found.note:
                    ambiguities.append(found.note)
                if found.at is not None:
                    constraint = TimeConstraint(found.kind, found.at)

            place = _clean_name(fragment)
            if not place:
                if found is not None:
                    ambiguities.append("Found a time without a place; it was ignored")
                continue

            destinations.append(self._build_destination(place, constraint, required, ambiguities))

        if not destinations:
            raise ParseFailure(details="No destinations found in the provided text")

        if self.geocoder is None:
            names = ", ".join(dest.name for dest in destinations)
            ambiguities.append(f"Locations were not looked up; coordinates are missing for: {names}")

        self._logger.debug(
            "Parsed schedule (rule-based)",
            extra={"destinations": len(destinations), "ambiguities": len(ambiguities)},
        )
        return ParsedSchedule(destinations=tuple(destinations), ambiguities=tuple(ambiguities))

    def _build_destination(
        self,
        place: str,
        constraint: TimeConstraint,
        required: bool,
        ambiguities: list[str],
    ) -> Destination:
        coordinates = None
        address = None
        if self.geocoder is not None:
            match = self.geocoder.lookup(place)
            if match is None:
                ambiguities.append(f"Could not find a location for '{place}'")
            else:
                coordinates, address = match.coordinates, match.address
        return Destination(
            id=str(uuid.uuid4()),
            name=place,
            address=address,
            coordinates=coordinates,
            time_constraint=constraint,
            required=required,
        )

    def check_health(self) -> bool:
        return True
