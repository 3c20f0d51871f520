"""Routing search models.

All times inside the search are integer seconds relative to the route's
departure; they are converted back to datetimes only when stops are built.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import cached_property
from typing import Optional

from ...models.domain import Destination

# Slack reported for an ordering that has no ArriveBy stop at all.
NO_DEADLINE_SLACK = 10**9


@dataclass(frozen=True, slots=True)
class VisitWindow:
    node: int
    destination: Destination
    visit_seconds: int
    arrive_by: Optional[int]
    depart_after: Optional[int]
    required: bool

    @property
    def sort_id(self) -> str:
        return self.destination.id


@dataclass(frozen=True, slots=True)
class LegEstimate:
    seconds: int
    delay_seconds: int
    best_case_seconds: int
    meters: float


@dataclass(frozen=True, slots=True)
class Visit:
    window: VisitWindow
    leg: LegEstimate
    arrival: int
    departure: int
    wait: int

    @property
    def is_late(self) -> bool:
        return self.window.arrive_by is not None and self.arrival > self.window.arrive_by

    @property
    def slack(self) -> Optional[int]:
        if self.window.arrive_by is None:
            return None
        return self.window.arrive_by - self.arrival


def ordering_key(
    *,
    violations: int,
    lateness: int,
    late_optional: int,
    skipped: int,
    total_seconds: int,
    arrive_by_met: int,
    min_slack: int,
    total_slack: int,
    ids: tuple[str, ...],
) -> tuple:
    """Total order over candidate orderings; smaller is better.

    Late required stops first, then late optional stops (which can always be
    dropped), then coverage of optional stops, then total time.
    Equal times prefer more met ArriveBy constraints with the largest slack,
    and the destination id sequence makes the order total.
    """
    return (
        violations,
        lateness,
        late_optional,
        skipped,
        total_seconds,
        -arrive_by_met,
        -min_slack,
        -total_slack,
        ids,
    )


@dataclass(frozen=True)
class Itinerary:
    visits: tuple[Visit, ...]
    skipped: tuple[VisitWindow, ...]

    @cached_property
    def violations(self) -> tuple[Visit, ...]:
        """Late required stops; these make the itinerary infeasible."""
        return tuple(visit for visit in self.visits if visit.is_late and visit.window.required)

    @cached_property
    def late_optional(self) -> tuple[Visit, ...]:
        return tuple(visit for visit in self.visits if visit.is_late and not visit.window.required)

    @property
    def is_feasible(self) -> bool:
        return not self.violations

    @property
    def total_seconds(self) -> int:
        return self.visits[-1].departure if self.visits else 0

    @property
    def order(self) -> tuple[VisitWindow, ...]:
        return tuple(visit.window for visit in self.visits)

    @cached_property
    def key(self) -> tuple:
        slacks = [visit.slack for visit in self.visits if visit.slack is not None and visit.slack >= 0]
        return ordering_key(
            violations=len(self.violations),
            lateness=sum(visit.arrival - visit.window.arrive_by for visit in self.violations),
            late_optional=len(self.late_optional),
            skipped=sum(1 for window in self.skipped if not window.required),
            total_seconds=self.total_seconds,
            arrive_by_met=len(slacks),
            min_slack=min(slacks) if slacks else NO_DEADLINE_SLACK,
            total_slack=sum(slacks),
            ids=tuple(visit.window.sort_id for visit in self.visits),
        )
