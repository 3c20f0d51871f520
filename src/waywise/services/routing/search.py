"""Visit-order search.

Small inputs are solved exactly with a branch-and-bound enumeration whose
first-stop subtrees run concurrently. Larger inputs use a deadline-aware
nearest-neighbour construction followed by swap/insert local search.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Sequence

from .legs import LegMatrix
from .models import NO_DEADLINE_SLACK, Itinerary, Visit, VisitWindow, ordering_key

logger = logging.getLogger(__name__)

_NO_DEADLINE = float("inf")


def simulate(
    order: Sequence[VisitWindow],
    windows: Sequence[VisitWindow],
    legs: LegMatrix,
) -> Itinerary:
    """Walk ``order`` from the origin, accumulating time-dependent legs."""
    visits: list[Visit] = []
    clock = 0
    previous = 0
    for window in order:
        leg = legs.leg(previous, window.node, clock)
        arrival = clock + leg.seconds
        departure = arrival + window.visit_seconds
        wait = 0
        if window.depart_after is not None and departure < window.depart_after:
            wait = window.depart_after - departure
            departure = window.depart_after
        visits.append(Visit(window=window, leg=leg, arrival=arrival, departure=departure, wait=wait))
        clock = departure
        previous = window.node

    included = {window.node for window in order}
    skipped = tuple(window for window in windows if window.node not in included)
    return Itinerary(visits=tuple(visits), skipped=skipped)


def _deadline(window: VisitWindow) -> float:
    return window.arrive_by if window.arrive_by is not None else _NO_DEADLINE


def earliest_deadline_order(windows: Sequence[VisitWindow]) -> list[VisitWindow]:
    """Required stops only, tightest ArriveBy first."""
    required = [window for window in windows if window.required]
    return sorted(required, key=lambda window: (_deadline(window), window.sort_id))


class _SubtreeSearch:
    """Depth-first branch-and-bound below one fixed first stop."""

    def __init__(self, windows: Sequence[VisitWindow], legs: LegMatrix) -> None:
        self.windows = tuple(windows)
        self.legs = legs
        self.required_total = sum(1 for window in windows if window.required)
        self.optional_total = len(self.windows) - self.required_total
        self.best_key: Optional[tuple] = None
        self.best_order: Optional[tuple[VisitWindow, ...]] = None
        self.expanded = 0

    def run(self, first: VisitWindow) -> Optional[tuple[tuple, tuple[VisitWindow, ...]]]:
        remaining = [window for window in self.windows if window is not first]
        self._extend([], remaining, 0, 0, first, _Tally())
        if self.best_key is None:
            return None
        return self.best_key, self.best_order

    def _extend(
        self,
        path: list[VisitWindow],
        remaining: list[VisitWindow],
        clock: int,
        previous: int,
        window: VisitWindow,
        tally: "_Tally",
    ) -> None:
        leg = self.legs.leg(previous, window.node, clock)
        arrival = clock + leg.seconds
        if window.arrive_by is not None and arrival > window.arrive_by:
            return
        departure = arrival + window.visit_seconds
        if window.depart_after is not None and departure < window.depart_after:
            departure = window.depart_after

        self.expanded += 1
        path.append(window)
        tally = tally.after(window, arrival)
        try:
            self._visit_node(path, remaining, departure, window.node, tally)
        finally:
            path.pop()

    def _visit_node(
        self,
        path: list[VisitWindow],
        remaining: list[VisitWindow],
        clock: int,
        position: int,
        tally: "_Tally",
    ) -> None:
        for window in remaining:
            if (
                window.required
                and window.arrive_by is not None
                and clock + self.legs.lower_bound(position, window.node) > window.arrive_by
            ):
                return

        if tally.required == self.required_total:
            key = ordering_key(
                violations=0,
                lateness=0,
                late_optional=0,
                skipped=self.optional_total - tally.optional,
                total_seconds=clock,
                arrive_by_met=tally.arrive_by_met,
                min_slack=tally.min_slack,
                total_slack=tally.total_slack,
                ids=tuple(window.sort_id for window in path),
            )
            if self.best_key is None or key < self.best_key:
                self.best_key = key
                self.best_order = tuple(path)

        # Once every optional stop fits, nothing slower than the incumbent can win.
        if self.best_key is not None and self.best_key[3] == 0 and clock > self.best_key[4]:
            return

        for index, window in enumerate(remaining):
            rest = remaining[:index] + remaining[index + 1:]
            self._extend(path, rest, clock, position, window, tally)


class _Tally:
    __slots__ = ("required", "optional", "arrive_by_met", "min_slack", "total_slack")

    def __init__(self) -> None:
        self.required = 0
        self.optional = 0
        self.arrive_by_met = 0
        self.min_slack = NO_DEADLINE_SLACK
        self.total_slack = 0

    def after(self, window: VisitWindow, arrival: int) -> "_Tally":
        nxt = _Tally()
        nxt.required = self.required + (1 if window.required else 0)
        nxt.optional = self.optional + (0 if window.required else 1)
        nxt.arrive_by_met = self.arrive_by_met
        nxt.min_slack = self.min_slack
        nxt.total_slack = self.total_slack
        if window.arrive_by is not None:
            slack = window.arrive_by - arrival
            nxt.arrive_by_met += 1
            nxt.min_slack = min(nxt.min_slack, slack)
            nxt.total_slack += slack
        return nxt


def exhaustive_search(
    windows: Sequence[VisitWindow],
    legs: LegMatrix,
    *,
    max_workers: int = 8,
) -> Optional[Itinerary]:
    """Best feasible ordering over all permutations, or None if none exists.

    Optional stops may be left out; every required stop is always visited.
    """
    if not windows:
        return simulate([], windows, legs)

    def solve(first: VisitWindow):
        return _SubtreeSearch(windows, legs).run(first)

    candidates = []
    if not any(window.required for window in windows):
        empty = simulate([], windows, legs)
        candidates.append((empty.key, ()))

    workers = max(1, min(max_workers, len(windows)))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        for result in executor.map(solve, windows):
            if result is not None:
                candidates.append(result)

    if not candidates:
        logger.info(f"No feasible ordering among {len(windows)} destinations")
        return None

    _, order = min(candidates, key=lambda candidate: candidate[0])
    return simulate(order, windows, legs)


def _nearest_neighbour(windows: Sequence[VisitWindow], legs: LegMatrix) -> list[VisitWindow]:
    remaining = list(windows)
    order: list[VisitWindow] = []
    clock = 0
    previous = 0

    while remaining:
        options = []
        for window in remaining:
            leg = legs.leg(previous, window.node, clock)
            arrival = clock + leg.seconds
            late = window.arrive_by is not None and arrival > window.arrive_by
            if late and not window.required:
                continue
            departure = arrival + window.visit_seconds
            if window.depart_after is not None:
                departure = max(departure, window.depart_after)
            at_risk = any(
                other is not window
                and other.required
                and other.arrive_by is not None
                and departure + legs.lower_bound(window.node, other.node) > other.arrive_by
                for other in remaining
            )
            urgency = _deadline(window) if at_risk else 0
            options.append(((late, at_risk, urgency, arrival, window.sort_id), window, departure))

        if not options:
            break
        _, chosen, departure = min(options, key=lambda option: option[0])
        order.append(chosen)
        remaining.remove(chosen)
        clock = departure
        previous = chosen.node

    return order


def _drop_late_optional(
    order: list[VisitWindow],
    windows: Sequence[VisitWindow],
    legs: LegMatrix,
) -> list[VisitWindow]:
    while True:
        itinerary = simulate(order, windows, legs)
        late = [visit.window for visit in itinerary.late_optional]
        if not late:
            return order
        order = [window for window in order if window is not late[0]]


def _neighbours(order: list[VisitWindow], skipped: Sequence[VisitWindow]):
    size = len(order)
    for i in range(size - 1):
        for j in range(i + 1, size):
            candidate = list(order)
            candidate[i], candidate[j] = candidate[j], candidate[i]
            yield candidate
    for window in skipped:
        if window.required:
            continue
        for position in range(size + 1):
            yield order[:position] + [window] + order[position:]


def heuristic_search(
    windows: Sequence[VisitWindow],
    legs: LegMatrix,
    *,
    iterations: int = 200,
) -> Itinerary:
    """Construct then improve an ordering; may return an infeasible one.

    Late optional stops never survive: they are dropped after construction
    and again whenever local search converges on an ordering that has them.
    """
    order = _drop_late_optional(_nearest_neighbour(windows, legs), windows, legs)
    best = simulate(order, windows, legs)

    rounds = 0
    while True:
        best, rounds = _local_search(best, windows, legs, iterations - rounds, rounds)
        if not best.late_optional:
            return best
        best = simulate(_drop_late_optional(list(best.order), windows, legs), windows, legs)


def _local_search(
    best: Itinerary,
    windows: Sequence[VisitWindow],
    legs: LegMatrix,
    budget: int,
    rounds: int,
) -> tuple[Itinerary, int]:
    """First-improvement descent; returns the local optimum and rounds used so far."""
    for _ in range(max(budget, 0)):
        improved = None
        for candidate in _neighbours(list(best.order), best.skipped):
            itinerary = simulate(candidate, windows, legs)
            if itinerary.key < best.key:
                improved = itinerary
                break
        if improved is None:
            logger.debug(f"Local search converged after {rounds} rounds")
            break
        best = improved
        rounds += 1
    return best, rounds
