"""Turn-by-turn style steps for a stored route."""

from __future__ import annotations

from dataclasses import dataclass

from ...models.domain import Coordinates, Route


@dataclass(frozen=True, slots=True)
class RouteStep:
    instruction: str
    distance_meters: float
    duration_seconds: int
    start_location: Coordinates
    end_location: Coordinates
    maneuver: str


def build_route_steps(route: Route) -> list[RouteStep]:
    """One step per leg: origin to the first stop, then stop to stop."""
    steps: list[RouteStep] = []
    previous = route.origin
    for stop in route.optimized_sequence:
        destination = stop.destination
        first = not steps
        instruction = (
            f"Depart toward {destination.name}" if first else f"Continue to {destination.name}"
        )
        steps.append(
            RouteStep(
                instruction=instruction,
                distance_meters=stop.distance_from_previous_meters,
                duration_seconds=int(round(stop.travel_time_from_previous_minutes * 60)),
                start_location=previous,
                end_location=destination.coordinates,
                maneuver="depart" if first else "arrive",
            )
        )
        previous = destination.coordinates
    return steps
