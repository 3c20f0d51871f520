import time as time_module
from datetime import datetime, time, timedelta, timezone
from itertools import permutations

import pytest

from waywise.errors import InfeasibleSchedule, InvalidRequest, UpstreamUnavailable
from waywise.models.domain import Coordinates, Destination, TimeConstraint
from waywise.services.geospatial import encode_polyline
from waywise.services.routing import LegMatrix, RouteOptimizer
from waywise.services.routing.models import VisitWindow
from waywise.services.routing.search import simulate
from waywise.services.traffic import HaversineTrafficProvider

# Monday
START = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)
ORIGIN = Coordinates(lat=37.7649, lon=-122.4294)


def _dest(did: str, lat: float, lon: float, constraint: TimeConstraint | None = None, required: bool = True, visit: float | None = None) -> Destination:
    return Destination(
        id=did,
        name=f"Place {did}",
        coordinates=Coordinates(lat=lat, lon=lon),
        time_constraint=constraint or TimeConstraint.flexible(),
        required=required,
        visit_minutes=visit,
    )


def _haversine() -> HaversineTrafficProvider:
    return HaversineTrafficProvider(clock=lambda: START)


def test_scenario_a_visits_deadline_stop_first(traffic):
    optimizer = RouteOptimizer(traffic)
    destinations = [
        _dest("B", 37.78, -122.41),
        _dest("A", 37.77, -122.42, TimeConstraint.arrive_by(time(14, 0))),
    ]

    result = optimizer.optimize(destinations, ORIGIN, START)

    assert [stop.destination.id for stop in result.stops] == ["A", "B"]
    first, second = result.stops
    assert first.arrival_time == START + timedelta(minutes=45)
    assert first.traffic_delay_minutes == 15
    assert first.departure_time == START + timedelta(minutes=75)
    assert second.arrival_time == START + timedelta(minutes=120)
    assert result.summary.total_time_minutes == 150
    assert result.summary.total_traffic_delay_minutes == 30
    assert result.summary.algorithm == "exhaustive"
    assert result.summary.skipped_destinations == ()


def test_scenario_a_fails_when_first_leg_misses_deadline(traffic):
    optimizer = RouteOptimizer(traffic)
    destinations = [
        _dest("A", 37.77, -122.42, TimeConstraint.arrive_by(time(12, 30))),
        _dest("B", 37.78, -122.41),
    ]

    with pytest.raises(InfeasibleSchedule) as excinfo:
        optimizer.optimize(destinations, ORIGIN, START)

    violation = excinfo.value.violation
    assert violation.destination_id == "A"
    assert violation.required_time == "12:30"
    assert violation.projected_time == "12:45"
    assert violation.lateness_minutes == 15
    assert excinfo.value.status_code == 400
    assert excinfo.value.details["destination_id"] == "A"


def test_two_deadlines_that_cannot_both_be_met(traffic):
    optimizer = RouteOptimizer(traffic)
    destinations = [
        _dest("A", 37.77, -122.42, TimeConstraint.arrive_by(time(13, 0))),
        _dest("B", 37.78, -122.41, TimeConstraint.arrive_by(time(13, 0))),
    ]

    with pytest.raises(InfeasibleSchedule):
        optimizer.optimize(destinations, ORIGIN, START)


def test_unreachable_optional_stop_is_skipped(traffic):
    optimizer = RouteOptimizer(traffic)
    destinations = [
        _dest("A", 37.77, -122.42, TimeConstraint.arrive_by(time(14, 0))),
        _dest("C", 37.79, -122.40, TimeConstraint.arrive_by(time(12, 10)), required=False),
    ]

    result = optimizer.optimize(destinations, ORIGIN, START)

    assert [stop.destination.id for stop in result.stops] == ["A"]
    assert [dest.id for dest in result.summary.skipped_destinations] == ["C"]


def test_optional_stop_kept_when_it_fits(traffic):
    optimizer = RouteOptimizer(traffic)
    destinations = [
        _dest("A", 37.77, -122.42, TimeConstraint.arrive_by(time(16, 0))),
        _dest("C", 37.79, -122.40, required=False),
    ]

    result = optimizer.optimize(destinations, ORIGIN, START)

    assert sorted(stop.destination.id for stop in result.stops) == ["A", "C"]
    assert result.summary.skipped_destinations == ()


def test_optional_stop_dropped_to_protect_required_deadline(traffic):
    optimizer = RouteOptimizer(traffic)
    # Visiting C at all (either order) pushes A past 12:45 or C past its own limit.
    destinations = [
        _dest("A", 37.77, -122.42, TimeConstraint.arrive_by(time(12, 45))),
        _dest("C", 37.79, -122.40, TimeConstraint.arrive_by(time(13, 30)), required=False),
    ]

    result = optimizer.optimize(destinations, ORIGIN, START)

    assert [stop.destination.id for stop in result.stops] == ["A"]
    assert [dest.id for dest in result.summary.skipped_destinations] == ["C"]


@pytest.mark.parametrize("threshold", [1, 8])
def test_late_optional_stop_is_dropped_not_reported(traffic, threshold):
    # a-optional fits only before b-required, which would then miss 13:45.
    optimizer = RouteOptimizer(traffic, exhaustive_threshold=threshold)
    destinations = [
        _dest("a-optional", 37.77, -122.42, TimeConstraint.arrive_by(time(13, 55)), required=False),
        _dest("b-required", 37.78, -122.41, TimeConstraint.arrive_by(time(13, 45))),
    ]

    result = optimizer.optimize(destinations, ORIGIN, START)

    assert [stop.destination.id for stop in result.stops] == ["b-required"]
    assert [dest.id for dest in result.summary.skipped_destinations] == ["a-optional"]


def test_heuristic_never_keeps_a_late_optional_stop(traffic):
    optimizer = RouteOptimizer(traffic, exhaustive_threshold=2)
    destinations = [
        _dest("a", 37.77, -122.42, TimeConstraint.arrive_by(time(14, 0)), required=False),
        _dest("b", 37.78, -122.41, TimeConstraint.arrive_by(time(13, 45))),
        _dest("c", 37.79, -122.40, TimeConstraint.arrive_by(time(13, 0)), required=False),
        _dest("d", 37.76, -122.43),
    ]

    result = optimizer.optimize(destinations, ORIGIN, START)

    assert result.summary.algorithm == "heuristic"
    for stop in result.stops:
        constraint = stop.destination.time_constraint
        if constraint.at is not None:
            assert stop.arrival_time.time() <= constraint.at
    assert "b" in [stop.destination.id for stop in result.stops]


def test_depart_after_waits_at_stop(traffic):
    optimizer = RouteOptimizer(traffic)
    destinations = [_dest("B", 37.78, -122.41, TimeConstraint.depart_after(time(14, 0)))]

    result = optimizer.optimize(destinations, ORIGIN, START)

    (stop,) = result.stops
    assert stop.arrival_time == START + timedelta(minutes=45)
    assert stop.departure_time == START.replace(hour=14)
    assert stop.wait_minutes == 45
    assert result.summary.completion_time == START.replace(hour=14)


def test_visit_minutes_override_default(traffic):
    optimizer = RouteOptimizer(traffic, default_visit_minutes=10)
    destinations = [_dest("A", 37.77, -122.42, visit=5), _dest("B", 37.78, -122.41)]

    result = optimizer.optimize(destinations, ORIGIN, START)

    # 45 + 5 + 45 + 10
    assert result.summary.total_time_minutes == 105


def test_equal_times_break_ties_by_destination_id(traffic):
    optimizer = RouteOptimizer(traffic)
    forward = [_dest(did, 37.7 + index / 100, -122.4) for index, did in enumerate("abc")]

    first = optimizer.optimize(forward, ORIGIN, START)
    second = optimizer.optimize(list(reversed(forward)), ORIGIN, START)

    assert [stop.destination.id for stop in first.stops] == ["a", "b", "c"]
    assert [stop.destination.id for stop in second.stops] == ["a", "b", "c"]


def test_later_legs_use_their_own_departure_time():
    provider = _haversine()
    optimizer = RouteOptimizer(provider, time_bucket_seconds=1)
    morning = START.replace(hour=6)
    destinations = [_dest("A", 37.80, -122.27), _dest("B", 37.87, -122.27)]

    result = optimizer.optimize(destinations, ORIGIN, morning)

    first, second = result.stops
    previous = first.destination.coordinates
    expected = provider.forecast(previous, second.destination.coordinates, first.departure_time)
    assert second.travel_time_from_previous_minutes == round(
        round(expected.travel_time.current_minutes * 60) / 60, 2
    )
    at_departure = provider.forecast(previous, second.destination.coordinates, morning)
    assert expected.travel_time.current_minutes > at_departure.travel_time.current_minutes


def test_exhaustive_matches_brute_force_minimum():
    provider = _haversine()
    optimizer = RouteOptimizer(provider)
    destinations = [
        _dest("a", 37.80, -122.27),
        _dest("b", 37.33, -121.89),
        _dest("c", 37.87, -122.27),
        _dest("d", 37.55, -122.31),
        _dest("e", 37.44, -122.16),
    ]

    result = optimizer.optimize(destinations, ORIGIN, START)

    legs = LegMatrix(provider, [ORIGIN, *(d.coordinates for d in destinations)], START)
    windows = [
        VisitWindow(node=i, destination=d, visit_seconds=1800, arrive_by=None, depart_after=None, required=True)
        for i, d in enumerate(destinations, start=1)
    ]
    best = min(simulate(order, windows, legs).total_seconds for order in permutations(windows))
    assert result.summary.total_time_minutes == round(best / 60, 2)


def test_heuristic_returns_feasible_permutation():
    provider = _haversine()
    optimizer = RouteOptimizer(provider, exhaustive_threshold=6)
    destinations = [
        _dest(f"d{index:02d}", 37.70 + 0.02 * (index % 5), -122.45 + 0.03 * (index // 5))
        for index in range(12)
    ]
    destinations[3] = _dest("d03", 37.76, -122.42, TimeConstraint.arrive_by(time(13, 0)))
    destinations[8] = _dest("d08", 37.73, -122.40, TimeConstraint.depart_after(time(15, 0)))

    result = optimizer.optimize(destinations, ORIGIN, START)

    ids = [stop.destination.id for stop in result.stops]
    assert sorted(ids) == sorted(dest.id for dest in destinations)
    assert [stop.order for stop in result.stops] == list(range(1, 13))
    arrivals = [stop.arrival_time for stop in result.stops]
    assert arrivals == sorted(arrivals)
    by_id = {stop.destination.id: stop for stop in result.stops}
    assert by_id["d03"].arrival_time <= START.replace(hour=13)
    assert by_id["d08"].departure_time >= START.replace(hour=15)
    assert result.summary.algorithm == "heuristic"


def test_heuristic_is_deterministic():
    destinations = [
        _dest(f"d{index:02d}", 37.70 + 0.013 * index, -122.45 + 0.007 * (index % 4))
        for index in range(10)
    ]
    first = RouteOptimizer(_haversine(), exhaustive_threshold=5).optimize(destinations, ORIGIN, START)
    second = RouteOptimizer(_haversine(), exhaustive_threshold=5).optimize(destinations, ORIGIN, START)

    assert [s.destination.id for s in first.stops] == [s.destination.id for s in second.stops]
    assert first.summary == second.summary


def test_constraints_are_local_to_the_timezone(traffic):
    optimizer = RouteOptimizer(traffic)
    departure = datetime(2026, 3, 2, 12, 0, tzinfo=timezone(timedelta(hours=-5)))
    reachable = [_dest("A", 37.77, -122.42, TimeConstraint.arrive_by(time(13, 0)))]

    result = optimizer.optimize(reachable, ORIGIN, departure, timezone="America/New_York")

    assert result.stops[0].arrival_time.hour == 12
    assert result.stops[0].arrival_time.minute == 45
    with pytest.raises(InfeasibleSchedule):
        optimizer.optimize(
            [_dest("A", 37.77, -122.42, TimeConstraint.arrive_by(time(12, 30)))],
            ORIGIN,
            departure,
            timezone="America/New_York",
        )


@pytest.mark.parametrize(
    "destinations",
    [
        [],
        [Destination(id="x", name="Nowhere")],
        [_dest("dup", 37.7, -122.4), _dest("dup", 37.8, -122.4)],
    ],
)
def test_invalid_inputs(traffic, destinations):
    with pytest.raises(InvalidRequest):
        RouteOptimizer(traffic).optimize(destinations, ORIGIN, START)


def test_too_many_destinations(traffic):
    destinations = [_dest(str(index), 37.7, -122.4 + index / 100) for index in range(4)]
    with pytest.raises(InvalidRequest):
        RouteOptimizer(traffic, max_destinations=3).optimize(destinations, ORIGIN, START)


def test_polyline_prefers_provider_geometry(traffic):
    road = encode_polyline([(ORIGIN.lat, ORIGIN.lon), (37.768, -122.425), (37.77, -122.42)])
    traffic.geometry = road
    result = RouteOptimizer(traffic).optimize([_dest("A", 37.77, -122.42)], ORIGIN, START)
    assert result.polyline == road


@pytest.mark.parametrize("geometry", ["_p~iF~ps|U_", "not a polyline", "_p~iF"])
def test_malformed_provider_geometry_is_replaced(traffic, geometry):
    traffic.geometry = geometry
    result = RouteOptimizer(traffic).optimize([_dest("A", 37.77, -122.42)], ORIGIN, START)
    assert result.polyline == encode_polyline([(ORIGIN.lat, ORIGIN.lon), (37.77, -122.42)])


def test_polyline_falls_back_to_straight_segments(traffic):
    class NoGeometry(type(traffic)):
        def route_geometry(self, points, preferences=None):
            raise UpstreamUnavailable("down", service="stub")

    destination = _dest("A", 37.77, -122.42)
    result = RouteOptimizer(NoGeometry()).optimize([destination], ORIGIN, START)

    assert result.polyline == encode_polyline([(ORIGIN.lat, ORIGIN.lon), (37.77, -122.42)])


def test_traffic_failure_propagates(traffic):
    class Broken(type(traffic)):
        def forecast(self, *args, **kwargs):
            raise UpstreamUnavailable("boom", service="stub")

    with pytest.raises(UpstreamUnavailable):
        RouteOptimizer(Broken()).optimize([_dest("A", 37.77, -122.42)], ORIGIN, START)


def test_slow_traffic_lookups_time_out(traffic):
    class Slow(type(traffic)):
        def forecast(self, *args, **kwargs):
            time_module.sleep(0.5)
            return super().forecast(*args, **kwargs)

    optimizer = RouteOptimizer(Slow(), prefetch_timeout=0.05)

    with pytest.raises(UpstreamUnavailable) as excinfo:
        optimizer.optimize([_dest("A", 37.77, -122.42)], ORIGIN, START)
    assert excinfo.value.status_code == 504
    assert excinfo.value.code == "UPSTREAM_TIMEOUT"
