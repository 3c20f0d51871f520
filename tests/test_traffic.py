from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import httpx
import pytest

from waywise.errors import UpstreamUnavailable
from waywise.models.domain import Coordinates, RoutePreferences
from waywise.services.traffic import (
    CongestionModel,
    HaversineTrafficProvider,
    OSRMTrafficProvider,
    classify_conditions,
)

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)  # Monday
SF = Coordinates(37.7749, -122.4194)
OAKLAND = Coordinates(37.8044, -122.2712)


@pytest.mark.parametrize(
    "factor, label",
    [(1.0, "light"), (1.09, "light"), (1.1, "moderate"), (1.3, "heavy"), (1.59, "heavy"), (1.6, "severe")],
)
def test_classify_conditions(factor, label):
    assert classify_conditions(factor) == label


def test_congestion_factor_interpolates_and_respects_weekends():
    model = CongestionModel()
    assert model.factor_at(NOW.replace(hour=17)) == pytest.approx(1.60)
    assert model.factor_at(NOW.replace(hour=17, minute=30)) == pytest.approx(1.575)
    saturday = NOW + timedelta(days=5)
    assert model.factor_at(saturday.replace(hour=8)) == pytest.approx(1.05)


def test_congestion_uses_local_wall_clock():
    model = CongestionModel(local_timezone=ZoneInfo("America/New_York"))
    # 22:00 UTC on a Monday is 17:00 in New York.
    assert model.factor_at(NOW.replace(hour=22)) == pytest.approx(1.60)


def test_confidence_decays_with_lead_time():
    assert CongestionModel.confidence_for(0) == 0.9
    assert CongestionModel.confidence_for(3600) == 0.9
    assert CongestionModel.confidence_for(7 * 24 * 3600) == 0.5
    assert 0.5 < CongestionModel.confidence_for(48 * 3600) < 0.9


def test_haversine_forecast_stats():
    provider = HaversineTrafficProvider(clock=lambda: NOW)
    forecast = provider.forecast(SF, OAKLAND, NOW.replace(hour=17))

    travel = forecast.travel_time
    assert travel.current_minutes == pytest.approx(travel.best_case_minutes * 1.6)
    assert travel.typical_minutes == travel.current_minutes
    assert travel.worst_case_minutes == pytest.approx(travel.current_minutes * 1.35)
    assert forecast.delay_minutes == pytest.approx(travel.current_minutes - travel.best_case_minutes)
    assert forecast.traffic_conditions == "severe"
    assert forecast.distance_meters > 15000
    assert forecast.retrieved_at == NOW
    assert forecast.confidence < 0.9


def test_haversine_preferences_slow_the_leg():
    provider = HaversineTrafficProvider()
    base, _ = provider.free_flow(SF, OAKLAND)
    avoiding, _ = provider.free_flow(SF, OAKLAND, RoutePreferences(avoid_tolls=True, avoid_highways=True))
    assert avoiding == pytest.approx(base * 1.15 * 1.05)


def _osrm(handler, **kwargs) -> OSRMTrafficProvider:
    return OSRMTrafficProvider(
        "http://osrm.test",
        backoff_seconds=0,
        clock=lambda: NOW,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def test_osrm_forecast_uses_route_duration_and_memoizes():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"code": "Ok", "routes": [{"duration": 900.0, "distance": 12000.0}]})

    provider = _osrm(handler)
    first = provider.forecast(SF, OAKLAND, NOW.replace(hour=3))
    second = provider.forecast(SF, OAKLAND, NOW.replace(hour=17))

    assert len(requests) == 1
    assert requests[0].url.path == "/route/v1/driving/-122.4194,37.7749;-122.2712,37.8044"
    assert first.travel_time.best_case_minutes == pytest.approx(15.0)
    assert first.distance_meters == 12000.0
    assert second.travel_time.current_minutes == pytest.approx(24.0)


def test_osrm_passes_exclusions():
    seen = {}

    def handler(request):
        seen["exclude"] = request.url.params.get("exclude")
        return httpx.Response(200, json={"code": "Ok", "routes": [{"duration": 60, "distance": 100}]})

    _osrm(handler).forecast(SF, OAKLAND, NOW, RoutePreferences(avoid_tolls=True, avoid_highways=True))
    assert seen["exclude"] == "motorway,toll"


def test_osrm_retries_server_errors():
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) < 3:
            return httpx.Response(502)
        return httpx.Response(200, json={"code": "Ok", "routes": [{"duration": 60, "distance": 100}]})

    forecast = _osrm(handler, max_retries=2).forecast(SF, OAKLAND, NOW)
    assert len(calls) == 3
    assert forecast.distance_meters == 100


def test_osrm_gives_up_after_retries():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(UpstreamUnavailable) as excinfo:
        _osrm(handler, max_retries=1).forecast(SF, OAKLAND, NOW)
    assert excinfo.value.status_code == 502


def test_osrm_timeout_maps_to_upstream_timeout():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(UpstreamUnavailable) as excinfo:
        _osrm(handler, max_retries=0).forecast(SF, OAKLAND, NOW)
    assert excinfo.value.code == "UPSTREAM_TIMEOUT"


@pytest.mark.parametrize(
    "payload",
    [
        {"code": "NoRoute", "message": "Impossible route"},
        {"code": "Ok", "routes": [{"duration": "n/a"}]},
        ["not", "an", "object"],
    ],
)
def test_osrm_bad_answers_are_upstream_errors(payload):
    provider = _osrm(lambda request: httpx.Response(200, json=payload))
    with pytest.raises(UpstreamUnavailable):
        provider.forecast(SF, OAKLAND, NOW)


def test_osrm_route_geometry():
    def handler(request):
        assert request.url.params["overview"] == "full"
        return httpx.Response(
            200,
            json={"code": "Ok", "routes": [{"duration": 60, "distance": 100, "geometry": "_p~iF~ps|U"}]},
        )

    assert _osrm(handler).route_geometry([SF, OAKLAND]) == "_p~iF~ps|U"


def test_osrm_health_probe():
    assert _osrm(lambda request: httpx.Response(200, json={"code": "Ok"})).check_health() is True
    assert _osrm(lambda request: httpx.Response(500)).check_health() is False
