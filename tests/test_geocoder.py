import pytest
from geopy.exc import GeocoderTimedOut, GeocoderUnavailable
from geopy.location import Location

from waywise.errors import UpstreamUnavailable
from waywise.services.parsing import NominatimGeocoder


class FakeGeolocator:
    def __init__(self, answers: dict) -> None:
        self.answers = answers
        self.queries = []

    def geocode(self, query, exactly_one=True):
        self.queries.append(query)
        answer = self.answers.get(query)
        if isinstance(answer, Exception):
            raise answer
        return answer


def _geocoder(answers: dict, **kwargs) -> NominatimGeocoder:
    options = {"min_delay_seconds": 0, "max_retries": 0, "error_wait_seconds": 0}
    options.update(kwargs)
    return NominatimGeocoder("https://nominatim.test", geolocator=FakeGeolocator(answers), **options)


def test_lookup_returns_coordinates_and_address():
    geocoder = _geocoder(
        {"dentist": Location("Main St Dental, San Francisco", (37.7749, -122.4194), {})}
    )

    result = geocoder.lookup("  dentist ")

    assert result.coordinates.lat == pytest.approx(37.7749)
    assert result.coordinates.lon == pytest.approx(-122.4194)
    assert result.address == "Main St Dental, San Francisco"
    assert geocoder.geolocator.queries == ["dentist"]


def test_lookup_without_match_returns_none():
    geocoder = _geocoder({})
    assert geocoder.lookup("moon base") is None
    assert geocoder.lookup("   ") is None
    assert geocoder.geolocator.queries == ["moon base"]


def test_timeout_maps_to_upstream_timeout():
    geocoder = _geocoder({"dentist": GeocoderTimedOut("slow")})

    with pytest.raises(UpstreamUnavailable) as excinfo:
        geocoder.lookup("dentist")

    assert excinfo.value.status_code == 504
    assert excinfo.value.code == "UPSTREAM_TIMEOUT"
    assert excinfo.value.details == {"service": "nominatim", "retryable": True}


def test_unavailable_maps_to_upstream_unavailable():
    geocoder = _geocoder({"dentist": GeocoderUnavailable("down")})

    with pytest.raises(UpstreamUnavailable) as excinfo:
        geocoder.lookup("dentist")

    assert excinfo.value.status_code == 502
    assert excinfo.value.code == "UPSTREAM_UNAVAILABLE"


def test_transient_failures_are_retried():
    class FlakyGeolocator(FakeGeolocator):
        def geocode(self, query, exactly_one=True):
            self.queries.append(query)
            if len(self.queries) == 1:
                raise GeocoderUnavailable("blip")
            return Location("Grocery", (37.78, -122.41), {})

    geocoder = NominatimGeocoder(
        "https://nominatim.test",
        geolocator=FlakyGeolocator({}),
        min_delay_seconds=0,
        max_retries=1,
        error_wait_seconds=0,
    )

    assert geocoder.lookup("grocery").address == "Grocery"
    assert geocoder.geolocator.queries == ["grocery", "grocery"]


def test_builds_nominatim_client_from_base_url():
    geocoder = NominatimGeocoder("http://localhost:8080/nominatim/", user_agent="waywise-tests")
    geocoder._get_geocoder()

    assert geocoder.geolocator.domain == "localhost:8080/nominatim"
    assert geocoder.geolocator.scheme == "http"
