import pytest

from waywise.services.geospatial import decode_polyline, encode_polyline, haversine_km


def test_haversine_known_distance():
    # San Francisco to Los Angeles
    assert haversine_km(37.7749, -122.4194, 34.0522, -118.2437) == pytest.approx(559, abs=2)


def test_haversine_zero_for_same_point():
    assert haversine_km(21.5, 39.2, 21.5, 39.2) == 0


def test_encode_polyline_reference_example():
    points = [(38.5, -120.2), (40.7, -120.95), (43.252, -126.453)]
    assert encode_polyline(points) == "_p~iF~ps|U_ulLnnqC_mqNvxq`@"


def test_decode_polyline_reference_example():
    decoded = decode_polyline("_p~iF~ps|U_ulLnnqC_mqNvxq`@")
    assert decoded == [pytest.approx(p) for p in [(38.5, -120.2), (40.7, -120.95), (43.252, -126.453)]]


def test_empty_polyline():
    assert encode_polyline([]) == ""
    assert decode_polyline("") == []


@pytest.mark.parametrize("polyline", ["_p~iF~ps|U_", "_p~iF", "abc def"])
def test_decode_rejects_malformed_polyline(polyline):
    with pytest.raises(ValueError):
        decode_polyline(polyline)
