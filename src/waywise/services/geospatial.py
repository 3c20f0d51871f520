"""Geospatial helper functions."""

from __future__ import annotations

import math
from typing import Sequence

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def _encode_value(value: int) -> str:
    value = ~(value << 1) if value < 0 else value << 1
    chunks = []
    while value >= 0x20:
        chunks.append(chr((0x20 | (value & 0x1F)) + 63))
        value >>= 5
    chunks.append(chr(value + 63))
    return "".join(chunks)


def encode_polyline(coordinates: Sequence[tuple[float, float]]) -> str:
    """Encode (lat, lon) pairs with Google's polyline algorithm (precision 5)."""
    encoded = []
    prev_lat = 0
    prev_lon = 0
    for lat, lon in coordinates:
        lat_e5 = int(round(lat * 1e5))
        lon_e5 = int(round(lon * 1e5))
        encoded.append(_encode_value(lat_e5 - prev_lat))
        encoded.append(_encode_value(lon_e5 - prev_lon))
        prev_lat, prev_lon = lat_e5, lon_e5
    return "".join(encoded)


def decode_polyline(polyline: str) -> list[tuple[float, float]]:
    """Decode Google polyline string to list of (lat, lon) coordinates.

    Raises ValueError for truncated input or characters outside the encoding.
    """
    coordinates = []
    index = 0
    lat = 0
    lon = 0

    while index < len(polyline):
        deltas = []
        for _ in range(2):
            shift = 0
            result = 0
            while True:
                if index >= len(polyline):
                    raise ValueError("Truncated polyline")
                b = ord(polyline[index]) - 63
                if not 0 <= b < 64:
                    raise ValueError(f"Invalid polyline character at position {index}")
                index += 1
                result |= (b & 0x1F) << shift
                shift += 5
                if b < 0x20:
                    break
            deltas.append(~(result >> 1) if (result & 1) else (result >> 1))
        lat += deltas[0]
        lon += deltas[1]
        coordinates.append((lat / 1e5, lon / 1e5))

    return coordinates
