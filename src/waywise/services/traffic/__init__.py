"""Traffic provider adapters."""

from .base import CongestionModel, TrafficProvider, classify_conditions
from .haversine import HaversineTrafficProvider
from .osrm import OSRMTrafficProvider

__all__ = [
    "CongestionModel",
    "TrafficProvider",
    "classify_conditions",
    "HaversineTrafficProvider",
    "OSRMTrafficProvider",
]
