"""Schedule parser adapters."""

from .base import ParsedSchedule, ScheduleParser
from .geocoder import GeocodeResult, Geocoder, NominatimGeocoder
from .http_parser import HttpScheduleParser
from .rule_based import RuleBasedScheduleParser

__all__ = [
    "ParsedSchedule",
    "ScheduleParser",
    "GeocodeResult",
    "Geocoder",
    "NominatimGeocoder",
    "HttpScheduleParser",
    "RuleBasedScheduleParser",
]
