"""Route group exports."""

from . import auth, health, routes, schedules, traffic

__all__ = ["auth", "health", "routes", "schedules", "traffic"]
