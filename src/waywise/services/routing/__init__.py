"""Route optimisation."""

from .legs import LegMatrix
from .optimizer import OptimizedRoute, RouteOptimizer
from .steps import RouteStep, build_route_steps

__all__ = [
    "LegMatrix",
    "OptimizedRoute",
    "RouteOptimizer",
    "RouteStep",
    "build_route_steps",
]
