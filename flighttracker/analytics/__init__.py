"""
Analytics module for FlightTracker.

Aggregates stored flight history with NumPy:
- Average flight duration per route
- Duration spread (std, min, max)
"""

from flighttracker.analytics.route_stats import (
    RouteStats,
    compute_route_stats,
    route_durations,
)

__all__ = [
    'RouteStats',
    'compute_route_stats',
    'route_durations',
]
