"""
API module for FlightTracker.

Provides REST endpoints for:
- Tracked flights (list, lookup, search, delete)
- Route listings and average durations
- Status change history
- Refresh control and system status
"""

from flighttracker.api.flights import flights_bp
from flighttracker.api.history import history_bp
from flighttracker.api.routes import routes_bp
from flighttracker.api.status import status_bp

__all__ = ['flights_bp', 'history_bp', 'routes_bp', 'status_bp']
