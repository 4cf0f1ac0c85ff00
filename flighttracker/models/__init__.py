"""
Database models for FlightTracker.

Two tables:
1. flights - one current row per tracked flight number (upsert)
2. status_changes - append-only log of status transitions
"""

from flighttracker.models.base import (
    Base,
    engine,
    SessionLocal,
    create_db_engine,
    make_session_factory,
    init_db,
    get_session,
)
from flighttracker.models.flight import TrackedFlight
from flighttracker.models.status_change import StatusChange

__all__ = [
    'Base',
    'engine',
    'SessionLocal',
    'create_db_engine',
    'make_session_factory',
    'init_db',
    'get_session',
    'TrackedFlight',
    'StatusChange',
]
