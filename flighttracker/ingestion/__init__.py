"""
Data ingestion module for FlightTracker.

Handles polling AviationStack and OpenSky, merging both into flight
records, and the periodic refresh job that keeps tracked flights current.
"""

from flighttracker.ingestion.aircraft_map import AircraftMap
from flighttracker.ingestion.opensky_client import OpenSkyClient, StateVector
from flighttracker.ingestion.refresh import (
    FlightRefresher,
    FlightRefreshResult,
    RefreshOutcome,
    user_message,
)
from flighttracker.ingestion.scheduler import (
    RefreshScheduler,
    RunOutcome,
    SchedulerState,
    check_connectivity,
)

__all__ = [
    'AircraftMap',
    'OpenSkyClient',
    'StateVector',
    'FlightRefresher',
    'FlightRefreshResult',
    'RefreshOutcome',
    'user_message',
    'RefreshScheduler',
    'RunOutcome',
    'SchedulerState',
    'check_connectivity',
]
