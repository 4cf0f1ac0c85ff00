"""
Demonstration dataset.

Seeds a handful of current flights plus landed historical flights so the
route-average view has data on a fresh install. Only used when
SEED_DEMO_FLIGHTS=1 and nothing is tracked yet; never part of a normal
refresh.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from flighttracker.records import FlightRecord, FlightStatus, PositionSnapshot, utcnow
from flighttracker.store import TrackingStore

logger = logging.getLogger(__name__)

HOUR = 3600
DAY = 24 * HOUR


def _iso(value: datetime) -> str:
    return value.isoformat()


def _flight(
    now: datetime,
    flight_number: str,
    airline: str,
    route: tuple,
    departs_in: int,
    duration: int,
    status: FlightStatus,
    delay: Optional[int] = None,
    departed_late: Optional[int] = None,
    arrived_late: Optional[int] = None,
    position: Optional[tuple] = None,
) -> FlightRecord:
    """
    Build one demo flight. Offsets are in seconds relative to `now`.

    departed_late/arrived_late (seconds) set actual times relative to the
    scheduled ones; None leaves the actual time unknown.
    """
    scheduled_departure = now + timedelta(seconds=departs_in)
    scheduled_arrival = scheduled_departure + timedelta(seconds=duration)

    actual_departure = None
    if departed_late is not None:
        actual_departure = _iso(scheduled_departure + timedelta(seconds=departed_late))
    actual_arrival = None
    if arrived_late is not None:
        actual_arrival = _iso(scheduled_arrival + timedelta(seconds=arrived_late))

    snapshot = None
    if position is not None:
        lat, lon, altitude, heading, speed = position
        snapshot = PositionSnapshot(lat, lon, altitude, heading, speed, now)

    return FlightRecord(
        flight_number=flight_number,
        airline=airline,
        departure_airport=route[0],
        arrival_airport=route[1],
        scheduled_departure=_iso(scheduled_departure),
        scheduled_arrival=_iso(scheduled_arrival),
        actual_departure=actual_departure,
        actual_arrival=actual_arrival,
        status=status,
        delay=delay,
        position=snapshot,
        last_updated=now,
    )


def demo_flights(now: Optional[datetime] = None) -> List[FlightRecord]:
    """Current demo flights followed by historical ones."""
    now = now or utcnow()
    landed = FlightStatus.LANDED

    current = [
        _flight(now, 'AA100', 'American Airlines', ('JFK', 'LAX'), HOUR, 6 * HOUR,
                FlightStatus.SCHEDULED, position=(40.6413, -73.7781, 0, 270, 0)),
        _flight(now, 'UA201', 'United Airlines', ('SFO', 'ORD'), 1800, 4 * HOUR,
                FlightStatus.SCHEDULED, delay=15, position=(37.6188, -122.3759, 0, 90, 0)),
        _flight(now, 'DL303', 'Delta Air Lines', ('ATL', 'SEA'), -1800, 5 * HOUR,
                FlightStatus.ACTIVE, delay=0, departed_late=0,
                position=(36.9265, -89.4966, 10668, 315, 850)),
        _flight(now, 'BA112', 'British Airways', ('LHR', 'JFK'), -7 * HOUR, 6 * HOUR,
                landed, delay=25, departed_late=0, arrived_late=1500,
                position=(40.6413, -73.7781, 0, 0, 0)),
        _flight(now, 'EK203', 'Emirates', ('DXB', 'JFK'), 2 * HOUR, 14 * HOUR,
                FlightStatus.CANCELLED),
        _flight(now, 'AF1180', 'Air France', ('CDG', 'FCO'), -2 * HOUR, 2 * HOUR + 1800,
                FlightStatus.ACTIVE, delay=0, departed_late=0,
                position=(44.4056, 8.8463, 11582, 135, 780)),
        _flight(now, 'LH438', 'Lufthansa', ('MUC', 'BOS'), -4 * HOUR, 7 * HOUR,
                FlightStatus.ACTIVE, delay=20, departed_late=1200,
                position=(52.3105, -32.7684, 12192, 290, 870)),
        _flight(now, 'SQ321', 'Singapore Airlines', ('SIN', 'LHR'), -10 * HOUR, 12 * HOUR,
                FlightStatus.ACTIVE, delay=-15, departed_late=-900,
                position=(52.5123, 14.3875, 11277, 290, 910)),
    ]

    historical = [
        _flight(now, 'AA102', 'American Airlines', ('JFK', 'LAX'), -10 * DAY, 6 * HOUR,
                landed, delay=10, departed_late=0, arrived_late=600),
        _flight(now, 'AA104', 'American Airlines', ('JFK', 'LAX'), -8 * DAY, 6 * HOUR + 1200,
                landed, delay=0, departed_late=0, arrived_late=0),
        _flight(now, 'BA178', 'British Airways', ('LHR', 'JFK'), -12 * DAY, 8 * HOUR,
                landed, delay=30, departed_late=0, arrived_late=1800),
        _flight(now, 'UA205', 'United Airlines', ('SFO', 'ORD'), -7 * DAY, 4 * HOUR,
                landed, delay=0, departed_late=0, arrived_late=0),
        _flight(now, 'UA207', 'United Airlines', ('SFO', 'ORD'), -3 * DAY, 4 * HOUR + 900,
                landed, delay=20, departed_late=0, arrived_late=1200),
        _flight(now, 'AF1182', 'Air France', ('CDG', 'FCO'), -9 * DAY, 2 * HOUR,
                landed, delay=-15, departed_late=0, arrived_late=-900),
    ]

    return current + historical


def seed_demo_flights(store: TrackingStore, now: Optional[datetime] = None) -> int:
    """Write the demo dataset. Returns number of flights written."""
    flights = demo_flights(now)
    for flight in flights:
        store.upsert(flight)
    logger.info(f'Seeded {len(flights)} demo flights')
    return len(flights)
