"""
Domain records shared by the source clients, the merger and the store.

All records are immutable. A refresh never edits a FlightRecord in place;
it builds a new one with dataclasses.replace().
"""

from dataclasses import dataclass, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class FlightStatus(str, Enum):
    """
    Flight status as tracked by the store.

    Provider statuses outside this set (incident, diverted, ...) map to UNKNOWN.
    ERROR marks a record carried forward after both sources failed.
    """
    SCHEDULED = 'scheduled'
    ACTIVE = 'active'
    LANDED = 'landed'
    CANCELLED = 'cancelled'
    ERROR = 'error'
    UNKNOWN = 'unknown'

    @classmethod
    def from_provider(cls, value: Optional[str]) -> 'FlightStatus':
        if not value:
            return cls.UNKNOWN
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.UNKNOWN


def normalize_flight_number(flight_number: str) -> str:
    """'aa 100' -> 'AA100'"""
    return ''.join((flight_number or '').split()).upper()


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp into an aware UTC datetime.

    Accepts a trailing 'Z'. Naive values are assumed to be UTC.
    Returns None for empty or unparsable input.
    """
    if not value:
        return None
    text = value.strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PositionSnapshot:
    """
    Aircraft position and velocity at a point in time.

    A reading from a provider may leave any field unset. A snapshot attached
    to a stored FlightRecord always has both coordinates.
    """
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    altitude: Optional[int] = None      # meters
    heading: Optional[int] = None       # degrees, 0-359
    ground_speed: Optional[int] = None  # km/h
    captured_at: Optional[datetime] = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def overlay(self, update: Optional['PositionSnapshot']) -> 'PositionSnapshot':
        """
        Return a new snapshot where every field `update` supplies wins,
        and every field it leaves unset keeps this snapshot's value.
        """
        if update is None:
            return self
        values = {}
        for f in fields(self):
            newer = getattr(update, f.name)
            values[f.name] = newer if newer is not None else getattr(self, f.name)
        return PositionSnapshot(**values)


@dataclass(frozen=True)
class ScheduleData:
    """Schedule/status data for one flight as reported by the schedule source."""
    flight_number: str
    airline: Optional[str] = None
    departure_airport: Optional[str] = None
    arrival_airport: Optional[str] = None
    scheduled_departure: Optional[str] = None
    scheduled_arrival: Optional[str] = None
    actual_departure: Optional[str] = None
    actual_arrival: Optional[str] = None
    delay: Optional[int] = None
    status: Optional[str] = None

    # Live telemetry the schedule provider sometimes carries itself
    live: Optional[PositionSnapshot] = None

    @property
    def live_updated(self) -> Optional[datetime]:
        return self.live.captured_at if self.live else None


@dataclass(frozen=True)
class FlightRecord:
    """Current known state of one tracked flight, keyed by flight number."""
    flight_number: str
    airline: Optional[str] = None
    departure_airport: Optional[str] = None
    arrival_airport: Optional[str] = None
    scheduled_departure: Optional[str] = None
    scheduled_arrival: Optional[str] = None
    actual_departure: Optional[str] = None
    actual_arrival: Optional[str] = None
    status: FlightStatus = FlightStatus.UNKNOWN
    delay: Optional[int] = None
    position: Optional[PositionSnapshot] = None
    last_updated: Optional[datetime] = None

    @property
    def departure_time(self) -> Optional[datetime]:
        """Actual departure when known, scheduled otherwise."""
        return parse_timestamp(self.actual_departure) or parse_timestamp(self.scheduled_departure)

    @property
    def arrival_time(self) -> Optional[datetime]:
        """Actual arrival when known, scheduled otherwise."""
        return parse_timestamp(self.actual_arrival) or parse_timestamp(self.scheduled_arrival)

    @property
    def duration_minutes(self) -> Optional[float]:
        start, end = self.departure_time, self.arrival_time
        if start is None or end is None:
            return None
        return (end - start).total_seconds() / 60

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict for API responses."""
        position = None
        if self.position is not None:
            position = {
                'latitude': self.position.latitude,
                'longitude': self.position.longitude,
                'altitude_m': self.position.altitude,
                'heading': self.position.heading,
                'ground_speed_kmh': self.position.ground_speed,
                'captured_at': self.position.captured_at.isoformat() if self.position.captured_at else None,
            }
        return {
            'flight_number': self.flight_number,
            'airline': self.airline,
            'departure': {
                'airport': self.departure_airport,
                'scheduled': self.scheduled_departure,
                'actual': self.actual_departure,
            },
            'arrival': {
                'airport': self.arrival_airport,
                'scheduled': self.scheduled_arrival,
                'actual': self.actual_arrival,
            },
            'status': self.status.value,
            'delay_minutes': self.delay,
            'position': position,
            'last_updated': self.last_updated.isoformat() if self.last_updated else None,
        }


@dataclass(frozen=True)
class StatusChangeEvent:
    """Append-only log entry written when a flight's stored status changes."""
    flight_number: str
    airline: Optional[str]
    previous_status: FlightStatus
    new_status: FlightStatus
    timestamp: datetime
    id: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'flight_number': self.flight_number,
            'airline': self.airline,
            'previous_status': self.previous_status.value,
            'new_status': self.new_status.value,
            'timestamp': self.timestamp.isoformat(),
        }
