"""
TrackedFlight model - current record of each tracked flight.

One row per flight number, replaced on every refresh (upsert pattern).
Position columns are either all populated from one snapshot or all NULL
for latitude/longitude; the store never writes half a coordinate pair.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import String, Float, Integer, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column

from flighttracker.models.base import Base
from flighttracker.records import FlightRecord, FlightStatus, PositionSnapshot


def to_db_time(value: Optional[datetime]) -> Optional[datetime]:
    """Aware datetime -> naive UTC for storage."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def from_db_time(value: Optional[datetime]) -> Optional[datetime]:
    """Naive UTC from storage -> aware datetime."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


class TrackedFlight(Base):
    """
    Stored state of a tracked flight.

    Scheduled/actual times are kept as the ISO-8601 strings the schedule
    provider returned; last_updated is a real timestamp so the list view
    can order by it.
    """

    __tablename__ = 'flights'

    flight_number: Mapped[str] = mapped_column(
        String(16),
        primary_key=True,
        comment='Flight number (e.g., AA100)'
    )

    airline: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Route
    departure_airport: Mapped[Optional[str]] = mapped_column(
        String(8),
        nullable=True,
        comment='Departure IATA code'
    )

    arrival_airport: Mapped[Optional[str]] = mapped_column(
        String(8),
        nullable=True,
        comment='Arrival IATA code'
    )

    # Schedule (ISO-8601)
    scheduled_departure: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    scheduled_arrival: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    actual_departure: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    actual_arrival: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)

    status: Mapped[str] = mapped_column(
        String(16),
        default=FlightStatus.UNKNOWN.value,
        comment='scheduled/active/landed/cancelled/error/unknown'
    )

    delay: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment='Delay in minutes (negative = early)'
    )

    # Position (WGS84)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    altitude: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment='Altitude in meters'
    )

    heading: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment='Heading in degrees (0-359)'
    )

    ground_speed: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment='Ground speed in km/h'
    )

    position_time: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        nullable=True,
        comment='When the position was captured (UTC)'
    )

    last_updated: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        nullable=True,
        index=True,
        comment='Last refresh timestamp (UTC)'
    )

    __table_args__ = (
        # Route queries and average duration
        Index('ix_flights_route', 'departure_airport', 'arrival_airport'),
    )

    def __repr__(self) -> str:
        return f'<TrackedFlight {self.flight_number} {self.status}>'

    def apply(self, record: FlightRecord) -> None:
        """Overwrite every column from a record (full replacement)."""
        self.flight_number = record.flight_number
        self.airline = record.airline
        self.departure_airport = record.departure_airport
        self.arrival_airport = record.arrival_airport
        self.scheduled_departure = record.scheduled_departure
        self.scheduled_arrival = record.scheduled_arrival
        self.actual_departure = record.actual_departure
        self.actual_arrival = record.actual_arrival
        self.status = record.status.value
        self.delay = record.delay

        position = record.position if record.position and record.position.has_coordinates else None
        self.latitude = position.latitude if position else None
        self.longitude = position.longitude if position else None
        self.altitude = position.altitude if position else None
        self.heading = position.heading if position else None
        self.ground_speed = position.ground_speed if position else None
        self.position_time = to_db_time(position.captured_at) if position else None

        self.last_updated = to_db_time(record.last_updated)

    @classmethod
    def from_record(cls, record: FlightRecord) -> 'TrackedFlight':
        row = cls()
        row.apply(record)
        return row

    def to_record(self) -> FlightRecord:
        position = None
        if self.latitude is not None and self.longitude is not None:
            position = PositionSnapshot(
                latitude=self.latitude,
                longitude=self.longitude,
                altitude=self.altitude,
                heading=self.heading,
                ground_speed=self.ground_speed,
                captured_at=from_db_time(self.position_time),
            )

        return FlightRecord(
            flight_number=self.flight_number,
            airline=self.airline,
            departure_airport=self.departure_airport,
            arrival_airport=self.arrival_airport,
            scheduled_departure=self.scheduled_departure,
            scheduled_arrival=self.scheduled_arrival,
            actual_departure=self.actual_departure,
            actual_arrival=self.actual_arrival,
            status=FlightStatus.from_provider(self.status),
            delay=self.delay,
            position=position,
            last_updated=from_db_time(self.last_updated),
        )
