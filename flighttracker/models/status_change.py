"""
StatusChange model - append-only log of flight status transitions.

Rows are only inserted, never updated. They are deleted only by an
explicit history clear.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Integer, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column

from flighttracker.models.base import Base
from flighttracker.models.flight import from_db_time, to_db_time
from flighttracker.records import FlightStatus, StatusChangeEvent


class StatusChange(Base):
    """One status transition of one flight."""

    __tablename__ = 'status_changes'

    # Surrogate key; insertion order breaks timestamp ties
    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )

    # Not a foreign key: history outlives a deleted flight
    flight_number: Mapped[str] = mapped_column(String(16), nullable=False)

    airline: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    previous_status: Mapped[str] = mapped_column(String(16), nullable=False)
    new_status: Mapped[str] = mapped_column(String(16), nullable=False)

    timestamp: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        comment='When the change was observed (UTC)'
    )

    __table_args__ = (
        # Most-recent-first history queries
        Index('ix_status_changes_timestamp', 'timestamp'),
        Index('ix_status_changes_flight', 'flight_number', 'timestamp'),
    )

    def __repr__(self) -> str:
        return f'<StatusChange {self.flight_number} {self.previous_status}->{self.new_status}>'

    @classmethod
    def from_event(cls, event: StatusChangeEvent) -> 'StatusChange':
        return cls(
            flight_number=event.flight_number,
            airline=event.airline,
            previous_status=event.previous_status.value,
            new_status=event.new_status.value,
            timestamp=to_db_time(event.timestamp),
        )

    def to_event(self) -> StatusChangeEvent:
        return StatusChangeEvent(
            id=self.id,
            flight_number=self.flight_number,
            airline=self.airline,
            previous_status=FlightStatus.from_provider(self.previous_status),
            new_status=FlightStatus.from_provider(self.new_status),
            timestamp=from_db_time(self.timestamp),
        )
