"""
Flight record merger - reconciles schedule data and live position data.

The two sources overlap only partially and are individually unreliable:
- AviationStack knows the schedule, status and delay, and sometimes carries
  a live position hint of its own
- OpenSky knows where the aircraft is right now, but nothing else

Merge rules:
1. Neither source has data -> None (nothing is written)
2. Position only -> keep what we already know about the flight (if anything),
   mark it active, attach the position. Unknown fields stay None; nothing
   is fabricated.
3. Schedule present -> record built from the schedule
4. Position layers, lowest priority first:
       stored position <- schedule live hint <- OpenSky position
   Each layer only overrides the fields it actually supplies.
5. last_updated is the merge time when OpenSky supplied a position,
   otherwise the schedule hint's own update time, otherwise the merge time.

Everything here is pure: no I/O, no clock unless `now` is omitted.
"""

from dataclasses import replace
from datetime import datetime
from typing import Optional

from flighttracker.records import (
    FlightRecord,
    FlightStatus,
    PositionSnapshot,
    ScheduleData,
    normalize_flight_number,
    utcnow,
)


def merge_position(*layers: Optional[PositionSnapshot]) -> Optional[PositionSnapshot]:
    """
    Overlay position layers field by field, later layers winning.

    Returns None unless the result has both coordinates.
    """
    merged = PositionSnapshot()
    for layer in layers:
        merged = merged.overlay(layer)
    return merged if merged.has_coordinates else None


def record_from_schedule(flight_number: str, schedule: ScheduleData) -> FlightRecord:
    """Build a base record from schedule data alone (no position)."""
    return FlightRecord(
        flight_number=normalize_flight_number(flight_number),
        airline=schedule.airline,
        departure_airport=schedule.departure_airport,
        arrival_airport=schedule.arrival_airport,
        scheduled_departure=schedule.scheduled_departure,
        scheduled_arrival=schedule.scheduled_arrival,
        actual_departure=schedule.actual_departure,
        actual_arrival=schedule.actual_arrival,
        status=FlightStatus.from_provider(schedule.status),
        delay=schedule.delay,
    )


def merge_flight(
    flight_number: str,
    existing: Optional[FlightRecord],
    schedule: Optional[ScheduleData],
    position: Optional[PositionSnapshot],
    now: Optional[datetime] = None,
) -> Optional[FlightRecord]:
    """
    Combine schedule data and position data into one flight record.

    Args:
        flight_number: Key of the flight being refreshed
        existing: Currently stored record, if any
        schedule: Fresh schedule data, None if the schedule source had none
        position: Fresh OpenSky position, None if not queried or no data
        now: Merge time (defaults to the current UTC time)

    Returns:
        The new record, or None when neither source had data.
    """
    # A reading without coordinates is no data
    if position is not None and not position.has_coordinates:
        position = None

    if schedule is None and position is None:
        return None

    now = now or utcnow()
    flight_number = normalize_flight_number(flight_number)

    if schedule is None:
        if existing is not None:
            base = replace(existing, status=FlightStatus.ACTIVE)
        else:
            base = FlightRecord(flight_number=flight_number, status=FlightStatus.ACTIVE)
        hint = None
    else:
        base = record_from_schedule(flight_number, schedule)
        hint = schedule.live

    stored_position = existing.position if existing is not None else None
    merged_position = merge_position(stored_position, hint, position)

    if position is not None:
        last_updated = now
    elif schedule is not None and schedule.live_updated is not None:
        last_updated = schedule.live_updated
    else:
        last_updated = now

    return replace(
        base,
        flight_number=flight_number,
        position=merged_position,
        last_updated=last_updated,
    )


def fallback_record(existing: FlightRecord, now: Optional[datetime] = None) -> FlightRecord:
    """
    Carry a stored record forward after both sources failed.

    The flight stays tracked; its status becomes ERROR until a later
    refresh succeeds.
    """
    return replace(existing, status=FlightStatus.ERROR, last_updated=now or utcnow())
