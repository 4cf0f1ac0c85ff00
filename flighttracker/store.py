"""
Tracking store - durable flight records and status-change history.

Wraps the SQLAlchemy models behind record-level operations:
- Upsert with status-change detection (one transaction)
- Lookups, deletion, route listings
- Append-only status history
- Average duration per route
- Change notifications to subscribers

Concurrency:
Writes for one flight number are serialized by a per-key re-entrant lock.
The refresher holds the same lock for its whole fetch-merge-upsert, so a
background pass and an on-demand search for the same flight never
interleave. Different flight numbers proceed in parallel.
"""

import logging
import threading
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Tuple

from sqlalchemy import delete, select
from sqlalchemy.engine import Engine

from flighttracker.analytics import RouteStats, compute_route_stats
from flighttracker.models import (
    StatusChange,
    TrackedFlight,
    create_db_engine,
    get_session,
    init_db,
    make_session_factory,
)
from flighttracker.models import engine as default_engine
from flighttracker.records import (
    FlightRecord,
    FlightStatus,
    StatusChangeEvent,
    normalize_flight_number,
    utcnow,
)

logger = logging.getLogger(__name__)

FlightCallback = Callable[[FlightRecord, bool], None]


class _LockEntry:
    """RLock plus the number of threads holding or waiting on it."""

    def __init__(self):
        self.lock = threading.RLock()
        self.users = 0


class _KeyLock:
    """Context manager for one flight number's lock entry."""

    def __init__(self, store: 'TrackingStore', key: str):
        self._store = store
        self._key = key
        self._entry: Optional[_LockEntry] = None

    def __enter__(self):
        entry = self._store._acquire_entry(self._key)
        entry.lock.acquire()
        self._entry = entry
        return self

    def __exit__(self, exc_type, exc, tb):
        entry, self._entry = self._entry, None
        entry.lock.release()
        self._store._release_entry(self._key, entry)
        return False


class TrackingStore:
    """
    Keyed storage for FlightRecords plus the status-change log.

    Thread-safe; one instance is shared by the API and the scheduler.
    """

    def __init__(self, engine: Optional[Engine] = None):
        self.engine = engine or default_engine
        self._session_factory = make_session_factory(self.engine)

        self._locks: Dict[str, _LockEntry] = {}
        self._locks_guard = threading.Lock()

        self._subscribers: List[FlightCallback] = []

    @classmethod
    def from_url(cls, url: str, echo: bool = False) -> 'TrackingStore':
        """Create a store on its own engine and make sure the schema exists."""
        store = cls(create_db_engine(url, echo=echo))
        store.init_schema()
        return store

    def init_schema(self) -> None:
        init_db(self.engine)

    # -------------------------------------------------------------------------
    # Locking and notifications
    # -------------------------------------------------------------------------

    def lock_for(self, flight_number: str) -> '_KeyLock':
        """
        Re-entrant lock serializing all writes for one flight number.

        Use as a context manager. The entry is dropped once no thread holds
        or waits on it, so the table only grows with keys in use.
        """
        return _KeyLock(self, normalize_flight_number(flight_number))

    def _acquire_entry(self, key: str) -> '_LockEntry':
        with self._locks_guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = _LockEntry()
                self._locks[key] = entry
            entry.users += 1
            return entry

    def _release_entry(self, key: str, entry: '_LockEntry') -> None:
        with self._locks_guard:
            entry.users -= 1
            if entry.users == 0 and self._locks.get(key) is entry:
                del self._locks[key]

    def subscribe(self, callback: FlightCallback) -> None:
        """
        Register callback to be invoked after each successful upsert or delete.

        Callback receives the record and a `deleted` flag; for a delete the
        record is the last stored state.
        """
        self._subscribers.append(callback)

    def unsubscribe(self, callback: FlightCallback) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def _notify(self, record: FlightRecord, deleted: bool = False) -> None:
        for callback in list(self._subscribers):
            try:
                callback(record, deleted)
            except Exception as e:
                logger.error(f'Subscriber error for {record.flight_number}: {e}')

    # -------------------------------------------------------------------------
    # Flight records
    # -------------------------------------------------------------------------

    def upsert(self, record: FlightRecord) -> Optional[StatusChangeEvent]:
        """
        Insert or fully replace the record for its flight number.

        If a record already exists with a different status, a status-change
        event is written in the same transaction. A first insert is not a
        status change.

        Returns the status-change event, if one was written.
        """
        key = normalize_flight_number(record.flight_number)
        if key != record.flight_number:
            record = replace(record, flight_number=key)

        event = None
        with self.lock_for(key):
            with get_session(self._session_factory) as session:
                row = session.get(TrackedFlight, key)
                if row is None:
                    session.add(TrackedFlight.from_record(record))
                    logger.debug(f'Inserted {key} ({record.status.value})')
                else:
                    previous = FlightStatus.from_provider(row.status)
                    if previous != record.status:
                        event = self._insert_status_change(
                            session,
                            StatusChangeEvent(
                                flight_number=key,
                                airline=record.airline or row.airline,
                                previous_status=previous,
                                new_status=record.status,
                                timestamp=utcnow(),
                            ),
                        )
                        logger.info(f'{key} status {previous.value} -> {record.status.value}')
                    row.apply(record)

        self._notify(record)
        return event

    def get(self, flight_number: str) -> Optional[FlightRecord]:
        key = normalize_flight_number(flight_number)
        with get_session(self._session_factory) as session:
            row = session.get(TrackedFlight, key)
            return row.to_record() if row else None

    def delete(self, flight_number: str) -> bool:
        """
        Remove a tracked flight. Its status history is kept.

        Subscribers are notified with the last stored record and deleted=True.
        """
        key = normalize_flight_number(flight_number)
        with self.lock_for(key):
            with get_session(self._session_factory) as session:
                row = session.get(TrackedFlight, key)
                record = row.to_record() if row else None
                if row is not None:
                    session.delete(row)

        if record is None:
            return False

        logger.info(f'Stopped tracking {key}')
        self._notify(record, deleted=True)
        return True

    def list_all(self) -> List[FlightRecord]:
        """All tracked flights, most recently updated first."""
        with get_session(self._session_factory) as session:
            rows = session.scalars(
                select(TrackedFlight).order_by(
                    TrackedFlight.last_updated.desc(),
                    TrackedFlight.flight_number,
                )
            ).all()
            return [row.to_record() for row in rows]

    def tracked_flight_numbers(self) -> List[str]:
        with get_session(self._session_factory) as session:
            return list(session.scalars(
                select(TrackedFlight.flight_number).order_by(TrackedFlight.flight_number)
            ).all())

    def count(self) -> int:
        return len(self.tracked_flight_numbers())

    # -------------------------------------------------------------------------
    # Routes
    # -------------------------------------------------------------------------

    def list_by_route(self, departure: str, arrival: str) -> List[FlightRecord]:
        """Flights for a (departure, arrival) pair, most recently updated first."""
        with get_session(self._session_factory) as session:
            rows = session.scalars(
                select(TrackedFlight).where(
                    TrackedFlight.departure_airport == departure.strip().upper(),
                    TrackedFlight.arrival_airport == arrival.strip().upper(),
                ).order_by(TrackedFlight.last_updated.desc())
            ).all()
            return [row.to_record() for row in rows]

    def route_stats(self, departure: str, arrival: str) -> Optional[RouteStats]:
        return compute_route_stats(
            departure.strip().upper(),
            arrival.strip().upper(),
            self.list_by_route(departure, arrival),
        )

    def average_duration(self, departure: str, arrival: str) -> Optional[int]:
        """
        Average (arrival - departure) in minutes over the route's flights.

        Actual times are preferred over scheduled ones. Returns None when
        no flight on the route has a derivable duration.
        """
        stats = self.route_stats(departure, arrival)
        return stats.average_minutes if stats else None

    def departure_airports(self) -> List[str]:
        return self._distinct(TrackedFlight.departure_airport)

    def arrival_airports(self) -> List[str]:
        return self._distinct(TrackedFlight.arrival_airport)

    def routes(self) -> List[Tuple[str, str]]:
        """Distinct (departure, arrival) pairs with both ends known."""
        with get_session(self._session_factory) as session:
            rows = session.execute(
                select(TrackedFlight.departure_airport, TrackedFlight.arrival_airport)
                .where(
                    TrackedFlight.departure_airport.is_not(None),
                    TrackedFlight.arrival_airport.is_not(None),
                )
                .distinct()
                .order_by(TrackedFlight.departure_airport, TrackedFlight.arrival_airport)
            ).all()
            return [(dep, arr) for dep, arr in rows]

    def _distinct(self, column) -> List[str]:
        with get_session(self._session_factory) as session:
            return list(session.scalars(
                select(column).where(column.is_not(None)).distinct().order_by(column)
            ).all())

    # -------------------------------------------------------------------------
    # Status history
    # -------------------------------------------------------------------------

    def _insert_status_change(self, session, event: StatusChangeEvent) -> StatusChangeEvent:
        row = StatusChange.from_event(event)
        session.add(row)
        session.flush()  # assigns the autoincrement id
        return row.to_event()

    def record_status_change(self, event: StatusChangeEvent) -> StatusChangeEvent:
        """Append an event to the history log. Returns it with its id."""
        with get_session(self._session_factory) as session:
            return self._insert_status_change(session, event)

    def recent_status_changes(self, limit: int = 20) -> List[StatusChangeEvent]:
        """Most recent status changes across all flights, newest first."""
        with get_session(self._session_factory) as session:
            rows = session.scalars(
                select(StatusChange)
                .order_by(StatusChange.timestamp.desc(), StatusChange.id.desc())
                .limit(limit)
            ).all()
            return [row.to_event() for row in rows]

    def status_changes_for(self, flight_number: str) -> List[StatusChangeEvent]:
        key = normalize_flight_number(flight_number)
        with get_session(self._session_factory) as session:
            rows = session.scalars(
                select(StatusChange)
                .where(StatusChange.flight_number == key)
                .order_by(StatusChange.timestamp.desc(), StatusChange.id.desc())
            ).all()
            return [row.to_event() for row in rows]

    def clear_status_changes(self, flight_number: Optional[str] = None) -> int:
        """Delete history for one flight, or all of it. Returns rows deleted."""
        stmt = delete(StatusChange)
        if flight_number is not None:
            stmt = stmt.where(StatusChange.flight_number == normalize_flight_number(flight_number))

        with get_session(self._session_factory) as session:
            deleted = session.execute(stmt).rowcount

        logger.info(f'Cleared {deleted} status change records')
        return deleted
