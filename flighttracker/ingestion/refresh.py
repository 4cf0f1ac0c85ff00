"""
Flight refresher - fetch, merge and store one flight at a time.

Per-flight stages:
1. Fetch: schedule from AviationStack
2. Fetch: position from OpenSky (only for flights with a known aircraft)
3. Merge: reconcile both into one record (flighttracker.merge)
4. Upsert: replace the stored record; the store logs status changes

The whole sequence runs under the store's per-flight lock, so a background
pass and a user search for the same flight are serialized.

Source errors never escape refresh_flight(): they are logged and reported
in the result. When the schedule source fails and no fresh position is
available, the stored record is carried forward with status ERROR so the
flight does not silently drop out of the tracked set.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional, Tuple

from flighttracker.config import config
from flighttracker.errors import (
    FlightNotFoundError,
    FlightTrackerError,
    RateLimitedError,
    SourceError,
    SourceNetworkError,
    TransientSourceError,
)
from flighttracker.ingestion.aircraft_map import AircraftMap
from flighttracker.ingestion.opensky_client import OpenSkyClient
from flighttracker.merge import fallback_record, merge_flight
from flighttracker.records import (
    FlightRecord,
    PositionSnapshot,
    ScheduleData,
    StatusChangeEvent,
    normalize_flight_number,
    utcnow,
)
from flighttracker.services.aviationstack import AviationStackClient
from flighttracker.store import TrackingStore

logger = logging.getLogger(__name__)


class RefreshOutcome(str, Enum):
    """What happened to one flight during a refresh."""
    UPDATED = 'updated'      # merged record written
    NOT_FOUND = 'not_found'  # neither source had data, store untouched
    FALLBACK = 'fallback'    # sources failed, stored record carried forward as ERROR
    FAILED = 'failed'        # sources failed and there was nothing to carry forward


@dataclass
class FlightRefreshResult:
    """Result of refreshing one flight."""
    flight_number: str
    outcome: RefreshOutcome
    record: Optional[FlightRecord] = None
    status_change: Optional[StatusChangeEvent] = None
    error: Optional[SourceError] = None

    @property
    def transient_failure(self) -> bool:
        """True if the flight could not be refreshed because of a retryable error."""
        return (
            self.outcome in (RefreshOutcome.FALLBACK, RefreshOutcome.FAILED)
            and isinstance(self.error, TransientSourceError)
        )


def user_message(error: Exception) -> str:
    """Message shown to a user whose search failed."""
    if isinstance(error, FlightNotFoundError):
        return 'No route found. Please check the flight number and try again.'
    if isinstance(error, RateLimitedError):
        return 'Rate limit exceeded (HTTP 429). Please try again later.'
    if isinstance(error, SourceNetworkError):
        return 'Network error: Please check your internet connection'
    if isinstance(error, SourceError) and error.status_code:
        return f'HTTP Error: {error.status_code}. Please try again later.'
    return f'Error: {error or "Unknown error occurred"}'


class FlightRefresher:
    """
    Refreshes tracked flights from both sources.

    Collaborators are injected so tests can replace the HTTP clients and
    the aircraft table.
    """

    def __init__(
        self,
        store: TrackingStore,
        schedule_client: AviationStackClient,
        position_client: OpenSkyClient,
        aircraft: AircraftMap,
        max_workers: Optional[int] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.schedule_client = schedule_client
        self.position_client = position_client
        self.aircraft = aircraft
        self.max_workers = max_workers or config.refresh.max_workers
        self.clock = clock

    @classmethod
    def from_config(cls, store: TrackingStore) -> 'FlightRefresher':
        """Create a refresher with clients built from application configuration."""
        return cls(
            store=store,
            schedule_client=AviationStackClient.from_config(),
            position_client=OpenSkyClient.from_config(),
            aircraft=AircraftMap.from_config(),
        )

    def _fetch_schedule(self, flight_number: str) -> Tuple[Optional[ScheduleData], Optional[SourceError]]:
        try:
            return self.schedule_client.fetch_schedule(flight_number), None
        except SourceError as e:
            logger.error(f'Schedule fetch failed for {flight_number}: {e}')
            return None, e

    def _fetch_position(
        self,
        flight_number: str,
        now: datetime,
    ) -> Tuple[Optional[PositionSnapshot], Optional[SourceError]]:
        icao24 = self.aircraft.resolve(flight_number)
        if icao24 is None:
            logger.debug(f'No aircraft mapping for {flight_number}, skipping OpenSky')
            return None, None

        try:
            return self.position_client.fetch_position(icao24, int(now.timestamp())), None
        except SourceError as e:
            logger.error(f'OpenSky fetch failed for {flight_number} ({icao24}): {e}')
            return None, e

    def refresh_flight(
        self,
        flight_number: str,
        write_fallback: bool = True,
        create: bool = False,
    ) -> FlightRefreshResult:
        """
        Refresh one flight: fetch both sources, merge, upsert.

        Args:
            flight_number: Flight to refresh
            write_fallback: Carry the stored record forward as ERROR when
                the sources fail (background passes); searches pass False
            create: Start tracking the flight if it has no stored record.
                Only searches create records; a pass skips flights deleted
                since the pass listed them.
        """
        key = normalize_flight_number(flight_number)

        with self.store.lock_for(key):
            existing = self.store.get(key)
            if existing is None and not create:
                logger.info(f'{key}: no longer tracked, skipped')
                return FlightRefreshResult(key, RefreshOutcome.NOT_FOUND)

            now = self.clock()
            schedule, schedule_error = self._fetch_schedule(key)
            position, position_error = self._fetch_position(key, now)

            if schedule_error is not None and position is None:
                if existing is None or not write_fallback:
                    return FlightRefreshResult(key, RefreshOutcome.FAILED, existing, error=schedule_error)

                record = fallback_record(existing, now)
                event = self.store.upsert(record)
                logger.warning(f'{key}: sources unavailable, kept previous record with error status')
                return FlightRefreshResult(key, RefreshOutcome.FALLBACK, record, event, schedule_error)

            record = merge_flight(key, existing, schedule, position, now)
            if record is None:
                logger.info(f'{key}: no data from either source')
                return FlightRefreshResult(key, RefreshOutcome.NOT_FOUND, existing, error=position_error)

            event = self.store.upsert(record)
            return FlightRefreshResult(key, RefreshOutcome.UPDATED, record, event, schedule_error or position_error)

    def search(self, flight_number: str) -> FlightRecord:
        """
        On-demand lookup of one flight; starts tracking it on success.

        Raises:
            FlightNotFoundError when neither source knows the flight
            SourceError subclasses when the schedule source failed
        """
        result = self.refresh_flight(flight_number, write_fallback=False, create=True)

        if result.outcome == RefreshOutcome.UPDATED:
            return result.record
        if result.outcome == RefreshOutcome.NOT_FOUND:
            raise FlightNotFoundError(result.flight_number)
        raise result.error or FlightTrackerError(f'Refresh of {result.flight_number} failed')

    def refresh_all(self, flight_numbers: Optional[List[str]] = None) -> List[FlightRefreshResult]:
        """
        Refresh every tracked flight with bounded concurrency.

        Non-source exceptions (database errors, bugs) propagate to the caller.
        """
        if flight_numbers is None:
            flight_numbers = self.store.tracked_flight_numbers()
        if not flight_numbers:
            return []

        workers = max(1, min(self.max_workers, len(flight_numbers)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix='refresh') as executor:
            results = list(executor.map(self.refresh_flight, flight_numbers))

        counts = {}
        for result in results:
            counts[result.outcome.value] = counts.get(result.outcome.value, 0) + 1
        logger.info(f'Refreshed {len(results)} flights: {counts}')

        return results

    def fetch_route(self, departure: str, arrival: str) -> List[ScheduleData]:
        """Live route query against the schedule source (nothing is stored)."""
        return self.schedule_client.fetch_route(departure, arrival)
