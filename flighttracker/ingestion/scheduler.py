"""
Refresh scheduler - periodic refresh passes with retry and backoff.

Run state machine:

    IDLE -> RUNNING -> SUCCESS | RETRY | FAILURE

- SUCCESS: the pass completed, even if individual flights fell back to
  their previous record
- RETRY: no network before starting, every flight failed with a
  transient source error, or a network error escaped the pass
- FAILURE: anything else escaped the pass (database errors, bugs);
  not retried until the next periodic tick

Only one pass runs at a time per job name, and only one background thread
per job name runs in the process. A trigger that arrives while a pass is
running is dropped. RETRY outcomes are retried with linear backoff
(base * attempt), up to max_retries attempts (0 = until stopped).
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional

import requests

from flighttracker.config import config
from flighttracker.demo import seed_demo_flights
from flighttracker.errors import TransientSourceError
from flighttracker.ingestion.refresh import FlightRefresher, FlightRefreshResult
from flighttracker.records import utcnow

logger = logging.getLogger(__name__)

# Jobs are unique per name across the process: one background thread and
# one pass lock per name, shared by every scheduler created with it.
_registry_lock = threading.Lock()
_running_jobs: Dict[str, 'RefreshScheduler'] = {}
_pass_locks: Dict[str, threading.Lock] = {}


def _pass_lock_for(name: str) -> threading.Lock:
    with _registry_lock:
        lock = _pass_locks.get(name)
        if lock is None:
            lock = threading.Lock()
            _pass_locks[name] = lock
        return lock


class RunOutcome(str, Enum):
    """Result of one refresh pass."""
    SUCCESS = 'success'
    RETRY = 'retry'
    FAILURE = 'failure'


class SchedulerState(str, Enum):
    IDLE = 'idle'
    RUNNING = 'running'
    SUCCESS = 'success'
    RETRY = 'retry'
    FAILURE = 'failure'


@dataclass
class PassReport:
    """Summary of the most recent pass."""
    outcome: RunOutcome
    started_at: datetime
    finished_at: datetime
    results: List[FlightRefreshResult] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> dict:
        counts = {}
        for result in self.results:
            counts[result.outcome.value] = counts.get(result.outcome.value, 0) + 1
        return {
            'outcome': self.outcome.value,
            'started_at': self.started_at.isoformat(),
            'finished_at': self.finished_at.isoformat(),
            'flights': len(self.results),
            'outcomes': counts,
            'error': self.error,
        }


def check_connectivity(url: Optional[str] = None, timeout: float = 5.0) -> bool:
    """True if an HTTP HEAD to `url` gets any response."""
    url = url or config.refresh.connectivity_url
    try:
        requests.head(url, timeout=timeout, allow_redirects=True)
        return True
    except requests.exceptions.RequestException as e:
        logger.warning(f'Connectivity check failed: {e}')
        return False


class RefreshScheduler:
    """
    Drives FlightRefresher passes on a fixed interval.

    Can run as a background thread for continuous polling, or be
    triggered directly with run_once() / run_with_retry().
    """

    def __init__(
        self,
        refresher: FlightRefresher,
        interval_seconds: Optional[float] = None,
        backoff_seconds: Optional[float] = None,
        max_retries: Optional[int] = None,
        connectivity_check: Optional[Callable[[], bool]] = None,
        seed_demo: Optional[bool] = None,
        name: str = 'flight-refresh',
    ):
        self.refresher = refresher
        self.store = refresher.store
        self.interval_seconds = interval_seconds if interval_seconds is not None else config.refresh.interval_seconds
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else config.refresh.backoff_seconds
        self.max_retries = max_retries if max_retries is not None else config.refresh.max_retries
        self.connectivity_check = connectivity_check or check_connectivity
        self.seed_demo = seed_demo if seed_demo is not None else config.refresh.seed_demo_flights
        self.name = name

        # One pass at a time per job name; triggers during a pass are dropped
        self._pass_lock = _pass_lock_for(name)
        self._state = SchedulerState.IDLE
        self._last_report: Optional[PassReport] = None

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

        # Statistics
        self._pass_count = 0
        self._retry_count = 0
        self._failure_count = 0

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def last_report(self) -> Optional[PassReport]:
        return self._last_report

    @property
    def running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    # -------------------------------------------------------------------------
    # Single pass
    # -------------------------------------------------------------------------

    def run_once(self) -> Optional[RunOutcome]:
        """
        Execute one refresh pass.

        Returns the pass outcome, or None if another pass was already
        running and this trigger was dropped.
        """
        if not self._pass_lock.acquire(blocking=False):
            logger.info('Refresh pass already running, trigger dropped')
            return None

        try:
            self._state = SchedulerState.RUNNING
            started_at = utcnow()
            outcome, results, error = self._execute_pass()

            self._last_report = PassReport(outcome, started_at, utcnow(), results, error)
            self._pass_count += 1
            if outcome == RunOutcome.RETRY:
                self._retry_count += 1
            elif outcome == RunOutcome.FAILURE:
                self._failure_count += 1

            self._state = SchedulerState(outcome.value)
            logger.info(f'Refresh pass finished: {outcome.value}')
            return outcome
        finally:
            self._pass_lock.release()

    def _execute_pass(self):
        """Returns (outcome, per-flight results, error message)."""
        results: List[FlightRefreshResult] = []
        try:
            if not self.connectivity_check():
                logger.warning('No network connectivity, pass deferred')
                return RunOutcome.RETRY, results, 'no connectivity'

            flight_numbers = self.store.tracked_flight_numbers()
            if not flight_numbers:
                if self.seed_demo:
                    seed_demo_flights(self.store)
                else:
                    logger.debug('No tracked flights')
                return RunOutcome.SUCCESS, results, None

            results = self.refresher.refresh_all(flight_numbers)

            if results and all(r.transient_failure for r in results):
                logger.warning(f'All {len(results)} flights failed with transient errors')
                return RunOutcome.RETRY, results, 'all flights failed transiently'

            return RunOutcome.SUCCESS, results, None

        except (TransientSourceError, requests.exceptions.RequestException) as e:
            logger.error(f'Network error during refresh pass: {e}')
            return RunOutcome.RETRY, results, str(e)
        except Exception as e:
            logger.exception(f'Unexpected error during refresh pass: {e}')
            return RunOutcome.FAILURE, results, str(e)

    def run_with_retry(self) -> Optional[RunOutcome]:
        """
        Run a pass, retrying RETRY outcomes with linear backoff.

        Stops early (returning the last outcome) if the scheduler is stopped
        while waiting.
        """
        attempt = 0
        while True:
            outcome = self.run_once()
            if outcome != RunOutcome.RETRY:
                return outcome

            attempt += 1
            if self.max_retries and attempt > self.max_retries:
                logger.error(f'Giving up after {self.max_retries} retries until next scheduled pass')
                return outcome

            delay = self.backoff_seconds * attempt
            logger.warning(f'Retrying refresh pass in {delay:.0f}s (attempt {attempt})')
            if self._stop_event.wait(delay):
                return outcome

    # -------------------------------------------------------------------------
    # Background loop
    # -------------------------------------------------------------------------

    def run_continuous(self) -> None:
        """
        Run refresh passes until stopped.

        This method blocks - use start_background() for non-blocking.
        """
        logger.info(f'Starting periodic refresh (interval={self.interval_seconds}s)')

        while not self._stop_event.is_set():
            self.run_with_retry()
            self._stop_event.wait(self.interval_seconds)

        logger.info('Periodic refresh stopped')

    def start_background(self) -> bool:
        """
        Start the periodic refresh in a background thread.

        Jobs are unique by name: if any scheduler with this name is already
        running, this is a no-op. Returns True if a new thread was started.
        """
        with _registry_lock:
            current = _running_jobs.get(self.name)
            if current is not None and current.running:
                logger.warning(f'Refresh job {self.name} already running')
                return False

            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self.run_continuous,
                name=self.name,
                daemon=True,
            )
            _running_jobs[self.name] = self
            self._thread.start()

        logger.info('Background refresh started')
        return True

    def stop(self, timeout: float = 5.0) -> None:
        """Stop background refresh."""
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=timeout)

        with _registry_lock:
            if _running_jobs.get(self.name) is self:
                del _running_jobs[self.name]

        self._state = SchedulerState.IDLE
        logger.info('Refresh scheduler stopped')

    @property
    def stats(self) -> dict:
        """Get scheduler statistics."""
        return {
            'name': self.name,
            'state': self._state.value,
            'running': self.running,
            'pass_count': self._pass_count,
            'retry_count': self._retry_count,
            'failure_count': self._failure_count,
            'interval_seconds': self.interval_seconds,
            'last_pass': self._last_report.to_dict() if self._last_report else None,
            'checked_at': time.time(),
        }
