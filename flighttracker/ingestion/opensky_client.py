"""
OpenSky Network API client - the live position source.

Handles communication with the OpenSky REST API, including:
- Authentication (optional but recommended for higher rate limits)
- Single-aircraft state queries by ICAO24 address and time
- Rate limiting compliance
- Error classification (rate limit vs network vs anything else)

OpenSky state vector format (array indices used here):
0: icao24          - ICAO24 hex address
1: callsign        - Callsign (8 chars max)
5: longitude       - WGS84 longitude
6: latitude        - WGS84 latitude
7: baro_altitude   - Barometric altitude (meters)
9: velocity        - Ground speed (m/s)
10: true_track     - Track angle (degrees, 0=north)

Vectors shorter than 8 elements carry no usable position and are treated
as no data. Velocity is converted to km/h here; nothing downstream sees m/s.
"""

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Optional, Tuple

import requests
from requests.auth import HTTPBasicAuth

from flighttracker.config import config
from flighttracker.errors import RateLimitedError, SourceNetworkError, UnexpectedSourceError
from flighttracker.records import PositionSnapshot

logger = logging.getLogger(__name__)

SOURCE = 'opensky'

# Minimum state vector length carrying position fields (index 7 = altitude)
MIN_STATE_FIELDS = 8

MPS_TO_KMH = 3.6


def _number(value: Any) -> Optional[float]:
    """Numeric field or None; OpenSky arrays mix strings, numbers, bools and nulls."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _field(arr: List[Any], index: int) -> Any:
    return arr[index] if len(arr) > index else None


@dataclass
class StateVector:
    """
    Parsed state vector from OpenSky API.

    Normalizes the raw array format into a typed dataclass.
    All values may be None if not reported by the aircraft.
    """
    icao24: Optional[str]
    callsign: Optional[str]
    longitude: Optional[float]
    latitude: Optional[float]
    baro_altitude: Optional[float]
    velocity: Optional[float]
    true_track: Optional[float]

    @classmethod
    def from_array(cls, arr: Any) -> Optional['StateVector']:
        """
        Parse OpenSky state vector array into StateVector object.

        Returns None if the array is malformed or too short.
        """
        if not isinstance(arr, list) or len(arr) < MIN_STATE_FIELDS:
            return None

        icao24 = arr[0] if isinstance(arr[0], str) else None

        # Normalize callsign (strip whitespace, handle None)
        callsign = arr[1] if isinstance(arr[1], str) else None
        if callsign:
            callsign = callsign.strip() or None

        return cls(
            icao24=icao24.lower() if icao24 else None,
            callsign=callsign,
            longitude=_number(arr[5]),
            latitude=_number(arr[6]),
            baro_altitude=_number(arr[7]),
            velocity=_number(_field(arr, 9)),
            true_track=_number(_field(arr, 10)),
        )

    def has_position(self) -> bool:
        """Check if this state has valid position data."""
        return self.latitude is not None and self.longitude is not None

    def to_snapshot(self, captured_at: datetime) -> PositionSnapshot:
        """Convert to a PositionSnapshot in display units (m, degrees, km/h)."""
        return PositionSnapshot(
            latitude=self.latitude,
            longitude=self.longitude,
            altitude=int(self.baro_altitude) if self.baro_altitude is not None else None,
            heading=int(self.true_track) % 360 if self.true_track is not None else None,
            ground_speed=int(self.velocity * MPS_TO_KMH) if self.velocity is not None else None,
            captured_at=captured_at,
        )


class OpenSkyClient:
    """
    Client for OpenSky Network API.

    Handles:
    - GET requests to /states/all endpoint
    - Optional authentication for higher rate limits
    - Rate limiting (internal tracking, shared across worker threads)
    """

    def __init__(
        self,
        username: Optional[str] = None,
        password: Optional[str] = None,
        base_url: str = 'https://opensky-network.org/api',
        timeout: tuple = (30, 30),
        min_interval: Optional[float] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.auth = None
        if username and password:
            self.auth = HTTPBasicAuth(username, password)
            logger.info('OpenSky client initialized with authentication')
        else:
            logger.warning('OpenSky client running without authentication (lower rate limits)')

        self.session = requests.Session()
        self.last_request_time: float = 0
        if min_interval is None:
            min_interval = 5.0 if self.auth else 10.0
        self._min_interval = min_interval
        self._rate_lock = threading.Lock()

    @classmethod
    def from_config(cls) -> 'OpenSkyClient':
        """Create client from application configuration."""
        return cls(
            username=config.opensky.username,
            password=config.opensky.password,
            base_url=config.opensky.base_url,
            timeout=config.http.timeout,
        )

    def _wait_for_rate_limit(self) -> None:
        """
        Enforce minimum interval between requests.

        OpenSky rate limits:
        - Anonymous: ~10 seconds between requests
        - Authenticated: ~5 seconds between requests
        """
        with self._rate_lock:
            elapsed = time.time() - self.last_request_time
            if elapsed < self._min_interval:
                sleep_time = self._min_interval - elapsed
                logger.debug(f'Rate limiting: sleeping {sleep_time:.1f}s')
                time.sleep(sleep_time)
            self.last_request_time = time.time()

    def get_state(
        self,
        icao24: str,
        at_time: Optional[int] = None,
    ) -> Tuple[int, Optional[StateVector]]:
        """
        Fetch the state vector for one aircraft.

        Args:
            icao24: ICAO24 hex address
            at_time: Unix timestamp to query (defaults to now)

        Returns:
            Tuple of (api_timestamp, StateVector or None)

        Raises:
            RateLimitedError on HTTP 429
            SourceNetworkError on timeout or connection failure
            UnexpectedSourceError on other HTTP errors or bad JSON
        """
        self._wait_for_rate_limit()

        query_time = int(at_time if at_time is not None else time.time())
        url = f'{self.base_url}/states/all'
        params = {'icao24': icao24.lower(), 'time': query_time}

        logger.debug(f'Fetching state: {url} params={params}')

        try:
            response = self.session.get(
                url,
                params=params,
                auth=self.auth,
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()

        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            if status == 429:
                logger.warning('OpenSky rate limit exceeded')
                raise RateLimitedError(SOURCE) from e
            logger.error(f'OpenSky API error: {status}')
            raise UnexpectedSourceError(SOURCE, f'HTTP {status}', status_code=status) from e
        except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
            logger.error(f'OpenSky request failed: {e}')
            raise SourceNetworkError(SOURCE, str(e)) from e
        except requests.exceptions.RequestException as e:
            logger.error(f'OpenSky request failed: {e}')
            raise UnexpectedSourceError(SOURCE, str(e)) from e
        except ValueError as e:
            raise UnexpectedSourceError(SOURCE, f'invalid JSON: {e}') from e

        if not isinstance(data, dict):
            raise UnexpectedSourceError(SOURCE, 'unexpected response shape')

        api_time = data.get('time') or query_time
        states_raw = data.get('states') or []

        if not states_raw:
            logger.debug(f'No state vectors for {icao24}')
            return api_time, None

        return api_time, StateVector.from_array(states_raw[0])

    def fetch_position(self, icao24: str, at_time: Optional[int] = None) -> Optional[PositionSnapshot]:
        """
        Fetch the most recent position for an aircraft.

        Returns None (no data) when OpenSky has no state vector for the
        aircraft, or the vector is too short or lacks either coordinate.
        """
        api_time, state = self.get_state(icao24, at_time)
        if state is None or not state.has_position():
            logger.info(f'No usable OpenSky state for {icao24}')
            return None

        captured_at = datetime.fromtimestamp(int(api_time), tz=timezone.utc)
        return state.to_snapshot(captured_at)
