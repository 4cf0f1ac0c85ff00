"""
AviationStack client - the schedule/status source.

Fetches per-flight schedule data:
- Airline, departure/arrival airports
- Scheduled and actual times, delay
- Flight status
- Live position, when AviationStack has fresh telemetry itself

Failures are classified, not swallowed: the refresh scheduler decides what
to retry. HTTP 429 (and AviationStack's rate/usage-limit error codes) raise
RateLimitedError so callers back off instead of giving up.
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from flighttracker.config import config
from flighttracker.errors import RateLimitedError, SourceNetworkError, UnexpectedSourceError
from flighttracker.records import (
    PositionSnapshot,
    ScheduleData,
    normalize_flight_number,
    parse_timestamp,
)

logger = logging.getLogger(__name__)

SOURCE = 'aviationstack'

# Error codes AviationStack reports inside a 200/4xx JSON envelope
RATE_LIMIT_CODES = {'rate_limit_reached', 'usage_limit_reached'}


def _section(flight: Dict[str, Any], key: str) -> Dict[str, Any]:
    """Nested object or {} (AviationStack sends null for missing sections)."""
    value = flight.get(key)
    return value if isinstance(value, dict) else {}


def _int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def _float(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_live(live: Dict[str, Any]) -> Optional[PositionSnapshot]:
    """
    Parse AviationStack's `live` object.

    speed_horizontal is already km/h.
    """
    if not live:
        return None

    heading = _int(live.get('direction'))
    return PositionSnapshot(
        latitude=_float(live.get('latitude')),
        longitude=_float(live.get('longitude')),
        altitude=_int(live.get('altitude')),
        heading=heading % 360 if heading is not None else None,
        ground_speed=_int(live.get('speed_horizontal')),
        captured_at=parse_timestamp(live.get('updated')),
    )


def parse_flight(flight: Dict[str, Any], flight_number: Optional[str] = None) -> ScheduleData:
    """
    Convert one AviationStack flight object into ScheduleData.

    Args:
        flight: Element of the response `data` list
        flight_number: Number the caller queried for; defaults to the
            provider's own IATA flight number
    """
    departure = _section(flight, 'departure')
    arrival = _section(flight, 'arrival')
    airline = _section(flight, 'airline')
    ident = _section(flight, 'flight')

    if not flight_number:
        flight_number = ident.get('iata') or f"{airline.get('iata') or ''}{ident.get('number') or ''}"

    delay = _int(departure.get('delay'))
    if delay is None:
        delay = _int(arrival.get('delay'))

    return ScheduleData(
        flight_number=normalize_flight_number(flight_number),
        airline=airline.get('name'),
        departure_airport=departure.get('iata'),
        arrival_airport=arrival.get('iata'),
        scheduled_departure=departure.get('scheduled'),
        scheduled_arrival=arrival.get('scheduled'),
        actual_departure=departure.get('actual'),
        actual_arrival=arrival.get('actual'),
        delay=delay,
        status=flight.get('flight_status'),
        live=parse_live(_section(flight, 'live')),
    )


class AviationStackClient:
    """
    Client for the AviationStack /flights endpoint.

    No retries and no caching here; both belong to the refresh scheduler.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = 'https://api.aviationstack.com/v1',
        timeout: tuple = (30, 30),
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = requests.Session()

        if not self.api_key:
            logger.warning('AviationStack API key not configured - schedule lookups disabled')

    @classmethod
    def from_config(cls) -> 'AviationStackClient':
        """Create client from application configuration."""
        return cls(
            api_key=config.aviationstack.api_key,
            base_url=config.aviationstack.base_url,
            timeout=config.http.timeout,
        )

    def fetch_schedule(self, flight_number: str) -> Optional[ScheduleData]:
        """
        Get schedule data for a flight number (IATA, e.g. 'AA100').

        Returns None when AviationStack has no flight with that number.
        """
        flight_number = normalize_flight_number(flight_number)
        logger.info(f'Fetching schedule from AviationStack for {flight_number}')

        flights = self._get_flights({'flight_iata': flight_number})
        if not flights:
            logger.info(f'No schedule data found for {flight_number}')
            return None

        # Use first matching flight
        return parse_flight(flights[0], flight_number)

    def fetch_route(self, departure_iata: str, arrival_iata: str) -> List[ScheduleData]:
        """Get all flights AviationStack reports between two airports."""
        params = {
            'dep_iata': departure_iata.strip().upper(),
            'arr_iata': arrival_iata.strip().upper(),
        }
        logger.info(f"Fetching route {params['dep_iata']} -> {params['arr_iata']} from AviationStack")

        return [parse_flight(f) for f in self._get_flights(params)]

    def _get_flights(self, params: Dict[str, str]) -> List[Dict[str, Any]]:
        """
        GET /flights and return the `data` list.

        Raises:
            RateLimitedError on HTTP 429 or a rate/usage-limit error envelope
            SourceNetworkError on timeout or connection failure
            UnexpectedSourceError on anything else
        """
        if not self.api_key:
            raise UnexpectedSourceError(SOURCE, 'API key not configured')

        query = {'access_key': self.api_key}
        query.update(params)

        try:
            response = self.session.get(
                f'{self.base_url}/flights',
                params=query,
                timeout=self.timeout,
            )
        except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
            logger.error(f'AviationStack request failed: {e}')
            raise SourceNetworkError(SOURCE, str(e)) from e
        except requests.exceptions.RequestException as e:
            logger.error(f'AviationStack request failed: {e}')
            raise UnexpectedSourceError(SOURCE, str(e)) from e

        if response.status_code == 429:
            logger.warning('AviationStack rate limit exceeded')
            raise RateLimitedError(SOURCE)

        try:
            data = response.json()
        except ValueError as e:
            raise UnexpectedSourceError(
                SOURCE, f'invalid JSON (HTTP {response.status_code})', status_code=response.status_code
            ) from e

        if isinstance(data, dict) and data.get('error'):
            error = data['error'] if isinstance(data['error'], dict) else {'message': str(data['error'])}
            code = error.get('code')
            if code in RATE_LIMIT_CODES:
                logger.warning(f'AviationStack limit reached: {code}')
                raise RateLimitedError(SOURCE, error.get('message') or code)
            logger.warning(f'AviationStack API error: {error}')
            raise UnexpectedSourceError(
                SOURCE, error.get('message') or str(code), status_code=response.status_code
            )

        if response.status_code != 200:
            logger.warning(f'AviationStack API error: {response.status_code}')
            raise UnexpectedSourceError(SOURCE, f'HTTP {response.status_code}', status_code=response.status_code)

        if not isinstance(data, dict):
            raise UnexpectedSourceError(SOURCE, 'unexpected response shape')

        flights = data.get('data') or []
        return [f for f in flights if isinstance(f, dict)]
