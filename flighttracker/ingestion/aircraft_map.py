"""
Flight number to aircraft (ICAO24) lookup.

OpenSky is keyed by transponder address, not by flight number, so a flight
can only get live positions from OpenSky if we know which airframe flies it.
The table comes from configuration (AIRCRAFT_ICAO24_MAP) and can be
replaced wholesale for tests.

Usage:
    from flighttracker.ingestion.aircraft_map import AircraftMap

    aircraft = AircraftMap.from_config()
    aircraft.resolve('AA100')  # 'a0f1bb'
"""

import logging
import threading
from typing import Dict, Mapping, Optional

from flighttracker.config import config
from flighttracker.records import normalize_flight_number

logger = logging.getLogger(__name__)


class AircraftMap:
    """
    Thread-safe mapping of flight number -> ICAO24 address.
    """

    def __init__(self, mapping: Optional[Mapping[str, str]] = None):
        self._lock = threading.RLock()
        self._mapping: Dict[str, str] = {}
        for flight_number, icao24 in (mapping or {}).items():
            self.register(flight_number, icao24)

    @classmethod
    def from_config(cls) -> 'AircraftMap':
        """Create the lookup from application configuration."""
        aircraft = cls(config.aircraft_icao24)
        logger.info(f'Loaded {len(aircraft)} flight -> aircraft mappings')
        return aircraft

    def resolve(self, flight_number: str) -> Optional[str]:
        """ICAO24 address for a flight number, or None if unmapped."""
        with self._lock:
            return self._mapping.get(normalize_flight_number(flight_number))

    def register(self, flight_number: str, icao24: str) -> None:
        with self._lock:
            self._mapping[normalize_flight_number(flight_number)] = icao24.strip().lower()

    def __contains__(self, flight_number: str) -> bool:
        return self.resolve(flight_number) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._mapping)
