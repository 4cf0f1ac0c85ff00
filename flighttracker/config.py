"""
Configuration management for FlightTracker.

Loads settings from environment variables with sensible defaults.
All configuration is centralized here to avoid magic strings scattered
throughout the codebase.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, Optional

from dotenv import load_dotenv

load_dotenv()


# Flight number -> ICAO24 transponder address for aircraft we know about.
DEFAULT_AIRCRAFT_ICAO24 = {
    'BA112': '400942',
    'AA100': 'a0f1bb',
    'DL1234': 'a25cb1',
    'UA201': 'a1f932',
    'DL303': 'abd124',
    'EK203': '896ab3',
}


def _parse_aircraft_map(value: str) -> Dict[str, str]:
    """
    Parse 'AA100:a0f1bb,BA112:400942' into a dict.

    Malformed pairs are skipped. An empty value yields the default table.
    """
    if not value:
        return dict(DEFAULT_AIRCRAFT_ICAO24)

    mapping = {}
    for pair in value.split(','):
        try:
            flight_number, icao24 = pair.split(':')
        except ValueError:
            continue
        flight_number = flight_number.strip().upper()
        icao24 = icao24.strip().lower()
        if flight_number and icao24:
            mapping[flight_number] = icao24
    return mapping


def _env_flag(name: str, default: str = '0') -> bool:
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes')


@dataclass(frozen=True)
class AviationStackConfig:
    """AviationStack API configuration for schedule/status data."""
    api_key: Optional[str] = os.getenv('AVIATIONSTACK_API_KEY') or None
    base_url: str = os.getenv('AVIATIONSTACK_BASE_URL', 'https://api.aviationstack.com/v1')

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)


@dataclass(frozen=True)
class OpenSkyConfig:
    """OpenSky API configuration."""
    username: Optional[str] = os.getenv('OPENSKY_USERNAME') or None
    password: Optional[str] = os.getenv('OPENSKY_PASSWORD') or None
    base_url: str = os.getenv('OPENSKY_BASE_URL', 'https://opensky-network.org/api')

    @property
    def is_authenticated(self) -> bool:
        return bool(self.username and self.password)


@dataclass(frozen=True)
class HttpConfig:
    """Per-call HTTP timeouts, in seconds."""
    connect_timeout: float = float(os.getenv('HTTP_CONNECT_TIMEOUT', '30'))
    read_timeout: float = float(os.getenv('HTTP_READ_TIMEOUT', '30'))

    @property
    def timeout(self) -> tuple:
        return (self.connect_timeout, self.read_timeout)


@dataclass(frozen=True)
class DatabaseConfig:
    """Database configuration."""
    url: str = os.getenv('DATABASE_URL', 'sqlite:///flighttracker.db')


@dataclass(frozen=True)
class RefreshConfig:
    """Periodic refresh and retry policy."""
    interval_minutes: int = int(os.getenv('REFRESH_INTERVAL_MINUTES', '15'))
    backoff_seconds: int = int(os.getenv('RETRY_BACKOFF_SECONDS', '30'))
    max_retries: int = int(os.getenv('MAX_RETRIES', '5'))  # 0 = retry until stopped
    max_workers: int = int(os.getenv('REFRESH_MAX_WORKERS', '4'))
    connectivity_url: str = os.getenv('CONNECTIVITY_CHECK_URL', 'https://opensky-network.org')
    seed_demo_flights: bool = _env_flag('SEED_DEMO_FLIGHTS')

    @property
    def interval_seconds(self) -> int:
        return self.interval_minutes * 60


@dataclass(frozen=True)
class AppConfig:
    """Main application configuration."""
    aviationstack: AviationStackConfig
    opensky: OpenSkyConfig
    http: HttpConfig
    database: DatabaseConfig
    refresh: RefreshConfig

    aircraft_icao24: Dict[str, str] = field(default_factory=dict)

    # Flask settings
    secret_key: str = 'dev-key-change-in-prod'
    debug: bool = False


def load_config() -> AppConfig:
    """Load and validate all configuration."""
    return AppConfig(
        aviationstack=AviationStackConfig(),
        opensky=OpenSkyConfig(),
        http=HttpConfig(),
        database=DatabaseConfig(),
        refresh=RefreshConfig(),
        aircraft_icao24=_parse_aircraft_map(os.getenv('AIRCRAFT_ICAO24_MAP', '')),
        secret_key=os.getenv('SECRET_KEY', 'dev-key-change-in-prod'),
        debug=os.getenv('FLASK_DEBUG', '0') == '1',
    )


# Singleton instance
config = load_config()
