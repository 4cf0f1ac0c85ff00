"""
Error taxonomy for the flight data sources.

NotFound/NoData are not errors at the client level (clients return None);
only the on-demand search raises FlightNotFoundError so the caller can
show a message.
"""

from typing import Optional


class FlightTrackerError(Exception):
    """Base class for all FlightTracker errors."""


class SourceError(FlightTrackerError):
    """A flight data source failed to answer a query."""

    def __init__(self, source: str, message: str, status_code: Optional[int] = None):
        super().__init__(f'{source}: {message}')
        self.source = source
        self.status_code = status_code


class TransientSourceError(SourceError):
    """Failure expected to clear up on its own; safe to retry later."""


class RateLimitedError(TransientSourceError):
    """Provider answered HTTP 429."""

    def __init__(self, source: str, message: str = 'rate limit exceeded'):
        super().__init__(source, message, status_code=429)


class SourceNetworkError(TransientSourceError):
    """Timeout or connection failure talking to the provider."""


class UnexpectedSourceError(SourceError):
    """Any other provider failure (HTTP error, error envelope, bad JSON)."""


class FlightNotFoundError(FlightTrackerError):
    """Neither source has data for the requested flight number."""

    def __init__(self, flight_number: str):
        super().__init__(f'No data found for flight {flight_number}')
        self.flight_number = flight_number
