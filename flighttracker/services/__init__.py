"""
External integration services.

Schedule/status lookups against AviationStack. Failures are classified
into the flighttracker.errors taxonomy and left to the caller to retry.
"""

from flighttracker.services.aviationstack import AviationStackClient, parse_flight

__all__ = ['AviationStackClient', 'parse_flight']
