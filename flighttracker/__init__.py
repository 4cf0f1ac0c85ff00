"""
FlightTracker Package.

Tracks airline flights by flight number, built with Flask, SQLAlchemy,
requests and NumPy.

Modules:
    api/         REST endpoints for flights, routes, history and refresh control
    models/      SQLAlchemy ORM models (TrackedFlight, StatusChange)
    ingestion/   OpenSky client, flight refresher and periodic refresh scheduler
    analytics/   NumPy-based route duration statistics
    services/    External API integrations (AviationStack schedules)
    merge.py     Reconciles schedule and position data into one record
    store.py     Durable flight records and status-change history
    config.py    Centralized configuration from environment variables
"""

__version__ = '1.0.0'
