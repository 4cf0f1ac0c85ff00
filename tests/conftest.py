import json
from datetime import datetime, timezone

import pytest
import requests

from flighttracker.ingestion.aircraft_map import AircraftMap
from flighttracker.ingestion.refresh import FlightRefresher
from flighttracker.records import FlightRecord, FlightStatus, PositionSnapshot, ScheduleData
from flighttracker.store import TrackingStore

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class DummyResp:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else json.dumps(payload or {})

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)


class FakeScheduleClient:
    """Stands in for AviationStackClient; returns or raises per flight number."""

    def __init__(self, responses=None):
        self.responses = responses or {}
        self.calls = []
        self.route_response = []

    def fetch_schedule(self, flight_number):
        self.calls.append(flight_number)
        result = self.responses.get(flight_number)
        if isinstance(result, Exception):
            raise result
        return result

    def fetch_route(self, departure, arrival):
        if isinstance(self.route_response, Exception):
            raise self.route_response
        return self.route_response


class FakePositionClient:
    """Stands in for OpenSkyClient; keyed by icao24."""

    def __init__(self, responses=None):
        self.responses = responses or {}
        self.calls = []

    def fetch_position(self, icao24, at_time=None):
        self.calls.append((icao24, at_time))
        result = self.responses.get(icao24)
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def store():
    return TrackingStore.from_url("sqlite://")


@pytest.fixture
def schedule_client():
    return FakeScheduleClient()


@pytest.fixture
def position_client():
    return FakePositionClient()


@pytest.fixture
def aircraft():
    return AircraftMap({"AA100": "a0f1bb"})


@pytest.fixture
def refresher(store, schedule_client, position_client, aircraft):
    return FlightRefresher(
        store,
        schedule_client,
        position_client,
        aircraft,
        max_workers=2,
        clock=lambda: NOW,
    )


def make_schedule(flight_number="AA100", status="scheduled", **kwargs):
    values = dict(
        flight_number=flight_number,
        airline="American Airlines",
        departure_airport="JFK",
        arrival_airport="LAX",
        scheduled_departure="2024-05-01T14:00:00+00:00",
        scheduled_arrival="2024-05-01T20:05:00+00:00",
        status=status,
    )
    values.update(kwargs)
    return ScheduleData(**values)


def make_record(flight_number="AA100", status=FlightStatus.SCHEDULED, **kwargs):
    values = dict(
        flight_number=flight_number,
        airline="American Airlines",
        departure_airport="JFK",
        arrival_airport="LAX",
        scheduled_departure="2024-05-01T14:00:00+00:00",
        scheduled_arrival="2024-05-01T20:05:00+00:00",
        status=status,
        last_updated=NOW,
    )
    values.update(kwargs)
    return FlightRecord(**values)


def make_position(lat=40.0, lon=-100.0, **kwargs):
    values = dict(latitude=lat, longitude=lon, altitude=10000, heading=270, ground_speed=850, captured_at=NOW)
    values.update(kwargs)
    return PositionSnapshot(**values)
