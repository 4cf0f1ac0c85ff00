import pytest

from flighttracker.app import create_app
from flighttracker.errors import RateLimitedError, SourceNetworkError, UnexpectedSourceError
from flighttracker.records import FlightStatus

from tests.conftest import make_record, make_schedule


@pytest.fixture
def app(store, refresher):
    app = create_app(store=store, refresher=refresher, start_scheduler=False)
    app.config['TESTING'] = True
    app.config['REFRESH_SCHEDULER'].connectivity_check = lambda: True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


def test_health(client):
    assert client.get("/health").get_json() == {"status": "ok"}


def test_list_and_get_flights(client, store):
    store.upsert(make_record("AA100", status=FlightStatus.ACTIVE))
    store.upsert(make_record("UA201"))

    body = client.get("/api/flights").get_json()
    assert body["count"] == 2

    active = client.get("/api/flights?status=active").get_json()
    assert [f["flight_number"] for f in active["flights"]] == ["AA100"]

    flight = client.get("/api/flights/aa100").get_json()
    assert flight["departure"]["airport"] == "JFK"
    assert flight["status"] == "active"


def test_get_unknown_flight_is_404(client):
    assert client.get("/api/flights/ZZ999").status_code == 404


def test_delete_flight(client, store):
    store.upsert(make_record())
    assert client.delete("/api/flights/AA100").status_code == 200
    assert store.get("AA100") is None
    assert client.delete("/api/flights/AA100").status_code == 404


def test_search_success(client, schedule_client, store):
    schedule_client.responses["AA100"] = make_schedule()

    response = client.post("/api/flights/search", json={"flight_number": "aa100"})

    assert response.status_code == 200
    assert response.get_json()["flight_number"] == "AA100"
    assert store.get("AA100") is not None


@pytest.mark.parametrize("error, status", [
    (None, 404),
    (RateLimitedError("aviationstack"), 429),
    (SourceNetworkError("aviationstack", "timeout"), 503),
    (UnexpectedSourceError("aviationstack", "HTTP 500", status_code=500), 502),
])
def test_search_errors(client, schedule_client, error, status):
    if error is not None:
        schedule_client.responses["UA201"] = error

    response = client.post("/api/flights/search", json={"flight_number": "UA201"})

    assert response.status_code == status
    assert response.get_json()["error"]


def test_search_requires_flight_number(client):
    assert client.post("/api/flights/search", json={}).status_code == 400


def test_route_endpoints(client, store):
    store.upsert(make_record("AA100"))
    store.upsert(make_record("BA112", departure_airport="LHR", arrival_airport="JFK"))

    stored = client.get("/api/flights/route?dep=jfk&arr=lax").get_json()
    assert [f["flight_number"] for f in stored["flights"]] == ["AA100"]

    routes = client.get("/api/routes").get_json()
    assert routes["count"] == 2

    average = client.get("/api/routes/average?dep=JFK&arr=LAX").get_json()
    assert average["average_minutes"] == 365

    empty = client.get("/api/routes/average?dep=CDG&arr=FCO").get_json()
    assert empty["average_minutes"] is None


def test_live_route(client, schedule_client):
    schedule_client.route_response = [make_schedule("AA100"), make_schedule("AA2")]

    body = client.get("/api/flights/route/live?dep=JFK&arr=LAX").get_json()

    assert body["count"] == 2


def test_live_route_empty_is_404(client):
    assert client.get("/api/flights/route/live?dep=JFK&arr=LAX").status_code == 404


def test_history_endpoints(client, store):
    store.upsert(make_record("AA100"))
    store.upsert(make_record("AA100", status=FlightStatus.ACTIVE))

    recent = client.get("/api/history?limit=5").get_json()
    assert recent["count"] == 1
    assert recent["history"][0]["new_status"] == "active"

    assert client.get("/api/history/aa100").get_json()["count"] == 1
    assert client.delete("/api/history").get_json() == {"deleted": 1}
    assert client.get("/api/history").get_json()["count"] == 0


def test_refresh_endpoint_runs_pass(client, store, schedule_client):
    store.upsert(make_record("AA100"))
    schedule_client.responses["AA100"] = make_schedule(status="landed")

    body = client.post("/api/refresh").get_json()

    assert body["outcome"] == "success"
    assert store.get("AA100").status == FlightStatus.LANDED


def test_status_endpoint(client):
    body = client.get("/api/status").get_json()
    assert body["database"]["connected"] is True
    assert body["scheduler"]["running"] is False
