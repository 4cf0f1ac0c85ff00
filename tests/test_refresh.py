import threading

import pytest

from flighttracker.errors import (
    FlightNotFoundError,
    RateLimitedError,
    SourceNetworkError,
    UnexpectedSourceError,
)
from flighttracker.ingestion.refresh import RefreshOutcome, user_message
from flighttracker.records import FlightStatus, PositionSnapshot

from tests.conftest import NOW, make_position, make_record, make_schedule


def test_unmapped_flight_never_calls_position_client(refresher, schedule_client, position_client):
    schedule_client.responses["UA201"] = make_schedule("UA201")

    result = refresher.refresh_flight("UA201", create=True)

    assert result.outcome == RefreshOutcome.UPDATED
    assert position_client.calls == []


def test_mapped_flight_queries_position_at_refresh_time(refresher, schedule_client, position_client):
    schedule_client.responses["AA100"] = make_schedule(status="active")
    position_client.responses["a0f1bb"] = make_position(lat=38.0)

    result = refresher.refresh_flight("aa100", create=True)

    assert position_client.calls == [("a0f1bb", int(NOW.timestamp()))]
    assert result.record.position.latitude == 38.0
    assert result.record.last_updated == NOW


def test_no_data_writes_nothing(refresher, store):
    result = refresher.refresh_flight("AA100", create=True)

    assert result.outcome == RefreshOutcome.NOT_FOUND
    assert store.get("AA100") is None
    assert store.recent_status_changes() == []


def test_status_change_is_reported(refresher, store, schedule_client):
    store.upsert(make_record(status=FlightStatus.SCHEDULED))
    schedule_client.responses["AA100"] = make_schedule(status="active")

    result = refresher.refresh_flight("AA100")

    assert result.status_change.new_status == FlightStatus.ACTIVE
    assert len(store.status_changes_for("AA100")) == 1


def test_schedule_failure_falls_back_to_existing_record(refresher, store, schedule_client):
    store.upsert(make_record(status=FlightStatus.ACTIVE))
    schedule_client.responses["AA100"] = SourceNetworkError("aviationstack", "timeout")

    result = refresher.refresh_flight("AA100")

    assert result.outcome == RefreshOutcome.FALLBACK
    assert result.transient_failure
    stored = store.get("AA100")
    assert stored.status == FlightStatus.ERROR
    assert stored.departure_airport == "JFK"


def test_schedule_failure_without_existing_record_writes_nothing(refresher, store, schedule_client):
    schedule_client.responses["UA201"] = RateLimitedError("aviationstack")

    result = refresher.refresh_flight("UA201", create=True)

    assert result.outcome == RefreshOutcome.FAILED
    assert result.transient_failure
    assert store.get("UA201") is None


def test_schedule_failure_with_position_still_updates(refresher, store, schedule_client, position_client):
    store.upsert(make_record(status=FlightStatus.SCHEDULED))
    schedule_client.responses["AA100"] = UnexpectedSourceError("aviationstack", "HTTP 500", status_code=500)
    position_client.responses["a0f1bb"] = make_position()

    result = refresher.refresh_flight("AA100")

    assert result.outcome == RefreshOutcome.UPDATED
    assert store.get("AA100").status == FlightStatus.ACTIVE
    assert store.get("AA100").arrival_airport == "LAX"


def test_search_returns_record_and_starts_tracking(refresher, store, schedule_client):
    schedule_client.responses["AA100"] = make_schedule()

    record = refresher.search("aa 100")

    assert record.flight_number == "AA100"
    assert store.tracked_flight_numbers() == ["AA100"]


def test_search_not_found(refresher):
    with pytest.raises(FlightNotFoundError):
        refresher.search("ZZ999")


def test_search_does_not_write_fallback(refresher, store, schedule_client):
    store.upsert(make_record(status=FlightStatus.ACTIVE))
    schedule_client.responses["AA100"] = RateLimitedError("aviationstack")

    with pytest.raises(RateLimitedError):
        refresher.search("AA100")

    assert store.get("AA100").status == FlightStatus.ACTIVE


def test_refresh_all_covers_tracked_flights(refresher, store, schedule_client):
    store.upsert(make_record("AA100"))
    store.upsert(make_record("UA201"))
    schedule_client.responses["AA100"] = make_schedule("AA100", status="active")
    schedule_client.responses["UA201"] = make_schedule("UA201", status="landed")

    results = refresher.refresh_all()

    assert sorted(r.flight_number for r in results) == ["AA100", "UA201"]
    assert store.get("UA201").status == FlightStatus.LANDED


@pytest.mark.parametrize("error, message", [
    (FlightNotFoundError("ZZ999"), "No route found. Please check the flight number and try again."),
    (RateLimitedError("aviationstack"), "Rate limit exceeded (HTTP 429). Please try again later."),
    (SourceNetworkError("opensky", "timeout"), "Network error: Please check your internet connection"),
    (UnexpectedSourceError("aviationstack", "HTTP 500", status_code=500), "HTTP Error: 500. Please try again later."),
])
def test_user_message(error, message):
    assert user_message(error) == message


def test_user_message_generic():
    assert user_message(UnexpectedSourceError("aviationstack", "bad shape")) == "Error: aviationstack: bad shape"


def test_position_without_coordinates_writes_nothing(refresher, store, position_client):
    position_client.responses["a0f1bb"] = PositionSnapshot(captured_at=NOW)

    result = refresher.refresh_flight("AA100", create=True)

    assert result.outcome == RefreshOutcome.NOT_FOUND
    assert store.get("AA100") is None


def test_pass_does_not_recreate_flight_deleted_mid_pass(refresher, store, schedule_client):
    store.upsert(make_record("AA100"))
    schedule_client.responses["AA100"] = make_schedule(status="active")
    numbers = store.tracked_flight_numbers()

    store.delete("AA100")
    results = refresher.refresh_all(numbers)

    assert [r.outcome for r in results] == [RefreshOutcome.NOT_FOUND]
    assert store.get("AA100") is None
    assert schedule_client.calls == []


def test_refresh_without_create_skips_untracked_flight(refresher, store, schedule_client):
    schedule_client.responses["UA201"] = make_schedule("UA201")

    result = refresher.refresh_flight("UA201")

    assert result.outcome == RefreshOutcome.NOT_FOUND
    assert store.get("UA201") is None


def test_search_and_delete_for_same_flight_are_serialized(store, refresher, schedule_client):
    started = threading.Event()
    release = threading.Event()

    class SlowSchedule:
        def fetch_schedule(self, flight_number):
            started.set()
            release.wait(5)
            return make_schedule(status="active")

    refresher.schedule_client = SlowSchedule()
    store.upsert(make_record("AA100"))

    searcher = threading.Thread(target=refresher.search, args=("AA100",))
    searcher.start()
    assert started.wait(5)

    deleter = threading.Thread(target=store.delete, args=("AA100",))
    deleter.start()
    deleter.join(0.2)
    assert deleter.is_alive()  # waits for the search to finish its upsert

    release.set()
    searcher.join(5)
    deleter.join(5)

    assert not deleter.is_alive()
    assert store.get("AA100") is None
    assert store.status_changes_for("AA100")[0].new_status == FlightStatus.ACTIVE


def test_search_not_found_leaves_no_lock_behind(refresher, store):
    with pytest.raises(FlightNotFoundError):
        refresher.search("ZZ999")
    assert store._locks == {}
