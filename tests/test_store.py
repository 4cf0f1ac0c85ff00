import threading
from datetime import timedelta

from flighttracker.records import FlightStatus, StatusChangeEvent

from tests.conftest import NOW, make_position, make_record


def test_first_insert_emits_no_event(store):
    assert store.upsert(make_record()) is None
    assert store.get("AA100").status == FlightStatus.SCHEDULED
    assert store.recent_status_changes() == []


def test_status_change_emits_exactly_one_event(store):
    store.upsert(make_record(status=FlightStatus.SCHEDULED))

    event = store.upsert(make_record(status=FlightStatus.ACTIVE))

    assert event is not None
    assert event.id is not None
    assert event.previous_status == FlightStatus.SCHEDULED
    assert event.new_status == FlightStatus.ACTIVE
    history = store.status_changes_for("AA100")
    assert len(history) == 1
    assert history[0].new_status == FlightStatus.ACTIVE


def test_same_status_emits_no_event(store):
    store.upsert(make_record(status=FlightStatus.ACTIVE))
    assert store.upsert(make_record(status=FlightStatus.ACTIVE, delay=10)) is None
    assert store.get("AA100").delay == 10
    assert store.recent_status_changes() == []


def test_upsert_is_idempotent(store):
    record = make_record(status=FlightStatus.ACTIVE, position=make_position())
    store.upsert(record)
    store.upsert(record)

    assert store.count() == 1
    assert store.recent_status_changes() == []

    stored = store.get("AA100")
    assert stored.position.latitude == 40.0
    assert stored.last_updated == NOW


def test_keys_are_normalized(store):
    store.upsert(make_record(flight_number="aa 100"))
    assert store.get("AA100") is not None
    assert store.tracked_flight_numbers() == ["AA100"]


def test_delete(store):
    store.upsert(make_record())
    assert store.delete("aa100") is True
    assert store.get("AA100") is None
    assert store.delete("AA100") is False


def test_list_all_orders_by_last_updated(store):
    store.upsert(make_record("AA100", last_updated=NOW - timedelta(hours=1)))
    store.upsert(make_record("UA201", last_updated=NOW))

    assert [r.flight_number for r in store.list_all()] == ["UA201", "AA100"]


def test_average_duration_for_route(store):
    store.upsert(make_record(
        "AA102",
        scheduled_departure="2024-04-20T14:00:00+00:00",
        scheduled_arrival="2024-04-20T20:00:00+00:00",
    ))
    store.upsert(make_record(
        "AA104",
        scheduled_departure="2024-04-22T14:00:00+00:00",
        scheduled_arrival="2024-04-22T20:10:00+00:00",
    ))

    assert store.average_duration("JFK", "LAX") == 365


def test_average_duration_prefers_actual_times(store):
    store.upsert(make_record(
        actual_departure="2024-05-01T14:00:00+00:00",
        actual_arrival="2024-05-01T20:00:00+00:00",
    ))
    assert store.average_duration("jfk", "lax") == 360


def test_average_duration_none_without_qualifying_records(store):
    assert store.average_duration("JFK", "LAX") is None

    store.upsert(make_record(scheduled_departure=None))
    assert store.average_duration("JFK", "LAX") is None


def test_routes_and_airports(store):
    store.upsert(make_record("AA100"))
    store.upsert(make_record("BA112", departure_airport="LHR", arrival_airport="JFK"))
    store.upsert(make_record("XX1", departure_airport=None, arrival_airport=None))

    assert store.routes() == [("JFK", "LAX"), ("LHR", "JFK")]
    assert store.departure_airports() == ["JFK", "LHR"]
    assert store.arrival_airports() == ["JFK", "LAX"]
    assert [r.flight_number for r in store.list_by_route("LHR", "JFK")] == ["BA112"]


def test_recent_status_changes_newest_first_with_limit(store):
    for i, status in enumerate([FlightStatus.SCHEDULED, FlightStatus.ACTIVE, FlightStatus.LANDED]):
        store.record_status_change(StatusChangeEvent(
            flight_number="AA100",
            airline="American Airlines",
            previous_status=FlightStatus.UNKNOWN,
            new_status=status,
            timestamp=NOW + timedelta(minutes=i),
        ))

    recent = store.recent_status_changes(limit=2)
    assert [e.new_status for e in recent] == [FlightStatus.LANDED, FlightStatus.ACTIVE]


def test_clear_status_changes(store):
    store.upsert(make_record("AA100"))
    store.upsert(make_record("AA100", status=FlightStatus.ACTIVE))
    store.upsert(make_record("UA201"))
    store.upsert(make_record("UA201", status=FlightStatus.CANCELLED))

    assert store.clear_status_changes("aa100") == 1
    assert len(store.recent_status_changes()) == 1
    assert store.clear_status_changes() == 1
    assert store.recent_status_changes() == []


def test_subscribers_notified_and_errors_contained(store):
    seen = []

    def broken(record, deleted):
        raise RuntimeError("boom")

    store.subscribe(broken)
    store.subscribe(lambda record, deleted: seen.append(record.flight_number))

    store.upsert(make_record())

    assert seen == ["AA100"]


def test_delete_notifies_with_deleted_flag(store):
    seen = []
    store.subscribe(lambda record, deleted: seen.append((record.flight_number, record.status, deleted)))

    store.upsert(make_record(status=FlightStatus.ACTIVE))
    store.delete("AA100")
    store.delete("AA100")

    assert seen == [
        ("AA100", FlightStatus.ACTIVE, False),
        ("AA100", FlightStatus.ACTIVE, True),
    ]


def test_concurrent_upserts_form_consistent_event_chain(store):
    statuses = [FlightStatus.SCHEDULED, FlightStatus.ACTIVE, FlightStatus.LANDED]
    store.upsert(make_record(status=FlightStatus.UNKNOWN))

    def writer(offset):
        for i in range(15):
            store.upsert(make_record(status=statuses[(i + offset) % len(statuses)]))

    threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(10)

    events = sorted(store.status_changes_for("AA100"), key=lambda e: e.id)
    assert events[0].previous_status == FlightStatus.UNKNOWN
    for before, after in zip(events, events[1:]):
        assert after.previous_status == before.new_status
        assert after.previous_status != after.new_status
    assert store.get("AA100").status == events[-1].new_status


def test_lock_held_by_one_thread_blocks_writes_for_same_key_only(store):
    done = []

    def write(flight_number):
        store.upsert(make_record(flight_number))
        done.append(flight_number)

    with store.lock_for("AA100"):
        same = threading.Thread(target=write, args=("AA100",))
        other = threading.Thread(target=write, args=("UA201",))
        same.start()
        other.start()
        other.join(5)
        same.join(0.2)
        assert done == ["UA201"]
        assert same.is_alive()

    same.join(5)
    assert sorted(done) == ["AA100", "UA201"]
    assert store._locks == {}
