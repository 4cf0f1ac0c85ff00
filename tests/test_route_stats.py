from flighttracker.analytics import compute_route_stats, route_durations

from tests.conftest import make_record


def test_durations_skip_records_without_both_ends():
    records = [
        make_record("AA100"),
        make_record("AA102", scheduled_arrival=None),
        make_record("AA104", scheduled_departure="not a time"),
    ]
    assert route_durations(records).tolist() == [365.0]


def test_stats_for_route():
    records = [
        make_record("AA102", scheduled_departure="2024-04-20T14:00:00Z", scheduled_arrival="2024-04-20T20:00:00Z"),
        make_record("AA104", scheduled_departure="2024-04-22T14:00:00Z", scheduled_arrival="2024-04-22T20:10:00Z"),
    ]

    stats = compute_route_stats("JFK", "LAX", records)

    assert stats.count == 2
    assert stats.average_minutes == 365
    assert stats.min_val == 360
    assert stats.max_val == 370
    assert stats.to_dict()["std_minutes"] == 5.0


def test_no_durations_is_none():
    assert compute_route_stats("JFK", "LAX", []) is None
