from datetime import date, datetime

from ro_tracker.analytics.metrics.robust import classify_trend, mean_absolute_deviation, median
from ro_tracker.analytics.metrics.status_flow import (
    build_status_duration_frame,
    build_turnaround_frame,
    extract_shipping_spans,
    extract_status_durations,
    extract_turnaround,
    status_label,
    timeline,
)
from ro_tracker.core.models import RepairOrder, StatusHistoryEntry


def _ro(number, history, shop="Acme Aero"):
    entries = [StatusHistoryEntry(status=s, date=d) for s, d in history]
    return RepairOrder(
        ro_number=number,
        shop_name=shop,
        current_status=entries[-1].status if entries else "TO SEND",
        current_status_date=entries[-1].date if entries else None,
        status_history=entries,
    )


def test_median_and_mad():
    assert median([5, 10, 15, 20]) == 12.5
    assert mean_absolute_deviation([5, 10, 15, 20]) == 5.0
    assert mean_absolute_deviation([7]) == 0.0
    assert median([]) is None
    assert mean_absolute_deviation([]) is None


def test_trend_boundaries_are_stable():
    assert classify_trend(5.0, 10.0, 0.5) == "stable"
    assert classify_trend(15.0, 10.0, 0.5) == "stable"
    assert classify_trend(4.9, 10.0, 0.5) == "improving"
    assert classify_trend(15.1, 10.0, 0.5) == "declining"
    assert classify_trend(None, 10.0) == "stable"


def test_trend_default_tolerance_band():
    assert classify_trend(9.0, 10.0) == "stable"
    assert classify_trend(8.9, 10.0) == "improving"
    assert classify_trend(10.5, 10.0) == "stable"
    assert classify_trend(11.5, 10.0) == "declining"


def test_timeline_sorts_and_skips_undated_entries():
    ro = _ro(
        "1",
        [
            ("APPROVED", date(2024, 1, 10)),
            ("TO SEND", date(2024, 1, 1)),
            ("WAITING QUOTE", None),
            ("on hold", date(2024, 1, 12)),
        ],
    )
    events = timeline(ro)
    assert [when for when, _, _ in events] == [date(2024, 1, 1), date(2024, 1, 10), date(2024, 1, 12)]
    assert events[-1][2] == "ON HOLD"
    assert status_label("paid >>>>") == "PAID"


def test_turnaround_from_first_event_to_first_completion():
    ro = _ro(
        "1",
        [
            ("TO SEND", datetime(2024, 1, 1, 16, 0)),
            ("BEING REPAIRED", date(2024, 1, 5)),
            ("RECEIVED", date(2024, 1, 21)),
            ("PAID", date(2024, 2, 1)),
        ],
    )
    assert extract_turnaround(ro) == (20, date(2024, 1, 21))


def test_returns_and_open_orders_have_no_turnaround():
    returned = _ro("1", [("TO SEND", date(2024, 1, 1)), ("BER", date(2024, 1, 9))])
    open_ro = _ro("2", [("TO SEND", date(2024, 1, 1)), ("APPROVED", date(2024, 1, 9))])
    assert extract_turnaround(returned) is None
    assert extract_turnaround(open_ro) is None
    frame = build_turnaround_frame([returned, open_ro])
    assert frame.empty
    assert list(frame.columns) == ["shop_key", "ro_number", "turnaround_days", "completed_on"]


def test_status_durations_and_shipping_spans():
    ro = _ro(
        "1",
        [
            ("TO SEND", date(2024, 1, 1)),
            ("WAITING QUOTE", date(2024, 1, 3)),
            ("BEING REPAIRED", date(2024, 1, 10)),
            ("SHIPPING", date(2024, 1, 20)),
            ("RECEIVED", date(2024, 1, 24)),
        ],
    )
    assert extract_status_durations(ro) == [
        ("TO SEND", 2),
        ("WAITING QUOTE", 7),
        ("BEING REPAIRED", 10),
        ("SHIPPING", 4),
    ]
    assert extract_shipping_spans(ro) == [4]
    frame = build_status_duration_frame([ro])
    assert set(frame["shop_key"]) == {"ACME AERO"}
    assert frame["duration_days"].sum() == 23
