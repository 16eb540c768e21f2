import random
from datetime import date, timedelta

import pytest

from ro_tracker.analytics.aggregations.shop import (
    build_shop_analytics,
    build_shop_profile,
    get_analytics_by_date_range,
    get_analytics_by_status,
    get_shop_analytics,
    get_shops_analytics,
)
from ro_tracker.core.models import RepairOrder, StatusHistoryEntry
from ro_tracker.core.tuning import AnalyticsTuning

TODAY = date(2024, 6, 1)


def _ro(number, history, shop="Acme Aero"):
    entries = [StatusHistoryEntry(status=s, date=d) for s, d in history]
    return RepairOrder(
        ro_number=number,
        shop_name=shop,
        current_status=entries[-1].status,
        current_status_date=entries[-1].date,
        status_history=entries,
    )


def _completed(number, start, days, shop="Acme Aero"):
    return _ro(number, [("TO SEND", start), ("RECEIVED", start + timedelta(days=days))], shop)


def _active(number, shop="Acme Aero", status="BEING REPAIRED"):
    return _ro(number, [("TO SEND", date(2024, 5, 1)), (status, date(2024, 5, 10))], shop)


def test_median_variance_and_fallback_to_overall():
    ros = [_completed(str(i), date(2024, 1, 1), d) for i, d in enumerate([5, 10, 15, 20])]
    profile = build_shop_profile("Acme Aero", ros, today=TODAY)
    assert profile.completed_count == 4
    assert profile.median_turnaround == 12.5
    assert profile.overall_median == 12.5
    assert profile.variance == 5.0
    # No completions inside the recent window
    assert profile.recent_count == 0
    assert profile.recent_median == 12.5
    assert profile.trend == "stable"


def test_recent_window_detects_improvement():
    old = [_completed(f"old-{i}", date(2024, 1, 1), 20) for i in range(4)]
    recent = [_completed(f"new-{i}", date(2024, 5, 10), 5) for i in range(2)]
    profile = build_shop_profile("Acme Aero", old + recent, today=TODAY)
    assert profile.overall_median == 20.0
    assert profile.recent_count == 2
    assert profile.recent_median == 5.0
    assert profile.trend == "improving"


def test_single_recent_sample_falls_back():
    old = [_completed(f"old-{i}", date(2024, 1, 1), 10) for i in range(3)]
    recent = [_completed("new", date(2024, 4, 25), 30)]
    profile = build_shop_profile("Acme Aero", old + recent, today=TODAY)
    assert profile.recent_count == 1
    assert profile.recent_median == profile.overall_median
    assert profile.trend == "stable"


def test_shop_without_completions_reports_no_data():
    ros = [_active("1"), _ro("2", [("TO SEND", date(2024, 1, 1)), ("BER", date(2024, 1, 9))])]
    profile = build_shop_profile("Acme Aero", ros, today=TODAY)
    assert not profile.has_history
    assert profile.completed_count == 0
    assert profile.median_turnaround is None
    assert profile.recent_median is None
    assert profile.variance is None
    assert profile.trend == "stable"
    assert profile.active_ros == ("1",)
    assert profile.total_ros == 2


def test_single_completion_has_zero_variance():
    profile = build_shop_profile("Acme Aero", [_completed("1", date(2024, 1, 1), 12)], today=TODAY)
    assert profile.median_turnaround == 12.0
    assert profile.variance == 0.0


def test_status_velocity_and_shipping_window():
    ros = [
        _ro(
            "1",
            [
                ("TO SEND", date(2024, 1, 1)),
                ("BEING REPAIRED", date(2024, 1, 3)),
                ("SHIPPING", date(2024, 1, 13)),
                ("RECEIVED", date(2024, 1, 17)),
            ],
        ),
        _ro(
            "2",
            [
                ("TO SEND", date(2024, 2, 1)),
                ("BEING REPAIRED", date(2024, 2, 5)),
                ("SHIPPING", date(2024, 2, 25)),
                ("RECEIVED", date(2024, 3, 2)),
            ],
        ),
    ]
    profile = build_shop_profile("Acme Aero", ros, today=TODAY)
    assert profile.status_velocity == {"BEING REPAIRED": 15.0, "SHIPPING": 5.0, "TO SEND": 3.0}
    assert profile.status_dispersion["BEING REPAIRED"] == 5.0
    assert profile.shipping_days.min_days == 4
    assert profile.shipping_days.max_days == 6
    assert profile.shipping_days.sample_count == 2
    assert profile.shipping_days.source == "observed"
    # Observed spans win over a distance estimate
    assert build_shop_profile("Acme Aero", ros, today=TODAY, state="CA").shipping_days == profile.shipping_days


def test_no_shipping_samples_gives_none():
    profile = build_shop_profile("Acme Aero", [_completed("1", date(2024, 1, 1), 12)], today=TODAY)
    assert profile.shipping_days is None


def test_spelling_variants_merge_under_most_common_name():
    ros = [
        _completed("1", date(2024, 1, 1), 10, shop="Acme Aero"),
        _completed("2", date(2024, 1, 1), 10, shop="Acme Aero"),
        _active("3", shop="ACME  AERO"),
        _active("4", shop="Delta Repair, FL"),
        _active("5", shop="Delta Repair , FL."),
    ]
    profiles = build_shop_analytics(ros, today=TODAY)
    assert set(profiles) == {"Acme Aero", "Delta Repair , FL."}
    assert profiles["Acme Aero"].total_ros == 3
    # RECEIVED orders still await payment, so they stay active
    assert profiles["Acme Aero"].active_ros == ("1", "2", "3")
    # Tie on frequency goes to the longest spelling
    assert profiles["Delta Repair , FL."].active_ros == ("4", "5")


def test_profiles_do_not_depend_on_input_order():
    ros = [_completed(str(i), date(2024, 1, 1) + timedelta(days=i), 5 + i) for i in range(8)]
    ros += [_active(f"A{i}") for i in range(5)]
    shuffled = ros[:]
    random.Random(7).shuffle(shuffled)
    assert build_shop_analytics(ros, today=TODAY) == build_shop_analytics(shuffled, today=TODAY)


def test_get_shop_analytics_matches_normalized_name():
    ros = [_completed("1", date(2024, 1, 1), 10), _active("2", shop="Other Shop")]
    profile = get_shop_analytics("acme aero", ros, today=TODAY)
    assert profile is not None
    assert profile.total_ros == 1
    assert get_shop_analytics("Nobody", ros, today=TODAY) is None
    assert build_shop_analytics([], today=TODAY) == {}


def test_missing_samples_fall_back_to_state_estimate():
    ros = [_completed("1", date(2024, 1, 1), 12)]
    window = build_shop_profile("Acme Aero", ros, today=TODAY, state="TX").shipping_days
    assert (window.min_days, window.max_days) == (3, 4)
    assert window.source == "estimated"
    assert window.sample_count == 0
    # State parsed from a "Name, ST" shop name
    parsed = build_shop_profile("Coast Avionics, CA", ros, today=TODAY).shipping_days
    assert (parsed.min_days, parsed.max_days) == (4, 6)
    assert build_shop_profile("Acme Aero", ros, today=TODAY, state="ZZ").shipping_days is None


def test_build_shop_analytics_uses_state_index():
    ros = [_active("1"), _active("2", shop="Other Shop")]
    profiles = build_shop_analytics(ros, today=TODAY, states={"ACME AERO": "CA"})
    assert profiles["Acme Aero"].shipping_days.source == "estimated"
    assert profiles["Other Shop"].shipping_days is None


def test_trend_tolerance_comes_from_tuning():
    old = [_completed(f"old-{i}", date(2024, 1, 1), 10) for i in range(4)]
    recent = [_completed(f"new-{i}", date(2024, 5, 10), 9) for i in range(2)]
    default = build_shop_profile("Acme Aero", old + recent, today=TODAY)
    assert default.overall_median == 10.0
    assert default.recent_median == 9.0
    # 9.0 sits exactly on the default 10% band edge
    assert default.trend == "stable"
    tight = build_shop_profile("Acme Aero", old + recent, today=TODAY, tuning=AnalyticsTuning(trend_tolerance=0.05))
    assert tight.trend == "improving"


def test_recent_window_comes_from_tuning():
    old = [_completed(f"old-{i}", date(2024, 1, 1), 20) for i in range(4)]
    recent = [_completed(f"new-{i}", date(2024, 5, 10), 5) for i in range(2)]
    narrow = build_shop_profile("Acme Aero", old + recent, today=TODAY, tuning=AnalyticsTuning(recent_window_days=10))
    # Completions on May 15 fall outside a 10-day window ending June 1
    assert narrow.recent_count == 0
    assert narrow.recent_median == narrow.overall_median
    assert narrow.trend == "stable"


def test_get_shops_analytics_keys_by_requested_name():
    ros = [
        _completed("1", date(2024, 1, 1), 10),
        _active("2", shop="Delta Avionics"),
        _active("3", shop="Third Shop"),
    ]
    profiles = get_shops_analytics(
        ["acme aero", "Delta Avionics", "Nobody"], ros, today=TODAY, states={"DELTA AVIONICS": "TX"}
    )
    assert set(profiles) == {"acme aero", "Delta Avionics"}
    assert profiles["acme aero"].total_ros == 1
    assert profiles["Delta Avionics"].shipping_days.max_days == 4
    assert get_shops_analytics([], ros, today=TODAY) == {}


def test_get_analytics_by_status_filters_current_status():
    ros = [
        _active("1", status="SHIPPING"),
        _active("2", status="shipped"),
        _active("3", shop="Other Shop", status="SHIPPING"),
        _active("4", status="BEING REPAIRED"),
        _active("5", shop="Other Shop", status="On  Hold"),
    ]
    shipping = get_analytics_by_status("SHIPPING", ros, today=TODAY)
    assert shipping["Acme Aero"].active_ros == ("1", "2")
    assert shipping["Other Shop"].active_ros == ("3",)
    on_hold = get_analytics_by_status("ON HOLD", ros, today=TODAY)
    assert set(on_hold) == {"Other Shop"}
    assert on_hold["Other Shop"].total_ros == 1
    assert get_analytics_by_status("PAID", ros, today=TODAY) == {}


def test_get_analytics_by_date_range_is_inclusive():
    ros = [_completed(str(i), date(2024, 1, 1), 10) for i in range(4)]
    for ro, made in zip(ros, [date(2024, 1, 1), date(2024, 1, 31), date(2024, 2, 1), None]):
        ro.date_made = made
    profiles = get_analytics_by_date_range(date(2024, 1, 1), date(2024, 1, 31), ros, today=TODAY)
    assert profiles["Acme Aero"].total_ros == 2
    assert get_analytics_by_date_range("2024-03-01", "2024-03-31", ros, today=TODAY) == {}
    with pytest.raises(ValueError):
        get_analytics_by_date_range("not a date", date(2024, 1, 31), ros, today=TODAY)
