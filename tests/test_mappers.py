from datetime import date

import pytest

from ro_tracker.core.mappers import (
    normalize_shop_name,
    profiles_to_dataframe,
    repair_order_from_record,
    repair_orders_to_dataframe,
    shop_from_record,
    shop_state_index,
    shop_terms_index,
)
from ro_tracker.core.models import ShopAnalyticsProfile


def _record(**overrides):
    record = {
        "roNumber": " 38462 ",
        "shopName": "Acme Aero",
        "currentStatus": "WAITING QUOTE",
        "currentStatusDate": "2024-05-01T14:30:00",
        "terms": "NET 30",
        "estimatedCost": "$1,250.50",
        "finalCost": None,
        "partNumber": "PN-100",
        "statusHistory": [
            {"status": "TO SEND", "date": "2024-04-20", "user": "jdoe"},
            {"status": "WAITING QUOTE", "date": "2024-05-01T14:30:00", "cost": "300"},
        ],
    }
    record.update(overrides)
    return record


def test_repair_order_from_camel_case_record():
    ro = repair_order_from_record(_record())
    assert ro.ro_number == "38462"
    assert ro.current_status_date == date(2024, 5, 1)
    assert ro.estimated_cost == 1250.5
    assert ro.final_cost is None
    assert ro.part_number == "PN-100"
    assert [entry.status for entry in ro.status_history] == ["TO SEND", "WAITING QUOTE"]
    assert ro.status_history[0].user == "jdoe"
    assert ro.status_history[1].cost == 300.0


def test_repair_order_from_snake_case_record():
    ro = repair_order_from_record(
        {"ro_number": 7, "shop_name": "Delta", "current_status": "APPROVED", "next_date_to_update": "2024-06-03"}
    )
    assert ro.ro_number == "7"
    assert ro.next_date_to_update == date(2024, 6, 3)
    assert ro.status_history == []


def test_malformed_dates_become_missing():
    ro = repair_order_from_record(
        _record(currentStatusDate="soon", statusHistory=[{"status": "TO SEND", "date": "??"}])
    )
    assert ro.current_status_date is None
    assert ro.status_history[0].date is None


def test_missing_ro_number_raises():
    with pytest.raises(ValueError):
        repair_order_from_record(_record(roNumber="  "))


def test_missing_shop_name_defaults_to_unknown():
    assert repair_order_from_record(_record(shopName=None)).shop_name == "Unknown"


def test_shop_records_and_terms_index():
    shop = shop_from_record({"businessName": "Acme Aero", "paymentTerms": "NET 45", "city": "Miami"})
    assert shop.payment_terms == "NET 45"
    assert shop_terms_index([shop]) == {"ACME AERO": "NET 45"}
    assert shop_state_index([shop]) == {}
    assert shop_state_index([shop_from_record({"businessName": "Delta, Inc", "state": " ga "})]) == {"DELTA,INC": "GA"}
    with pytest.raises(ValueError):
        shop_from_record({"city": "Miami"})


def test_normalize_shop_name():
    assert normalize_shop_name("  Acme   Aero,  FL ") == "ACME AERO,FL"
    assert normalize_shop_name("Acme Aero Inc.") == "ACME AERO INC"
    assert normalize_shop_name(None) == ""


def test_repair_orders_to_dataframe():
    df = repair_orders_to_dataframe([repair_order_from_record(_record())])
    assert df.loc[0, "ro_number"] == "38462"
    assert df.loc[0, "history_length"] == 2
    assert df.loc[0, "shop_key"] == "ACME AERO"
    assert "status_history" not in df.columns
    assert list(df.columns[:3]) == ["ro_number", "shop_name", "current_status"]
    assert repair_orders_to_dataframe([]).empty


def _profile(name, total):
    return ShopAnalyticsProfile(
        shop_name=name,
        active_ros=("1",),
        total_ros=total,
        completed_count=0,
        median_turnaround=None,
        overall_median=None,
        recent_median=None,
        recent_count=0,
        variance=None,
        trend="stable",
    )


def test_profiles_to_dataframe_sorted_by_volume():
    df = profiles_to_dataframe({"B": _profile("B", 3), "A": _profile("A", 3), "C": _profile("C", 9)})
    assert df["shop_name"].tolist() == ["C", "A", "B"]
    assert df.loc[0, "active_count"] == 1
    assert profiles_to_dataframe({}).empty
