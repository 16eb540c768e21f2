"""Mapping raw storage records into domain models and models into DataFrames."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import asdict
from typing import Any

import pandas as pd

from .calendar import to_date
from .config import PROFILE_COLUMNS, REPAIR_ORDER_COLUMNS, UNKNOWN_SHOP_NAME
from .models import RepairOrder, Shop, ShopAnalyticsProfile, StatusHistoryEntry


def normalize_shop_name(value: Any) -> str:
    """Grouping key that folds trivial spelling differences of a shop name.

    Uppercases, collapses whitespace, drops punctuation other than the comma
    separating the state, and normalizes spacing around that comma.

    >>> normalize_shop_name("  Acme Aero,  FL ")
    'ACME AERO,FL'
    >>> normalize_shop_name("acme-aero, fl")
    'ACMEAERO,FL'
    """
    if value is None:
        return ""
    text = " ".join(str(value).upper().split())
    text = re.sub(r"[^\w\s,]", "", text)
    return re.sub(r"\s*,\s*", ",", text).strip()


def _pick(record: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in record and record[key] is not None:
            return record[key]
    return default


def _text(value: Any) -> str | None:
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    text = str(value).strip()
    return text or None


def _number(value: Any) -> float | None:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        value = re.sub(r"[^0-9.\-]", "", value)
    number = pd.to_numeric(value, errors="coerce")
    if pd.isna(number):
        return None
    return float(number)


def map_history_entry(raw: Mapping[str, Any]) -> StatusHistoryEntry:
    def parse_dt(val):
        if val is None or val == "":
            return None
        ts = pd.to_datetime(val, errors="coerce")
        if ts is None or pd.isna(ts):
            return None
        return ts.to_pydatetime()

    date_value = _pick(raw, "date", "timestamp")
    return StatusHistoryEntry(
        status=_text(raw.get("status")) or "",
        date=date_value if hasattr(date_value, "year") else parse_dt(date_value),
        user=_text(raw.get("user")),
        cost=_number(raw.get("cost")),
        delivery_date=to_date(_pick(raw, "deliveryDate", "delivery_date")),
        notes=_text(raw.get("notes")),
    )


def repair_order_from_record(record: Mapping[str, Any]) -> RepairOrder:
    """Build a :class:`RepairOrder` from a storage record.

    Accepts the camelCase keys the spreadsheet/API layer emits
    (``roNumber``, ``currentStatusDate``...) as well as snake_case.

    Raises
    ------
    ValueError
        When the record carries no RO number.
    """
    ro_number = _text(_pick(record, "roNumber", "ro_number"))
    if ro_number is None:
        raise ValueError(f"Repair order record has no RO number: {dict(record)!r}")
    history_raw = _pick(record, "statusHistory", "status_history", default=[]) or []
    history = [
        entry if isinstance(entry, StatusHistoryEntry) else map_history_entry(entry) for entry in history_raw
    ]
    next_date = to_date(_pick(record, "nextDateToUpdate", "next_date_to_update"))
    return RepairOrder(
        ro_number=ro_number,
        shop_name=_text(_pick(record, "shopName", "shop_name")) or UNKNOWN_SHOP_NAME,
        current_status=_text(_pick(record, "currentStatus", "current_status")) or "",
        current_status_date=to_date(_pick(record, "currentStatusDate", "current_status_date")),
        status_history=history,
        terms=_text(record.get("terms")),
        date_made=to_date(_pick(record, "dateMade", "date_made")),
        date_dropped_off=to_date(_pick(record, "dateDroppedOff", "date_dropped_off")),
        estimated_cost=_number(_pick(record, "estimatedCost", "estimated_cost")),
        final_cost=_number(_pick(record, "finalCost", "final_cost")),
        part_number=_text(_pick(record, "partNumber", "part_number")),
        serial_number=_text(_pick(record, "serialNumber", "serial_number")),
        part_description=_text(_pick(record, "partDescription", "part_description")),
        tracking_number=_text(_pick(record, "trackingNumber", "tracking_number")),
        notes=_text(record.get("notes")),
        next_date_to_update=next_date,
        is_overdue=bool(_pick(record, "isOverdue", "is_overdue", default=False)),
        days_overdue=int(_number(_pick(record, "daysOverdue", "days_overdue")) or 0),
    )


def shop_from_record(record: Mapping[str, Any]) -> Shop:
    name = _text(_pick(record, "businessName", "shopName", "name"))
    if name is None:
        raise ValueError(f"Shop record has no name: {dict(record)!r}")
    return Shop(
        name=name,
        payment_terms=_text(_pick(record, "paymentTerms", "defaultTerms", "payment_terms")),
        customer_number=_text(_pick(record, "customerNumber", "customer_number")),
        city=_text(record.get("city")),
        state=_text(record.get("state")),
        contact=_text(_pick(record, "contact", "contactName")),
        email=_text(record.get("email")),
        phone=_text(record.get("phone")),
    )


def shop_terms_index(shops: Iterable[Shop]) -> dict[str, str]:
    """Normalized shop name -> payment terms, for shops that declare terms."""
    return {normalize_shop_name(s.name): s.payment_terms for s in shops if s.payment_terms}


def shop_state_index(shops: Iterable[Shop]) -> dict[str, str]:
    """Normalized shop name -> uppercase state code, for shops with a state."""
    return {normalize_shop_name(s.name): s.state.strip().upper() for s in shops if s.state and s.state.strip()}


def repair_orders_to_dataframe(repair_orders: Iterable[RepairOrder]) -> pd.DataFrame:
    rows = []
    for ro in repair_orders:
        row = asdict(ro)
        row["history_length"] = len(ro.status_history)
        row.pop("status_history", None)
        row["shop_key"] = normalize_shop_name(ro.shop_name)
        rows.append(row)
    if not rows:
        return pd.DataFrame(columns=[*REPAIR_ORDER_COLUMNS, "history_length", "shop_key"])
    df = pd.DataFrame(rows)
    leading = [c for c in REPAIR_ORDER_COLUMNS if c in df.columns]
    return df[leading + [c for c in df.columns if c not in leading]]


def profiles_to_dataframe(profiles: Mapping[str, ShopAnalyticsProfile]) -> pd.DataFrame:
    rows = []
    for profile in profiles.values():
        shipping = profile.shipping_days
        rows.append(
            {
                "shop_name": profile.shop_name,
                "total_ros": profile.total_ros,
                "active_count": len(profile.active_ros),
                "completed_count": profile.completed_count,
                "median_turnaround": profile.median_turnaround,
                "recent_median": profile.recent_median,
                "variance": profile.variance,
                "trend": profile.trend,
                "shipping_min_days": shipping.min_days if shipping else None,
                "shipping_max_days": shipping.max_days if shipping else None,
                "shipping_source": shipping.source if shipping else None,
            }
        )
    if not rows:
        return pd.DataFrame(columns=list(PROFILE_COLUMNS))
    return pd.DataFrame(rows, columns=list(PROFILE_COLUMNS)).sort_values(
        by=["total_ros", "shop_name"], ascending=[False, True], ignore_index=True
    )
