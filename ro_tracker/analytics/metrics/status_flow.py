"""Status flow and duration analysis over repair-order histories.

This module turns each RO's status history into a dated timeline and derives
the per-RO samples the shop aggregation consumes: turnaround, time spent in
each status, and shipping spans.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date

import pandas as pd

from ro_tracker.core.calendar import to_date
from ro_tracker.core.mappers import normalize_shop_name
from ro_tracker.core.models import RepairOrder
from ro_tracker.core.status import SHIPPED_STATUSES, Status, is_completion_status, normalize_status


def status_label(raw: str | None) -> str:
    """Canonical status name, or the cleaned raw text for unrecognized statuses."""
    status = normalize_status(raw)
    if status is Status.UNKNOWN and raw and raw.strip():
        return " ".join(raw.upper().split())
    return status.value


def timeline(ro: RepairOrder) -> list[tuple[date, Status, str]]:
    """Dated status events ``(date, status, label)`` for one RO, oldest first.

    Entries without a usable date are skipped. The sort is stable, so entries
    sharing a date keep their recorded order.
    """
    events: list[tuple[date, Status, str]] = []
    for entry in ro.status_history:
        when = to_date(entry.date)
        if when is None:
            continue
        events.append((when, normalize_status(entry.status), status_label(entry.status)))
    events.sort(key=lambda event: event[0])
    return events


def extract_turnaround(ro: RepairOrder) -> tuple[int, date] | None:
    """Turnaround for a completed RO as ``(days, completed_on)``.

    The start is the first tracked event; the end is the first later event
    whose status completes the repair. Returns None when either is missing.
    """
    events = timeline(ro)
    if len(events) < 2:
        return None
    started_on = events[0][0]
    for when, status, _label in events[1:]:
        if is_completion_status(status):
            return max(0, (when - started_on).days), when
    return None


def extract_status_durations(ro: RepairOrder) -> list[tuple[str, int]]:
    """Days spent in each status, measured from its entry to the next entry.

    The current (still open) status contributes nothing.
    """
    events = timeline(ro)
    durations: list[tuple[str, int]] = []
    for (start, _status, label), (end, _next, _next_label) in zip(events, events[1:]):
        durations.append((label, (end - start).days))
    return durations


def extract_shipping_spans(ro: RepairOrder) -> list[int]:
    """Days from the start of each shipment to the following receipt."""
    spans: list[int] = []
    shipped_on: date | None = None
    for when, status, _label in timeline(ro):
        if status in SHIPPED_STATUSES:
            if shipped_on is None:
                shipped_on = when
            continue
        if shipped_on is not None and is_completion_status(status):
            spans.append((when - shipped_on).days)
            shipped_on = None
    return spans


def build_turnaround_frame(repair_orders: Iterable[RepairOrder]) -> pd.DataFrame:
    """One row per completed RO: shop_key, ro_number, turnaround_days, completed_on."""
    records: list[dict[str, object]] = []
    for ro in repair_orders:
        sample = extract_turnaround(ro)
        if sample is None:
            continue
        days, completed_on = sample
        records.append(
            {
                "shop_key": normalize_shop_name(ro.shop_name),
                "ro_number": ro.ro_number,
                "turnaround_days": float(days),
                "completed_on": pd.Timestamp(completed_on),
            }
        )
    if not records:
        return pd.DataFrame(columns=["shop_key", "ro_number", "turnaround_days", "completed_on"])
    return pd.DataFrame(records)


def build_status_duration_frame(repair_orders: Iterable[RepairOrder]) -> pd.DataFrame:
    """Long-form status durations: shop_key, ro_number, status, duration_days."""
    records: list[dict[str, object]] = []
    for ro in repair_orders:
        shop_key = normalize_shop_name(ro.shop_name)
        for status, days in extract_status_durations(ro):
            records.append(
                {
                    "shop_key": shop_key,
                    "ro_number": ro.ro_number,
                    "status": status,
                    "duration_days": float(days),
                }
            )
    if not records:
        return pd.DataFrame(columns=["shop_key", "ro_number", "status", "duration_days"])
    return pd.DataFrame(records)


def build_shipping_frame(repair_orders: Iterable[RepairOrder]) -> pd.DataFrame:
    records: list[dict[str, object]] = []
    for ro in repair_orders:
        shop_key = normalize_shop_name(ro.shop_name)
        for days in extract_shipping_spans(ro):
            records.append({"shop_key": shop_key, "ro_number": ro.ro_number, "shipping_days": days})
    if not records:
        return pd.DataFrame(columns=["shop_key", "ro_number", "shipping_days"])
    return pd.DataFrame(records)
