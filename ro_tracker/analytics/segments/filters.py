"""DataFrame segment filters for dashboard work lists.

Filters expect a frame from ``repair_orders_to_dataframe`` passed through
``add_follow_up_metrics``; each returns a filtered copy.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta

import pandas as pd

from ro_tracker.core.calendar import resolve_today, to_date
from ro_tracker.core.config import DUE_SOON_DAYS, OVERDUE_ESCALATION_DAYS, SETTINGS, STALE_STATUS_DAYS
from ro_tracker.core.status import (
    ArchiveBucket,
    StatusCategory,
    archive_destination,
    is_active_status,
    normalize_status,
    status_rule,
)


def _limit(df: pd.DataFrame, top_n: int | None) -> pd.DataFrame:
    return df.head(top_n if top_n is not None else SETTINGS.max_table_rows)


def active_only(df: pd.DataFrame) -> pd.DataFrame:
    if df.empty:
        return df
    return df[df["current_status"].map(is_active_status)].copy()


def overdue(df: pd.DataFrame, top_n: int | None = None) -> pd.DataFrame:
    """Overdue ROs, most days overdue first."""
    if df.empty or "is_overdue" not in df.columns:
        return pd.DataFrame()
    out = df[df["is_overdue"].fillna(False).astype(bool)]
    return _limit(out.sort_values(by=["days_overdue", "ro_number"], ascending=[False, True]), top_n)


def overdue_escalated(df: pd.DataFrame, min_days: int = OVERDUE_ESCALATION_DAYS) -> pd.DataFrame:
    """ROs overdue by more than ``min_days``."""
    out = overdue(df, top_n=len(df))
    if out.empty:
        return out
    return out[out["days_overdue"] > min_days].copy()


def due_today(df: pd.DataFrame) -> pd.DataFrame:
    if df.empty or "due_today" not in df.columns:
        return pd.DataFrame()
    return _limit(df[df["due_today"].fillna(False).astype(bool)].sort_values("ro_number"), None)


def due_within(
    df: pd.DataFrame,
    days: int = DUE_SOON_DAYS,
    today: date | datetime | None = None,
) -> pd.DataFrame:
    """ROs whose next follow-up falls between today and ``days`` from now (inclusive)."""
    if df.empty or "next_date_to_update" not in df.columns:
        return pd.DataFrame()
    ref = pd.Timestamp(resolve_today(today))
    next_dt = pd.to_datetime(df["next_date_to_update"].map(to_date), errors="coerce")
    mask = next_dt.between(ref, ref + timedelta(days=days))
    out = df[mask].copy()
    out["days_until_update"] = (next_dt[mask] - ref).dt.days.astype(int)
    return _limit(out.sort_values(by=["days_until_update", "ro_number"]), None)


def stale(df: pd.DataFrame, days_threshold: int = STALE_STATUS_DAYS) -> pd.DataFrame:
    """Active ROs sitting in their current status for ``days_threshold`` days or more."""
    if df.empty or "days_in_status" not in df.columns:
        return pd.DataFrame()
    out = active_only(df)
    out["days_in_status"] = pd.to_numeric(out["days_in_status"], errors="coerce").fillna(0)
    out = out[out["days_in_status"] >= float(days_threshold)]
    return _limit(out.sort_values(by="days_in_status", ascending=False), None)


def by_category(df: pd.DataFrame, category: StatusCategory | str) -> pd.DataFrame:
    if df.empty:
        return df
    wanted = StatusCategory(category)
    mask = df["current_status"].map(lambda value: status_rule(value).category is wanted)
    return df[mask].copy()


def pending_archive(df: pd.DataFrame, bucket: ArchiveBucket | str | None = None) -> pd.DataFrame:
    """ROs whose status routes them to an archive sheet, with an ``archive_bucket`` column.

    When ``bucket`` is given only that destination is kept.
    """
    if df.empty:
        return df
    out = df.copy()
    out["archive_bucket"] = out["current_status"].map(
        lambda value: destination.value if (destination := archive_destination(value)) else None
    )
    out = out[out["archive_bucket"].notna()]
    if bucket is not None:
        out = out[out["archive_bucket"] == ArchiveBucket(bucket).value]
    return out


def status_distribution(df: pd.DataFrame) -> dict[str, int]:
    """Counts of ROs per canonical status, largest first."""
    if df.empty:
        return {}
    counts = df["current_status"].map(lambda value: normalize_status(value).value).value_counts()
    return {str(k): int(v) for k, v in counts.items()}
