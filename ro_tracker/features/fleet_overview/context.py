"""Pure helpers to build the fleet overview dashboard context."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime

import pandas as pd

from ro_tracker.analytics.metrics.follow_up import add_follow_up_metrics, parse_payment_terms
from ro_tracker.analytics.segments import filters as seg
from ro_tracker.core.calendar import resolve_today
from ro_tracker.core.config import DUE_SOON_DAYS, OVERDUE_ESCALATION_DAYS, SETTINGS, STALE_STATUS_DAYS
from ro_tracker.core.mappers import profiles_to_dataframe
from ro_tracker.core.models import ShopAnalyticsProfile
from ro_tracker.core.status import Status, is_active_status, normalize_status

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DashboardStats:
    """Headline counts and totals for the dashboard cards."""

    total_active: int = 0
    overdue: int = 0
    waiting_quote: int = 0
    approved: int = 0
    being_repaired: int = 0
    shipping: int = 0
    total_value: float = 0.0
    total_estimated_value: float = 0.0
    total_final_value: float = 0.0
    due_today: int = 0
    overdue_30_plus: int = 0
    on_track: int = 0
    approved_paid: int = 0
    rai: int = 0
    ber: int = 0
    cancel: int = 0
    scrapped: int = 0
    approved_net: int = 0


@dataclass(slots=True)
class FleetOverviewContext:
    """Context data for the fleet overview page."""

    stats: DashboardStats
    overdue: pd.DataFrame
    due_today: pd.DataFrame
    due_soon: pd.DataFrame
    stale: pd.DataFrame
    pending_archive: pd.DataFrame
    shops: pd.DataFrame = field(default_factory=pd.DataFrame)
    status_distribution: dict[str, int] = field(default_factory=dict)


def _money(series: pd.Series) -> pd.Series:
    return pd.to_numeric(series, errors="coerce").fillna(0.0)


def compute_dashboard_stats(df: pd.DataFrame) -> DashboardStats:
    """Dashboard counts over a follow-up enriched repair-order frame."""
    if df.empty:
        return DashboardStats()
    statuses = df["current_status"].map(normalize_status)

    def count(*wanted: Status) -> int:
        return int(statuses.isin(wanted).sum())

    estimated = _money(df["estimated_cost"])
    final = _money(df["final_cost"])
    # Final cost wins when set; otherwise the estimate
    value = final.where(final != 0, estimated)
    net_terms = df["terms"].map(lambda terms: isinstance(terms, str) and parse_payment_terms(terms).kind == "net")
    precision = SETTINGS.currency_precision

    return DashboardStats(
        total_active=int(df["current_status"].map(is_active_status).sum()),
        overdue=int(df["is_overdue"].fillna(False).astype(bool).sum()),
        waiting_quote=count(Status.WAITING_QUOTE),
        approved=count(Status.APPROVED),
        being_repaired=count(Status.BEING_REPAIRED),
        shipping=count(Status.SHIPPING),
        total_value=round(float(value.sum()), precision),
        total_estimated_value=round(float(estimated.sum()), precision),
        total_final_value=round(float(final.sum()), precision),
        due_today=int(df["due_today"].fillna(False).astype(bool).sum()),
        overdue_30_plus=int((pd.to_numeric(df["days_overdue"], errors="coerce") > OVERDUE_ESCALATION_DAYS).sum()),
        on_track=int(df["on_track"].fillna(False).astype(bool).sum()),
        approved_paid=count(Status.PAID, Status.PAYMENT_SENT),
        rai=count(Status.RAI),
        ber=count(Status.BER),
        cancel=count(Status.CANCELLED),
        scrapped=count(Status.SCRAPPED),
        approved_net=int(((statuses == Status.NET) | net_terms).sum()),
    )


def build_fleet_overview(
    df: pd.DataFrame,
    profiles: Mapping[str, ShopAnalyticsProfile] | None = None,
    today: date | datetime | None = None,
    stale_days: int = STALE_STATUS_DAYS,
    due_soon_days: int = DUE_SOON_DAYS,
    top_n: int | None = None,
) -> FleetOverviewContext:
    """Build context for the fleet overview page.

    Parameters
    ----------
    df : pd.DataFrame
        Repair-order frame from ``repair_orders_to_dataframe``. Follow-up
        columns are added when missing.
    profiles : mapping, optional
        Shop profiles for the shop summary table.
    today : date-like, optional
        Reference date; defaults to the system clock.
    stale_days : int
        Days in the current status before an active RO counts as stale.
    due_soon_days : int
        Horizon of the "due soon" list.
    top_n : int, optional
        Maximum rows in the overdue list; ``SETTINGS.max_table_rows`` by default.

    Returns
    -------
    FleetOverviewContext
        Assembled context data for the page.
    """
    shops = profiles_to_dataframe(profiles or {})
    if df.empty:
        return FleetOverviewContext(
            stats=DashboardStats(),
            overdue=pd.DataFrame(),
            due_today=pd.DataFrame(),
            due_soon=pd.DataFrame(),
            stale=pd.DataFrame(),
            pending_archive=pd.DataFrame(),
            shops=shops,
        )

    ref = resolve_today(today)
    enriched = df if "days_in_status" in df.columns else add_follow_up_metrics(df, ref)
    stats = compute_dashboard_stats(enriched)
    logger.debug(
        "Fleet overview: %d active, %d overdue, %d due today", stats.total_active, stats.overdue, stats.due_today
    )
    return FleetOverviewContext(
        stats=stats,
        overdue=seg.overdue(enriched, top_n),
        due_today=seg.due_today(enriched),
        due_soon=seg.due_within(enriched, due_soon_days, ref),
        stale=seg.stale(enriched, stale_days),
        pending_archive=seg.pending_archive(enriched),
        shops=shops,
        status_distribution=seg.status_distribution(enriched),
    )
