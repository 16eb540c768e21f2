"""Shop-level turnaround aggregations.

Profiles are recomputed from the full snapshot on every call; nothing here is
cached or updated incrementally.
"""

from __future__ import annotations

import logging
from collections import Counter, defaultdict
from collections.abc import Iterable, Mapping
from datetime import date, datetime, timedelta

import pandas as pd

from ro_tracker.analytics.metrics.robust import classify_trend, mean_absolute_deviation, median
from ro_tracker.analytics.metrics.shipping import estimate_shipping_window, shop_state
from ro_tracker.analytics.metrics.status_flow import (
    build_shipping_frame,
    build_status_duration_frame,
    build_turnaround_frame,
)
from ro_tracker.core.calendar import resolve_today, to_date
from ro_tracker.core.config import UNKNOWN_SHOP_NAME
from ro_tracker.core.mappers import normalize_shop_name
from ro_tracker.core.models import RepairOrder, ShippingWindow, ShopAnalyticsProfile
from ro_tracker.core.status import Status, is_active_status, normalize_status
from ro_tracker.core.tuning import DEFAULT_TUNING, AnalyticsTuning

logger = logging.getLogger(__name__)


def _display_name(repair_orders: list[RepairOrder]) -> str:
    """Most frequent original spelling; ties go to the longest, then alphabetical."""
    counts = Counter(ro.shop_name or UNKNOWN_SHOP_NAME for ro in repair_orders)
    return min(counts, key=lambda name: (-counts[name], -len(name), name))


def group_by_shop(repair_orders: Iterable[RepairOrder]) -> dict[str, list[RepairOrder]]:
    """Partition ROs by normalized shop name (sorted by key)."""
    groups: defaultdict[str, list[RepairOrder]] = defaultdict(list)
    for ro in repair_orders:
        key = normalize_shop_name(ro.shop_name) or normalize_shop_name(UNKNOWN_SHOP_NAME)
        groups[key].append(ro)
    return {key: groups[key] for key in sorted(groups)}


def _status_statistics(durations: pd.DataFrame) -> tuple[dict[str, float], dict[str, float]]:
    velocity: dict[str, float] = {}
    dispersion: dict[str, float] = {}
    if durations.empty:
        return velocity, dispersion
    for status, series in durations.groupby("status", sort=True)["duration_days"]:
        center = median(series)
        if center is None:
            continue
        velocity[str(status)] = center
        dispersion[str(status)] = mean_absolute_deviation(series, center) or 0.0
    return velocity, dispersion


def _shipping_window(shipping: pd.DataFrame) -> ShippingWindow | None:
    if shipping.empty:
        return None
    days = pd.to_numeric(shipping["shipping_days"], errors="coerce").dropna()
    if days.empty:
        return None
    return ShippingWindow(min_days=int(days.min()), max_days=int(days.max()), sample_count=int(days.size))


def build_shop_profile(
    shop_name: str,
    repair_orders: Iterable[RepairOrder],
    today: date | datetime | None = None,
    tuning: AnalyticsTuning | None = None,
    state: str | None = None,
) -> ShopAnalyticsProfile:
    """Build the analytics profile for one shop's repair orders.

    Parameters
    ----------
    shop_name : str
        Display name for the profile.
    repair_orders : iterable of RepairOrder
        Every RO (active and archived) belonging to the shop.
    today : date-like, optional
        Reference date for the recent window; defaults to the system clock.
    tuning : AnalyticsTuning, optional
        Recent window, minimum recent samples and trend tolerance.
    state : str, optional
        Two-letter state of the shop. When no shipping spans were observed the
        shipping window is estimated from the distance to this state (or to a
        state parsed from a "Name, ST" shop name).

    Returns
    -------
    ShopAnalyticsProfile
        With ``completed_count == 0`` the turnaround fields are None and the
        trend is "stable".
    """
    tuning = tuning or DEFAULT_TUNING
    members = list(repair_orders)
    ref = pd.Timestamp(resolve_today(today))

    turnarounds = build_turnaround_frame(members)
    samples = pd.to_numeric(turnarounds["turnaround_days"], errors="coerce")
    overall = median(samples)
    variance = mean_absolute_deviation(samples, overall) if overall is not None else None

    recent_median = overall
    recent_count = 0
    if overall is not None:
        window_start = ref - timedelta(days=tuning.recent_window_days)
        completed_on = pd.to_datetime(turnarounds["completed_on"], errors="coerce")
        recent = samples[(completed_on >= window_start) & (completed_on <= ref)]
        recent_count = int(recent.size)
        if recent_count >= tuning.min_recent_samples:
            recent_median = median(recent)
        else:
            logger.debug(
                "%s: %d recent completions (< %d); recent median falls back to overall",
                shop_name,
                recent_count,
                tuning.min_recent_samples,
            )

    velocity, dispersion = _status_statistics(build_status_duration_frame(members))
    active = tuple(sorted(ro.ro_number for ro in members if is_active_status(ro.current_status)))
    shipping = _shipping_window(build_shipping_frame(members))
    if shipping is None:
        shipping = estimate_shipping_window(state or shop_state(shop_name))

    return ShopAnalyticsProfile(
        shop_name=shop_name,
        active_ros=active,
        total_ros=len(members),
        completed_count=int(samples.notna().sum()),
        median_turnaround=overall,
        overall_median=overall,
        recent_median=recent_median,
        recent_count=recent_count,
        variance=variance,
        trend=classify_trend(recent_median, overall, tuning.trend_tolerance),
        status_velocity=velocity,
        status_dispersion=dispersion,
        shipping_days=shipping,
    )


def build_shop_analytics(
    repair_orders: Iterable[RepairOrder],
    today: date | datetime | None = None,
    tuning: AnalyticsTuning | None = None,
    states: Mapping[str, str] | None = None,
) -> dict[str, ShopAnalyticsProfile]:
    """Profiles for every shop in the snapshot, keyed by display name.

    Shops whose names differ only in case, spacing or punctuation are merged.
    The result does not depend on the order of ``repair_orders``. ``states``
    maps normalized shop names to state codes for shipping estimates.
    """
    ref = resolve_today(today)
    states = states or {}
    groups = group_by_shop(repair_orders)
    profiles: dict[str, ShopAnalyticsProfile] = {}
    for key, members in groups.items():
        name = _display_name(members)
        profiles[name] = build_shop_profile(name, members, today=ref, tuning=tuning, state=states.get(key))
    logger.debug(
        "Built %d shop profiles from %d repair orders",
        len(profiles),
        sum(len(m) for m in groups.values()),
    )
    return profiles


def get_shop_analytics(
    shop_name: str,
    repair_orders: Iterable[RepairOrder],
    today: date | datetime | None = None,
    tuning: AnalyticsTuning | None = None,
    state: str | None = None,
) -> ShopAnalyticsProfile | None:
    """Profile for a single shop, matched by normalized name; None if it has no ROs."""
    key = normalize_shop_name(shop_name)
    members = [ro for ro in repair_orders if normalize_shop_name(ro.shop_name) == key]
    if not members:
        return None
    return build_shop_profile(shop_name, members, today=today, tuning=tuning, state=state)


def get_shops_analytics(
    shop_names: Iterable[str],
    repair_orders: Iterable[RepairOrder],
    today: date | datetime | None = None,
    tuning: AnalyticsTuning | None = None,
    states: Mapping[str, str] | None = None,
) -> dict[str, ShopAnalyticsProfile]:
    """Profiles for the requested shops, keyed by the names as given.

    Names with no matching ROs are left out.
    """
    members = list(repair_orders)
    ref = resolve_today(today)
    states = states or {}
    profiles: dict[str, ShopAnalyticsProfile] = {}
    for name in shop_names:
        profile = get_shop_analytics(
            name, members, today=ref, tuning=tuning, state=states.get(normalize_shop_name(name))
        )
        if profile is not None:
            profiles[name] = profile
    return profiles


def _status_key(value: str | None) -> str:
    return " ".join((value or "").upper().split())


def get_analytics_by_status(
    status: str,
    repair_orders: Iterable[RepairOrder],
    today: date | datetime | None = None,
    tuning: AnalyticsTuning | None = None,
    states: Mapping[str, str] | None = None,
) -> dict[str, ShopAnalyticsProfile]:
    """Shop profiles built only from ROs currently in ``status``.

    Known statuses match through their aliases ("SHIPPED" selects SHIPPING
    ROs); unrecognized ones match on cleaned text.
    """
    target = normalize_status(status)
    if target is Status.UNKNOWN:
        key = _status_key(status)
        selected = [ro for ro in repair_orders if _status_key(ro.current_status) == key]
    else:
        selected = [ro for ro in repair_orders if normalize_status(ro.current_status) is target]
    return build_shop_analytics(selected, today=today, tuning=tuning, states=states)


def get_analytics_by_date_range(
    start: date | datetime,
    end: date | datetime,
    repair_orders: Iterable[RepairOrder],
    today: date | datetime | None = None,
    tuning: AnalyticsTuning | None = None,
    states: Mapping[str, str] | None = None,
) -> dict[str, ShopAnalyticsProfile]:
    """Shop profiles built from ROs whose ``date_made`` falls in [start, end].

    Both bounds are inclusive. ROs without a ``date_made`` are excluded.
    """
    lower, upper = to_date(start), to_date(end)
    if lower is None or upper is None:
        raise ValueError(f"Invalid date range: {start!r} to {end!r}")
    selected = []
    for ro in repair_orders:
        made = to_date(ro.date_made)
        if made is not None and lower <= made <= upper:
            selected.append(ro)
    return build_shop_analytics(selected, today=today, tuning=tuning, states=states)
