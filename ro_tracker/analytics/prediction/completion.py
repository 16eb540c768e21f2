"""Completion-date predictions for active repair orders."""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from datetime import date, datetime

from ro_tracker.analytics.metrics.follow_up import calculate_days_in_status
from ro_tracker.analytics.metrics.status_flow import status_label, timeline
from ro_tracker.core.calendar import add_days, resolve_today, to_date
from ro_tracker.core.mappers import normalize_shop_name
from ro_tracker.core.models import CompletionPrediction, PredictionStatus, RepairOrder, ShopAnalyticsProfile
from ro_tracker.core.status import is_terminal_status, normalize_status, remaining_stages, stage_index
from ro_tracker.core.tuning import DEFAULT_TUNING, AnalyticsTuning

logger = logging.getLogger(__name__)


def find_profile(
    shop_name: str, profiles: Mapping[str, ShopAnalyticsProfile]
) -> ShopAnalyticsProfile | None:
    """Profile for ``shop_name``: exact key first, then normalized name."""
    profile = profiles.get(shop_name)
    if profile is not None:
        return profile
    key = normalize_shop_name(shop_name)
    for name, candidate in profiles.items():
        if normalize_shop_name(name) == key:
            return candidate
    return None


def _classify(
    estimated: date, confidence_days: int, ro: RepairOrder, today: date
) -> PredictionStatus:
    if estimated < today or ro.is_overdue:
        return "overdue"
    next_update = to_date(ro.next_date_to_update)
    if (estimated - today).days <= confidence_days or (next_update is not None and next_update < today):
        return "at-risk"
    return "on-track"


def predict_completion(
    ro: RepairOrder,
    profiles: Mapping[str, ShopAnalyticsProfile],
    today: date | datetime | None = None,
    tuning: AnalyticsTuning | None = None,
) -> CompletionPrediction | None:
    """Estimate when an active RO will complete, from its own shop's profile.

    Parameters
    ----------
    ro : RepairOrder
        The order to predict. Follow-up fields (``is_overdue``,
        ``next_date_to_update``) should already be refreshed.
    profiles : mapping of str to ShopAnalyticsProfile
        Output of :func:`build_shop_analytics` for the same snapshot.
    today : date-like, optional
        Reference date; defaults to the system clock.
    tuning : AnalyticsTuning, optional
        Sparse-shop threshold and per-stage spread floor.

    Returns
    -------
    CompletionPrediction | None
        None when the shop has no profile or no completed history, or when
        the RO is already in a terminal status.
    """
    tuning = tuning or DEFAULT_TUNING
    if is_terminal_status(ro.current_status):
        return None
    profile = find_profile(ro.shop_name, profiles)
    if profile is None or not profile.has_history:
        logger.debug("RO %s: no usable history for shop %r", ro.ro_number, ro.shop_name)
        return None

    ref = resolve_today(today)
    status = normalize_status(ro.current_status)
    velocity = profile.status_velocity
    dispersion = profile.status_dispersion

    if stage_index(status) is None:
        # Off the forward sequence: measure against the whole turnaround
        events = timeline(ro)
        started_on = events[0][0] if events else to_date(ro.current_status_date)
        since_start = max(0, (ref - started_on).days) if started_on else 0
        remaining = max(0.0, (profile.median_turnaround or 0.0) - since_start)
        ahead: tuple[str, ...] = ()
        contributing: list[str] = []
        no_velocity = False
    else:
        label = status_label(ro.current_status)
        elapsed = calculate_days_in_status(ro.current_status_date, ref)
        ahead = tuple(stage.value for stage in remaining_stages(status))
        contributing = [label, *ahead]
        remaining = max(0.0, velocity.get(label, 0.0) - elapsed)
        remaining += sum(velocity.get(stage, 0.0) for stage in ahead)
        no_velocity = not any(stage in velocity for stage in contributing)

    spread = (profile.variance or 0.0) + sum(dispersion.get(stage, 0.0) for stage in contributing)
    low_confidence = no_velocity
    n = profile.completed_count
    if n < tuning.min_reliable_samples:
        floor = tuning.sparse_floor_days * max(1, len(contributing))
        spread = max(spread, floor) * (1 + (tuning.min_reliable_samples - n) / tuning.min_reliable_samples)
        low_confidence = True

    estimated = add_days(ref, math.ceil(remaining))
    confidence_days = math.ceil(spread)
    prediction = CompletionPrediction(
        estimated_date=estimated,
        confidence_days=confidence_days,
        status=_classify(estimated, confidence_days, ro, ref),
        remaining_days=remaining,
        remaining_stages=ahead,
        low_confidence=low_confidence,
    )
    logger.debug(
        "RO %s at %s: %.1f days remaining (+/- %d) -> %s",
        ro.ro_number,
        status.value,
        remaining,
        confidence_days,
        prediction.status,
    )
    return prediction


def predict_all(
    repair_orders: Iterable[RepairOrder],
    profiles: Mapping[str, ShopAnalyticsProfile],
    today: date | datetime | None = None,
    tuning: AnalyticsTuning | None = None,
) -> dict[str, CompletionPrediction]:
    """Predictions keyed by RO number, omitting ROs that cannot be predicted."""
    ref = resolve_today(today)
    predictions: dict[str, CompletionPrediction] = {}
    for ro in repair_orders:
        prediction = predict_completion(ro, profiles, today=ref, tuning=tuning)
        if prediction is not None:
            predictions[ro.ro_number] = prediction
    return predictions
