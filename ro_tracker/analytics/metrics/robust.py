"""Outlier-resistant summary statistics for turnaround samples."""

from __future__ import annotations

from collections.abc import Iterable

import numpy as np

from ro_tracker.core.config import TREND_TOLERANCE
from ro_tracker.core.models import Trend


def _clean(values: Iterable[float]) -> np.ndarray:
    arr = np.asarray([float(v) for v in values if v is not None], dtype=float)
    return arr[~np.isnan(arr)]


def median(values: Iterable[float]) -> float | None:
    """Median of ``values`` (mean of the middle two for even counts); None if empty."""
    arr = _clean(values)
    if arr.size == 0:
        return None
    return float(np.median(arr))


def mean_absolute_deviation(values: Iterable[float], center: float | None = None) -> float | None:
    """Mean absolute deviation from ``center`` (the median by default).

    Measured against the median rather than the mean so a single extreme
    sample (a part lost for a year) cannot drag the center toward itself.
    """
    arr = _clean(values)
    if arr.size == 0:
        return None
    if center is None:
        center = float(np.median(arr))
    return float(np.mean(np.abs(arr - center)))


def classify_trend(
    recent: float | None,
    overall: float | None,
    tolerance: float = TREND_TOLERANCE,
) -> Trend:
    """Compare a recent median with the overall median.

    Parameters
    ----------
    recent, overall : float | None
        Medians in days. Missing values mean "no evidence" and yield "stable".
    tolerance : float
        Fractional band around ``overall``; values on the band edges are stable.

    Returns
    -------
    str
        "improving" when recent is below the band (faster turnaround),
        "declining" when above it, otherwise "stable".
    """
    if recent is None or overall is None:
        return "stable"
    if recent < overall * (1 - tolerance):
        return "improving"
    if recent > overall * (1 + tolerance):
        return "declining"
    return "stable"
