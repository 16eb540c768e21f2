"""Load analytics tunables from YAML (with fallbacks to config defaults)."""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path

import yaml

from .config import (
    MIN_RECENT_SAMPLES,
    MIN_RELIABLE_SAMPLES,
    ON_TRACK_RUNWAY_DAYS,
    RECENT_WINDOW_DAYS,
    SPARSE_FLOOR_DAYS,
    TREND_TOLERANCE,
    UNKNOWN_TERMS_DAYS,
)

logger = logging.getLogger(__name__)

TUNING_FILENAME = "tuning.yaml"


@dataclass(frozen=True, slots=True)
class AnalyticsTuning:
    recent_window_days: int = RECENT_WINDOW_DAYS
    min_recent_samples: int = MIN_RECENT_SAMPLES
    trend_tolerance: float = TREND_TOLERANCE
    min_reliable_samples: int = MIN_RELIABLE_SAMPLES
    sparse_floor_days: float = SPARSE_FLOOR_DAYS
    unknown_terms_days: int = UNKNOWN_TERMS_DAYS
    on_track_runway_days: int = ON_TRACK_RUNWAY_DAYS

    def __post_init__(self) -> None:
        if self.recent_window_days <= 0:
            raise ValueError("recent_window_days must be positive")
        if self.min_recent_samples < 1:
            raise ValueError("min_recent_samples must be at least 1")
        if not 0 <= self.trend_tolerance < 1:
            raise ValueError("trend_tolerance must be in [0, 1)")
        if self.min_reliable_samples < 1:
            raise ValueError("min_reliable_samples must be at least 1")
        if self.sparse_floor_days < 0:
            raise ValueError("sparse_floor_days must be non-negative")
        if self.unknown_terms_days < 0 or self.on_track_runway_days < 0:
            raise ValueError("day offsets must be non-negative")


DEFAULT_TUNING = AnalyticsTuning()


def load_tuning(path: str | Path | None = None) -> AnalyticsTuning:
    """Read ``tuning.yaml`` and overlay it on the defaults.

    Parameters
    ----------
    path : str | Path | None
        Explicit YAML file. When omitted, ``tuning.yaml`` beside the package
        is used if present.

    Returns
    -------
    AnalyticsTuning
        Defaults when the file is missing or empty; unknown keys are ignored
        with a warning. Invalid values raise ``ValueError``.
    """
    yaml_path = Path(path) if path else Path(__file__).resolve().parent.parent / TUNING_FILENAME
    if not yaml_path.exists():
        logger.debug("No tuning file at %s; using defaults", yaml_path)
        return DEFAULT_TUNING
    data = yaml.safe_load(yaml_path.read_text()) or {}
    section = data.get("analytics", data) if isinstance(data, dict) else {}
    if not isinstance(section, dict):
        raise ValueError(f"Malformed tuning file {yaml_path}: expected a mapping")
    known = {f.name for f in fields(AnalyticsTuning)}
    unknown = sorted(set(section) - known)
    if unknown:
        logger.warning("Ignoring unknown tuning keys in %s: %s", yaml_path, ", ".join(unknown))
    overrides = {key: value for key, value in section.items() if key in known}
    return replace(DEFAULT_TUNING, **overrides)
