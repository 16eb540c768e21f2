"""Distance-based shipping estimates for shops without observed shipping spans."""

from __future__ import annotations

import logging

import numpy as np

from ro_tracker.core.config import (
    EARTH_RADIUS_MILES,
    FAR_SHIPPING_DAYS,
    HQ_COORDS,
    SHIPPING_DISTANCE_BUCKETS,
    STATE_COORDS,
)
from ro_tracker.core.models import ShippingWindow

logger = logging.getLogger(__name__)


def haversine_miles(origin: tuple[float, float], destination: tuple[float, float]) -> float:
    """Great-circle distance in miles between two (lat, lon) points in degrees."""
    lat1, lon1, lat2, lon2 = np.radians([origin[0], origin[1], destination[0], destination[1]])
    a = np.sin((lat2 - lat1) / 2) ** 2 + np.cos(lat1) * np.cos(lat2) * np.sin((lon2 - lon1) / 2) ** 2
    return float(EARTH_RADIUS_MILES * 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a)))


def shop_state(shop_name: str | None) -> str | None:
    """Two-letter state taken from a "Name, ST" shop name, if present.

    >>> shop_state("Delta Avionics, ga")
    'GA'
    >>> shop_state("Acme Aero") is None
    True
    """
    if not shop_name or "," not in shop_name:
        return None
    state = shop_name.rsplit(",", 1)[1].strip().upper()
    return state or None


def estimate_shipping_window(state: str | None) -> ShippingWindow | None:
    """Estimated shipping window from headquarters to ``state``.

    Returns None when the state is missing or not a known US state code, so a
    shop with neither samples nor a location keeps an empty window.
    """
    if not state:
        return None
    coords = STATE_COORDS.get(state.strip().upper())
    if coords is None:
        logger.debug("No coordinates for state %r; skipping shipping estimate", state)
        return None
    distance = haversine_miles(HQ_COORDS, coords)
    for upper, min_days, max_days in SHIPPING_DISTANCE_BUCKETS:
        if distance < upper:
            break
    else:
        min_days, max_days = FAR_SHIPPING_DAYS
    return ShippingWindow(min_days=min_days, max_days=max_days, sample_count=0, source="estimated")
