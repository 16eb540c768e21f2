"""Central configuration, constants, and tunable defaults."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

# =============================================================================
# Locale
# =============================================================================
# Business timezone used when a timezone-aware timestamp is reduced to a date
# and when the system clock is read.
TIMEZONE = "America/New_York"

# =============================================================================
# Workflow Status Configuration
# =============================================================================
# Canonical forward sequence an RO moves through on a normal repair
FORWARD_SEQUENCE: Sequence[str] = (
    "TO SEND",
    "WAITING QUOTE",
    "APPROVED",
    "BEING REPAIRED",
    "SHIPPING",
    "PAID",
)

# Decorated PAID status written by the spreadsheet workflow
PAID_MARKER = "PAID >>>>"

# Map raw status strings to canonical names
# Keys are uppercase and whitespace-collapsed
STATUS_ALIASES: dict[str, str] = {
    "TO SEND": "TO SEND",
    "TOSEND": "TO SEND",
    "WAITING QUOTE": "WAITING QUOTE",
    "WAITING FOR QUOTE": "WAITING QUOTE",
    "QUOTE": "WAITING QUOTE",
    "APPROVED": "APPROVED",
    "BEING REPAIRED": "BEING REPAIRED",
    "IN REPAIR": "BEING REPAIRED",
    "CURRENTLY BEING SHIPPED": "CURRENTLY BEING SHIPPED",
    "SHIPPING": "SHIPPING",
    "SHIPPED": "SHIPPING",
    "RECEIVED": "RECEIVED",
    "COMPLETED": "RECEIVED",
    "PAID": "PAID",
    PAID_MARKER: "PAID",
    "NET": "NET",
    "PAYMENT SENT": "PAYMENT SENT",
    "BER": "BER",
    "RAI": "RAI",
    "CANCEL": "CANCELLED",
    "CANCELED": "CANCELLED",
    "CANCELLED": "CANCELLED",
    "SCRAPPED": "SCRAPPED",
}

# Days until the next follow-up, by canonical status
FOLLOW_UP_DAYS: dict[str, int] = {
    "TO SEND": 3,
    "WAITING QUOTE": 14,
    "APPROVED": 7,
    "BEING REPAIRED": 10,
    "CURRENTLY BEING SHIPPED": 5,
    "RECEIVED": 3,
    "SHIPPING": 3,
}
DEFAULT_FOLLOW_UP_DAYS: int = 7  # Statuses with no explicit rule

# =============================================================================
# Payment Terms
# =============================================================================
NET_TERMS_PATTERN = r"NET\s*(\d+)"
SETTLED_TERMS: Sequence[str] = ("COD", "C.O.D.", "PREPAID")
CARD_TERMS: Sequence[str] = ("CREDIT CARD",)
WIRE_TERMS: Sequence[str] = ("WIRE", "XFER")
WIRE_PROCESSING_DAYS: int = 3
UNKNOWN_TERMS_DAYS: int = 30  # Conservative follow-up for unparseable terms

# =============================================================================
# Due-date Predicates
# =============================================================================
ON_TRACK_RUNWAY_DAYS: int = 3  # On track requires strictly more runway than this
DUE_SOON_DAYS: int = 7
STALE_STATUS_DAYS: int = 30
OVERDUE_ESCALATION_DAYS: int = 30  # "Overdue 30+" bucket on the dashboard

# =============================================================================
# Analytics Defaults (overridable through tuning.yaml)
# =============================================================================
RECENT_WINDOW_DAYS: int = 30
MIN_RECENT_SAMPLES: int = 2
TREND_TOLERANCE: float = 0.10
MIN_RELIABLE_SAMPLES: int = 5
SPARSE_FLOOR_DAYS: float = 2.0

# =============================================================================
# Shipping Estimates
# =============================================================================
# Used when a shop has no observed shipping spans; distance is measured from
# headquarters (Florida) to the center of the shop's state
HQ_COORDS: tuple[float, float] = (27.766279, -81.686783)
EARTH_RADIUS_MILES: float = 3959.0

# (upper distance bound in miles, min days, max days); beyond the last bound
# FAR_SHIPPING_DAYS applies
SHIPPING_DISTANCE_BUCKETS: Sequence[tuple[float, int, int]] = (
    (400.0, 1, 2),
    (900.0, 2, 3),
    (1500.0, 3, 4),
)
FAR_SHIPPING_DAYS: tuple[int, int] = (4, 6)

STATE_COORDS: dict[str, tuple[float, float]] = {
    "AL": (32.806671, -86.791130),
    "AK": (61.370716, -152.404419),
    "AZ": (33.729759, -111.431221),
    "AR": (34.969704, -92.373123),
    "CA": (36.116203, -119.681564),
    "CO": (39.059811, -105.311104),
    "CT": (41.597782, -72.755371),
    "DE": (39.318523, -75.507141),
    "FL": (27.766279, -81.686783),
    "GA": (33.040619, -83.643074),
    "HI": (21.094318, -157.498337),
    "ID": (44.240459, -114.478828),
    "IL": (40.349457, -88.986137),
    "IN": (39.849426, -86.258278),
    "IA": (42.011539, -93.210526),
    "KS": (38.526600, -96.726486),
    "KY": (37.668140, -84.670067),
    "LA": (31.169546, -91.867805),
    "ME": (44.693947, -69.381927),
    "MD": (39.063946, -76.802101),
    "MA": (42.230171, -71.530106),
    "MI": (43.326618, -84.536095),
    "MN": (45.694454, -93.900192),
    "MS": (32.741646, -89.678696),
    "MO": (38.456085, -92.288368),
    "MT": (46.921925, -110.454353),
    "NE": (41.125370, -98.268082),
    "NV": (38.313515, -117.055374),
    "NH": (43.452492, -71.563896),
    "NJ": (40.298904, -74.521011),
    "NM": (34.840515, -106.248482),
    "NY": (42.165726, -74.948051),
    "NC": (35.630066, -79.806419),
    "ND": (47.528912, -99.784012),
    "OH": (40.388783, -82.764915),
    "OK": (35.565342, -96.928917),
    "OR": (44.572021, -122.070938),
    "PA": (40.590752, -77.209755),
    "RI": (41.680893, -71.511780),
    "SC": (33.856892, -80.945007),
    "SD": (44.299782, -99.438828),
    "TN": (35.747845, -86.692345),
    "TX": (31.054487, -97.563461),
    "UT": (40.150032, -111.862434),
    "VT": (44.045876, -72.710686),
    "VA": (37.769337, -78.169968),
    "WA": (47.400902, -121.490494),
    "WV": (38.491226, -80.954453),
    "WI": (44.268543, -89.616508),
    "WY": (42.755966, -107.302490),
}

UNKNOWN_SHOP_NAME = "Unknown"

REPAIR_ORDER_COLUMNS: Sequence[str] = (
    "ro_number",
    "shop_name",
    "current_status",
    "current_status_date",
    "terms",
    "next_date_to_update",
    "is_overdue",
    "days_overdue",
    "estimated_cost",
    "final_cost",
    "date_made",
    "date_dropped_off",
    "part_number",
    "serial_number",
)

PROFILE_COLUMNS: Sequence[str] = (
    "shop_name",
    "total_ros",
    "active_count",
    "completed_count",
    "median_turnaround",
    "recent_median",
    "variance",
    "trend",
    "shipping_min_days",
    "shipping_max_days",
    "shipping_source",
)


@dataclass(slots=True)
class AppSettings:
    max_table_rows: int = 1000
    currency_precision: int = 2


SETTINGS = AppSettings()
