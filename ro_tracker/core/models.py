"""Domain data models for repair orders, shops, and derived analytics."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Literal

Trend = Literal["improving", "declining", "stable"]
PredictionStatus = Literal["on-track", "at-risk", "overdue"]
ShippingSource = Literal["observed", "estimated"]


@dataclass(frozen=True, slots=True)
class StatusHistoryEntry:
    status: str
    date: datetime | date | None
    user: str | None = None
    cost: float | None = None
    delivery_date: date | None = None
    notes: str | None = None


@dataclass(slots=True)
class RepairOrder:
    ro_number: str
    shop_name: str
    current_status: str
    current_status_date: datetime | date | None = None
    status_history: list[StatusHistoryEntry] = field(default_factory=list)
    terms: str | None = None
    date_made: date | None = None
    date_dropped_off: date | None = None
    estimated_cost: float | None = None
    final_cost: float | None = None
    part_number: str | None = None
    serial_number: str | None = None
    part_description: str | None = None
    tracking_number: str | None = None
    notes: str | None = None

    # Derived follow-up fields (populated by follow_up.refresh_follow_up)
    next_date_to_update: date | None = None
    is_overdue: bool = False
    days_overdue: int = 0

    def append_status(self, entry: StatusHistoryEntry) -> None:
        """Record a status transition. History is append-only."""
        self.status_history.append(entry)
        self.current_status = entry.status
        self.current_status_date = entry.date


@dataclass(slots=True)
class Shop:
    name: str
    payment_terms: str | None = None
    customer_number: str | None = None
    city: str | None = None
    state: str | None = None
    contact: str | None = None
    email: str | None = None
    phone: str | None = None


@dataclass(frozen=True, slots=True)
class ShippingWindow:
    """Shipping time range in days.

    ``source`` is "observed" when derived from shipped-to-received spans and
    "estimated" when inferred from the distance to the shop's state, in which
    case ``sample_count`` is 0.
    """

    min_days: int
    max_days: int
    sample_count: int
    source: ShippingSource = "observed"

    @property
    def is_estimate(self) -> bool:
        return self.source == "estimated"


@dataclass(frozen=True, slots=True)
class ShopAnalyticsProfile:
    """Per-shop turnaround statistics derived from one snapshot.

    ``median_turnaround``, ``overall_median``, ``recent_median`` and
    ``variance`` are None when the shop has no completed ROs; check
    ``has_history`` (or ``completed_count``) rather than comparing to zero.
    """

    shop_name: str
    active_ros: tuple[str, ...]
    total_ros: int
    completed_count: int
    median_turnaround: float | None
    overall_median: float | None
    recent_median: float | None
    recent_count: int
    variance: float | None
    trend: Trend
    status_velocity: dict[str, float] = field(default_factory=dict)
    status_dispersion: dict[str, float] = field(default_factory=dict)
    shipping_days: ShippingWindow | None = None

    @property
    def has_history(self) -> bool:
        return self.completed_count > 0


@dataclass(frozen=True, slots=True)
class CompletionPrediction:
    estimated_date: date
    confidence_days: int
    status: PredictionStatus
    remaining_days: float
    remaining_stages: tuple[str, ...] = ()
    low_confidence: bool = False
