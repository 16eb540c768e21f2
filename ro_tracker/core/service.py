"""RepairOrderAnalyticsService: orchestrates mapping, follow-up rules and analytics for one snapshot."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from datetime import date
from typing import Any

import pandas as pd

from ro_tracker.analytics.aggregations.shop import build_shop_analytics
from ro_tracker.analytics.metrics.follow_up import add_follow_up_metrics, refresh_follow_up
from ro_tracker.analytics.prediction.completion import find_profile, predict_all
from ro_tracker.features.fleet_overview import FleetOverviewContext, build_fleet_overview

from .calendar import Clock, today
from .mappers import (
    normalize_shop_name,
    profiles_to_dataframe,
    repair_order_from_record,
    repair_orders_to_dataframe,
    shop_from_record,
    shop_state_index,
    shop_terms_index,
)
from .models import CompletionPrediction, RepairOrder, Shop, ShopAnalyticsProfile
from .tuning import AnalyticsTuning, load_tuning

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int | None, int | None], None]


class RepairOrderAnalyticsService:
    """Analytics over one immutable snapshot of repair orders.

    "Today" is read from ``clock`` once, when the service is built, so every
    result from one instance refers to the same date. Shop profiles and
    refreshed follow-up fields are memoized on the instance; build a new
    service for a new snapshot.

    Without an explicit ``tuning`` the bundled ``tuning.yaml`` is loaded.
    """

    def __init__(
        self,
        repair_orders: Iterable[RepairOrder],
        shops: Iterable[Shop] | None = None,
        *,
        clock: Clock | None = None,
        tuning: AnalyticsTuning | None = None,
    ):
        self.repair_orders = list(repair_orders)
        self.shops = list(shops or [])
        self.tuning = tuning or load_tuning()
        self.today: date = today(clock)
        self._shop_terms = shop_terms_index(self.shops)
        self._shop_states = shop_state_index(self.shops)
        self._refreshed: list[RepairOrder] | None = None
        self._profiles: dict[str, ShopAnalyticsProfile] | None = None

    @classmethod
    def from_records(
        cls,
        ro_records: Iterable[Mapping[str, Any]],
        shop_records: Iterable[Mapping[str, Any]] = (),
        **kwargs,
    ) -> RepairOrderAnalyticsService:
        """Build a service from plain storage records (camelCase or snake_case keys)."""
        repair_orders = [repair_order_from_record(r) for r in ro_records]
        shops = [shop_from_record(r) for r in shop_records]
        return cls(repair_orders, shops, **kwargs)

    # ------------------ Follow-up ------------------
    def terms_for(self, ro: RepairOrder) -> str | None:
        """Payment terms for an RO: its own, else its shop's default terms."""
        return ro.terms or self._shop_terms.get(normalize_shop_name(ro.shop_name))

    def refreshed_repair_orders(self, *, progress: ProgressCallback | None = None) -> list[RepairOrder]:
        """Copies of the snapshot's ROs with next-update and overdue fields recomputed."""
        if self._refreshed is None:
            total = len(self.repair_orders)
            if progress:
                progress("Applying follow-up rules", 0, total)
            refreshed = []
            for idx, ro in enumerate(self.repair_orders, start=1):
                refreshed.append(
                    refresh_follow_up(
                        ro,
                        self.terms_for(ro),
                        self.today,
                        unknown_terms_days=self.tuning.unknown_terms_days,
                    )
                )
                if progress:
                    progress("Applying follow-up rules", idx, total)
            self._refreshed = refreshed
            logger.debug(
                "Refreshed follow-up for %d ROs (%d overdue)",
                total,
                sum(1 for ro in refreshed if ro.is_overdue),
            )
        return self._refreshed

    # ------------------ Analytics ------------------
    def shop_profiles(self) -> dict[str, ShopAnalyticsProfile]:
        if self._profiles is None:
            self._profiles = build_shop_analytics(
                self.refreshed_repair_orders(), self.today, self.tuning, states=self._shop_states
            )
        return self._profiles

    def shop_profile(self, shop_name: str) -> ShopAnalyticsProfile | None:
        return find_profile(shop_name, self.shop_profiles())

    def predictions(self) -> dict[str, CompletionPrediction]:
        return predict_all(self.refreshed_repair_orders(), self.shop_profiles(), self.today, self.tuning)

    def predict(self, ro_number: str) -> CompletionPrediction | None:
        return self.predictions().get(str(ro_number).strip())

    # ------------------ Frames ------------------
    def repair_order_frame(self) -> pd.DataFrame:
        """One row per RO with follow-up metrics and completion predictions."""
        df = repair_orders_to_dataframe(self.refreshed_repair_orders())
        if df.empty:
            return df
        out = add_follow_up_metrics(df, self.today, runway_days=self.tuning.on_track_runway_days)
        predictions = self.predictions()

        def _field(name: str):
            return out["ro_number"].map(lambda ro: getattr(predictions[ro], name) if ro in predictions else None)

        out["estimated_completion"] = pd.to_datetime(_field("estimated_date"), errors="coerce")
        out["confidence_days"] = pd.to_numeric(_field("confidence_days"), errors="coerce")
        out["prediction_status"] = _field("status")
        out["low_confidence"] = _field("low_confidence")
        return out

    def shop_frame(self) -> pd.DataFrame:
        return profiles_to_dataframe(self.shop_profiles())

    def fleet_overview(self, **kwargs) -> FleetOverviewContext:
        return build_fleet_overview(self.repair_order_frame(), self.shop_profiles(), self.today, **kwargs)
