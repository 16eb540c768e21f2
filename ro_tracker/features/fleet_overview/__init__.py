"""Fleet overview feature module for dashboard summary statistics."""

from ro_tracker.features.fleet_overview.context import (
    DashboardStats,
    FleetOverviewContext,
    build_fleet_overview,
    compute_dashboard_stats,
)

__all__ = [
    "DashboardStats",
    "FleetOverviewContext",
    "build_fleet_overview",
    "compute_dashboard_stats",
]
