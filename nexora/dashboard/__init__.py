"""Dashboard aggregation package."""

from nexora.dashboard.aggregator import MONTH_LABELS, compute_dashboard

__all__ = [
    "MONTH_LABELS",
    "compute_dashboard",
]
