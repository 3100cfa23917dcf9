"""
Analytics Run Module
"""
from .cache import SnapshotCache
from .runner import AnalyticsReport, SalesAnalytics, ShardResult
from .sharding import split_orders

__all__ = [
    "AnalyticsReport",
    "SalesAnalytics",
    "ShardResult",
    "SnapshotCache",
    "split_orders",
]
