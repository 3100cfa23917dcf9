"""
Aggregation Module
"""
from .engine import (
    DIMENSIONS,
    AggregationEngine,
    AggregationRequest,
    Dimension,
    Grain,
    Metric,
)
from .reports import TREND_REPORTS, ReportName, build_report_requests

__all__ = [
    "DIMENSIONS",
    "AggregationEngine",
    "AggregationRequest",
    "Dimension",
    "Grain",
    "Metric",
    "ReportName",
    "TREND_REPORTS",
    "build_report_requests",
]
