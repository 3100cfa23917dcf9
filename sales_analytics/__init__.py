"""
Sales Analytics Engine

Schema normalization and sales metrics over transactional order data.
"""
from .errors import (
    DataTypeError,
    InvalidLineError,
    OrphanLineError,
    RunCancelled,
    SalesAnalyticsError,
    SchemaResolutionError,
)
from .pipeline import AnalyticsReport, SalesAnalytics

__version__ = "1.0.0"

__all__ = [
    "AnalyticsReport",
    "SalesAnalytics",
    "SalesAnalyticsError",
    "SchemaResolutionError",
    "DataTypeError",
    "InvalidLineError",
    "OrphanLineError",
    "RunCancelled",
]
