"""
Derived Metrics Module
"""
from .orders import (
    SALES_RECORD_COLUMNS,
    OrderMetrics,
    OrderMetricsComputer,
    monthly_product_revenue,
)

__all__ = [
    "SALES_RECORD_COLUMNS",
    "OrderMetrics",
    "OrderMetricsComputer",
    "monthly_product_revenue",
]
