"""
Report Catalogue

The result tables of an analytics run, expressed as aggregation requests.
"""

from enum import Enum
from typing import Dict, Optional

import polars as pl

from sales_analytics.config import AnalyticsSettings, get_settings
from .engine import AggregationRequest, Dimension, Metric


class ReportName(str, Enum):
    """Result tables of an analytics run"""
    ANNUAL_REVENUE = "annual_revenue"
    TOP_PRODUCTS = "top_products"
    TOP_CUSTOMERS = "top_customers"
    EMPLOYEE_PERFORMANCE = "employee_performance"
    CUSTOMER_FREQUENCY = "customer_frequency"
    SHIPPER_PERFORMANCE = "shipper_performance"
    MONTHLY_REVENUE_FREIGHT = "monthly_revenue_freight"
    COUNTRY_CATEGORY_REVENUE = "country_category_revenue"
    DECLINING_PRODUCTS = "declining_products"
    INCREASING_PRODUCTS = "increasing_products"


TREND_REPORTS = (ReportName.DECLINING_PRODUCTS, ReportName.INCREASING_PRODUCTS)


def build_report_requests(
    settings: Optional[AnalyticsSettings] = None,
) -> Dict[ReportName, AggregationRequest]:
    """Aggregation request of every non-trend report"""
    settings = settings or get_settings().analytics
    return {
        ReportName.ANNUAL_REVENUE: AggregationRequest(
            Dimension.YEAR, (Metric.REVENUE, Metric.ORDERS),
        ),
        ReportName.TOP_PRODUCTS: AggregationRequest(
            Dimension.PRODUCT, (Metric.REVENUE,),
            limit=settings.top_products_limit,
        ),
        ReportName.TOP_CUSTOMERS: AggregationRequest(
            Dimension.CUSTOMER, (Metric.REVENUE, Metric.ORDERS),
            limit=settings.top_customers_limit,
        ),
        ReportName.EMPLOYEE_PERFORMANCE: AggregationRequest(
            Dimension.EMPLOYEE, (Metric.REVENUE, Metric.ORDERS),
        ),
        ReportName.CUSTOMER_FREQUENCY: AggregationRequest(
            Dimension.CUSTOMER, (Metric.ORDERS, Metric.AVG_ORDER_VALUE),
            order_by=(("orders", True), ("avg_order_value", True)),
            limit=settings.customer_frequency_limit,
            rename=(("orders", "orders_count"),),
        ),
        ReportName.SHIPPER_PERFORMANCE: AggregationRequest(
            Dimension.SHIPPER,
            (Metric.AVG_CYCLE_DAYS, Metric.ON_TIME_PCT, Metric.SHIPPED_ORDERS),
            where=pl.col("shipped_flag") == 1,
        ),
        ReportName.MONTHLY_REVENUE_FREIGHT: AggregationRequest(
            Dimension.MONTH, (Metric.REVENUE, Metric.FREIGHT),
        ),
        ReportName.COUNTRY_CATEGORY_REVENUE: AggregationRequest(
            Dimension.COUNTRY_CATEGORY, (Metric.REVENUE, Metric.ORDERS),
        ),
    }
