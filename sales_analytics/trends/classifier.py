"""
Product Trend Classifier

Labels each product's revenue trajectory from its monthly revenue series
using the endpoint slope:

    monthly_slope = (last_revenue - first_revenue) / (months_with_sales - 1)

first/last are the revenues of the earliest and latest months with sales.
Months without sales are absent from the series, so gaps do not count.
Intermediate months are ignored. Products with fewer than two months of
sales are not classified.
"""

from enum import Enum
from typing import Optional

import polars as pl
import structlog

from sales_analytics.config import AnalyticsSettings, get_settings
from sales_analytics.metrics.orders import from_units, to_units

logger = structlog.get_logger(__name__)

MIN_MONTHS = 2


class Trend(str, Enum):
    """Revenue trajectory of a product"""
    DECLINING = "declining"
    INCREASING = "increasing"
    FLAT = "flat"


class TrendClassifier:
    """
    Endpoint-slope classification of MonthlyProductRevenue.

    Example:
        classifier = TrendClassifier()
        classified = classifier.classify(monthly)
        declining = classifier.top(classified, Trend.DECLINING, products)
    """

    def __init__(self, settings: Optional[AnalyticsSettings] = None):
        self.settings = settings or get_settings().analytics

    @staticmethod
    def _normalize(monthly: pl.DataFrame) -> pl.DataFrame:
        """One row per product and month, revenue in micro-units"""
        if "revenue_units" not in monthly.columns:
            monthly = monthly.with_columns(to_units(pl.col("revenue")).alias("revenue_units"))
        return monthly.group_by(["product_id", "month"]).agg(pl.col("revenue_units").sum())

    def classify(self, monthly: pl.DataFrame) -> pl.DataFrame:
        """
        Classify every product with at least two months of sales.

        Args:
            monthly: product_id, month, revenue (or exact revenue_units)

        Returns:
            product_id, months_with_sales, first_revenue, last_revenue,
            monthly_slope, trend; ordered by product_id
        """
        series = self._normalize(monthly)
        change = pl.col("last_units") - pl.col("first_units")

        classified = (
            series.group_by("product_id")
            .agg([
                pl.col("month").n_unique().cast(pl.Int64).alias("months_with_sales"),
                pl.col("revenue_units").sort_by("month").first().alias("first_units"),
                pl.col("revenue_units").sort_by("month").last().alias("last_units"),
            ])
            .filter(pl.col("months_with_sales") >= MIN_MONTHS)
            .with_columns([
                from_units(pl.col("first_units")).alias("first_revenue"),
                from_units(pl.col("last_units")).alias("last_revenue"),
                from_units(change / (pl.col("months_with_sales") - 1)).alias("monthly_slope"),
                # sign of the exact change, so equal endpoints are always flat
                pl.when(change < 0).then(pl.lit(Trend.DECLINING.value))
                .when(change > 0).then(pl.lit(Trend.INCREASING.value))
                .otherwise(pl.lit(Trend.FLAT.value))
                .alias("trend"),
            ])
            .drop(["first_units", "last_units"])
            .sort("product_id")
        )

        logger.debug(
            "Product trends classified",
            products=series["product_id"].n_unique(),
            classified=classified.height,
        )
        return classified

    def top(
        self,
        classified: pl.DataFrame,
        trend: Trend,
        products: pl.DataFrame,
        limit: Optional[int] = None,
    ) -> pl.DataFrame:
        """
        Steepest products of one trend.

        Declining products are ordered by slope ascending (most negative
        first), increasing ones by slope descending.

        Returns:
            product_id, product_name, monthly_revenue_slope (2 decimals)
        """
        if trend is Trend.FLAT:
            raise ValueError("Flat products are not reported")
        limit = self.settings.trend_limit if limit is None else limit
        descending = trend is Trend.INCREASING

        return (
            classified.filter(pl.col("trend") == trend.value)
            .join(products.select("product_id", "product_name"), on="product_id", how="left")
            .sort(["monthly_slope", "product_id"], descending=[descending, False])
            .head(limit)
            .select(
                "product_id",
                pl.col("product_name").fill_null(self.settings.unknown_label),
                pl.col("monthly_slope").round(2).alias("monthly_revenue_slope"),
            )
        )
