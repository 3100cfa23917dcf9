"""
Aggregation Engine

Grouped rollups over SalesRecords and valid order lines.

Aggregation runs in three steps so that shards can be combined exactly:
1. partial  - sums and counts per group (never averages)
2. merge    - sums partials of disjoint order shards
3. finalize - derives averages and percentages, rounds, orders and limits
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Optional, Tuple

import polars as pl
import structlog

from sales_analytics.canonical.builder import CanonicalViews
from sales_analytics.config import AnalyticsSettings, get_settings
from sales_analytics.metrics.orders import MONEY_SCALE, MS_PER_DAY, OrderMetrics, from_units, to_units

logger = structlog.get_logger(__name__)


class Grain(str, Enum):
    """Row level a dimension aggregates"""
    ORDER = "order"
    LINE = "line"


class Dimension(str, Enum):
    """Grouping dimensions"""
    YEAR = "year"
    MONTH = "month"
    PRODUCT = "product"
    CUSTOMER = "customer"
    EMPLOYEE = "employee"
    SHIPPER = "shipper"
    COUNTRY_CATEGORY = "country_category"


class Metric(str, Enum):
    """Aggregated metrics, valued as their output column names"""
    REVENUE = "revenue"
    FREIGHT = "freight"
    ORDERS = "orders"
    ON_TIME_PCT = "otd_percent"
    AVG_CYCLE_DAYS = "avg_days_order_to_ship"
    AVG_ORDER_VALUE = "avg_order_value"
    SHIPPED_ORDERS = "shipped_orders"


@dataclass(frozen=True)
class DimensionSpec:
    grain: Grain
    keys: Tuple[str, ...]
    temporal: bool = False


DIMENSIONS: Dict[Dimension, DimensionSpec] = {
    Dimension.YEAR: DimensionSpec(Grain.ORDER, ("year",), temporal=True),
    Dimension.MONTH: DimensionSpec(Grain.ORDER, ("month",), temporal=True),
    Dimension.PRODUCT: DimensionSpec(Grain.LINE, ("product_id", "product_name")),
    Dimension.CUSTOMER: DimensionSpec(Grain.ORDER, ("customer_id", "company_name")),
    Dimension.EMPLOYEE: DimensionSpec(Grain.ORDER, ("employee_id", "employee_name")),
    Dimension.SHIPPER: DimensionSpec(Grain.ORDER, ("shipper",)),
    Dimension.COUNTRY_CATEGORY: DimensionSpec(Grain.LINE, ("country", "category_name")),
}

# money sums are Int64 micro-units and cycle sums Int64 milliseconds, so that
# merging shards gives the same totals as a single pass
ORDER_PARTIALS = [
    to_units(pl.col("revenue")).sum().alias("revenue_sum"),
    to_units(pl.col("freight")).sum().alias("freight_sum"),
    pl.len().cast(pl.Int64).alias("order_count"),
    pl.col("on_time_flag").sum().cast(pl.Int64).alias("on_time_sum"),
    pl.col("shipped_flag").sum().cast(pl.Int64).alias("shipped_sum"),
    (pl.col("shipped_date") - pl.col("order_date")).dt.total_milliseconds().sum().alias("cycle_sum"),
    pl.col("order_cycle_days").count().cast(pl.Int64).alias("cycle_count"),
]

# distinct order counts add up because shards partition orders
LINE_PARTIALS = [
    pl.col("line_revenue_units").sum().alias("revenue_sum"),
    pl.col("order_id").n_unique().cast(pl.Int64).alias("order_count"),
]

LINE_METRICS = {Metric.REVENUE, Metric.ORDERS, Metric.AVG_ORDER_VALUE}

FINAL_EXPRS: Dict[Metric, pl.Expr] = {
    Metric.REVENUE: from_units(pl.col("revenue_sum")).round(2),
    Metric.FREIGHT: from_units(pl.col("freight_sum")).round(2),
    Metric.ORDERS: pl.col("order_count"),
    Metric.ON_TIME_PCT: (100.0 * pl.col("on_time_sum") / pl.col("order_count")).round(2),
    Metric.AVG_CYCLE_DAYS: pl.when(pl.col("cycle_count") > 0)
    .then(pl.col("cycle_sum") / pl.col("cycle_count") / MS_PER_DAY)
    .otherwise(None)
    .round(2),
    Metric.AVG_ORDER_VALUE: (pl.col("revenue_sum") / (pl.col("order_count") * MONEY_SCALE)).round(2),
    Metric.SHIPPED_ORDERS: pl.col("shipped_sum"),
}


@dataclass(frozen=True, eq=False)
class AggregationRequest:
    """
    A rollup along one dimension.

    order_by: (column, descending) pairs; defaults to period ascending for
    time dimensions and the first metric descending otherwise
    where: row filter applied before grouping
    rename: output column renames
    """
    dimension: Dimension
    metrics: Tuple[Metric, ...]
    order_by: Optional[Tuple[Tuple[str, bool], ...]] = None
    limit: Optional[int] = None
    where: Optional[pl.Expr] = None
    rename: Optional[Tuple[Tuple[str, str], ...]] = None

    @property
    def spec(self) -> DimensionSpec:
        return DIMENSIONS[self.dimension]


class AggregationEngine:
    """
    Rollups of SalesRecords and line revenue with dimension labels.

    Example:
        engine = AggregationEngine(views)
        request = AggregationRequest(Dimension.YEAR, (Metric.REVENUE, Metric.ORDERS))
        table = engine.aggregate(request, metrics)
    """

    def __init__(self, views: CanonicalViews, settings: Optional[AnalyticsSettings] = None):
        self.views = views
        self.settings = settings or get_settings().analytics
        self.unknown_label = self.settings.unknown_label

    def order_frame(self, sales: pl.DataFrame) -> pl.DataFrame:
        """SalesRecords with customer, employee, shipper and period labels"""
        v = self.views
        return (
            sales.join(
                v.customers.select("customer_id", "company_name", "country"),
                on="customer_id",
                how="left",
            )
            .join(v.employees.select("employee_id", "employee_name"), on="employee_id", how="left")
            .join(
                v.shippers.select(
                    pl.col("shipper_id").alias("ship_via"),
                    pl.col("company_name").alias("shipper"),
                ),
                on="ship_via",
                how="left",
            )
            .with_columns([
                pl.col("order_date").dt.year().alias("year"),
                pl.col("order_date").dt.truncate("1mo").dt.date().alias("month"),
            ])
        )

    def line_frame(self, lines: pl.DataFrame, sales: pl.DataFrame) -> pl.DataFrame:
        """Valid lines with product, category and customer country labels"""
        v = self.views
        return (
            lines.join(sales.select("order_id", "customer_id"), on="order_id", how="left")
            .join(v.products.select("product_id", "product_name", "category_id"), on="product_id", how="left")
            .join(v.categories.select("category_id", "category_name"), on="category_id", how="left")
            .join(v.customers.select("customer_id", "country"), on="customer_id", how="left")
        )

    def _labelled(self, frame: pl.DataFrame, spec: DimensionSpec) -> pl.DataFrame:
        """Null keys become the unknown label; time dimensions drop undated rows"""
        if spec.temporal:
            return frame.filter(pl.all_horizontal([pl.col(k).is_not_null() for k in spec.keys]))
        return frame.with_columns([
            pl.col(k).cast(pl.Utf8).fill_null(self.unknown_label) for k in spec.keys
        ])

    def partial(self, request: AggregationRequest, metrics: OrderMetrics) -> pl.DataFrame:
        """Sums and counts per group for one shard"""
        spec = request.spec
        if spec.grain is Grain.LINE:
            unsupported = set(request.metrics) - LINE_METRICS
            if unsupported:
                raise ValueError(
                    f"Metrics {sorted(m.value for m in unsupported)} are not available "
                    f"for line-level dimension '{request.dimension.value}'"
                )
            frame = self.line_frame(metrics.lines, metrics.sales)
            aggs = LINE_PARTIALS
        else:
            frame = self.order_frame(metrics.sales)
            aggs = ORDER_PARTIALS

        if request.where is not None:
            frame = frame.filter(request.where)
        frame = self._labelled(frame, spec)
        return frame.group_by(list(spec.keys)).agg(aggs)

    @staticmethod
    def merge(request: AggregationRequest, partials: Iterable[pl.DataFrame]) -> pl.DataFrame:
        """Combine partial aggregates of disjoint shards"""
        partials = list(partials)
        keys = list(request.spec.keys)
        combined = pl.concat(partials, how="vertical_relaxed")
        sums = [pl.col(c).sum() for c in combined.columns if c not in keys]
        return combined.group_by(keys).agg(sums)

    def finalize(self, request: AggregationRequest, merged: pl.DataFrame) -> pl.DataFrame:
        """Derive metrics, round, order and limit"""
        spec = request.spec
        keys = list(spec.keys)
        table = merged.select(
            keys + [FINAL_EXPRS[m].alias(m.value) for m in request.metrics]
        )

        if request.order_by is not None:
            order = list(request.order_by)
        elif spec.temporal:
            order = [(k, False) for k in keys]
        else:
            order = [(request.metrics[0].value, True)]
        for k in keys:
            if k not in [c for c, _ in order]:
                order.append((k, False))

        table = table.sort(
            [c for c, _ in order],
            descending=[d for _, d in order],
            nulls_last=True,
        )
        if request.limit is not None:
            table = table.head(request.limit)
        if request.rename:
            table = table.rename(dict(request.rename))
        return table

    def aggregate(self, request: AggregationRequest, metrics: OrderMetrics) -> pl.DataFrame:
        """Single-pass rollup: partial then finalize"""
        return self.finalize(request, self.merge(request, [self.partial(request, metrics)]))


def count_undated(sales: pl.DataFrame) -> int:
    """Orders that time dimensions can not place in a period"""
    return sales.filter(pl.col("order_date").is_null()).height
