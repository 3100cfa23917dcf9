"""
Order Metrics

Derives one SalesRecord per order from the canonical orders and order lines:
- revenue: sum of unit_price * quantity * (1 - discount), 2 decimals
- on_time_flag: shipped on or before the required date
- shipped_flag: shipped at all
- order_cycle_days: fractional days from order to shipment

The valid-line frame computed here is the single source of line revenue for
every consumer (sales records, product rankings, monthly product revenue).
"""

from dataclasses import dataclass
from typing import Optional

import polars as pl
import structlog

from sales_analytics.canonical.builder import CanonicalViews
from sales_analytics.diagnostics import RunDiagnostics
from sales_analytics.errors import InvalidLineError

logger = structlog.get_logger(__name__)

SECONDS_PER_DAY = 86400.0
MS_PER_DAY = 86_400_000

# money is summed as integer micro-units so that sums do not depend on row order
MONEY_SCALE = 1_000_000


def to_units(expr: pl.Expr) -> pl.Expr:
    """Money amount as Int64 micro-units"""
    return (expr * MONEY_SCALE).round(0).cast(pl.Int64)


def from_units(expr: pl.Expr) -> pl.Expr:
    return expr / MONEY_SCALE


LINE_REVENUE_UNITS = to_units(
    pl.col("unit_price") * pl.col("quantity") * (1 - pl.col("discount"))
).alias("line_revenue_units")
LINE_REVENUE = from_units(pl.col("line_revenue_units")).alias("line_revenue")

SALES_RECORD_COLUMNS = [
    "order_id",
    "customer_id",
    "employee_id",
    "order_date",
    "required_date",
    "shipped_date",
    "ship_via",
    "freight",
    "revenue",
    "line_count",
    "on_time_flag",
    "shipped_flag",
    "order_cycle_days",
]


@dataclass(frozen=True)
class OrderMetrics:
    """Derived frames of one run (or one shard)"""
    lines: pl.DataFrame
    sales: pl.DataFrame


class OrderMetricsComputer:
    """
    Computes SalesRecords from canonical views.

    Lines missing quantity or unit price are excluded from their order's
    revenue and recorded as InvalidLineError; the order still gets a record.

    Example:
        metrics = OrderMetricsComputer(diagnostics).compute(views)
        metrics.sales.filter(pl.col("shipped_flag") == 0)
    """

    def __init__(self, diagnostics: Optional[RunDiagnostics] = None):
        self.diagnostics = diagnostics or RunDiagnostics()

    def line_revenue(self, order_lines: pl.DataFrame) -> pl.DataFrame:
        """Valid lines with their revenue"""
        missing = (
            pl.when(pl.col("quantity").is_null()).then(pl.lit("quantity"))
            .when(pl.col("unit_price").is_null()).then(pl.lit("unit_price"))
            .otherwise(None)
            .alias("_missing")
        )
        checked = order_lines.with_columns(missing)

        for row in checked.filter(pl.col("_missing").is_not_null()).iter_rows(named=True):
            error = InvalidLineError(row["order_id"], row["product_id"], row["_missing"])
            self.diagnostics.record(error)
            logger.warning(
                "Excluded order line from revenue",
                order_id=row["order_id"],
                product_id=row["product_id"],
                field=row["_missing"],
            )

        return (
            checked.filter(pl.col("_missing").is_null())
            .with_columns(LINE_REVENUE_UNITS)
            .with_columns(LINE_REVENUE)
            .select([
                "order_id", "product_id", "unit_price", "quantity", "discount",
                "line_revenue_units", "line_revenue",
            ])
        )

    @staticmethod
    def sales_records(orders: pl.DataFrame, lines: pl.DataFrame) -> pl.DataFrame:
        """One SalesRecord per order; orders without lines have revenue 0"""
        per_order = lines.group_by("order_id").agg([
            pl.col("line_revenue_units").sum().alias("revenue_units"),
            pl.len().cast(pl.Int64).alias("line_count"),
        ])

        shipped = pl.col("shipped_date").is_not_null()
        on_time = (
            shipped
            & pl.col("required_date").is_not_null()
            & (pl.col("shipped_date") <= pl.col("required_date"))
        ).fill_null(False)

        return (
            orders.join(per_order, on="order_id", how="left")
            .with_columns([
                from_units(pl.col("revenue_units").fill_null(0)).round(2).alias("revenue"),
                pl.col("line_count").fill_null(0),
                on_time.cast(pl.Int32).alias("on_time_flag"),
                shipped.cast(pl.Int32).alias("shipped_flag"),
                pl.when(shipped & pl.col("order_date").is_not_null())
                .then(
                    (pl.col("shipped_date") - pl.col("order_date")).dt.total_milliseconds()
                    / MS_PER_DAY
                )
                .otherwise(None)
                .cast(pl.Float64)
                .alias("order_cycle_days"),
            ])
            .select(SALES_RECORD_COLUMNS)
        )

    def compute(self, views: CanonicalViews) -> OrderMetrics:
        """Derive valid lines and SalesRecords for every order of the views"""
        lines = self.line_revenue(views.order_lines)
        sales = self.sales_records(views.orders, lines)
        logger.debug(
            "Order metrics computed",
            orders=sales.height,
            valid_lines=lines.height,
            excluded_lines=views.order_lines.height - lines.height,
        )
        return OrderMetrics(lines=lines, sales=sales)


def monthly_product_revenue(lines: pl.DataFrame, sales: pl.DataFrame) -> pl.DataFrame:
    """
    MonthlyProductRevenue: one row per product per calendar month with at
    least one line of a dated order. Months without sales are absent.

    Partial results of disjoint order shards combine by summing revenue_units
    per (product_id, month); revenue is derived from the summed units.
    """
    dated = sales.filter(pl.col("order_date").is_not_null()).select(
        "order_id",
        pl.col("order_date").dt.truncate("1mo").dt.date().alias("month"),
    )
    return (
        lines.join(dated, on="order_id", how="inner")
        .group_by(["product_id", "month"])
        .agg(pl.col("line_revenue_units").sum().alias("revenue_units"))
        .with_columns(from_units(pl.col("revenue_units")).alias("revenue"))
        .sort(["product_id", "month"])
    )
