"""
Unit Tests - Order Metrics
"""
from datetime import date

import polars as pl
import pytest

from sales_analytics.diagnostics import RunDiagnostics
from sales_analytics.metrics.orders import (
    SALES_RECORD_COLUMNS,
    OrderMetricsComputer,
    monthly_product_revenue,
)


@pytest.fixture
def metrics(northwind_views):
    return OrderMetricsComputer().compute(northwind_views)


def by_order(sales: pl.DataFrame) -> dict:
    return {row["order_id"]: row for row in sales.iter_rows(named=True)}


class TestSalesRecords:
    """Tests for per-order derived metrics"""

    def test_one_record_per_order(self, metrics, northwind_views):
        """Test one record per order"""
        assert metrics.sales.columns == SALES_RECORD_COLUMNS
        assert metrics.sales.height == northwind_views.orders.height
        assert metrics.sales["order_id"].n_unique() == metrics.sales.height

    def test_revenue(self, metrics):
        """Test order revenue"""
        records = by_order(metrics.sales)

        assert records["10001"]["revenue"] == 230.0
        assert records["10002"]["revenue"] == 332.0
        assert records["10003"]["revenue"] == 369.0
        assert records["10004"]["revenue"] == 90.0
        assert records["10005"]["revenue"] == 152.0

    def test_order_without_lines(self, metrics):
        """Test order without lines"""
        record = by_order(metrics.sales)["10006"]

        assert record["revenue"] == 0.0
        assert record["line_count"] == 0

    def test_shipped_on_required_date_is_on_time(self, metrics):
        """Test shipped on required date is on time"""
        record = by_order(metrics.sales)["10002"]

        assert record["on_time_flag"] == 1
        assert record["shipped_flag"] == 1

    def test_late_shipment(self, metrics):
        """Test late shipment"""
        record = by_order(metrics.sales)["10003"]

        assert record["on_time_flag"] == 0
        assert record["order_cycle_days"] == 7.0

    def test_unshipped_order(self, metrics):
        """Test unshipped order"""
        record = by_order(metrics.sales)["10004"]

        assert record["shipped_flag"] == 0
        assert record["on_time_flag"] == 0
        assert record["order_cycle_days"] is None
        assert record["freight"] == 0.0

    def test_undated_order(self, metrics):
        """Test shipped but without order or required date"""
        record = by_order(metrics.sales)["10006"]

        assert record["shipped_flag"] == 1
        assert record["on_time_flag"] == 0
        assert record["order_cycle_days"] is None

    def test_cycle_days(self, metrics):
        """Test cycle days"""
        records = by_order(metrics.sales)

        assert records["10001"]["order_cycle_days"] == 5.0
        assert records["10002"]["order_cycle_days"] == 5.0
        assert records["10005"]["order_cycle_days"] == 2.0

    def test_fractional_cycle_days(self, northwind_views):
        """Test fractional cycle days"""
        orders = northwind_views.orders.filter(pl.col("order_id") == "10001").with_columns(
            pl.col("shipped_date").dt.offset_by("12h")
        )

        sales = OrderMetricsComputer.sales_records(orders, pl.DataFrame(
            schema={"order_id": pl.Utf8, "line_revenue_units": pl.Int64}
        ))

        assert sales["order_cycle_days"].to_list() == [5.5]

    def test_flags_are_binary(self, metrics):
        """Test flags are binary"""
        assert set(metrics.sales["on_time_flag"].to_list()) <= {0, 1}
        assert set(metrics.sales["shipped_flag"].to_list()) <= {0, 1}


class TestInvalidLines:
    """Tests for lines excluded from revenue"""

    def test_missing_quantity_excluded(self, northwind_views):
        """Test missing quantity excluded"""
        diagnostics = RunDiagnostics()
        lines = northwind_views.order_lines.with_columns(
            pl.when((pl.col("order_id") == "10001") & (pl.col("product_id") == "2"))
            .then(None)
            .otherwise(pl.col("quantity"))
            .alias("quantity")
        )

        computer = OrderMetricsComputer(diagnostics)
        valid = computer.line_revenue(lines)
        sales = computer.sales_records(northwind_views.orders, valid)

        assert valid.height == 9
        assert by_order(sales)["10001"]["revenue"] == 180.0
        assert diagnostics.excluded == {"invalid_line": 1}
        assert diagnostics.samples["invalid_line"] == ["10001/2"]

    def test_missing_unit_price_keeps_order(self, northwind_views):
        """Test missing unit price keeps order"""
        diagnostics = RunDiagnostics()
        lines = northwind_views.order_lines.with_columns(
            pl.when(pl.col("order_id") == "10004")
            .then(None)
            .otherwise(pl.col("unit_price"))
            .alias("unit_price")
        )

        computer = OrderMetricsComputer(diagnostics)
        sales = computer.sales_records(northwind_views.orders, computer.line_revenue(lines))

        assert by_order(sales)["10004"]["revenue"] == 0.0
        assert diagnostics.excluded == {"invalid_line": 2}


class TestMonthlyProductRevenue:
    """Tests for the product-month revenue series"""

    def test_months_with_sales_only(self, metrics):
        """Test months with sales only"""
        monthly = monthly_product_revenue(metrics.lines, metrics.sales)
        chai = monthly.filter(pl.col("product_id") == "1")

        assert chai["month"].to_list() == [date(2024, 1, 1), date(2024, 2, 1), date(2024, 3, 1)]
        assert chai["revenue"].to_list() == [180.0, 270.0, 90.0]

    def test_revenue_units_are_integers(self, metrics):
        """Test the monthly series carries exact Int64 micro-unit revenue"""
        monthly = monthly_product_revenue(metrics.lines, metrics.sales)
        chai = monthly.filter(pl.col("product_id") == "1")

        assert monthly.schema["revenue_units"] == pl.Int64
        assert chai["revenue_units"].to_list() == [180_000_000, 270_000_000, 90_000_000]

    def test_single_month_product(self, metrics):
        """Test single month product"""
        monthly = monthly_product_revenue(metrics.lines, metrics.sales)

        assert monthly.filter(pl.col("product_id") == "4").height == 1

    def test_total_matches_dated_revenue(self, metrics):
        """Test total matches dated revenue"""
        monthly = monthly_product_revenue(metrics.lines, metrics.sales)
        dated = metrics.sales.filter(pl.col("order_date").is_not_null())

        assert monthly["revenue"].sum() == pytest.approx(dated["revenue"].sum())
