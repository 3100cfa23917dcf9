"""
Unit Tests - Record Sources
"""
from datetime import date

import polars as pl
import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.pool import StaticPool

from sales_analytics.config import DatabaseSettings, Settings, SourceSettings
from sales_analytics.pipeline.runner import SalesAnalytics
from sales_analytics.sources.database import SqlSource, create_source_engine
from sales_analytics.sources.files import FileFormat, FileSource
from sales_analytics.sources.memory import InMemorySource


def write_tables(directory, tables, file_format: FileFormat) -> None:
    for name, df in tables.items():
        path = directory / f"{name}.{file_format.value}"
        if file_format == FileFormat.CSV:
            df.write_csv(path)
        else:
            df.write_parquet(path)


@pytest.fixture
def settings() -> Settings:
    return Settings(app_env="testing")


class TestInMemorySource:
    """Tests for InMemorySource"""

    def test_tables_and_fields(self, northwind_source):
        """Test tables and fields"""
        assert northwind_source.has_table("orders")
        assert not northwind_source.has_table("invoices")
        assert "requireddate" in northwind_source.fields("orders")
        assert northwind_source.fields("invoices") == set()

    def test_accepts_column_dicts(self):
        """Test accepts column dicts"""
        source = InMemorySource({"shippers": {"shipperid": [1], "companyname": ["Speedy"]}})

        assert source.read("shippers").height == 1

    def test_unknown_table(self, northwind_source):
        """Test unknown table"""
        with pytest.raises(KeyError):
            northwind_source.read("invoices")

    def test_snapshot_changes_on_replace(self, northwind_source, northwind_tables):
        """Test snapshot changes on replace"""
        before = northwind_source.snapshot_id()
        northwind_source.replace("orders", northwind_tables["orders"].head(1))

        assert northwind_source.snapshot_id() != before

    def test_snapshot_changes_on_drop(self, northwind_source):
        """Test snapshot changes on drop"""
        before = northwind_source.snapshot_id()
        northwind_source.drop("employees")

        assert northwind_source.snapshot_id() != before
        assert not northwind_source.has_table("employees")


class TestFileSource:
    """Tests for CSV and Parquet directories"""

    @pytest.mark.parametrize("file_format", [FileFormat.CSV, FileFormat.PARQUET])
    def test_run_over_files(self, tmp_path, northwind_tables, settings, file_format):
        """Test run over files"""
        write_tables(tmp_path, northwind_tables, file_format)
        source = FileSource(tmp_path, file_format=file_format, settings=settings.source)

        report = SalesAnalytics(source, settings=settings).run()

        assert report["annual_revenue"].rows() == [(2024, 1021.0, 4), (2025, 152.0, 1)]
        assert report["top_customers"]["customer_id"].to_list() == ["ALFKI", "BONAP", "CHOPS"]

    def test_csv_read_as_text(self, tmp_path, northwind_tables):
        """Test csv read as text"""
        write_tables(tmp_path, northwind_tables, FileFormat.CSV)
        source = FileSource(tmp_path, settings=SourceSettings())

        orders = source.read("orders")

        assert orders.schema["orderid"] == pl.Utf8
        assert "shippedDate" not in source.fields("orders")
        assert "shippeddate" in source.fields("orders")

    def test_csv_null_values(self, tmp_path):
        """Test csv null values"""
        (tmp_path / "shippers.csv").write_text("shipperid,companyname\n1,NULL\n2,Speedy\n")
        source = FileSource(tmp_path, settings=SourceSettings(null_values=["NULL"]))

        assert source.read("shippers")["companyname"].to_list() == [None, "Speedy"]

    def test_missing_file(self, tmp_path):
        """Test missing file"""
        source = FileSource(tmp_path, settings=SourceSettings())

        assert not source.has_table("orders")
        assert source.fields("orders") == set()
        with pytest.raises(FileNotFoundError):
            source.read("orders")

    def test_snapshot_follows_file_content(self, tmp_path, northwind_tables):
        """Test snapshot follows file content"""
        write_tables(tmp_path, northwind_tables, FileFormat.CSV)
        source = FileSource(tmp_path, settings=SourceSettings())
        first = source.snapshot_id()

        assert source.snapshot_id() == first

        northwind_tables["orders"].head(2).write_csv(tmp_path / "orders.csv")

        assert source.snapshot_id() != first

    def test_changed_files_not_served_from_cache(self, tmp_path, northwind_tables, settings):
        """Test changed files not served from cache"""
        write_tables(tmp_path, northwind_tables, FileFormat.CSV)
        analytics = SalesAnalytics(FileSource(tmp_path, settings=settings.source), settings=settings)
        first = analytics.run()

        northwind_tables["orders"].filter(pl.col("orderid") != 10006).write_csv(tmp_path / "orders.csv")
        second = analytics.run()

        assert second is not first
        assert second.sales_records.height == 5

    def test_invalid_format(self):
        """Test invalid format"""
        with pytest.raises(ValueError):
            FileSource("data", file_format="xlsx", settings=SourceSettings())


@pytest.fixture
def sqlite_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    statements = [
        "CREATE TABLE categories (categoryID INTEGER, categoryName TEXT)",
        "CREATE TABLE customers (customerID TEXT, companyName TEXT, country TEXT)",
        "CREATE TABLE employees (employeeID INTEGER, employeeName TEXT)",
        "CREATE TABLE products (productID INTEGER, productName TEXT, categoryID INTEGER)",
        "CREATE TABLE shippers (shipperID INTEGER, companyName TEXT)",
        "CREATE TABLE orders (orderID INTEGER, customerID TEXT, employeeID INTEGER, orderDate TEXT,"
        " requiredDate TEXT, shippedDate TEXT, shipVia INTEGER, freight REAL)",
        "CREATE TABLE order_details (orderID INTEGER, productID INTEGER, unitPrice REAL,"
        " quantity INTEGER, discount REAL)",
        "INSERT INTO categories VALUES (1, 'Beverages')",
        "INSERT INTO customers VALUES ('ALFKI', 'Alfreds Futterkiste', 'Germany')",
        "INSERT INTO employees VALUES (1, 'Nancy Davolio')",
        "INSERT INTO products VALUES (1, 'Chai', 1)",
        "INSERT INTO shippers VALUES (1, 'Speedy Express')",
        "INSERT INTO orders VALUES (10248, 'ALFKI', 1, '1996-07-04', '1996-08-01', '1996-07-16', 1, 32.38)",
        "INSERT INTO orders VALUES (10249, 'ALFKI', 1, '1996-08-05', '1996-08-16', NULL, NULL, NULL)",
        "INSERT INTO order_details VALUES (10248, 1, 14.0, 12, 0.0)",
        "INSERT INTO order_details VALUES (10249, 1, 18.6, 9, 0.5)",
    ]
    with engine.begin() as conn:
        for statement in statements:
            conn.execute(text(statement))
    yield engine
    engine.dispose()


class TestSqlSource:
    """Tests for SqlSource over SQLite"""

    def test_introspects_columns(self, sqlite_engine):
        """Test introspects columns"""
        source = SqlSource(engine=sqlite_engine, settings=DatabaseSettings())

        assert source.has_table("orders")
        assert not source.has_table("invoices")
        assert source.fields("shippers") == {"shipperID", "companyName"}
        assert source.schema is None

    def test_read(self, sqlite_engine):
        """Test reading a table"""
        source = SqlSource(engine=sqlite_engine, settings=DatabaseSettings())

        orders = source.read("orders")

        assert orders.height == 2
        assert orders["orderID"].to_list() == [10248, 10249]

    def test_empty_table(self, sqlite_engine):
        """Test empty table"""
        with sqlite_engine.begin() as conn:
            conn.execute(text("CREATE TABLE empty_orders (OrderID INTEGER)"))
        source = SqlSource(engine=sqlite_engine, settings=DatabaseSettings())

        assert source.read("empty_orders").columns == ["OrderID"]
        assert source.read("empty_orders").height == 0

    def test_snapshot_not_fingerprinted(self, sqlite_engine):
        """Test snapshot not fingerprinted"""
        assert SqlSource(engine=sqlite_engine, settings=DatabaseSettings()).snapshot_id() is None

    def test_run_over_database(self, sqlite_engine, settings):
        """Test run over database"""
        source = SqlSource(engine=sqlite_engine, settings=settings.database)
        analytics = SalesAnalytics(source, settings=settings)

        report = analytics.run()

        assert report["annual_revenue"].rows() == [(1996, 251.7, 2)]
        assert report["shipper_performance"].rows() == [("Speedy Express", 12.0, 100.0, 1)]
        assert report["monthly_revenue_freight"]["month"].to_list() == [date(1996, 7, 1), date(1996, 8, 1)]
        # no snapshot id, so nothing is cached
        assert analytics.run() is not report

    def test_engine_requires_url(self):
        """Test engine requires url"""
        with pytest.raises(ValueError):
            create_source_engine(settings=DatabaseSettings(url=None))

    def test_engine_from_url(self):
        """Test engine from url"""
        engine = create_source_engine("sqlite://", settings=DatabaseSettings())

        assert engine.dialect.name == "sqlite"
