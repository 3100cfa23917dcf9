"""
Test Suite Configuration
"""
import random
from datetime import date, timedelta
from typing import Dict

import polars as pl
import pytest

from sales_analytics.canonical.builder import CanonicalViewBuilder, CanonicalViews
from sales_analytics.config import AnalyticsSettings, Settings, SourceSettings
from sales_analytics.diagnostics import RunDiagnostics
from sales_analytics.schema.resolver import SchemaResolver
from sales_analytics.sources.memory import InMemorySource


def make_northwind_tables() -> Dict[str, pl.DataFrame]:
    """
    Small Northwind-shaped snapshot using lowercase source names,
    a camelCase shippers table and the 'requireddate' spelling.
    """
    return {
        "categories": pl.DataFrame({
            "categoryid": [1, 2, 3],
            "categoryname": ["Beverages", "Condiments", "Seafood"],
        }),
        "customers": pl.DataFrame({
            "customerid": ["ALFKI", "BONAP", "CHOPS"],
            "companyname": ["Alfreds Futterkiste", "Bon app'", "Chop-suey Chinese"],
            "country": ["Germany", "France", None],
        }),
        "employees": pl.DataFrame({
            "employeeid": [1, 2],
            "employeename": ["Nancy Davolio", "Andrew Fuller"],
            "title": ["Sales Representative", "Vice President, Sales"],
        }),
        "products": pl.DataFrame({
            "productid": [1, 2, 3, 4],
            "productname": ["Chai", "Aniseed Syrup", "Ikura", "Orphan Tea"],
            "categoryid": [1, 2, 3, 99],
        }),
        "shippers": pl.DataFrame({
            "shipperID": [1, 2],
            "companyName": ["Speedy Express", "United Package"],
        }),
        "orders": pl.DataFrame({
            "orderid": [10001, 10002, 10003, 10004, 10005, 10006],
            "customerid": ["ALFKI", "ALFKI", "BONAP", "CHOPS", "BONAP", "ALFKI"],
            "employeeid": [1, 2, 1, None, 2, 1],
            "orderdate": ["2024-01-10", "2024-02-05", "2024-03-01", "2024-03-15", "2025-01-20", None],
            "requireddate": ["2024-01-20", "2024-02-10", "2024-03-05", "2024-04-01", "2025-02-01", None],
            "shippeddate": ["2024-01-15", "2024-02-10", "2024-03-08", None, "2025-01-22", "2025-02-01"],
            "shipperid": [1, 2, 1, None, 2, 1],
            "freight": [10.0, 5.5, 20.0, None, 7.25, 1.0],
        }),
        "order_details": pl.DataFrame({
            "orderid": [10001, 10001, 10002, 10002, 10003, 10003, 10004, 10004, 10005, 10005],
            "productid": [1, 2, 1, 3, 1, 3, 2, 4, 2, 3],
            "unitprice": [18.0, 10.0, 18.0, 31.0, 18.0, 31.0, 10.0, 15.0, 10.0, 31.0],
            "quantity": [10, 5, 20, 2, 5, 10, 3, 4, 9, 4],
            "discount": [0.0, None, 0.25, 0.0, 0.0, 0.1, 0.0, 0.0, 0.0, 0.5],
        }),
    }


SNAKE_CASE_NAMES = {
    "categories": {"categoryid": "category_id", "categoryname": "category_name"},
    "customers": {"customerid": "customer_id", "companyname": "company_name"},
    "employees": {"employeeid": "employee_id", "employeename": "employee_name"},
    "products": {"productid": "product_id", "productname": "product_name", "categoryid": "category_id"},
    "shippers": {"shipperID": "shipper_id", "companyName": "company_name"},
    "orders": {
        "orderid": "order_id",
        "customerid": "customer_id",
        "employeeid": "employee_id",
        "orderdate": "order_date",
        "requireddate": "required_date",
        "shippeddate": "shipped_date",
        "shipperid": "ship_via",
    },
    "order_details": {"orderid": "order_id", "productid": "product_id", "unitprice": "unit_price"},
}


def make_snake_case_tables() -> Dict[str, pl.DataFrame]:
    """The same snapshot with canonical snake_case names"""
    return {
        name: df.rename(SNAKE_CASE_NAMES[name])
        for name, df in make_northwind_tables().items()
    }


def make_random_tables(seed: int, orders: int = 3000) -> Dict[str, pl.DataFrame]:
    """
    Larger snapshot with random two-decimal prices, discounts and freight.

    Each order has one to four distinct products, so no line is a duplicate.
    """
    rng = random.Random(seed)
    countries = ["Germany", "France", "Brazil", "USA", "UK", "Mexico"]
    first_day = date(2022, 1, 1)

    customers = [f"C{i:03d}" for i in range(60)]
    order_rows = {
        "orderid": [], "customerid": [], "employeeid": [], "orderdate": [],
        "requireddate": [], "shippeddate": [], "shipperid": [], "freight": [],
    }
    line_rows = {"orderid": [], "productid": [], "unitprice": [], "quantity": [], "discount": []}

    for order_id in range(1, orders + 1):
        ordered = first_day + timedelta(days=rng.randrange(3 * 365))
        shipped = ordered + timedelta(days=rng.randint(0, 40)) if rng.random() > 0.1 else None
        order_rows["orderid"].append(order_id)
        order_rows["customerid"].append(rng.choice(customers))
        order_rows["employeeid"].append(rng.randint(1, 9))
        order_rows["orderdate"].append(ordered.isoformat())
        order_rows["requireddate"].append((ordered + timedelta(days=28)).isoformat())
        order_rows["shippeddate"].append(shipped.isoformat() if shipped else None)
        order_rows["shipperid"].append(rng.randint(1, 3))
        order_rows["freight"].append(round(rng.uniform(0, 300), 2))

        for product_id in rng.sample(range(1, 78), rng.randint(1, 4)):
            line_rows["orderid"].append(order_id)
            line_rows["productid"].append(product_id)
            line_rows["unitprice"].append(round(rng.uniform(1, 300), 2))
            line_rows["quantity"].append(rng.randint(1, 120))
            line_rows["discount"].append(rng.choice([0.0, 0.05, 0.1, 0.15, 0.2, 0.25]))

    return {
        "categories": pl.DataFrame({
            "categoryid": list(range(1, 9)),
            "categoryname": [f"Category {i}" for i in range(1, 9)],
        }),
        "customers": pl.DataFrame({
            "customerid": customers,
            "companyname": [f"Company {c}" for c in customers],
            "country": [countries[i % len(countries)] for i in range(len(customers))],
        }),
        "employees": pl.DataFrame({
            "employeeid": list(range(1, 10)),
            "employeename": [f"Employee {i}" for i in range(1, 10)],
        }),
        "products": pl.DataFrame({
            "productid": list(range(1, 78)),
            "productname": [f"Product {i}" for i in range(1, 78)],
            "categoryid": [i % 8 + 1 for i in range(1, 78)],
        }),
        "shippers": pl.DataFrame({
            "shipperID": [1, 2, 3],
            "companyName": ["Speedy Express", "United Package", "Federal Shipping"],
        }),
        "orders": pl.DataFrame(order_rows, schema_overrides={"shippeddate": pl.Utf8}),
        "order_details": pl.DataFrame(line_rows),
    }


def build_views(tables: Dict[str, pl.DataFrame], diagnostics: RunDiagnostics = None) -> CanonicalViews:
    """Resolve and build canonical views for a set of tables"""
    source = InMemorySource(tables)
    builder = CanonicalViewBuilder(diagnostics=diagnostics or RunDiagnostics(), settings=SourceSettings())
    return builder.build(source, SchemaResolver().resolve_all(source))


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(app_env="testing", analytics=AnalyticsSettings(), source=SourceSettings())


@pytest.fixture
def analytics_settings() -> AnalyticsSettings:
    return AnalyticsSettings()


@pytest.fixture
def northwind_tables() -> Dict[str, pl.DataFrame]:
    return make_northwind_tables()


@pytest.fixture
def snake_case_tables() -> Dict[str, pl.DataFrame]:
    return make_snake_case_tables()


@pytest.fixture
def northwind_source(northwind_tables) -> InMemorySource:
    return InMemorySource(northwind_tables)


@pytest.fixture
def diagnostics() -> RunDiagnostics:
    return RunDiagnostics()


@pytest.fixture
def northwind_views(northwind_tables, diagnostics) -> CanonicalViews:
    return build_views(northwind_tables, diagnostics)


@pytest.fixture
def view_factory():
    """Builds canonical views from a dict of source tables"""
    return build_views


@pytest.fixture
def random_tables():
    """Builds a random snapshot for a seed"""
    return make_random_tables
