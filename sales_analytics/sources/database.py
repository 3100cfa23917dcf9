"""
SQL Record Source

Reads source tables through SQLAlchemy. Column names are introspected with
the inspector so that naming variants can be resolved before any query runs.
"""

from typing import Optional, Set

import polars as pl
import structlog
from sqlalchemy import MetaData, Table, create_engine, inspect, select
from sqlalchemy.engine import Engine

from sales_analytics.config import DatabaseSettings, get_settings
from .base import RecordSource

logger = structlog.get_logger(__name__)


def create_source_engine(
    url: Optional[str] = None,
    settings: Optional[DatabaseSettings] = None,
) -> Engine:
    """
    Create an engine for the source database.

    Args:
        url: Database URL; falls back to DATABASE_URL
        settings: Database settings; falls back to application settings
    """
    settings = settings or get_settings().database
    if url is None:
        if settings.url is None:
            raise ValueError("No database URL configured (set DATABASE_URL)")
        url = settings.url.get_secret_value()

    engine_config = {
        "echo": settings.echo,
        "pool_pre_ping": True,
    }
    if not url.startswith("sqlite"):
        engine_config.update({
            "pool_size": settings.pool_size,
            "max_overflow": settings.max_overflow,
        })

    engine = create_engine(url, **engine_config)
    logger.info("Source database engine created", dialect=engine.dialect.name)
    return engine


class SqlSource(RecordSource):
    """
    Source over tables of a relational database.

    Example:
        source = SqlSource(url="postgresql+psycopg2://user:pw@host/northwind")
    """

    def __init__(
        self,
        engine: Optional[Engine] = None,
        url: Optional[str] = None,
        schema: Optional[str] = None,
        settings: Optional[DatabaseSettings] = None,
    ):
        settings = settings or get_settings().database
        self.engine = engine or create_source_engine(url, settings)
        if schema is None and self.engine.dialect.name != "sqlite":
            schema = settings.schema_name
        self.schema = schema

    def has_table(self, name: str) -> bool:
        return inspect(self.engine).has_table(name, schema=self.schema)

    def fields(self, name: str) -> Set[str]:
        if not self.has_table(name):
            return set()
        columns = inspect(self.engine).get_columns(name, schema=self.schema)
        return {column["name"] for column in columns}

    def read(self, name: str) -> pl.DataFrame:
        with self.engine.connect() as conn:
            table = Table(name, MetaData(), autoload_with=conn, schema=self.schema)
            result = conn.execute(select(table))
            columns = list(result.keys())
            rows = [tuple(row) for row in result]

        logger.debug(f"Read {len(rows)} rows from {name}", schema=self.schema)
        if not rows:
            return pl.DataFrame(schema={column: pl.Null for column in columns})
        return pl.DataFrame(
            rows,
            schema=columns,
            orient="row",
            infer_schema_length=None,
            strict=False,
        )
