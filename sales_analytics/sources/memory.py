"""
In-memory record source backed by polars frames.
"""

import uuid
from typing import Any, Dict, Mapping, Optional, Set, Union

import polars as pl

from .base import RecordSource

TableData = Union[pl.DataFrame, Mapping[str, Any]]


class InMemorySource(RecordSource):
    """
    Source over frames held in memory.

    Example:
        source = InMemorySource({"orders": orders_df, "order_details": lines_df})
        source.replace("orders", new_orders_df)  # changes snapshot_id()
    """

    def __init__(self, tables: Optional[Dict[str, TableData]] = None):
        self._tables: Dict[str, pl.DataFrame] = {
            name: self._to_frame(data) for name, data in (tables or {}).items()
        }
        self._token = uuid.uuid4().hex
        self._version = 0

    @staticmethod
    def _to_frame(data: TableData) -> pl.DataFrame:
        if isinstance(data, pl.DataFrame):
            return data
        return pl.DataFrame(dict(data), strict=False)

    def replace(self, name: str, data: TableData) -> None:
        """Replace or add a table; invalidates cached results"""
        self._tables[name] = self._to_frame(data)
        self._version += 1

    def drop(self, name: str) -> None:
        self._tables.pop(name, None)
        self._version += 1

    def has_table(self, name: str) -> bool:
        return name in self._tables

    def fields(self, name: str) -> Set[str]:
        if name not in self._tables:
            return set()
        return set(self._tables[name].columns)

    def read(self, name: str) -> pl.DataFrame:
        if name not in self._tables:
            raise KeyError(f"Unknown table: {name}")
        return self._tables[name]

    def snapshot_id(self) -> Optional[str]:
        return f"memory:{self._token}:{self._version}"
