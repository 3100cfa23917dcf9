"""
Record Source Interface

The storage engine that supplies raw records is an external collaborator.
Sources expose the tables of one immutable snapshot by name.
"""

from abc import ABC, abstractmethod
from typing import Optional, Set

import polars as pl


class RecordSource(ABC):
    """Read-only access to the physical tables of a snapshot"""

    @abstractmethod
    def has_table(self, name: str) -> bool:
        """Whether the snapshot holds a table with this name"""

    @abstractmethod
    def fields(self, name: str) -> Set[str]:
        """Physical field names of a table, empty when it does not exist"""

    @abstractmethod
    def read(self, name: str) -> pl.DataFrame:
        """All rows of a table"""

    def snapshot_id(self) -> Optional[str]:
        """
        Identifier that changes whenever the underlying data changes.

        None means the snapshot can not be fingerprinted and results must
        not be cached.
        """
        return None
