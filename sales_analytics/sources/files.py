"""
File Record Source

Reads one CSV or Parquet file per table from a directory, e.g.
``data/orders.csv`` or ``data/order_details.parquet``.
"""

import hashlib
from enum import Enum
from pathlib import Path
from typing import List, Optional, Set, Union

import polars as pl
import structlog

from sales_analytics.config import SourceSettings, get_settings
from .base import RecordSource

logger = structlog.get_logger(__name__)


class FileFormat(str, Enum):
    """Supported file formats"""
    CSV = "csv"
    PARQUET = "parquet"


class FileSource(RecordSource):
    """
    Source over a directory of table files.

    CSV files are read with every column as text so that the canonical view
    builder applies the same coercion rules to every source.
    """

    def __init__(
        self,
        directory: Optional[Union[str, Path]] = None,
        file_format: Optional[Union[str, FileFormat]] = None,
        settings: Optional[SourceSettings] = None,
    ):
        self.settings = settings or get_settings().source
        self.directory = Path(directory or self.settings.data_dir)
        self.file_format = FileFormat(file_format or self.settings.file_format)

    def _path(self, name: str) -> Path:
        return self.directory / f"{name}.{self.file_format.value}"

    def _files(self) -> List[Path]:
        return sorted(self.directory.glob(f"*.{self.file_format.value}"))

    def has_table(self, name: str) -> bool:
        return self._path(name).is_file()

    def fields(self, name: str) -> Set[str]:
        if not self.has_table(name):
            return set()
        path = self._path(name)
        if self.file_format == FileFormat.CSV:
            schema = pl.scan_csv(path, infer_schema_length=0).collect_schema()
        else:
            schema = pl.scan_parquet(path).collect_schema()
        return set(schema.names())

    def read(self, name: str) -> pl.DataFrame:
        path = self._path(name)
        if not path.is_file():
            raise FileNotFoundError(f"No file for table '{name}' at {path}")
        if self.file_format == FileFormat.CSV:
            df = pl.read_csv(
                path,
                infer_schema_length=0,
                null_values=self.settings.null_values,
            )
        else:
            df = pl.read_parquet(path)
        logger.debug(f"Read {len(df)} rows from {path}", table=name)
        return df

    def _compute_file_hash(self, file_path: Path) -> str:
        """Compute MD5 hash of a file"""
        hash_md5 = hashlib.md5()
        with open(file_path, "rb") as f:
            for chunk in iter(lambda: f.read(4096), b""):
                hash_md5.update(chunk)
        return hash_md5.hexdigest()

    def snapshot_id(self) -> Optional[str]:
        digest = hashlib.md5()
        for path in self._files():
            digest.update(path.name.encode("utf-8"))
            digest.update(self._compute_file_hash(path).encode("ascii"))
        return f"files:{digest.hexdigest()}"
