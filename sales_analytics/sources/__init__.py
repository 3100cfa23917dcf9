"""
Record Source Adapters
"""
from .base import RecordSource
from .database import SqlSource, create_source_engine
from .files import FileFormat, FileSource
from .memory import InMemorySource

__all__ = [
    "RecordSource",
    "InMemorySource",
    "FileFormat",
    "FileSource",
    "SqlSource",
    "create_source_engine",
]
