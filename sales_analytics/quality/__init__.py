"""
Data Quality Module
"""
from .integrity import (
    CheckSeverity,
    IntegrityCheck,
    IntegrityValidator,
    create_canonical_validator,
)

__all__ = [
    "CheckSeverity",
    "IntegrityCheck",
    "IntegrityValidator",
    "create_canonical_validator",
]
