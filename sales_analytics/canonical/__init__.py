"""
Canonical Views Module
"""
from .builder import CanonicalViewBuilder, CanonicalViews

__all__ = [
    "CanonicalViewBuilder",
    "CanonicalViews",
]
