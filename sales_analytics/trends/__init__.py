"""
Product Trend Module
"""
from .classifier import MIN_MONTHS, Trend, TrendClassifier

__all__ = [
    "MIN_MONTHS",
    "Trend",
    "TrendClassifier",
]
