"""
Sales Analytics Engine
Configuration Module
"""
from .settings import (
    AnalyticsSettings,
    DatabaseSettings,
    MonitoringSettings,
    Settings,
    SourceSettings,
    get_settings,
)
from .logging import configure_logging

__all__ = [
    "AnalyticsSettings",
    "DatabaseSettings",
    "MonitoringSettings",
    "Settings",
    "SourceSettings",
    "get_settings",
    "configure_logging",
]
