"""
Sales Analytics Engine
Centralized Configuration Management

Pydantic settings with environment variable support for record sources,
the analytics run and logging.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SourceSettings(BaseSettings):
    """File-based record source configuration"""

    model_config = SettingsConfigDict(env_prefix="SOURCE_")

    data_dir: str = Field(default="./data", description="Directory holding one file per source table")
    file_format: str = Field(default="csv", description="Source file format: csv or parquet")
    null_values: List[str] = Field(
        default=["", "NULL", "null", "None", "NA", "N/A"],
        description="Text values read as null",
    )
    date_formats: List[str] = Field(
        default=[
            "%Y-%m-%d %H:%M:%S",
            "%Y-%m-%dT%H:%M:%S",
            "%Y-%m-%d %H:%M:%S%.f",
            "%Y-%m-%d",
            "%m/%d/%Y",
            "%d-%m-%Y",
        ],
        description="Formats tried, in order, for timestamps stored as text",
    )

    @field_validator("file_format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate file format"""
        allowed = ["csv", "parquet"]
        if v.lower() not in allowed:
            raise ValueError(f"File format must be one of: {allowed}")
        return v.lower()


class DatabaseSettings(BaseSettings):
    """SQL record source configuration"""

    model_config = SettingsConfigDict(env_prefix="DATABASE_")

    url: Optional[SecretStr] = Field(default=None, description="SQLAlchemy database URL")
    schema_name: Optional[str] = Field(default="public", description="Schema holding the source tables")
    pool_size: int = Field(default=5, description="Connection pool size")
    max_overflow: int = Field(default=10, description="Max overflow connections")
    echo: bool = Field(default=False, description="Echo SQL queries")


class AnalyticsSettings(BaseSettings):
    """Analytics run configuration"""

    model_config = SettingsConfigDict(env_prefix="ANALYTICS_")

    top_products_limit: int = Field(default=10, description="Rows in the top products report")
    top_customers_limit: int = Field(default=10, description="Rows in the top customers report")
    customer_frequency_limit: int = Field(default=15, description="Rows in the customer frequency report")
    trend_limit: int = Field(default=20, description="Rows in each product trend report")
    unknown_label: str = Field(default="(unknown)", description="Label for null grouping keys")

    shard_count: int = Field(default=1, ge=1, description="Order shards processed per run")
    max_workers: int = Field(default=4, ge=1, description="Threads used to process shards")

    diagnostics_sample_size: int = Field(default=5, ge=0, description="Sample keys kept per error kind")
    enable_cache: bool = Field(default=True, description="Cache run results per source snapshot")


class MonitoringSettings(BaseSettings):
    """Logging Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", description="Log format: json or text")

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format"""
        allowed = ["json", "text"]
        if v.lower() not in allowed:
            raise ValueError(f"Log format must be one of: {allowed}")
        return v.lower()


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")

    source: SourceSettings = Field(default_factory=SourceSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    analytics: AnalyticsSettings = Field(default_factory=AnalyticsSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.app_env == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
