"""
Retail Sales Analytics
Centralized Configuration Management

Pydantic settings with environment variable support for the storage
handle, the ingestion rules and the analytics thresholds.
"""

from datetime import date
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Relational store configuration"""

    model_config = SettingsConfigDict(env_prefix="POSTGRES_", populate_by_name=True)

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    db: str = Field(default="retail_analytics", alias="database", description="Database name")
    user: str = Field(default="retail", description="Database user")
    password: SecretStr = Field(default="secure_password", description="Database password")
    echo: bool = Field(default=False, description="Echo SQL queries")
    url: Optional[str] = Field(
        default=None,
        alias="DATABASE_URL",
        description="Full async database URL (overrides host/port), e.g. sqlite+aiosqlite:///./retail.db",
    )

    @property
    def async_url(self) -> str:
        """Async database URL - uses DATABASE_URL if set, otherwise asyncpg from host/port"""
        if self.url:
            return self.url
        return f"postgresql+asyncpg://{self.user}:{self.password.get_secret_value()}@{self.host}:{self.port}/{self.db}"


class IngestionSettings(BaseSettings):
    """Sales extract ingestion rules"""

    model_config = SettingsConfigDict(env_prefix="INGESTION_")

    header_sentinels: List[str] = Field(
        default=["날짜", "Date"],
        description="Date-column values that mark a repeated header row",
    )
    spreadsheet_epoch: date = Field(
        default=date(1899, 12, 30),
        description="Calendar date of spreadsheet serial day 0",
    )
    max_upload_rows: int = Field(default=200_000, description="Max rows accepted per batch")


class AnalyticsSettings(BaseSettings):
    """Aggregation and classification thresholds"""

    model_config = SettingsConfigDict(env_prefix="ANALYTICS_")

    daily_trend_limit: int = Field(default=30, description="Most recent dates in the daily trend")

    # ABC grading
    abc_a_percentile: float = Field(default=20.0, description="Upper rank percentile for grade A")
    abc_b_percentile: float = Field(default=50.0, description="Upper rank percentile for grade B")

    # Inventory health
    coverage_days: int = Field(default=30, description="Trailing window and stock coverage target in days")
    low_stock_ratio: float = Field(default=0.5, description="Stock below target x ratio is Low")
    high_stock_ratio: float = Field(default=2.0, description="Stock above target x ratio is High")

    # Insights
    mom_threshold_pct: float = Field(default=10.0, description="Month-over-month growth alert threshold (%)")
    sell_through_alert_ratio: float = Field(default=0.1, description="Brand sell-through warning threshold")
    max_sell_through_alerts: int = Field(default=3, description="Max low sell-through warnings")

    # Brand analysis
    best_seller_limit: int = Field(default=5, description="Products per best-seller list")
    best_seller_weekly_days: int = Field(default=7, description="Trailing days of the weekly best-seller list")
    top_brands_limit: int = Field(default=5, description="Brands in the store top-brands list")


class MonitoringSettings(BaseSettings):
    """Logging configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", description="Log format: json or text")


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

    # Application
    app_name: str = Field(default="retail-analytics", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")

    # API Server
    api_host: str = Field(default="0.0.0.0", alias="API_HOST", description="API host")
    api_port: int = Field(default=8000, alias="API_PORT", description="API port")

    # Version
    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    ingestion: IngestionSettings = Field(default_factory=IngestionSettings)
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


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
