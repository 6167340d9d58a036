"""
Configuration management using pydantic-settings.
All settings loaded from environment variables (12-factor app).
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from engagement.models.enums import ErrorPolicy


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    db_type: str = Field(default="duckdb", description="Database type")
    db_path: str = Field(default="./data/engagement.duckdb", description="DuckDB file path")
    db_threads: int = Field(default=4, ge=1, description="DuckDB thread count")

    # API
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")
    api_reload: bool = Field(default=True, description="Enable hot reload")
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="CORS allowed origins (comma-separated)",
    )

    # Logging
    log_level: str = Field(default="info", description="Log level")
    log_format: str = Field(default="json", description="Log format (json|console)")

    # Metric engine
    fallbacks_path: Optional[str] = Field(
        default=None,
        description="JSON file overriding the built-in fallback table",
    )
    metric_error_policies: dict[str, ErrorPolicy] = Field(
        default_factory=dict,
        description="Per-metric backend error policy overrides (JSON map of metric key to policy)",
    )
    fail_on_degraded: bool = Field(
        default=False,
        description="Fail the whole dashboard when any metric fell back to a default",
    )
    daily_series_max_days: int = Field(
        default=30, ge=1, description="Most recent days kept in the daily transaction series"
    )
    rolling_spend_days: int = Field(
        default=7, ge=1, description="Window for the rolling average spend summary"
    )

    # Development
    dev_mode: bool = Field(default=True, description="Development mode")
    testing: bool = Field(default=False, description="Testing mode")

    @field_validator("cors_origins")
    @classmethod
    def parse_cors_origins(cls, v: str) -> List[str]:
        """Parse comma-separated CORS origins."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to ensure singleton behavior.
    """
    return Settings()
