"""
Assist Analytics - Reporting Service
Centralized Configuration Management

Pydantic settings with environment variable support for the database,
the KPI engine, the export pipeline and observability.
"""

from functools import lru_cache
from typing import Optional, List
from pydantic import Field, field_validator, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """PostgreSQL Database Configuration"""

    model_config = SettingsConfigDict(env_prefix="POSTGRES_")

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    db: str = Field(default="assist_platform", description="Database name")
    user: str = Field(default="assist", description="Database user")
    password: SecretStr = Field(default="secure_password", description="Database password")
    echo: bool = Field(default=False, description="Echo SQL queries")
    url: Optional[str] = Field(default=None, alias="DATABASE_URL", description="Full async URL (overrides host/port)")

    @property
    def async_url(self) -> str:
        """Async database URL for asyncpg"""
        if self.url:
            return self.url
        return f"postgresql+asyncpg://{self.user}:{self.password.get_secret_value()}@{self.host}:{self.port}/{self.db}"


class KpiSettings(BaseSettings):
    """KPI Engine Configuration"""

    model_config = SettingsConfigDict(env_prefix="KPI_")

    # Share of the selling price assumed as cost when a device has no manufacturing cost
    cost_fallback_ratio: float = Field(default=0.6, ge=0, le=1, description="Estimated cost / price ratio")
    default_mau_months: int = Field(default=6, ge=1, le=36, description="Months in the MAU series")
    security_lookback_months: int = Field(default=3, ge=0, description="Default security incident window in months")


class ExportSettings(BaseSettings):
    """Report Export Configuration"""

    model_config = SettingsConfigDict(env_prefix="EXPORT_")

    temp_dir: Optional[str] = Field(default=None, description="Directory for rendered files (system temp if unset)")
    timeout_seconds: float = Field(default=60.0, gt=0, description="Maximum time allowed to render one file")
    chunk_size: int = Field(default=64 * 1024, description="Streaming chunk size in bytes")
    pdf_margin: float = Field(default=50.0, description="PDF page margin in points")


class SecuritySettings(BaseSettings):
    """HTTP Security Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Allowed CORS origins"
    )


class MonitoringSettings(BaseSettings):
    """Monitoring and Observability Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", alias="LOG_FORMAT", description="Log format: json or text")


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
    )

    # Application
    app_name: str = Field(default="assist-analytics", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")

    # API Server
    api_host: str = Field(default="0.0.0.0", alias="API_HOST", description="API host")
    api_port: int = Field(default=8000, alias="API_PORT", description="API port")

    # Version
    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    kpi: KpiSettings = Field(default_factory=KpiSettings)
    export: ExportSettings = Field(default_factory=ExportSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
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
