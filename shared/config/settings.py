"""
Settings Module
===============

Pydantic-based configuration with environment variable loading.

Version: 0.1.0
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Deployment environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class WatermarkBackend(str, Enum):
    """Where the health-score batch watermark lives."""

    MEMORY = "memory"
    REDIS = "redis"


class StoreBackend(str, Enum):
    """Where health-score records are kept."""

    MEMORY = "memory"
    POSTGRES = "postgres"


class PostgresSettings(BaseSettings):
    """PostgreSQL database configuration."""

    model_config = SettingsConfigDict(env_prefix="POSTGRES_")

    host: str = "localhost"
    port: int = 5432
    user: str = "auditops"
    password: SecretStr = SecretStr("auditops_dev_password")
    db: str = "auditops"

    pool_size: int = Field(default=5, ge=1)
    max_overflow: int = Field(default=10, ge=0)
    pool_recycle_seconds: int = 1800
    echo_sql: bool = False

    @property
    def async_url(self) -> str:
        """Generate async SQLAlchemy connection URL."""
        pwd = self.password.get_secret_value()
        return f"postgresql+asyncpg://{self.user}:{pwd}@{self.host}:{self.port}/{self.db}"


class RedisSettings(BaseSettings):
    """Redis configuration (batch watermark)."""

    model_config = SettingsConfigDict(env_prefix="REDIS_")

    host: str = "localhost"
    port: int = 6379
    password: SecretStr = SecretStr("auditops_redis_password")
    db: int = 0
    max_connections: int = Field(default=20, ge=1)
    socket_timeout_seconds: float = 5.0

    @property
    def url(self) -> str:
        """Generate Redis connection URL."""
        pwd = self.password.get_secret_value()
        return f"redis://:{pwd}@{self.host}:{self.port}/{self.db}"


class AuditEngineSettings(BaseSettings):
    """
    Scoring, CAPA and health-score policy parameters.

    Day counts and windows are business policy, not structure, so they
    are kept here rather than in the engine modules.
    """

    model_config = SettingsConfigDict(env_prefix="AUDIT_")

    # CAPA due-date windows by finding severity
    capa_due_days_critical: int = Field(default=3, ge=0)
    capa_due_days_high: int = Field(default=7, ge=0)
    capa_due_days_medium: int = Field(default=14, ge=0)
    capa_due_days_low: int = Field(default=30, ge=0)

    # Health-score inputs
    lookback_days: int = Field(default=90, ge=1)
    decay_half_life_days: float | None = Field(default=30.0, gt=0)
    repeat_finding_window_days: int = Field(default=60, ge=1)
    incident_window_days: int = Field(default=30, ge=1)
    certification_warning_days: int = Field(default=30, ge=0)

    # Batch recompute gate
    health_batch_interval_hours: float = Field(default=6.0, gt=0)
    watermark_backend: WatermarkBackend = WatermarkBackend.MEMORY
    watermark_key: str = "auditops:health_batch:last_run"
    store_backend: StoreBackend = StoreBackend.POSTGRES


class CORSSettings(BaseSettings):
    """CORS configuration."""

    model_config = SettingsConfigDict(env_prefix="CORS_")

    origins: str = "http://localhost:3000,http://localhost:5173"
    allow_credentials: bool = True

    @property
    def origins_list(self) -> list[str]:
        """Parse origins string into list."""
        return [o.strip() for o in self.origins.split(",") if o.strip()]


class ServicePorts(BaseSettings):
    """Service port configuration."""

    audit_engine: int = Field(default=8010, alias="AUDIT_ENGINE_PORT")


class Settings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables with sensible defaults.
    Use the global `settings` singleton or call `get_settings()`.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # General
    environment: Environment = Environment.DEVELOPMENT
    debug: bool = True
    log_level: LogLevel = LogLevel.INFO

    # Service ports
    ports: ServicePorts = Field(default_factory=ServicePorts)

    # Storage
    postgres: PostgresSettings = Field(default_factory=PostgresSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)

    # Engine policy
    audit: AuditEngineSettings = Field(default_factory=AuditEngineSettings)

    # Security
    cors: CORSSettings = Field(default_factory=CORSSettings)

    @field_validator("log_level", mode="before")
    @classmethod
    def uppercase_log_level(cls, v: str | LogLevel) -> LogLevel:
        """Ensure log level is uppercase."""
        if isinstance(v, str):
            return LogLevel(v.upper())
        return v

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == Environment.PRODUCTION


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings: Application settings singleton.
    """
    return Settings()
