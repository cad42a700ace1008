"""
Configuration Module
====================

Centralized configuration management using Pydantic Settings.
Loads from environment variables with type validation and defaults.

Usage:
    from shared.config import settings

    print(settings.environment)
    print(settings.audit.capa_due_days_critical)
"""

from shared.config.settings import (
    AuditEngineSettings,
    Environment,
    LogLevel,
    Settings,
    StoreBackend,
    WatermarkBackend,
    get_settings,
)


# Global settings instance (singleton)
settings = get_settings()

__all__ = [
    "Settings",
    "get_settings",
    "settings",
    "Environment",
    "LogLevel",
    "AuditEngineSettings",
    "WatermarkBackend",
    "StoreBackend",
]
