"""
AuditOps Shared Library
=======================

Infrastructure used by the audit engine service and its scripts.

Modules:
    - config: environment-driven settings, including scoring and CAPA policy
    - logging: structlog setup and scoped log context
    - database: PostgreSQL (health-score records) and Redis (batch watermark) clients
    - models: error and health-check envelopes

Version: 0.1.0
"""

__version__ = "0.1.0"

from shared.config import settings
from shared.logging import get_logger, log_context, setup_logging

__all__ = [
    "settings",
    "get_logger",
    "log_context",
    "setup_logging",
    "__version__",
]
