"""
Logging Module
==============

Structured logging using structlog with JSON output for production
and colored console output for development.

Usage:
    from shared.logging import get_logger, log_context, setup_logging

    # Setup at application start
    setup_logging()

    # Get logger for a module
    logger = get_logger(__name__)

    # Log with context
    logger.info("audit_submitted", audit_id="123", findings=4)

    # Scope context to a block
    with log_context(batch_run_at=run_at):
        logger.info("health_batch_started")
"""

from shared.logging.logger import get_logger, log_context, setup_logging


__all__ = [
    "get_logger",
    "setup_logging",
    "log_context",
]
