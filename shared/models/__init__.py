"""
Shared Models
=============

Pydantic API envelopes shared across AuditOps services.
"""

from shared.models.common import ErrorResponse, HealthResponse


__all__ = [
    "ErrorResponse",
    "HealthResponse",
]
