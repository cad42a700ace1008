"""
Common Models
=============

Response envelopes shared by every endpoint: the error body returned by
the exception handlers and the service health report.

Version: 0.1.0
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Error body.

    `error_code` names the failure (the engine uses the exception class
    name); `details` carries its structured fields, such as the offending
    item id or the CAPAs still open.
    """

    success: bool = False
    error: str
    error_code: str | None = None
    status_code: int
    details: dict[str, Any] | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class HealthResponse(BaseModel):
    """Service health with one entry per configured store."""

    status: str = "healthy"
    service: str
    version: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    components: dict[str, dict[str, Any]] = Field(default_factory=dict)

    @classmethod
    def from_components(
        cls,
        service: str,
        version: str,
        components: dict[str, dict[str, Any]],
    ) -> "HealthResponse":
        """Degraded as soon as one store reports anything but healthy."""
        healthy = all(c.get("status") == "healthy" for c in components.values())
        return cls(
            status="healthy" if healthy else "degraded",
            service=service,
            version=version,
            components=components,
        )
