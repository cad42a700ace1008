"""
Health Score Models
===================

Inputs and outputs of the entity health-score aggregator.

Version: 0.1.0
"""

from pydantic import BaseModel, ConfigDict, Field

from services.audit_engine.models.audit import (
    CAPA,
    Audit,
    Certification,
    EntityRef,
    Finding,
    Incident,
    UTCDateTime,
)


class EntityHistory(BaseModel):
    """
    Everything the aggregator needs for one entity, already materialized.

    Attributes:
        audits: Audits of the entity (any status; only approved ones count)
        findings: Findings raised by those audits
        capas: CAPAs raised for the entity
        incidents: Incidents logged against the entity
        certifications: Supplier certifications
        supplier_ids: Suppliers delivering to a BCK
        supplier_scores: Known health scores of those suppliers
        delivery_on_time_rate: Supplier on-time delivery rate (0-100), when tracked
        suspended: Whether the supplier is already suspended
    """

    model_config = ConfigDict(frozen=True)

    entity: EntityRef
    audits: tuple[Audit, ...] = ()
    findings: tuple[Finding, ...] = ()
    capas: tuple[CAPA, ...] = ()
    incidents: tuple[Incident, ...] = ()
    certifications: tuple[Certification, ...] = ()
    supplier_ids: tuple[str, ...] = ()
    supplier_scores: dict[str, float] = Field(default_factory=dict)
    delivery_on_time_rate: float | None = Field(default=None, ge=0, le=100)
    suspended: bool = False


class HealthScoreRecord(BaseModel):
    """Current health score of one entity. Recomputation overwrites it."""

    model_config = ConfigDict(frozen=True)

    entity: EntityRef
    score: float = Field(..., ge=0, le=100)
    components: dict[str, float] = Field(default_factory=dict)
    has_data: bool = True
    label: str
    color: str
    calculated_at: UTCDateTime


class HealthLabel(BaseModel):
    """Display band for a score."""

    model_config = ConfigDict(frozen=True)

    label: str
    color: str
    min: float = 0.0
