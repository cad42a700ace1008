"""
Audit Engine Models
===================

Pydantic models for templates, responses, audit records and health scores.

Models:
- Template, Section, Item: checklist definition
- Response variants, evidence attachments, ItemState: auditor input
- Audit, Finding, CAPA, NotificationEvent: audit records
- EntityHistory, HealthScoreRecord: health-score inputs and output

Version: 0.1.0
"""

from services.audit_engine.models.audit import (
    CAPA,
    Audit,
    AuditStatus,
    CAPAStatus,
    Certification,
    EntityRef,
    Finding,
    FindingSeverity,
    FindingStatus,
    Incident,
    IncidentStatus,
    NotificationEvent,
    NotificationKind,
)
from services.audit_engine.models.health import (
    EntityHistory,
    HealthLabel,
    HealthScoreRecord,
)
from services.audit_engine.models.response import (
    ChecklistResponse,
    EvidenceAttachment,
    ItemState,
    NumericResponse,
    PassFailResponse,
    PendingEvidence,
    PhotoResponse,
    RatingResponse,
    Response,
    StoredEvidence,
    TextResponse,
)
from services.audit_engine.models.template import (
    EntityType,
    EvidenceRequirement,
    Item,
    NumericRange,
    ResponseType,
    ScoringConfig,
    Section,
    Template,
    TemplateStatus,
)

__all__ = [
    # Template
    "Template",
    "Section",
    "Item",
    "ScoringConfig",
    "NumericRange",
    "EntityType",
    "ResponseType",
    "EvidenceRequirement",
    "TemplateStatus",
    # Responses
    "Response",
    "PassFailResponse",
    "RatingResponse",
    "NumericResponse",
    "PhotoResponse",
    "TextResponse",
    "ChecklistResponse",
    "EvidenceAttachment",
    "StoredEvidence",
    "PendingEvidence",
    "ItemState",
    # Audit records
    "Audit",
    "AuditStatus",
    "EntityRef",
    "Finding",
    "FindingSeverity",
    "FindingStatus",
    "CAPA",
    "CAPAStatus",
    "Incident",
    "IncidentStatus",
    "Certification",
    "NotificationEvent",
    "NotificationKind",
    # Health
    "EntityHistory",
    "HealthScoreRecord",
    "HealthLabel",
]
