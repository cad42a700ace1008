"""
Audit Records
=============

Audit instances, findings, CAPAs and the notification events the engine
reports. Records are immutable values; workflow operations return updated
copies for the storage collaborator to persist.

Version: 0.1.0
"""

from datetime import UTC, date, datetime
from enum import Enum
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from services.audit_engine.models.template import EntityType


def as_utc(value: datetime) -> datetime:
    """Naive timestamps are taken to be UTC; aware ones are converted."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


UTCDateTime = Annotated[datetime, AfterValidator(as_utc)]


class EntityRef(BaseModel):
    """Reference to an audited entity."""

    model_config = ConfigDict(frozen=True)

    type: EntityType
    id: str

    def __str__(self) -> str:
        return f"{self.type.value}:{self.id}"


class AuditStatus(str, Enum):
    """Audit lifecycle."""

    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    PENDING_VERIFICATION = "pending_verification"
    APPROVED = "approved"
    REJECTED = "rejected"
    OVERDUE = "overdue"  # Scheduled date passed without a start
    CANCELLED = "cancelled"


READ_ONLY_STATUSES = frozenset(
    {
        AuditStatus.SUBMITTED,
        AuditStatus.PENDING_VERIFICATION,
        AuditStatus.APPROVED,
        AuditStatus.REJECTED,
        AuditStatus.CANCELLED,
        AuditStatus.OVERDUE,
    }
)


class Audit(BaseModel):
    """One scheduled execution of a template against an entity."""

    model_config = ConfigDict(frozen=True)

    id: str
    code: str = ""
    entity: EntityRef
    template_id: str
    auditor_id: str | None = None
    scheduled_date: date | None = None
    status: AuditStatus = AuditStatus.SCHEDULED

    # Scoring output, set on submission
    score: float | None = Field(default=None, ge=0, le=100)
    pass_fail: str | None = None  # "pass" | "fail"
    critical_fail: bool = False

    started_at: UTCDateTime | None = None
    completed_at: UTCDateTime | None = None
    updated_at: UTCDateTime | None = None

    @property
    def is_read_only(self) -> bool:
        return self.status in READ_ONLY_STATUSES

    @property
    def finished_at(self) -> datetime | None:
        return self.completed_at or self.updated_at


class FindingSeverity(str, Enum):
    """Finding severity, mirrored as CAPA priority."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class FindingStatus(str, Enum):
    OPEN = "open"
    RESOLVED = "resolved"


class Finding(BaseModel):
    """A recorded non-conformance. Only `status` changes after creation."""

    model_config = ConfigDict(frozen=True)

    id: str
    code: str
    audit_id: str
    item_id: str
    section_id: str
    section_name: str
    severity: FindingSeverity
    description: str
    evidence: tuple[str, ...] = ()
    status: FindingStatus = FindingStatus.OPEN
    created_at: UTCDateTime | None = None


class CAPAStatus(str, Enum):
    """CAPA lifecycle."""

    OPEN = "open"
    IN_PROGRESS = "in_progress"
    PENDING_VERIFICATION = "pending_verification"
    CLOSED = "closed"
    REJECTED = "rejected"


class CAPA(BaseModel):
    """Corrective and preventive action raised from a finding."""

    model_config = ConfigDict(frozen=True)

    id: str
    code: str
    finding_id: str
    audit_id: str
    entity: EntityRef
    priority: FindingSeverity
    description: str
    assigned_to: str | None = None
    due_date: date
    status: CAPAStatus = CAPAStatus.OPEN
    evidence: tuple[str, ...] = ()
    notes: str | None = None
    closed_at: UTCDateTime | None = None
    rejection_count: int = Field(default=0, ge=0)
    created_at: UTCDateTime | None = None

    @property
    def is_closed(self) -> bool:
        return self.status == CAPAStatus.CLOSED

    @property
    def closed_on_time(self) -> bool:
        """Closed no later than the end of its due date (unknown close time counts as on time)."""
        if not self.is_closed:
            return False
        if self.closed_at is None:
            return True
        return self.closed_at.date() <= self.due_date


class NotificationKind(str, Enum):
    """Transitions reported to the notification dispatcher."""

    AUDIT_APPROVED = "audit_approved"
    CAPA_REJECTED = "capa_rejected"
    CRITICAL_FAIL_DETECTED = "critical_fail_detected"
    SUPPLIER_SUSPENDED = "supplier_suspended"


class NotificationEvent(BaseModel):
    """Something worth notifying on. Formatting and delivery happen elsewhere."""

    model_config = ConfigDict(frozen=True)

    kind: NotificationKind
    entity: EntityRef
    audit_id: str | None = None
    capa_id: str | None = None
    recipient_id: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class IncidentStatus(str, Enum):
    OPEN = "open"
    UNDER_INVESTIGATION = "under_investigation"
    RESOLVED = "resolved"
    CLOSED = "closed"


class Incident(BaseModel):
    """Operational incident, a health-score input."""

    model_config = ConfigDict(frozen=True)

    id: str
    entity: EntityRef
    severity: FindingSeverity = FindingSeverity.MEDIUM
    status: IncidentStatus = IncidentStatus.OPEN
    created_at: UTCDateTime

    @property
    def is_unresolved(self) -> bool:
        return self.status not in (IncidentStatus.RESOLVED, IncidentStatus.CLOSED)


class Certification(BaseModel):
    """Supplier certification (HACCP, ISO 22000, Halal, ...)."""

    model_config = ConfigDict(frozen=True)

    name: str
    expires_on: date | None = None
