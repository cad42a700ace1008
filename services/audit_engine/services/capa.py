"""
CAPA Generator
==============

One corrective and preventive action per finding, due a configurable
number of days after submission depending on severity.

Version: 0.1.0
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from services.audit_engine.models.audit import CAPA, EntityRef, Finding, FindingSeverity
from services.audit_engine.services.findings import CodeFactory, IdFactory, new_code, new_id
from shared.config import AuditEngineSettings
from shared.logging import get_logger


logger = get_logger(__name__)

# Picks an assignee for a new CAPA, or None to leave it unassigned
CAPARouter = Callable[[Finding, EntityRef], str | None]


@dataclass
class CAPAPolicy:
    """Days allowed to close a CAPA, by priority."""

    due_days: dict[FindingSeverity, int] = field(
        default_factory=lambda: {
            FindingSeverity.CRITICAL: 3,
            FindingSeverity.HIGH: 7,
            FindingSeverity.MEDIUM: 14,
            FindingSeverity.LOW: 30,
        }
    )

    @classmethod
    def from_settings(cls, settings: AuditEngineSettings) -> "CAPAPolicy":
        return cls(
            due_days={
                FindingSeverity.CRITICAL: settings.capa_due_days_critical,
                FindingSeverity.HIGH: settings.capa_due_days_high,
                FindingSeverity.MEDIUM: settings.capa_due_days_medium,
                FindingSeverity.LOW: settings.capa_due_days_low,
            }
        )

    def due_date(self, severity: FindingSeverity, submitted_on: date) -> date:
        return submitted_on + timedelta(days=self.due_days[severity])


class CAPAGenerator:
    """Creates open CAPAs for new findings."""

    def __init__(
        self,
        policy: CAPAPolicy | None = None,
        router: CAPARouter | None = None,
        id_factory: IdFactory | None = None,
        code_factory: CodeFactory | None = None,
    ) -> None:
        self.policy = policy or CAPAPolicy()
        self.router = router
        self.id_factory = id_factory or new_id
        self.code_factory = code_factory or new_code

    def generate(
        self,
        findings: list[Finding],
        entity: EntityRef,
        submitted_at: datetime,
    ) -> list[CAPA]:
        capas = []

        for finding in findings:
            assignee = self.router(finding, entity) if self.router else None
            capas.append(
                CAPA(
                    id=self.id_factory(),
                    code=self.code_factory("CPA", submitted_at.year),
                    finding_id=finding.id,
                    audit_id=finding.audit_id,
                    entity=entity,
                    priority=finding.severity,
                    description=finding.description,
                    assigned_to=assignee,
                    due_date=self.policy.due_date(finding.severity, submitted_at.date()),
                    created_at=submitted_at,
                )
            )

        logger.info(
            "capas_generated",
            entity=str(entity),
            count=len(capas),
            unassigned=sum(1 for c in capas if c.assigned_to is None),
        )

        return capas
