"""
Audit & CAPA Workflow Service
=============================

Lifecycle of audits and their CAPAs.

Audit workflow:
1. Scheduled -> In Progress (start), Overdue (date passed), Cancelled
2. In Progress -> Submitted (gate, score, findings, CAPAs)
3. Submitted -> Pending Verification (no CAPA left open or in progress)
4. Pending Verification -> Approved (all CAPAs closed) / Rejected

CAPA workflow:
1. Open -> In Progress -> Pending Verification
2. Pending Verification -> Closed / Rejected
3. Rejected -> In Progress (rework)

Records are immutable; every operation returns the updated copies plus any
notification events. Persisting them is the caller's job.

Version: 0.1.0
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any

from services.audit_engine.errors import CAPAsNotClosed, InvalidTransition
from services.audit_engine.models.audit import (
    CAPA,
    Audit,
    AuditStatus,
    CAPAStatus,
    Finding,
    FindingSeverity,
    FindingStatus,
    NotificationEvent,
    NotificationKind,
    as_utc,
)
from services.audit_engine.models.response import ItemState
from services.audit_engine.models.template import Template
from services.audit_engine.services.capa import CAPAGenerator
from services.audit_engine.services.findings import FindingGenerator
from services.audit_engine.services.scoring import ScoreResult, check_submission, score_audit
from shared.logging import get_logger, log_context


logger = get_logger(__name__)

AUTO_APPROVE_PRIORITIES = frozenset({FindingSeverity.LOW, FindingSeverity.MEDIUM})
OPEN_CAPA_STATUSES = frozenset({CAPAStatus.OPEN, CAPAStatus.IN_PROGRESS})


class AuditAction(str, Enum):
    """Audit workflow actions."""

    START = "start"
    SUBMIT = "submit"
    REQUEST_VERIFICATION = "request_verification"
    APPROVE = "approve"
    REJECT = "reject"
    CANCEL = "cancel"
    MARK_OVERDUE = "mark_overdue"


class CAPAAction(str, Enum):
    """CAPA workflow actions."""

    START = "start"
    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"


@dataclass
class AuditWorkflow:
    """Audit workflow state machine."""

    transitions: dict[AuditStatus, dict[AuditAction, AuditStatus]] = field(
        default_factory=lambda: {
            AuditStatus.SCHEDULED: {
                AuditAction.START: AuditStatus.IN_PROGRESS,
                AuditAction.CANCEL: AuditStatus.CANCELLED,
                AuditAction.MARK_OVERDUE: AuditStatus.OVERDUE,
            },
            AuditStatus.OVERDUE: {
                AuditAction.START: AuditStatus.IN_PROGRESS,
                AuditAction.CANCEL: AuditStatus.CANCELLED,
            },
            AuditStatus.IN_PROGRESS: {
                AuditAction.SUBMIT: AuditStatus.SUBMITTED,
                AuditAction.CANCEL: AuditStatus.CANCELLED,
            },
            AuditStatus.SUBMITTED: {
                AuditAction.REQUEST_VERIFICATION: AuditStatus.PENDING_VERIFICATION,
                AuditAction.APPROVE: AuditStatus.APPROVED,
                AuditAction.REJECT: AuditStatus.REJECTED,
            },
            AuditStatus.PENDING_VERIFICATION: {
                AuditAction.APPROVE: AuditStatus.APPROVED,
                AuditAction.REJECT: AuditStatus.REJECTED,
            },
        }
    )

    def can_transition(self, current: AuditStatus, action: AuditAction) -> bool:
        """Check if transition is valid."""
        return action in self.transitions.get(current, {})

    def get_next_status(self, current: AuditStatus, action: AuditAction) -> AuditStatus:
        """Next status after an action. Raises InvalidTransition when not allowed."""
        if not self.can_transition(current, action):
            raise InvalidTransition("audit", current.value, action.value)
        return self.transitions[current][action]


@dataclass
class CAPAWorkflow:
    """CAPA workflow state machine."""

    transitions: dict[CAPAStatus, dict[CAPAAction, CAPAStatus]] = field(
        default_factory=lambda: {
            CAPAStatus.OPEN: {
                CAPAAction.START: CAPAStatus.IN_PROGRESS,
            },
            CAPAStatus.IN_PROGRESS: {
                CAPAAction.SUBMIT: CAPAStatus.PENDING_VERIFICATION,
            },
            CAPAStatus.PENDING_VERIFICATION: {
                CAPAAction.APPROVE: CAPAStatus.CLOSED,
                CAPAAction.REJECT: CAPAStatus.REJECTED,
            },
            CAPAStatus.REJECTED: {
                CAPAAction.START: CAPAStatus.IN_PROGRESS,
            },
        }
    )

    def can_transition(self, current: CAPAStatus, action: CAPAAction) -> bool:
        return action in self.transitions.get(current, {})

    def get_next_status(self, current: CAPAStatus, action: CAPAAction) -> CAPAStatus:
        if not self.can_transition(current, action):
            raise InvalidTransition("CAPA", current.value, action.value)
        return self.transitions[current][action]


# =============================================================================
# Results
# =============================================================================


@dataclass
class SubmissionResult:
    """Outcome of a successful submission."""

    audit: Audit
    score: ScoreResult
    findings: list[Finding] = field(default_factory=list)
    capas: list[CAPA] = field(default_factory=list)
    events: list[NotificationEvent] = field(default_factory=list)


@dataclass
class ApprovalResult:
    """Outcome of a final audit approval."""

    audit: Audit
    findings: list[Finding] = field(default_factory=list)
    events: list[NotificationEvent] = field(default_factory=list)


@dataclass
class CAPARejection:
    capa: CAPA
    event: NotificationEvent


def _utc_values(changes: dict[str, Any]) -> dict[str, Any]:
    """model_copy skips validation, so timestamps are normalized here."""
    return {k: as_utc(v) if isinstance(v, datetime) else v for k, v in changes.items()}


# =============================================================================
# Audit Service
# =============================================================================


class AuditService:
    """
    Drives audits through their lifecycle.

    Handles:
    - Start, cancel and overdue marking
    - Submission (gate, scoring, findings, CAPAs)
    - Verification readiness and final approval or rejection
    """

    def __init__(
        self,
        finding_generator: FindingGenerator | None = None,
        capa_generator: CAPAGenerator | None = None,
        workflow: AuditWorkflow | None = None,
    ) -> None:
        self.findings = finding_generator or FindingGenerator()
        self.capas = capa_generator or CAPAGenerator()
        self.workflow = workflow or AuditWorkflow()

    def _move(self, audit: Audit, action: AuditAction, now: datetime, **changes) -> Audit:
        status = self.workflow.get_next_status(audit.status, action)
        update = _utc_values({"status": status, "updated_at": now, **changes})
        updated = audit.model_copy(update=update)

        logger.info(
            "audit_transitioned",
            audit_id=audit.id,
            action=action.value,
            from_status=audit.status.value,
            to_status=status.value,
        )

        return updated

    def start(self, audit: Audit, now: datetime) -> Audit:
        return self._move(audit, AuditAction.START, now, started_at=now)

    def cancel(self, audit: Audit, now: datetime) -> Audit:
        return self._move(audit, AuditAction.CANCEL, now)

    def mark_overdue(self, audit: Audit, today: date, now: datetime) -> Audit:
        """Flag a scheduled audit whose date has passed; otherwise return it unchanged."""
        if audit.status != AuditStatus.SCHEDULED:
            raise InvalidTransition("audit", audit.status.value, AuditAction.MARK_OVERDUE.value)
        if audit.scheduled_date is None or audit.scheduled_date >= today:
            return audit
        return self._move(audit, AuditAction.MARK_OVERDUE, now)

    def submit(
        self,
        audit: Audit,
        template: Template,
        snapshot: Mapping[str, ItemState],
        now: datetime,
    ) -> SubmissionResult:
        """
        Submit a completed audit.

        Args:
            audit: Audit in progress
            template: Its template
            snapshot: Item states from the response session
            now: Submission time

        Returns:
            SubmissionResult with the updated audit, findings, CAPAs and events

        Raises:
            InvalidTransition: If the audit is not in progress
            IncompleteSubmission: If the gate rejects the snapshot
        """
        self.workflow.get_next_status(audit.status, AuditAction.SUBMIT)
        with log_context(audit_id=audit.id):
            check_submission(template, snapshot)
            score = score_audit(template, snapshot)
            findings = self.findings.generate(audit.id, template, snapshot, now)
            capas = self.capas.generate(findings, audit.entity, now)

        updated = self._move(
            audit,
            AuditAction.SUBMIT,
            now,
            score=score.overall_score,
            pass_fail=score.pass_fail,
            critical_fail=score.critical_fail,
            completed_at=now,
        )

        events = []
        if score.critical_fail:
            events.append(
                NotificationEvent(
                    kind=NotificationKind.CRITICAL_FAIL_DETECTED,
                    entity=audit.entity,
                    audit_id=audit.id,
                    details={"critical_items": list(score.critical_items)},
                )
            )

        logger.info(
            "audit_submitted",
            audit_id=audit.id,
            score=score.overall_score,
            pass_fail=score.pass_fail,
            findings=len(findings),
            capas=len(capas),
        )

        return SubmissionResult(
            audit=updated,
            score=score,
            findings=findings,
            capas=capas,
            events=events,
        )

    def refresh_verification(self, audit: Audit, capas: Iterable[CAPA], now: datetime) -> Audit:
        """Move a submitted audit to verification once none of its CAPAs is still being worked."""
        if audit.status != AuditStatus.SUBMITTED:
            return audit
        if any(c.status in OPEN_CAPA_STATUSES for c in capas if c.audit_id == audit.id):
            return audit
        return self._move(audit, AuditAction.REQUEST_VERIFICATION, now)

    def approve(
        self,
        audit: Audit,
        capas: Iterable[CAPA],
        findings: Iterable[Finding],
        now: datetime,
        recipient_id: str | None = None,
    ) -> ApprovalResult:
        """
        Final approval. Resolves the audit's findings.

        Raises:
            CAPAsNotClosed: If any CAPA of the audit is not closed
            InvalidTransition: If the audit is not awaiting verification
        """
        self.workflow.get_next_status(audit.status, AuditAction.APPROVE)

        blockers = [c.id for c in capas if c.audit_id == audit.id and not c.is_closed]
        if blockers:
            logger.warning("audit_approval_blocked", audit_id=audit.id, open_capas=len(blockers))
            raise CAPAsNotClosed(audit.id, blockers)

        updated = self._move(audit, AuditAction.APPROVE, now)
        resolved = [
            f.model_copy(update={"status": FindingStatus.RESOLVED})
            for f in findings
            if f.audit_id == audit.id
        ]

        event = NotificationEvent(
            kind=NotificationKind.AUDIT_APPROVED,
            entity=audit.entity,
            audit_id=audit.id,
            recipient_id=recipient_id,
            details={"code": audit.code, "score": audit.score},
        )

        return ApprovalResult(audit=updated, findings=resolved, events=[event])

    def reject(self, audit: Audit, reason: str, now: datetime) -> Audit:
        updated = self._move(audit, AuditAction.REJECT, now)
        logger.info("audit_rejected", audit_id=audit.id, reason=reason)
        return updated


# =============================================================================
# CAPA Service
# =============================================================================


class CAPAService:
    """Moves CAPAs through rework and verification."""

    def __init__(self, workflow: CAPAWorkflow | None = None) -> None:
        self.workflow = workflow or CAPAWorkflow()

    def _move(self, capa: CAPA, action: CAPAAction, **changes) -> CAPA:
        status = self.workflow.get_next_status(capa.status, action)
        return capa.model_copy(update=_utc_values({"status": status, **changes}))

    def start(self, capa: CAPA) -> CAPA:
        return self._move(capa, CAPAAction.START)

    def submit(self, capa: CAPA, evidence: Iterable[str] = (), notes: str | None = None) -> CAPA:
        """Submit corrective work for verification."""
        changes = {"evidence": (*capa.evidence, *evidence)}
        if notes is not None:
            changes["notes"] = notes
        return self._move(capa, CAPAAction.SUBMIT, **changes)

    def approve(
        self,
        capa: CAPA,
        finding: Finding | None,
        now: datetime,
    ) -> tuple[CAPA, Finding | None]:
        """Close a CAPA and resolve the finding it was raised for."""
        closed = self._move(capa, CAPAAction.APPROVE, closed_at=now)
        if finding is not None and finding.id == capa.finding_id:
            finding = finding.model_copy(update={"status": FindingStatus.RESOLVED})

        logger.info("capa_approved", capa_id=capa.id, on_time=closed.closed_on_time)
        return closed, finding

    def reject(self, capa: CAPA, reason: str) -> CAPARejection:
        rejected = self._move(capa, CAPAAction.REJECT, rejection_count=capa.rejection_count + 1)
        event = NotificationEvent(
            kind=NotificationKind.CAPA_REJECTED,
            entity=capa.entity,
            audit_id=capa.audit_id,
            capa_id=capa.id,
            recipient_id=capa.assigned_to,
            details={"code": capa.code, "reason": reason},
        )

        logger.info("capa_rejected", capa_id=capa.id, rejections=rejected.rejection_count)
        return CAPARejection(capa=rejected, event=event)

    def auto_approve(self, capas: Iterable[CAPA], now: datetime) -> list[CAPA]:
        """
        Close low and medium priority CAPAs awaiting verification that carry evidence.

        Returns only the CAPAs that changed.
        """
        approved = []
        for capa in capas:
            if capa.status != CAPAStatus.PENDING_VERIFICATION:
                continue
            if capa.priority not in AUTO_APPROVE_PRIORITIES or not capa.evidence:
                continue
            approved.append(self._move(capa, CAPAAction.APPROVE, closed_at=now))

        if approved:
            logger.info("capas_auto_approved", count=len(approved))
        return approved
