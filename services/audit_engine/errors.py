"""
Audit Engine Errors
===================

Every condition here is local, synchronous and recoverable by the caller.
`InvalidTemplate` is the only one that blocks a workflow outright: a template
that fails validation is never activated and never scored.

Version: 0.1.0
"""

from collections.abc import Sequence
from datetime import datetime


class AuditEngineError(Exception):
    """Base class for audit engine errors."""


class InvalidTemplate(AuditEngineError):
    """Template failed activation checks (weights, item types, evidence rules)."""

    def __init__(self, problems: Sequence[str], template_id: str | None = None) -> None:
        self.problems = list(problems)
        self.template_id = template_id
        summary = "; ".join(self.problems) or "invalid template"
        super().__init__(f"Template {template_id or '<unknown>'} rejected: {summary}")


class UnknownItem(AuditEngineError, KeyError):
    """Item id is not part of the template."""

    def __init__(self, item_id: str) -> None:
        self.item_id = item_id
        super().__init__(item_id)

    def __str__(self) -> str:
        return f"Unknown checklist item: {self.item_id}"


class InvalidResponseType(AuditEngineError):
    """Response value does not match the item's response type."""

    def __init__(self, item_id: str, expected: str, detail: str = "") -> None:
        self.item_id = item_id
        self.expected = expected
        self.detail = detail
        message = f"Item {item_id} expects a {expected} response"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class IncompleteSubmission(AuditEngineError):
    """
    Audit cannot be submitted yet.

    `item_id` is the first offending item in checklist order so the caller
    can focus it.
    """

    MISSING_RESPONSE = "missing_response"
    MISSING_EVIDENCE = "missing_evidence"

    def __init__(
        self,
        item_id: str,
        reason: str,
        required: int = 0,
        attached: int = 0,
    ) -> None:
        self.item_id = item_id
        self.reason = reason
        self.required = required
        self.attached = attached
        if reason == self.MISSING_EVIDENCE:
            message = (
                f"Item {item_id} requires {required} evidence attachment(s), "
                f"{attached} attached"
            )
        else:
            message = f"Item {item_id} has no response"
        super().__init__(message)


class StaleBatchRun(AuditEngineError):
    """
    Health-score batch gate refused a run inside the gating interval.

    A no-op signal rather than a failure; the batch job catches it.
    """

    def __init__(self, last_run_at: datetime | None, next_eligible_at: datetime | None) -> None:
        self.last_run_at = last_run_at
        self.next_eligible_at = next_eligible_at
        super().__init__(f"Health-score batch already ran at {last_run_at}")


class CAPAsNotClosed(AuditEngineError):
    """Audit cannot be approved while any of its CAPAs is not closed."""

    def __init__(self, audit_id: str, capa_ids: Sequence[str]) -> None:
        self.audit_id = audit_id
        self.capa_ids = list(capa_ids)
        super().__init__(
            f"Audit {audit_id} has {len(self.capa_ids)} CAPA(s) not closed"
        )


class InvalidTransition(AuditEngineError):
    """Requested workflow action is not allowed from the current status."""

    def __init__(self, subject: str, current: str, action: str) -> None:
        self.subject = subject
        self.current = current
        self.action = action
        super().__init__(f"Cannot {action} {subject} in status '{current}'")
