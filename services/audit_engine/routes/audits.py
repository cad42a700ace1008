"""
Audit Routes
============

API endpoints for scoring, submitting and approving audits.

Version: 0.1.0
"""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends

from services.audit_engine.dependencies import get_audit_service
from services.audit_engine.models.api import (
    ApproveRequest,
    ApproveResponse,
    ScoreRequest,
    ScoreResponse,
    SubmitRequest,
    SubmitResponse,
)
from services.audit_engine.models.response import ItemState
from services.audit_engine.models.template import Template
from services.audit_engine.services.scoring import score_audit
from services.audit_engine.services.session import ResponseSession, Snapshot
from services.audit_engine.services.template import validate_template
from services.audit_engine.services.workflow import AuditService
from shared.logging import get_logger


logger = get_logger(__name__)

router = APIRouter()


def _snapshot(template: Template, responses: dict[str, ItemState]) -> Snapshot:
    """
    Check client-supplied item states against the template.

    Raises UnknownItem for ids the template does not declare and
    InvalidResponseType when a response does not fit its item.
    """
    return ResponseSession.from_draft(template, {"items": responses}).snapshot()


@router.post("/score", response_model=ScoreResponse)
async def score(request: ScoreRequest) -> ScoreResponse:
    """
    Score item states against a template without submitting.

    Used for the live score bar while an audit is in progress.
    """
    template = validate_template(request.template)
    result = score_audit(template, _snapshot(template, request.responses))
    return ScoreResponse.from_result(result)


@router.post("/submit", response_model=SubmitResponse)
async def submit(
    request: SubmitRequest,
    service: AuditService = Depends(get_audit_service),
) -> SubmitResponse:
    """
    Submit an in-progress audit.

    Runs the completeness gate, scores, and derives findings and CAPAs.
    The caller persists everything returned.
    """
    template = validate_template(request.template)
    submitted_at = request.submitted_at or datetime.now(UTC)

    snapshot = _snapshot(template, request.responses)
    result = service.submit(request.audit, template, snapshot, submitted_at)

    return SubmitResponse(
        audit=result.audit,
        score=ScoreResponse.from_result(result.score),
        findings=result.findings,
        capas=result.capas,
        events=result.events,
    )


@router.post("/approve", response_model=ApproveResponse)
async def approve(
    request: ApproveRequest,
    service: AuditService = Depends(get_audit_service),
) -> ApproveResponse:
    """
    Finalize an audit.

    Returns 409 while any of its CAPAs is not closed.
    """
    approved_at = request.approved_at or datetime.now(UTC)
    result = service.approve(
        request.audit,
        request.capas,
        request.findings,
        approved_at,
        recipient_id=request.recipient_id,
    )

    logger.info("audit_approved", audit_id=request.audit.id)

    return ApproveResponse(audit=result.audit, findings=result.findings, events=result.events)
