"""
API Schemas
===========

Request and response bodies for the audit engine HTTP surface. Inputs are
passed by value: the caller supplies the template, item states and records
it already holds.

Version: 0.1.0
"""

from typing import Any

from pydantic import BaseModel, Field

from services.audit_engine.models.audit import (
    CAPA,
    Audit,
    Finding,
    NotificationEvent,
    UTCDateTime,
)
from services.audit_engine.models.health import EntityHistory, HealthScoreRecord
from services.audit_engine.models.response import ItemState
from services.audit_engine.models.template import Template
from services.audit_engine.services.scoring import ScoreResult


class TemplateValidationResponse(BaseModel):
    valid: bool = True
    template: Template


class ScoreRequest(BaseModel):
    """Template payload plus item states keyed by item id."""

    template: dict[str, Any]
    responses: dict[str, ItemState] = Field(default_factory=dict)


class SectionScoreOut(BaseModel):
    section_id: str
    name: str
    weight: float
    score: float | None
    scored_items: int


class ScoreResponse(BaseModel):
    overall_score: float
    pass_fail: str
    pass_threshold: float
    critical_fail: bool
    critical_items: list[str] = Field(default_factory=list)
    section_scores: list[SectionScoreOut] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: ScoreResult) -> "ScoreResponse":
        return cls(
            overall_score=result.overall_score,
            pass_fail=result.pass_fail,
            pass_threshold=result.pass_threshold,
            critical_fail=result.critical_fail,
            critical_items=result.critical_items,
            section_scores=[
                SectionScoreOut(
                    section_id=s.section_id,
                    name=s.name,
                    weight=s.weight,
                    score=s.score,
                    scored_items=s.scored_items,
                )
                for s in result.section_scores
            ],
        )


class SubmitRequest(ScoreRequest):
    audit: Audit
    submitted_at: UTCDateTime | None = None


class SubmitResponse(BaseModel):
    audit: Audit
    score: ScoreResponse
    findings: list[Finding] = Field(default_factory=list)
    capas: list[CAPA] = Field(default_factory=list)
    events: list[NotificationEvent] = Field(default_factory=list)


class ApproveRequest(BaseModel):
    audit: Audit
    capas: list[CAPA] = Field(default_factory=list)
    findings: list[Finding] = Field(default_factory=list)
    approved_at: UTCDateTime | None = None
    recipient_id: str | None = None


class ApproveResponse(BaseModel):
    audit: Audit
    findings: list[Finding] = Field(default_factory=list)
    events: list[NotificationEvent] = Field(default_factory=list)


class RecomputeRequest(BaseModel):
    """Entity histories to load before the batch runs."""

    histories: list[EntityHistory] = Field(default_factory=list)
    as_of: UTCDateTime | None = None


class RecomputeResponse(BaseModel):
    executed: bool
    run_at: UTCDateTime | None = None
    last_run_at: UTCDateTime | None = None
    next_eligible_at: UTCDateTime | None = None
    records: list[HealthScoreRecord] = Field(default_factory=list)
    events: list[NotificationEvent] = Field(default_factory=list)
