"""
Audit Engine Services
=====================

Business logic for audit execution and entity health scoring.

Services:
- validate_template / activate_template: Template checks
- ResponseSession: In-progress answers and evidence
- score_audit / check_submission: Scoring and submission gate
- FindingGenerator / CAPAGenerator: Records derived on submission
- AuditService / CAPAService: Workflows
- HealthScoreAggregator / HealthScoreBatchJob: Health scores

Version: 0.1.0
"""

from services.audit_engine.services.batch import BatchRunResult, HealthScoreBatchJob
from services.audit_engine.services.capa import CAPAGenerator, CAPAPolicy
from services.audit_engine.services.findings import FindingGenerator
from services.audit_engine.services.health import (
    HealthPolicy,
    HealthScoreAggregator,
    HealthWeights,
    classify_health_score,
)
from services.audit_engine.services.scoring import (
    ScoreResult,
    SectionScore,
    check_submission,
    score_audit,
)
from services.audit_engine.services.session import CompletionStats, ResponseSession
from services.audit_engine.services.stores import (
    InMemoryAuditHistory,
    InMemoryEntityRegistry,
    InMemoryHealthScoreStore,
    PostgresHealthScoreStore,
)
from services.audit_engine.services.template import activate_template, validate_template
from services.audit_engine.services.watermark import (
    InMemoryBatchWatermark,
    RedisBatchWatermark,
)
from services.audit_engine.services.workflow import (
    AuditService,
    AuditWorkflow,
    CAPAService,
    CAPAWorkflow,
)


__all__ = [
    # Template
    "validate_template",
    "activate_template",
    # Session
    "ResponseSession",
    "CompletionStats",
    # Scoring
    "score_audit",
    "check_submission",
    "ScoreResult",
    "SectionScore",
    # Findings & CAPA
    "FindingGenerator",
    "CAPAGenerator",
    "CAPAPolicy",
    # Workflow
    "AuditService",
    "AuditWorkflow",
    "CAPAService",
    "CAPAWorkflow",
    # Health
    "HealthScoreAggregator",
    "HealthPolicy",
    "HealthWeights",
    "classify_health_score",
    "HealthScoreBatchJob",
    "BatchRunResult",
    # Storage
    "InMemoryEntityRegistry",
    "InMemoryAuditHistory",
    "InMemoryHealthScoreStore",
    "PostgresHealthScoreStore",
    "InMemoryBatchWatermark",
    "RedisBatchWatermark",
]
