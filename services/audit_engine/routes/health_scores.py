"""
Health Score Routes
===================

API endpoints for health-score recomputation, retrieval and labelling.

Version: 0.1.0
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from services.audit_engine.dependencies import (
    get_batch_job,
    get_entity_registry,
    get_health_store,
    get_history_source,
)
from services.audit_engine.models.api import RecomputeRequest, RecomputeResponse
from services.audit_engine.models.audit import EntityRef
from services.audit_engine.models.health import HealthLabel, HealthScoreRecord
from services.audit_engine.models.template import EntityType
from services.audit_engine.services.batch import HealthScoreBatchJob
from services.audit_engine.services.health import classify_health_score
from services.audit_engine.services.stores import (
    HealthScoreStore,
    InMemoryAuditHistory,
    InMemoryEntityRegistry,
)
from shared.logging import get_logger


logger = get_logger(__name__)

router = APIRouter()


@router.post("/recompute", response_model=RecomputeResponse)
async def recompute(
    request: RecomputeRequest,
    job: HealthScoreBatchJob = Depends(get_batch_job),
    registry: InMemoryEntityRegistry = Depends(get_entity_registry),
    history: InMemoryAuditHistory = Depends(get_history_source),
) -> RecomputeResponse:
    """
    Trigger the fleet-wide batch.

    Inside the gating interval this is a no-op returning the previous
    result; `executed=false` only when this process has no result yet.
    """
    for entity_history in request.histories:
        registry.add(entity_history.entity)
        history.put(entity_history)

    result = await job.run(as_of=request.as_of)

    return RecomputeResponse(
        executed=result.executed,
        run_at=result.run_at,
        last_run_at=result.last_run_at,
        next_eligible_at=result.next_eligible_at,
        records=result.records,
        events=result.events,
    )


@router.get("/label", response_model=HealthLabel)
async def label(
    score: float = Query(..., ge=0, le=100),
    entity_type: EntityType | None = None,
    has_data: bool = True,
) -> HealthLabel:
    """Display band for a score."""
    return classify_health_score(score, entity_type, has_data)


@router.get("/{entity_type}/{entity_id}", response_model=HealthScoreRecord)
async def get_health_score(
    entity_type: EntityType,
    entity_id: str,
    store: HealthScoreStore = Depends(get_health_store),
) -> HealthScoreRecord:
    """Current health score of an entity."""
    record = await store.get(EntityRef(type=entity_type, id=entity_id))
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No health score for {entity_type.value}:{entity_id}",
        )
    return record
