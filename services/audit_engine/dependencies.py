"""
Audit Engine Dependencies
=========================

FastAPI dependencies wiring the engine to its configured collaborators.

Usage:
    @router.post("/recompute")
    async def recompute(job: HealthScoreBatchJob = Depends(get_batch_job)):
        ...

Version: 0.1.0
"""

from datetime import timedelta
from functools import lru_cache

from services.audit_engine.services.capa import CAPAGenerator, CAPAPolicy
from services.audit_engine.services.batch import HealthScoreBatchJob
from services.audit_engine.services.health import HealthPolicy, HealthScoreAggregator
from services.audit_engine.services.stores import (
    HealthScoreStore,
    InMemoryAuditHistory,
    InMemoryEntityRegistry,
    InMemoryHealthScoreStore,
    PostgresHealthScoreStore,
)
from services.audit_engine.services.watermark import (
    BatchWatermark,
    InMemoryBatchWatermark,
    RedisBatchWatermark,
)
from services.audit_engine.services.workflow import AuditService
from shared.config import StoreBackend, WatermarkBackend, settings
from shared.database.postgres import PostgresClient
from shared.database.redis import RedisClient


@lru_cache
def get_audit_service() -> AuditService:
    """Audit workflow service using the configured CAPA policy."""
    policy = CAPAPolicy.from_settings(settings.audit)
    return AuditService(capa_generator=CAPAGenerator(policy=policy))


@lru_cache
def get_entity_registry() -> InMemoryEntityRegistry:
    return InMemoryEntityRegistry()


@lru_cache
def get_history_source() -> InMemoryAuditHistory:
    return InMemoryAuditHistory()


@lru_cache
def get_health_store() -> HealthScoreStore:
    if settings.audit.store_backend == StoreBackend.MEMORY:
        return InMemoryHealthScoreStore()
    return PostgresHealthScoreStore(PostgresClient.get_session_factory())


@lru_cache
def get_watermark() -> BatchWatermark:
    if settings.audit.watermark_backend == WatermarkBackend.REDIS:
        return RedisBatchWatermark(RedisClient.get_client(), settings.audit.watermark_key)
    return InMemoryBatchWatermark()


@lru_cache
def get_batch_job() -> HealthScoreBatchJob:
    """Process-wide batch job; the watermark makes concurrent triggers safe."""
    return HealthScoreBatchJob(
        registry=get_entity_registry(),
        history_source=get_history_source(),
        store=get_health_store(),
        watermark=get_watermark(),
        aggregator=HealthScoreAggregator(policy=HealthPolicy.from_settings(settings.audit)),
        min_interval=timedelta(hours=settings.audit.health_batch_interval_hours),
    )
