"""
Health Score Batch Tests
========================

Tests for the gated fleet-wide recompute.

Version: 0.1.0
"""

import asyncio
from datetime import datetime, timedelta

import pytest

from services.audit_engine.models.audit import Audit, AuditStatus, EntityRef
from services.audit_engine.models.health import EntityHistory
from services.audit_engine.models.template import EntityType
from services.audit_engine.services.batch import BatchRunResult, HealthScoreBatchJob
from services.audit_engine.services.stores import (
    InMemoryAuditHistory,
    InMemoryEntityRegistry,
    InMemoryHealthScoreStore,
)
from services.audit_engine.services.watermark import InMemoryBatchWatermark


SUPPLIER = EntityRef(type="supplier", id="sup-1")
BCK = EntityRef(type="bck", id="bck-1")
BRANCH = EntityRef(type="branch", id="br-001")


def _approved(entity: EntityRef, score: float, finished: datetime) -> Audit:
    return Audit(
        id=f"audit-{entity.id}",
        entity=entity,
        template_id="tpl",
        status=AuditStatus.APPROVED,
        score=score,
        completed_at=finished,
    )


class YieldingHistory(InMemoryAuditHistory):
    """History source that gives up the event loop on every load."""

    async def load_history(self, entity: EntityRef, as_of: datetime) -> EntityHistory:
        await asyncio.sleep(0)
        return await super().load_history(entity, as_of)


class BlockingHistory(InMemoryAuditHistory):
    """History source that parks on the first entity of a given type."""

    def __init__(self, histories, block_on: EntityType) -> None:
        super().__init__(histories)
        self.block_on = block_on
        self.reached = asyncio.Event()
        self.release = asyncio.Event()

    async def load_history(self, entity: EntityRef, as_of: datetime) -> EntityHistory:
        if entity.type == self.block_on:
            self.reached.set()
            await self.release.wait()
        return await super().load_history(entity, as_of)


class FailingHistory(InMemoryAuditHistory):
    async def load_history(self, entity: EntityRef, as_of: datetime) -> EntityHistory:
        if entity.type == EntityType.BRANCH:
            raise RuntimeError("history backend unavailable")
        return await super().load_history(entity, as_of)


@pytest.fixture
def histories(now: datetime) -> list[EntityHistory]:
    day = timedelta(days=1)
    return [
        EntityHistory(entity=SUPPLIER, audits=(_approved(SUPPLIER, 80, now - day),)),
        EntityHistory(entity=BCK, audits=(_approved(BCK, 90, now - day),), supplier_ids=("sup-1",)),
        EntityHistory(entity=BRANCH, audits=(_approved(BRANCH, 75, now - day),)),
    ]


@pytest.fixture
def registry() -> InMemoryEntityRegistry:
    # Registration order differs from run order on purpose
    return InMemoryEntityRegistry([BRANCH, BCK, SUPPLIER])


@pytest.fixture
def store() -> InMemoryHealthScoreStore:
    return InMemoryHealthScoreStore()


@pytest.fixture
def watermark() -> InMemoryBatchWatermark:
    return InMemoryBatchWatermark()


@pytest.fixture
def job(
    registry: InMemoryEntityRegistry,
    histories: list[EntityHistory],
    store: InMemoryHealthScoreStore,
    watermark: InMemoryBatchWatermark,
) -> HealthScoreBatchJob:
    return HealthScoreBatchJob(registry, YieldingHistory(histories), store, watermark)


# =============================================================================
# Recompute
# =============================================================================


class TestRecompute:
    """Tests for a single executed run."""

    @pytest.mark.asyncio
    async def test_entity_order(self, job: HealthScoreBatchJob, now: datetime) -> None:
        result = await job.run(as_of=now)

        assert result.executed is True
        assert [r.entity for r in result.records] == [SUPPLIER, BCK, BRANCH]
        assert result.run_at == now
        assert result.next_eligible_at == now + timedelta(hours=6)

    @pytest.mark.asyncio
    async def test_bck_reads_fresh_supplier_scores(self, job: HealthScoreBatchJob, now: datetime) -> None:
        """Supplier: 0.40 x 80 + 0.30 x 100 + 0.20 x 50 + 0.10 x 100 = 82."""
        result = await job.run(as_of=now)
        supplier, bck, _ = result.records

        assert supplier.score == 82.0
        assert bck.components["supplier_quality"] == 82.0

    @pytest.mark.asyncio
    async def test_one_write_per_entity(
        self,
        job: HealthScoreBatchJob,
        store: InMemoryHealthScoreStore,
        now: datetime,
    ) -> None:
        await job.run(as_of=now)

        assert store.writes == 3
        assert (await store.get(BRANCH)).calculated_at == now

    @pytest.mark.asyncio
    async def test_entity_without_history(
        self,
        registry: InMemoryEntityRegistry,
        job: HealthScoreBatchJob,
        store: InMemoryHealthScoreStore,
        now: datetime,
    ) -> None:
        newcomer = EntityRef(type="branch", id="br-new")
        registry.add(newcomer)

        await job.run(as_of=now)
        record = await store.get(newcomer)

        assert record.has_data is False
        assert record.components["audit_performance"] == 0.0
        assert record.score == 60.0

    @pytest.mark.asyncio
    async def test_naive_audit_timestamps(
        self,
        registry: InMemoryEntityRegistry,
        store: InMemoryHealthScoreStore,
        now: datetime,
    ) -> None:
        history = InMemoryAuditHistory(
            [EntityHistory(entity=BRANCH, audits=(_approved(BRANCH, 75, datetime(2025, 6, 1)),))]
        )
        job = HealthScoreBatchJob(registry, history, store, InMemoryBatchWatermark())

        result = await job.run(as_of=now)

        assert result.executed is True
        assert (await store.get(BRANCH)).components["audit_performance"] == 75.0

    @pytest.mark.asyncio
    async def test_recompute_is_idempotent(
        self,
        registry: InMemoryEntityRegistry,
        histories: list[EntityHistory],
        now: datetime,
    ) -> None:
        first = HealthScoreBatchJob(registry, InMemoryAuditHistory(histories), InMemoryHealthScoreStore(), InMemoryBatchWatermark())
        second = HealthScoreBatchJob(registry, InMemoryAuditHistory(histories), InMemoryHealthScoreStore(), InMemoryBatchWatermark())

        assert (await first.run(as_of=now)).records == (await second.run(as_of=now)).records


# =============================================================================
# Gating
# =============================================================================


class TestGating:
    """Tests for the once-per-interval gate."""

    @pytest.mark.asyncio
    async def test_second_call_returns_previous_result(
        self,
        job: HealthScoreBatchJob,
        store: InMemoryHealthScoreStore,
        now: datetime,
    ) -> None:
        first = await job.run(as_of=now)
        second = await job.run(as_of=now + timedelta(hours=1))

        assert second is first
        assert store.writes == 3

    @pytest.mark.asyncio
    async def test_runs_again_after_interval(
        self,
        job: HealthScoreBatchJob,
        store: InMemoryHealthScoreStore,
        now: datetime,
    ) -> None:
        await job.run(as_of=now)
        later = await job.run(as_of=now + timedelta(hours=6))

        assert later.executed is True
        assert store.writes == 6

    @pytest.mark.asyncio
    async def test_gated_by_another_process(
        self,
        registry: InMemoryEntityRegistry,
        histories: list[EntityHistory],
        store: InMemoryHealthScoreStore,
        now: datetime,
    ) -> None:
        """A marker set elsewhere gates a job with no result of its own."""
        earlier = now - timedelta(hours=2)
        job = HealthScoreBatchJob(registry, InMemoryAuditHistory(histories), store, InMemoryBatchWatermark(earlier))

        result = await job.run(as_of=now)

        assert result == BatchRunResult(
            executed=False,
            last_run_at=earlier,
            next_eligible_at=earlier + timedelta(hours=6),
        )
        assert store.writes == 0

    @pytest.mark.asyncio
    async def test_concurrent_triggers_run_once(
        self,
        job: HealthScoreBatchJob,
        store: InMemoryHealthScoreStore,
        now: datetime,
    ) -> None:
        results = await asyncio.gather(*(job.run(as_of=now) for _ in range(5)))

        assert sum(1 for r in results if r.executed) == 1
        assert store.writes == 3


# =============================================================================
# Failure & Cancellation
# =============================================================================


class TestAbortedRun:
    """Tests for watermark rollback."""

    @pytest.mark.asyncio
    async def test_cancellation_rolls_back(
        self,
        registry: InMemoryEntityRegistry,
        histories: list[EntityHistory],
        store: InMemoryHealthScoreStore,
        watermark: InMemoryBatchWatermark,
        now: datetime,
    ) -> None:
        history = BlockingHistory(histories, block_on=EntityType.BRANCH)
        job = HealthScoreBatchJob(registry, history, store, watermark)

        task = asyncio.create_task(job.run(as_of=now))
        await history.reached.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert await watermark.read() is None
        # Entities finished before the cancel keep their complete records
        assert (await store.get(SUPPLIER)).calculated_at == now
        assert await store.get(BRANCH) is None

        history.release.set()
        assert (await job.run(as_of=now)).executed is True

    @pytest.mark.asyncio
    async def test_failure_rolls_back(
        self,
        registry: InMemoryEntityRegistry,
        histories: list[EntityHistory],
        store: InMemoryHealthScoreStore,
        watermark: InMemoryBatchWatermark,
        now: datetime,
    ) -> None:
        job = HealthScoreBatchJob(registry, FailingHistory(histories), store, watermark)

        with pytest.raises(RuntimeError):
            await job.run(as_of=now)

        assert await watermark.read() is None
        assert store.writes == 2

    @pytest.mark.asyncio
    async def test_rollback_restores_previous_marker(
        self,
        registry: InMemoryEntityRegistry,
        histories: list[EntityHistory],
        store: InMemoryHealthScoreStore,
        now: datetime,
    ) -> None:
        earlier = now - timedelta(days=1)
        watermark = InMemoryBatchWatermark(earlier)
        job = HealthScoreBatchJob(registry, FailingHistory(histories), store, watermark)

        with pytest.raises(RuntimeError):
            await job.run(as_of=now)

        assert await watermark.read() == earlier
