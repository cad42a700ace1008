"""
Health Score Batch Job
======================

Fleet-wide health-score recomputation, gated so that it runs at most once
per interval no matter how many callers trigger it.

Run order:
1. Claim the watermark (atomic compare-and-set)
2. Suppliers, then BCKs (which read supplier scores), then branches
3. Each entity's record is computed in full, then written once
4. On failure or cancellation the watermark claim is rolled back

Version: 0.1.0
"""

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from services.audit_engine.errors import StaleBatchRun
from services.audit_engine.models.audit import NotificationEvent, as_utc
from services.audit_engine.models.health import HealthScoreRecord
from services.audit_engine.models.template import EntityType
from services.audit_engine.services.health import HealthScoreAggregator
from services.audit_engine.services.stores import (
    AuditHistorySource,
    EntityRegistry,
    HealthScoreStore,
)
from services.audit_engine.services.watermark import BatchWatermark, claim_run, release_run
from shared.logging import get_logger, log_context


logger = get_logger(__name__)

ENTITY_ORDER = (EntityType.SUPPLIER, EntityType.BCK, EntityType.BRANCH)


@dataclass
class BatchRunResult:
    """Outcome of one `run` call."""

    executed: bool
    run_at: datetime | None = None
    records: list[HealthScoreRecord] = field(default_factory=list)
    events: list[NotificationEvent] = field(default_factory=list)
    last_run_at: datetime | None = None
    next_eligible_at: datetime | None = None


class HealthScoreBatchJob:
    """
    Recomputes every entity's health score.

    Example:
        job = HealthScoreBatchJob(registry, history, store, InMemoryBatchWatermark())
        result = await job.run()
        if not result.executed:
            ...  # gated; result is the previous run's
    """

    def __init__(
        self,
        registry: EntityRegistry,
        history_source: AuditHistorySource,
        store: HealthScoreStore,
        watermark: BatchWatermark,
        aggregator: HealthScoreAggregator | None = None,
        min_interval: timedelta = timedelta(hours=6),
    ) -> None:
        self.registry = registry
        self.history_source = history_source
        self.store = store
        self.watermark = watermark
        self.aggregator = aggregator or HealthScoreAggregator()
        self.min_interval = min_interval
        self._last_result: BatchRunResult | None = None

    async def run(self, as_of: datetime | None = None) -> BatchRunResult:
        """
        Run the batch unless it already ran inside the gating interval.

        Args:
            as_of: Evaluation time, defaults to now

        Returns:
            The new result, or the previous one when gated

        Raises:
            Whatever the collaborators raise; the watermark is rolled back first
        """
        run_at = as_utc(as_of) if as_of is not None else datetime.now(UTC)

        try:
            previous = await claim_run(self.watermark, run_at, self.min_interval)
        except StaleBatchRun as e:
            logger.info(
                "health_batch_skipped",
                last_run_at=e.last_run_at,
                next_eligible_at=e.next_eligible_at,
            )
            if self._last_result is not None:
                return self._last_result
            return BatchRunResult(
                executed=False,
                last_run_at=e.last_run_at,
                next_eligible_at=e.next_eligible_at,
            )

        with log_context(batch_run_at=run_at):
            logger.info("health_batch_started", previous_run_at=previous)

            try:
                result = await self._recompute(run_at)
            except (Exception, asyncio.CancelledError) as e:
                await release_run(self.watermark, run_at, previous)
                logger.error("health_batch_aborted", error=type(e).__name__)
                raise

            self._last_result = result
            logger.info(
                "health_batch_completed",
                entities=len(result.records),
                events=len(result.events),
            )
        return result

    async def _recompute(self, run_at: datetime) -> BatchRunResult:
        records: list[HealthScoreRecord] = []
        events: list[NotificationEvent] = []
        supplier_scores: dict[str, float] = {}

        for entity_type in ENTITY_ORDER:
            for entity in await self.registry.list_entities(entity_type):
                history = await self.history_source.load_history(entity, run_at)

                if entity_type == EntityType.BCK and history.supplier_ids:
                    known = {
                        sid: supplier_scores[sid]
                        for sid in history.supplier_ids
                        if sid in supplier_scores
                    }
                    history = history.model_copy(
                        update={"supplier_scores": {**history.supplier_scores, **known}}
                    )

                evaluation = self.aggregator.evaluate(history, run_at)
                await self.store.save(evaluation.record)

                if entity_type == EntityType.SUPPLIER and evaluation.record.has_data:
                    supplier_scores[entity.id] = evaluation.record.score

                records.append(evaluation.record)
                events.extend(evaluation.events)

        return BatchRunResult(
            executed=True,
            run_at=run_at,
            records=records,
            events=events,
            last_run_at=run_at,
            next_eligible_at=run_at + self.min_interval,
        )
