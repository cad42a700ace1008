"""
Storage Ports & Adapters
========================

Collaborators the health-score batch reads from and writes to.

Ports:
- EntityRegistry: which entities exist, by type
- AuditHistorySource: materialized history for one entity
- HealthScoreStore: current health-score record per entity

Adapters:
- In-memory implementations for development and tests
- PostgresHealthScoreStore: one upsert statement per entity

Version: 0.1.0
"""

import json
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Protocol

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from services.audit_engine.models.audit import EntityRef
from services.audit_engine.models.health import EntityHistory, HealthScoreRecord
from services.audit_engine.models.template import EntityType
from shared.logging import get_logger


logger = get_logger(__name__)


# =============================================================================
# Ports
# =============================================================================


class EntityRegistry(Protocol):
    """Supplies the entities the batch iterates."""

    async def list_entities(self, entity_type: EntityType) -> list[EntityRef]:
        ...


class AuditHistorySource(Protocol):
    """Supplies already-materialized history for one entity."""

    async def load_history(self, entity: EntityRef, as_of: datetime) -> EntityHistory:
        ...


class HealthScoreStore(Protocol):
    """Holds the current health-score record per entity."""

    async def save(self, record: HealthScoreRecord) -> None:
        """Replace the entity's record in a single write."""
        ...

    async def get(self, entity: EntityRef) -> HealthScoreRecord | None:
        ...


# =============================================================================
# In-memory adapters
# =============================================================================


class InMemoryEntityRegistry:
    """Registry backed by a list, preserving insertion order."""

    def __init__(self, entities: Iterable[EntityRef] = ()) -> None:
        self._entities: list[EntityRef] = list(entities)

    def add(self, entity: EntityRef) -> None:
        if entity not in self._entities:
            self._entities.append(entity)

    async def list_entities(self, entity_type: EntityType) -> list[EntityRef]:
        return [e for e in self._entities if e.type == entity_type]


class InMemoryAuditHistory:
    """History source backed by a dict; unknown entities have empty history."""

    def __init__(self, histories: Iterable[EntityHistory] = ()) -> None:
        self._histories: dict[EntityRef, EntityHistory] = {h.entity: h for h in histories}

    def put(self, history: EntityHistory) -> None:
        self._histories[history.entity] = history

    async def load_history(self, entity: EntityRef, as_of: datetime) -> EntityHistory:
        return self._histories.get(entity) or EntityHistory(entity=entity)


class InMemoryHealthScoreStore:
    """Record store backed by a dict. `writes` counts saves."""

    def __init__(self) -> None:
        self._records: dict[EntityRef, HealthScoreRecord] = {}
        self.writes = 0

    async def save(self, record: HealthScoreRecord) -> None:
        self._records[record.entity] = record
        self.writes += 1

    async def get(self, entity: EntityRef) -> HealthScoreRecord | None:
        return self._records.get(entity)

    def all(self) -> list[HealthScoreRecord]:
        return list(self._records.values())


# =============================================================================
# PostgreSQL adapter
# =============================================================================


class PostgresHealthScoreStore:
    """
    Health scores in `audit.health_scores`.

    Each save opens its own session and commits one upsert, so an entity's
    row is either fully replaced or untouched.
    """

    def __init__(self, session_factory: Callable[[], AsyncSession]) -> None:
        self.session_factory = session_factory

    async def save(self, record: HealthScoreRecord) -> None:
        query = text("""
            INSERT INTO audit.health_scores (
                entity_type, entity_id, score, components, has_data,
                label, color, calculated_at
            ) VALUES (
                :entity_type, :entity_id, :score, CAST(:components AS JSON), :has_data,
                :label, :color, :calculated_at
            )
            ON CONFLICT (entity_type, entity_id) DO UPDATE SET
                score = EXCLUDED.score,
                components = EXCLUDED.components,
                has_data = EXCLUDED.has_data,
                label = EXCLUDED.label,
                color = EXCLUDED.color,
                calculated_at = EXCLUDED.calculated_at
        """)

        async with self.session_factory() as session:
            await session.execute(
                query,
                {
                    "entity_type": record.entity.type.value,
                    "entity_id": record.entity.id,
                    "score": record.score,
                    "components": json.dumps(record.components, sort_keys=True),
                    "has_data": record.has_data,
                    "label": record.label,
                    "color": record.color,
                    "calculated_at": record.calculated_at,
                },
            )
            await session.commit()

        logger.debug("health_score_saved", entity=str(record.entity), score=record.score)

    async def get(self, entity: EntityRef) -> HealthScoreRecord | None:
        query = text("""
            SELECT score, components, has_data, label, color, calculated_at
            FROM audit.health_scores
            WHERE entity_type = :entity_type AND entity_id = :entity_id
        """)

        async with self.session_factory() as session:
            result = await session.execute(
                query,
                {"entity_type": entity.type.value, "entity_id": entity.id},
            )
            row = result.fetchone()

        if row is None:
            return None

        components = row.components
        if isinstance(components, str):
            components = json.loads(components)

        return HealthScoreRecord(
            entity=entity,
            score=float(row.score),
            components=components or {},
            has_data=row.has_data,
            label=row.label,
            color=row.color,
            calculated_at=row.calculated_at,
        )
