"""
Health Score Database Model
===========================

SQLAlchemy ORM model for the current health score of each entity.
One row per entity; recomputation overwrites it.

Version: 0.1.0
"""

from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Numeric,
    String,
)

from shared.database.postgres import Base


class HealthScoreModel(Base):
    """SQLAlchemy model for entity health scores."""

    __tablename__ = "health_scores"
    __table_args__ = (
        Index("ix_health_scores_score", "entity_type", "score"),
        CheckConstraint("score >= 0 AND score <= 100", name="check_health_score_range"),
        {"schema": "audit"},
    )

    entity_type = Column(String(20), primary_key=True)  # branch, bck, supplier
    entity_id = Column(String(64), primary_key=True)

    score = Column(Numeric(4, 1), nullable=False)
    components = Column(JSON, nullable=False, default=dict)
    has_data = Column(Boolean, nullable=False, default=True)
    label = Column(String(50), nullable=False)
    color = Column(String(50), nullable=False)

    calculated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))

    def __repr__(self) -> str:
        return f"<HealthScore {self.entity_type}:{self.entity_id}={self.score}>"
