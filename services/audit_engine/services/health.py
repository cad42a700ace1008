"""
Health Score Aggregation Service
================================

Rolls an entity's audit, CAPA, incident and certification history into a
single 0-100 health score.

Components by entity type:
- Branch: audit performance, CAPA completion, repeat findings,
  incident rate, verification pass
- BCK: HACCP compliance, production audit performance, supplier quality,
  CAPA completion
- Supplier: audit performance, product quality, compliance,
  delivery performance

Audit averages are recency-decayed: an audit `h` days older than another
counts half as much, with `h` the configured half-life.

Version: 0.1.0
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from services.audit_engine.models.audit import (
    Audit,
    AuditStatus,
    NotificationEvent,
    NotificationKind,
    as_utc,
)
from services.audit_engine.models.health import EntityHistory, HealthLabel, HealthScoreRecord
from services.audit_engine.models.template import EntityType
from shared.config import AuditEngineSettings
from shared.logging import get_logger


logger = get_logger(__name__)


# =============================================================================
# Configuration
# =============================================================================


STOPWORDS = frozenset(
    {
        "the", "a", "an", "is", "are", "was", "were", "in", "on", "at", "to",
        "for", "of", "and", "or", "it", "this", "that", "with", "has", "had",
        "have", "been", "be", "not", "no", "but", "by", "from", "as", "if",
        "so", "than", "then",
    }
)


@dataclass
class HealthWeights:
    """Component weights for one entity type; must sum to 1.0."""

    components: dict[str, float]

    def __post_init__(self) -> None:
        total = sum(self.components.values())
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"health component weights sum to {total}, expected 1.0")
        if any(w < 0 for w in self.components.values()):
            raise ValueError("health component weights must be non-negative")


DEFAULT_WEIGHTS: dict[EntityType, HealthWeights] = {
    EntityType.BRANCH: HealthWeights(
        {
            "audit_performance": 0.40,
            "capa_completion": 0.25,
            "repeat_findings": 0.15,
            "incident_rate": 0.10,
            "verification_pass": 0.10,
        }
    ),
    EntityType.BCK: HealthWeights(
        {
            "haccp_compliance": 0.50,
            "production_audit_perf": 0.25,
            "supplier_quality": 0.15,
            "capa_completion": 0.10,
        }
    ),
    EntityType.SUPPLIER: HealthWeights(
        {
            "audit_performance": 0.40,
            "product_quality": 0.30,
            "compliance": 0.20,
            "delivery_perf": 0.10,
        }
    ),
}


@dataclass
class HealthPolicy:
    """Windows and penalties used by the aggregator."""

    lookback_days: int = 90
    decay_half_life_days: float | None = 30.0
    repeat_window_days: int = 60
    repeat_overlap_threshold: float = 0.6
    repeat_penalty: float = 10.0
    repeat_penalty_cap: float = 50.0
    incident_window_days: int = 30
    incident_penalty: float = 20.0
    product_incident_penalty: float = 10.0
    certification_warning_days: int = 30
    suspension_threshold: float = 60.0

    @classmethod
    def from_settings(cls, settings: AuditEngineSettings) -> "HealthPolicy":
        return cls(
            lookback_days=settings.lookback_days,
            decay_half_life_days=settings.decay_half_life_days,
            repeat_window_days=settings.repeat_finding_window_days,
            incident_window_days=settings.incident_window_days,
            certification_warning_days=settings.certification_warning_days,
        )


# =============================================================================
# Labels
# =============================================================================


FACILITY_BANDS = (
    HealthLabel(label="Excellent", color="hsl(160, 84%, 39%)", min=85),
    HealthLabel(label="Good", color="hsl(38, 92%, 50%)", min=70),
    HealthLabel(label="Needs Improvement", color="hsl(25, 95%, 53%)", min=50),
    HealthLabel(label="Critical", color="hsl(0, 84%, 60%)", min=0),
)

SUPPLIER_BANDS = (
    HealthLabel(label="Approved", color="hsl(160, 84%, 39%)", min=90),
    HealthLabel(label="Conditional", color="hsl(38, 92%, 50%)", min=75),
    HealthLabel(label="Under Review", color="hsl(25, 95%, 53%)", min=60),
    HealthLabel(label="Suspended", color="hsl(0, 84%, 60%)", min=0),
)

NO_DATA = HealthLabel(label="No data", color="hsl(215, 16%, 47%)", min=0)


def classify_health_score(
    score: float,
    entity_type: EntityType | None = None,
    has_data: bool = True,
) -> HealthLabel:
    """
    Map a 0-100 score to its display band.

    Suppliers use the approval bands; facilities (and unspecified types) use
    the facility bands. A zero score without audit history is "No data".

    Raises:
        ValueError: If the score is outside 0-100
    """
    if not 0 <= score <= 100:
        raise ValueError(f"health score {score} outside 0-100")
    if score == 0 and not has_data:
        return NO_DATA

    bands = SUPPLIER_BANDS if entity_type == EntityType.SUPPLIER else FACILITY_BANDS
    for band in bands:
        if score >= band.min:
            return band
    return bands[-1]


# =============================================================================
# Text similarity
# =============================================================================


def tokenize(text: str) -> set[str]:
    """Lowercase content words longer than two characters, stopwords removed."""
    cleaned = re.sub(r"[^a-z0-9\s]", "", text.lower())
    return {w for w in cleaned.split() if len(w) > 2 and w not in STOPWORDS}


def word_overlap(first: str, second: str) -> float:
    """Jaccard overlap of the two descriptions' content words (0-1)."""
    a, b = tokenize(first), tokenize(second)
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


def _round(value: float) -> float:
    """One decimal, halves rounded up (84.85 -> 84.9)."""
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


# =============================================================================
# Aggregator
# =============================================================================


@dataclass
class HealthEvaluation:
    """Record plus any events raised by computing it."""

    record: HealthScoreRecord
    events: list[NotificationEvent] = field(default_factory=list)


class HealthScoreAggregator:
    """
    Computes health-score records from materialized entity history.

    Pure: the same history and `as_of` always produce the same record.
    """

    def __init__(
        self,
        policy: HealthPolicy | None = None,
        weights: dict[EntityType, HealthWeights] | None = None,
    ) -> None:
        self.policy = policy or HealthPolicy()
        self.weights = {**DEFAULT_WEIGHTS, **(weights or {})}

    # -------------------------------------------------------------------------
    # Audit helpers
    # -------------------------------------------------------------------------

    def _approved_audits(self, history: EntityHistory, as_of: datetime) -> list[Audit]:
        """Approved audits finished inside the lookback window, newest first."""
        cutoff = as_of - timedelta(days=self.policy.lookback_days)
        audits = [
            a
            for a in history.audits
            if a.status == AuditStatus.APPROVED
            and a.finished_at is not None
            and cutoff <= a.finished_at <= as_of
        ]
        return sorted(audits, key=lambda a: (a.finished_at, a.id), reverse=True)

    def _decayed_mean(self, audits: list[Audit], as_of: datetime) -> float:
        if not audits:
            return 0.0

        half_life = self.policy.decay_half_life_days
        total = 0.0
        weight_sum = 0.0
        for audit in audits:
            if half_life is None:
                weight = 1.0
            else:
                age_days = (as_of - audit.finished_at).total_seconds() / 86400
                weight = 0.5 ** (age_days / half_life)
            total += (audit.score or 0.0) * weight
            weight_sum += weight

        return total / weight_sum

    # -------------------------------------------------------------------------
    # Components
    # -------------------------------------------------------------------------

    def _capa_completion(self, history: EntityHistory) -> float:
        closed = [c for c in history.capas if c.is_closed]
        if not closed:
            return 100.0
        on_time = sum(1 for c in closed if c.closed_on_time)
        return _round(on_time / len(closed) * 100)

    def _verification_pass(self, history: EntityHistory) -> float:
        closed = [c for c in history.capas if c.is_closed]
        if not closed:
            return 100.0
        first_time = sum(1 for c in closed if c.rejection_count == 0)
        return _round(first_time / len(closed) * 100)

    def _repeat_findings(
        self,
        history: EntityHistory,
        approved: list[Audit],
        as_of: datetime,
    ) -> float:
        """Penalty for latest-audit findings that echo findings from recent audits."""
        if not approved:
            return 100.0

        latest = approved[0]
        cutoff = as_of - timedelta(days=self.policy.repeat_window_days)
        recent_ids = {
            a.id
            for a in history.audits
            if a.id != latest.id and a.finished_at is not None and cutoff <= a.finished_at <= as_of
        }

        latest_findings = [f for f in history.findings if f.audit_id == latest.id]
        previous_findings = [f for f in history.findings if f.audit_id in recent_ids]

        repeats = 0
        for finding in latest_findings:
            if any(
                word_overlap(finding.description, prev.description)
                >= self.policy.repeat_overlap_threshold
                for prev in previous_findings
            ):
                repeats += 1

        penalty = min(self.policy.repeat_penalty_cap, repeats * self.policy.repeat_penalty)
        return _round(100 - penalty)

    def _incident_rate(self, history: EntityHistory, as_of: datetime) -> float:
        cutoff = as_of - timedelta(days=self.policy.incident_window_days)
        count = sum(
            1
            for i in history.incidents
            if i.is_unresolved and cutoff <= i.created_at <= as_of
        )
        return _round(max(0.0, 100 - count * self.policy.incident_penalty))

    def _supplier_quality(self, history: EntityHistory) -> float:
        scores = [
            history.supplier_scores[sid]
            for sid in history.supplier_ids
            if sid in history.supplier_scores
        ]
        if not scores:
            return 100.0
        return _round(sum(scores) / len(scores))

    def _product_quality(self, history: EntityHistory, as_of: datetime) -> float:
        count = sum(1 for i in history.incidents if i.created_at <= as_of)
        return _round(max(0.0, 100 - count * self.policy.product_incident_penalty))

    def _compliance(self, history: EntityHistory, as_of: datetime) -> float:
        """Certification expiry proximity, averaged across certifications."""
        if not history.certifications:
            return 50.0

        today = as_of.date()
        warning = self.policy.certification_warning_days
        scores = []
        for cert in history.certifications:
            if cert.expires_on is None:
                scores.append(100.0)
                continue
            days_left = (cert.expires_on - today).days
            if days_left < 0:
                scores.append(0.0)
            elif days_left > warning or warning == 0:
                scores.append(100.0)
            else:
                scores.append(50 + 50 * days_left / warning)

        return _round(sum(scores) / len(scores))

    def components(self, history: EntityHistory, as_of: datetime) -> dict[str, float]:
        """Component scores for the entity's type."""
        as_of = as_utc(as_of)
        approved = self._approved_audits(history, as_of)
        entity_type = history.entity.type

        if entity_type == EntityType.BRANCH:
            return {
                "audit_performance": _round(self._decayed_mean(approved, as_of)),
                "capa_completion": self._capa_completion(history),
                "repeat_findings": self._repeat_findings(history, approved, as_of),
                "incident_rate": self._incident_rate(history, as_of),
                "verification_pass": self._verification_pass(history),
            }

        if entity_type == EntityType.BCK:
            latest = approved[0].score if approved else None
            return {
                "haccp_compliance": _round(latest or 0.0),
                "production_audit_perf": _round(self._decayed_mean(approved, as_of)),
                "supplier_quality": self._supplier_quality(history),
                "capa_completion": self._capa_completion(history),
            }

        return {
            "audit_performance": _round(self._decayed_mean(approved, as_of)),
            "product_quality": self._product_quality(history, as_of),
            "compliance": self._compliance(history, as_of),
            "delivery_perf": _round(
                100.0 if history.delivery_on_time_rate is None else history.delivery_on_time_rate
            ),
        }

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    def compute(self, history: EntityHistory, as_of: datetime) -> HealthScoreRecord:
        """
        Compute the health-score record for one entity.

        Args:
            history: Materialized entity history
            as_of: Evaluation time (also the record's calculated_at)

        Returns:
            HealthScoreRecord; has_data is False when the entity has no audit history
        """
        as_of = as_utc(as_of)
        entity = history.entity
        has_data = bool(history.audits)

        components = self.components(history, as_of)
        weights = self.weights[entity.type].components
        score = _round(sum(components[key] * weights.get(key, 0.0) for key in components))
        score = min(100.0, max(0.0, score))

        band = classify_health_score(score, entity.type, has_data)

        return HealthScoreRecord(
            entity=entity,
            score=score,
            components=components,
            has_data=has_data,
            label=band.label,
            color=band.color,
            calculated_at=as_of,
        )

    def evaluate(self, history: EntityHistory, as_of: datetime) -> HealthEvaluation:
        """Compute the record and any supplier auto-suspension event."""
        record = self.compute(history, as_of)
        events = []

        if (
            history.entity.type == EntityType.SUPPLIER
            and record.has_data
            and record.score < self.policy.suspension_threshold
            and not history.suspended
        ):
            events.append(
                NotificationEvent(
                    kind=NotificationKind.SUPPLIER_SUSPENDED,
                    entity=history.entity,
                    details={"score": record.score},
                )
            )
            logger.warning(
                "supplier_auto_suspended",
                supplier_id=history.entity.id,
                score=record.score,
            )

        return HealthEvaluation(record=record, events=events)
