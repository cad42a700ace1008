"""
Audit Scoring Engine
====================

Pure scoring of a filled checklist.

Score Levels:
- Item: 0-100 per response type, unanswered items excluded
- Section: mean of scored items
- Overall: section scores weighted by the weights of scored sections

Critical-fail detection and the submission gate live here too, since both
walk the same item states.

Version: 0.1.0
"""

from collections.abc import Mapping
from dataclasses import dataclass, field

from services.audit_engine.errors import IncompleteSubmission
from services.audit_engine.models.response import (
    EMPTY_STATE,
    ChecklistResponse,
    ItemState,
    NumericResponse,
    PassFailResponse,
    RatingResponse,
)
from services.audit_engine.models.template import Item, ResponseType, Template
from shared.logging import get_logger


logger = get_logger(__name__)

Snapshot = Mapping[str, ItemState]

# Ratings at or below this fail (critical-fail, findings)
FAILING_RATING = 2


# =============================================================================
# Results
# =============================================================================


@dataclass
class SectionScore:
    """Score of one section."""

    section_id: str
    name: str
    weight: float
    score: float | None  # None when nothing in the section is scored
    scored_items: int = 0


@dataclass
class ScoreResult:
    """Complete scoring result for one audit."""

    overall_score: float  # 0-100, 2 decimals
    passed: bool
    pass_threshold: float
    critical_fail: bool = False
    critical_items: list[str] = field(default_factory=list)
    section_scores: list[SectionScore] = field(default_factory=list)
    item_scores: dict[str, float] = field(default_factory=dict)

    @property
    def pass_fail(self) -> str:
        return "pass" if self.passed else "fail"


# =============================================================================
# Item rules
# =============================================================================


def item_score(item: Item, state: ItemState) -> float | None:
    """
    Score one item 0-100.

    Returns None when the item does not take part in averaging: unanswered,
    or numeric without a declared range.
    """
    response = state.response
    if response is None:
        return None

    if item.type == ResponseType.PASS_FAIL:
        return 0.0 if response.failed else 100.0

    if item.type == ResponseType.RATING:
        return (response.value - 1) / 4 * 100

    if item.type == ResponseType.NUMERIC:
        if item.numeric_range is None:
            return None
        return 100.0 if item.numeric_range.contains(response.value) else 0.0

    if item.type == ResponseType.PHOTO:
        needed = max(1, item.evidence_required.minimum)
        return 100.0 if state.evidence_count >= needed else 0.0

    if item.type == ResponseType.TEXT:
        return 100.0 if response.value.strip() else 0.0

    if item.type == ResponseType.CHECKLIST:
        if not item.sub_items:
            return None
        checked = sum(1 for sub in item.sub_items if response.value.get(sub, False))
        return checked / len(item.sub_items) * 100

    return None


def response_fails(item: Item, state: ItemState) -> bool:
    """Whether an answered item's response is a failure on its own terms."""
    response = state.response

    if isinstance(response, PassFailResponse):
        return response.failed
    if isinstance(response, RatingResponse):
        return response.value <= FAILING_RATING
    if isinstance(response, NumericResponse):
        return item.numeric_range is not None and not item.numeric_range.contains(response.value)
    if isinstance(response, ChecklistResponse):
        return any(not response.value.get(sub, False) for sub in item.sub_items)
    return False


def evidence_unmet(item: Item, state: ItemState) -> bool:
    return state.evidence_count < item.evidence_required.minimum


def is_critical_failure(item: Item, state: ItemState) -> bool:
    """Answered critical item that fails or lacks its required evidence."""
    if not item.critical or state.response is None:
        return False
    return response_fails(item, state) or evidence_unmet(item, state)


# =============================================================================
# Audit scoring
# =============================================================================


def score_audit(template: Template, snapshot: Snapshot) -> ScoreResult:
    """
    Score a snapshot of item states against its template.

    Args:
        template: Validated template
        snapshot: item_id -> ItemState (missing ids are unanswered)

    Returns:
        ScoreResult with section breakdown and critical-fail outcome
    """
    section_scores: list[SectionScore] = []
    item_scores: dict[str, float] = {}
    critical_items: list[str] = []

    for section in template.ordered_sections():
        scores = []
        for item in section.ordered_items():
            state = snapshot.get(item.id, EMPTY_STATE)

            score = item_score(item, state)
            if score is not None:
                item_scores[item.id] = score
                scores.append(score)

            if is_critical_failure(item, state):
                critical_items.append(item.id)

        section_scores.append(
            SectionScore(
                section_id=section.id,
                name=section.name,
                weight=section.weight,
                score=sum(scores) / len(scores) if scores else None,
                scored_items=len(scores),
            )
        )

    scored = [s for s in section_scores if s.score is not None]
    scored_weight = sum(s.weight for s in scored)
    if scored_weight > 0:
        overall = sum(s.score * s.weight for s in scored) / scored_weight
    else:
        overall = 0.0
    overall = round(overall, 2)

    threshold = template.scoring.pass_threshold
    critical_fail = bool(critical_items)
    passed = overall >= threshold
    if critical_fail and template.scoring.critical_fail_overrides_score:
        passed = False

    result = ScoreResult(
        overall_score=overall,
        passed=passed,
        pass_threshold=threshold,
        critical_fail=critical_fail,
        critical_items=critical_items,
        section_scores=section_scores,
        item_scores=item_scores,
    )

    logger.debug(
        "audit_scored",
        template_id=template.id,
        overall=overall,
        passed=passed,
        critical_fail=critical_fail,
    )

    return result


def check_submission(template: Template, snapshot: Snapshot) -> None:
    """
    Submission gate.

    Walks items in checklist order and raises on the first item that is
    required but unanswered, or answered without enough evidence.

    Raises:
        IncompleteSubmission: Naming the first offending item
    """
    for _, item in template.iter_items():
        state = snapshot.get(item.id, EMPTY_STATE)

        if state.response is None:
            if item.optional:
                continue
            raise IncompleteSubmission(item.id, IncompleteSubmission.MISSING_RESPONSE)

        if evidence_unmet(item, state):
            raise IncompleteSubmission(
                item.id,
                IncompleteSubmission.MISSING_EVIDENCE,
                required=item.evidence_required.minimum,
                attached=state.evidence_count,
            )
