"""
Finding Generator
=================

Turns the failing items of a submitted audit into findings.

Qualifying items:
- pass/fail answered "fail"
- rating of 2 or lower
- numeric value outside its declared range
- checklist with unchecked sub-items
- critical item without its required evidence
- any item carrying a manual finding note

Version: 0.1.0
"""

import uuid
from collections.abc import Callable, Mapping
from datetime import datetime

from services.audit_engine.models.audit import Finding, FindingSeverity
from services.audit_engine.models.response import (
    EMPTY_STATE,
    ItemState,
    NumericResponse,
    PassFailResponse,
    RatingResponse,
)
from services.audit_engine.models.template import Item, Template
from services.audit_engine.services.scoring import evidence_unmet, response_fails
from shared.logging import get_logger


logger = get_logger(__name__)

IdFactory = Callable[[], str]
CodeFactory = Callable[[str, int], str]


def new_id() -> str:
    return str(uuid.uuid4())


def new_code(prefix: str, year: int) -> str:
    """Human-readable record code, e.g. FND-2025-3F9A0C12BE."""
    return f"{prefix}-{year}-{uuid.uuid4().hex[:10].upper()}"


def finding_severity(item: Item, state: ItemState) -> FindingSeverity:
    """Severity of a qualifying item."""
    fails = response_fails(item, state)
    response = state.response

    if item.critical and (fails or evidence_unmet(item, state)):
        return FindingSeverity.CRITICAL
    if fails and isinstance(response, PassFailResponse | NumericResponse):
        return FindingSeverity.HIGH
    if isinstance(response, RatingResponse):
        if response.value == 1:
            return FindingSeverity.HIGH
        if response.value == 2:
            return FindingSeverity.MEDIUM
    return FindingSeverity.LOW


def qualifies(item: Item, state: ItemState) -> bool:
    if state.note:
        return True
    if state.response is None:
        return False
    if response_fails(item, state):
        return True
    return item.critical and evidence_unmet(item, state)


class FindingGenerator:
    """
    Derives findings from a submitted snapshot.

    Id and code factories are injectable so repeated runs can be made
    deterministic.
    """

    def __init__(
        self,
        id_factory: IdFactory | None = None,
        code_factory: CodeFactory | None = None,
    ) -> None:
        self.id_factory = id_factory or new_id
        self.code_factory = code_factory or new_code

    def generate(
        self,
        audit_id: str,
        template: Template,
        snapshot: Mapping[str, ItemState],
        created_at: datetime,
    ) -> list[Finding]:
        """
        Build one finding per qualifying item, in checklist order.

        Args:
            audit_id: Audit being submitted
            template: Its template
            snapshot: Submitted item states
            created_at: Submission time

        Returns:
            New open findings
        """
        findings = []

        for section, item in template.iter_items():
            state = snapshot.get(item.id, EMPTY_STATE)
            if not qualifies(item, state):
                continue

            description = item.text
            if state.note:
                description = f"{item.text} - {state.note}"

            findings.append(
                Finding(
                    id=self.id_factory(),
                    code=self.code_factory("FND", created_at.year),
                    audit_id=audit_id,
                    item_id=item.id,
                    section_id=section.id,
                    section_name=section.name,
                    severity=finding_severity(item, state),
                    description=description,
                    evidence=tuple(state.stored_paths),
                    created_at=created_at,
                )
            )

        logger.info(
            "findings_generated",
            audit_id=audit_id,
            count=len(findings),
            critical=sum(1 for f in findings if f.severity == FindingSeverity.CRITICAL),
        )

        return findings
