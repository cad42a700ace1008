"""
Scoring Engine Tests
====================

Tests for item, section and overall scoring, critical-fail detection and
the submission gate.

Version: 0.1.0
"""

import copy
from typing import Any

import pytest

from services.audit_engine.errors import IncompleteSubmission
from services.audit_engine.models.response import (
    ChecklistResponse,
    ItemState,
    NumericResponse,
    PassFailResponse,
    PhotoResponse,
    RatingResponse,
    StoredEvidence,
    TextResponse,
)
from services.audit_engine.models.template import Item, Template
from services.audit_engine.services.scoring import (
    check_submission,
    is_critical_failure,
    item_score,
    score_audit,
)
from services.audit_engine.services.session import ResponseSession
from services.audit_engine.services.template import validate_template


def _evidence(count: int) -> tuple[StoredEvidence, ...]:
    return tuple(StoredEvidence(path=f"p/{i}.jpg") for i in range(count))


# =============================================================================
# Item Scores
# =============================================================================


class TestItemScore:
    """Tests for per-type item scoring."""

    def test_pass_fail(self) -> None:
        item = Item(id="i", text="t", type="pass_fail")

        assert item_score(item, ItemState(response=PassFailResponse(value="pass"))) == 100
        assert item_score(item, ItemState(response=PassFailResponse(value="fail"))) == 0

    @pytest.mark.parametrize("value,expected", [(1, 0), (2, 25), (3, 50), (4, 75), (5, 100)])
    def test_rating(self, value: int, expected: float) -> None:
        item = Item(id="i", text="t", type="rating")
        assert item_score(item, ItemState(response=RatingResponse(value=value))) == expected

    def test_numeric_in_and_out_of_range(self) -> None:
        item = Item(id="i", text="t", type="numeric", numeric_range={"min": 0, "max": 5})

        assert item_score(item, ItemState(response=NumericResponse(value=5))) == 100
        assert item_score(item, ItemState(response=NumericResponse(value=5.1))) == 0
        assert item_score(item, ItemState(response=NumericResponse(value=-1))) == 0

    def test_numeric_without_range_excluded(self) -> None:
        item = Item(id="i", text="t", type="numeric")
        assert item_score(item, ItemState(response=NumericResponse(value=12))) is None

    def test_photo_needs_evidence(self) -> None:
        item = Item(id="i", text="t", type="photo", evidence_required="required_2")
        response = PhotoResponse()

        assert item_score(item, ItemState(response=response, evidence=_evidence(1))) == 0
        assert item_score(item, ItemState(response=response, evidence=_evidence(2))) == 100

    def test_text(self) -> None:
        item = Item(id="i", text="t", type="text")

        assert item_score(item, ItemState(response=TextResponse(value="ok"))) == 100
        assert item_score(item, ItemState(response=TextResponse(value="   "))) == 0

    def test_checklist_percentage(self) -> None:
        item = Item(id="i", text="t", type="checklist", sub_items=("a", "b", "c", "d"))
        response = ChecklistResponse(value={"a": True, "b": True, "c": False})

        # Missing sub-items count as unchecked
        assert item_score(item, ItemState(response=response)) == 50

    def test_unanswered_excluded(self) -> None:
        item = Item(id="i", text="t", type="pass_fail")
        assert item_score(item, ItemState()) is None


# =============================================================================
# Audit Scores
# =============================================================================


class TestScoreAudit:
    """Tests for section and overall aggregation."""

    def test_sixty_forty_scenario(self, two_section_template: Template) -> None:
        """(100 x 60 + 25 x 40) / 100 = 70."""
        session = ResponseSession(two_section_template)
        session.set_response("a-1", "pass")
        session.set_response("a-2", "pass")
        session.set_response("b-1", 2)

        result = score_audit(two_section_template, session.snapshot())

        assert result.overall_score == 70.0
        assert [s.score for s in result.section_scores] == [100, 25]
        assert result.passed is True
        assert result.pass_fail == "pass"

    def test_threshold_above_score_fails(self, two_section_payload: dict[str, Any]) -> None:
        payload = copy.deepcopy(two_section_payload)
        payload["scoring"]["pass_threshold"] = 71
        template = validate_template(payload)
        snapshot = {
            "a-1": ItemState(response=PassFailResponse(value="pass")),
            "a-2": ItemState(response=PassFailResponse(value="pass")),
            "b-1": ItemState(response=RatingResponse(value=2)),
        }

        result = score_audit(template, snapshot)

        assert result.overall_score == 70.0
        assert result.passed is False

    def test_unscored_section_drops_out(self, two_section_template: Template) -> None:
        """Only sections with scored items carry weight."""
        snapshot = {"b-1": ItemState(response=RatingResponse(value=4))}

        result = score_audit(two_section_template, snapshot)

        assert result.section_scores[0].score is None
        assert result.overall_score == 75.0

    def test_nothing_answered(self, two_section_template: Template) -> None:
        result = score_audit(two_section_template, {})

        assert result.overall_score == 0
        assert result.passed is False

    def test_rounded_to_two_decimals(self, two_section_template: Template) -> None:
        snapshot = {
            "a-1": ItemState(response=PassFailResponse(value="pass")),
            "a-2": ItemState(response=PassFailResponse(value="fail")),
            "b-1": ItemState(response=RatingResponse(value=2)),
        }
        # (50 x 60 + 25 x 40) / 100 = 40
        assert score_audit(two_section_template, snapshot).overall_score == 40.0

    def test_full_marks(self, template: Template, complete_session: ResponseSession) -> None:
        result = score_audit(template, complete_session.snapshot())

        assert result.overall_score == 100.0
        assert result.critical_fail is False
        assert result.passed is True


# =============================================================================
# Critical Fail
# =============================================================================


class TestCriticalFail:
    """Tests for the critical-fail override."""

    def test_critical_item_failure(self, template: Template, complete_session: ResponseSession) -> None:
        complete_session.set_response("fs-1", "fail")

        result = score_audit(template, complete_session.snapshot())

        assert result.critical_fail is True
        assert result.critical_items == ["fs-1"]
        assert result.passed is False

    def test_overrides_perfect_score(self) -> None:
        """A score of 100 still fails when a critical item lacks evidence."""
        template = validate_template(
            {
                "id": "t",
                "name": "Critical evidence",
                "entity_type": "bck",
                "sections": [
                    {
                        "id": "s",
                        "name": "S",
                        "weight": 100,
                        "items": [
                            {
                                "id": "haccp-log",
                                "text": "HACCP log signed",
                                "type": "pass_fail",
                                "critical": True,
                                "evidence_required": "required_1",
                            }
                        ],
                    }
                ],
            }
        )
        snapshot = {"haccp-log": ItemState(response=PassFailResponse(value="pass"))}

        result = score_audit(template, snapshot)

        assert result.overall_score == 100.0
        assert result.critical_fail is True
        assert result.passed is False

    def test_override_can_be_disabled(self, template_payload: dict[str, Any], complete_session: ResponseSession) -> None:
        payload = copy.deepcopy(template_payload)
        payload["scoring"]["critical_fail_overrides_score"] = False
        template = validate_template(payload)
        complete_session.set_response("fs-1", "fail")

        result = score_audit(template, complete_session.snapshot())

        # (66.67 x 60 + 100 x 40) / 100
        assert result.critical_fail is True
        assert result.overall_score == 80.0
        assert result.passed is True

    @pytest.mark.parametrize(
        "item_kwargs,state",
        [
            ({"type": "rating"}, ItemState(response=RatingResponse(value=2))),
            (
                {"type": "numeric", "numeric_range": {"max": 5}},
                ItemState(response=NumericResponse(value=9)),
            ),
            (
                {"type": "checklist", "sub_items": ("a", "b")},
                ItemState(response=ChecklistResponse(value={"a": True})),
            ),
        ],
    )
    def test_failing_critical_responses(self, item_kwargs: dict, state: ItemState) -> None:
        item = Item(id="c", text="critical", critical=True, **item_kwargs)
        assert is_critical_failure(item, state) is True

    def test_unanswered_critical_not_flagged(self) -> None:
        item = Item(id="c", text="critical", type="pass_fail", critical=True, evidence_required="required_1")
        assert is_critical_failure(item, ItemState()) is False

    def test_rating_three_not_critical(self) -> None:
        item = Item(id="c", text="critical", type="rating", critical=True)
        assert is_critical_failure(item, ItemState(response=RatingResponse(value=3))) is False


# =============================================================================
# Submission Gate
# =============================================================================


class TestSubmissionGate:
    """Tests for completeness and evidence checks on submission."""

    def test_complete_passes(self, template: Template, complete_session: ResponseSession) -> None:
        check_submission(template, complete_session.snapshot())

    def test_first_unanswered_item_named(self, template: Template) -> None:
        session = ResponseSession(template)
        session.set_response("fs-1", "pass")

        with pytest.raises(IncompleteSubmission) as exc_info:
            check_submission(template, session.snapshot())

        assert exc_info.value.item_id == "fs-2"
        assert exc_info.value.reason == IncompleteSubmission.MISSING_RESPONSE

    def test_optional_item_exempt(self, template: Template, complete_session: ResponseSession) -> None:
        complete_session.clear_response("fa-3")
        check_submission(template, complete_session.snapshot())

    def test_missing_evidence_then_resubmit(self, template: Template, complete_session: ResponseSession) -> None:
        """Attaching the missing evidence is the only change needed to submit."""
        complete_session.remove_evidence("fa-2", 1)

        with pytest.raises(IncompleteSubmission) as exc_info:
            check_submission(template, complete_session.snapshot())

        assert exc_info.value.item_id == "fa-2"
        assert exc_info.value.reason == IncompleteSubmission.MISSING_EVIDENCE
        assert exc_info.value.required == 2
        assert exc_info.value.attached == 1

        complete_session.add_evidence("fa-2", StoredEvidence(path="p/again.jpg"))
        check_submission(template, complete_session.snapshot())

    def test_checklist_order_wins(self, template: Template, complete_session: ResponseSession) -> None:
        complete_session.remove_evidence("fa-2", 0)
        complete_session.remove_evidence("fs-2", 0)

        with pytest.raises(IncompleteSubmission) as exc_info:
            check_submission(template, complete_session.snapshot())

        assert exc_info.value.item_id == "fs-2"
