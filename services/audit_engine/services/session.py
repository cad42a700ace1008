"""
Response Session
================

In-progress answers for one audit. Each item's state is an immutable
`ItemState`; every mutation replaces the entry, so a snapshot handed to the
scoring engine can never change underneath it.

Version: 0.1.0
"""

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from numbers import Real
from types import MappingProxyType
from typing import Any

from pydantic import ValidationError

from services.audit_engine.errors import InvalidResponseType, UnknownItem
from services.audit_engine.models.response import (
    EMPTY_STATE,
    ChecklistResponse,
    EvidenceAttachment,
    ItemState,
    NumericResponse,
    PassFailResponse,
    PendingEvidence,
    PhotoResponse,
    RatingResponse,
    StoredEvidence,
    TextResponse,
)
from services.audit_engine.models.template import Item, ResponseType, Template
from shared.logging import get_logger


logger = get_logger(__name__)

Snapshot = Mapping[str, ItemState]

_VARIANTS = {
    ResponseType.PASS_FAIL: PassFailResponse,
    ResponseType.RATING: RatingResponse,
    ResponseType.NUMERIC: NumericResponse,
    ResponseType.PHOTO: PhotoResponse,
    ResponseType.TEXT: TextResponse,
    ResponseType.CHECKLIST: ChecklistResponse,
}


@dataclass
class CompletionStats:
    """Progress of a session."""

    answered: int
    total: int
    percentage: int  # Rounded to a whole percent
    unanswered_sections: list[str] = field(default_factory=list)


# =============================================================================
# Coercion
# =============================================================================


def coerce_response(item: Item, value: Any):
    """
    Turn a response variant or a raw value into the variant for `item`.

    Raw values accepted per type:
    - pass_fail: "pass" / "fail" or a bool
    - rating: int 1-5
    - numeric: finite int or float
    - photo: None or a caption string
    - text: str
    - checklist: mapping of declared sub-item -> bool

    Raises:
        InvalidResponseType: If the value does not fit the item's type
    """
    expected = _VARIANTS[item.type]

    if isinstance(value, tuple(_VARIANTS.values())):
        if not isinstance(value, expected):
            raise InvalidResponseType(item.id, item.type.value, f"got {value.type}")
        response = value
    else:
        response = _from_raw(item, value)

    if isinstance(response, ChecklistResponse):
        unknown = sorted(set(response.value) - set(item.sub_items))
        if unknown:
            raise InvalidResponseType(
                item.id, item.type.value, f"unknown sub-items {', '.join(unknown)}"
            )

    return response


def _from_raw(item: Item, value: Any):
    kind = item.type.value

    if isinstance(value, Mapping) and "type" in value:
        if value["type"] != kind:
            raise InvalidResponseType(item.id, kind, f"got {value['type']}")
        try:
            return _VARIANTS[item.type].model_validate(value)
        except ValidationError as e:
            raise InvalidResponseType(item.id, kind, str(e.errors()[0]["msg"])) from e

    try:
        if item.type == ResponseType.PASS_FAIL:
            if isinstance(value, bool):
                return PassFailResponse(value="pass" if value else "fail")
            if isinstance(value, str):
                return PassFailResponse(value=value.strip().lower())

        elif item.type == ResponseType.RATING:
            if isinstance(value, int) and not isinstance(value, bool):
                return RatingResponse(value=value)

        elif item.type == ResponseType.NUMERIC:
            if isinstance(value, Real) and not isinstance(value, bool):
                return NumericResponse(value=float(value))

        elif item.type == ResponseType.PHOTO:
            if value is None or isinstance(value, str):
                return PhotoResponse(caption=value)

        elif item.type == ResponseType.TEXT:
            if isinstance(value, str):
                return TextResponse(value=value)

        elif item.type == ResponseType.CHECKLIST:
            if isinstance(value, Mapping) and all(isinstance(v, bool) for v in value.values()):
                return ChecklistResponse(value=dict(value))

    except ValidationError as e:
        raise InvalidResponseType(item.id, kind, str(e.errors()[0]["msg"])) from e

    raise InvalidResponseType(item.id, kind, f"got {type(value).__name__}")


# =============================================================================
# Session
# =============================================================================


class ResponseSession:
    """
    Mutable holder of per-item state for one audit execution.

    Example:
        session = ResponseSession(template)
        session.set_response("temp-1", 3.5)
        session.add_evidence("photo-1", StoredEvidence(path="a/b.jpg"))
        result = scoring.score_audit(template, session.snapshot())
    """

    def __init__(self, template: Template) -> None:
        self.template = template
        self._items = template.item_index()
        self._states: dict[str, ItemState] = {}
        self._saved_signature = self._signature()

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def _item(self, item_id: str) -> Item:
        try:
            return self._items[item_id]
        except KeyError:
            raise UnknownItem(item_id) from None

    def state(self, item_id: str) -> ItemState:
        self._item(item_id)
        return self._states.get(item_id, EMPTY_STATE)

    def _replace(self, item_id: str, **changes: Any) -> ItemState:
        new_state = self.state(item_id).model_copy(update=changes)
        self._states[item_id] = new_state
        return new_state

    # -------------------------------------------------------------------------
    # Responses
    # -------------------------------------------------------------------------

    def set_response(self, item_id: str, value: Any) -> ItemState:
        """Set an item's response; the session is unchanged on error."""
        item = self._item(item_id)
        response = coerce_response(item, value)
        return self._replace(item_id, response=response)

    def clear_response(self, item_id: str) -> ItemState:
        return self._replace(item_id, response=None)

    def set_finding_note(self, item_id: str, note: str) -> ItemState:
        return self._replace(item_id, finding_note=note)

    # -------------------------------------------------------------------------
    # Evidence
    # -------------------------------------------------------------------------

    def add_evidence(self, item_id: str, attachment: EvidenceAttachment) -> ItemState:
        """
        Attach evidence to an item.

        Photo items are answered by their evidence, so the first attachment
        also records an empty photo response.
        """
        item = self._item(item_id)
        current = self.state(item_id)
        changes: dict[str, Any] = {"evidence": (*current.evidence, attachment)}
        if item.type == ResponseType.PHOTO and current.response is None:
            changes["response"] = PhotoResponse()
        return self._replace(item_id, **changes)

    def remove_evidence(self, item_id: str, index: int) -> ItemState:
        """Remove the attachment at `index`. Raises IndexError when out of range."""
        evidence = list(self.state(item_id).evidence)
        if not 0 <= index < len(evidence):
            raise IndexError(f"item {item_id} has no evidence at index {index}")
        del evidence[index]
        return self._replace(item_id, evidence=tuple(evidence))

    def pending_uploads(self) -> list[tuple[str, int, PendingEvidence]]:
        """Pending blobs in checklist order as (item_id, index, blob)."""
        pending = []
        for _, item in self.template.iter_items():
            for index, attachment in enumerate(self._states.get(item.id, EMPTY_STATE).evidence):
                if isinstance(attachment, PendingEvidence):
                    pending.append((item.id, index, attachment))
        return pending

    def mark_uploaded(self, item_id: str, index: int, path: str) -> ItemState:
        """Replace a pending blob with the stored reference it was uploaded to."""
        evidence = list(self.state(item_id).evidence)
        if not 0 <= index < len(evidence):
            raise IndexError(f"item {item_id} has no evidence at index {index}")
        if not isinstance(evidence[index], PendingEvidence):
            raise ValueError(f"evidence {index} of item {item_id} is already stored")
        evidence[index] = StoredEvidence(path=path)
        return self._replace(item_id, evidence=tuple(evidence))

    # -------------------------------------------------------------------------
    # Progress
    # -------------------------------------------------------------------------

    def completion_stats(self) -> CompletionStats:
        """
        Count answered items.

        An item is answered when it has a response and enough evidence for
        its requirement.
        """
        total = 0
        answered = 0
        unanswered_sections = []

        for section in self.template.ordered_sections():
            section_answered = 0
            for item in section.ordered_items():
                total += 1
                state = self._states.get(item.id, EMPTY_STATE)
                if state.response is None:
                    continue
                if state.evidence_count < item.evidence_required.minimum:
                    continue
                section_answered += 1

            answered += section_answered
            if section_answered == 0:
                unanswered_sections.append(section.id)

        return CompletionStats(
            answered=answered,
            total=total,
            percentage=round(answered / total * 100) if total else 0,
            unanswered_sections=unanswered_sections,
        )

    def snapshot(self) -> Snapshot:
        """Read-only view of the current states, safe to hand to the engine."""
        return MappingProxyType(dict(self._states))

    # -------------------------------------------------------------------------
    # Drafts
    # -------------------------------------------------------------------------

    def to_draft(self) -> dict[str, Any]:
        """JSON-compatible payload for draft persistence."""
        return {
            "template_id": self.template.id,
            "template_version": self.template.version,
            "items": {
                item_id: state.model_dump(mode="json")
                for item_id, state in sorted(self._states.items())
            },
        }

    @classmethod
    def from_draft(cls, template: Template, draft: Mapping[str, Any]) -> "ResponseSession":
        """Restore a session saved with `to_draft`."""
        session = cls(template)
        for item_id, payload in (draft.get("items") or {}).items():
            item = session._item(item_id)
            state = ItemState.model_validate(payload)
            if state.response is not None:
                state = state.model_copy(
                    update={"response": coerce_response(item, state.response)}
                )
            session._states[item_id] = state

        session.mark_saved()
        logger.debug(
            "draft_restored",
            template_id=template.id,
            items=len(session._states),
        )
        return session

    def _signature(self) -> str:
        return json.dumps(
            {k: v.model_dump(mode="json") for k, v in sorted(self._states.items())},
            sort_keys=True,
        )

    def mark_saved(self) -> None:
        """Record the current state as persisted."""
        self._saved_signature = self._signature()

    @property
    def has_unsaved_changes(self) -> bool:
        return self._signature() != self._saved_signature
