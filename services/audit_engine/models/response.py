"""
Response Models
===============

Auditor answers as a discriminated union, one case per response type, and
evidence attachments split into stored references and pending uploads.

Version: 0.1.0
"""

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field


class _Response(BaseModel):
    model_config = ConfigDict(frozen=True)


class PassFailResponse(_Response):
    type: Literal["pass_fail"] = "pass_fail"
    value: Literal["pass", "fail"]

    @property
    def failed(self) -> bool:
        return self.value == "fail"


class RatingResponse(_Response):
    type: Literal["rating"] = "rating"
    value: int = Field(..., ge=1, le=5)


class NumericResponse(_Response):
    type: Literal["numeric"] = "numeric"
    value: float = Field(..., allow_inf_nan=False)


class PhotoResponse(_Response):
    """Photo items are answered by their evidence; the caption is optional."""

    type: Literal["photo"] = "photo"
    caption: str | None = None


class TextResponse(_Response):
    type: Literal["text"] = "text"
    value: str


class ChecklistResponse(_Response):
    type: Literal["checklist"] = "checklist"
    value: dict[str, bool] = Field(default_factory=dict)


Response = Annotated[
    PassFailResponse
    | RatingResponse
    | NumericResponse
    | PhotoResponse
    | TextResponse
    | ChecklistResponse,
    Field(discriminator="type"),
]


class StoredEvidence(BaseModel):
    """Evidence already persisted by the evidence store (opaque path)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["stored"] = "stored"
    path: str


class PendingEvidence(BaseModel):
    """Evidence blob captured on device, awaiting upload."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["pending"] = "pending"
    filename: str
    size: int = Field(default=0, ge=0)
    content_type: str | None = None


EvidenceAttachment = Annotated[
    StoredEvidence | PendingEvidence,
    Field(discriminator="kind"),
]


class ItemState(BaseModel):
    """In-progress state of one checklist item."""

    model_config = ConfigDict(frozen=True)

    response: Response | None = None
    evidence: tuple[EvidenceAttachment, ...] = ()
    finding_note: str = ""

    @property
    def evidence_count(self) -> int:
        return len(self.evidence)

    @property
    def stored_paths(self) -> list[str]:
        return [e.path for e in self.evidence if isinstance(e, StoredEvidence)]

    @property
    def note(self) -> str:
        return self.finding_note.strip()


EMPTY_STATE = ItemState()
