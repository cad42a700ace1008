"""
Checklist Template Models
=========================

Static definition of an audit: ordered sections with percentage weights,
each holding ordered items with a response type, criticality flag and
evidence requirement.

Templates are authored elsewhere and treated as immutable input here.

Version: 0.1.0
"""

from collections.abc import Iterator
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class EntityType(str, Enum):
    """Kinds of audited entities."""

    BRANCH = "branch"  # Retail outlet
    BCK = "bck"  # Central kitchen
    SUPPLIER = "supplier"


class ResponseType(str, Enum):
    """How an item is answered."""

    PASS_FAIL = "pass_fail"
    RATING = "rating"  # 1-5
    NUMERIC = "numeric"
    PHOTO = "photo"
    TEXT = "text"
    CHECKLIST = "checklist"  # Multiple sub-items


class EvidenceRequirement(str, Enum):
    """Minimum evidence attached to an item."""

    NONE = "none"
    OPTIONAL = "optional"
    REQUIRED_1 = "required_1"
    REQUIRED_2 = "required_2"

    @property
    def minimum(self) -> int:
        """Number of attachments needed to satisfy the requirement."""
        if self is EvidenceRequirement.REQUIRED_2:
            return 2
        if self is EvidenceRequirement.REQUIRED_1:
            return 1
        return 0

    @property
    def is_required(self) -> bool:
        return self.minimum > 0


class TemplateStatus(str, Enum):
    """Template lifecycle."""

    DRAFT = "draft"
    ACTIVE = "active"
    ARCHIVED = "archived"


class NumericRange(BaseModel):
    """Inclusive acceptable range for a numeric item."""

    model_config = ConfigDict(frozen=True)

    min: float | None = None
    max: float | None = None
    unit: str | None = None

    def contains(self, value: float) -> bool:
        if self.min is not None and value < self.min:
            return False
        if self.max is not None and value > self.max:
            return False
        return True


class Item(BaseModel):
    """A single checklist question."""

    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    type: ResponseType
    order: int = 0
    critical: bool = False
    evidence_required: EvidenceRequirement = EvidenceRequirement.NONE
    optional: bool = Field(
        default=False,
        description="Exempt from the completeness check on submission",
    )
    help_text: str = ""
    sub_items: tuple[str, ...] = Field(
        default=(),
        description="Sub-item labels (checklist items only)",
    )
    numeric_range: NumericRange | None = Field(
        default=None,
        description="Pass range (numeric items only); unscored when absent",
    )


class Section(BaseModel):
    """Weighted group of items."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    order: int = 0
    weight: float = Field(..., description="Percent of the overall score (0-100)")
    items: tuple[Item, ...] = ()

    def ordered_items(self) -> list[Item]:
        return sorted(self.items, key=lambda item: item.order)


class ScoringConfig(BaseModel):
    """Template-level pass/fail rules."""

    model_config = ConfigDict(frozen=True)

    pass_threshold: float = Field(default=70.0, ge=0, le=100)
    critical_fail_overrides_score: bool = True


class Template(BaseModel):
    """A versioned audit checklist."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    code: str = ""
    entity_type: EntityType
    version: int = 1
    status: TemplateStatus = TemplateStatus.DRAFT
    sections: tuple[Section, ...] = ()
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)

    def ordered_sections(self) -> list[Section]:
        return sorted(self.sections, key=lambda section: section.order)

    def iter_items(self) -> Iterator[tuple[Section, Item]]:
        """Yield (section, item) pairs in checklist order."""
        for section in self.ordered_sections():
            for item in section.ordered_items():
                yield section, item

    def item_index(self) -> dict[str, Item]:
        return {item.id: item for _, item in self.iter_items()}

    @property
    def total_weight(self) -> float:
        return sum(section.weight for section in self.sections)
