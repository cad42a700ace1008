"""
Template Validation Service
===========================

Activation-time checks for checklist templates. The scoring engine trusts
its template, so everything that could make a score meaningless is caught
here and reported in one pass.

Checks:
- Payload parses (known response types, evidence levels, numeric bounds)
- Section weights are within 0-100 and sum to 100
- Item ids are unique across the template
- No empty sections
- Photo items require evidence
- Checklist items declare sub-items
- Type-specific fields only appear on their own item type

Version: 0.1.0
"""

from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from services.audit_engine.errors import InvalidTemplate
from services.audit_engine.models.template import (
    EvidenceRequirement,
    ResponseType,
    Template,
    TemplateStatus,
)
from shared.logging import get_logger


logger = get_logger(__name__)

WEIGHT_TOTAL = 100.0
WEIGHT_TOLERANCE = 0.01


def _parse(payload: Template | Mapping[str, Any]) -> Template:
    if isinstance(payload, Template):
        return payload

    try:
        return Template.model_validate(payload)
    except ValidationError as e:
        problems = []
        for error in e.errors():
            location = ".".join(str(part) for part in error["loc"])
            problems.append(f"{location}: {error['msg']}")
        template_id = payload.get("id") if isinstance(payload, Mapping) else None
        raise InvalidTemplate(problems, template_id=template_id) from e


def _collect_problems(template: Template) -> list[str]:
    problems: list[str] = []

    total = template.total_weight
    if abs(total - WEIGHT_TOTAL) > WEIGHT_TOLERANCE:
        problems.append(f"section weights sum to {total:g}, expected 100")

    seen: dict[str, str] = {}
    for section in template.ordered_sections():
        if not 0 <= section.weight <= WEIGHT_TOTAL:
            problems.append(
                f"section {section.id}: weight {section.weight:g} outside 0-100"
            )
        if not section.items:
            problems.append(f"section {section.id}: has no items")

        for item in section.ordered_items():
            if item.id in seen:
                problems.append(
                    f"item {item.id}: duplicated in sections {seen[item.id]} and {section.id}"
                )
            else:
                seen[item.id] = section.id

            if item.type == ResponseType.PHOTO and item.evidence_required == EvidenceRequirement.NONE:
                problems.append(f"item {item.id}: photo items must require evidence")

            if item.type == ResponseType.CHECKLIST:
                if not item.sub_items:
                    problems.append(f"item {item.id}: checklist item has no sub-items")
            elif item.sub_items:
                problems.append(f"item {item.id}: sub_items only apply to checklist items")

            if item.numeric_range is not None:
                if item.type != ResponseType.NUMERIC:
                    problems.append(
                        f"item {item.id}: numeric_range only applies to numeric items"
                    )
                rng = item.numeric_range
                if rng.min is not None and rng.max is not None and rng.min > rng.max:
                    problems.append(
                        f"item {item.id}: numeric range min {rng.min:g} exceeds max {rng.max:g}"
                    )

    return problems


def validate_template(payload: Template | Mapping[str, Any]) -> Template:
    """
    Parse and validate a template.

    Args:
        payload: Template instance or raw mapping (e.g. decoded JSON)

    Returns:
        The parsed template, unchanged

    Raises:
        InvalidTemplate: With every problem found
    """
    template = _parse(payload)
    problems = _collect_problems(template)

    if problems:
        logger.warning(
            "template_invalid",
            template_id=template.id,
            problem_count=len(problems),
        )
        raise InvalidTemplate(problems, template_id=template.id)

    return template


def activate_template(payload: Template | Mapping[str, Any]) -> Template:
    """Validate a template and return it with status `active`."""
    template = validate_template(payload)
    activated = template.model_copy(update={"status": TemplateStatus.ACTIVE})

    logger.info(
        "template_activated",
        template_id=activated.id,
        version=activated.version,
        sections=len(activated.sections),
    )

    return activated
