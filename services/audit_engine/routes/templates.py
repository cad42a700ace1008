"""
Template Routes
===============

API endpoint for checklist template validation and activation.

Version: 0.1.0
"""

from typing import Any

from fastapi import APIRouter, Body

from services.audit_engine.models.api import TemplateValidationResponse
from services.audit_engine.services.template import activate_template, validate_template
from shared.logging import get_logger


logger = get_logger(__name__)

router = APIRouter()


@router.post("/validate", response_model=TemplateValidationResponse)
async def validate(
    payload: dict[str, Any] = Body(...),
    activate: bool = False,
) -> TemplateValidationResponse:
    """
    Validate a template payload.

    With `activate=true` the returned template carries status `active`.
    Problems are reported as a 422 listing every issue found.
    """
    template = activate_template(payload) if activate else validate_template(payload)
    return TemplateValidationResponse(valid=True, template=template)
