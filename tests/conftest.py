"""
Test Configuration
==================

Pytest fixtures for AuditOps tests.
"""

import os
from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Set test environment
os.environ["ENVIRONMENT"] = "testing"
os.environ["AUDIT_STORE_BACKEND"] = "memory"
os.environ["AUDIT_WATERMARK_BACKEND"] = "memory"


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Use asyncio backend for async tests."""
    return "asyncio"


@pytest_asyncio.fixture
async def audit_engine_client() -> AsyncGenerator[AsyncClient, None]:
    """Create test client for Audit Engine Service."""
    from services.audit_engine.main import app

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def now() -> datetime:
    """Fixed evaluation time."""
    return datetime(2025, 6, 30, 12, 0, tzinfo=UTC)


@pytest.fixture
def template_payload() -> dict[str, Any]:
    """Branch checklist: Food Safety (60%) and Facility (40%)."""
    return {
        "id": "tpl-branch-std",
        "name": "Branch Standard Audit",
        "code": "BR-STD",
        "entity_type": "branch",
        "version": 3,
        "sections": [
            {
                "id": "food_safety",
                "name": "Food Safety",
                "order": 1,
                "weight": 60,
                "items": [
                    {
                        "id": "fs-1",
                        "text": "Hand wash stations stocked",
                        "type": "pass_fail",
                        "order": 1,
                        "critical": True,
                    },
                    {
                        "id": "fs-2",
                        "text": "Walk-in fridge temperature",
                        "type": "numeric",
                        "order": 2,
                        "evidence_required": "required_1",
                        "numeric_range": {"min": 0, "max": 5, "unit": "C"},
                    },
                    {
                        "id": "fs-3",
                        "text": "Closing cleaning checklist",
                        "type": "checklist",
                        "order": 3,
                        "sub_items": ["floors", "counters", "drains"],
                    },
                ],
            },
            {
                "id": "facility",
                "name": "Facility",
                "order": 2,
                "weight": 40,
                "items": [
                    {
                        "id": "fa-1",
                        "text": "Overall dining area cleanliness",
                        "type": "rating",
                        "order": 1,
                    },
                    {
                        "id": "fa-2",
                        "text": "Dry storage room",
                        "type": "photo",
                        "order": 2,
                        "evidence_required": "required_2",
                    },
                    {
                        "id": "fa-3",
                        "text": "Auditor comments",
                        "type": "text",
                        "order": 3,
                        "optional": True,
                    },
                ],
            },
        ],
        "scoring": {"pass_threshold": 70},
    }


@pytest.fixture
def two_section_payload() -> dict[str, Any]:
    """Two sections weighted 60/40: two pass/fail items and one rating item."""
    return {
        "id": "tpl-60-40",
        "name": "Sixty Forty",
        "entity_type": "branch",
        "sections": [
            {
                "id": "a",
                "name": "Section A",
                "order": 1,
                "weight": 60,
                "items": [
                    {"id": "a-1", "text": "Floor dry", "type": "pass_fail", "order": 1},
                    {"id": "a-2", "text": "Bins covered", "type": "pass_fail", "order": 2},
                ],
            },
            {
                "id": "b",
                "name": "Section B",
                "order": 2,
                "weight": 40,
                "items": [
                    {"id": "b-1", "text": "Staff uniforms", "type": "rating", "order": 1},
                ],
            },
        ],
        "scoring": {"pass_threshold": 70},
    }


@pytest.fixture
def template(template_payload: dict[str, Any]):
    """Validated branch template."""
    from services.audit_engine.services.template import validate_template

    return validate_template(template_payload)


@pytest.fixture
def two_section_template(two_section_payload: dict[str, Any]):
    from services.audit_engine.services.template import validate_template

    return validate_template(two_section_payload)


@pytest.fixture
def complete_session(template):
    """Session with every item answered and all evidence attached."""
    from services.audit_engine.models.response import StoredEvidence
    from services.audit_engine.services.session import ResponseSession

    session = ResponseSession(template)
    session.set_response("fs-1", "pass")
    session.set_response("fs-2", 3.5)
    session.add_evidence("fs-2", StoredEvidence(path="audits/a1/fs-2/thermo.jpg"))
    session.set_response("fs-3", {"floors": True, "counters": True, "drains": True})
    session.set_response("fa-1", 5)
    session.add_evidence("fa-2", StoredEvidence(path="audits/a1/fa-2/1.jpg"))
    session.add_evidence("fa-2", StoredEvidence(path="audits/a1/fa-2/2.jpg"))
    session.set_response("fa-3", "All good")
    return session


@pytest.fixture
def branch_ref():
    from services.audit_engine.models.audit import EntityRef

    return EntityRef(type="branch", id="br-001")


@pytest.fixture
def in_progress_audit(branch_ref, now: datetime):
    from services.audit_engine.models.audit import Audit, AuditStatus

    return Audit(
        id="audit-001",
        code="AUD-2025-0001",
        entity=branch_ref,
        template_id="tpl-branch-std",
        auditor_id="user-auditor",
        status=AuditStatus.IN_PROGRESS,
        started_at=now,
    )
