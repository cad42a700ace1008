"""
AuditOps Services
=================

Microservices for the AuditOps food-safety audit platform.

Services:
- audit_engine: Checklist scoring, findings and CAPA workflow, entity health scores
"""

__all__ = [
    "audit_engine",
]
