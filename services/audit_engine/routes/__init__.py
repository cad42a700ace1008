"""
Audit Engine Routes
===================

API route handlers for the Audit Engine Service.
"""

from services.audit_engine.routes import audits, health_scores, templates


__all__ = ["audits", "health_scores", "templates"]
