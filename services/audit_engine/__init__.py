"""
Audit Engine Service
====================

Audit scoring and entity health-score service.

Features:
- Checklist template validation and activation
- Response sessions with evidence tracking and drafts
- Weighted scoring with critical-fail override and submission gate
- Finding and CAPA derivation
- Audit and CAPA workflow
- Decaying, component-weighted entity health scores
- Time-gated fleet-wide recomputation

Port: 8010
"""

__version__ = "0.1.0"
