"""AuditOps test suite."""
