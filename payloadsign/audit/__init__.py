"""Audit trail for signing operations."""

from payloadsign.audit.ledger import AuditEntry, AuditLedger

__all__ = ["AuditEntry", "AuditLedger"]
