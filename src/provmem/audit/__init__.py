"""Audit subsystem — async JSONL event logging."""

from provmem.audit.schemas import AuditEvent
from provmem.audit.schemas import AuditEventType
from provmem.audit.store import AuditLogger

__all__ = [
    "AuditEvent",
    "AuditEventType",
    "AuditLogger",
]
