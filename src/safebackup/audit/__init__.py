"""Append-only audit trail."""

from .logger import AuditLogger
from .schemas import AuditEntry, AuditOutcome, OperationKind

__all__ = [
    "AuditEntry",
    "AuditLogger",
    "AuditOutcome",
    "OperationKind",
]
