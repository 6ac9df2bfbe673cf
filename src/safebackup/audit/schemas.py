"""Schemas for audit trail entries."""

import os
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

MAX_TARGET_LENGTH = 512
MAX_REASON_LENGTH = 1024


class OperationKind(str, Enum):
    """Kind of audited operation."""

    BACKUP = "backup"
    RESTORE = "restore"
    DELETE = "delete"


class AuditOutcome(str, Enum):
    """Outcome of an audited operation."""

    SUCCESS = "success"
    FAILURE = "failure"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEntry(BaseModel):
    """One line of the audit trail. Immutable once created."""

    model_config = {"frozen": True}

    timestamp: datetime = Field(default_factory=_utcnow)
    operation: OperationKind
    target: str
    outcome: AuditOutcome
    reason: Optional[str] = None
    error_kind: Optional[str] = None
    pid: int = Field(default_factory=os.getpid)

    @field_validator("timestamp")
    @classmethod
    def ensure_aware(cls, v: datetime) -> datetime:
        """Naive timestamps are taken as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @field_validator("target")
    @classmethod
    def truncate_target(cls, v: str) -> str:
        """Keep hostile input from bloating the log."""
        if len(v) > MAX_TARGET_LENGTH:
            return v[:MAX_TARGET_LENGTH] + "..."
        return v

    @field_validator("reason")
    @classmethod
    def truncate_reason(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and len(v) > MAX_REASON_LENGTH:
            return v[:MAX_REASON_LENGTH] + "..."
        return v

    @classmethod
    def success(cls, operation: OperationKind, target: str) -> "AuditEntry":
        """Create a success entry stamped now."""
        return cls(operation=operation, target=target, outcome=AuditOutcome.SUCCESS)

    @classmethod
    def failure(
        cls,
        operation: OperationKind,
        target: str,
        reason: str,
        error_kind: Optional[str] = None,
    ) -> "AuditEntry":
        """Create a failure entry stamped now."""
        return cls(
            operation=operation,
            target=target,
            outcome=AuditOutcome.FAILURE,
            reason=reason,
            error_kind=error_kind,
        )

    @property
    def succeeded(self) -> bool:
        return self.outcome == AuditOutcome.SUCCESS

    def to_line(self) -> str:
        """Serialize to a single JSON line (newline included)."""
        return self.model_dump_json() + "\n"

    @classmethod
    def from_line(cls, line: str) -> "AuditEntry":
        """Parse one line of the audit trail."""
        return cls.model_validate_json(line)
