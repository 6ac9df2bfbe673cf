"""Schemas for orchestrator commands and outcomes."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from ..audit import OperationKind
from ..errors import LogError, SafeBackupError, exit_code_for
from ..fileops import BackupRecord

# Commands map one to one onto audited operation kinds
Command = OperationKind


class OperationState(str, Enum):
    """Per-invocation state machine of the orchestrator."""

    START = "start"
    VALIDATING = "validating"
    VALIDATED = "validated"
    REJECTED = "rejected"
    EXECUTING = "executing"
    LOGGING = "logging"
    DONE = "done"


@dataclass
class RunOptions:
    """Per-call options. None means use the configured policy."""

    overwrite: Optional[bool] = None
    force: Optional[bool] = None
    # Restore into a different file than the one backed up
    destination: Optional[str] = None


@dataclass
class OperationOutcome:
    """Result of one orchestrator invocation."""

    command: Command
    target: str
    success: bool = False
    record: Optional[BackupRecord] = None
    destination: Optional[Path] = None
    error: Optional[SafeBackupError] = None
    log_error: Optional[LogError] = None
    states: list[OperationState] = field(default_factory=list)

    @property
    def audited(self) -> bool:
        """Whether the audit entry for this invocation was written."""
        return self.log_error is None

    @property
    def error_kind(self) -> Optional[str]:
        """Dotted kind of the failure, if any."""
        if self.error is not None:
            return self.error.kind_name
        if self.log_error is not None:
            return self.log_error.kind_name
        return None

    @property
    def exit_code(self) -> int:
        """Process exit code for scripting."""
        if self.error is not None:
            return exit_code_for(self.error)
        return exit_code_for(self.log_error)

    @property
    def message(self) -> str:
        """Human-readable summary."""
        if self.error is not None:
            return str(self.error)
        verb = {
            Command.BACKUP: "Backed up",
            Command.RESTORE: "Restored",
            Command.DELETE: "Deleted backup of",
        }[self.command]
        return f"{verb} {self.target}"
