"""Single entry point sequencing validation, file operations and audit."""

from .orchestrator import BackupOrchestrator
from .schemas import Command, OperationOutcome, OperationState, RunOptions

__all__ = [
    "BackupOrchestrator",
    "Command",
    "OperationOutcome",
    "OperationState",
    "RunOptions",
]
