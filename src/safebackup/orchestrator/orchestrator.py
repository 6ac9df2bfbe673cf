"""Backup orchestration.

The single entry point for callers: validates the raw filename, runs the
file operation and returns a uniform outcome. Every invocation produces
exactly one audit entry, including rejected ones.
"""

import logging
from typing import Optional, Union

from ..audit import AuditEntry, AuditLogger
from ..config import Config
from ..errors import LogError, SafeBackupError, ValidationError
from ..fileops import AtomicFileOps, BackupCatalog, BackupRecord
from ..validation import FilePath, PathValidator
from .schemas import Command, OperationOutcome, OperationState, RunOptions

logger = logging.getLogger(__name__)


class BackupOrchestrator:
    """Sequences validation, execution and audit logging.

    Transient failures are reported, never retried; each call is
    self-contained so the caller may simply run it again.
    """

    def __init__(
        self,
        config: Config,
        audit: Optional[AuditLogger] = None,
        ops: Optional[AtomicFileOps] = None,
        catalog: Optional[BackupCatalog] = None,
        validator: Optional[PathValidator] = None,
    ):
        """Initialize the orchestrator.

        Args:
            config: Explicit configuration (roots and policies)
            audit: Audit logger, built from config if omitted
            ops: File operations, built from config if omitted
            catalog: Backup catalog, built from config if omitted
            validator: Filename validator shared by all components
        """
        self.config = config
        self.validator = validator or PathValidator()
        self.audit = audit or AuditLogger(config.audit_log_path, lock_timeout=config.lock_timeout)
        self.ops = ops or AtomicFileOps(
            config.backup_dir,
            self.audit,
            validator=self.validator,
            allow_overwrite=config.allow_overwrite,
            force_delete=config.force_delete,
            max_file_size=config.max_file_size,
        )
        self.catalog = catalog or BackupCatalog(config.backup_dir, self.validator)

    def run(
        self,
        command: Union[Command, str],
        raw_path: str,
        options: Optional[RunOptions] = None,
    ) -> OperationOutcome:
        """Run one command against a raw, user-supplied filename.

        Args:
            command: backup, restore or delete
            raw_path: Filename as typed by the user
            options: Per-call overrides of the configured policies

        Returns:
            OperationOutcome with the result or a typed error
        """
        command = Command(command)
        options = options or RunOptions()
        outcome = OperationOutcome(command=command, target=raw_path)
        self._enter(outcome, OperationState.START)

        self._enter(outcome, OperationState.VALIDATING)
        try:
            source, destination, record = self._validate(command, raw_path, options)
        except ValidationError as e:
            self._enter(outcome, OperationState.REJECTED)
            outcome.error = e
            self._enter(outcome, OperationState.LOGGING)
            self._record_rejection(outcome, e)
            return self._finish(outcome)

        self._enter(outcome, OperationState.VALIDATED)
        self._enter(outcome, OperationState.EXECUTING)
        try:
            if command == Command.BACKUP:
                outcome.record = self.ops.backup(source, overwrite=options.overwrite)
                outcome.destination = outcome.record.backup_path
            elif command == Command.RESTORE:
                outcome.record = record
                outcome.destination = destination.path
                self.ops.restore(record, destination)
            else:
                outcome.record = record
                self.ops.delete(record, force=options.force)
            outcome.success = True
        except LogError as e:
            # The file operation completed; only its audit entry is missing
            outcome.success = True
            outcome.log_error = e
            if isinstance(e.completed, BackupRecord):
                outcome.record = e.completed
                outcome.destination = e.completed.backup_path
        except SafeBackupError as e:
            outcome.error = e
            outcome.log_error = e.log_error

        # The file operation appends its own audit entry before returning
        self._enter(outcome, OperationState.LOGGING)
        return self._finish(outcome)

    def backup(self, raw_path: str, overwrite: Optional[bool] = None) -> OperationOutcome:
        """Back up a file by name."""
        return self.run(Command.BACKUP, raw_path, RunOptions(overwrite=overwrite))

    def restore(self, raw_path: str, destination: Optional[str] = None) -> OperationOutcome:
        """Restore a file by name, optionally into another file."""
        return self.run(Command.RESTORE, raw_path, RunOptions(destination=destination))

    def delete(self, raw_path: str, force: Optional[bool] = None) -> OperationOutcome:
        """Delete the backup of a file by name."""
        return self.run(Command.DELETE, raw_path, RunOptions(force=force))

    def _validate(
        self, command: Command, raw_path: str, options: RunOptions
    ) -> tuple[FilePath, FilePath, Optional[BackupRecord]]:
        """Validate every path the command will touch."""
        source = self.validator.validate(raw_path, self.config.work_dir)
        # The backup name carries a suffix, so check it fits as well
        self.ops.backup_path_for(source.name)

        destination = source
        record = None
        if command == Command.RESTORE and options.destination is not None:
            destination = self.validator.validate(options.destination, self.config.work_dir)
        if command in (Command.RESTORE, Command.DELETE):
            record = self.catalog.find(source.name) or self.ops.expected_record(source.name)
        return source, destination, record

    def _record_rejection(self, outcome: OperationOutcome, error: ValidationError) -> None:
        try:
            self.audit.record(
                AuditEntry.failure(outcome.command, outcome.target, str(error), error.kind_name)
            )
        except LogError as e:
            logger.error("Rejected %s was not audited: %s", outcome.command.value, e)
            error.log_error = e
            outcome.log_error = e

    def _enter(self, outcome: OperationOutcome, state: OperationState) -> None:
        outcome.states.append(state)
        logger.debug("%s %r: %s", outcome.command.value, outcome.target, state.value)

    def _finish(self, outcome: OperationOutcome) -> OperationOutcome:
        self._enter(outcome, OperationState.DONE)
        if outcome.error is not None:
            logger.warning("%s failed: %s", outcome.command.value, outcome.error)
        elif outcome.log_error is not None:
            logger.warning("%s succeeded without audit: %s", outcome.command.value, outcome.log_error)
        else:
            logger.info(outcome.message)
        return outcome
