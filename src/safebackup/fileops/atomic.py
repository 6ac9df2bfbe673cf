"""Atomic backup, restore and delete.

Content is always staged in a uniquely named temp file beside its final
location, synced, then renamed into place. The rename is the only visible
state transition, so a reader of the destination sees either the old
complete file or the new complete file.
"""

import hashlib
import json
import logging
import os
import stat
import tempfile
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Callable, Iterator, Optional, TypeVar, Union

from ..audit import AuditEntry, AuditLogger, OperationKind
from ..config import DEFAULT_MAX_FILE_SIZE
from ..errors import (
    LogError,
    OpError,
    OpErrorKind,
    SafeBackupError,
    ValidationError,
    ValidationErrorKind,
    translate_os_error,
)
from ..validation import FilePath, PathValidator
from .schemas import BackupRecord

logger = logging.getLogger(__name__)

TEMP_PREFIX = ".safebackup-"
TEMP_SUFFIX = ".tmp"
BACKUP_SUFFIX = ".bak"
META_SUFFIX = ".meta"
CHUNK_SIZE = 1024 * 1024

T = TypeVar("T")


def is_temp_file(path: Path) -> bool:
    """Check whether a path looks like one of our staging files."""
    return path.name.startswith(TEMP_PREFIX) and path.name.endswith(TEMP_SUFFIX)


def meta_path_for(backup_path: Path) -> Path:
    """Sidecar metadata path for a stored backup."""
    return backup_path.with_name(backup_path.name + META_SUFFIX)


def sync_directory(directory: Path) -> None:
    """Flush a directory entry so a completed rename survives a crash."""
    if os.name != "posix":
        return
    try:
        fd = os.open(str(directory), os.O_RDONLY)
    except OSError as e:
        logger.warning("Cannot open %s to sync: %s", directory, e)
        return
    try:
        os.fsync(fd)
    except OSError as e:
        # Some filesystems refuse fsync on directories; the rename itself is done
        logger.warning("Directory sync failed for %s: %s", directory, e)
    finally:
        os.close(fd)


@contextmanager
def staged_file(dest: Path, mode: Optional[int] = None) -> Iterator[BinaryIO]:
    """Yield a temp file beside ``dest`` and rename it over ``dest`` on success.

    The temp name embeds the pid and a random suffix so concurrent writers
    never share a staging file. On any failure the temp file is removed and
    ``dest`` is left untouched.
    """
    fd, tmp_name = tempfile.mkstemp(
        prefix=f"{TEMP_PREFIX}{dest.name}.{os.getpid()}.",
        suffix=TEMP_SUFFIX,
        dir=str(dest.parent),
    )
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as handle:
            yield handle
            handle.flush()
            os.fsync(handle.fileno())
        if mode is not None:
            os.chmod(tmp_path, mode)
        os.replace(tmp_path, dest)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
    sync_directory(dest.parent)


def atomic_write_bytes(dest: Path, data: bytes, mode: Optional[int] = None) -> None:
    """Write ``data`` to ``dest`` through a staged temp file."""
    with staged_file(dest, mode=mode) as handle:
        handle.write(data)


class AtomicFileOps:
    """Performs backup, restore and delete with crash-safe semantics.

    Each public call appends exactly one audit entry, on success or failure.
    """

    def __init__(
        self,
        backup_root: Union[str, Path],
        audit: AuditLogger,
        validator: Optional[PathValidator] = None,
        allow_overwrite: bool = False,
        force_delete: bool = False,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
    ):
        """Initialize file operations.

        Args:
            backup_root: Directory where backups are stored
            audit: Audit logger receiving one entry per call
            validator: Validator used for confinement checks
            allow_overwrite: Default overwrite policy for backups
            force_delete: Default for treating a missing backup as deleted
            max_file_size: Largest file accepted, in bytes
        """
        self.backup_root = Path(backup_root)
        self.audit = audit
        self.validator = validator or PathValidator()
        self.allow_overwrite = allow_overwrite
        self.force_delete = force_delete
        self.max_file_size = max_file_size

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def backup(self, source: FilePath, overwrite: Optional[bool] = None) -> BackupRecord:
        """Store a snapshot of ``source`` under the backup root.

        Args:
            source: Validated file to back up
            overwrite: Replace an existing backup (defaults to the policy)

        Returns:
            BackupRecord describing the stored snapshot

        Raises:
            OpError: NOT_FOUND, ALREADY_EXISTS, TOO_LARGE, IO_FAILURE or
                PERMISSION_DENIED
            LogError: If the backup succeeded but could not be audited
        """
        return self._audited(
            OperationKind.BACKUP, source.name, lambda: self._backup(source, overwrite)
        )

    def restore(self, record: BackupRecord, destination: FilePath) -> None:
        """Replace ``destination`` with the content of a stored backup.

        Raises:
            OpError: NOT_FOUND, TOO_LARGE, CHECKSUM_MISMATCH, IO_FAILURE or
                PERMISSION_DENIED
            ValidationError: If the record no longer points inside the root
            LogError: If the restore succeeded but could not be audited
        """
        self._audited(
            OperationKind.RESTORE, destination.name, lambda: self._restore(record, destination)
        )

    def delete(self, record: BackupRecord, force: Optional[bool] = None) -> None:
        """Remove a stored backup and its metadata.

        With ``force`` an already-absent backup counts as deleted.

        Raises:
            OpError: NOT_FOUND (unless forced), IO_FAILURE or PERMISSION_DENIED
            ValidationError: If the record no longer points inside the root
            LogError: If the delete succeeded but could not be audited
        """
        self._audited(OperationKind.DELETE, record.name, lambda: self._delete(record, force))

    def backup_path_for(self, name: str) -> FilePath:
        """Validated storage location for the backup of ``name``."""
        return self.validator.validate(name + BACKUP_SUFFIX, self.backup_root)

    def expected_record(self, name: str) -> BackupRecord:
        """Record for where the backup of ``name`` would live.

        Used to address a backup whose metadata is missing.
        """
        return BackupRecord(name=name, backup_path=self.backup_path_for(name).path)

    # ------------------------------------------------------------------
    # Implementation
    # ------------------------------------------------------------------

    def _audited(self, operation: OperationKind, target: str, action: Callable[[], T]) -> T:
        """Run ``action`` and append exactly one audit entry for it."""
        try:
            result = action()
        except OSError as e:
            error = translate_os_error(e, e.filename or target)
            self._record_failure(operation, target, error)
            raise error from e
        except SafeBackupError as e:
            self._record_failure(operation, target, e)
            raise

        try:
            self.audit.record(AuditEntry.success(operation, target))
        except LogError as log_error:
            log_error.completed = result
            logger.error("%s of %s completed but was not audited: %s", operation.value, target, log_error)
            raise
        return result

    def _record_failure(
        self, operation: OperationKind, target: str, error: SafeBackupError
    ) -> None:
        try:
            self.audit.record(
                AuditEntry.failure(operation, target, str(error), error.kind_name)
            )
        except LogError as log_error:
            logger.error("Failed %s of %s was not audited: %s", operation.value, target, log_error)
            error.log_error = log_error

    def _backup(self, source: FilePath, overwrite: Optional[bool]) -> BackupRecord:
        overwrite = self.allow_overwrite if overwrite is None else overwrite
        target = self.backup_path_for(source.name)

        try:
            st = source.path.stat()
        except FileNotFoundError:
            raise OpError(OpErrorKind.NOT_FOUND, source.path, "Source file not found") from None
        if not stat.S_ISREG(st.st_mode):
            raise OpError(OpErrorKind.NOT_FOUND, source.path, "Source is not a regular file")
        if st.st_size > self.max_file_size:
            raise OpError(
                OpErrorKind.TOO_LARGE,
                source.path,
                f"File exceeds {self.max_file_size} bytes",
            )
        if target.path.exists() and not overwrite:
            raise OpError(OpErrorKind.ALREADY_EXISTS, target.path, "Backup already exists")

        self.backup_root.mkdir(parents=True, exist_ok=True)

        # A stale sidecar must not describe the new content
        meta_path = meta_path_for(target.path)
        meta_path.unlink(missing_ok=True)

        checksum, size = self._copy(source.path, target.path, expected_size=st.st_size)

        record = BackupRecord(
            name=source.name,
            backup_path=target.path,
            source_path=source.path,
            checksum=checksum,
            size_bytes=size,
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        self._write_meta(record)

        logger.info("Backed up %s to %s (%s)", source.path, target.path, record.size_human)
        return record

    def _restore(self, record: BackupRecord, destination: FilePath) -> None:
        backup = self._confine_record(record).path

        try:
            st = backup.stat()
        except FileNotFoundError:
            raise OpError(OpErrorKind.NOT_FOUND, record.backup_path, "Backup not found") from None
        if not stat.S_ISREG(st.st_mode):
            raise OpError(OpErrorKind.NOT_FOUND, record.backup_path, "Backup is not a regular file")
        if st.st_size > self.max_file_size:
            raise OpError(
                OpErrorKind.TOO_LARGE,
                record.backup_path,
                f"Backup exceeds {self.max_file_size} bytes",
            )

        # Keep the permissions of a file being replaced
        mode = None
        try:
            mode = stat.S_IMODE(destination.path.stat().st_mode)
        except FileNotFoundError:
            pass

        self._copy(
            backup,
            destination.path,
            expected_size=st.st_size,
            expected_checksum=record.checksum,
            mode=mode,
        )
        logger.info("Restored %s from %s", destination.path, backup)

    def _delete(self, record: BackupRecord, force: Optional[bool]) -> None:
        force = self.force_delete if force is None else force

        # Re-check confinement right before removal
        confined = self._confine_record(record)
        entry = confined.root / confined.name

        try:
            entry.unlink()
        except FileNotFoundError:
            if not force:
                raise OpError(OpErrorKind.NOT_FOUND, entry, "Backup not found") from None
            logger.info("Backup already absent: %s", entry)
        meta_path_for(entry).unlink(missing_ok=True)

        logger.info("Deleted backup %s", entry)

    def _confine_record(self, record: BackupRecord) -> FilePath:
        """Re-validate that a record still points inside the backup root."""
        name = record.backup_path.name
        if record.backup_path.parent.resolve() != self.backup_root.resolve():
            raise ValidationError(
                ValidationErrorKind.ESCAPES_ROOT,
                str(record.backup_path),
                f"Backup is not stored in {self.backup_root}",
            )
        return self.validator.validate(name, self.backup_root)

    def _copy(
        self,
        src: Path,
        dest: Path,
        expected_size: Optional[int] = None,
        expected_checksum: Optional[str] = None,
        mode: Optional[int] = None,
    ) -> tuple[str, int]:
        """Copy ``src`` over ``dest`` atomically, returning (sha256, size)."""
        digest = hashlib.sha256()
        size = 0

        with staged_file(dest, mode=mode) as handle:
            with open(src, "rb") as reader:
                for chunk in iter(lambda: reader.read(CHUNK_SIZE), b""):
                    digest.update(chunk)
                    handle.write(chunk)
                    size += len(chunk)

            if expected_size is not None and size != expected_size:
                raise OpError(
                    OpErrorKind.IO_FAILURE,
                    src,
                    f"Copied {size} of {expected_size} bytes",
                )
            if expected_checksum and digest.hexdigest() != expected_checksum:
                raise OpError(
                    OpErrorKind.CHECKSUM_MISMATCH,
                    src,
                    "Content does not match recorded checksum",
                )

        return digest.hexdigest(), size

    def _write_meta(self, record: BackupRecord) -> None:
        """Store the record beside its backup.

        The backup is already complete at this point; a missing sidecar is
        rebuilt from the file by the catalog.
        """
        data = json.dumps(record.to_dict(), indent=2).encode("utf-8")
        try:
            atomic_write_bytes(meta_path_for(record.backup_path), data)
        except OSError as e:
            logger.warning("Could not write metadata for %s: %s", record.backup_path, e)
