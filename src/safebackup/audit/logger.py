"""Append-only audit trail.

Entries are stored as JSON Lines. Each append is a single write on an
O_APPEND descriptor, synced to disk, and serialized across processes
with a lock file so concurrent writers never interleave.
"""

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional, Union

from filelock import FileLock, Timeout as FileLockTimeout

from ..errors import LogError
from .schemas import AuditEntry

logger = logging.getLogger(__name__)

# Block size for reading the log backwards
TAIL_BYTES = 8192
LOG_FILE_MODE = 0o600


class AuditLogger:
    """Durable, append-only audit logger.

    Owns the log sink for the lifetime of the process. Failures to write
    are raised as LogError, never swallowed.
    """

    def __init__(self, log_path: Union[str, Path], lock_timeout: float = 10.0):
        """Initialize the audit logger.

        Args:
            log_path: Path of the JSON Lines audit file
            lock_timeout: Seconds to wait for the cross-process lock
        """
        self.log_path = Path(log_path)
        self.lock_path = self.log_path.with_suffix(self.log_path.suffix + ".lock")
        self.lock_timeout = lock_timeout
        self._lock = FileLock(str(self.lock_path), timeout=lock_timeout)

    def record(self, entry: AuditEntry) -> AuditEntry:
        """Append an entry to the audit trail.

        The entry's timestamp is clamped so that timestamps in the log never
        decrease, even across processes.

        Args:
            entry: Entry to append

        Returns:
            The entry as written

        Raises:
            LogError: If the log cannot be written
        """
        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            with self._lock:
                last = self._last_timestamp()
                if last is not None and entry.timestamp < last:
                    entry = entry.model_copy(update={"timestamp": last})
                self._append(entry.to_line().encode("utf-8"))
        except FileLockTimeout:
            raise LogError(self.log_path, f"timed out waiting for {self.lock_path}") from None
        except OSError as e:
            raise LogError(self.log_path, e.strerror or str(e)) from e

        logger.debug(
            "Audit: %s %s %s", entry.operation.value, entry.target, entry.outcome.value
        )
        return entry

    def read_entries(self) -> list[AuditEntry]:
        """Read every entry in append order."""
        return list(self.iter_entries())

    def iter_entries(self) -> Iterator[AuditEntry]:
        """Iterate entries in append order, skipping unreadable lines."""
        if not self.log_path.exists():
            return
        with open(self.log_path, "r", encoding="utf-8") as f:
            for lineno, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    yield AuditEntry.from_line(line)
                except ValueError:
                    logger.warning("Unreadable audit line %d in %s", lineno, self.log_path)

    def tail(self, count: int = 20) -> list[AuditEntry]:
        """Get the last ``count`` entries."""
        if count <= 0:
            return []
        return self.read_entries()[-count:]

    def _append(self, data: bytes) -> None:
        """Write ``data`` with one write call and sync it."""
        fd = os.open(
            str(self.log_path),
            os.O_WRONLY | os.O_APPEND | os.O_CREAT,
            LOG_FILE_MODE,
        )
        try:
            written = os.write(fd, data)
            if written != len(data):
                raise OSError(f"short write to audit log ({written} of {len(data)} bytes)")
            os.fsync(fd)
        finally:
            os.close(fd)

    def _last_timestamp(self) -> Optional[datetime]:
        """Timestamp of the last readable entry, or None if there is none.

        Reads the log backwards in TAIL_BYTES blocks, so a record longer
        than one block is still found.
        """
        try:
            f = open(self.log_path, "rb")
        except FileNotFoundError:
            return None

        with f:
            f.seek(0, os.SEEK_END)
            end = f.tell()
            pending = b""
            while end > 0:
                start = max(0, end - TAIL_BYTES)
                f.seek(start)
                lines = (f.read(end - start) + pending).splitlines()
                end = start

                # The first line may continue in the previous block
                pending = lines.pop(0) if start > 0 and lines else b""
                for line in reversed(lines):
                    timestamp = self._parse_timestamp(line)
                    if timestamp is not None:
                        return timestamp

        return None

    def _parse_timestamp(self, line: bytes) -> Optional[datetime]:
        line = line.strip()
        if not line:
            return None
        try:
            return AuditEntry.from_line(line.decode("utf-8")).timestamp
        except ValueError:
            # Damaged record
            return None
