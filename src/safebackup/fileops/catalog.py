"""Backup catalog.

Locates, lists and verifies stored backups, and finds staging files
left behind by interrupted operations.
"""

import hashlib
import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from ..errors import ValidationError
from ..validation import PathValidator
from .atomic import BACKUP_SUFFIX, CHUNK_SIZE, is_temp_file, meta_path_for
from .schemas import BackupRecord

logger = logging.getLogger(__name__)


class BackupCatalog:
    """Read-only view of the backup root, plus orphan cleanup."""

    def __init__(
        self,
        backup_root: Union[str, Path],
        validator: Optional[PathValidator] = None,
    ):
        """Initialize the catalog.

        Args:
            backup_root: Directory where backups are stored
            validator: Validator used to confine lookups
        """
        self.backup_root = Path(backup_root)
        self.validator = validator or PathValidator()

    def find(self, name: str) -> Optional[BackupRecord]:
        """Find the backup of a file by its name.

        Reads the metadata sidecar when present. A backup without one is
        described from the file itself, without a checksum.

        Returns:
            BackupRecord, or None if no backup exists

        Raises:
            ValidationError: If ``name`` is not an acceptable filename
        """
        backup_path = self.validator.validate(name + BACKUP_SUFFIX, self.backup_root).path
        if not backup_path.is_file():
            return None

        record = self._read_meta(backup_path)
        if record is not None and record.name == name:
            return record
        return self._record_from_file(name, backup_path)

    def list_backups(self) -> list[BackupRecord]:
        """List stored backups, newest first."""
        backups = []

        if not self.backup_root.is_dir():
            return backups

        for backup_file in self.backup_root.glob(f"*{BACKUP_SUFFIX}"):
            if not backup_file.is_file() or is_temp_file(backup_file):
                continue
            name = backup_file.name[: -len(BACKUP_SUFFIX)]
            try:
                record = self.find(name)
            except ValidationError:
                logger.warning("Skipping unexpected file in backup root: %s", backup_file)
                continue
            if record:
                backups.append(record)

        backups.sort(key=lambda r: r.created_at or "", reverse=True)
        return backups

    def verify(self, record: BackupRecord) -> tuple[bool, Optional[str]]:
        """Verify a stored backup against its record.

        Returns:
            Tuple of (is_valid, error_message)
        """
        if not record.backup_path.is_file():
            return False, f"Backup file missing: {record.backup_path}"

        actual_size = record.backup_path.stat().st_size
        if record.size_bytes and actual_size != record.size_bytes:
            return False, f"Size mismatch: expected {record.size_bytes}, got {actual_size}"

        if not record.checksum:
            return True, None

        actual = file_checksum(record.backup_path)
        if actual != record.checksum:
            return False, f"Checksum mismatch: expected {record.checksum}, got {actual}"

        return True, None

    def find_orphans(self, *directories: Path) -> list[Path]:
        """Find staging files left by interrupted operations."""
        orphans = []
        for directory in (self.backup_root, *directories):
            if not directory.is_dir():
                continue
            orphans.extend(p for p in directory.iterdir() if p.is_file() and is_temp_file(p))
        return sorted(set(orphans))

    def cleanup_orphans(self, *directories: Path, min_age: float = 0.0) -> list[Path]:
        """Remove staging files older than ``min_age`` seconds.

        A non-zero ``min_age`` leaves files of operations that may still be
        running alone.

        Returns:
            Paths that were removed
        """
        removed = []
        now = time.time()
        for orphan in self.find_orphans(*directories):
            try:
                if now - orphan.stat().st_mtime < min_age:
                    continue
                orphan.unlink()
            except FileNotFoundError:
                continue
            logger.info("Removed orphan temp file %s", orphan)
            removed.append(orphan)
        return removed

    def _read_meta(self, backup_path: Path) -> Optional[BackupRecord]:
        meta_path = meta_path_for(backup_path)
        if not meta_path.exists():
            return None
        try:
            with open(meta_path, "r", encoding="utf-8") as f:
                record = BackupRecord.from_dict(json.load(f))
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning("Unreadable metadata %s: %s", meta_path, e)
            return None

        # The sidecar must describe the file it sits beside
        if record.backup_path.resolve() != backup_path:
            logger.warning("Metadata %s names a different backup", meta_path)
            return None
        return record

    def _record_from_file(self, name: str, backup_path: Path) -> Optional[BackupRecord]:
        try:
            st = backup_path.stat()
        except FileNotFoundError:
            # Removed since the lookup saw it
            return None
        return BackupRecord(
            name=name,
            backup_path=backup_path,
            size_bytes=st.st_size,
            created_at=datetime.fromtimestamp(st.st_mtime, timezone.utc).isoformat(),
        )


def file_checksum(path: Path) -> str:
    """SHA-256 of a file's content."""
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()
