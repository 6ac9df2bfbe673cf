"""Crash-safe file operations and the backup catalog."""

from .atomic import (
    BACKUP_SUFFIX,
    META_SUFFIX,
    TEMP_PREFIX,
    TEMP_SUFFIX,
    AtomicFileOps,
    atomic_write_bytes,
    is_temp_file,
)
from .catalog import BackupCatalog, file_checksum
from .schemas import BackupRecord

__all__ = [
    "BACKUP_SUFFIX",
    "META_SUFFIX",
    "TEMP_PREFIX",
    "TEMP_SUFFIX",
    "AtomicFileOps",
    "BackupCatalog",
    "BackupRecord",
    "atomic_write_bytes",
    "file_checksum",
    "is_temp_file",
]
