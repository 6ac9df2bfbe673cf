"""Backup record schema."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

RECORD_VERSION = "1.0"


@dataclass(frozen=True)
class BackupRecord:
    """One stored snapshot of a file.

    Created on successful backup and never mutated; removed only by delete.
    """

    name: str
    backup_path: Path
    source_path: Optional[Path] = None
    checksum: Optional[str] = None
    size_bytes: int = 0
    created_at: Optional[str] = None
    version: str = RECORD_VERSION

    @property
    def size_human(self) -> str:
        """Get human-readable size."""
        if self.size_bytes < 1024:
            return f"{self.size_bytes} B"
        elif self.size_bytes < 1024 * 1024:
            return f"{self.size_bytes / 1024:.1f} KB"
        else:
            return f"{self.size_bytes / (1024 * 1024):.1f} MB"

    def exists(self) -> bool:
        """Check whether the stored backup file is present."""
        return self.backup_path.is_file()

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "version": self.version,
            "name": self.name,
            "backup_path": str(self.backup_path),
            "source_path": str(self.source_path) if self.source_path else None,
            "checksum": self.checksum,
            "size_bytes": self.size_bytes,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BackupRecord":
        """Create from dictionary.

        Raises:
            ValueError: If the data does not describe a backup record
        """
        if not isinstance(data, dict):
            raise ValueError(f"Expected an object, got {type(data).__name__}")
        if not isinstance(data.get("name"), str) or not isinstance(data.get("backup_path"), str):
            raise ValueError("Record needs string name and backup_path")
        size = data.get("size_bytes", 0)
        if not isinstance(size, int) or isinstance(size, bool):
            raise ValueError(f"Invalid size_bytes: {size!r}")
        for key in ("source_path", "checksum", "created_at"):
            if not isinstance(data.get(key), (str, type(None))):
                raise ValueError(f"Invalid {key}: {data[key]!r}")
        source = data.get("source_path")
        return cls(
            name=data["name"],
            backup_path=Path(data["backup_path"]),
            source_path=Path(source) if source else None,
            checksum=data.get("checksum"),
            size_bytes=size,
            created_at=data.get("created_at"),
            version=data.get("version", RECORD_VERSION),
        )
