"""Configuration management for safebackup.

Loads configuration from environment variables and provides defaults.
The core components never read this module's global instance; the CLI
builds a Config and hands it to the orchestrator.
"""

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()

DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MiB
DEFAULT_LOCK_TIMEOUT = 10.0
AUDIT_LOG_NAME = "audit.log"
BACKUP_DIR_NAME = ".safebackup"

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUTHY


@dataclass(frozen=True)
class Config:
    """Application configuration."""

    # Directory holding stored backups (the backup root)
    backup_dir: Path

    # Directory holding the files being backed up and restored
    work_dir: Path

    # Append-only audit trail
    audit_log_path: Path

    # Policies
    allow_overwrite: bool = False
    force_delete: bool = False

    # Limits
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    lock_timeout: float = DEFAULT_LOCK_TIMEOUT  # seconds

    log_level: str = "WARNING"

    @classmethod
    def for_directories(
        cls,
        work_dir: Path,
        backup_dir: Optional[Path] = None,
        audit_log_path: Optional[Path] = None,
        **kwargs,
    ) -> "Config":
        """Build a config rooted at the given directories."""
        work_dir = Path(work_dir).expanduser()
        backup_dir = Path(backup_dir).expanduser() if backup_dir else work_dir / BACKUP_DIR_NAME
        audit_log_path = (
            Path(audit_log_path).expanduser() if audit_log_path else backup_dir / AUDIT_LOG_NAME
        )
        return cls(
            backup_dir=backup_dir,
            work_dir=work_dir,
            audit_log_path=audit_log_path,
            **kwargs,
        )

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        work_dir = Path(os.environ.get("SAFEBACKUP_WORK_DIR", str(Path.cwd())))
        backup_dir = os.environ.get("SAFEBACKUP_BACKUP_DIR")
        audit_log = os.environ.get("SAFEBACKUP_AUDIT_LOG")

        return cls.for_directories(
            work_dir=work_dir,
            backup_dir=Path(backup_dir) if backup_dir else None,
            audit_log_path=Path(audit_log) if audit_log else None,
            allow_overwrite=_env_flag("SAFEBACKUP_ALLOW_OVERWRITE"),
            force_delete=_env_flag("SAFEBACKUP_FORCE_DELETE"),
            max_file_size=int(
                os.environ.get("SAFEBACKUP_MAX_FILE_SIZE", str(DEFAULT_MAX_FILE_SIZE))
            ),
            lock_timeout=float(
                os.environ.get("SAFEBACKUP_LOCK_TIMEOUT", str(DEFAULT_LOCK_TIMEOUT))
            ),
            log_level=os.environ.get("SAFEBACKUP_LOG_LEVEL", "WARNING").upper(),
        )

    def with_overrides(self, **changes) -> "Config":
        """Return a copy with the given fields replaced (None values ignored)."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    def validate(self) -> list[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if not self.work_dir.is_dir():
            errors.append(f"Work directory does not exist: {self.work_dir}")

        if not self.backup_dir.exists():
            try:
                self.backup_dir.mkdir(parents=True, exist_ok=True)
            except PermissionError:
                errors.append(f"Cannot create backup directory: {self.backup_dir}")
        elif not self.backup_dir.is_dir():
            errors.append(f"Backup path is not a directory: {self.backup_dir}")

        if self.max_file_size <= 0:
            errors.append(f"Max file size must be positive: {self.max_file_size}")

        if self.lock_timeout < 0:
            errors.append(f"Lock timeout cannot be negative: {self.lock_timeout}")

        return errors


# Global config instance, used by the CLI only
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config() -> None:
    """Reset the global config instance. Used for testing."""
    global _config
    _config = None
