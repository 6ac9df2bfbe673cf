"""Error taxonomy for safebackup.

Every failure carries a specific kind and the offending input or path so
callers can tell a bad filename from a full disk from a failed audit write.
"""

from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union


class ValidationErrorKind(str, Enum):
    """Rule violated by a rejected filename."""

    EMPTY_NAME = "empty_name"
    NAME_TOO_LONG = "name_too_long"
    PATH_TRAVERSAL = "path_traversal"
    ILLEGAL_CHARACTER = "illegal_character"
    ESCAPES_ROOT = "escapes_root"


class OpErrorKind(str, Enum):
    """Reason a file operation failed."""

    NOT_FOUND = "not_found"
    ALREADY_EXISTS = "already_exists"
    IO_FAILURE = "io_failure"
    PERMISSION_DENIED = "permission_denied"
    TOO_LARGE = "too_large"
    CHECKSUM_MISMATCH = "checksum_mismatch"


class SafeBackupError(Exception):
    """Base class for all safebackup errors."""

    # Set when the failure itself could not be audited
    log_error: Optional["LogError"] = None

    @property
    def kind_name(self) -> str:
        """Dotted name of the error family and kind, used in audit entries."""
        kind = getattr(self, "kind", None)
        family = type(self).__name__
        return f"{family}.{kind.value}" if kind is not None else family


# Longest part of a rejected name quoted back in messages
MAX_QUOTED_LENGTH = 64


class ValidationError(SafeBackupError):
    """A filename was rejected before touching the filesystem."""

    def __init__(self, kind: ValidationErrorKind, raw: str, message: str):
        self.kind = kind
        self.raw = raw
        self.message = message
        quoted = repr(raw[:MAX_QUOTED_LENGTH])
        if len(raw) > MAX_QUOTED_LENGTH:
            quoted += "..."
        super().__init__(f"{message}: {quoted}")


class OpError(SafeBackupError):
    """A backup, restore or delete failed."""

    def __init__(
        self,
        kind: OpErrorKind,
        path: Union[str, Path],
        message: str,
        log_error: Optional["LogError"] = None,
    ):
        self.kind = kind
        self.path = Path(path)
        self.message = message
        self.log_error = log_error
        super().__init__(f"{message}: {self.path}")


class LogError(SafeBackupError):
    """The audit trail could not be appended to.

    A completed file operation is not rolled back; its result travels in
    ``completed`` so the caller still sees what happened on disk.
    """

    def __init__(
        self,
        path: Union[str, Path],
        reason: str,
        completed: Any = None,
    ):
        self.path = Path(path)
        self.reason = reason
        self.completed = completed
        super().__init__(f"Audit write failed ({reason}): {self.path}")


def translate_os_error(exc: OSError, path: Union[str, Path]) -> OpError:
    """Map an OSError onto the matching OpError kind."""
    if isinstance(exc, FileNotFoundError):
        kind = OpErrorKind.NOT_FOUND
    elif isinstance(exc, PermissionError):
        kind = OpErrorKind.PERMISSION_DENIED
    elif isinstance(exc, FileExistsError):
        kind = OpErrorKind.ALREADY_EXISTS
    else:
        kind = OpErrorKind.IO_FAILURE
    return OpError(kind, path, exc.strerror or str(exc))


# Process exit codes, distinct per kind for scripting
EXIT_OK = 0
EXIT_CODES: dict[Any, int] = {
    ValidationErrorKind.EMPTY_NAME: 10,
    ValidationErrorKind.NAME_TOO_LONG: 11,
    ValidationErrorKind.PATH_TRAVERSAL: 12,
    ValidationErrorKind.ILLEGAL_CHARACTER: 13,
    ValidationErrorKind.ESCAPES_ROOT: 14,
    OpErrorKind.NOT_FOUND: 20,
    OpErrorKind.ALREADY_EXISTS: 21,
    OpErrorKind.IO_FAILURE: 22,
    OpErrorKind.PERMISSION_DENIED: 23,
    OpErrorKind.TOO_LARGE: 24,
    OpErrorKind.CHECKSUM_MISMATCH: 25,
}
EXIT_LOG_FAILURE = 30
EXIT_UNKNOWN = 1


def exit_code_for(error: Optional[SafeBackupError]) -> int:
    """Get the process exit code for an error (0 for None)."""
    if error is None:
        return EXIT_OK
    if isinstance(error, LogError):
        return EXIT_LOG_FAILURE
    return EXIT_CODES.get(getattr(error, "kind", None), EXIT_UNKNOWN)
