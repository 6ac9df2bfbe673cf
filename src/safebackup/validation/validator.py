"""Filename validation.

Turns a user-supplied filename into a FilePath confined to a root
directory, or rejects it with a ValidationError naming the violated rule.
"""

import ntpath
import string
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from ..errors import ValidationError, ValidationErrorKind

MAX_FILENAME_LENGTH = 255
ALLOWED_CHARACTERS = frozenset(string.ascii_letters + string.digits + "._-")


@dataclass(frozen=True)
class FilePath:
    """A validated, canonical path confined to ``root``.

    Only PathValidator creates these.
    """

    name: str
    path: Path
    root: Path

    def __fspath__(self) -> str:
        return str(self.path)

    def __str__(self) -> str:
        return str(self.path)

    def exists(self) -> bool:
        """Check whether the path currently exists."""
        return self.path.exists()


class PathValidator:
    """Whitelist validator for filenames inside a root directory."""

    def validate(self, raw: str, root: Union[str, Path]) -> FilePath:
        """Validate ``raw`` as a filename inside ``root``.

        Rules are applied in order: empty name, length, traversal, allowed
        characters, then confinement of the canonical path.

        Args:
            raw: Filename as supplied by the user
            root: Directory the file must resolve inside

        Returns:
            FilePath for the canonical, confined path

        Raises:
            ValidationError: If any rule is violated
        """
        if raw is None or not raw.strip():
            raise ValidationError(ValidationErrorKind.EMPTY_NAME, raw or "", "Empty filename")

        if len(raw) > MAX_FILENAME_LENGTH:
            raise ValidationError(
                ValidationErrorKind.NAME_TOO_LONG,
                raw,
                f"Filename longer than {MAX_FILENAME_LENGTH} characters",
            )

        if "\x00" in raw:
            raise ValidationError(ValidationErrorKind.PATH_TRAVERSAL, raw, "Null byte in filename")

        if raw.startswith(("/", "\\", "~")) or ntpath.splitdrive(raw)[0]:
            raise ValidationError(
                ValidationErrorKind.PATH_TRAVERSAL, raw, "Absolute path not allowed"
            )

        if ".." in raw:
            raise ValidationError(
                ValidationErrorKind.PATH_TRAVERSAL, raw, "Parent directory reference not allowed"
            )

        illegal = sorted({c for c in raw if c not in ALLOWED_CHARACTERS})
        if illegal:
            raise ValidationError(
                ValidationErrorKind.ILLEGAL_CHARACTER,
                raw,
                f"Illegal characters {''.join(illegal)!r} in filename",
            )

        return self._confine(raw, Path(root))

    def is_valid(self, raw: str, root: Union[str, Path]) -> bool:
        """Check a filename without raising."""
        try:
            self.validate(raw, root)
        except ValidationError:
            return False
        return True

    def _confine(self, raw: str, root: Path) -> FilePath:
        """Resolve ``raw`` under ``root`` and verify it stays strictly inside."""
        canonical_root = root.resolve()
        candidate = (canonical_root / raw).resolve()

        if candidate == canonical_root or canonical_root not in candidate.parents:
            raise ValidationError(
                ValidationErrorKind.ESCAPES_ROOT,
                raw,
                f"Path resolves outside {canonical_root}",
            )

        return FilePath(name=raw, path=candidate, root=canonical_root)
