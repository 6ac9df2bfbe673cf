"""Filename validation and confinement."""

from .validator import (
    ALLOWED_CHARACTERS,
    MAX_FILENAME_LENGTH,
    FilePath,
    PathValidator,
)

__all__ = [
    "ALLOWED_CHARACTERS",
    "MAX_FILENAME_LENGTH",
    "FilePath",
    "PathValidator",
]
