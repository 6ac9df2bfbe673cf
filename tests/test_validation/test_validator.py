"""Tests for filename validation."""

import os

import pytest

from safebackup.errors import ValidationError, ValidationErrorKind
from safebackup.validation import MAX_FILENAME_LENGTH, FilePath


class TestAcceptedNames:
    """Tests for names that pass every rule."""

    @pytest.mark.parametrize(
        "name",
        ["report.txt", "data_2024-01-01.csv", "README", ".hidden", "a", "x.tar.gz"],
    )
    def test_valid_names(self, validator, work_dir, name):
        """Test that whitelisted names are accepted."""
        result = validator.validate(name, work_dir)

        assert isinstance(result, FilePath)
        assert result.name == name
        assert result.path == work_dir.resolve() / name

    def test_result_is_confined(self, validator, work_dir):
        """Test that the canonical path stays strictly inside the root."""
        result = validator.validate("report.txt", work_dir)
        root = work_dir.resolve()

        assert result.root == root
        assert root in result.path.parents
        assert result.path.resolve() == result.path

    def test_fspath(self, validator, work_dir):
        """Test that FilePath can be passed to filesystem calls."""
        result = validator.validate("report.txt", work_dir)
        assert os.fspath(result) == str(work_dir.resolve() / "report.txt")

    def test_max_length_accepted(self, validator, work_dir):
        """Test that a name at the length limit is accepted."""
        name = "a" * MAX_FILENAME_LENGTH
        assert validator.validate(name, work_dir).name == name

    def test_no_side_effects(self, validator, work_dir):
        """Test that validation never creates anything."""
        validator.validate("new-file.txt", work_dir)
        assert list(work_dir.iterdir()) == []


class TestRejectedNames:
    """Tests for each rule, applied in order."""

    @pytest.mark.parametrize("name", ["", "   ", "\t\n"])
    def test_empty_name(self, validator, work_dir, name):
        """Test rejection of empty or whitespace-only names."""
        with pytest.raises(ValidationError) as exc_info:
            validator.validate(name, work_dir)
        assert exc_info.value.kind == ValidationErrorKind.EMPTY_NAME

    def test_name_too_long(self, validator, work_dir):
        """Test rejection of overly long names."""
        with pytest.raises(ValidationError) as exc_info:
            validator.validate("a" * (MAX_FILENAME_LENGTH + 1), work_dir)
        assert exc_info.value.kind == ValidationErrorKind.NAME_TOO_LONG

    @pytest.mark.parametrize(
        "name",
        [
            "../secret",
            "..",
            "a/../../b",
            "..\\windows",
            "report..txt",
            "/etc/passwd",
            "\\\\server\\share",
            "C:\\Windows\\system.ini",
            "~root",
            "report\x00.txt",
        ],
    )
    def test_path_traversal(self, validator, work_dir, name):
        """Test rejection of traversal, absolute prefixes and null bytes."""
        with pytest.raises(ValidationError) as exc_info:
            validator.validate(name, work_dir)
        assert exc_info.value.kind == ValidationErrorKind.PATH_TRAVERSAL

    @pytest.mark.parametrize(
        "name",
        ["sub/file.txt", "my file.txt", "rm;ls", "a*b", "$HOME", "naïve.txt", "a|b", "tab\tname"],
    )
    def test_illegal_character(self, validator, work_dir, name):
        """Test that anything outside the whitelist is rejected."""
        with pytest.raises(ValidationError) as exc_info:
            validator.validate(name, work_dir)
        assert exc_info.value.kind == ValidationErrorKind.ILLEGAL_CHARACTER

    def test_root_itself_escapes(self, validator, work_dir):
        """Test that '.' resolving to the root is not strictly inside it."""
        with pytest.raises(ValidationError) as exc_info:
            validator.validate(".", work_dir)
        assert exc_info.value.kind == ValidationErrorKind.ESCAPES_ROOT

    def test_symlink_escape(self, validator, work_dir, tmp_path):
        """Test that a symlink pointing outside the root is rejected."""
        outside = tmp_path / "outside.txt"
        outside.write_text("secret")
        (work_dir / "link.txt").symlink_to(outside)

        with pytest.raises(ValidationError) as exc_info:
            validator.validate("link.txt", work_dir)
        assert exc_info.value.kind == ValidationErrorKind.ESCAPES_ROOT

    def test_symlink_inside_root_allowed(self, validator, work_dir):
        """Test that a symlink to a file inside the root is accepted."""
        (work_dir / "target.txt").write_text("data")
        (work_dir / "alias.txt").symlink_to(work_dir / "target.txt")

        result = validator.validate("alias.txt", work_dir)
        assert result.path == work_dir.resolve() / "target.txt"

    def test_error_names_input(self, validator, work_dir):
        """Test that the error carries the rejected input."""
        with pytest.raises(ValidationError) as exc_info:
            validator.validate("../x", work_dir)
        assert exc_info.value.raw == "../x"
        assert "../x" in str(exc_info.value)

    def test_rejection_writes_nothing(self, validator, work_dir):
        """Test that rejected names never touch the filesystem."""
        for name in ["../x", "/tmp/x", "a\x00b", "a b"]:
            assert not validator.is_valid(name, work_dir)
        assert list(work_dir.iterdir()) == []


class TestRuleOrder:
    """Tests that earlier rules win over later ones."""

    def test_traversal_before_characters(self, validator, work_dir):
        """'../a b' violates both; traversal is reported."""
        with pytest.raises(ValidationError) as exc_info:
            validator.validate("../a b", work_dir)
        assert exc_info.value.kind == ValidationErrorKind.PATH_TRAVERSAL

    def test_empty_before_everything(self, validator, work_dir):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate("  ", work_dir)
        assert exc_info.value.kind == ValidationErrorKind.EMPTY_NAME


class TestIsValid:
    """Tests for the non-raising helper."""

    def test_is_valid(self, validator, work_dir):
        assert validator.is_valid("ok.txt", work_dir)
        assert not validator.is_valid("../nope", work_dir)
