"""Pytest configuration and shared fixtures.

This module provides fixtures for testing safebackup: isolated work and
backup directories, the core components wired together, and CLI helpers.
"""

import os
from pathlib import Path
from typing import Generator

import pytest

from safebackup.audit import AuditLogger
from safebackup.config import Config, reset_config
from safebackup.fileops import AtomicFileOps, BackupCatalog
from safebackup.orchestrator import BackupOrchestrator
from safebackup.validation import FilePath, PathValidator


# ============================================================================
# Directory Fixtures
# ============================================================================


@pytest.fixture
def work_dir(tmp_path: Path) -> Path:
    """Directory holding the files being backed up."""
    path = tmp_path / "work"
    path.mkdir()
    return path


@pytest.fixture
def backup_dir(tmp_path: Path) -> Path:
    """Backup root directory."""
    path = tmp_path / "backups"
    path.mkdir()
    return path


@pytest.fixture
def audit_path(tmp_path: Path) -> Path:
    """Audit log location, outside the backup root."""
    return tmp_path / "logs" / "audit.log"


@pytest.fixture
def config(work_dir: Path, backup_dir: Path, audit_path: Path) -> Config:
    """Config rooted in the temporary directories."""
    return Config.for_directories(work_dir, backup_dir=backup_dir, audit_log_path=audit_path)


# ============================================================================
# Component Fixtures
# ============================================================================


@pytest.fixture
def validator() -> PathValidator:
    return PathValidator()


@pytest.fixture
def audit(audit_path: Path) -> AuditLogger:
    """Audit logger writing to the temporary log."""
    return AuditLogger(audit_path)


@pytest.fixture
def ops(backup_dir: Path, audit: AuditLogger, validator: PathValidator) -> AtomicFileOps:
    """File operations with the default deny-overwrite policy."""
    return AtomicFileOps(backup_dir, audit, validator=validator)


@pytest.fixture
def catalog(backup_dir: Path, validator: PathValidator) -> BackupCatalog:
    return BackupCatalog(backup_dir, validator)


@pytest.fixture
def orchestrator(config: Config) -> BackupOrchestrator:
    """Orchestrator built from the temporary config."""
    return BackupOrchestrator(config)


# ============================================================================
# Sample Data Fixtures
# ============================================================================


@pytest.fixture
def report_file(work_dir: Path) -> Path:
    """A small file named report.txt containing 'hello'."""
    path = work_dir / "report.txt"
    path.write_bytes(b"hello")
    return path


@pytest.fixture
def report_path(report_file: Path, work_dir: Path, validator: PathValidator) -> FilePath:
    """Validated FilePath for report.txt."""
    return validator.validate("report.txt", work_dir)


# ============================================================================
# Environment Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def clean_env() -> Generator[None, None, None]:
    """Keep SAFEBACKUP_* settings from leaking between tests."""
    reset_config()
    saved = {k: v for k, v in os.environ.items() if k.startswith("SAFEBACKUP_")}
    for key in saved:
        del os.environ[key]
    yield
    reset_config()
    for key in [k for k in os.environ if k.startswith("SAFEBACKUP_")]:
        del os.environ[key]
    os.environ.update(saved)


# ============================================================================
# CLI Testing Fixtures
# ============================================================================


@pytest.fixture
def cli_runner():
    """Create a Typer CLI test runner."""
    from typer.testing import CliRunner
    return CliRunner()


@pytest.fixture
def cli_app():
    """Get the CLI app for testing."""
    from safebackup.cli import app
    return app
