"""Command-line interface for safebackup.

Built with Typer for commands and Rich for output. Each file command maps
onto one orchestrator call; the exit code identifies the failure kind.
"""

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from .config import AUDIT_LOG_NAME, Config, get_config
from .errors import EXIT_CODES, EXIT_UNKNOWN, OpErrorKind, ValidationError
from .orchestrator import BackupOrchestrator, OperationOutcome, RunOptions

# Create the main app
app = typer.Typer(
    name="safebackup",
    help="Crash-safe backup, restore and delete of single files with an audit trail.",
    no_args_is_help=True,
)

# Rich console for pretty output
console = Console()
err_console = Console(stderr=True)


# ============================================================================
# Helper Functions
# ============================================================================


def print_error(message: str) -> None:
    """Print an error message."""
    err_console.print(f"[bold red]Error:[/bold red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[bold green]Success:[/bold green] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    err_console.print(f"[bold yellow]Warning:[/bold yellow] {message}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[dim]{message}[/dim]")


def get_orchestrator(ctx: typer.Context) -> BackupOrchestrator:
    """Build the orchestrator from the config prepared by the callback."""
    config: Config = ctx.obj
    return BackupOrchestrator(config)


def report(outcome: OperationOutcome) -> None:
    """Print an outcome and exit with its code."""
    if outcome.error is not None:
        print_error(outcome.message)
    else:
        print_success(outcome.message)
        if outcome.destination is not None:
            print_info(f"Written to {outcome.destination}")

    if outcome.log_error is not None:
        print_warning(f"Operation was not audited: {outcome.log_error}")

    if outcome.exit_code:
        raise typer.Exit(outcome.exit_code)


# ============================================================================
# Global Options
# ============================================================================


@app.callback()
def main_callback(
    ctx: typer.Context,
    work_dir: Optional[Path] = typer.Option(
        None, "--work-dir", "-w", help="Directory holding the files to back up"
    ),
    backup_dir: Optional[Path] = typer.Option(
        None, "--backup-dir", "-b", help="Directory where backups are stored"
    ),
    audit_log: Optional[Path] = typer.Option(
        None, "--audit-log", help="Audit log file"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show diagnostic logging"),
) -> None:
    """Crash-safe backup, restore and delete of single files."""
    config = get_config()
    if work_dir is not None and backup_dir is None:
        # Keep the default layout relative to the new work directory
        config = Config.for_directories(
            work_dir,
            audit_log_path=audit_log,
            allow_overwrite=config.allow_overwrite,
            force_delete=config.force_delete,
            max_file_size=config.max_file_size,
            lock_timeout=config.lock_timeout,
            log_level=config.log_level,
        )
    else:
        config = config.with_overrides(
            work_dir=work_dir, backup_dir=backup_dir, audit_log_path=audit_log
        )
        if backup_dir is not None and audit_log is None:
            config = config.with_overrides(audit_log_path=backup_dir / AUDIT_LOG_NAME)

    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, config.log_level, logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
    )

    ctx.obj = config
    if ctx.invoked_subcommand == "version":
        return

    errors = config.validate()
    if errors:
        for error in errors:
            print_error(error)
        raise typer.Exit(EXIT_UNKNOWN)


# ============================================================================
# File Commands
# ============================================================================


@app.command()
def backup(
    ctx: typer.Context,
    file: str = typer.Argument(..., help="Name of the file to back up"),
    overwrite: bool = typer.Option(False, "--overwrite", "-o", help="Replace an existing backup"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompts"),
) -> None:
    """Back up a file into the backup directory."""
    orchestrator = get_orchestrator(ctx)
    config: Config = ctx.obj

    if not overwrite and not config.allow_overwrite and not yes:
        try:
            existing = orchestrator.catalog.find(file)
        except ValidationError:
            existing = None
        if existing is not None:
            if not typer.confirm(f"Backup {existing.backup_path.name} already exists. Overwrite?"):
                console.print("Backup cancelled.")
                return
            overwrite = True

    report(orchestrator.run("backup", file, RunOptions(overwrite=overwrite or None)))


@app.command()
def restore(
    ctx: typer.Context,
    file: str = typer.Argument(..., help="Name of the file to restore"),
    to: Optional[str] = typer.Option(None, "--to", "-t", help="Restore into another file name"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompts"),
) -> None:
    """Restore a file from its backup."""
    orchestrator = get_orchestrator(ctx)
    config: Config = ctx.obj

    if not yes:
        target = to or file
        try:
            exists = orchestrator.validator.validate(target, config.work_dir).exists()
        except ValidationError:
            exists = False
        if exists and not typer.confirm(f"Target file {target} already exists. Overwrite?"):
            console.print("Restore cancelled.")
            return

    report(orchestrator.run("restore", file, RunOptions(destination=to)))


@app.command()
def delete(
    ctx: typer.Context,
    file: str = typer.Argument(..., help="Name of the file whose backup to delete"),
    force: bool = typer.Option(False, "--force", "-f", help="Succeed if the backup is already gone"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
) -> None:
    """Delete the stored backup of a file."""
    orchestrator = get_orchestrator(ctx)

    if not yes:
        confirm = typer.prompt(
            f"Are you sure you want to delete the backup of {file}? (type 'DELETE' to confirm)",
            default="",
            show_default=False,
        )
        if confirm.strip() != "DELETE":
            console.print("Delete cancelled.")
            raise typer.Exit(EXIT_CODES[OpErrorKind.PERMISSION_DENIED])

    report(orchestrator.run("delete", file, RunOptions(force=force or None)))


# ============================================================================
# Inspection Commands
# ============================================================================


@app.command("list")
def list_backups(ctx: typer.Context) -> None:
    """List stored backups, newest first."""
    orchestrator = get_orchestrator(ctx)
    backups = orchestrator.catalog.list_backups()

    if not backups:
        print_info("No backups found.")
        return

    table = Table(title="Backups", show_header=True, header_style="bold magenta")
    table.add_column("File", style="cyan")
    table.add_column("Size", justify="right")
    table.add_column("Created", style="green")
    table.add_column("Checksum", style="dim")

    for record in backups:
        table.add_row(
            record.name,
            record.size_human,
            record.created_at or "-",
            (record.checksum or "-")[:12],
        )

    console.print(table)


@app.command()
def verify(
    ctx: typer.Context,
    file: str = typer.Argument(..., help="Name of the file whose backup to verify"),
) -> None:
    """Verify a stored backup against its recorded checksum."""
    orchestrator = get_orchestrator(ctx)

    try:
        record = orchestrator.catalog.find(file)
    except ValidationError as e:
        print_error(str(e))
        raise typer.Exit(EXIT_UNKNOWN)

    if record is None:
        print_error(f"No backup of {file}")
        raise typer.Exit(EXIT_UNKNOWN)

    valid, message = orchestrator.catalog.verify(record)
    if not valid:
        print_error(message)
        raise typer.Exit(EXIT_UNKNOWN)

    if record.checksum:
        print_success(f"Backup of {file} is intact ({record.size_human})")
    else:
        print_warning(f"Backup of {file} has no recorded checksum; size only checked")


@app.command("log")
def show_log(
    ctx: typer.Context,
    limit: int = typer.Option(20, "--limit", "-n", help="Number of entries to show"),
) -> None:
    """Show the most recent audit entries."""
    orchestrator = get_orchestrator(ctx)
    entries = orchestrator.audit.tail(limit)

    if not entries:
        print_info("Audit log is empty.")
        return

    table = Table(title="Audit Log", show_header=True, header_style="bold magenta")
    table.add_column("Time", style="dim", no_wrap=True)
    table.add_column("Operation", style="cyan")
    table.add_column("Target")
    table.add_column("Outcome", no_wrap=True)
    table.add_column("Reason", max_width=50)

    for entry in entries:
        outcome_style = "green" if entry.succeeded else "red"
        table.add_row(
            entry.timestamp.isoformat(timespec="seconds"),
            entry.operation.value,
            entry.target,
            f"[{outcome_style}]{entry.outcome.value}[/{outcome_style}]",
            entry.reason or "",
        )

    console.print(table)


@app.command()
def cleanup(
    ctx: typer.Context,
    min_age: float = typer.Option(
        60.0, "--min-age", help="Only remove temp files older than this many seconds"
    ),
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="List without removing"),
) -> None:
    """Remove temp files left behind by interrupted operations."""
    orchestrator = get_orchestrator(ctx)
    config: Config = ctx.obj

    if dry_run:
        orphans = orchestrator.catalog.find_orphans(config.work_dir)
        for orphan in orphans:
            console.print(str(orphan))
        print_info(f"{len(orphans)} orphan temp file(s) found.")
        return

    removed = orchestrator.catalog.cleanup_orphans(config.work_dir, min_age=min_age)
    print_success(f"Removed {len(removed)} orphan temp file(s).")


@app.command()
def version() -> None:
    """Show version information."""
    from . import __version__

    console.print(f"safebackup version {__version__}")


# ============================================================================
# Main Entry Point
# ============================================================================


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
