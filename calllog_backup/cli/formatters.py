"""CLI output formatting functions.

This module contains functions for displaying backup and restore results
and archive listings on the command line.
"""

from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

import click

if TYPE_CHECKING:
    from calllog_backup.backup.differ import BackupResult
    from calllog_backup.restore.pipeline import RestoreResult

# Explanations for the failure reasons reported by backup and restore
FAILURE_DESCRIPTIONS = {
    "backup_call_failed": "could not be written to the archive",
    "null_backup_data_output": "no archive was available",
    "restore_version_too_new": "written by a newer version (restore stopped)",
    "restore_call_failed": "rejected by the call-log store",
    "read_call_data_failed": "unreadable archive data",
}


def _show_failures(counts: dict[str, int]) -> None:
    for reason, count in sorted(counts.items()):
        description = FAILURE_DESCRIPTIONS.get(reason, reason)
        click.echo(click.style(f"  {count} call(s): {description}", fg="yellow"))


def show_backup_result(result: "BackupResult") -> None:
    """
    Display the outcome of a backup pass.

    Args:
        result: BackupResult returned by BackupManager.create_backup()
    """
    click.echo("\n=== Backup Summary ===")
    click.echo(f"Calls backed up: {result.succeeded}")
    if result.removed:
        click.echo(f"Removed calls announced: {len(result.removed)}")
    click.echo(f"Calls tracked in backup state: {len(result.new_state.call_ids)}")

    if result.archive_path:
        click.echo(f"Archive: {result.archive_path}")

    if result.failed:
        click.echo(
            click.style(
                f"\nFailed: {len(result.failed)} call(s) (retried on next backup)",
                fg="yellow",
            )
        )
        _show_failures(result.failure_counts())
    elif not result.transmitted and not result.removed:
        click.echo(click.style("\nNothing new to back up.", fg="green"))
    else:
        click.echo(click.style("\nBackup completed successfully!", fg="green"))


def show_restore_result(result: "RestoreResult") -> None:
    """
    Display the outcome of a restore.

    Args:
        result: RestoreResult returned by BackupManager.restore()
    """
    click.echo("\n=== Restore Summary ===")
    click.echo(f"Entities read: {result.entities_read}")
    click.echo(f"Calls restored: {result.restored}")
    click.echo(f"Duplicates skipped: {result.duplicates}")

    if result.failed:
        click.echo(click.style(f"\nFailed: {result.failed} call(s)", fg="yellow"))
        _show_failures(result.failures)

    if result.aborted:
        click.echo(
            click.style(
                "\nRestore stopped early: the backup was written by a newer version.",
                fg="red",
            )
        )
    elif not result.failed:
        click.echo(click.style("\nRestore completed successfully!", fg="green"))


def show_archive_list(archives: list[Path], backup_dir: Path) -> None:
    """
    Display available archives, newest first.

    Args:
        archives: Archive paths from BackupManager.list_backups()
        backup_dir: Directory the archives live in
    """
    if not archives:
        click.echo("No backups found.")
        click.echo(f"Backup directory: {backup_dir}")
        return

    click.echo(f"Available backups in {backup_dir}:\n")
    click.echo(f"{'Filename':<40} {'Date':<20} {'Size':<10}")
    click.echo("-" * 70)

    for archive in archives:
        stat = archive.stat()
        timestamp = datetime.fromtimestamp(stat.st_mtime).isoformat()
        size_kb = stat.st_size / 1024
        click.echo(f"{archive.name:<40} {timestamp[:19]:<20} {size_kb:>8.1f} KB")

    click.echo(f"\nTotal: {len(archives)} backup(s)")
