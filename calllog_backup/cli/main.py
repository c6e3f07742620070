"""
Command-line interface for calllog_backup.

Provides CLI commands for backing up the call log incrementally, restoring
it without duplicates, and inspecting the backup state.

Usage:
    # Show help
    calllog-backup --help

    # Back up calls added since the last backup
    calllog-backup backup

    # Restore every archive
    calllog-backup restore --yes
    calllog-backup restore --dedup-mode batched --batch-size 200

    # Check status
    calllog-backup status
"""

import dataclasses
import sys
from pathlib import Path
from typing import Any

import click

from calllog_backup import __version__
from calllog_backup.backup.manager import BackupManager
from calllog_backup.cli.formatters import (
    show_archive_list,
    show_backup_result,
    show_restore_result,
)
from calllog_backup.config.generator import save_config_file
from calllog_backup.config.loader import DEFAULT_CONFIG_FILE, ConfigError, ConfigLoader
from calllog_backup.config.settings import (
    VALID_DEDUP_MODES,
    AgentConfig,
    DedupMode,
    RestoreConfig,
    SettingsError,
)
from calllog_backup.events import LoggingEventLogger
from calllog_backup.storage.db import CallLogDatabase
from calllog_backup.utils import resolve_config_dir
from calllog_backup.utils.logging import cleanup_old_logs, get_logger, setup_logging


def get_config_dir(config_dir: str | None) -> Path:
    """Get the configuration directory path."""
    return resolve_config_dir(config_dir)


def get_config_file(config_file: str | None, config_dir: Path) -> Path:
    """Get the configuration file path."""
    if config_file:
        return Path(config_file)
    return config_dir / DEFAULT_CONFIG_FILE


def open_manager(
    settings: AgentConfig, restore_config: RestoreConfig | None = None
) -> tuple[BackupManager, LoggingEventLogger]:
    """
    Open the call-log database and build a backup manager for it.

    Returns:
        Tuple of (manager, event logger collecting the reported counts)
    """
    settings.database_path.parent.mkdir(parents=True, exist_ok=True)
    db = CallLogDatabase(str(settings.database_path))
    db.initialize()

    events = LoggingEventLogger()
    manager = BackupManager(
        db,
        settings.backup_dir,
        backup_config=settings.backup,
        restore_config=restore_config or settings.restore,
        event_logger=events,
    )
    return manager, events


@click.group()
@click.version_option(version=__version__, prog_name="calllog-backup")
@click.option(
    "--verbose", "-v", is_flag=True, help="Enable verbose output with detailed logging."
)
@click.option(
    "--config-dir",
    "-c",
    type=click.Path(exists=False, file_okay=False, dir_okay=True),
    envvar="CALLLOG_BACKUP_CONFIG_DIR",
    help="Configuration directory path (default: ~/.calllog-backup).",
)
@click.option(
    "--config-file",
    "-f",
    type=click.Path(exists=False, file_okay=True, dir_okay=False),
    envvar="CALLLOG_BACKUP_CONFIG_FILE",
    help="Configuration file path (default: <config-dir>/config.yaml).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    config_dir: str | None,
    config_file: str | None,
) -> None:
    """
    Incremental call-log backup and restore.

    Each backup sends only the calls added since the previous one.
    Restores skip calls that are already in the call log.
    """
    ctx.ensure_object(dict)

    resolved_config_dir = get_config_dir(config_dir)
    resolved_config_file = get_config_file(config_file, resolved_config_dir)

    ctx.obj["config_dir"] = resolved_config_dir
    ctx.obj["config_file"] = resolved_config_file

    config: dict[str, Any] = {}
    try:
        loader = ConfigLoader(config_dir=resolved_config_dir)
        config = loader.load_from_file(resolved_config_file)
        if config:
            loader.validate(config)
    except ConfigError as e:
        # Keep the CLI usable without a valid config file
        click.echo(
            click.style(f"Warning: Configuration error: {e}", fg="yellow"), err=True
        )
        config = {}

    try:
        settings = AgentConfig.from_dict(config, resolved_config_dir)
    except SettingsError as e:
        click.echo(
            click.style(f"Warning: Configuration error: {e}", fg="yellow"), err=True
        )
        settings = AgentConfig.from_dict({}, resolved_config_dir)

    ctx.obj["config"] = config
    ctx.obj["settings"] = settings

    # CLI flag takes precedence over the config file
    effective_verbose = verbose or settings.verbose
    ctx.obj["verbose"] = effective_verbose

    setup_logging(verbose=effective_verbose, log_dir=settings.log_dir)
    if settings.log_dir is not None:
        cleanup_old_logs(log_dir=settings.log_dir, keep_count=settings.log_retention_count)


# =============================================================================
# Backup Command
# =============================================================================


@cli.command("backup")
@click.pass_context
def backup_command(ctx: click.Context) -> None:
    """
    Back up calls added since the last backup.

    Writes one archive per run to the backup directory and records which
    calls have been backed up. Calls that fail are retried next time.

    Example:

        calllog-backup backup
    """
    logger = get_logger(__name__)
    settings: AgentConfig = ctx.obj["settings"]

    try:
        manager, _events = open_manager(settings)
        click.echo(f"Backing up call log from {settings.database_path}...")
        result = manager.create_backup()
        show_backup_result(result)
        logger.info(
            f"Backup finished: {result.succeeded} sent, {len(result.failed)} failed"
        )

    except Exception as e:
        logger.exception(f"Backup failed: {e}")
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)


# =============================================================================
# Restore Command
# =============================================================================


@cli.command("restore")
@click.option(
    "--archive",
    "-a",
    "archives",
    multiple=True,
    type=click.Path(exists=True, file_okay=True, dir_okay=False, path_type=Path),
    help="Archive to restore from (repeatable, oldest first). Default: all.",
)
@click.option(
    "--list",
    "-l",
    "list_backups_flag",
    is_flag=True,
    help="List available backup archives.",
)
@click.option(
    "--dedup-mode",
    type=click.Choice(sorted(VALID_DEDUP_MODES), case_sensitive=False),
    help="How to skip calls already in the call log (overrides config).",
)
@click.option(
    "--batch-size",
    type=click.IntRange(min=1),
    help="Calls per batch in batched mode (overrides config).",
)
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt.")
@click.pass_context
def restore_command(
    ctx: click.Context,
    archives: tuple[Path, ...],
    list_backups_flag: bool,
    dedup_mode: str | None,
    batch_size: int | None,
    yes: bool,
) -> None:
    """
    Restore calls from backup archives.

    Replays the archives oldest first and inserts every call that is not
    already in the call log.

    Examples:

        # List available backups
        calllog-backup restore --list

        # Restore everything
        calllog-backup restore

        # Restore one archive in batches of 200
        calllog-backup restore -a backup_20240120_103000_000000.cbk \\
            --dedup-mode batched --batch-size 200
    """
    logger = get_logger(__name__)
    settings: AgentConfig = ctx.obj["settings"]

    try:
        overrides: dict[str, Any] = {}
        if dedup_mode:
            overrides["dedup_mode"] = DedupMode(dedup_mode.lower())
        if batch_size:
            overrides["batch_size"] = batch_size
        restore_config = dataclasses.replace(settings.restore, **overrides)

        manager, _events = open_manager(settings, restore_config)

        if list_backups_flag:
            show_archive_list(manager.list_backups(), manager.backup_dir)
            return

        selected = list(archives) or manager.list_backups(oldest_first=True)
        if not selected:
            click.echo("No backups found.")
            click.echo(f"Backup directory: {manager.backup_dir}")
            return

        click.echo(
            f"Restoring from {len(selected)} archive(s) into {settings.database_path}"
        )
        click.echo(f"Duplicate detection: {restore_config.dedup_mode.value}")

        if not yes:
            warning_msg = "Calls will be added to the call log."
            if restore_config.dedup_mode == DedupMode.DISABLED:
                warning_msg = (
                    "Duplicate detection is disabled: calls already in the "
                    "call log will be added again."
                )
            click.confirm(f"{warning_msg}\nContinue?", abort=True)

        result = manager.restore(selected)
        show_restore_result(result)

        if result.aborted:
            sys.exit(1)

    except click.Abort:
        raise
    except Exception as e:
        logger.exception(f"Restore failed: {e}")
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)


# =============================================================================
# Status Command
# =============================================================================


@cli.command("status")
@click.pass_context
def status_command(ctx: click.Context) -> None:
    """
    Show call log and backup status.

    Example:

        calllog-backup status
    """
    logger = get_logger(__name__)
    settings: AgentConfig = ctx.obj["settings"]

    try:
        click.echo("=== Call Log Backup Status ===\n")
        click.echo(f"Configuration directory: {settings.config_dir}")
        click.echo(f"Call log database: {settings.database_path}")
        click.echo(f"Backup directory: {settings.backup_dir}")
        click.echo()

        if not settings.database_path.exists():
            click.echo("Call log database: Not initialized")
            return

        manager, _events = open_manager(settings)
        state = manager.load_state()

        click.echo(f"Calls in call log: {manager.store.get_call_count()}")
        if state.is_first_backup:
            click.echo("Backup state: No backup yet")
        else:
            click.echo(
                f"Backup state: {len(state.call_ids)} call(s) backed up "
                f"(format {state.version})"
            )

        archives = manager.list_backups()
        click.echo(f"Archives: {len(archives)}")
        if archives:
            click.echo(f"Latest archive: {archives[0].name}")

        pending = manager.pending_count()
        click.echo()
        if pending:
            click.echo(click.style(f"{pending} call(s) waiting for backup.", fg="yellow"))
            click.echo("Run 'calllog-backup backup' to back them up.")
        else:
            click.echo(click.style("Backup is up to date.", fg="green"))

    except Exception as e:
        logger.exception(f"Error getting status: {e}")
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)


# =============================================================================
# Reset Command
# =============================================================================


@cli.command("reset")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt.")
@click.pass_context
def reset_command(ctx: click.Context, yes: bool) -> None:
    """
    Reset backup state (forces a full backup on next run).

    Existing archives and the call log are not touched.

    Example:

        calllog-backup reset
    """
    logger = get_logger(__name__)
    settings: AgentConfig = ctx.obj["settings"]

    state_path = settings.backup_dir / BackupManager.STATE_FILE
    if not state_path.exists():
        click.echo("No backup state found. Nothing to reset.")
        return

    if not yes:
        click.confirm(
            "This will forget which calls were backed up and force a full "
            "backup on next run.\nContinue?",
            abort=True,
        )

    try:
        manager, _events = open_manager(settings)
        manager.reset_state()

        click.echo(click.style("Backup state has been reset.", fg="green"))
        click.echo("Next backup will include every call in the call log.")

    except Exception as e:
        logger.exception(f"Reset failed: {e}")
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)


# =============================================================================
# Init-Config Command
# =============================================================================


@cli.command("init-config")
@click.option(
    "--force",
    "-f",
    is_flag=True,
    help="Overwrite existing configuration file if it exists.",
)
@click.pass_context
def init_config_command(ctx: click.Context, force: bool) -> None:
    """
    Generate a default configuration file.

    Creates a configuration file with all available options documented
    and commented out.

    Examples:

        # Create config file (fails if already exists)
        calllog-backup init-config

        # Overwrite existing config file
        calllog-backup init-config --force
    """
    logger = get_logger(__name__)
    config_file = ctx.obj["config_file"]

    click.echo(f"Creating configuration file: {config_file}")

    success, error = save_config_file(config_file, overwrite=force)

    if success:
        click.echo(click.style("Configuration file created successfully!", fg="green"))
        click.echo(f"\nLocation: {config_file}")
        click.echo("\nNext steps:")
        click.echo("1. Edit the file to uncomment and configure desired options")
        click.echo("2. Run 'calllog-backup --help' to see available commands")
    else:
        click.echo(click.style(f"Error: {error}", fg="red"), err=True)
        logger.error(f"Failed to create configuration file: {error}")
        sys.exit(1)


# =============================================================================
# Health Command
# =============================================================================


@cli.command("health")
def health_command() -> None:
    """
    Check application health status.

    Example:

        calllog-backup health
    """
    click.echo("healthy")
