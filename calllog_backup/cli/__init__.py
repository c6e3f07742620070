"""CLI package for calllog_backup."""

from calllog_backup.cli.formatters import (
    show_archive_list,
    show_backup_result,
    show_restore_result,
)
from calllog_backup.cli.main import cli, get_config_dir, open_manager

__all__ = [
    "cli",
    "get_config_dir",
    "open_manager",
    "show_archive_list",
    "show_backup_result",
    "show_restore_result",
]
