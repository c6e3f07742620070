"""
Backup/restore event reporting.

Backup and restore report aggregated success and failure counts to an
event logger at natural boundaries: once per backup pass, and once per
restore flush.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Protocol

logger = logging.getLogger(__name__)

# Data type reported with every event
CALL_LOG_DATA_TYPE = "call_log"

# Failure reasons
ERROR_BACKUP_CALL_FAILED = "backup_call_failed"
ERROR_NULL_BACKUP_DATA_OUTPUT = "null_backup_data_output"
ERROR_RESTORE_VERSION_TOO_NEW = "restore_version_too_new"
ERROR_RESTORE_CALL_FAILED = "restore_call_failed"
ERROR_READ_CALL_DATA = "read_call_data_failed"


class BackupRestoreEventLogger(Protocol):
    """Receives aggregated outcome counts from backup and restore."""

    def log_items_backed_up(self, data_type: str, count: int) -> None: ...

    def log_items_backup_failed(
        self, data_type: str, count: int, error: str
    ) -> None: ...

    def log_items_restored(self, data_type: str, count: int) -> None: ...

    def log_items_restore_failed(
        self, data_type: str, count: int, error: str
    ) -> None: ...


@dataclass
class EventCounts:
    """
    Running totals of reported events.

    Failure counts are kept per error string so the CLI can explain them.
    """

    backed_up: int = 0
    restored: int = 0
    backup_failures: Counter[str] = field(default_factory=Counter)
    restore_failures: Counter[str] = field(default_factory=Counter)

    @property
    def backup_failed(self) -> int:
        """Total backup failures across all reasons."""
        return sum(self.backup_failures.values())

    @property
    def restore_failed(self) -> int:
        """Total restore failures across all reasons."""
        return sum(self.restore_failures.values())


class LoggingEventLogger:
    """
    Event logger that writes to the application log and keeps totals.

    Usage:
        events = LoggingEventLogger()
        manager = BackupManager(db, backup_dir, event_logger=events)
        manager.create_backup()
        print(events.counts.backed_up)
    """

    def __init__(self) -> None:
        self.counts = EventCounts()

    def log_items_backed_up(self, data_type: str, count: int) -> None:
        self.counts.backed_up += count
        logger.info(f"Backed up {count} {data_type} item(s)")

    def log_items_backup_failed(self, data_type: str, count: int, error: str) -> None:
        self.counts.backup_failures[error] += count
        logger.warning(f"Failed to back up {count} {data_type} item(s): {error}")

    def log_items_restored(self, data_type: str, count: int) -> None:
        self.counts.restored += count
        logger.info(f"Restored {count} {data_type} item(s)")

    def log_items_restore_failed(self, data_type: str, count: int, error: str) -> None:
        self.counts.restore_failures[error] += count
        logger.warning(f"Failed to restore {count} {data_type} item(s): {error}")
