"""
Backup manager for call-log backup and recovery.

Provides functionality to:
- Run an incremental backup pass against any entity transport
- Write each pass to a timestamped archive file in the backup directory
- Keep the backup state between passes
- Restore calls from the archives into the call-log store
"""

from __future__ import annotations

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import BinaryIO, Optional, Union

from calllog_backup.backup.differ import BackupDiffer, BackupResult
from calllog_backup.codec.errors import FutureFormatError, StateCorruptError
from calllog_backup.codec.record_codec import RecordCodec
from calllog_backup.codec.state_codec import BackupState, StateCodec
from calllog_backup.config.settings import BackupConfig, RestoreConfig
from calllog_backup.events import BackupRestoreEventLogger, LoggingEventLogger
from calllog_backup.restore.migration import SubscriptionMapping
from calllog_backup.restore.pipeline import RestorePipeline, RestoreResult
from calllog_backup.storage.base import CallLogStore
from calllog_backup.transport.archive import EntityArchiveReader, EntityArchiveWriter
from calllog_backup.transport.base import (
    BackupDataInput,
    BackupDataOutput,
    TransportError,
)

logger = logging.getLogger(__name__)


class BackupManager:
    """
    Manager for backing up and restoring the call log.

    The stream-level methods (run_backup, run_restore) work against any
    transport and state stream. The file-level methods (create_backup,
    restore) keep archives and the backup state in backup_dir.

    Attributes:
        store: Call-log store
        backup_dir: Directory path where archives and state are stored
        backup_config: Backup settings
        restore_config: Restore settings
        event_logger: Receives aggregated outcome counts

    Usage:
        from pathlib import Path

        bm = BackupManager(db, Path("~/.calllog-backup/backups"))

        # Back up calls added since the last pass
        result = bm.create_backup()

        # List archives
        archives = bm.list_backups()

        # Restore every archive into the store
        restored = bm.restore()
    """

    BACKUP_PREFIX = "backup_"
    BACKUP_SUFFIX = ".cbk"
    STATE_FILE = "backup_state.bin"

    def __init__(
        self,
        store: CallLogStore,
        backup_dir: Path,
        backup_config: Optional[BackupConfig] = None,
        restore_config: Optional[RestoreConfig] = None,
        event_logger: Optional[BackupRestoreEventLogger] = None,
        subscription_mapping: Optional[SubscriptionMapping] = None,
    ):
        """
        Initialize the backup manager.

        Args:
            store: Call-log store to back up and restore into
            backup_dir: Directory path where archives will be stored
            backup_config: Backup settings (defaults when None)
            restore_config: Restore settings (defaults when None)
            event_logger: Event logger (logs through logging when None)
            subscription_mapping: Overrides restore_config.subscription_map
        """
        self.store = store
        self.backup_dir = Path(backup_dir).expanduser()
        self.backup_config = backup_config or BackupConfig()
        self.restore_config = restore_config or RestoreConfig()
        self.event_logger = event_logger or LoggingEventLogger()

        codec = RecordCodec()
        self.state_codec = StateCodec(codec.current_version)
        self.differ = BackupDiffer(
            codec=codec,
            event_logger=self.event_logger,
            prune_removed=self.backup_config.prune_removed,
        )
        self.pipeline = RestorePipeline(
            store,
            config=self.restore_config,
            event_logger=self.event_logger,
            subscription_mapping=subscription_mapping,
            codec=codec,
        )

        self.backup_dir.mkdir(parents=True, exist_ok=True)

    @property
    def state_path(self) -> Path:
        return self.backup_dir / self.STATE_FILE

    # =========================================================================
    # Stream-level API
    # =========================================================================

    def read_prior_state(
        self, source: Union[bytes, bytearray, BinaryIO, None]
    ) -> BackupState:
        """
        Read the state left by the previous pass.

        A missing, corrupt or too-new state is treated as no previous state,
        so the next pass backs up everything again.
        """
        if source is None:
            return BackupState.no_previous_state()
        try:
            return self.state_codec.decode(source)
        except (StateCorruptError, FutureFormatError) as e:
            logger.warning(f"Ignoring unreadable backup state, doing full backup: {e}")
            return BackupState.no_previous_state()

    def run_backup(
        self,
        old_state: Union[bytes, bytearray, BinaryIO, None],
        output: Optional[BackupDataOutput],
        new_state: BinaryIO,
    ) -> BackupResult:
        """
        Run one backup pass.

        Args:
            old_state: State written by the previous pass (None or empty for
                the first pass)
            output: Backup side of the transport, or None if unavailable
            new_state: Stream receiving the state for the next pass

        Returns:
            BackupResult for the pass
        """
        prior = self.read_prior_state(old_state)
        result = self.differ.diff(self.store.query_all(), prior, output)
        self.state_codec.encode(new_state, result.new_state)
        return result

    def run_restore(
        self,
        data_input: BackupDataInput,
        app_version: Optional[int] = None,
        prior_state: Optional[BackupState] = None,
    ) -> RestoreResult:
        """Restore every entity from the transport into the store."""
        return self.pipeline.restore(data_input, app_version, prior_state)

    # =========================================================================
    # File-level API
    # =========================================================================

    def create_backup(self) -> BackupResult:
        """
        Back up new calls to a timestamped archive.

        Creates a file named backup_YYYYMMDD_HHMMSS_ffffff.cbk and updates
        the stored state. The archive is removed again if the pass had
        nothing to write.

        Returns:
            BackupResult; archive_path is set when an archive was kept
        """
        timestamp = datetime.now()
        filename = (
            f"{self.BACKUP_PREFIX}{timestamp.strftime('%Y%m%d_%H%M%S_%f')}"
            f"{self.BACKUP_SUFFIX}"
        )
        archive_path = self.backup_dir / filename
        prior = self.load_state()
        records = self.store.query_all()

        try:
            writer: Optional[EntityArchiveWriter] = EntityArchiveWriter.open(
                archive_path
            )
        except TransportError as e:
            logger.error(f"Cannot create archive: {e}")
            writer = None

        if writer is None:
            result = self.differ.diff(records, prior, None)
        else:
            with writer:
                result = self.differ.diff(records, prior, writer)
            if writer.entity_count or writer.deleted_count:
                result.archive_path = archive_path
                logger.info(
                    f"Wrote {writer.entity_count} call(s) and "
                    f"{writer.deleted_count} deletion(s) to {archive_path.name}"
                )
            else:
                archive_path.unlink(missing_ok=True)
                logger.info("No new calls to back up")

        self.save_state(result.new_state)
        return result

    def list_backups(self, oldest_first: bool = False) -> list[Path]:
        """
        List all archives sorted by timestamp.

        Args:
            oldest_first: Sort oldest to newest (restore order) instead of
                newest to oldest

        Returns:
            List of Path objects for archive files
        """
        backup_files = list(
            self.backup_dir.glob(f"{self.BACKUP_PREFIX}*{self.BACKUP_SUFFIX}")
        )
        # Timestamped names sort chronologically
        backup_files.sort(key=lambda p: p.name, reverse=not oldest_first)
        return backup_files

    def load_state(self) -> BackupState:
        """Read the stored backup state (no previous state if absent)."""
        try:
            data = self.state_path.read_bytes()
        except FileNotFoundError:
            return BackupState.no_previous_state()
        return self.read_prior_state(data)

    def save_state(self, state: BackupState) -> None:
        """
        Write the backup state atomically.

        The previous state file is left untouched on failure.

        Raises:
            OSError: If the state file cannot be written
            StateCorruptError: If the state cannot be encoded
        """
        tmp_path = self.state_path.with_suffix(".tmp")
        try:
            with open(tmp_path, "wb") as f:
                self.state_codec.encode(f, state)
            os.replace(tmp_path, self.state_path)
        except (OSError, StateCorruptError):
            tmp_path.unlink(missing_ok=True)
            raise

    def reset_state(self) -> bool:
        """
        Forget the backup state so the next pass backs up every call.

        Returns:
            True if a state file was removed
        """
        try:
            self.state_path.unlink()
        except FileNotFoundError:
            return False
        logger.info("Backup state reset")
        return True

    def pending_count(self) -> int:
        """Number of calls the next backup pass would send."""
        return len(self.differ.select(self.store.query_all(), self.load_state()))

    def restore(
        self,
        archives: Optional[list[Path]] = None,
        app_version: Optional[int] = None,
    ) -> RestoreResult:
        """
        Restore calls from archives.

        Args:
            archives: Archives to replay, oldest first. Defaults to every
                archive in backup_dir.
            app_version: Version of the app that wrote the archives

        Returns:
            RestoreResult for the restore

        Raises:
            TransportError: If an archive cannot be read
        """
        if archives is None:
            archives = self.list_backups(oldest_first=True)
        if not archives:
            logger.warning(f"No archives found in {self.backup_dir}")
            return RestoreResult()

        data_input = EntityArchiveReader.open(archives)
        logger.info(f"Restoring {len(data_input)} call(s) from {len(archives)} archive(s)")
        return self.run_restore(data_input, app_version)
