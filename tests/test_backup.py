"""
Unit and integration tests for the backup manager.

Tests BackupManager for running backup passes into archives, keeping the
backup state between passes, and restoring archives into a call log.
"""

import io
import struct
from datetime import datetime, timedelta
from unittest.mock import MagicMock, patch

import pytest

from calllog_backup.backup.manager import BackupManager
from calllog_backup.codec.errors import StateCorruptError
from calllog_backup.codec.record_codec import CURRENT_VERSION
from calllog_backup.codec.state_codec import BackupState, StateCodec
from calllog_backup.config.settings import (
    TELEPHONY_COMPONENT,
    BackupConfig,
    DedupMode,
    RestoreConfig,
)
from calllog_backup.events import (
    ERROR_BACKUP_CALL_FAILED,
    ERROR_NULL_BACKUP_DATA_OUTPUT,
    LoggingEventLogger,
)
from calllog_backup.storage.db import CallLogDatabase
from calllog_backup.transport.archive import EntityArchiveReader, iter_archive
from calllog_backup.transport.base import TransportError


@pytest.fixture
def clock():
    """Advance the manager's clock one second per call so archive names differ."""
    start = datetime(2026, 1, 20, 10, 30, 0)
    ticks = iter(start + timedelta(seconds=i) for i in range(1000))
    with patch("calllog_backup.backup.manager.datetime") as mock_datetime:
        mock_datetime.now.side_effect = lambda: next(ticks)
        yield mock_datetime


@pytest.fixture
def manager(db, tmp_path, clock):
    return BackupManager(db, tmp_path / "backups")


def archive_keys(path):
    with open(path, "rb") as f:
        return [key for key, _size, _data in iter_archive(f)]


def new_store():
    store = CallLogDatabase(":memory:")
    store.initialize()
    return store


class TestInitialization:
    """Tests for BackupManager setup."""

    def test_creates_backup_directory(self, db, tmp_path):
        backup_dir = tmp_path / "backups" / "nested"
        BackupManager(db, backup_dir)
        assert backup_dir.is_dir()

    def test_defaults(self, db, tmp_path):
        bm = BackupManager(db, tmp_path)
        assert bm.backup_config == BackupConfig()
        assert bm.restore_config == RestoreConfig()
        assert isinstance(bm.event_logger, LoggingEventLogger)
        assert bm.state_path == tmp_path / "backup_state.bin"

    def test_configs_reach_differ_and_pipeline(self, db, tmp_path):
        bm = BackupManager(
            db,
            tmp_path,
            backup_config=BackupConfig(prune_removed=True),
            restore_config=RestoreConfig(dedup_mode=DedupMode.BATCHED),
        )
        assert bm.differ.prune_removed
        assert bm.pipeline.config.dedup_mode == DedupMode.BATCHED


class TestCreateBackup:
    """Tests for file-level backup passes."""

    def test_first_backup_sends_every_call(self, manager, db, make_call):
        db.insert(make_call(date=1))
        db.insert(make_call(date=2))

        result = manager.create_backup()

        assert result.succeeded == 2
        assert result.archive_path.name == "backup_20260120_103000_000000.cbk"
        assert archive_keys(result.archive_path) == ["1", "2"]
        assert manager.load_state().call_ids == {1, 2}

    def test_second_backup_sends_only_new_calls(self, manager, db, make_call):
        db.insert(make_call(date=1))
        manager.create_backup()
        db.insert(make_call(date=2))

        result = manager.create_backup()

        assert result.transmitted == [2]
        assert archive_keys(result.archive_path) == ["2"]
        assert manager.load_state().call_ids == {1, 2}

    def test_nothing_new_keeps_no_archive(self, manager, db, make_call):
        db.insert(make_call(date=1))
        manager.create_backup()

        result = manager.create_backup()

        assert result.archive_path is None
        assert len(manager.list_backups()) == 1
        assert manager.load_state().call_ids == {1}

    def test_empty_call_log(self, manager):
        result = manager.create_backup()

        assert result.archive_path is None
        assert manager.list_backups() == []
        state = manager.load_state()
        assert state.version == CURRENT_VERSION
        assert state.call_ids == set()

    def test_unavailable_archive_fails_every_call(self, manager, db, make_call):
        db.insert(make_call(date=1))
        events = MagicMock()
        manager.differ.event_logger = events

        with patch(
            "calllog_backup.backup.manager.EntityArchiveWriter.open",
            side_effect=TransportError("read-only file system"),
        ):
            result = manager.create_backup()

        assert result.failed == {1: ERROR_NULL_BACKUP_DATA_OUTPUT}
        assert manager.load_state().call_ids == set()
        events.log_items_backup_failed.assert_called_once()

    def test_pruned_calls_are_announced(self, db, tmp_path, clock, make_call):
        bm = BackupManager(
            db, tmp_path, backup_config=BackupConfig(prune_removed=True)
        )
        db.insert(make_call(date=1))
        db.insert(make_call(date=2))
        bm.create_backup()
        db.delete_call(1)

        result = bm.create_backup()

        assert result.removed == [1]
        assert result.archive_path is not None
        assert bm.load_state().call_ids == {2}

    def test_corrupt_state_forces_full_backup(self, manager, db, make_call):
        db.insert(make_call(date=1))
        manager.create_backup()
        manager.state_path.write_bytes(struct.pack(">ii", CURRENT_VERSION, 5))

        result = manager.create_backup()

        assert result.transmitted == [1]


class TestListBackups:
    """Tests for listing archives."""

    def test_newest_first_by_default(self, manager, db, make_call):
        for date in (1, 2, 3):
            db.insert(make_call(date=date))
            manager.create_backup()

        names = [p.name for p in manager.list_backups()]

        assert names == sorted(names, reverse=True)
        assert len(names) == 3

    def test_oldest_first(self, manager, db, make_call):
        for date in (1, 2):
            db.insert(make_call(date=date))
            manager.create_backup()

        archives = manager.list_backups(oldest_first=True)

        assert archive_keys(archives[0]) == ["1"]
        assert archive_keys(archives[1]) == ["2"]

    def test_ignores_other_files(self, manager):
        (manager.backup_dir / "notes.txt").write_text("")
        (manager.backup_dir / "backup_state.bin").write_bytes(b"")
        assert manager.list_backups() == []


class TestState:
    """Tests for loading, saving and resetting the backup state."""

    def test_missing_state_is_first_backup(self, manager):
        assert manager.load_state().is_first_backup

    def test_save_and_load(self, manager):
        manager.save_state(BackupState(CURRENT_VERSION, {3, 1}))

        assert manager.load_state() == BackupState(CURRENT_VERSION, {1, 3})
        assert not manager.state_path.with_suffix(".tmp").exists()

    def test_failed_save_keeps_previous_state(self, manager):
        manager.save_state(BackupState(CURRENT_VERSION, {1}))

        with pytest.raises(StateCorruptError):
            manager.save_state(BackupState(CURRENT_VERSION, {1, 2**31}))

        assert not manager.state_path.with_suffix(".tmp").exists()
        assert manager.load_state().call_ids == {1}

    def test_backup_with_oversized_id_still_saves_state(self, manager, make_call):
        manager.store = MagicMock()
        manager.store.query_all.return_value = [make_call(1), make_call(2**31)]

        result = manager.create_backup()

        assert result.transmitted == [1]
        assert result.failed == {2**31: ERROR_BACKUP_CALL_FAILED}
        assert archive_keys(result.archive_path) == ["1"]
        assert manager.load_state().call_ids == {1}

    def test_too_new_state_is_ignored(self, manager):
        manager.state_path.write_bytes(struct.pack(">ii", CURRENT_VERSION + 1, 0))
        assert manager.load_state().is_first_backup

    @pytest.mark.parametrize(
        "source", [None, b"", struct.pack(">iii", CURRENT_VERSION, 2, 1)]
    )
    def test_read_prior_state_fallbacks(self, manager, source):
        assert manager.read_prior_state(source).is_first_backup

    def test_reset_state(self, manager):
        manager.save_state(BackupState(CURRENT_VERSION, {1}))

        assert manager.reset_state() is True
        assert manager.reset_state() is False
        assert manager.load_state().is_first_backup

    def test_pending_count(self, manager, db, make_call):
        db.insert(make_call(date=1))
        db.insert(make_call(date=2))
        assert manager.pending_count() == 2

        manager.create_backup()
        db.insert(make_call(date=3))

        assert manager.pending_count() == 1


class TestRunBackup:
    """Tests for the stream-level backup pass."""

    def test_writes_new_state_to_stream(self, manager, db, make_call):
        db.insert(make_call(date=1))
        db.insert(make_call(date=2))
        old_state = StateCodec().to_bytes(BackupState(CURRENT_VERSION, {1}))
        output = MagicMock()
        new_state = io.BytesIO()

        result = manager.run_backup(old_state, output, new_state)

        assert result.transmitted == [2]
        assert new_state.getvalue() == struct.pack(">iiii", CURRENT_VERSION, 2, 1, 2)

    def test_no_old_state(self, manager, db, make_call):
        db.insert(make_call(date=1))
        new_state = io.BytesIO()

        result = manager.run_backup(None, MagicMock(), new_state)

        assert result.transmitted == [1]

    def test_missing_output_still_writes_state(self, manager, db, make_call):
        db.insert(make_call(date=1))
        new_state = io.BytesIO()

        manager.run_backup(b"", None, new_state)

        assert new_state.getvalue() == struct.pack(">ii", CURRENT_VERSION, 0)


class TestRestore:
    """Integration tests for restoring archives into a call log."""

    def test_restore_into_empty_call_log(self, manager, db, tmp_path, make_call):
        db.insert(make_call(date=1, number="555-0001"))
        db.insert(make_call(date=2, number=None))
        manager.create_backup()

        target = new_store()
        restorer = BackupManager(target, manager.backup_dir)
        result = restorer.restore()

        assert result.restored == 2
        assert sorted((c.date, c.number) for c in target.query_all()) == [
            (1, "555-0001"),
            (2, None),
        ]

    def test_repeated_restore_adds_nothing(self, manager, db, make_call):
        for date in range(5):
            db.insert(make_call(date=date))
        manager.create_backup()

        target = new_store()
        restorer = BackupManager(target, manager.backup_dir)
        restorer.restore()
        second = restorer.restore()

        assert second.restored == 0
        assert second.duplicates == 5
        assert target.get_call_count() == 5

    def test_restore_merges_incremental_archives(self, manager, db, make_call):
        db.insert(make_call(date=1))
        manager.create_backup()
        db.insert(make_call(date=2))
        manager.create_backup()

        target = new_store()
        result = BackupManager(target, manager.backup_dir).restore()

        assert result.restored == 2

    def test_restore_skips_pruned_calls(self, db, tmp_path, clock, make_call):
        bm = BackupManager(db, tmp_path, backup_config=BackupConfig(prune_removed=True))
        db.insert(make_call(date=1))
        db.insert(make_call(date=2))
        bm.create_backup()
        db.delete_call(1)
        bm.create_backup()

        target = new_store()
        BackupManager(target, tmp_path).restore()

        assert [c.date for c in target.query_all()] == [2]

    def test_restore_selected_archives(self, manager, db, make_call):
        db.insert(make_call(date=1))
        first = manager.create_backup().archive_path
        db.insert(make_call(date=2))
        manager.create_backup()

        target = new_store()
        BackupManager(target, manager.backup_dir).restore([first])

        assert [c.date for c in target.query_all()] == [1]

    def test_restore_migrates_phone_accounts(self, manager, db, make_call):
        db.insert(
            make_call(date=1, account_component_name=TELEPHONY_COMPONENT, account_id="1")
        )
        manager.create_backup()

        target = new_store()
        restorer = BackupManager(
            target,
            manager.backup_dir,
            restore_config=RestoreConfig(subscription_map={1: "8901260000000000001"}),
        )
        restorer.restore()

        assert target.query_all()[0].account_id == "8901260000000000001"

    def test_no_archives(self, manager):
        result = manager.restore()
        assert result.entities_read == 0
        assert result.restored == 0

    def test_unreadable_archive_raises(self, manager):
        bad = manager.backup_dir / "backup_20260101_000000_000000.cbk"
        bad.write_bytes(b"not an archive")
        with pytest.raises(TransportError):
            manager.restore()

    def test_run_restore_uses_any_transport(self, manager, db, make_call):
        from calllog_backup.codec.record_codec import RecordCodec

        payload = RecordCodec().encode(make_call(7, date=70))
        result = manager.run_restore(EntityArchiveReader([("7", payload)]), app_version=5)

        assert result.restored == 1
        assert db.query_all()[0].date == 70
