"""
Tests for the logging configuration module.
"""

import logging
import os
import time
from datetime import datetime
from unittest.mock import patch

import pytest

from calllog_backup.utils.logging import (
    LOG_FILE_PREFIX,
    ROOT_LOGGER_NAME,
    cleanup_old_logs,
    get_logger,
    setup_logging,
)


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Leave the package logger without handlers after each test."""
    yield
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()


def todays_log(log_dir):
    return log_dir / f"{LOG_FILE_PREFIX}{datetime.now().strftime('%Y%m%d')}.log"


def console_handler(logger):
    return next(h for h in logger.handlers if not isinstance(h, logging.FileHandler))


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_returns_package_logger(self):
        logger = setup_logging()
        assert logger.name == ROOT_LOGGER_NAME
        assert logger.propagate is False
        assert len(logger.handlers) == 1

    def test_verbose_means_debug(self):
        logger = setup_logging(verbose=True, level=logging.ERROR)
        assert console_handler(logger).level == logging.DEBUG

    def test_explicit_level(self):
        logger = setup_logging(level=logging.WARNING)
        assert logger.level == logging.WARNING

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("WARNING", logging.WARNING),
            ("warn", logging.WARNING),
            ("error", logging.ERROR),
            ("INVALID", logging.INFO),
        ],
    )
    def test_level_from_env(self, value, expected):
        with patch.dict(os.environ, {"CALLLOG_BACKUP_LOG_LEVEL": value}):
            logger = setup_logging()
        assert console_handler(logger).level == expected

    def test_default_is_info(self):
        with patch.dict(os.environ, {}, clear=True):
            logger = setup_logging()
        assert logger.level == logging.INFO

    def test_repeated_setup_does_not_stack_handlers(self):
        setup_logging()
        logger = setup_logging()
        assert len(logger.handlers) == 1

    def test_log_dir_gets_dated_debug_file(self, tmp_path):
        log_dir = tmp_path / "logs"
        logger = setup_logging(log_dir=log_dir, level=logging.WARNING)

        logger.getChild("restore").debug("Flushed batch: 3 inserted")

        assert len(logger.handlers) == 2
        assert "Flushed batch: 3 inserted" in todays_log(log_dir).read_text()

    def test_console_keeps_its_level_with_file_logging(self, tmp_path):
        logger = setup_logging(log_dir=tmp_path, level=logging.WARNING)
        assert console_handler(logger).level == logging.WARNING

    def test_unwritable_log_dir_is_not_fatal(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("")
        logger = setup_logging(log_dir=blocker / "logs")
        assert len(logger.handlers) == 1


class TestCleanupOldLogs:
    """Tests for cleanup_old_logs function."""

    def make_logs(self, log_dir, count):
        paths = []
        for i in range(count):
            path = log_dir / f"{LOG_FILE_PREFIX}2026010{i}.log"
            path.write_text("")
            mtime = time.time() - (count - i) * 60
            os.utime(path, (mtime, mtime))
            paths.append(path)
        return paths

    def test_keeps_newest(self, tmp_path):
        paths = self.make_logs(tmp_path, 5)

        deleted = cleanup_old_logs(tmp_path, keep_count=2)

        assert deleted == 3
        assert sorted(tmp_path.iterdir()) == paths[3:]

    def test_ignores_other_files(self, tmp_path):
        self.make_logs(tmp_path, 2)
        (tmp_path / "notes.txt").write_text("")

        assert cleanup_old_logs(tmp_path, keep_count=1) == 1
        assert (tmp_path / "notes.txt").exists()

    def test_zero_keep_count_disables_cleanup(self, tmp_path):
        self.make_logs(tmp_path, 3)
        assert cleanup_old_logs(tmp_path, keep_count=0) == 0

    def test_missing_directory(self, tmp_path):
        assert cleanup_old_logs(tmp_path / "missing") == 0

    def test_uses_configured_directory(self, tmp_path):
        setup_logging(log_dir=tmp_path)
        old = tmp_path / f"{LOG_FILE_PREFIX}20000101.log"
        old.write_text("")
        os.utime(old, (0, 0))

        assert cleanup_old_logs(keep_count=1) == 1
        assert not old.exists()

    def test_nothing_configured(self):
        setup_logging()
        assert cleanup_old_logs() == 0


class TestGetLogger:
    """Tests for get_logger function."""

    def test_keeps_package_names(self):
        assert get_logger("calllog_backup.restore").name == "calllog_backup.restore"

    def test_adds_prefix(self):
        assert get_logger("tools").name == "calllog_backup.tools"
