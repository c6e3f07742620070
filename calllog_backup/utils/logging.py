"""
Logging setup for the calllog-backup CLI.

Console output goes to stderr. When a log directory is configured, a dated
log file in it captures everything at DEBUG.
"""

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

CONSOLE_FORMAT = "%(levelname)s: %(message)s"
FILE_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
)
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# CALLLOG_BACKUP_LOG_LEVEL=WARNING etc.; unknown names mean INFO
ENV_LOG_LEVEL = "CALLLOG_BACKUP_LOG_LEVEL"

ROOT_LOGGER_NAME = "calllog_backup"
LOG_FILE_PREFIX = "calllog_backup_"

_configured_log_dir: Optional[Path] = None


def _level_from_env() -> int:
    level = logging.getLevelName(os.environ.get(ENV_LOG_LEVEL, "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging(
    verbose: bool = False,
    log_dir: Optional[Path] = None,
    level: Optional[int] = None,
) -> logging.Logger:
    """
    Configure the package logger.

    Safe to call more than once; earlier handlers are replaced.

    Args:
        verbose: Log at DEBUG, with file and line in console messages
        log_dir: Directory for a dated log file; no file logging if None
        level: Console level; defaults to CALLLOG_BACKUP_LOG_LEVEL or INFO

    Returns:
        The calllog_backup logger
    """
    global _configured_log_dir

    if verbose:
        level = logging.DEBUG
    elif level is None:
        level = _level_from_env()

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
    logger.setLevel(logging.DEBUG if log_dir else level)
    logger.propagate = False

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(
        logging.Formatter(FILE_FORMAT if verbose else CONSOLE_FORMAT, DATE_FORMAT)
    )
    logger.addHandler(console)

    _configured_log_dir = None
    if log_dir:
        log_file = log_dir / f"{LOG_FILE_PREFIX}{datetime.now().strftime('%Y%m%d')}.log"
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
        except OSError as e:
            logger.warning(f"Could not create log file {log_file}: {e}")
        else:
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(logging.Formatter(FILE_FORMAT, DATE_FORMAT))
            logger.addHandler(file_handler)
            _configured_log_dir = log_dir
            logger.debug(f"Log file: {log_file}")

    return logger


def cleanup_old_logs(log_dir: Optional[Path] = None, keep_count: int = 10) -> int:
    """
    Delete all but the newest keep_count log files.

    Args:
        log_dir: Directory to clean; defaults to the one setup_logging() used
        keep_count: Files to keep; 0 disables cleanup

    Returns:
        Number of files deleted
    """
    logs_dir = log_dir or _configured_log_dir
    if keep_count <= 0 or logs_dir is None or not logs_dir.exists():
        return 0

    logs = sorted(
        logs_dir.glob(f"{LOG_FILE_PREFIX}*.log"),
        key=lambda p: p.stat().st_mtime,
        reverse=True,
    )

    deleted = 0
    for old_log in logs[keep_count:]:
        try:
            old_log.unlink()
            deleted += 1
        except OSError as e:
            logging.getLogger(__name__).debug(f"Could not delete {old_log}: {e}")
    return deleted


def get_logger(name: str) -> logging.Logger:
    """Logger under the calllog_backup hierarchy for name."""
    if not name.startswith(ROOT_LOGGER_NAME):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)
