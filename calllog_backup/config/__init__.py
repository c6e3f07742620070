"""
calllog_backup.config - Configuration management module

Contains configuration loading, validation, and default settings.
"""

from calllog_backup.config.loader import ConfigError, ConfigLoader
from calllog_backup.config.settings import (
    AgentConfig,
    BackupConfig,
    DedupMode,
    RestoreConfig,
    SettingsError,
)

__all__ = [
    "AgentConfig",
    "BackupConfig",
    "ConfigError",
    "ConfigLoader",
    "DedupMode",
    "RestoreConfig",
    "SettingsError",
]
