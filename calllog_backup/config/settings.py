"""
Typed settings for backup and restore.

Settings are read from the flat YAML configuration (see ConfigLoader) and
grouped into dataclasses:

    dedup_mode: batched
    batch_size: 50
    telephony_component: com.android.phone/...TelephonyConnectionService
    subscription_map:
      666: "891004234814455936F"
    prune_removed: false
    database_path: ~/.calllog-backup/calllog.db
    backup_dir: ~/.calllog-backup/backups

Notes:
    - Missing keys fall back to the defaults below
    - Relative paths are resolved against the configuration directory
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from calllog_backup.utils import resolve_config_dir

logger = logging.getLogger(__name__)


class DedupMode(str, Enum):
    """How restore avoids inserting calls that already exist."""

    DISABLED = "disabled"  # Insert everything (legacy behavior)
    PER_RECORD = "per_record"  # Look up each call before inserting it
    BATCHED = "batched"  # One bulk lookup and one bulk insert per batch


# Valid dedup mode values for validation
VALID_DEDUP_MODES = {mode.value for mode in DedupMode}

# Calls collected per batch in batched mode
DEFAULT_BATCH_SIZE = 50

# Component name of the built-in telephony connection service
TELEPHONY_COMPONENT = (
    "com.android.phone/com.android.services.telephony.TelephonyConnectionService"
)

# Default file and directory names inside the configuration directory
DEFAULT_DATABASE_FILE = "calllog.db"
DEFAULT_BACKUP_DIR = "backups"
DEFAULT_LOG_RETENTION_COUNT = 10


class SettingsError(Exception):
    """Raised when settings cannot be built from configuration data."""

    pass


def _parse_subscription_map(data: Any) -> dict[int, str]:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise SettingsError(
            f"subscription_map must be a mapping, got {type(data).__name__}"
        )

    mapping: dict[int, str] = {}
    for key, value in data.items():
        try:
            sub_id = int(key)
        except (TypeError, ValueError) as e:
            raise SettingsError(
                f"subscription_map keys must be integers, got {key!r}"
            ) from e
        if not isinstance(value, str) or not value:
            raise SettingsError(
                f"subscription_map[{sub_id}] must be a non-empty string"
            )
        mapping[sub_id] = value
    return mapping


@dataclass
class RestoreConfig:
    """
    Restore settings.

    Attributes:
        dedup_mode: How duplicates are detected (default: per_record)
        batch_size: Calls per batch in batched mode (default: 50)
        telephony_component: Component whose calls get phone-account migration
        subscription_map: Subscription id to stable account id

    Usage:
        config = RestoreConfig()  # per_record, batch of 50

        config = RestoreConfig(dedup_mode=DedupMode.BATCHED, batch_size=10)
    """

    dedup_mode: DedupMode = DedupMode.PER_RECORD
    batch_size: int = DEFAULT_BATCH_SIZE
    telephony_component: str = TELEPHONY_COMPONENT
    subscription_map: dict[int, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        try:
            self.dedup_mode = DedupMode(self.dedup_mode)
        except ValueError as e:
            raise SettingsError(
                f"Invalid dedup_mode '{self.dedup_mode}'. "
                f"Must be one of: {', '.join(sorted(VALID_DEDUP_MODES))}"
            ) from e
        if self.batch_size < 1:
            raise SettingsError(f"batch_size must be >= 1, got {self.batch_size}")

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> RestoreConfig:
        """
        Create RestoreConfig from configuration data.

        Args:
            data: Configuration dictionary, or None for defaults

        Raises:
            SettingsError: If a value has the wrong type or is out of range
        """
        if data is None:
            return cls()

        batch_size = data.get("batch_size", DEFAULT_BATCH_SIZE)
        if isinstance(batch_size, bool) or not isinstance(batch_size, int):
            raise SettingsError(
                f"batch_size must be an integer, got {type(batch_size).__name__}"
            )

        telephony_component = data.get("telephony_component", TELEPHONY_COMPONENT)
        if not isinstance(telephony_component, str) or not telephony_component:
            raise SettingsError("telephony_component must be a non-empty string")

        return cls(
            dedup_mode=data.get("dedup_mode", DedupMode.PER_RECORD.value),
            batch_size=batch_size,
            telephony_component=telephony_component,
            subscription_map=_parse_subscription_map(data.get("subscription_map")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "dedup_mode": self.dedup_mode.value,
            "batch_size": self.batch_size,
            "telephony_component": self.telephony_component,
            "subscription_map": dict(self.subscription_map),
        }


@dataclass
class BackupConfig:
    """
    Backup settings.

    Attributes:
        prune_removed: Send deletions for calls that left the call log
            since the last pass (default: False)
    """

    prune_removed: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> BackupConfig:
        if data is None:
            return cls()

        prune_removed = data.get("prune_removed", False)
        if not isinstance(prune_removed, bool):
            raise SettingsError(
                f"prune_removed must be a boolean, got {type(prune_removed).__name__}"
            )
        return cls(prune_removed=prune_removed)

    def to_dict(self) -> dict[str, Any]:
        return {"prune_removed": self.prune_removed}


@dataclass
class AgentConfig:
    """
    Complete settings for the backup agent and CLI.

    Attributes:
        config_dir: Configuration directory the paths are relative to
        database_path: SQLite call-log database
        backup_dir: Directory holding archives and the backup state
        log_dir: Directory for log files (None disables file logging)
        log_retention_count: Log files to keep
        verbose: Verbose console output
        backup: Backup settings
        restore: Restore settings

    Usage:
        loader = ConfigLoader()
        settings = AgentConfig.from_dict(loader.load_and_validate(), loader.config_dir)
    """

    config_dir: Path
    database_path: Path
    backup_dir: Path
    log_dir: Path | None = None
    log_retention_count: int = DEFAULT_LOG_RETENTION_COUNT
    verbose: bool = False
    backup: BackupConfig = field(default_factory=BackupConfig)
    restore: RestoreConfig = field(default_factory=RestoreConfig)

    @classmethod
    def from_dict(
        cls, data: dict[str, Any] | None, config_dir: Path | str | None = None
    ) -> AgentConfig:
        """
        Build settings from flat configuration data.

        Args:
            data: Configuration dictionary (may be empty or None)
            config_dir: Configuration directory; resolved like the CLI does
                when None

        Raises:
            SettingsError: If the configuration is invalid
        """
        data = data or {}
        base = resolve_config_dir(config_dir)

        def resolve(key: str, default: str) -> Path:
            value = data.get(key, default)
            if not isinstance(value, (str, Path)):
                raise SettingsError(
                    f"{key} must be a path string, got {type(value).__name__}"
                )
            path = Path(value).expanduser()
            return path if path.is_absolute() else base / path

        log_dir = resolve("log_dir", "logs") if data.get("log_dir") else None

        return cls(
            config_dir=base,
            database_path=resolve("database_path", DEFAULT_DATABASE_FILE),
            backup_dir=resolve("backup_dir", DEFAULT_BACKUP_DIR),
            log_dir=log_dir,
            log_retention_count=data.get(
                "log_retention_count", DEFAULT_LOG_RETENTION_COUNT
            ),
            verbose=bool(data.get("verbose", False)),
            backup=BackupConfig.from_dict(data),
            restore=RestoreConfig.from_dict(data),
        )

    def to_dict(self) -> dict[str, Any]:
        """Flat configuration dictionary, as it would appear in config.yaml."""
        result: dict[str, Any] = {
            "database_path": str(self.database_path),
            "backup_dir": str(self.backup_dir),
            "log_retention_count": self.log_retention_count,
            "verbose": self.verbose,
        }
        if self.log_dir is not None:
            result["log_dir"] = str(self.log_dir)
        result.update(self.backup.to_dict())
        result.update(self.restore.to_dict())
        return result
