"""
Configuration loader module for call-log backup.

Provides YAML-based configuration file loading with support for:
- Loading configuration from default or custom paths
- Graceful handling of missing configuration files
- Validation of key types and value ranges
"""

import logging
from pathlib import Path
from typing import Any

import yaml

from calllog_backup.config.settings import VALID_DEDUP_MODES
from calllog_backup.utils import resolve_config_dir

# Default configuration file name
DEFAULT_CONFIG_FILE = "config.yaml"

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when configuration loading or validation fails."""

    pass


class ConfigLoader:
    """
    YAML configuration file loader.

    Attributes:
        config_dir: Directory containing the configuration file
        config_file: Name of the configuration file

    Usage:
        loader = ConfigLoader()
        config = loader.load()

        # With custom path
        loader = ConfigLoader(config_dir=Path("/custom/path"))
        config = loader.load()

        # Load from specific file
        config = loader.load_from_file("/path/to/config.yaml")
    """

    def __init__(
        self, config_dir: Path | None = None, config_file: str = DEFAULT_CONFIG_FILE
    ):
        """
        Initialize the configuration loader.

        Args:
            config_dir: Directory containing the configuration file.
                       Defaults to ~/.calllog-backup/ or $CALLLOG_BACKUP_CONFIG_DIR
            config_file: Name of the configuration file (default: config.yaml)
        """
        self.config_dir = resolve_config_dir(config_dir)
        self.config_file = config_file

    def _get_config_path(self) -> Path:
        return self.config_dir / self.config_file

    def load(self) -> dict[str, Any]:
        """
        Load configuration from the default configuration file.

        Returns:
            Dictionary containing configuration values, or empty dict if file
            doesn't exist

        Raises:
            ConfigError: If the configuration file exists but cannot be parsed
        """
        return self.load_from_file(self._get_config_path())

    def load_from_file(self, path: Path | str) -> dict[str, Any]:
        """
        Load configuration from a specific file.

        Returns an empty dict if the file doesn't exist, allowing
        graceful operation with CLI defaults.

        Args:
            path: Path to the configuration file

        Returns:
            Dictionary containing configuration values, or empty dict if file
            doesn't exist

        Raises:
            ConfigError: If the configuration file exists but cannot be parsed
        """
        path = Path(path)

        if not path.exists():
            logger.debug(f"Configuration file not found: {path}")
            return {}

        try:
            with open(path, encoding="utf-8") as f:
                config = yaml.safe_load(f)

            # Handle empty files
            if config is None:
                logger.debug(f"Configuration file is empty: {path}")
                return {}

            if not isinstance(config, dict):
                raise ConfigError(
                    f"Configuration file must contain a YAML dictionary, "
                    f"got {type(config).__name__}"
                )

            logger.debug(f"Loaded configuration from {path}")
            return config

        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse YAML configuration file: {e}") from e
        except OSError as e:
            raise ConfigError(f"Failed to read configuration file: {e}") from e

    def validate(self, config: dict[str, Any]) -> None:
        """
        Validate configuration structure and values.

        Unknown keys are ignored so newer configuration files still load.

        Args:
            config: Configuration dictionary to validate

        Raises:
            ConfigError: If configuration is invalid
        """
        if not isinstance(config, dict):
            raise ConfigError(
                f"Configuration must be a dictionary, got {type(config).__name__}"
            )

        valid_keys: dict[str, type[Any] | tuple[type[Any], ...]] = {
            # Restore options
            "dedup_mode": str,
            "batch_size": int,
            "telephony_component": str,
            "subscription_map": dict,
            # Backup options
            "prune_removed": bool,
            # Storage options
            "database_path": str,
            "backup_dir": str,
            # Logging options
            "log_dir": str,
            "log_retention_count": int,
            "verbose": bool,
        }

        for key, value in config.items():
            if key in valid_keys:
                expected_type = valid_keys[key]
                # bool is an int subclass; don't accept it for numeric keys
                wrong_bool = isinstance(value, bool) and expected_type is int
                if wrong_bool or not isinstance(value, expected_type):
                    if isinstance(expected_type, tuple):
                        type_name = " or ".join(t.__name__ for t in expected_type)
                    else:
                        type_name = expected_type.__name__
                    raise ConfigError(
                        f"Invalid type for '{key}': expected {type_name}, "
                        f"got {type(value).__name__}"
                    )

        if "dedup_mode" in config and config["dedup_mode"] not in VALID_DEDUP_MODES:
            raise ConfigError(
                f"Invalid dedup_mode '{config['dedup_mode']}'. "
                f"Must be one of: {', '.join(sorted(VALID_DEDUP_MODES))}"
            )

        for key in ("batch_size", "log_retention_count"):
            if key in config and config[key] < 1:
                raise ConfigError(f"{key} must be >= 1, got {config[key]}")

        for sub_id, account_id in config.get("subscription_map", {}).items():
            if isinstance(sub_id, bool) or not isinstance(sub_id, int):
                try:
                    int(sub_id)
                except (TypeError, ValueError) as e:
                    raise ConfigError(
                        f"subscription_map keys must be integers, got {sub_id!r}"
                    ) from e
            if not isinstance(account_id, str):
                raise ConfigError(
                    f"subscription_map[{sub_id}] must be a string, "
                    f"got {type(account_id).__name__}"
                )

    def load_and_validate(self) -> dict[str, Any]:
        """
        Load configuration and validate it.

        Returns:
            Validated configuration dictionary

        Raises:
            ConfigError: If configuration cannot be loaded or is invalid
        """
        config = self.load()
        if config:
            self.validate(config)
        return config
