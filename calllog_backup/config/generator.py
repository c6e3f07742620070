"""
Configuration file generator for call-log backup.

Provides functionality to generate a default configuration file with
documentation for all available options.
"""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def generate_default_config() -> str:
    """
    Generate default YAML configuration with all options documented.

    Returns:
        String containing YAML configuration with comments

    Example:
        config_yaml = generate_default_config()
        with open("config.yaml", "w") as f:
            f.write(config_yaml)
    """
    return """# Call Log Backup Configuration
# ============================
#
# This file sets default options for calllog-backup.
# CLI arguments will always override these values.
#
# To use this configuration:
#   1. Save as ~/.calllog-backup/config.yaml (or custom location)
#   2. Uncomment and modify options as needed
#   3. Run calllog-backup commands normally

# Logging Options
# ---------------

# Enable verbose output with detailed logging
# Default: false
# verbose: true

# Directory for log files (relative paths are inside the config directory)
# Default: file logging disabled
# log_dir: logs

# Number of log files to keep
# Default: 10
# log_retention_count: 10


# Storage
# -------

# SQLite call-log database
# Default: calllog.db in the config directory
# database_path: calllog.db

# Directory holding backup archives and the backup state
# Default: backups in the config directory
# backup_dir: backups


# Backup Behavior
# ---------------

# Send deletion markers for calls removed since the last backup, and
# forget them in the backup state.
# Default: false
# prune_removed: false


# Restore Behavior
# ----------------

# How restore avoids creating duplicate calls. Calls match on
# (date, number), never on id.
# Options:
#   - disabled: insert every call (may create duplicates)
#   - per_record: look up each call before inserting it
#   - batched: one bulk lookup and one bulk insert per batch
# Default: per_record
# dedup_mode: per_record

# Calls per batch when dedup_mode is batched
# Default: 50
# batch_size: 50

# Component that owns calls placed through the built-in telephony service.
# Default: com.android.phone/com.android.services.telephony.TelephonyConnectionService
# telephony_component: com.android.phone/com.android.services.telephony.TelephonyConnectionService

# Subscription ids of the source device mapped to stable account ids
# (for example the SIM's ICCID). Telephony calls whose account id is listed
# here are rewritten on restore.
# Default: empty
# subscription_map:
#   1: "8901234567890123456F"


# Example Configurations
# ----------------------
#
# Large restore with few round trips:
#   dedup_mode: batched
#   batch_size: 200
#
# Keep the backup in step with deletions:
#   prune_removed: true
"""


def save_config_file(
    config_path: Path, overwrite: bool = False
) -> tuple[bool, str | None]:
    """
    Save default configuration file to specified path.

    Creates parent directories if they don't exist and saves
    the configuration with owner-only permissions.

    Args:
        config_path: Path where the config file should be saved
        overwrite: If True, overwrite existing file. If False, fail if file exists.

    Returns:
        Tuple of (success, error_message)
    """
    try:
        config_path = config_path.expanduser().resolve()

        if config_path.exists() and not overwrite:
            return (
                False,
                f"Configuration file already exists: {config_path}\n"
                "Use --force to overwrite.",
            )

        config_path.parent.mkdir(parents=True, mode=0o700, exist_ok=True)
        config_path.write_text(generate_default_config(), encoding="utf-8")
        config_path.chmod(0o600)

        logger.info(f"Created configuration file: {config_path}")
        return (True, None)

    except OSError as e:
        error_msg = f"Failed to create configuration file: {e}"
        logger.error(error_msg)
        return (False, error_msg)
