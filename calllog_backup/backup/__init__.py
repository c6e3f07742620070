"""
Incremental backup of the call log.

BackupDiffer decides what a pass sends; BackupManager runs passes against
a transport or the archive files in the backup directory.
"""

from calllog_backup.backup.differ import BackupDiffer, BackupResult
from calllog_backup.backup.manager import BackupManager

__all__ = ["BackupDiffer", "BackupManager", "BackupResult"]
