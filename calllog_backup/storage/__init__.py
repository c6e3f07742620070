"""
Persistent call-log storage.
"""

from calllog_backup.storage.base import CallLogStore
from calllog_backup.storage.db import CallLogDatabase, StoreError

__all__ = ["CallLogDatabase", "CallLogStore", "StoreError"]
