"""
Restore of backed-up calls into the call-log store.
"""

from calllog_backup.restore.dedup import FlushResult, RestoreDeduplicator
from calllog_backup.restore.migration import SubscriptionMapping, migrate_phone_account
from calllog_backup.restore.pipeline import RestorePipeline, RestoreResult

__all__ = [
    "FlushResult",
    "RestoreDeduplicator",
    "RestorePipeline",
    "RestoreResult",
    "SubscriptionMapping",
    "migrate_phone_account",
]
