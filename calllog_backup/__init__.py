"""
calllog_backup - Incremental call history backup and restore.

Backs up call-log records to a key/value entity channel, remembering which
records were already sent, and restores them without creating duplicates.
"""

__version__ = "1.0.0"
