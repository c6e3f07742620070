"""
Call-log data model.
"""

from calllog_backup.calllog.record import (
    BLOCK_REASON_NOT_BLOCKED,
    CallRecord,
    CallType,
    NumberPresentation,
)

__all__ = [
    "BLOCK_REASON_NOT_BLOCKED",
    "CallRecord",
    "CallType",
    "NumberPresentation",
]
