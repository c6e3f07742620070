"""
Entity transport interfaces and the local archive implementation.
"""

from calllog_backup.transport.archive import EntityArchiveReader, EntityArchiveWriter
from calllog_backup.transport.base import (
    DELETED_ENTITY_SIZE,
    BackupDataInput,
    BackupDataOutput,
    TransportError,
)

__all__ = [
    "DELETED_ENTITY_SIZE",
    "BackupDataInput",
    "BackupDataOutput",
    "EntityArchiveReader",
    "EntityArchiveWriter",
    "TransportError",
]
