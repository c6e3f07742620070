"""
Interfaces of the entity transport that carries backup data.

A backup pass writes one entity (string key + opaque payload) per record;
a restore reads them back in the same order.
"""

from __future__ import annotations

from typing import Protocol

# Entity size announcing that a key was deleted
DELETED_ENTITY_SIZE = -1


class TransportError(Exception):
    """Raised when an entity cannot be written to or read from the transport."""

    pass


class BackupDataOutput(Protocol):
    """Backup side of the transport."""

    def write_entity_header(self, key: str, size: int) -> None: ...

    def write_entity_data(self, data: bytes, size: int) -> None: ...


class BackupDataInput(Protocol):
    """Restore side of the transport."""

    def read_next_header(self) -> bool: ...

    def get_key(self) -> str: ...

    def get_data_size(self) -> int: ...

    def read_entity_data(self, buffer: bytearray, offset: int, length: int) -> int: ...
