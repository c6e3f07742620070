"""
File-based entity transport.

Each backup pass writes one append-only archive file:

    magic "CLBK", format:int, then per entity: key:utf, size:int, data

A size of -1 marks a deleted key and carries no data. Restore replays a
series of archives, oldest first, into a single key/value view, which is
what a remote key/value backup service would hand back.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import BinaryIO, Optional, Union

from calllog_backup.codec.wire import DataReader, DataWriter
from calllog_backup.transport.base import DELETED_ENTITY_SIZE, TransportError

logger = logging.getLogger(__name__)

ARCHIVE_MAGIC = b"CLBK"
ARCHIVE_FORMAT_VERSION = 1


class EntityArchiveWriter:
    """
    Writes entities to an archive stream.

    The header is held back until its data arrives, so a failed data write
    never leaves a half-written entity in the archive.

    Attributes:
        entity_count: Entities written with data
        deleted_count: Deletion markers written

    Usage:
        with EntityArchiveWriter.open(path) as output:
            output.write_entity_header("101", len(payload))
            output.write_entity_data(payload, len(payload))
    """

    def __init__(self, stream: BinaryIO, owns_stream: bool = False):
        self._stream = stream
        self._owns_stream = owns_stream
        self._pending: Optional[tuple[str, int]] = None
        self.entity_count = 0
        self.deleted_count = 0

        preamble = DataWriter()
        preamble.write_bytes(ARCHIVE_MAGIC)
        preamble.write_int(ARCHIVE_FORMAT_VERSION)
        self._emit(preamble.getvalue())

    @classmethod
    def open(cls, path: Union[Path, str]) -> EntityArchiveWriter:
        """
        Create a new archive file.

        Raises:
            TransportError: If the file cannot be created
        """
        try:
            stream = open(path, "wb")
        except OSError as e:
            raise TransportError(f"Cannot create archive {path}: {e}") from e
        return cls(stream, owns_stream=True)

    def __enter__(self) -> EntityArchiveWriter:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self._pending is not None:
            logger.warning(f"Discarding entity {self._pending[0]!r} with no data")
            self._pending = None
        if self._owns_stream:
            self._stream.close()

    def write_entity_header(self, key: str, size: int) -> None:
        """
        Announce the next entity.

        Args:
            key: Entity key
            size: Payload size in bytes, or -1 to delete the key

        Raises:
            TransportError: If a previous header is still waiting for data
                or the size is invalid
        """
        if self._pending is not None:
            raise TransportError(
                f"Entity {self._pending[0]!r} header was never followed by data"
            )
        if size == DELETED_ENTITY_SIZE:
            self._emit(self._frame(key, DELETED_ENTITY_SIZE, b""))
            self.deleted_count += 1
            return
        if size < 0:
            raise TransportError(f"Invalid entity size {size} for key {key!r}")
        self._pending = (key, size)

    def write_entity_data(self, data: bytes, size: Optional[int] = None) -> None:
        """
        Write the payload for the pending header.

        Args:
            data: Payload bytes
            size: Number of bytes of `data` to write (defaults to all)

        Raises:
            TransportError: If there is no pending header, the size does not
                match the header, or the write fails
        """
        if self._pending is None:
            raise TransportError("Entity data written without a header")
        key, expected = self._pending
        self._pending = None

        if size is None:
            size = len(data)
        if size != expected or len(data) < size:
            raise TransportError(
                f"Entity {key!r} announced {expected} bytes but got {size}"
            )

        self._emit(self._frame(key, size, bytes(data[:size])))
        self.entity_count += 1

    def _frame(self, key: str, size: int, data: bytes) -> bytes:
        frame = DataWriter()
        try:
            frame.write_utf(key)
        except ValueError as e:
            raise TransportError(f"Invalid entity key: {e}") from e
        frame.write_int(size)
        frame.write_bytes(data)
        return frame.getvalue()

    def _emit(self, data: bytes) -> None:
        try:
            self._stream.write(data)
        except OSError as e:
            raise TransportError(f"Failed to write archive: {e}") from e


def iter_archive(stream: BinaryIO) -> Iterator[tuple[str, int, bytes]]:
    """
    Iterate over the raw entries of one archive.

    Yields:
        (key, size, data) tuples; deletions have size -1 and empty data

    Raises:
        TransportError: If the archive is not a valid entity archive
    """
    reader = DataReader(stream)
    try:
        magic = reader.read_fully(len(ARCHIVE_MAGIC))
        if magic != ARCHIVE_MAGIC:
            raise TransportError("Not an entity archive (bad magic)")
        version = reader.read_int()
        if version != ARCHIVE_FORMAT_VERSION:
            raise TransportError(f"Unsupported archive format {version}")

        while True:
            try:
                key = reader.read_utf()
            except EOFError:
                return
            size = reader.read_int()
            if size == DELETED_ENTITY_SIZE:
                yield key, size, b""
                continue
            if size < 0:
                raise TransportError(f"Invalid entity size {size} for key {key!r}")
            yield key, size, reader.read_fully(size)

    except (EOFError, ValueError) as e:
        raise TransportError(f"Truncated or malformed archive: {e}") from e


class EntityArchiveReader:
    """
    Serves entities to a restore, one at a time.

    Usage:
        data_input = EntityArchiveReader.open(manager.list_backups(oldest_first=True))
        while data_input.read_next_header():
            key = data_input.get_key()
            buffer = bytearray(data_input.get_data_size())
            data_input.read_entity_data(buffer, 0, len(buffer))
    """

    def __init__(self, entities: Iterable[tuple[str, bytes]]):
        self._entities = list(entities)
        self._index = -1
        self._offset = 0

    @classmethod
    def open(cls, paths: Iterable[Union[Path, str]]) -> EntityArchiveReader:
        """
        Replay archives oldest first into one key/value view.

        A later write of the same key replaces the earlier payload and a
        deletion removes it.

        Raises:
            TransportError: If an archive cannot be read
        """
        merged: dict[str, bytes] = {}
        for path in paths:
            try:
                with open(path, "rb") as f:
                    for key, size, data in iter_archive(f):
                        if size == DELETED_ENTITY_SIZE:
                            merged.pop(key, None)
                        else:
                            merged[key] = data
            except OSError as e:
                raise TransportError(f"Cannot read archive {path}: {e}") from e
        return cls(merged.items())

    def __len__(self) -> int:
        return len(self._entities)

    def read_next_header(self) -> bool:
        """Advance to the next entity. Returns False when none are left."""
        if self._index < len(self._entities):
            self._index += 1
        self._offset = 0
        return self._index < len(self._entities)

    def _current(self) -> tuple[str, bytes]:
        if not 0 <= self._index < len(self._entities):
            raise TransportError("No current entity; call read_next_header() first")
        return self._entities[self._index]

    def get_key(self) -> str:
        return self._current()[0]

    def get_data_size(self) -> int:
        return len(self._current()[1])

    def read_entity_data(self, buffer: bytearray, offset: int, length: int) -> int:
        """
        Copy up to `length` payload bytes into `buffer` at `offset`.

        Returns:
            Number of bytes copied (0 once the payload is exhausted)
        """
        payload = self._current()[1]
        chunk = payload[self._offset : self._offset + length]
        buffer[offset : offset + len(chunk)] = chunk
        self._offset += len(chunk)
        return len(chunk)
