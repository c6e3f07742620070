"""
Codec for the "already backed up" state blob.

Layout: version:int, count:int, then `count` record ids as ints in
ascending order. An empty blob means no backup has happened yet.
"""

from __future__ import annotations

import io
from dataclasses import dataclass, field
from typing import BinaryIO, Union

from calllog_backup.codec.errors import FutureFormatError, StateCorruptError
from calllog_backup.codec.record_codec import CURRENT_VERSION
from calllog_backup.codec.wire import DataReader, DataWriter

# Version reported when there is no previous state
VERSION_NO_PREVIOUS_STATE = 0

# Ids are stored as 4-byte signed ints
MIN_CALL_ID = -(2**31)
MAX_CALL_ID = 2**31 - 1


def fits_state(call_id: int) -> bool:
    """True if call_id can be written to a state blob."""
    return MIN_CALL_ID <= call_id <= MAX_CALL_ID


@dataclass
class BackupState:
    """
    Record ids already sent by earlier backup passes.

    Attributes:
        version: State format version (VERSION_NO_PREVIOUS_STATE before the
            first backup)
        call_ids: Ids of records already backed up
    """

    version: int = VERSION_NO_PREVIOUS_STATE
    call_ids: set[int] = field(default_factory=set)

    @classmethod
    def no_previous_state(cls) -> BackupState:
        """State used for the first backup on a device."""
        return cls(version=VERSION_NO_PREVIOUS_STATE, call_ids=set())

    @property
    def is_first_backup(self) -> bool:
        return self.version == VERSION_NO_PREVIOUS_STATE

    def sorted_ids(self) -> list[int]:
        """Ids in the ascending order used on the wire."""
        return sorted(self.call_ids)


class StateCodec:
    """
    Reads and writes BackupState blobs.

    Usage:
        codec = StateCodec()
        with open(state_path, "rb") as f:
            state = codec.decode(f)

        with open(state_path, "wb") as f:
            codec.encode(f, state)
    """

    def __init__(self, current_version: int = CURRENT_VERSION):
        self.current_version = current_version

    def decode(self, source: Union[bytes, bytearray, BinaryIO]) -> BackupState:
        """
        Read a state blob.

        Args:
            source: Raw bytes or a readable binary stream

        Returns:
            The stored state, or the no-previous-state sentinel when the
            input is empty

        Raises:
            StateCorruptError: If the blob is truncated or inconsistent
            FutureFormatError: If the blob was written by a newer version
        """
        reader = DataReader(source)
        try:
            version = reader.read_int()
        except EOFError:
            return BackupState.no_previous_state()

        if version > self.current_version:
            raise FutureFormatError(version, self.current_version)

        try:
            count = reader.read_int()
            if count < 0:
                raise StateCorruptError(f"Negative call id count {count}")
            call_ids = {reader.read_int() for _ in range(count)}
        except EOFError as e:
            raise StateCorruptError(f"Truncated backup state: {e}") from e

        return BackupState(version=version, call_ids=call_ids)

    def encode(self, output: BinaryIO, state: BackupState) -> None:
        """
        Write a state blob with ids in ascending order.

        Args:
            output: Writable binary stream
            state: State to write

        Raises:
            StateCorruptError: If an id does not fit in 4 bytes
        """
        writer = DataWriter(output)
        try:
            writer.write_int(state.version)
            writer.write_int(len(state.call_ids))
            for call_id in state.sorted_ids():
                writer.write_int(call_id)
        except ValueError as e:
            raise StateCorruptError(f"Cannot encode backup state: {e}") from e

    def to_bytes(self, state: BackupState) -> bytes:
        buffer = io.BytesIO()
        self.encode(buffer, state)
        return buffer.getvalue()
