"""
Binary codecs for backup state and call record payloads.
"""

from calllog_backup.codec.errors import (
    CodecError,
    FutureFormatError,
    RecordCodecError,
    StateCorruptError,
)
from calllog_backup.codec.record_codec import CURRENT_VERSION, RecordCodec
from calllog_backup.codec.state_codec import (
    VERSION_NO_PREVIOUS_STATE,
    BackupState,
    StateCodec,
)

__all__ = [
    "CURRENT_VERSION",
    "VERSION_NO_PREVIOUS_STATE",
    "BackupState",
    "CodecError",
    "FutureFormatError",
    "RecordCodec",
    "RecordCodecError",
    "StateCodec",
    "StateCorruptError",
]
