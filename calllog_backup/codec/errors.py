"""
Errors raised while encoding or decoding backup payloads.
"""


class CodecError(Exception):
    """Base class for backup payload encoding/decoding failures."""

    pass


class StateCorruptError(CodecError):
    """Raised when a backup state blob is malformed beyond the empty case."""

    pass


class RecordCodecError(CodecError):
    """Raised when a record payload is malformed for a version we understand."""

    pass


class FutureFormatError(CodecError):
    """
    Raised when a payload was written by a newer format than we understand.

    Attributes:
        version: Version found in the payload
        supported_version: Highest version this codec can read
    """

    def __init__(self, version: int, supported_version: int):
        self.version = version
        self.supported_version = supported_version
        super().__init__(
            f"Format version {version} is newer than supported "
            f"version {supported_version}"
        )
