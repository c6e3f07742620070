"""
Big-endian primitive encoding for backup payloads.

The byte layout matches java.io.DataOutput/DataInput so payloads written by
older agents on the device side stay readable:

- int: 4-byte signed, long: 8-byte signed, boolean: 1 byte
- UTF string: unsigned 2-byte byte length followed by modified UTF-8
  (NUL as C0 80, supplementary characters as two encoded surrogates)
- optional string: boolean presence flag, then a UTF string when present
"""

from __future__ import annotations

import io
import struct
from typing import BinaryIO, Optional, Union

_INT = struct.Struct(">i")
_LONG = struct.Struct(">q")
_USHORT = struct.Struct(">H")

# Largest encoded length a UTF string can carry
MAX_UTF_LENGTH = 0xFFFF


def encode_modified_utf8(value: str) -> bytes:
    """
    Encode a string as modified UTF-8.

    Args:
        value: String to encode

    Returns:
        Encoded bytes (without the length prefix)
    """
    if value.isascii() and "\x00" not in value:
        return value.encode("ascii")

    out = bytearray()
    for char in value:
        code = ord(char)
        if code == 0:
            out += b"\xc0\x80"
        elif code > 0xFFFF:
            code -= 0x10000
            out += chr(0xD800 | (code >> 10)).encode("utf-8", "surrogatepass")
            out += chr(0xDC00 | (code & 0x3FF)).encode("utf-8", "surrogatepass")
        else:
            out += char.encode("utf-8", "surrogatepass")
    return bytes(out)


def decode_modified_utf8(data: bytes) -> str:
    """
    Decode modified UTF-8 bytes back to a string.

    Surrogate pairs are joined into single characters.

    Raises:
        UnicodeDecodeError: If the bytes are not valid modified UTF-8
    """
    text = data.replace(b"\xc0\x80", b"\x00").decode("utf-8", "surrogatepass")
    if not any("\ud800" <= char <= "\udfff" for char in text):
        return text
    return text.encode("utf-16-le", "surrogatepass").decode(
        "utf-16-le", "surrogatepass"
    )


class DataWriter:
    """
    Writes big-endian primitives to a binary stream.

    Usage:
        writer = DataWriter()
        writer.write_int(1008)
        writer.write_optional_utf("555-1234")
        payload = writer.getvalue()
    """

    def __init__(self, stream: Optional[BinaryIO] = None):
        """
        Initialize the writer.

        Args:
            stream: Binary stream to write to. Defaults to an in-memory buffer.
        """
        self.stream: BinaryIO = stream if stream is not None else io.BytesIO()

    def _pack(self, fmt: struct.Struct, value: int) -> None:
        try:
            self.stream.write(fmt.pack(value))
        except struct.error as e:
            raise ValueError(
                f"Value {value!r} does not fit in {fmt.size} bytes"
            ) from e

    def write_int(self, value: int) -> None:
        self._pack(_INT, value)

    def write_long(self, value: int) -> None:
        self._pack(_LONG, value)

    def write_boolean(self, value: bool) -> None:
        self.stream.write(b"\x01" if value else b"\x00")

    def write_bytes(self, data: bytes) -> None:
        self.stream.write(data)

    def write_utf(self, value: str) -> None:
        """
        Write a length-prefixed modified UTF-8 string.

        Raises:
            ValueError: If the encoded string is longer than MAX_UTF_LENGTH
        """
        encoded = encode_modified_utf8(value)
        if len(encoded) > MAX_UTF_LENGTH:
            raise ValueError(
                f"Encoded string is {len(encoded)} bytes, "
                f"limit is {MAX_UTF_LENGTH}"
            )
        self.stream.write(_USHORT.pack(len(encoded)))
        self.stream.write(encoded)

    def write_optional_utf(self, value: Optional[str]) -> None:
        """Write a presence flag followed by the string when it is not None."""
        if value is None:
            self.write_boolean(False)
        else:
            self.write_boolean(True)
            self.write_utf(value)

    def getvalue(self) -> bytes:
        """Return everything written so far (in-memory buffers only)."""
        if not isinstance(self.stream, io.BytesIO):
            raise TypeError("getvalue() requires an in-memory stream")
        return self.stream.getvalue()


class DataReader:
    """
    Reads big-endian primitives from bytes or a binary stream.

    Every read raises EOFError when the input runs out before the value is
    complete, so callers can tell "no data" apart from malformed data.
    """

    def __init__(self, source: Union[bytes, bytearray, BinaryIO]):
        """
        Initialize the reader.

        Args:
            source: Raw bytes or a readable binary stream
        """
        if isinstance(source, (bytes, bytearray)):
            self.stream: BinaryIO = io.BytesIO(bytes(source))
        else:
            self.stream = source

    def read_fully(self, length: int) -> bytes:
        """
        Read exactly `length` bytes.

        Raises:
            EOFError: If fewer bytes are available
        """
        if length < 0:
            raise ValueError(f"Negative read length: {length}")
        data = self.stream.read(length)
        if data is None or len(data) < length:
            got = 0 if data is None else len(data)
            raise EOFError(f"Expected {length} bytes, got {got}")
        return data

    def read_int(self) -> int:
        value: int = _INT.unpack(self.read_fully(_INT.size))[0]
        return value

    def read_long(self) -> int:
        value: int = _LONG.unpack(self.read_fully(_LONG.size))[0]
        return value

    def read_boolean(self) -> bool:
        return self.read_fully(1) != b"\x00"

    def read_utf(self) -> str:
        (length,) = _USHORT.unpack(self.read_fully(_USHORT.size))
        return decode_modified_utf8(self.read_fully(length))

    def read_optional_utf(self) -> Optional[str]:
        if self.read_boolean():
            return self.read_utf()
        return None
