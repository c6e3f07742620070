"""
Versioned binary codec for a single call record.

Every payload starts with a 4-byte format version. Each version appends
fields after the previous version's list and never reorders them, so a
decoder reads exactly the fields its version defines and stops.

Field layout by version:

    1     date:long, duration:long, number:str?, type:int,
          number_presentation:int, account_component_name:str?,
          account_id:str?, account_address:str?, data_usage:long,
          features:int
    1002  OEM block: namespace:utf, length:int, bytes, end marker:int
    1003  add_for_all_users:int
    1004  post_dial_digits:str?
    1005  via_number:str?
    1006  block_reason:int, call_screening_app_name:str?,
          call_screening_component_name:str?
    1007  missed_reason:str?
    1008  is_phone_account_migration_pending:int
"""

from __future__ import annotations

import logging
from typing import Optional, Union

from calllog_backup.calllog.record import CallRecord
from calllog_backup.codec.errors import FutureFormatError, RecordCodecError
from calllog_backup.codec.wire import DataReader, DataWriter

logger = logging.getLogger(__name__)

VERSION_BASE = 1
VERSION_OEM_DATA = 1002
VERSION_ADD_FOR_ALL_USERS = 1003
VERSION_POST_DIAL_DIGITS = 1004
VERSION_VIA_NUMBER = 1005
VERSION_CALL_SCREENING = 1006
VERSION_MISSED_REASON = 1007
VERSION_PHONE_ACCOUNT_MIGRATION = 1008

# Version written by this codec
CURRENT_VERSION = VERSION_PHONE_ACCOUNT_MIGRATION

# Namespace written when there is no vendor data for a call
NO_OEM_NAMESPACE = "no-oem-namespace"

# Marker closing the OEM block
END_OEM_DATA_MARKER = 0x60061E


class RecordCodec:
    """
    Encodes and decodes call records to the versioned payload layout.

    Attributes:
        current_version: Version written by default and the highest
            version accepted when decoding

    Usage:
        codec = RecordCodec()
        payload = codec.encode(record)
        restored = codec.decode(payload)

        # Emulate an older writer
        legacy = codec.encode(record, version=1)
    """

    def __init__(self, current_version: int = CURRENT_VERSION):
        self.current_version = current_version

    def encode(self, record: CallRecord, version: Optional[int] = None) -> bytes:
        """
        Serialize a record.

        Args:
            record: Record to serialize
            version: Layout to write (defaults to current_version). Older
                layouts leave out the fields introduced after them.

        Returns:
            Payload bytes beginning with the version

        Raises:
            RecordCodecError: If the version is unsupported or a field value
                cannot be represented
        """
        if version is None:
            version = self.current_version
        if not VERSION_BASE <= version <= self.current_version:
            raise RecordCodecError(
                f"Cannot write format version {version} "
                f"(supported: {VERSION_BASE}..{self.current_version})"
            )

        writer = DataWriter()
        try:
            writer.write_int(version)
            writer.write_long(record.date)
            writer.write_long(record.duration)
            writer.write_optional_utf(record.number)
            writer.write_int(record.type)
            writer.write_int(record.number_presentation)
            writer.write_optional_utf(record.account_component_name)
            writer.write_optional_utf(record.account_id)
            writer.write_optional_utf(record.account_address)
            writer.write_long(record.data_usage or 0)
            writer.write_int(record.features)

            if version >= VERSION_OEM_DATA:
                writer.write_utf(NO_OEM_NAMESPACE)
                writer.write_int(0)
                writer.write_int(END_OEM_DATA_MARKER)

            if version >= VERSION_ADD_FOR_ALL_USERS:
                writer.write_int(record.add_for_all_users)

            if version >= VERSION_POST_DIAL_DIGITS:
                writer.write_optional_utf(record.post_dial_digits)

            if version >= VERSION_VIA_NUMBER:
                writer.write_optional_utf(record.via_number)

            if version >= VERSION_CALL_SCREENING:
                writer.write_int(record.block_reason)
                writer.write_optional_utf(record.call_screening_app_name)
                writer.write_optional_utf(record.call_screening_component_name)

            if version >= VERSION_MISSED_REASON:
                writer.write_optional_utf(record.missed_reason)

            if version >= VERSION_PHONE_ACCOUNT_MIGRATION:
                writer.write_int(record.is_phone_account_migration_pending)

        except (ValueError, TypeError) as e:
            raise RecordCodecError(f"Cannot encode call {record.id}: {e}") from e

        return writer.getvalue()

    def decode(self, payload: Union[bytes, bytearray]) -> CallRecord:
        """
        Deserialize a record from any version up to current_version.

        The returned record has no id; the caller assigns one from the
        entity key if it needs it.

        Args:
            payload: Payload bytes

        Returns:
            Decoded CallRecord. Fields newer than the payload's version keep
            their defaults.

        Raises:
            FutureFormatError: If the payload version is newer than
                current_version
            RecordCodecError: If the payload is truncated or malformed
        """
        reader = DataReader(payload)
        try:
            version = reader.read_int()
        except EOFError as e:
            raise RecordCodecError("Payload too short to hold a version") from e

        if version > self.current_version:
            raise FutureFormatError(version, self.current_version)
        if version < VERSION_BASE:
            raise RecordCodecError(f"Unknown format version {version}")

        record = CallRecord()
        try:
            record.date = reader.read_long()
            record.duration = reader.read_long()
            record.number = reader.read_optional_utf()
            record.type = reader.read_int()
            record.number_presentation = reader.read_int()
            record.account_component_name = reader.read_optional_utf()
            record.account_id = reader.read_optional_utf()
            record.account_address = reader.read_optional_utf()
            record.data_usage = reader.read_long()
            record.features = reader.read_int()

            if version >= VERSION_OEM_DATA:
                self._skip_oem_data(reader)

            if version >= VERSION_ADD_FOR_ALL_USERS:
                record.add_for_all_users = reader.read_int()

            if version >= VERSION_POST_DIAL_DIGITS:
                record.post_dial_digits = reader.read_optional_utf()

            if version >= VERSION_VIA_NUMBER:
                record.via_number = reader.read_optional_utf()

            if version >= VERSION_CALL_SCREENING:
                record.block_reason = reader.read_int()
                record.call_screening_app_name = reader.read_optional_utf()
                record.call_screening_component_name = reader.read_optional_utf()

            if version >= VERSION_MISSED_REASON:
                record.missed_reason = reader.read_optional_utf()

            if version >= VERSION_PHONE_ACCOUNT_MIGRATION:
                record.is_phone_account_migration_pending = reader.read_int()

        except (EOFError, ValueError) as e:
            raise RecordCodecError(
                f"Malformed version {version} payload: {e}"
            ) from e

        return record

    def _skip_oem_data(self, reader: DataReader) -> None:
        """Read past the vendor data block, checking its end marker."""
        namespace = reader.read_utf()
        length = reader.read_int()
        if length < 0:
            raise ValueError(f"Negative OEM data length {length}")
        reader.read_fully(length)
        if namespace != NO_OEM_NAMESPACE:
            logger.debug(f"Ignoring {length} bytes of OEM data from {namespace}")

        marker = reader.read_int()
        if marker != END_OEM_DATA_MARKER:
            raise ValueError(f"Missing end-of-OEM-data marker (got {marker:#x})")
