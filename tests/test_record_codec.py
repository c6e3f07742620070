"""
Tests for the versioned call record codec.
"""

import struct

import pytest

from calllog_backup.calllog.record import CallRecord
from calllog_backup.codec.errors import FutureFormatError, RecordCodecError
from calllog_backup.codec.record_codec import (
    CURRENT_VERSION,
    END_OEM_DATA_MARKER,
    NO_OEM_NAMESPACE,
    VERSION_ADD_FOR_ALL_USERS,
    VERSION_BASE,
    VERSION_OEM_DATA,
    RecordCodec,
)
from calllog_backup.codec.wire import DataWriter


def write_v1_fields(writer, date=1000, number="555-0000"):
    """Write the version-1 field list for a simple call."""
    writer.write_long(date)
    writer.write_long(30)
    writer.write_optional_utf(number)
    writer.write_int(2)
    writer.write_int(1)
    writer.write_optional_utf(None)
    writer.write_optional_utf(None)
    writer.write_optional_utf(None)
    writer.write_long(0)
    writer.write_int(0)


@pytest.fixture
def codec():
    return RecordCodec()


@pytest.fixture
def full_call(make_call):
    return make_call(
        call_id=7,
        date=1_700_000_000_123,
        duration=125,
        number="+15551234567",
        post_dial_digits=",,123",
        via_number="+15550000000",
        type=3,
        number_presentation=2,
        account_address="sip:me@example.com",
        data_usage=4096,
        features=5,
        add_for_all_users=0,
        block_reason=2,
        call_screening_app_name="Screener",
        call_screening_component_name="com.screener/.Service",
        missed_reason="MISSED_REASON_RINGING_TIMEOUT",
        is_phone_account_migration_pending=1,
    )


class TestEncode:
    """Tests for RecordCodec.encode."""

    def test_payload_starts_with_current_version(self, codec, full_call):
        payload = codec.encode(full_call)
        assert struct.unpack(">i", payload[:4])[0] == CURRENT_VERSION == 1008

    def test_version_one_layout_is_exact(self, codec):
        """A version-1 payload is the ten base fields and nothing else."""
        call = CallRecord(
            id=1, date=1000, duration=30, number=None, type=2, number_presentation=1
        )
        expected = (
            struct.pack(">i", 1)
            + struct.pack(">q", 1000)
            + struct.pack(">q", 30)
            + b"\x00"
            + struct.pack(">i", 2)
            + struct.pack(">i", 1)
            + b"\x00\x00\x00"
            + struct.pack(">q", 0)
            + struct.pack(">i", 0)
        )
        assert codec.encode(call, version=VERSION_BASE) == expected

    def test_none_data_usage_is_written_as_zero(self, codec, make_call):
        decoded = codec.decode(codec.encode(make_call(call_id=1, data_usage=None)))
        assert decoded.data_usage == 0

    def test_oem_block_is_empty_namespace_and_marker(self, codec, make_call):
        """The version-1002 layout ends with the empty OEM block."""
        payload = codec.encode(make_call(call_id=1), version=VERSION_OEM_DATA)
        tail = DataWriter()
        tail.write_utf(NO_OEM_NAMESPACE)
        tail.write_int(0)
        tail.write_int(END_OEM_DATA_MARKER)
        assert payload.endswith(tail.getvalue())

    def test_unsupported_version_raises(self, codec, make_call):
        with pytest.raises(RecordCodecError):
            codec.encode(make_call(call_id=1), version=CURRENT_VERSION + 1)
        with pytest.raises(RecordCodecError):
            codec.encode(make_call(call_id=1), version=0)

    def test_overlong_string_raises(self, codec, make_call):
        with pytest.raises(RecordCodecError):
            codec.encode(make_call(call_id=1, number="9" * 70000))

    def test_out_of_range_int_raises(self, codec, make_call):
        with pytest.raises(RecordCodecError):
            codec.encode(make_call(call_id=1, features=2**40))


class TestDecode:
    """Tests for RecordCodec.decode."""

    def test_current_version_keeps_every_field(self, codec, full_call):
        decoded = codec.decode(codec.encode(full_call))

        expected = full_call.to_row()
        assert decoded.to_row() == expected
        assert decoded.id is None

    def test_null_and_empty_strings_are_distinct(self, codec, make_call):
        decoded = codec.decode(codec.encode(make_call(call_id=1, number="")))
        assert decoded.number == ""
        decoded = codec.decode(codec.encode(make_call(call_id=1, number=None)))
        assert decoded.number is None

    def test_version_one_uses_defaults_for_newer_fields(self, codec, full_call):
        decoded = codec.decode(codec.encode(full_call, version=VERSION_BASE))

        assert decoded.date == full_call.date
        assert decoded.number == full_call.number
        assert decoded.features == full_call.features
        assert decoded.add_for_all_users == 1
        assert decoded.post_dial_digits is None
        assert decoded.via_number is None
        assert decoded.block_reason == 0
        assert decoded.call_screening_app_name is None
        assert decoded.missed_reason is None
        assert decoded.is_phone_account_migration_pending == 0

    def test_each_version_reads_exactly_its_fields(self, codec, full_call):
        """Version 1003 has add_for_all_users but nothing added later."""
        decoded = codec.decode(codec.encode(full_call, version=VERSION_ADD_FOR_ALL_USERS))
        assert decoded.add_for_all_users == 0
        assert decoded.post_dial_digits is None

        decoded = codec.decode(codec.encode(full_call, version=1006))
        assert decoded.via_number == full_call.via_number
        assert decoded.block_reason == 2
        assert decoded.call_screening_component_name == "com.screener/.Service"
        assert decoded.missed_reason is None

        decoded = codec.decode(codec.encode(full_call, version=1007))
        assert decoded.missed_reason == full_call.missed_reason
        assert decoded.is_phone_account_migration_pending == 0

    def test_intermediate_version_reads_base_fields(self, codec):
        """Versions between 1 and 1002 carry only the base fields."""
        writer = DataWriter()
        writer.write_int(500)
        write_v1_fields(writer)

        decoded = codec.decode(writer.getvalue())
        assert decoded.date == 1000
        assert decoded.number == "555-0000"

    def test_vendor_oem_data_is_skipped(self, codec):
        writer = DataWriter()
        writer.write_int(VERSION_OEM_DATA)
        write_v1_fields(writer)
        writer.write_utf("com.vendor")
        writer.write_int(3)
        writer.write_bytes(b"\x01\x02\x03")
        writer.write_int(END_OEM_DATA_MARKER)

        decoded = codec.decode(writer.getvalue())
        assert decoded.date == 1000

    def test_bad_oem_marker_raises(self, codec):
        writer = DataWriter()
        writer.write_int(VERSION_OEM_DATA)
        write_v1_fields(writer)
        writer.write_utf(NO_OEM_NAMESPACE)
        writer.write_int(0)
        writer.write_int(0x12345)

        with pytest.raises(RecordCodecError, match="marker"):
            codec.decode(writer.getvalue())

    def test_future_version_raises(self, codec, full_call):
        payload = struct.pack(">i", CURRENT_VERSION + 1) + codec.encode(full_call)[4:]

        with pytest.raises(FutureFormatError) as exc_info:
            codec.decode(payload)
        assert exc_info.value.version == CURRENT_VERSION + 1
        assert exc_info.value.supported_version == CURRENT_VERSION

    def test_version_below_one_raises(self, codec):
        with pytest.raises(RecordCodecError):
            codec.decode(struct.pack(">i", 0) + b"\x00" * 40)

    def test_truncated_payload_raises(self, codec, full_call):
        payload = codec.encode(full_call)
        with pytest.raises(RecordCodecError):
            codec.decode(payload[:-3])

    def test_empty_payload_raises(self, codec):
        with pytest.raises(RecordCodecError):
            codec.decode(b"")

    def test_older_codec_rejects_newer_payload(self, full_call):
        """A codec limited to version 1007 cannot read a 1008 payload."""
        payload = RecordCodec().encode(full_call)
        with pytest.raises(FutureFormatError):
            RecordCodec(current_version=1007).decode(payload)
