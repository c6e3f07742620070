"""
Call-log record model for backup and restore.

Provides a normalized CallRecord representation with methods for:
- Converting to/from rows of the persistent call-log store
- Producing the (date, number) key used to detect restored duplicates
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from enum import IntEnum
from typing import Any, Optional


class CallType(IntEnum):
    """Direction/outcome of a call."""

    INCOMING = 1
    OUTGOING = 2
    MISSED = 3
    VOICEMAIL = 4
    REJECTED = 5
    BLOCKED = 6
    ANSWERED_EXTERNALLY = 7


class NumberPresentation(IntEnum):
    """How the remote number was presented to the user."""

    ALLOWED = 1
    RESTRICTED = 2
    UNKNOWN = 3
    PAYPHONE = 4


# Block reason for calls that were not blocked
BLOCK_REASON_NOT_BLOCKED = 0

# Columns that are never read back from the store
DERIVED_COLUMNS = ("is_phone_account_migration_pending",)


@dataclass
class CallRecord:
    """
    One call-history entry.

    Attributes:
        id: Store-assigned identifier. Stable for the life of the record on
            one device, but not unique across devices: a restored record gets
            a new id from the target store.
        date: Call start time in epoch milliseconds
        duration: Call duration in seconds
        number: Remote number (None when unknown)
        post_dial_digits: Digits dialed after the call connected
        via_number: Number the call was routed through
        type: CallType value
        number_presentation: NumberPresentation value
        account_component_name: Telephony component owning the call
        account_id: Opaque account identifier; its meaning depends on
            account_component_name
        account_address: Address of the phone account
        data_usage: Bytes used by the call, if known
        features: Bitmask of call features
        add_for_all_users: 1 if the call is visible to every user
        block_reason: Why the call was blocked (0 = not blocked)
        call_screening_app_name: Name of the screening app
        call_screening_component_name: Component of the screening app
        missed_reason: Why the call was missed
        is_phone_account_migration_pending: 1 when account_id was rewritten
            to a stable identifier and the store must finish the migration.
            Derived at restore time, never read from the store.

    Usage:
        record = CallRecord.from_row(row)
        key = record.dedup_key()
        values = record.to_row()
    """

    id: Optional[int] = None
    date: int = 0
    duration: int = 0
    number: Optional[str] = None
    post_dial_digits: Optional[str] = None
    via_number: Optional[str] = None
    type: int = 0
    number_presentation: int = 0
    account_component_name: Optional[str] = None
    account_id: Optional[str] = None
    account_address: Optional[str] = None
    data_usage: Optional[int] = None
    features: int = 0
    add_for_all_users: int = 1
    block_reason: int = BLOCK_REASON_NOT_BLOCKED
    call_screening_app_name: Optional[str] = None
    call_screening_component_name: Optional[str] = None
    missed_reason: Optional[str] = None
    is_phone_account_migration_pending: int = 0

    def dedup_key(self) -> tuple[int, Optional[str]]:
        """
        Key identifying the same logical call on any device.

        Record ids are not preserved by restore, so two records are
        considered the same call when their date and number match.
        """
        return (self.date, self.number)

    @classmethod
    def column_names(cls) -> list[str]:
        """Names of the persisted columns, excluding the store-assigned id."""
        return [f.name for f in fields(cls) if f.name != "id"]

    @classmethod
    def from_row(cls, row: Any) -> CallRecord:
        """
        Create a CallRecord from a store row.

        Accepts a sqlite3.Row or a mapping. Missing columns keep their
        defaults; derived columns are always reset.

        Args:
            row: Row or mapping keyed by column name

        Returns:
            CallRecord populated from the row
        """
        keys = set(row.keys())
        values: dict[str, Any] = {}
        for name in ["id", *cls.column_names()]:
            if name in keys and name not in DERIVED_COLUMNS:
                values[name] = row[name]
        return cls(**values)

    def to_row(self) -> dict[str, Any]:
        """
        Convert to a column mapping for insertion into the store.

        The id is left out; the store assigns a new one.
        """
        row = asdict(self)
        row.pop("id")
        return row
