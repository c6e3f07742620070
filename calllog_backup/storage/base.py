"""
Interface of the persistent call-log store used by backup and restore.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Optional, Protocol

from calllog_backup.calllog.record import CallRecord


class CallLogStore(Protocol):
    """
    Call history that backup reads and restore writes.

    insert() and the bulk methods raise StoreError on failure.
    """

    def query_all(self) -> list[CallRecord]: ...

    def query_existing(self, date: int, number: Optional[str]) -> int: ...

    def insert(self, record: CallRecord) -> int: ...

    def bulk_query_existing(
        self, keys: Iterable[tuple[int, Optional[str]]]
    ) -> set[tuple[int, Optional[str]]]: ...

    def bulk_insert(self, records: Sequence[CallRecord]) -> list[bool]: ...
