"""
Duplicate suppression for restored calls.

Record ids are reassigned by the target store, so a restored call is
recognised as already present by its (date, number) pair. Three modes
trade store round trips against memory:

    disabled    insert everything
    per_record  look up each call before inserting it
    batched     collect calls, then one bulk lookup and one bulk insert
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from calllog_backup.calllog.record import CallRecord
from calllog_backup.config.settings import DEFAULT_BATCH_SIZE, DedupMode
from calllog_backup.storage.base import CallLogStore
from calllog_backup.storage.db import StoreError

logger = logging.getLogger(__name__)


@dataclass
class FlushResult:
    """
    Outcome of writing one group of calls to the store.

    Attributes:
        inserted: Calls written to the store
        duplicates: Calls skipped because they already existed
        failed: Calls the store rejected
    """

    inserted: list[CallRecord] = field(default_factory=list)
    duplicates: list[CallRecord] = field(default_factory=list)
    failed: list[CallRecord] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.inserted) + len(self.duplicates) + len(self.failed)


class RestoreDeduplicator:
    """
    Feeds restored calls into the store without creating duplicates.

    In per_record and disabled modes every submit() writes immediately and
    returns its result. In batched mode submit() returns None until the
    batch is full; call flush() at the end of the stream for the rest.

    Usage:
        dedup = RestoreDeduplicator(db, DedupMode.BATCHED, batch_size=50)
        for record in records:
            result = dedup.submit(record)
            if result:
                report(result)
        report(dedup.flush())
    """

    def __init__(
        self,
        store: CallLogStore,
        mode: DedupMode = DedupMode.PER_RECORD,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        self.store = store
        self.mode = DedupMode(mode)
        self.batch_size = batch_size
        self._pending: list[CallRecord] = []

    @property
    def pending(self) -> list[CallRecord]:
        """Calls waiting for the next batched flush."""
        return list(self._pending)

    def submit(self, record: CallRecord) -> Optional[FlushResult]:
        """
        Hand one call to the store.

        Returns:
            The write outcome, or None if the call was only queued
        """
        if self.mode == DedupMode.BATCHED:
            self._pending.append(record)
            if len(self._pending) >= self.batch_size:
                return self.flush()
            return None

        result = FlushResult()
        if self.mode == DedupMode.PER_RECORD:
            try:
                existing = self.store.query_existing(record.date, record.number)
            except StoreError as e:
                logger.warning(f"Duplicate check failed for call {record.id}: {e}")
                result.failed.append(record)
                return result
            if existing > 0:
                logger.debug(f"Skipping existing call {record.id} ({record.date})")
                result.duplicates.append(record)
                return result

        try:
            self.store.insert(record)
            result.inserted.append(record)
        except StoreError as e:
            logger.warning(f"Failed to insert call {record.id}: {e}")
            result.failed.append(record)
        return result

    def flush(self) -> FlushResult:
        """
        Write the queued batch.

        Calls repeated within the batch keep their first occurrence; calls
        already in the store are skipped. Only the rest is inserted, in a
        single bulk call.
        """
        batch, self._pending = self._pending, []
        result = FlushResult()
        if not batch:
            return result

        unique: list[CallRecord] = []
        seen: set[tuple[int, Optional[str]]] = set()
        for record in batch:
            key = record.dedup_key()
            if key in seen:
                result.duplicates.append(record)
            else:
                seen.add(key)
                unique.append(record)

        try:
            existing = self.store.bulk_query_existing(seen)
        except StoreError as e:
            logger.warning(f"Duplicate check failed for batch of {len(batch)}: {e}")
            result.failed.extend(unique)
            return result

        to_insert = []
        for record in unique:
            if record.dedup_key() in existing:
                result.duplicates.append(record)
            else:
                to_insert.append(record)

        if not to_insert:
            return result

        try:
            outcomes = self.store.bulk_insert(to_insert)
        except StoreError as e:
            logger.warning(f"Bulk insert of {len(to_insert)} calls failed: {e}")
            result.failed.extend(to_insert)
            return result

        for record, ok in zip(to_insert, outcomes):
            if ok:
                result.inserted.append(record)
            else:
                result.failed.append(record)
        # A short outcome list means the rest were not written
        result.failed.extend(to_insert[len(outcomes) :])

        logger.debug(
            f"Flushed batch: {len(result.inserted)} inserted, "
            f"{len(result.duplicates)} duplicate(s), {len(result.failed)} failed"
        )
        return result

    def discard_pending(self) -> list[CallRecord]:
        """Drop the queued batch without writing it and return it."""
        batch, self._pending = self._pending, []
        return batch
