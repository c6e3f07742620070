"""
Restore pipeline: entity stream in, deduplicated calls out.

Each entity is decoded, run through phone-account migration and handed to
the deduplicator. Insert failures are reported as each batch is written;
successes are reported once, when the stream ends. A payload from a newer
format turns every call of the invocation into a failure.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Optional

from calllog_backup.codec.errors import FutureFormatError, RecordCodecError
from calllog_backup.codec.record_codec import RecordCodec
from calllog_backup.codec.state_codec import BackupState
from calllog_backup.config.settings import RestoreConfig
from calllog_backup.events import (
    CALL_LOG_DATA_TYPE,
    ERROR_READ_CALL_DATA,
    ERROR_RESTORE_CALL_FAILED,
    ERROR_RESTORE_VERSION_TOO_NEW,
    BackupRestoreEventLogger,
    LoggingEventLogger,
)
from calllog_backup.restore.dedup import FlushResult, RestoreDeduplicator
from calllog_backup.restore.migration import SubscriptionMapping, migrate_phone_account
from calllog_backup.storage.base import CallLogStore
from calllog_backup.transport.base import BackupDataInput, TransportError

logger = logging.getLogger(__name__)


@dataclass
class RestoreResult:
    """
    Summary of one restore invocation.

    Attributes:
        entities_read: Entities taken from the stream
        restored: Calls inserted into the store
        duplicates: Calls skipped because they already existed
        failures: Failed call counts per error string
        aborted: True if a too-new payload stopped the restore early
    """

    entities_read: int = 0
    restored: int = 0
    duplicates: int = 0
    failures: Counter = field(default_factory=Counter)
    aborted: bool = False

    @property
    def failed(self) -> int:
        return sum(self.failures.values())


class RestorePipeline:
    """
    Restores calls from a backup entity stream into the store.

    Usage:
        pipeline = RestorePipeline(db, RestoreConfig(dedup_mode=DedupMode.BATCHED))
        result = pipeline.restore(EntityArchiveReader.open(archives))
    """

    def __init__(
        self,
        store: CallLogStore,
        config: Optional[RestoreConfig] = None,
        event_logger: Optional[BackupRestoreEventLogger] = None,
        subscription_mapping: Optional[SubscriptionMapping] = None,
        codec: Optional[RecordCodec] = None,
    ):
        self.store = store
        self.config = config or RestoreConfig()
        self.event_logger = event_logger or LoggingEventLogger()
        self.codec = codec or RecordCodec()
        if subscription_mapping is None:
            subscription_mapping = SubscriptionMapping(self.config.subscription_map)
        self.subscription_mapping = subscription_mapping

    def restore(
        self,
        data_input: BackupDataInput,
        app_version: Optional[int] = None,
        prior_state: Optional[BackupState] = None,
    ) -> RestoreResult:
        """
        Read every entity from the stream and restore its call.

        Malformed payloads and unreadable entities are counted as failures
        and skipped. A payload newer than the codec stops the restore with
        zero successes: the calls inserted so far, the calls still queued
        and the offending one are all reported as one too-new failure.
        Rows already inserted are not removed.

        Args:
            data_input: Restore side of the transport
            app_version: Version of the app that wrote the backup (logged only)
            prior_state: Ignored; restore never reads or changes backup state

        Returns:
            RestoreResult for the invocation
        """
        logger.info(
            f"Starting restore (dedup={self.config.dedup_mode.value}, "
            f"source version={app_version})"
        )
        dedup = RestoreDeduplicator(
            self.store, self.config.dedup_mode, self.config.batch_size
        )
        result = RestoreResult()

        while True:
            try:
                has_next = data_input.read_next_header()
            except TransportError as e:
                logger.error(f"Entity stream failed, stopping restore: {e}")
                self._report_failed(result, 1, ERROR_READ_CALL_DATA)
                break
            if not has_next:
                break

            try:
                key = data_input.get_key()
                size = data_input.get_data_size()
                if size < 0:
                    logger.debug(f"Skipping deleted entity {key!r}")
                    continue
                result.entities_read += 1
                payload = self._read_payload(data_input, size)
            except TransportError as e:
                logger.warning(f"Failed to read entity: {e}")
                self._report_failed(result, 1, ERROR_READ_CALL_DATA)
                continue

            try:
                record = self.codec.decode(payload)
            except FutureFormatError as e:
                logger.error(f"Stopping restore at entity {key!r}: {e}")
                abandoned = dedup.discard_pending()
                invalidated = result.restored + len(abandoned) + 1
                result.restored = 0
                result.aborted = True
                self._report_failed(
                    result, invalidated, ERROR_RESTORE_VERSION_TOO_NEW
                )
                return result
            except RecordCodecError as e:
                logger.warning(f"Cannot decode entity {key!r}: {e}")
                self._report_failed(result, 1, ERROR_READ_CALL_DATA)
                continue

            record.id = self._source_id(key)
            record = migrate_phone_account(
                record, self.subscription_mapping, self.config.telephony_component
            )
            flushed = dedup.submit(record)
            if flushed is not None:
                self._report_flush(result, flushed)

        self._report_flush(result, dedup.flush())
        if result.restored:
            self.event_logger.log_items_restored(CALL_LOG_DATA_TYPE, result.restored)
        logger.info(
            f"Restore finished: {result.restored} restored, "
            f"{result.duplicates} duplicate(s), {result.failed} failed"
        )
        return result

    def _read_payload(self, data_input: BackupDataInput, size: int) -> bytes:
        buffer = bytearray(size)
        offset = 0
        while offset < size:
            count = data_input.read_entity_data(buffer, offset, size - offset)
            if count <= 0:
                raise TransportError(f"Entity ended after {offset} of {size} bytes")
            offset += count
        return bytes(buffer)

    def _source_id(self, key: str) -> Optional[int]:
        try:
            return int(key)
        except ValueError:
            logger.debug(f"Entity key {key!r} is not a call id")
            return None

    def _report_flush(self, result: RestoreResult, flushed: FlushResult) -> None:
        result.duplicates += len(flushed.duplicates)
        result.restored += len(flushed.inserted)
        if flushed.failed:
            self._report_failed(result, len(flushed.failed), ERROR_RESTORE_CALL_FAILED)

    def _report_failed(self, result: RestoreResult, count: int, error: str) -> None:
        result.failures[error] += count
        self.event_logger.log_items_restore_failed(CALL_LOG_DATA_TYPE, count, error)
