"""
Incremental backup: send only the calls that earlier passes have not sent.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from calllog_backup.calllog.record import CallRecord
from calllog_backup.codec.errors import RecordCodecError
from calllog_backup.codec.record_codec import RecordCodec
from calllog_backup.codec.state_codec import BackupState, fits_state
from calllog_backup.events import (
    CALL_LOG_DATA_TYPE,
    ERROR_BACKUP_CALL_FAILED,
    ERROR_NULL_BACKUP_DATA_OUTPUT,
    BackupRestoreEventLogger,
    LoggingEventLogger,
)
from calllog_backup.transport.base import (
    DELETED_ENTITY_SIZE,
    BackupDataOutput,
    TransportError,
)

logger = logging.getLogger(__name__)


@dataclass
class BackupResult:
    """
    Outcome of one backup pass.

    Attributes:
        transmitted: Ids written to the transport, in send order
        failed: Failure reason per id that could not be sent
        removed: Ids announced as deleted (only with prune_removed)
        new_state: State to persist for the next pass
        archive_path: Archive the pass was written to, when one was kept
    """

    new_state: BackupState
    transmitted: list[int] = field(default_factory=list)
    failed: dict[int, str] = field(default_factory=dict)
    removed: list[int] = field(default_factory=list)
    archive_path: Optional[Path] = None

    @property
    def succeeded(self) -> int:
        return len(self.transmitted)

    def failure_counts(self) -> Counter:
        """Number of failed calls per reason."""
        return Counter(self.failed.values())


class BackupDiffer:
    """
    Computes and sends the difference between the call log and the state
    left by the previous backup pass.

    A call is sent when its id is not in the prior state. Calls that fail
    to send stay out of the new state, so the next pass retries them.

    Attributes:
        codec: Record codec; its version is stamped on the new state
        event_logger: Receives one report per pass
        prune_removed: Announce ids that left the call log as deleted
            entities and drop them from the state

    Usage:
        differ = BackupDiffer(event_logger=events)
        result = differ.diff(db.query_all(), prior_state, output)
        save(result.new_state)
    """

    def __init__(
        self,
        codec: Optional[RecordCodec] = None,
        event_logger: Optional[BackupRestoreEventLogger] = None,
        prune_removed: bool = False,
    ):
        self.codec = codec or RecordCodec()
        self.event_logger = event_logger or LoggingEventLogger()
        self.prune_removed = prune_removed

    def select(
        self, records: Iterable[CallRecord], prior: BackupState
    ) -> list[CallRecord]:
        """
        Calls not yet backed up, in input order.

        Calls without a store id cannot be tracked in the state and are
        left out.
        """
        selected = []
        for record in records:
            if record.id is None:
                logger.warning(f"Skipping call at {record.date} with no id")
                continue
            if record.id not in prior.call_ids:
                selected.append(record)
        return selected

    def diff(
        self,
        records: Iterable[CallRecord],
        prior: BackupState,
        output: Optional[BackupDataOutput],
    ) -> BackupResult:
        """
        Send every call that is new since the prior state.

        Each call becomes one entity keyed by its id. A call that cannot be
        encoded or written, or whose id does not fit in the state, is
        recorded as failed and the pass carries on.
        Without an output every new call fails and nothing is written.

        Args:
            records: Every call currently in the store
            prior: State from the previous pass
            output: Backup side of the transport, or None if unavailable

        Returns:
            BackupResult with the state for the next pass
        """
        records = list(records)
        pending = self.select(records, prior)
        call_ids = set(prior.call_ids)
        result = BackupResult(
            new_state=BackupState(version=self.codec.current_version, call_ids=call_ids)
        )
        logger.debug(
            f"{len(pending)} of {len(records)} call(s) need backup "
            f"({len(prior.call_ids)} already backed up)"
        )

        if output is None:
            logger.error("No backup data output; nothing can be sent")
            for record in pending:
                result.failed[record.id] = ERROR_NULL_BACKUP_DATA_OUTPUT
            self._report(result)
            return result

        if self.prune_removed:
            self._send_removals(records, prior, output, result)

        for record in pending:
            if not fits_state(record.id):
                logger.warning(f"Call id {record.id} cannot be tracked; not sent")
                result.failed[record.id] = ERROR_BACKUP_CALL_FAILED
                continue
            try:
                self._send(record, output)
            except (RecordCodecError, TransportError, OSError) as e:
                logger.warning(f"Failed to back up call {record.id}: {e}")
                result.failed[record.id] = ERROR_BACKUP_CALL_FAILED
                continue
            result.transmitted.append(record.id)
            call_ids.add(record.id)

        self._report(result)
        return result

    def _send(self, record: CallRecord, output: BackupDataOutput) -> None:
        # Encode before the header so a bad record leaves no partial entity
        payload = self.codec.encode(record)
        output.write_entity_header(str(record.id), len(payload))
        output.write_entity_data(payload, len(payload))

    def _send_removals(
        self,
        records: list[CallRecord],
        prior: BackupState,
        output: BackupDataOutput,
        result: BackupResult,
    ) -> None:
        current_ids = {record.id for record in records}
        for call_id in sorted(prior.call_ids - current_ids):
            try:
                output.write_entity_header(str(call_id), DELETED_ENTITY_SIZE)
            except (TransportError, OSError) as e:
                # Stays in the state; the deletion is retried next pass
                logger.warning(f"Failed to announce removal of call {call_id}: {e}")
                continue
            result.removed.append(call_id)
            result.new_state.call_ids.discard(call_id)

    def _report(self, result: BackupResult) -> None:
        if result.transmitted:
            self.event_logger.log_items_backed_up(
                CALL_LOG_DATA_TYPE, len(result.transmitted)
            )
        for reason, count in sorted(result.failure_counts().items()):
            self.event_logger.log_items_backup_failed(CALL_LOG_DATA_TYPE, count, reason)
