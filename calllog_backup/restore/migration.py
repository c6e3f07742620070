"""
Phone-account migration applied to restored calls.

Calls placed through the built-in telephony service store the device's
subscription id as their account id. Subscription ids differ between
devices, so on restore the id is swapped for a stable identifier (such as
the SIM's ICCID) and the record is flagged for the store to finish the
migration.
"""

import logging
from collections.abc import Mapping
from dataclasses import replace
from typing import Optional

from calllog_backup.calllog.record import CallRecord
from calllog_backup.config.settings import TELEPHONY_COMPONENT

logger = logging.getLogger(__name__)


class SubscriptionMapping:
    """
    Maps subscription ids to stable account identifiers.

    Usage:
        mapping = SubscriptionMapping({666: "891004234814455936F"})
        mapping.lookup(666)  # "891004234814455936F"
    """

    def __init__(self, entries: Optional[Mapping[int, str]] = None):
        self._entries: dict[int, str] = dict(entries or {})

    def lookup(self, subscription_id: int) -> Optional[str]:
        """Return the stable identifier for a subscription, or None."""
        return self._entries.get(subscription_id)


def migrate_phone_account(
    record: CallRecord,
    mapping: Optional[SubscriptionMapping],
    telephony_component: str = TELEPHONY_COMPONENT,
) -> CallRecord:
    """
    Rewrite a telephony call's account id through the subscription mapping.

    Only calls owned by `telephony_component` whose account id is a known
    subscription id are rewritten; they come back with the mapped id and
    is_phone_account_migration_pending = 1. Every other call comes back
    unchanged apart from the marker, which is set to 0.

    Args:
        record: Decoded call
        mapping: Subscription mapping (None disables the rewrite)
        telephony_component: Component name that identifies telephony calls

    Returns:
        A new CallRecord; the input is not modified
    """
    if (
        mapping is not None
        and record.account_component_name == telephony_component
        and record.account_id is not None
    ):
        try:
            sub_id = int(record.account_id)
        except ValueError:
            sub_id = None

        if sub_id is not None:
            stable_id = mapping.lookup(sub_id)
            if stable_id is not None:
                logger.debug(f"Migrating phone account {sub_id} for call {record.date}")
                return replace(
                    record,
                    account_id=stable_id,
                    is_phone_account_migration_pending=1,
                )

    return replace(record, is_phone_account_migration_pending=0)
