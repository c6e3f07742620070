"""
Tests for phone-account migration of restored calls.
"""

import pytest

from calllog_backup.config.settings import TELEPHONY_COMPONENT
from calllog_backup.restore.migration import SubscriptionMapping, migrate_phone_account

ICCID = "891004234814455936F"


@pytest.fixture
def mapping():
    return SubscriptionMapping({666: ICCID})


class TestSubscriptionMapping:
    """Tests for SubscriptionMapping."""

    def test_lookup(self, mapping):
        assert mapping.lookup(666) == ICCID
        assert mapping.lookup(1) is None


class TestMigratePhoneAccount:
    """Tests for migrate_phone_account."""

    def test_telephony_call_is_rewritten(self, mapping, make_call):
        record = make_call(1, account_component_name=TELEPHONY_COMPONENT, account_id="666")

        migrated = migrate_phone_account(record, mapping)

        assert migrated.account_id == ICCID
        assert migrated.is_phone_account_migration_pending == 1

    def test_other_component_is_left_alone(self, mapping, make_call):
        record = make_call(
            1, account_component_name="com.voip/.ConnectionService", account_id="666"
        )

        migrated = migrate_phone_account(record, mapping)

        assert migrated.account_id == "666"
        assert migrated.is_phone_account_migration_pending == 0

    def test_unknown_subscription_is_left_alone(self, mapping, make_call):
        record = make_call(1, account_component_name=TELEPHONY_COMPONENT, account_id="7")

        migrated = migrate_phone_account(record, mapping)

        assert migrated.account_id == "7"
        assert migrated.is_phone_account_migration_pending == 0

    def test_non_numeric_account_id_is_left_alone(self, mapping, make_call):
        record = make_call(
            1, account_component_name=TELEPHONY_COMPONENT, account_id=ICCID
        )
        migrated = migrate_phone_account(record, mapping)
        assert migrated.account_id == ICCID
        assert migrated.is_phone_account_migration_pending == 0

    def test_missing_account_id_is_left_alone(self, mapping, make_call):
        record = make_call(1, account_component_name=TELEPHONY_COMPONENT, account_id=None)
        assert migrate_phone_account(record, mapping).account_id is None

    def test_stale_marker_is_cleared(self, mapping, make_call):
        """A marker carried in the payload never survives without a rewrite."""
        record = make_call(1, is_phone_account_migration_pending=1)
        assert migrate_phone_account(record, mapping).is_phone_account_migration_pending == 0

    def test_no_mapping(self, make_call):
        record = make_call(1, account_component_name=TELEPHONY_COMPONENT, account_id="666")
        migrated = migrate_phone_account(record, None)
        assert migrated.account_id == "666"
        assert migrated.is_phone_account_migration_pending == 0

    def test_custom_telephony_component(self, mapping, make_call):
        record = make_call(1, account_component_name="com.oem/.Telephony", account_id="666")
        migrated = migrate_phone_account(record, mapping, "com.oem/.Telephony")
        assert migrated.account_id == ICCID

    def test_input_is_not_modified(self, mapping, make_call):
        record = make_call(1, account_component_name=TELEPHONY_COMPONENT, account_id="666")
        migrate_phone_account(record, mapping)
        assert record.account_id == "666"
