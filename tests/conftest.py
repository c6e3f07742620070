"""
Shared fixtures for the calllog_backup tests.
"""

import pytest

from calllog_backup.calllog.record import CallRecord, CallType, NumberPresentation
from calllog_backup.storage.db import CallLogDatabase


def build_call(call_id=None, date=1234567890, number="555-4321", **overrides):
    """Create a CallRecord with realistic defaults."""
    values = {
        "id": call_id,
        "date": date,
        "duration": 42,
        "number": number,
        "type": CallType.INCOMING,
        "number_presentation": NumberPresentation.ALLOWED,
        "account_component_name": "com.example/.Service",
        "account_id": "account-1",
        "data_usage": 0,
    }
    values.update(overrides)
    return CallRecord(**values)


@pytest.fixture
def make_call():
    """Factory fixture for CallRecord objects."""
    return build_call


@pytest.fixture
def db():
    """Initialized in-memory call-log database."""
    database = CallLogDatabase(":memory:")
    database.initialize()
    return database
