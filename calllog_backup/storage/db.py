"""
SQLite call-log store.

Provides the persistent call history that backup reads from and restore
writes to, including the (date, number) lookups restore uses to skip
records that are already present.
"""

import sqlite3
from collections.abc import Generator, Iterable, Sequence
from contextlib import contextmanager
from typing import Optional

from calllog_backup.calllog.record import CallRecord

# SQL Schema for the call log
SCHEMA = """
CREATE TABLE IF NOT EXISTS calls (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    date INTEGER NOT NULL,
    duration INTEGER NOT NULL DEFAULT 0,
    number TEXT,
    post_dial_digits TEXT,
    via_number TEXT,
    type INTEGER NOT NULL DEFAULT 0,
    number_presentation INTEGER NOT NULL DEFAULT 0,
    account_component_name TEXT,
    account_id TEXT,
    account_address TEXT,
    data_usage INTEGER,
    features INTEGER NOT NULL DEFAULT 0,
    add_for_all_users INTEGER NOT NULL DEFAULT 1,
    block_reason INTEGER NOT NULL DEFAULT 0,
    call_screening_app_name TEXT,
    call_screening_component_name TEXT,
    missed_reason TEXT,
    is_phone_account_migration_pending INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_calls_date_number ON calls(date, number);
"""

# Dates per bulk existence query (kept under SQLite's variable limit)
BULK_QUERY_CHUNK_SIZE = 500

DedupKey = tuple[int, Optional[str]]


class StoreError(Exception):
    """Raised when the call-log store cannot be queried or written."""

    pass


class CallLogDatabase:
    """
    SQLite database holding the call log.

    Provides methods for:
    - Reading every call for a backup pass
    - Checking whether a (date, number) call already exists, singly or in bulk
    - Inserting restored calls, singly or in bulk

    Usage:
        db = CallLogDatabase('/path/to/calllog.db')
        db.initialize()

        # Or use in-memory for testing:
        db = CallLogDatabase(':memory:')
        db.initialize()
    """

    def __init__(self, db_path: str):
        """
        Initialize the database manager.

        Args:
            db_path: Path to SQLite database file, or ':memory:' for in-memory database
        """
        self.db_path = db_path
        self._shared_connection: Optional[sqlite3.Connection] = None
        self._columns = CallRecord.column_names()

    def _get_connection(self) -> sqlite3.Connection:
        """
        Get a database connection.

        For in-memory databases, returns a shared connection to ensure
        schema persists across operations. For file databases, creates
        a new connection each time.
        """
        if self.db_path == ":memory:":
            if self._shared_connection is None:
                self._shared_connection = sqlite3.connect(":memory:")
                self._shared_connection.row_factory = sqlite3.Row
            return self._shared_connection
        else:
            conn = sqlite3.connect(self.db_path)
            conn.row_factory = sqlite3.Row
            return conn

    @contextmanager
    def connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Context manager for database connections.

        Commits on success and rolls back on error.

        Usage:
            with db.connection() as conn:
                conn.execute("SELECT COUNT(*) FROM calls")
        """
        conn = self._get_connection()
        is_shared = self.db_path == ":memory:"
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            if not is_shared:
                conn.close()

    def initialize(self) -> None:
        """Create the calls table and index if they don't exist."""
        try:
            with self.connection() as conn:
                conn.executescript(SCHEMA)
        except sqlite3.Error as e:
            raise StoreError(f"Failed to initialize call log: {e}") from e

    # =========================================================================
    # Backup Queries
    # =========================================================================

    def query_all(self) -> list[CallRecord]:
        """
        Get every call, ordered by id.

        Returns:
            List of CallRecord objects
        """
        try:
            with self.connection() as conn:
                cursor = conn.execute("SELECT * FROM calls ORDER BY id")
                return [CallRecord.from_row(row) for row in cursor.fetchall()]
        except sqlite3.Error as e:
            raise StoreError(f"Failed to read call log: {e}") from e

    # =========================================================================
    # Restore Operations
    # =========================================================================

    def query_existing(self, date: int, number: Optional[str]) -> int:
        """
        Count calls with the given date and number.

        A None number matches calls stored without a number.
        """
        try:
            with self.connection() as conn:
                cursor = conn.execute(
                    "SELECT COUNT(*) FROM calls WHERE date = ? AND number IS ?",
                    (date, number),
                )
                result: int = cursor.fetchone()[0]
                return result
        except sqlite3.Error as e:
            raise StoreError(f"Failed to query call ({date}, {number}): {e}") from e

    def bulk_query_existing(self, keys: Iterable[DedupKey]) -> set[DedupKey]:
        """
        Find which (date, number) keys are already stored.

        Args:
            keys: Keys to look up

        Returns:
            The subset of keys that exist in the store
        """
        wanted = set(keys)
        if not wanted:
            return set()

        dates = sorted({date for date, _number in wanted})
        found: set[DedupKey] = set()
        try:
            with self.connection() as conn:
                for start in range(0, len(dates), BULK_QUERY_CHUNK_SIZE):
                    chunk = dates[start : start + BULK_QUERY_CHUNK_SIZE]
                    placeholders = ", ".join("?" for _ in chunk)
                    cursor = conn.execute(
                        "SELECT DISTINCT date, number FROM calls "
                        f"WHERE date IN ({placeholders})",  # nosec B608
                        chunk,
                    )
                    for row in cursor.fetchall():
                        key = (row["date"], row["number"])
                        if key in wanted:
                            found.add(key)
        except sqlite3.Error as e:
            raise StoreError(f"Failed to query {len(wanted)} calls: {e}") from e
        return found

    def _insert_sql(self) -> str:
        columns = ", ".join(self._columns)
        placeholders = ", ".join(f":{name}" for name in self._columns)
        return f"INSERT INTO calls ({columns}) VALUES ({placeholders})"  # nosec B608

    def insert(self, record: CallRecord) -> int:
        """
        Insert a call. The store assigns a new id.

        Returns:
            The id of the new row

        Raises:
            StoreError: If the insert fails
        """
        try:
            with self.connection() as conn:
                cursor = conn.execute(self._insert_sql(), record.to_row())
                row_id: int = cursor.lastrowid or 0
                return row_id
        except sqlite3.Error as e:
            raise StoreError(f"Failed to insert call ({record.date}): {e}") from e

    def bulk_insert(self, records: Sequence[CallRecord]) -> list[bool]:
        """
        Insert calls in one transaction.

        A failing row does not stop the others.

        Returns:
            Per-record success flags, in input order
        """
        results: list[bool] = []
        sql = self._insert_sql()
        try:
            with self.connection() as conn:
                for record in records:
                    try:
                        conn.execute(sql, record.to_row())
                        results.append(True)
                    except sqlite3.Error:
                        results.append(False)
        except sqlite3.Error as e:
            raise StoreError(f"Failed to insert {len(records)} calls: {e}") from e
        return results

    # =========================================================================
    # Utility Operations
    # =========================================================================

    def get_call_count(self) -> int:
        """Get the total number of calls."""
        try:
            with self.connection() as conn:
                cursor = conn.execute("SELECT COUNT(*) FROM calls")
                result: int = cursor.fetchone()[0]
                return result
        except sqlite3.Error as e:
            raise StoreError(f"Failed to count calls: {e}") from e

    def delete_call(self, call_id: int) -> bool:
        """
        Delete a call by id.

        Returns:
            True if a call was deleted, False if not found
        """
        try:
            with self.connection() as conn:
                cursor = conn.execute("DELETE FROM calls WHERE id = ?", (call_id,))
                return cursor.rowcount > 0
        except sqlite3.Error as e:
            raise StoreError(f"Failed to delete call {call_id}: {e}") from e
