"""Activity ledger: last observed activity and warning flag per account."""

from __future__ import annotations

import threading
from typing import Optional, Protocol

import psycopg
from psycopg import sql
from psycopg.rows import tuple_row
from psycopg_pool import ConnectionPool

from .domain.account import ActivityRecord
from .errors import PersistenceError


class ActivityLedger(Protocol):
    """Keyed store of ``ActivityRecord`` rows; every operation is atomic per account."""

    def record_activity(self, account_id: str, at: int) -> None: ...

    def lookup(self, account_id: str) -> Optional[ActivityRecord]: ...

    def mark_warned(self, account_id: str, last_activity: int) -> bool: ...

    def remove_account(self, account_id: str, last_activity: Optional[int] = None) -> bool: ...


class PostgresActivityLedger:
    """Postgres-backed ledger; single-statement writes keep each key consistent."""

    def __init__(self, pool: ConnectionPool, table: str) -> None:
        """Store the connection pool and the configured table name."""
        self._pool = pool
        self._table = sql.Identifier(table)

    def ensure_schema(self) -> None:
        """Create the ledger table when it does not exist yet."""
        self._execute(
            sql.SQL(
                """
                CREATE TABLE IF NOT EXISTS {table} (
                    account_id TEXT PRIMARY KEY,
                    last_activity BIGINT NOT NULL,
                    warning_sent BOOLEAN NOT NULL DEFAULT FALSE
                )
                """
            ).format(table=self._table),
            (),
        )

    def record_activity(self, account_id: str, at: int) -> None:
        """Upsert the account's activity timestamp and clear its warning flag."""
        self._execute(
            sql.SQL(
                """
                INSERT INTO {table} (account_id, last_activity, warning_sent)
                VALUES (%s, %s, FALSE)
                ON CONFLICT (account_id)
                DO UPDATE SET last_activity = EXCLUDED.last_activity, warning_sent = FALSE
                """
            ).format(table=self._table),
            (account_id, at),
        )

    def lookup(self, account_id: str) -> Optional[ActivityRecord]:
        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        sql.SQL(
                            """
                            SELECT account_id, last_activity, warning_sent
                            FROM {table}
                            WHERE account_id = %s
                            """
                        ).format(table=self._table),
                        (account_id,),
                    )
                    row = cur.fetchone()
        except psycopg.Error as exc:
            raise PersistenceError(f"lookup of {account_id} failed: {exc}") from exc
        if not row:
            return None
        return ActivityRecord(account_id=row[0], last_activity=row[1], warning_sent=row[2])

    def mark_warned(self, account_id: str, last_activity: int) -> bool:
        """Flag the account as warned unless it recorded newer activity since ``last_activity``."""
        return self._execute(
            sql.SQL(
                """
                UPDATE {table}
                SET warning_sent = TRUE
                WHERE account_id = %s AND last_activity = %s
                """
            ).format(table=self._table),
            (account_id, last_activity),
        ) > 0

    def remove_account(self, account_id: str, last_activity: Optional[int] = None) -> bool:
        if last_activity is None:
            query = sql.SQL("DELETE FROM {table} WHERE account_id = %s").format(table=self._table)
            params: tuple = (account_id,)
        else:
            query = sql.SQL(
                "DELETE FROM {table} WHERE account_id = %s AND last_activity = %s"
            ).format(table=self._table)
            params = (account_id, last_activity)
        return self._execute(query, params) > 0

    def _execute(self, query: sql.Composable, params: tuple) -> int:
        try:
            with self._pool.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(query, params)
                    rowcount = cur.rowcount
                conn.commit()
        except psycopg.Error as exc:
            raise PersistenceError(f"activity ledger write failed: {exc}") from exc
        return rowcount


class InMemoryActivityLedger:
    """Dictionary-backed ledger guarded by a lock; used by tests and local runs."""

    def __init__(self) -> None:
        self._records: dict[str, ActivityRecord] = {}
        self._lock = threading.Lock()

    def record_activity(self, account_id: str, at: int) -> None:
        with self._lock:
            self._records[account_id] = ActivityRecord(account_id=account_id, last_activity=at)

    def lookup(self, account_id: str) -> Optional[ActivityRecord]:
        with self._lock:
            record = self._records.get(account_id)
            if record is None:
                return None
            return ActivityRecord(record.account_id, record.last_activity, record.warning_sent)

    def mark_warned(self, account_id: str, last_activity: int) -> bool:
        with self._lock:
            record = self._records.get(account_id)
            if record is None or record.last_activity != last_activity:
                return False
            record.warning_sent = True
            return True

    def remove_account(self, account_id: str, last_activity: Optional[int] = None) -> bool:
        with self._lock:
            record = self._records.get(account_id)
            if record is None:
                return False
            if last_activity is not None and record.last_activity != last_activity:
                return False
            del self._records[account_id]
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, account_id: object) -> bool:
        with self._lock:
            return account_id in self._records
