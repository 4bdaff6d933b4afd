import logging
import queue
import sqlite3
import threading
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional

from .config import DB_PATH, POOL_MAX, POOL_TIMEOUT
from .errors import PoolExhaustedError, StoreError
from .status import SENTINEL_DATE_PAID

logger = logging.getLogger("billtracker.db")

SCHEMA = """
CREATE TABLE IF NOT EXISTS bills (
    billid INTEGER PRIMARY KEY AUTOINCREMENT,
    billfrom TEXT NOT NULL,
    bill_type TEXT NOT NULL,
    amount_due_cents INTEGER NOT NULL CHECK (amount_due_cents >= 0),
    due_date TEXT NOT NULL,
    is_paid INTEGER NOT NULL DEFAULT 0,
    paid_in_full INTEGER NOT NULL DEFAULT 0,
    amount_paid_cents INTEGER NOT NULL DEFAULT 0 CHECK (amount_paid_cents >= 0),
    date_paid TEXT NOT NULL DEFAULT '9999-01-01',
    paid_by TEXT NOT NULL DEFAULT ''
)
"""

COLUMNS = (
    "billfrom",
    "bill_type",
    "amount_due_cents",
    "due_date",
    "is_paid",
    "paid_in_full",
    "amount_paid_cents",
    "date_paid",
    "paid_by",
)

_SELECT = "SELECT billid, " + ", ".join(COLUMNS) + " FROM bills"


class ConnectionPool:
    """A fixed-size pool of SQLite connections.

    At most ``max_size`` connections are checked out at once. ``acquire``
    waits up to ``timeout`` seconds for a free slot (``0`` fails fast) and
    raises ``PoolExhaustedError`` when none frees up. Leaving the ``with``
    block commits, an exception rolls back.
    """

    def __init__(self, db_path: str = DB_PATH, max_size: int = POOL_MAX, timeout: float = POOL_TIMEOUT):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.db_path = db_path
        self.max_size = max_size
        self.timeout = timeout
        self._slots = threading.BoundedSemaphore(max_size)
        self._idle: "queue.LifoQueue[sqlite3.Connection]" = queue.LifoQueue()
        self._closed = False

    def _connect(self) -> sqlite3.Connection:
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    @contextmanager
    def acquire(self) -> Iterator[sqlite3.Connection]:
        if self._closed:
            raise StoreError("connection pool is closed")
        if self.timeout > 0:
            got = self._slots.acquire(timeout=self.timeout)
        else:
            got = self._slots.acquire(blocking=False)
        if not got:
            raise PoolExhaustedError(f"all {self.max_size} connections are in use")

        conn = None
        try:
            try:
                conn = self._idle.get_nowait()
            except queue.Empty:
                conn = self._connect()
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise
        finally:
            if conn is not None:
                if self._closed:
                    conn.close()
                else:
                    self._idle.put(conn)
            self._slots.release()

    def close(self):
        self._closed = True
        while True:
            try:
                self._idle.get_nowait().close()
            except queue.Empty:
                break


def _to_date(value: Any) -> date:
    # the column may hold a timestamp; only the calendar date is kept
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _row_to_dict(row: sqlite3.Row) -> Dict[str, Any]:
    d = dict(row)
    d["due_date"] = _to_date(d["due_date"])
    d["date_paid"] = _to_date(d["date_paid"]) if d["date_paid"] else SENTINEL_DATE_PAID
    d["is_paid"] = bool(d["is_paid"])
    d["paid_in_full"] = bool(d["paid_in_full"])
    return d


def _to_params(fields: Mapping[str, Any]) -> Dict[str, Any]:
    unknown = set(fields) - set(COLUMNS)
    if unknown:
        raise ValueError(f"Unknown bill columns: {sorted(unknown)}")
    params = {}
    for k, v in fields.items():
        if isinstance(v, date):
            v = v.isoformat()
        elif isinstance(v, bool):
            v = int(v)
        params[k] = v
    return params


class BillStore:
    """Parameterized CRUD over the ``bills`` table."""

    def __init__(self, pool: ConnectionPool):
        self.pool = pool

    @classmethod
    def open(cls, db_path: str = DB_PATH, max_size: int = POOL_MAX, timeout: float = POOL_TIMEOUT) -> "BillStore":
        return cls(ConnectionPool(db_path, max_size=max_size, timeout=timeout))

    @contextmanager
    def _conn(self, action: str) -> Iterator[sqlite3.Connection]:
        try:
            with self.pool.acquire() as conn:
                yield conn
        except sqlite3.Error as e:
            logger.exception("Bill store %s failed", action)
            raise StoreError(f"{action} failed: {e}") from e

    def init_db(self):
        with self._conn("init") as conn:
            conn.execute(SCHEMA)

    def close(self):
        self.pool.close()

    def insert(self, record: Mapping[str, Any]) -> int:
        params = _to_params(record)
        cols = ", ".join(params)
        marks = ", ".join(f":{c}" for c in params)
        with self._conn("insert") as conn:
            cur = conn.execute(f"INSERT INTO bills ({cols}) VALUES ({marks})", params)
            return cur.lastrowid

    def select_all(self) -> List[Dict[str, Any]]:
        with self._conn("select_all") as conn:
            rows = conn.execute(_SELECT + " ORDER BY billid ASC").fetchall()
        return [_row_to_dict(r) for r in rows]

    def select_one(self, bill_id: int) -> Optional[Dict[str, Any]]:
        with self._conn("select_one") as conn:
            row = conn.execute(_SELECT + " WHERE billid = ?", (bill_id,)).fetchone()
        return _row_to_dict(row) if row else None

    def select_amount_paid(self, bill_id: int) -> Optional[int]:
        with self._conn("select_amount_paid") as conn:
            row = conn.execute("SELECT amount_paid_cents FROM bills WHERE billid = ?", (bill_id,)).fetchone()
        return row["amount_paid_cents"] if row else None

    def update_fields(self, bill_id: int, fields: Mapping[str, Any]) -> int:
        params = _to_params(fields)
        if not params:
            return 0
        assignments = ", ".join(f"{c} = :{c}" for c in params)
        params["billid"] = bill_id
        with self._conn("update") as conn:
            cur = conn.execute(f"UPDATE bills SET {assignments} WHERE billid = :billid", params)
            return cur.rowcount

    def delete(self, bill_id: int) -> int:
        with self._conn("delete") as conn:
            cur = conn.execute("DELETE FROM bills WHERE billid = ?", (bill_id,))
            return cur.rowcount
