"""
SQLite Key-Value Engine Adapter.

Implements the KVEnginePort interface on a single SQLite file in WAL mode:
B-tree pages, readers on a committed snapshot, one writer at a time.

Layout:
- kv_buckets(id, parent_id, name): bucket tree, parent_id 0 is the root
- kv_items(bucket_id, key, value): key/value pairs, keys ordered bytewise

Invariants:
- Reads and writes only happen inside view() / update() transactions
- A read transaction pins its snapshot when it begins
- Writers are serialized by an in-process lock plus BEGIN IMMEDIATE
- The file is held under an exclusive advisory lock while the engine is open
- Each transaction owns one connection, closed when the transaction ends
"""

from __future__ import annotations

import fcntl
import logging
import os
import sqlite3
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager

from tinyblog.core.ports.kv import (
    DatabaseClosedError,
    DatabaseLockedError,
    DatabaseOpenError,
    KeyRequiredError,
    KVOperationError,
    NestedTransactionError,
    TxClosedError,
    TxCommitError,
    TxNotWritableError,
)

logger = logging.getLogger(__name__)

ROOT_BUCKET_ID = 0

SCHEMA = """
CREATE TABLE IF NOT EXISTS kv_buckets (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    parent_id INTEGER NOT NULL,
    name BLOB NOT NULL,
    UNIQUE (parent_id, name)
);
CREATE TABLE IF NOT EXISTS kv_items (
    bucket_id INTEGER NOT NULL REFERENCES kv_buckets (id) ON DELETE CASCADE,
    key BLOB NOT NULL,
    value BLOB NOT NULL,
    PRIMARY KEY (bucket_id, key)
) WITHOUT ROWID;
"""


# -----------------------------------------------------------------------------
# Transactions and buckets
# -----------------------------------------------------------------------------


class SQLiteBucket:
    """A bucket bound to one open transaction."""

    def __init__(self, tx: SQLiteTx, bucket_id: int, name: bytes) -> None:
        self._tx = tx
        self._id = bucket_id
        self._name = name

    @property
    def name(self) -> bytes:
        return self._name

    def get(self, key: bytes) -> bytes | None:
        row = self._tx.execute(
            "get",
            "SELECT value FROM kv_items WHERE bucket_id = ? AND key = ?",
            (self._id, key),
        ).fetchone()
        return bytes(row[0]) if row else None

    def put(self, key: bytes, value: bytes) -> None:
        self._tx.ensure_writable()
        if not key:
            raise KeyRequiredError()
        self._tx.execute(
            "put",
            "INSERT INTO kv_items (bucket_id, key, value) VALUES (?, ?, ?) "
            "ON CONFLICT (bucket_id, key) DO UPDATE SET value = excluded.value",
            (self._id, key, value),
        )

    def delete(self, key: bytes) -> None:
        self._tx.ensure_writable()
        self._tx.execute(
            "delete",
            "DELETE FROM kv_items WHERE bucket_id = ? AND key = ?",
            (self._id, key),
        )

    def items(self) -> Iterator[tuple[bytes, bytes]]:
        cursor = self._tx.execute(
            "scan",
            "SELECT key, value FROM kv_items WHERE bucket_id = ? ORDER BY key",
            (self._id,),
        )
        for key, value in cursor:
            self._tx.ensure_open()
            yield bytes(key), bytes(value)

    def bucket(self, name: bytes) -> SQLiteBucket | None:
        return self._tx.find_bucket(self._id, name)

    def create_bucket_if_not_exists(self, name: bytes) -> SQLiteBucket:
        return self._tx.ensure_bucket(self._id, name)


class SQLiteTx:
    """A read or write transaction on one SQLite connection."""

    def __init__(self, conn: sqlite3.Connection, *, writable: bool) -> None:
        self._conn = conn
        self._writable = writable
        self._closed = False

    @property
    def writable(self) -> bool:
        return self._writable

    def ensure_open(self) -> None:
        if self._closed:
            raise TxClosedError()

    def ensure_writable(self) -> None:
        self.ensure_open()
        if not self._writable:
            raise TxNotWritableError()

    def finish(self) -> None:
        self._closed = True

    def execute(
        self, operation: str, sql: str, params: tuple[object, ...] = ()
    ) -> sqlite3.Cursor:
        self.ensure_open()
        try:
            return self._conn.execute(sql, params)
        except sqlite3.Error as e:
            raise KVOperationError(operation, str(e)) from e

    def find_bucket(self, parent_id: int, name: bytes) -> SQLiteBucket | None:
        row = self.execute(
            "get bucket",
            "SELECT id FROM kv_buckets WHERE parent_id = ? AND name = ?",
            (parent_id, name),
        ).fetchone()
        return SQLiteBucket(self, row[0], name) if row else None

    def ensure_bucket(self, parent_id: int, name: bytes) -> SQLiteBucket:
        self.ensure_writable()
        if not name:
            raise KeyRequiredError()
        self.execute(
            "create bucket",
            "INSERT OR IGNORE INTO kv_buckets (parent_id, name) VALUES (?, ?)",
            (parent_id, name),
        )
        bucket = self.find_bucket(parent_id, name)
        if bucket is None:
            raise KVOperationError("create bucket", f"bucket {name!r} missing after insert")
        return bucket

    def bucket(self, name: bytes) -> SQLiteBucket | None:
        return self.find_bucket(ROOT_BUCKET_ID, name)

    def create_bucket_if_not_exists(self, name: bytes) -> SQLiteBucket:
        return self.ensure_bucket(ROOT_BUCKET_ID, name)


# -----------------------------------------------------------------------------
# Engine
# -----------------------------------------------------------------------------


class SQLiteKV:
    """
    SQLite implementation of KVEnginePort.

    A connection is opened when a transaction begins and closed when it ends,
    so threads that come and go never leave connections behind. Between
    transactions the engine holds nothing but the file lock.
    """

    def __init__(
        self,
        path: str,
        *,
        file_mode: int = 0o600,
        lock_timeout: float = 1.0,
        busy_timeout_ms: int = 5000,
    ) -> None:
        """
        Open (or create) the backing file.

        Args:
            path: Database file path
            file_mode: Permission bits used when the file is created
            lock_timeout: Seconds to wait for the exclusive file lock
            busy_timeout_ms: Milliseconds a writer waits for the write slot

        Raises:
            DatabaseLockedError: If another handle holds the file
            DatabaseOpenError: If the file cannot be opened or prepared
        """
        self._path = path
        self._busy_timeout_ms = busy_timeout_ms
        self._local = threading.local()
        self._active: set[sqlite3.Connection] = set()
        self._state_lock = threading.Lock()
        self._write_lock = threading.Lock()
        self._closed = False

        self._lock_fd = self._acquire_file_lock(path, file_mode, lock_timeout)
        try:
            conn = self._connect()
            try:
                conn.execute("PRAGMA journal_mode = WAL;")
                conn.executescript(SCHEMA)
            finally:
                conn.close()
        except (sqlite3.Error, KVOperationError) as e:
            self.close()
            raise DatabaseOpenError(path, str(e)) from e

        logger.info("Opened key-value store at %s", path)

    @property
    def path(self) -> str:
        return self._path

    @property
    def closed(self) -> bool:
        return self._closed

    @staticmethod
    def _acquire_file_lock(path: str, file_mode: int, timeout: float) -> int:
        try:
            fd = os.open(path, os.O_RDWR | os.O_CREAT, file_mode)
        except OSError as e:
            raise DatabaseOpenError(path, e.strerror or str(e)) from e

        deadline = time.monotonic() + timeout
        while True:
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                return fd
            except BlockingIOError:
                if time.monotonic() >= deadline:
                    os.close(fd)
                    raise DatabaseLockedError(path, timeout) from None
                time.sleep(0.05)
            except OSError as e:
                os.close(fd)
                raise DatabaseOpenError(path, e.strerror or str(e)) from e

    def _connect(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(
                self._path,
                timeout=self._busy_timeout_ms / 1000,
                isolation_level=None,
                check_same_thread=False,
            )
        except sqlite3.Error as e:
            raise KVOperationError("connect", str(e)) from e

        try:
            conn.execute("PRAGMA synchronous = FULL;")
            conn.execute("PRAGMA foreign_keys = ON;")
            conn.execute(f"PRAGMA busy_timeout = {int(self._busy_timeout_ms)};")
        except sqlite3.Error as e:
            conn.close()
            raise KVOperationError("connect", str(e)) from e
        return conn

    def _rollback(self, conn: sqlite3.Connection) -> None:
        try:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
        except sqlite3.Error:
            logger.warning("Rollback failed on %s", self._path, exc_info=True)

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Open a connection for one transaction and close it when the block ends."""
        if getattr(self._local, "in_tx", False):
            raise NestedTransactionError()
        if self._closed:
            raise DatabaseClosedError(self._path)

        conn = self._connect()
        with self._state_lock:
            if self._closed:
                conn.close()
                raise DatabaseClosedError(self._path)
            self._active.add(conn)

        self._local.in_tx = True
        try:
            yield conn
        finally:
            self._local.in_tx = False
            with self._state_lock:
                self._active.discard(conn)
            conn.close()

    @contextmanager
    def view(self) -> Iterator[SQLiteTx]:
        """Run a read-only transaction on a consistent snapshot."""
        with self._connection() as conn:
            try:
                conn.execute("BEGIN")
                # The WAL snapshot is taken by the first read, not by BEGIN.
                conn.execute("SELECT count(*) FROM kv_buckets").fetchone()
            except sqlite3.Error as e:
                raise KVOperationError("begin", str(e)) from e

            tx = SQLiteTx(conn, writable=False)
            try:
                yield tx
            finally:
                tx.finish()
                self._rollback(conn)

    @contextmanager
    def update(self) -> Iterator[SQLiteTx]:
        """Run a read-write transaction, committed when the block succeeds."""
        with self._connection() as conn, self._write_lock:
            try:
                conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as e:
                raise KVOperationError("begin", str(e)) from e

            tx = SQLiteTx(conn, writable=True)
            try:
                yield tx
            except BaseException:
                tx.finish()
                self._rollback(conn)
                raise

            tx.finish()
            try:
                conn.execute("COMMIT")
            except sqlite3.Error as e:
                self._rollback(conn)
                raise TxCommitError(str(e)) from e

    def close(self) -> None:
        """Close connections of unfinished transactions, then release the file lock."""
        with self._state_lock:
            if self._closed:
                return
            self._closed = True
            active, self._active = self._active, set()

        for conn in active:
            try:
                conn.close()
            except sqlite3.Error:
                logger.warning("Error closing connection to %s", self._path, exc_info=True)

        fcntl.flock(self._lock_fd, fcntl.LOCK_UN)
        os.close(self._lock_fd)
        logger.info("Closed key-value store at %s", self._path)
