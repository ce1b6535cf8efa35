"""Integration tests for the SQLite key-value engine."""

import os
import stat
import threading
from collections.abc import Iterator

import pytest

from tinyblog.adapters.kv.sqlite_kv import SQLiteKV, SQLiteTx
from tinyblog.core.ports.kv import (
    DatabaseClosedError,
    DatabaseLockedError,
    KeyRequiredError,
    KVOperationError,
    NestedTransactionError,
    TxClosedError,
    TxNotWritableError,
)


@pytest.fixture
def kv_path(tmp_path) -> str:
    return str(tmp_path / "kv.db")


@pytest.fixture
def kv(kv_path) -> Iterator[SQLiteKV]:
    engine = SQLiteKV(kv_path, lock_timeout=0.2)
    yield engine
    engine.close()


def seed(kv: SQLiteKV, items: dict[bytes, bytes]) -> None:
    with kv.update() as tx:
        bucket = tx.create_bucket_if_not_exists(b"OUTER").create_bucket_if_not_exists(b"INNER")
        for key, value in items.items():
            bucket.put(key, value)


def inner(tx):
    outer = tx.bucket(b"OUTER")
    assert outer is not None
    bucket = outer.bucket(b"INNER")
    assert bucket is not None
    return bucket


class TestBuckets:
    def test_missing_bucket_is_none(self, kv: SQLiteKV) -> None:
        with kv.view() as tx:
            assert tx.bucket(b"OUTER") is None

    def test_create_is_idempotent(self, kv: SQLiteKV) -> None:
        seed(kv, {b"k": b"v"})
        seed(kv, {})

        with kv.view() as tx:
            assert inner(tx).get(b"k") == b"v"

    def test_nested_buckets_are_separate(self, kv: SQLiteKV) -> None:
        with kv.update() as tx:
            a = tx.create_bucket_if_not_exists(b"A")
            b = tx.create_bucket_if_not_exists(b"B")
            a.put(b"k", b"from a")
            b.put(b"k", b"from b")

        with kv.view() as tx:
            assert tx.bucket(b"A").get(b"k") == b"from a"
            assert tx.bucket(b"B").get(b"k") == b"from b"

    def test_empty_bucket_name_rejected(self, kv: SQLiteKV) -> None:
        with pytest.raises(KeyRequiredError):
            with kv.update() as tx:
                tx.create_bucket_if_not_exists(b"")

    def test_bucket_missing_after_create_is_kv_error(self, kv: SQLiteKV, monkeypatch) -> None:
        monkeypatch.setattr(SQLiteTx, "find_bucket", lambda self, parent_id, name: None)

        with pytest.raises(KVOperationError, match="missing after insert"):
            with kv.update() as tx:
                tx.create_bucket_if_not_exists(b"OUTER")


class TestItems:
    def test_put_get_overwrite_delete(self, kv: SQLiteKV) -> None:
        seed(kv, {b"k": b"one"})
        seed(kv, {b"k": b"two"})

        with kv.view() as tx:
            assert inner(tx).get(b"k") == b"two"

        with kv.update() as tx:
            inner(tx).delete(b"k")
            inner(tx).delete(b"never-there")

        with kv.view() as tx:
            assert inner(tx).get(b"k") is None

    def test_items_in_byte_order(self, kv: SQLiteKV) -> None:
        seed(kv, {b"b": b"2", b"a": b"1", b"B": b"0", b"aa": b"3"})

        with kv.view() as tx:
            keys = [k for k, _ in inner(tx).items()]

        assert keys == [b"B", b"a", b"aa", b"b"]

    def test_empty_key_rejected(self, kv: SQLiteKV) -> None:
        with pytest.raises(KeyRequiredError):
            seed(kv, {b"": b"v"})


class TestTransactions:
    def test_view_is_read_only(self, kv: SQLiteKV) -> None:
        seed(kv, {})

        with kv.view() as tx:
            assert tx.writable is False
            with pytest.raises(TxNotWritableError):
                inner(tx).put(b"k", b"v")

    def test_failed_update_rolls_back(self, kv: SQLiteKV) -> None:
        seed(kv, {b"k": b"before"})

        with pytest.raises(RuntimeError):
            with kv.update() as tx:
                inner(tx).put(b"k", b"after")
                inner(tx).put(b"other", b"x")
                raise RuntimeError("abort")

        with kv.view() as tx:
            assert inner(tx).get(b"k") == b"before"
            assert inner(tx).get(b"other") is None

    def test_nested_transaction_rejected(self, kv: SQLiteKV) -> None:
        with kv.view():
            with pytest.raises(NestedTransactionError):
                with kv.update():
                    pass

    def test_tx_unusable_after_block(self, kv: SQLiteKV) -> None:
        seed(kv, {b"k": b"v"})
        with kv.view() as tx:
            bucket = inner(tx)

        with pytest.raises(TxClosedError):
            bucket.get(b"k")

    def test_reader_keeps_snapshot(self, kv: SQLiteKV) -> None:
        """A read transaction does not see writes committed after it began."""
        seed(kv, {b"k": b"old"})
        errors: list[BaseException] = []

        def writer() -> None:
            try:
                seed(kv, {b"k": b"new", b"extra": b"x"})
            except BaseException as e:  # noqa: BLE001
                errors.append(e)

        with kv.view() as tx:
            assert inner(tx).get(b"k") == b"old"

            t = threading.Thread(target=writer)
            t.start()
            t.join(timeout=5)

            assert not errors
            assert inner(tx).get(b"k") == b"old"
            assert inner(tx).get(b"extra") is None

        with kv.view() as tx:
            assert inner(tx).get(b"k") == b"new"
            assert inner(tx).get(b"extra") == b"x"

    def test_concurrent_writers_serialize(self, kv: SQLiteKV) -> None:
        seed(kv, {})

        def write_many(prefix: bytes) -> None:
            for i in range(20):
                with kv.update() as tx:
                    inner(tx).put(prefix + str(i).encode(), b"v")

        threads = [threading.Thread(target=write_many, args=(p,)) for p in (b"a", b"b", b"c")]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        with kv.view() as tx:
            assert len(list(inner(tx).items())) == 60


class TestLifecycle:
    def test_file_created_with_mode(self, kv_path: str) -> None:
        engine = SQLiteKV(kv_path, file_mode=0o600)
        try:
            assert stat.S_IMODE(os.stat(kv_path).st_mode) == 0o600
        finally:
            engine.close()

    def test_second_handle_times_out(self, kv: SQLiteKV, kv_path: str) -> None:
        with pytest.raises(DatabaseLockedError):
            SQLiteKV(kv_path, lock_timeout=0.1)

    def test_reopen_after_close(self, kv_path: str) -> None:
        first = SQLiteKV(kv_path)
        seed(first, {b"k": b"durable"})
        first.close()

        second = SQLiteKV(kv_path, lock_timeout=0.1)
        try:
            with second.view() as tx:
                assert inner(tx).get(b"k") == b"durable"
        finally:
            second.close()

    def test_use_after_close(self, kv_path: str) -> None:
        engine = SQLiteKV(kv_path)
        engine.close()
        engine.close()

        assert engine.closed is True
        with pytest.raises(DatabaseClosedError):
            with engine.view():
                pass

    def test_close_during_update_keeps_original_error(self, kv: SQLiteKV) -> None:
        """A rollback on an already closed connection does not hide the block's error."""
        seed(kv, {})

        with pytest.raises(RuntimeError, match="abort"):
            with kv.update():
                kv.close()
                raise RuntimeError("abort")

        assert kv.closed is True


def open_fds() -> int:
    return len(os.listdir("/proc/self/fd"))


@pytest.mark.skipif(not os.path.isdir("/proc/self/fd"), reason="needs /proc/self/fd")
class TestConnections:
    def test_short_lived_threads_leave_no_connections(self, kv: SQLiteKV) -> None:
        """Worker threads come and go; each transaction closes its own connection."""
        seed(kv, {b"k": b"v"})

        def read_and_write(i: int) -> None:
            with kv.view() as tx:
                assert inner(tx).get(b"k") == b"v"
            with kv.update() as tx:
                inner(tx).put(b"n", str(i).encode())

        # Warm up so WAL and shared-memory files are already open.
        read_and_write(-1)
        before = open_fds()

        for i in range(200):
            t = threading.Thread(target=read_and_write, args=(i,))
            t.start()
            t.join(timeout=5)

        assert open_fds() - before < 10
        with kv.view() as tx:
            assert inner(tx).get(b"n") == b"199"
