"""
Embedded Key-Value Engine Interface.

Protocol-based interface for a single-file, transactional key-value engine
with nested buckets. Implementations: SQLite (now).

Invariants:
- Every read and write happens inside an explicit transaction
- Read transactions see a point-in-time snapshot for their whole duration
- At most one write transaction commits at a time
- Keys inside a bucket iterate in ascending byte order
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import AbstractContextManager
from typing import Protocol


class BucketPort(Protocol):
    """
    A named collection of keys inside a transaction.

    Buckets may hold nested buckets as well as key/value pairs.
    """

    @property
    def name(self) -> bytes: ...

    def get(self, key: bytes) -> bytes | None:
        """Get the value for key, or None if the key is absent."""
        ...

    def put(self, key: bytes, value: bytes) -> None:
        """
        Set the value for key, replacing any existing value.

        Raises:
            KeyRequiredError: If key is empty
            TxNotWritableError: If called inside a read transaction
        """
        ...

    def delete(self, key: bytes) -> None:
        """
        Remove key. Removing an absent key is not an error.

        Raises:
            TxNotWritableError: If called inside a read transaction
        """
        ...

    def items(self) -> Iterator[tuple[bytes, bytes]]:
        """Iterate (key, value) pairs in ascending byte order of the key."""
        ...

    def bucket(self, name: bytes) -> BucketPort | None:
        """Get a nested bucket, or None if it doesn't exist."""
        ...

    def create_bucket_if_not_exists(self, name: bytes) -> BucketPort:
        """Get a nested bucket, creating it first when missing."""
        ...


class TxPort(Protocol):
    """A read or write transaction."""

    @property
    def writable(self) -> bool: ...

    def bucket(self, name: bytes) -> BucketPort | None:
        """Get a root-level bucket, or None if it doesn't exist."""
        ...

    def create_bucket_if_not_exists(self, name: bytes) -> BucketPort:
        """Get a root-level bucket, creating it first when missing."""
        ...


class KVEnginePort(Protocol):
    """
    Transactional key-value engine port.

    One handle per backing file, held for the process lifetime.
    """

    @property
    def path(self) -> str: ...

    def view(self) -> AbstractContextManager[TxPort]:
        """
        Open a read-only transaction.

        Raises:
            DatabaseClosedError: If the engine has been closed
        """
        ...

    def update(self) -> AbstractContextManager[TxPort]:
        """
        Open a read-write transaction.

        Commits when the block exits normally, rolls back when it raises.

        Raises:
            DatabaseClosedError: If the engine has been closed
            TxCommitError: If the commit fails
        """
        ...

    def close(self) -> None:
        """Release the backing file. Safe to call more than once."""
        ...


class KVError(Exception):
    """Base class for key-value engine errors."""


class DatabaseLockedError(KVError):
    """Raised when the backing file is exclusively held by another handle."""

    def __init__(self, path: str, timeout: float) -> None:
        self.path = path
        self.timeout = timeout
        super().__init__(f"Database file is locked: {path} (waited {timeout:.1f}s)")


class DatabaseOpenError(KVError):
    """Raised when the backing file cannot be opened or prepared."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        super().__init__(f"Could not open database {path}: {reason}")


class DatabaseClosedError(KVError):
    """Raised when a transaction is requested on a closed engine."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Database is closed: {path}")


class BucketNotFoundError(KVError):
    """Raised when a required bucket doesn't exist."""

    def __init__(self, name: bytes) -> None:
        self.name = name
        super().__init__(f"Bucket not found: {name!r}")


class KeyRequiredError(KVError):
    """Raised when writing with an empty key."""

    def __init__(self) -> None:
        super().__init__("Key required")


class TxNotWritableError(KVError):
    """Raised when writing inside a read-only transaction."""

    def __init__(self) -> None:
        super().__init__("Transaction is not writable")


class TxCommitError(KVError):
    """Raised when a write transaction cannot be committed."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Could not commit transaction: {reason}")


class NestedTransactionError(KVError):
    """Raised when a thread opens a transaction while another is still open."""

    def __init__(self) -> None:
        super().__init__("A transaction is already open on this thread")


class TxClosedError(KVError):
    """Raised when a transaction or one of its buckets is used after it ended."""

    def __init__(self) -> None:
        super().__init__("Transaction is closed")


class KVOperationError(KVError):
    """Raised when the engine fails to read or write inside a transaction."""

    def __init__(self, operation: str, reason: str) -> None:
        self.operation = operation
        super().__init__(f"Key-value {operation} failed: {reason}")
