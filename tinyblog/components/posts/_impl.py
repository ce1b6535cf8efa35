"""
PostStore - Transactional post storage on the embedded key-value engine.

Posts live in a fixed two-level namespace: an outer bucket (BLOG) holding an
inner bucket (POSTS) whose keys are slugs and whose values are JSON records.
The outer bucket leaves room for sibling collections in the same file.

Invariants:
- One record per slug; a write to an existing slug is a full overwrite
- Every read and write runs inside an engine transaction
- No in-memory cache; the stored bytes are the only source of truth
- "Absent" (PostNotFoundError) and "unreadable" (PostDecodingError) are distinct
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from pathlib import Path
from types import TracebackType

from pydantic import ValidationError

from tinyblog.adapters.kv.sqlite_kv import SQLiteKV
from tinyblog.core.ports.kv import (
    BucketNotFoundError,
    BucketPort,
    DatabaseClosedError,
    KVEnginePort,
    KVError,
    TxPort,
)
from tinyblog.domain.entities import Post
from tinyblog.rules.models import StorageRules

from .models import (
    PostDecodingError,
    PostEncodingError,
    PostNotFoundError,
    StorageUnavailableError,
    StorageWriteError,
)

logger = logging.getLogger(__name__)

EngineFactory = Callable[..., KVEnginePort]


# --- Record Codec ---


def encode_post(post: Post, slug: str = "") -> bytes:
    """
    Serialize a post to its stored JSON form.

    Empty fields are omitted, so partially populated posts stay compact.
    """
    try:
        return post.model_dump_json(by_alias=True, exclude_defaults=True).encode("utf-8")
    except (ValueError, TypeError) as e:
        raise PostEncodingError(slug, str(e)) from e


def decode_post(raw: bytes, slug: str = "") -> Post:
    """Parse stored bytes back into a post."""
    try:
        return Post.model_validate_json(raw)
    except ValidationError as e:
        raise PostDecodingError(slug, str(e)) from e


def _key(slug: str) -> bytes:
    try:
        return slug.encode("utf-8")
    except UnicodeEncodeError as e:
        raise PostEncodingError(slug, f"slug is not valid UTF-8: {e}") from e


# --- Store ---


class PostStore:
    """
    Post storage backed by a single-file key-value engine.

    Construct once per process, call init() on start and close() on shutdown,
    and pass the instance to whatever serves requests.
    """

    def __init__(
        self,
        path: str,
        *,
        root_bucket: str = "BLOG",
        posts_bucket: str = "POSTS",
        file_mode: int = 0o600,
        lock_timeout: float = 1.0,
        busy_timeout_ms: int = 5000,
        engine_factory: EngineFactory = SQLiteKV,
    ) -> None:
        self.path = path
        self.root_bucket = root_bucket.encode("utf-8")
        self.posts_bucket = posts_bucket.encode("utf-8")
        self._file_mode = file_mode
        self._lock_timeout = lock_timeout
        self._busy_timeout_ms = busy_timeout_ms
        self._engine_factory = engine_factory
        self._engine: KVEnginePort | None = None

    def __enter__(self) -> PostStore:
        self.init()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    # --- Lifecycle ---

    def init(self) -> None:
        """
        Open (or create) the backing file and ensure both buckets exist.

        Safe to call on every start; does nothing when already open.

        Raises:
            StorageUnavailableError: If the file cannot be opened or the
                namespace cannot be created
        """
        if self._engine is not None:
            return

        try:
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
            engine = self._engine_factory(
                self.path,
                file_mode=self._file_mode,
                lock_timeout=self._lock_timeout,
                busy_timeout_ms=self._busy_timeout_ms,
            )
        except (KVError, OSError) as e:
            raise StorageUnavailableError(self.path, str(e)) from e

        try:
            with engine.update() as tx:
                root = tx.create_bucket_if_not_exists(self.root_bucket)
                root.create_bucket_if_not_exists(self.posts_bucket)
        except KVError as e:
            engine.close()
            raise StorageUnavailableError(self.path, f"could not set up buckets: {e}") from e

        self._engine = engine
        logger.info(
            "Post store ready at %s (%s/%s)",
            self.path,
            self.root_bucket.decode(),
            self.posts_bucket.decode(),
        )

    def close(self) -> None:
        """Close the backing file. Safe to call more than once."""
        engine, self._engine = self._engine, None
        if engine is not None:
            engine.close()
            logger.info("Post store closed at %s", self.path)

    # --- Operations ---

    def upsert(self, post: Post, slug: str) -> None:
        """
        Write post under slug in one transaction, replacing any existing value.

        Raises:
            PostEncodingError: If the post cannot be serialized
            StorageWriteError: If the transaction cannot commit
            StorageUnavailableError: If the store is not open
        """
        buf = encode_post(post, slug)
        key = _key(slug)
        engine = self._require_engine()
        try:
            with engine.update() as tx:
                self._posts(tx).put(key, buf)
        except DatabaseClosedError as e:
            raise StorageUnavailableError(self.path, str(e)) from e
        except KVError as e:
            raise StorageWriteError(slug, str(e)) from e
        logger.info("Upserted post %s (%d bytes)", slug, len(buf))

    def get(self, slug: str) -> Post:
        """
        Get the post stored under slug.

        Raises:
            PostNotFoundError: If no record exists
            PostDecodingError: If the record cannot be parsed
            StorageUnavailableError: If the store is not open or cannot be read
        """
        key = _key(slug)
        engine = self._require_engine()
        try:
            with engine.view() as tx:
                raw = self._posts(tx).get(key)
        except KVError as e:
            raise StorageUnavailableError(self.path, str(e)) from e

        if raw is None:
            raise PostNotFoundError(slug)
        logger.debug("Read post %s", slug)
        return decode_post(raw, slug)

    def list(self) -> list[tuple[str, Post]]:
        """
        List every post in ascending byte order of the slug.

        The whole collection is read in one transaction. A record that fails to
        decode fails the entire listing.

        Raises:
            PostDecodingError: If any record cannot be parsed
            StorageUnavailableError: If the store is not open or cannot be read
        """
        engine = self._require_engine()
        try:
            with engine.view() as tx:
                rows = list(self._posts(tx).items())
        except KVError as e:
            raise StorageUnavailableError(self.path, str(e)) from e

        results: list[tuple[str, Post]] = []
        for key, raw in rows:
            try:
                slug = key.decode("utf-8")
            except UnicodeDecodeError as e:
                raise PostDecodingError(repr(key), f"slug is not valid UTF-8: {e}") from e
            results.append((slug, decode_post(raw, slug)))

        logger.debug("Listed %d posts", len(results))
        return results

    def delete(self, slug: str) -> None:
        """
        Delete the post stored under slug.

        Deleting a slug that has no record succeeds and changes nothing.

        Raises:
            StorageWriteError: If the transaction cannot commit
            StorageUnavailableError: If the store is not open
        """
        key = _key(slug)
        engine = self._require_engine()
        try:
            with engine.update() as tx:
                self._posts(tx).delete(key)
        except DatabaseClosedError as e:
            raise StorageUnavailableError(self.path, str(e)) from e
        except KVError as e:
            raise StorageWriteError(slug, str(e)) from e
        logger.info("Deleted post %s", slug)

    # --- Helpers ---

    def _require_engine(self) -> KVEnginePort:
        if self._engine is None:
            raise StorageUnavailableError(self.path, "store is not open")
        return self._engine

    def _posts(self, tx: TxPort) -> BucketPort:
        root = tx.bucket(self.root_bucket)
        if root is None:
            raise BucketNotFoundError(self.root_bucket)
        posts = root.bucket(self.posts_bucket)
        if posts is None:
            raise BucketNotFoundError(self.posts_bucket)
        return posts


# --- Factory ---


def resolve_db_path(db_path: str, data_dir: str | None = None) -> str:
    """Resolve a relative database path against the data directory."""
    if os.path.isabs(db_path) or not data_dir:
        return db_path
    return os.path.join(data_dir, db_path)


def create_post_store(rules: StorageRules, data_dir: str | None = None) -> PostStore:
    """Create a post store from storage rules. The store still needs init()."""
    return PostStore(
        resolve_db_path(rules.db_path, data_dir),
        root_bucket=rules.root_bucket,
        posts_bucket=rules.posts_bucket,
        file_mode=rules.file_mode,
        lock_timeout=rules.lock_timeout_seconds,
        busy_timeout_ms=rules.busy_timeout_ms,
    )
