"""
Posts component port definitions.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from tinyblog.domain.entities import Post


class PostStorePort(Protocol):
    """Storage interface for posts keyed by slug."""

    def upsert(self, post: Post, slug: str) -> None:
        """Write post under slug, replacing any existing record."""
        ...

    def get(self, slug: str) -> Post:
        """Get the post stored under slug."""
        ...

    def list(self) -> list[tuple[str, Post]]:
        """List every (slug, post) pair in ascending slug order."""
        ...

    def delete(self, slug: str) -> None:
        """Delete the post stored under slug. Absent slugs are not an error."""
        ...


class TimePort(Protocol):
    """Port for time operations."""

    def now_utc(self) -> datetime:
        """Get current UTC time."""
        ...
