"""
Posts component input/output models and errors.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from tinyblog.domain.entities import Post

# --- Errors ---


class PostStoreError(Exception):
    """Base class for post store errors."""


class StorageUnavailableError(PostStoreError):
    """Raised when the backing file cannot be opened, initialized or read."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Post storage unavailable ({path}): {reason}")


class StorageWriteError(PostStoreError):
    """Raised when a write transaction fails to commit. Never retried here."""

    def __init__(self, slug: str, reason: str) -> None:
        self.slug = slug
        self.reason = reason
        super().__init__(f"Could not write post '{slug}': {reason}")


class PostNotFoundError(PostStoreError):
    """Raised when no record is stored under the slug."""

    def __init__(self, slug: str) -> None:
        self.slug = slug
        super().__init__(f"Post not found: {slug}")


class PostDecodingError(PostStoreError):
    """Raised when stored bytes do not parse back into a Post."""

    def __init__(self, slug: str, reason: str) -> None:
        self.slug = slug
        self.reason = reason
        super().__init__(f"Could not decode post '{slug}': {reason}")


class PostEncodingError(PostStoreError):
    """Raised when a Post cannot be serialized before a write."""

    def __init__(self, slug: str, reason: str) -> None:
        self.slug = slug
        self.reason = reason
        super().__init__(f"Could not encode post '{slug}': {reason}")


# --- Validation Error ---


@dataclass(frozen=True)
class PostValidationError:
    """Post validation error."""

    code: str
    message: str
    field: str | None = None


# --- Input Models ---


@dataclass(frozen=True)
class CreatePostInput:
    """Input for creating a new post. The slug and date are assigned by the server."""

    title: str
    author: str = ""
    body: str = ""


@dataclass(frozen=True)
class UpdatePostInput:
    """Input for overwriting the post stored under an existing slug."""

    slug: str
    title: str = ""
    author: str = ""
    body: str = ""


@dataclass(frozen=True)
class GetPostInput:
    """Input for retrieving a post."""

    slug: str


@dataclass(frozen=True)
class ListPostsInput:
    """Input for listing every post."""


@dataclass(frozen=True)
class DeletePostInput:
    """Input for deleting a post."""

    slug: str


# --- Output Models ---


@dataclass(frozen=True)
class PostOutput:
    """Output containing a single post."""

    post: Post | None
    errors: list[PostValidationError] = field(default_factory=list)
    success: bool = True


@dataclass(frozen=True)
class PostListOutput:
    """Output containing every post, ordered by slug."""

    items: list[Post]
    total: int
    errors: list[PostValidationError] = field(default_factory=list)
    success: bool = True


@dataclass(frozen=True)
class PostOperationOutput:
    """Output for post operations (create, update, delete)."""

    post: Post | None = None
    errors: list[PostValidationError] = field(default_factory=list)
    success: bool = True
