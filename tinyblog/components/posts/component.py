"""
Posts component - Post creation, update, retrieval and deletion.

Entry points composed by request handlers. Storage failures propagate as
PostStoreError subclasses; input problems come back as PostValidationError
entries on the output.

Policy:
- Slugs of new posts are derived from the creation time and the title
- Updates keep the caller's slug verbatim, normalized or not; a title change
  never regenerates it
- The server stamps date_posted on every write, create and update alike
- Identical titles created within the same second share a slug, and the later
  write silently replaces the earlier one
"""

from __future__ import annotations

from tinyblog.domain.entities import Post
from tinyblog.domain.slugs import slug_for

from .models import (
    CreatePostInput,
    DeletePostInput,
    GetPostInput,
    ListPostsInput,
    PostListOutput,
    PostNotFoundError,
    PostOperationOutput,
    PostOutput,
    PostValidationError,
    UpdatePostInput,
)
from .ports import PostStorePort, TimePort

MAX_TITLE_LENGTH = 200


# --- Validation Functions ---


def _validate_title(title: str) -> list[PostValidationError]:
    errors: list[PostValidationError] = []
    if not title or not title.strip():
        errors.append(
            PostValidationError(
                code="title_required",
                message="Title is required",
                field="title",
            )
        )
    elif len(title) > MAX_TITLE_LENGTH:
        errors.append(
            PostValidationError(
                code="title_too_long",
                message=f"Title must be {MAX_TITLE_LENGTH} characters or less",
                field="title",
            )
        )
    return errors


def _validate_slug(slug: str) -> list[PostValidationError]:
    # Stored keys are opaque; any existing slug must stay addressable.
    if not slug or not slug.strip():
        return [
            PostValidationError(
                code="slug_required",
                message="Slug is required",
                field="slug",
            )
        ]
    return []


# --- Component Entry Points ---


def run_create(
    inp: CreatePostInput,
    store: PostStorePort,
    *,
    clock: TimePort,
    separator: str = "-",
) -> PostOperationOutput:
    """
    Create a post under a slug derived from the current time and its title.

    Args:
        inp: Input containing the post fields.
        store: Post storage.
        clock: Source of the creation timestamp.
        separator: Slug word separator.

    Returns:
        PostOperationOutput with the stored post.
    """
    errors = _validate_title(inp.title)
    if errors:
        return PostOperationOutput(post=None, errors=errors, success=False)

    posted_at = clock.now_utc()
    slug = slug_for(inp.title, posted_at, separator)
    post = Post(
        title=inp.title,
        author=inp.author,
        body=inp.body,
        date_posted=posted_at,
        slug=slug,
    )
    store.upsert(post, slug)
    return PostOperationOutput(post=post)


def run_update(
    inp: UpdatePostInput,
    store: PostStorePort,
    *,
    clock: TimePort,
) -> PostOperationOutput:
    """
    Overwrite the post at an existing slug.

    The slug is reused verbatim and date_posted is restamped. Updating a slug
    with no record creates it, the same as the underlying upsert.
    """
    errors = _validate_slug(inp.slug) + _validate_title(inp.title)
    if errors:
        return PostOperationOutput(post=None, errors=errors, success=False)

    post = Post(
        title=inp.title,
        author=inp.author,
        body=inp.body,
        date_posted=clock.now_utc(),
        slug=inp.slug,
    )
    store.upsert(post, inp.slug)
    return PostOperationOutput(post=post)


def run_get(inp: GetPostInput, store: PostStorePort) -> PostOutput:
    """Get a post by slug."""
    try:
        post = store.get(inp.slug)
    except PostNotFoundError:
        return PostOutput(
            post=None,
            errors=[
                PostValidationError(
                    code="not_found",
                    message=f"No post stored under '{inp.slug}'",
                    field="slug",
                )
            ],
            success=False,
        )
    if post.slug != inp.slug:
        post = post.model_copy(update={"slug": inp.slug})
    return PostOutput(post=post)


def run_list(inp: ListPostsInput, store: PostStorePort) -> PostListOutput:
    """List every post in ascending slug order."""
    # The key is authoritative for the slug of a stored record.
    items = [
        post if post.slug == slug else post.model_copy(update={"slug": slug})
        for slug, post in store.list()
    ]
    return PostListOutput(items=items, total=len(items))


def run_delete(inp: DeletePostInput, store: PostStorePort) -> PostOperationOutput:
    """Delete a post. Deleting an absent slug succeeds."""
    if not inp.slug or not inp.slug.strip():
        return PostOperationOutput(post=None, errors=_validate_slug(inp.slug), success=False)

    store.delete(inp.slug)
    return PostOperationOutput(post=None)


def run(
    inp: CreatePostInput | UpdatePostInput | GetPostInput | ListPostsInput | DeletePostInput,
    store: PostStorePort,
    *,
    clock: TimePort,
    separator: str = "-",
) -> PostOperationOutput | PostOutput | PostListOutput:
    """
    Main entry point for the posts component.

    Dispatches to the appropriate handler based on input type.
    """
    if isinstance(inp, CreatePostInput):
        return run_create(inp, store, clock=clock, separator=separator)
    elif isinstance(inp, UpdatePostInput):
        return run_update(inp, store, clock=clock)
    elif isinstance(inp, GetPostInput):
        return run_get(inp, store)
    elif isinstance(inp, ListPostsInput):
        return run_list(inp, store)
    elif isinstance(inp, DeletePostInput):
        return run_delete(inp, store)
    else:
        raise ValueError(f"Unknown input type: {type(inp)}")
