import logging

from fastapi import APIRouter, Depends, HTTPException

from tinyblog.adapters.clock import SystemClock
from tinyblog.api.deps import get_clock, get_render_config, get_rules, get_store
from tinyblog.api.schemas import (
    DeleteResponse,
    PostDetailResponse,
    PostListResponse,
    PostWriteRequest,
)
from tinyblog.components.posts import (
    CreatePostInput,
    DeletePostInput,
    GetPostInput,
    ListPostsInput,
    PostStore,
    PostValidationError,
    UpdatePostInput,
    run_create,
    run_delete,
    run_get,
    run_list,
    run_update,
)
from tinyblog.components.render import RenderConfig, RenderPostInput, run_render
from tinyblog.domain.entities import Post
from tinyblog.rules.models import Rules

logger = logging.getLogger(__name__)

router = APIRouter()


def _unprocessable(errors: list[PostValidationError]) -> HTTPException:
    return HTTPException(
        status_code=422,
        detail=[{"code": e.code, "message": e.message, "field": e.field} for e in errors],
    )


@router.get("", response_model=PostListResponse)
def list_posts(
    store: PostStore = Depends(get_store),
    rules: Rules = Depends(get_rules),
) -> PostListResponse:
    """List every post, ordered by slug."""
    result = run_list(ListPostsInput(), store)
    logger.info("Requested the post list (%d posts)", result.total)
    return PostListResponse(site=rules.site, posts=result.items)


@router.post("", response_model=Post, status_code=201)
def create_post(
    payload: PostWriteRequest,
    store: PostStore = Depends(get_store),
    rules: Rules = Depends(get_rules),
    clock: SystemClock = Depends(get_clock),
) -> Post:
    """Create a post; the slug comes from the current time and the title."""
    inp = CreatePostInput(title=payload.title, author=payload.author, body=payload.body)
    result = run_create(inp, store, clock=clock, separator=rules.slugs.separator)
    if not result.success or result.post is None:
        raise _unprocessable(result.errors)

    logger.info("Created post %s by %s", result.post.slug, result.post.author)
    return result.post


@router.get("/{slug}", response_model=PostDetailResponse)
def get_post(
    slug: str,
    store: PostStore = Depends(get_store),
    config: RenderConfig = Depends(get_render_config),
) -> PostDetailResponse:
    """Get a post together with its body rendered to safe HTML."""
    result = run_get(GetPostInput(slug=slug), store)
    if not result.success or result.post is None:
        raise HTTPException(status_code=404, detail="Post not found")

    rendered = run_render(RenderPostInput(body=result.post.body), config=config)
    logger.info("Requested: %s by %s", result.post.title, result.post.author)
    return PostDetailResponse(post=result.post, html=rendered.html)


@router.api_route("/{slug}", methods=["POST", "PUT"], response_model=Post, status_code=201)
def update_post(
    slug: str,
    payload: PostWriteRequest,
    store: PostStore = Depends(get_store),
    clock: SystemClock = Depends(get_clock),
) -> Post:
    """Overwrite the post at slug. The slug itself never changes."""
    inp = UpdatePostInput(
        slug=slug, title=payload.title, author=payload.author, body=payload.body
    )
    result = run_update(inp, store, clock=clock)
    if not result.success or result.post is None:
        raise _unprocessable(result.errors)

    logger.info("Updated post %s", slug)
    return result.post


@router.delete("/{slug}", response_model=DeleteResponse)
def delete_post(
    slug: str,
    store: PostStore = Depends(get_store),
) -> DeleteResponse:
    """Delete a post. Succeeds whether or not the post existed."""
    result = run_delete(DeletePostInput(slug=slug), store)
    if not result.success:
        raise _unprocessable(result.errors)

    logger.info("Deleted post %s", slug)
    return DeleteResponse(deleted=True)
