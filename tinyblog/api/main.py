import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

from tinyblog.api.deps import Settings, get_settings
from tinyblog.components.posts import (
    PostStoreError,
    StorageUnavailableError,
    create_post_store,
)
from tinyblog.components.render import build_config
from tinyblog.rules.loader import load_rules_or_default

logger = logging.getLogger(__name__)


async def post_store_error_handler(request: Request, exc: Exception) -> PlainTextResponse:
    """Report storage failures as a 500 without leaking details to the client."""
    logger.error(
        "Post store failure on %s %s: %s",
        request.method,
        request.url.path,
        exc,
        exc_info=exc,
    )
    return PlainTextResponse("Error accessing the post store.", status_code=500)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the API application. The post store is opened on startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler for startup/shutdown."""
        current = settings or get_settings()

        # Load rules and open the store on startup (fail-fast)
        try:
            rules = load_rules_or_default(current.rules_path)
        except (OSError, ValueError) as e:
            logger.critical("Rules load failed: %s", e)
            raise

        store = create_post_store(rules.storage, current.data_dir)
        try:
            store.init()
        except StorageUnavailableError as e:
            logger.critical("Post store unavailable: %s", e)
            raise

        app.state.rules = rules
        app.state.store = store
        app.state.render_config = build_config(rules.render)
        logger.info("Starting up..")
        try:
            yield
        finally:
            logger.info("Shutting down..")
            store.close()

    app = FastAPI(
        title="Tiny Blog API",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # --- Routers ---
    from tinyblog.api.routes import posts

    app.include_router(posts.router, prefix="/posts", tags=["Posts"])
    app.add_exception_handler(PostStoreError, post_store_error_handler)

    @app.get("/health")
    def health_check(request: Request) -> dict[str, Any]:
        store = getattr(request.app.state, "store", None)
        return {"status": "ok", "store_open": bool(store and store.is_open)}

    return app


app = create_app()
