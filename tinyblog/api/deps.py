import os
from functools import lru_cache
from pathlib import Path

from fastapi import Request

from tinyblog.adapters.clock import SystemClock
from tinyblog.components.posts import PostStore
from tinyblog.components.render import RenderConfig
from tinyblog.rules.models import Rules


# --- Settings ---
class Settings:
    def __init__(self) -> None:
        self.base_dir = Path(os.getcwd())
        self.data_dir = os.environ.get("TINYBLOG_DATA_DIR", "./data")
        self.rules_path = Path(os.environ.get("TINYBLOG_RULES", str(self.base_dir / "rules.yaml")))


@lru_cache
def get_settings() -> Settings:
    return Settings()


# --- App State ---
# The store is opened once in the lifespan handler and shared by every request.
def get_store(request: Request) -> PostStore:
    store: PostStore = request.app.state.store
    return store


def get_rules(request: Request) -> Rules:
    rules: Rules = request.app.state.rules
    return rules


def get_render_config(request: Request) -> RenderConfig:
    config: RenderConfig = request.app.state.render_config
    return config


def get_clock() -> SystemClock:
    return SystemClock()
