"""
Render component - Markdown expansion and XSS-safe sanitization of post bodies.
"""

from ._impl import (
    DEFAULT_CONFIG,
    RenderConfig,
    expand_markdown,
    is_safe_url,
    render,
    sanitize_html,
    sanitize_url,
)
from .component import build_config, run, run_render
from .models import RenderOutput, RenderPostInput

__all__ = [
    # Entry points
    "run",
    "run_render",
    "render",
    # Input models
    "RenderPostInput",
    # Output models
    "RenderOutput",
    # Configuration
    "DEFAULT_CONFIG",
    "RenderConfig",
    "build_config",
    # Building blocks
    "expand_markdown",
    "is_safe_url",
    "sanitize_html",
    "sanitize_url",
]
