"""
Render component - Markdown post bodies to sanitized HTML.

Invariants:
- No script content in output
- Only allow-listed tags and attributes in output
- URLs relative or on an allowed scheme
- Rendering never fails; bad markup degrades to escaped text
"""

from __future__ import annotations

from tinyblog.rules.models import RenderRules

from ._impl import DEFAULT_CONFIG, RenderConfig, render
from .models import RenderOutput, RenderPostInput


def build_config(rules: RenderRules | None) -> RenderConfig:
    """Build render config from the render rules, keeping defaults for unset fields."""
    if rules is None:
        return DEFAULT_CONFIG

    return RenderConfig(
        allowed_tags=(
            frozenset(rules.allowed_tags)
            if rules.allowed_tags is not None
            else DEFAULT_CONFIG.allowed_tags
        ),
        allowed_attrs=(
            {tag: frozenset(attrs) for tag, attrs in rules.allowed_attributes.items()}
            if rules.allowed_attributes is not None
            else DEFAULT_CONFIG.allowed_attrs
        ),
        allowed_protocols=(
            frozenset(p.lower().rstrip(":") for p in rules.allowed_protocols)
            if rules.allowed_protocols is not None
            else DEFAULT_CONFIG.allowed_protocols
        ),
        link_rel=(
            tuple(rules.link_rel) if rules.link_rel is not None else DEFAULT_CONFIG.link_rel
        ),
        markdown_extensions=(
            tuple(rules.markdown_extensions)
            if rules.markdown_extensions is not None
            else DEFAULT_CONFIG.markdown_extensions
        ),
    )


# --- Component Entry Points ---


def run_render(
    inp: RenderPostInput,
    *,
    config: RenderConfig = DEFAULT_CONFIG,
) -> RenderOutput:
    """
    Render a post body for display.

    Args:
        inp: Input containing the raw Markdown body.
        config: Allow-list and Markdown configuration.

    Returns:
        RenderOutput with sanitized HTML.
    """
    return RenderOutput(html=render(inp.body, config))


def run(inp: RenderPostInput, *, config: RenderConfig = DEFAULT_CONFIG) -> RenderOutput:
    """Main entry point for the render component."""
    if isinstance(inp, RenderPostInput):
        return run_render(inp, config=config)
    raise ValueError(f"Unknown input type: {type(inp)}")
