"""
Render component input/output models.
"""

from __future__ import annotations

from dataclasses import dataclass

# --- Input Models ---


@dataclass(frozen=True)
class RenderPostInput:
    """Input for rendering a post body for display."""

    body: str


# --- Output Models ---


@dataclass(frozen=True)
class RenderOutput:
    """Output containing display-safe HTML."""

    html: str
    success: bool = True
