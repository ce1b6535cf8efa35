"""Tiny Blog - posts in an embedded key-value store, rendered to safe HTML."""

__version__ = "0.1.0"
