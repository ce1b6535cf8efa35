"""
Slug policy for posts.

A new post is addressed by ``normalize(timestamp) + "-" + normalize(title)``.
The timestamp is quantized to whole seconds, so two posts with the same title
created within the same second share a slug and the later write replaces the
earlier one. Updates reuse the existing slug verbatim.
"""

from __future__ import annotations

import re
import unicodedata
from datetime import datetime, timedelta

# Letters that NFKD does not decompose into ASCII.
_TRANSLITERATIONS: dict[str, str] = {
    "ß": "ss",
    "ẞ": "ss",
    "æ": "ae",
    "Æ": "ae",
    "ø": "o",
    "Ø": "o",
    "œ": "oe",
    "Œ": "oe",
    "ł": "l",
    "Ł": "l",
    "đ": "d",
    "Đ": "d",
    "ð": "d",
    "Ð": "d",
    "þ": "th",
    "Þ": "th",
    "ı": "i",
    "&": " and ",
}


def transliterate(text: str) -> str:
    """Reduce text to its closest ASCII spelling, dropping what has none."""
    text = "".join(_TRANSLITERATIONS.get(ch, ch) for ch in text)
    decomposed = unicodedata.normalize("NFKD", text)
    return decomposed.encode("ascii", "ignore").decode("ascii")


def normalize(text: str, separator: str = "-") -> str:
    """
    Create a URL-safe slug fragment from arbitrary text.

    Lowercases, transliterates non-ASCII characters and collapses every run of
    non-alphanumeric characters into a single separator.
    """
    slug = transliterate(text).lower()
    slug = re.sub(r"[^a-z0-9]+", separator, slug)
    return slug.strip(separator)


def format_timestamp(posted_at: datetime) -> str:
    """Format a timestamp as RFC 3339 with second resolution (UTC as ``Z``)."""
    if posted_at.tzinfo is not None and posted_at.utcoffset() == timedelta(0):
        return posted_at.strftime("%Y-%m-%dT%H:%M:%SZ")
    return posted_at.isoformat(timespec="seconds")


def slug_for(title: str, posted_at: datetime, separator: str = "-") -> str:
    """Derive the slug of a newly created post."""
    stamp = normalize(format_timestamp(posted_at), separator)
    name = normalize(title, separator)
    if not name:
        return stamp
    return f"{stamp}{separator}{name}"

