"""
Content rendering - Markdown expansion followed by allow-list sanitization.

render() is the only way to turn a post body into HTML. Every result passes
through the sanitizer, including the degraded path taken when Markdown
expansion fails.

Key behaviors:
- Markdown is expanded with a fixed extension list (deterministic, no state)
- Tags outside the allow-list are removed, their text kept and escaped
- Executable and embedding elements are removed together with their content
- Attributes outside the per-tag allow-list are removed (event handlers included)
- URL attributes must be relative or use an allowed scheme (no javascript:, data:)
- Links get rel="nofollow noopener"
- Comments, doctypes and processing instructions are dropped
- Output is well formed; allowed tags left open are closed at the end
"""

from __future__ import annotations

import html
import logging
import re
from dataclasses import dataclass, field
from html.parser import HTMLParser

import markdown

logger = logging.getLogger(__name__)

# --- Configuration ---


@dataclass(frozen=True)
class RenderConfig:
    """Allow-list and Markdown configuration."""

    # Allowed HTML tags
    allowed_tags: frozenset[str] = field(
        default_factory=lambda: frozenset(
            [
                "a",
                "abbr",
                "b",
                "blockquote",
                "br",
                "cite",
                "code",
                "dd",
                "del",
                "details",
                "dl",
                "dt",
                "em",
                "figcaption",
                "figure",
                "h1",
                "h2",
                "h3",
                "h4",
                "h5",
                "h6",
                "hr",
                "i",
                "img",
                "ins",
                "kbd",
                "li",
                "mark",
                "ol",
                "p",
                "pre",
                "q",
                "s",
                "samp",
                "small",
                "span",
                "strike",
                "strong",
                "sub",
                "summary",
                "sup",
                "table",
                "tbody",
                "td",
                "tfoot",
                "th",
                "thead",
                "tr",
                "u",
                "ul",
            ]
        )
    )

    # Allowed attributes per tag
    allowed_attrs: dict[str, frozenset[str]] = field(
        default_factory=lambda: {
            "a": frozenset(["href", "title"]),
            "abbr": frozenset(["title"]),
            "blockquote": frozenset(["cite"]),
            "code": frozenset(["class"]),
            "del": frozenset(["cite", "datetime"]),
            "img": frozenset(["src", "alt", "title", "width", "height"]),
            "ins": frozenset(["cite", "datetime"]),
            "li": frozenset(["value"]),
            "ol": frozenset(["start", "reversed"]),
            "pre": frozenset(["class"]),
            "q": frozenset(["cite"]),
            "td": frozenset(["align", "colspan", "rowspan"]),
            "th": frozenset(["align", "colspan", "rowspan", "scope"]),
        }
    )

    # Elements removed together with everything inside them
    drop_content_tags: frozenset[str] = field(
        default_factory=lambda: frozenset(
            [
                "applet",
                "frame",
                "frameset",
                "iframe",
                "math",
                "noembed",
                "noframes",
                "noscript",
                "object",
                "script",
                "select",
                "style",
                "svg",
                "template",
                "textarea",
                "title",
            ]
        )
    )

    # URL schemes allowed in href/src/cite; relative URLs are always allowed
    allowed_protocols: frozenset[str] = field(
        default_factory=lambda: frozenset(["http", "https", "mailto"])
    )

    # rel tokens added to every link with an href
    link_rel: tuple[str, ...] = ("nofollow", "noopener")

    # Python-Markdown extensions
    markdown_extensions: tuple[str, ...] = ("fenced_code", "tables", "sane_lists")


DEFAULT_CONFIG = RenderConfig()

VOID_TAGS = frozenset(["br", "hr", "img", "wbr"])
URL_ATTRS = frozenset(["href", "src", "cite"])

_SCHEME_PATTERN = re.compile(r"^([a-zA-Z][a-zA-Z0-9+.\-]*):")
_IGNORED_URL_CHARS = re.compile(r"[\x00-\x20\x7f]+")
_CLASS_TOKEN_PATTERN = re.compile(r"^language-[A-Za-z0-9_+\-]+$")


# --- URL and Attribute Checks ---


def is_safe_url(url: str, config: RenderConfig = DEFAULT_CONFIG) -> bool:
    """Check that a URL is relative or uses an allowed scheme."""
    # Browsers ignore whitespace and control characters inside the scheme.
    candidate = _IGNORED_URL_CHARS.sub("", html.unescape(url))
    match = _SCHEME_PATTERN.match(candidate)
    if match is None:
        return True
    return match.group(1).lower() in config.allowed_protocols


def sanitize_url(url: str, config: RenderConfig = DEFAULT_CONFIG) -> str | None:
    """
    Sanitize URL, returning None if unsafe.
    """
    if not is_safe_url(url, config):
        return None
    return url.strip()


def _clean_class(value: str) -> str:
    return " ".join(t for t in value.split() if _CLASS_TOKEN_PATTERN.match(t))


# --- HTML Sanitizer ---


class _AllowListSanitizer(HTMLParser):
    """
    Rebuilds an HTML fragment keeping only allow-listed tags and attributes.

    Comments, declarations and processing instructions fall through to the
    parser's no-op handlers and never reach the output.
    """

    def __init__(self, config: RenderConfig) -> None:
        super().__init__(convert_charrefs=True)
        self._config = config
        self._out: list[str] = []
        self._open: list[str] = []
        self._skip_tag: str | None = None
        self._skip_depth = 0

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if self._skip_depth:
            if tag == self._skip_tag:
                self._skip_depth += 1
            return

        if tag in self._config.drop_content_tags:
            self._skip_tag = tag
            self._skip_depth = 1
            return

        if tag not in self._config.allowed_tags:
            return

        cleaned = self._clean_attrs(tag, attrs)
        if tag == "img" and "src" not in cleaned:
            return
        if tag == "a" and "href" in cleaned and self._config.link_rel:
            cleaned["rel"] = " ".join(self._config.link_rel)

        attr_parts = "".join(
            f' {name}="{html.escape(value, quote=True)}"' for name, value in cleaned.items()
        )
        self._out.append(f"<{tag}{attr_parts}>")
        if tag not in VOID_TAGS:
            self._open.append(tag)

    def handle_endtag(self, tag: str) -> None:
        if self._skip_depth:
            if tag == self._skip_tag:
                self._skip_depth -= 1
                if not self._skip_depth:
                    self._skip_tag = None
            return

        if tag not in self._open:
            return
        # Close anything left open inside this element first.
        while self._open:
            open_tag = self._open.pop()
            self._out.append(f"</{open_tag}>")
            if open_tag == tag:
                break

    def handle_data(self, data: str) -> None:
        if self._skip_depth:
            return
        self._out.append(html.escape(data, quote=False))

    def _clean_attrs(self, tag: str, attrs: list[tuple[str, str | None]]) -> dict[str, str]:
        allowed = self._config.allowed_attrs.get(tag, frozenset())
        cleaned: dict[str, str] = {}
        for name, value in attrs:
            if value is None or name not in allowed or name in cleaned:
                continue
            if name in URL_ATTRS:
                safe = sanitize_url(value, self._config)
                if safe is None:
                    continue
                value = safe
            elif name == "class":
                value = _clean_class(value)
                if not value:
                    continue
            cleaned[name] = value
        return cleaned

    def result(self) -> str:
        self.close()
        while self._open:
            self._out.append(f"</{self._open.pop()}>")
        return "".join(self._out)


def sanitize_html(html_content: str, config: RenderConfig = DEFAULT_CONFIG) -> str:
    """
    Sanitize an HTML fragment against the allow-list.

    Never trusts any part of its input and never raises on malformed markup.
    """
    parser = _AllowListSanitizer(config)
    parser.feed(html_content)
    return parser.result()


# --- Markdown Expansion ---


def expand_markdown(raw_body: str, config: RenderConfig = DEFAULT_CONFIG) -> str:
    """Expand Markdown to an (unsanitized) HTML fragment."""
    return markdown.markdown(
        raw_body,
        extensions=list(config.markdown_extensions),
        output_format="html",
    )


def render(raw_body: str | None, config: RenderConfig = DEFAULT_CONFIG) -> str:
    """
    Render an untrusted post body to display-safe HTML.

    If Markdown expansion fails the body is shown as escaped text instead.
    """
    if not raw_body:
        return ""

    try:
        expanded = expand_markdown(raw_body, config)
    except Exception:
        logger.warning("Markdown expansion failed, rendering body as plain text", exc_info=True)
        expanded = f"<p>{html.escape(raw_body)}</p>"

    return sanitize_html(expanded, config)
