"""
Render component unit tests.

Tests for Markdown expansion, allow-list sanitization and the plain-text
fallback.
"""

from __future__ import annotations

import pytest

from tinyblog.components.render import (
    DEFAULT_CONFIG,
    RenderConfig,
    RenderPostInput,
    build_config,
    is_safe_url,
    render,
    run,
    run_render,
    sanitize_html,
)
from tinyblog.components.render import _impl
from tinyblog.rules.models import RenderRules

# --- Markdown Tests ---


class TestMarkdown:
    """Test Markdown expansion."""

    def test_heading(self) -> None:
        assert render("# Title") == "<h1>Title</h1>"

    def test_paragraph_with_emphasis(self) -> None:
        out = render("Some *emphasis* and **strong** text")

        assert "<em>emphasis</em>" in out
        assert "<strong>strong</strong>" in out

    def test_empty_body(self) -> None:
        assert render("") == ""
        assert render(None) == ""

    def test_fenced_code_keeps_language_class(self) -> None:
        out = render("```python\nprint('hi')\n```")

        assert '<code class="language-python">' in out
        assert "print(&#x27;hi&#x27;)" in out or "print('hi')" in out

    def test_link_gets_rel(self) -> None:
        out = render("[docs](https://example.com/docs)")

        assert 'href="https://example.com/docs"' in out
        assert 'rel="nofollow noopener"' in out

    def test_table(self) -> None:
        out = render("| a | b |\n|---|---|\n| 1 | 2 |")

        assert "<table>" in out
        assert "<td>1</td>" in out

    def test_deterministic(self) -> None:
        body = "# Title\n\nA [link](http://example.com) and `code`."

        assert render(body) == render(body)


# --- Sanitization Tests ---


class TestSanitization:
    """Test that untrusted markup never survives rendering."""

    def test_script_removed_with_content(self) -> None:
        out = render("<script>alert(1)</script>\n\n# Title")

        assert "<script" not in out
        assert "alert(1)" not in out
        assert "<h1>Title</h1>" in out

    def test_script_on_same_line_as_markdown(self) -> None:
        out = render("<script>alert(1)</script># Title")

        assert "<script" not in out
        assert "alert(1)" not in out
        assert "<h1>Title</h1>" in out

    def test_event_handler_removed(self) -> None:
        out = render('<img src="x.png" onerror="alert(1)">')

        assert "onerror" not in out
        assert '<img src="x.png">' in out

    def test_javascript_url_removed(self) -> None:
        out = render("[click](javascript:alert(1))")

        assert "javascript:" not in out
        assert ">click</a>" in out

    def test_obfuscated_javascript_url_removed(self) -> None:
        out = sanitize_html('<a href="  JaVa&#x09;Script:alert(1)">x</a>')

        assert "href" not in out
        assert "alert" not in out

    def test_data_url_removed(self) -> None:
        out = sanitize_html('<img src="data:image/svg+xml;base64,AAAA">')

        assert out == ""

    def test_iframe_removed_with_content(self) -> None:
        out = sanitize_html('<p>before</p><iframe src="https://evil.test">inner</iframe><p>after</p>')

        assert out == "<p>before</p><p>after</p>"

    def test_nested_drop_tags(self) -> None:
        out = sanitize_html("<svg><svg><script>x</script></svg>hidden</svg>shown")

        assert out == "shown"

    def test_unknown_tag_keeps_escaped_text(self) -> None:
        out = sanitize_html("<blink>hello &lt;b&gt;</blink>")

        assert out == "hello &lt;b&gt;"

    def test_style_attribute_removed(self) -> None:
        out = sanitize_html('<p style="background:url(x)" class="lead">text</p>')

        assert out == "<p>text</p>"

    def test_non_language_class_removed(self) -> None:
        out = sanitize_html('<code class="evil language-go">x</code>')

        assert out == '<code class="language-go">x</code>'

    def test_comments_dropped(self) -> None:
        assert sanitize_html("<p>a<!-- <script>x</script> -->b</p>") == "<p>ab</p>"

    def test_unclosed_tags_closed(self) -> None:
        assert sanitize_html("<p><em>open") == "<p><em>open</em></p>"

    def test_stray_end_tag_ignored(self) -> None:
        assert sanitize_html("text</div></p>") == "text"

    def test_attribute_values_escaped(self) -> None:
        out = sanitize_html('<a href="/x" title="&quot;><script>">y</a>')

        assert "<script>" not in out
        assert 'title="&quot;&gt;&lt;script&gt;"' in out


# --- URL Tests ---


class TestUrls:
    @pytest.mark.parametrize(
        "url",
        ["https://example.com", "http://example.com", "mailto:a@example.com", "/relative", "#anchor"],
    )
    def test_safe(self, url: str) -> None:
        assert is_safe_url(url) is True

    @pytest.mark.parametrize(
        "url",
        ["javascript:alert(1)", "JAVASCRIPT:alert(1)", "vbscript:x", "data:text/html,x"],
    )
    def test_unsafe(self, url: str) -> None:
        assert is_safe_url(url) is False


# --- Fallback Tests ---


class TestFallback:
    def test_markdown_failure_renders_escaped_text(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """A failing expansion degrades to escaped text, still sanitized."""

        def boom(raw_body: str, config: RenderConfig = DEFAULT_CONFIG) -> str:
            raise RuntimeError("parser exploded")

        monkeypatch.setattr(_impl, "expand_markdown", boom)

        out = render("<script>alert(1)</script> *x*")

        assert out.startswith("<p>")
        assert "<script" not in out
        assert "&lt;script&gt;" in out
        assert "*x*" in out


# --- Component Tests ---


class TestRenderComponent:
    def test_run_render(self) -> None:
        result = run_render(RenderPostInput(body="# Hi"))

        assert result.success is True
        assert result.html == "<h1>Hi</h1>"

    def test_run_dispatcher(self) -> None:
        assert run(RenderPostInput(body="x")).html == "<p>x</p>"

    def test_run_unknown_input(self) -> None:
        with pytest.raises(ValueError, match="Unknown input type"):
            run(object())  # type: ignore[arg-type]

    def test_build_config_defaults(self) -> None:
        assert build_config(None) is DEFAULT_CONFIG
        assert build_config(RenderRules()) == DEFAULT_CONFIG

    def test_build_config_overrides(self) -> None:
        config = build_config(
            RenderRules(allowed_tags=["p", "a"], allowed_protocols=["HTTPS:"], link_rel=[])
        )

        out = render("[a](https://x.test) [b](http://x.test)\n\n## gone", config)

        assert config.allowed_protocols == frozenset(["https"])
        assert '<a href="https://x.test">a</a>' in out
        assert 'href="http://x.test"' not in out
        assert "<h2>" not in out
