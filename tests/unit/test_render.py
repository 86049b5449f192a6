"""
Unit tests for the greeting renderer.
"""

import json

import pytest

from helloserver.handlers.hello import (
    ContentKind,
    HelloRenderer,
    RenderError,
    HTML_CONTENT_TYPE,
    JSON_CONTENT_TYPE,
    TEXT_CONTENT_TYPE,
)


class TestRenderText:
    """Tests for the plain text representation."""

    def test_default_greeting(self):
        rendered = HelloRenderer("Hello World!").render_text()

        assert rendered.body == b"Hello World!"
        assert rendered.content_type == TEXT_CONTENT_TYPE

    def test_text_is_verbatim(self):
        text = '<b>"quoted" & raw</b>'
        rendered = HelloRenderer(text).render_text()

        assert rendered.body == text.encode("utf-8")

    def test_unicode_encoded_as_utf8(self):
        rendered = HelloRenderer("こんにちは").render_text()

        assert rendered.body == "こんにちは".encode("utf-8")

    def test_unencodable_text_is_replaced(self):
        """A lone surrogate cannot be UTF-8; text output still succeeds."""
        rendered = HelloRenderer("a\ud800b").render_text()

        assert rendered.body == b"a?b"


class TestRenderHTML:
    """Tests for the HTML page."""

    def test_document_structure(self):
        body = HelloRenderer("Hello World!").render_html().body.decode("utf-8")

        assert body.startswith("<!DOCTYPE html>")
        assert '<html lang="ja">' in body
        assert '<meta charset="UTF-8">' in body
        assert '<meta name="viewport" content="width=device-width, initial-scale=1.0">' in body
        assert '<meta http-equiv="X-UA-Compatible" content="ie=edge">' in body

    def test_greeting_in_title_and_heading(self):
        body = HelloRenderer("Hello World!").render_html().body.decode("utf-8")

        assert "<title>Hello World!</title>" in body
        assert "<h1>Hello World!</h1>" in body

    def test_greeting_is_escaped(self):
        body = HelloRenderer("<script>alert('x')</script> & \"q\"").render_html().body

        assert b"<script>" not in body
        assert b"&lt;script&gt;alert(&#39;x&#39;)&lt;/script&gt; &amp; &#34;q&#34;" in body

    @pytest.mark.parametrize("text,escaped", [
        ("\"", "&#34;"),
        ("'", "&#39;"),
        ("+", "&#43;"),
        ("a\0b", "a\ufffdb"),
    ])
    def test_html_template_entities(self, text, escaped):
        body = HelloRenderer(text).render_html().body.decode("utf-8")

        assert f"<h1>{escaped}</h1>" in body

    def test_dollar_sign_in_greeting(self):
        """Template placeholders in the greeting are not re-expanded."""
        body = HelloRenderer("costs $5 or ${print_text}").render_html().body

        assert b"<h1>costs $5 or ${print_text}</h1>" in body

    def test_content_type(self):
        assert HelloRenderer("x").render_html().content_type == HTML_CONTENT_TYPE


class TestRenderJSON:
    """Tests for the JSON document."""

    def test_default_greeting(self):
        rendered = HelloRenderer("Hello World!").render_json()

        assert rendered.body == b'{"message":"Hello World!"}'
        assert rendered.content_type == JSON_CONTENT_TYPE

    def test_html_sensitive_characters_escaped(self):
        rendered = HelloRenderer("a<b>&c").render_json()

        assert rendered.body == b'{"message":"a\\u003cb\\u003e\\u0026c"}'
        assert json.loads(rendered.body) == {"message": "a<b>&c"}

    def test_line_separators_escaped(self):
        rendered = HelloRenderer("x\u2028y\u2029z").render_json()

        assert rendered.body == b'{"message":"x\\u2028y\\u2029z"}'

    def test_quotes_and_backslashes_escaped(self):
        text = 'say "hi" \\ bye\n'
        rendered = HelloRenderer(text).render_json()

        assert json.loads(rendered.body) == {"message": text}

    def test_non_ascii_kept_as_utf8(self):
        rendered = HelloRenderer("こんにちは").render_json()

        assert rendered.body == '{"message":"こんにちは"}'.encode("utf-8")

    def test_empty_greeting(self):
        assert HelloRenderer("").render_json().body == b'{"message":""}'

    def test_unencodable_text_raises(self):
        with pytest.raises(RenderError):
            HelloRenderer("a\ud800b").render_json()


class TestRender:
    """Tests for render() dispatch."""

    @pytest.mark.parametrize("kind,content_type", [
        (ContentKind.TEXT, TEXT_CONTENT_TYPE),
        (ContentKind.HTML, HTML_CONTENT_TYPE),
        (ContentKind.JSON, JSON_CONTENT_TYPE),
    ])
    def test_dispatch(self, kind, content_type):
        assert HelloRenderer("hi").render(kind).content_type == content_type

    def test_rendering_is_deterministic(self):
        renderer = HelloRenderer("Hello <World>")

        for kind in ContentKind:
            assert renderer.render(kind) == renderer.render(kind)
