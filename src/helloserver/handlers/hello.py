"""
=============================================================================
HELLO RENDERER
=============================================================================

Renders the greeting text as plain text, HTML or JSON.

    ┌─────────────┬─────────────────────────────────┬────────────────────────┐
    │ ContentKind │ Content-Type                    │ Body                   │
    ├─────────────┼─────────────────────────────────┼────────────────────────┤
    │ TEXT        │ text/plain; charset=utf-8       │ Hello World!           │
    │ HTML        │ text/html; charset=utf-8        │ <!DOCTYPE html>...     │
    │             │                                 │ <h1>Hello World!</h1>  │
    │ JSON        │ application/json; charset=utf-8 │ {"message":"Hello..."} │
    └─────────────┴─────────────────────────────────┴────────────────────────┘

The renderer is built once from the immutable ServerConfig and shared by
every worker thread. It holds no mutable state, so no locking is needed and
the same greeting always renders to the same bytes.

=============================================================================
ESCAPING
=============================================================================

HTML:  _HTML_ESCAPES applied before substitution into the page, the same
       entity set html/template writes: "<b>'Hi'</b>" renders as
       "&lt;b&gt;&#39;Hi&#39;&lt;/b&gt;".

JSON:  json.dumps() escapes quotes, backslashes and control characters.
       On top of that, < > & and U+2028/U+2029 become \\u escapes so
       the body can be pasted inside a <script> tag unchanged.

TEXT:  verbatim.

=============================================================================
"""

import json
from dataclasses import dataclass
from enum import Enum
from string import Template


class ContentKind(Enum):
    """The three representations a hello route can answer with."""
    TEXT = "text"
    HTML = "html"
    JSON = "json"


class RenderError(Exception):
    """Raised when the greeting cannot be serialized. Becomes a 500."""


@dataclass(frozen=True)
class Rendered:
    """A rendered body together with its Content-Type header value."""
    body: bytes
    content_type: str


TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"
HTML_CONTENT_TYPE = "text/html; charset=utf-8"
JSON_CONTENT_TYPE = "application/json; charset=utf-8"

HTML_TEMPLATE = Template("""<!DOCTYPE html>
<html lang="ja">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <meta http-equiv="X-UA-Compatible" content="ie=edge">
    <title>${print_text}</title>
</head>
<body>
    <h1>${print_text}</h1>
</body>
</html>
""")

# NUL becomes U+FFFD, as html/template does.
_HTML_ESCAPES = str.maketrans({
    "\0": "\ufffd",
    "\"": "&#34;",
    "&": "&amp;",
    "'": "&#39;",
    "+": "&#43;",
    "<": "&lt;",
    ">": "&gt;",
})

# Characters json.dumps() leaves alone but which are unsafe inside HTML.
_JSON_HTML_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


class HelloRenderer:
    """
    Renders one fixed greeting in each ContentKind.

    Usage:
        renderer = HelloRenderer("Hello World!")
        rendered = renderer.render(ContentKind.JSON)
        rendered.body          # b'{"message":"Hello World!"}'
        rendered.content_type  # 'application/json; charset=utf-8'
    """

    def __init__(self, text: str, template: Template = HTML_TEMPLATE):
        self._text = text
        self._template = template

    def render(self, kind: ContentKind) -> Rendered:
        """Render the greeting as `kind`."""
        if kind is ContentKind.TEXT:
            return self.render_text()
        if kind is ContentKind.HTML:
            return self.render_html()
        return self.render_json()

    def render_text(self) -> Rendered:
        # Lone surrogates become "?"
        return Rendered(
            body=self._text.encode("utf-8", errors="replace"),
            content_type=TEXT_CONTENT_TYPE,
        )

    def render_html(self) -> Rendered:
        page = self._template.substitute(print_text=self._text.translate(_HTML_ESCAPES))
        return Rendered(
            body=page.encode("utf-8", errors="replace"),
            content_type=HTML_CONTENT_TYPE,
        )

    def render_json(self) -> Rendered:
        """
        Render {"message":"<text>"}.

        Raises:
            RenderError: If the text cannot be encoded as UTF-8 JSON
                         (for example a lone surrogate).
        """
        try:
            encoded = json.dumps(
                {"message": self._text},
                separators=(",", ":"),
                ensure_ascii=False,
            )
            for char, escape in _JSON_HTML_ESCAPES.items():
                encoded = encoded.replace(char, escape)
            body = encoded.encode("utf-8")
        except (TypeError, ValueError) as e:
            raise RenderError(f"Cannot encode greeting as JSON: {e}") from e

        return Rendered(body=body, content_type=JSON_CONTENT_TYPE)
