"""Allow-list HTML sanitizer for rich-text article and comment bodies.

``sanitize_html`` is a pure function: raw HTML in, cleaned HTML out.
Dangerous elements are dropped together with their content, unknown
elements are unwrapped so their text survives, and only a fixed set of
attributes is kept on the elements that remain. Site-relative links are
kept; protocol-relative ones (``//host/...``) are not.

This is a standalone boundary function for rich-text bodies rendered as
HTML. Direct messages never pass through it: they are plain text and are
escaped when displayed (see ``newsdesk.client.view``).
"""

from __future__ import annotations

import html
import re
from html.parser import HTMLParser

ALLOWED_TAGS = frozenset({
    "p", "b", "strong", "i", "em", "u", "a", "ul", "ol", "li",
    "h1", "h2", "h3", "h4", "h5", "h6", "br", "img",
    "blockquote", "span", "div",
})
ALLOWED_ATTRS = frozenset({"href", "src", "alt", "title", "class", "target", "rel"})
STRIPPED_TAGS = frozenset({"script", "style", "iframe", "object", "embed", "applet", "link", "meta"})
VOID_TAGS = frozenset({"br", "img", "embed", "link", "meta", "hr", "input", "wbr", "source", "area", "col"})

_BLOCKED_SCHEME = re.compile(
    r"^\s*(?:javascript|vbscript|data|file|php|phar|zlib|glob|ssh2|expect|ogg|ftp|sftp):",
    re.IGNORECASE,
)
_SAFE_URL = re.compile(r"^\s*(?:https?:|mailto:|#|/(?![/\\]))", re.IGNORECASE)


def _clean_url(value: str | None) -> str | None:
    if value is None or _BLOCKED_SCHEME.match(value):
        return None
    if not _SAFE_URL.match(value):
        return None
    return value


class _Sanitizer(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self._out: list[str] = []
        self._open: list[str] = []
        self._skip_depth = 0

    # ── Tag handling ──────────────────────────────────────────────────────

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag in STRIPPED_TAGS or self._skip_depth:
            if tag in STRIPPED_TAGS and tag not in VOID_TAGS:
                self._skip_depth += 1
            return
        if tag not in ALLOWED_TAGS:
            return

        kept: dict[str, str] = {}
        for name, value in attrs:
            if name not in ALLOWED_ATTRS:
                continue
            if name in ("href", "src"):
                value = _clean_url(value)
                if value is None:
                    continue
            kept[name] = value or ""
        if kept.get("target", "").lower() == "_blank":
            kept["rel"] = "noopener noreferrer"

        rendered = "".join(f' {name}="{html.escape(value, quote=True)}"' for name, value in kept.items())
        self._out.append(f"<{tag}{rendered}>")
        if tag not in VOID_TAGS:
            self._open.append(tag)

    def handle_endtag(self, tag: str) -> None:
        if self._skip_depth:
            if tag in STRIPPED_TAGS and tag not in VOID_TAGS:
                self._skip_depth -= 1
            return
        if tag not in self._open:
            return
        while self._open:
            current = self._open.pop()
            self._out.append(f"</{current}>")
            if current == tag:
                break

    def handle_data(self, data: str) -> None:
        if not self._skip_depth:
            self._out.append(html.escape(data, quote=False))

    # ── Result ────────────────────────────────────────────────────────────

    def result(self) -> str:
        self.close()
        while self._open:
            self._out.append(f"</{self._open.pop()}>")
        return "".join(self._out)


def sanitize_html(raw: str | None) -> str:
    """Return ``raw`` reduced to the allow-listed tags and attributes."""
    if not raw:
        return ""
    parser = _Sanitizer()
    parser.feed(raw)
    return parser.result()
