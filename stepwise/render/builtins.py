"""Built-in template functions, available in every renderer scope.

Each is registered both as a global (``{{ json_get(response, "data.id") }}``)
and as a filter (``{{ response | json_get("data.id") }}``).
"""

from __future__ import annotations

import base64
import json as _json
from html.parser import HTMLParser
from typing import Any

_MISSING = object()


def to_json(value: Any) -> str:
    """Serialize ``value`` as compact JSON."""
    return _json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=str)


def _split_path(path: str) -> list[str]:
    """Split ``a.b\\.c.0`` into ``["a", "b.c", "0"]``."""
    parts: list[str] = []
    current: list[str] = []
    escaped = False
    for char in path:
        if escaped:
            current.append(char)
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == ".":
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
    parts.append("".join(current))
    return parts


def _lookup(document: Any, path: str) -> Any:
    node = document
    for key in _split_path(path):
        if isinstance(node, dict):
            if key not in node:
                return _MISSING
            node = node[key]
        elif isinstance(node, list):
            if key == "#":
                node = len(node)
            elif key.isdigit() and int(key) < len(node):
                node = node[int(key)]
            else:
                return _MISSING
        else:
            return _MISSING
    return node


def _load(text: Any) -> Any:
    if isinstance(text, (bytes, bytearray)):
        text = text.decode("utf-8", errors="replace")
    if not isinstance(text, str):
        return text
    try:
        return _json.loads(text)
    except ValueError:
        return _MISSING


def json_get(text: Any, path: str) -> Any:
    """Value at dotted ``path`` inside JSON ``text``, or ``None`` if absent.

    Path segments are separated by ``.`` (escape a literal dot as ``\\.``),
    array elements are addressed by index and ``#`` yields an array's length.
    """
    document = _load(text)
    if document is _MISSING:
        return None
    value = _lookup(document, path)
    return None if value is _MISSING else value


def json_must(text: Any, path: str) -> Any:
    """Like ``json_get`` but raise when ``path`` does not exist."""
    document = _load(text)
    if document is _MISSING:
        raise ValueError("response is not valid JSON")
    value = _lookup(document, path)
    if value is _MISSING:
        raise ValueError(f'path not found: "{path}"')
    return value


def b64encode(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def b64decode(text: str) -> str:
    return base64.b64decode(text, validate=True).decode("utf-8")


class _TextExtractor(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.chunks: list[str] = []
        self._skip_depth = 0

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag in ("script", "style"):
            self._skip_depth += 1
        elif tag == "img":
            alt = dict(attrs).get("alt")
            if alt:
                self.chunks.append(alt)

    def handle_endtag(self, tag: str) -> None:
        if tag in ("script", "style") and self._skip_depth:
            self._skip_depth -= 1

    def handle_data(self, data: str) -> None:
        if not self._skip_depth:
            self.chunks.append(data)


def plaintext(html: str) -> str:
    """Text content of an HTML fragment; images are replaced by their alt text."""
    parser = _TextExtractor()
    parser.feed(html)
    parser.close()
    return "".join(parser.chunks)


BUILTIN_FUNCTIONS = {
    "json": to_json,
    "json_get": json_get,
    "json_must": json_must,
    "b64encode": b64encode,
    "b64decode": b64decode,
    "plaintext": plaintext,
}
