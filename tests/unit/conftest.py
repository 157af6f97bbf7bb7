"""Unit-test conftest — in-memory decoder, fake HTTP transport, shared fixtures.

All fixtures here are available to every test under tests/unit/ without import.
"""

from __future__ import annotations

import copy
import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from stepwise.errors import TemplateNotFoundError
from stepwise.models.template import Template
from stepwise.tools.decoder import apply_decoded, parse_document


# ─────────────────────────────────────────────────────────────────────────────
# DictDecoder — drop-in replacement for FileDecoder / StoreDecoder
# ─────────────────────────────────────────────────────────────────────────────

class DictDecoder:
    """Decoder serving raw template documents from a dict.

    Args:
        documents: identity → raw document (as it would be read from JSON/YAML).
    """

    def __init__(self, documents: dict[str, dict[str, Any]]) -> None:
        self.documents = documents
        # Call log for assertion
        self.calls: list[str] = []

    async def load(self, identity: str, target: Template) -> None:
        self.calls.append(identity)
        if identity not in self.documents:
            raise TemplateNotFoundError(f'template uses not found: "{identity}"')
        raw = copy.deepcopy(self.documents[identity])
        apply_decoded(target, parse_document(raw, identity))


# ─────────────────────────────────────────────────────────────────────────────
# Recording HTTP transport
# ─────────────────────────────────────────────────────────────────────────────

class RecordingTransport:
    """Wraps a handler in ``httpx.MockTransport`` and records every request."""

    def __init__(self, handler: Callable[[httpx.Request], Any]) -> None:
        self.requests: list[httpx.Request] = []
        self._handler = handler

    async def _dispatch(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self._handler(request)
        if hasattr(response, "__await__"):
            response = await response
        return response

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self._dispatch))


def json_response(payload: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, content=json.dumps(payload).encode())


# ─────────────────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def renderer():
    """A fresh root renderer with the built-in functions."""
    from stepwise.render.renderer import Renderer

    return Renderer()


@pytest.fixture
def echo_transport():
    """Transport answering 200 with a JSON echo of method, path and body."""

    def handler(request: httpx.Request) -> httpx.Response:
        return json_response(
            {
                "method": request.method,
                "path": request.url.path,
                "query": dict(request.url.params),
                "body": request.content.decode(),
            }
        )

    return RecordingTransport(handler)


@pytest.fixture
def dict_decoder():
    """The DictDecoder class, for tests that build their own document sets."""
    return DictDecoder


@pytest.fixture
def recording_transport():
    """The RecordingTransport class, for tests with their own handler."""
    return RecordingTransport
