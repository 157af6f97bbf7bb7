"""HTTP step builder — render a step's request fields into an ``httpx.Request``.

URL, body and every header value are rendered independently against the
current renderer scope. The method is not rendered; httpx upper-cases it.
Building never touches the network; transport errors only happen when the
executor sends.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

import httpx

from stepwise.errors import EmptyURLError, RenderError, RequestBuildError
from stepwise.models.template import Step
from stepwise.render.renderer import Renderer

# RFC 9110 token
_METHOD_RE = re.compile(r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+")

# Registered name (punycode), IPv4 or IPv6 literal
_HOST_RE = re.compile(rb"[A-Za-z0-9._~:\[\]-]+")


def build_request(step: Step, renderer: Renderer, data: Mapping[str, Any] | None = None) -> httpx.Request:
    """Turn ``step`` into a request descriptor.

    Raises:
        EmptyURLError: the step has no URL.
        RenderError: URL, body or a header value failed to render.
        RequestBuildError: invalid method, or a URL without an http(s) scheme
            and a well-formed host.
    """
    if not step.url:
        raise EmptyURLError(f"step {step.label}: step URL is empty")

    try:
        url = renderer.render(step.url, data)
    except RenderError as exc:
        raise RenderError(f'step {step.label}: failed to render step.url "{step.url}"') from exc

    content: bytes | None = None
    if step.body:
        try:
            content = renderer.render_bytes(step.body, data)
        except RenderError as exc:
            raise RenderError(f'step {step.label}: failed to render step.body "{step.body}"') from exc

    headers: list[tuple[str, str]] = []
    for name, values in step.header.items():
        for value in values:
            try:
                headers.append((name, renderer.render(value, data)))
            except RenderError as exc:
                raise RenderError(f'step {step.label}: failed to render step.header "{name}"') from exc

    method = step.method or "GET"
    if not _METHOD_RE.fullmatch(method):
        raise RequestBuildError(f'step {step.label}: invalid method "{method}"')
    try:
        request = httpx.Request(method, url, content=content, headers=headers)
    except (httpx.InvalidURL, ValueError, TypeError) as exc:
        raise RequestBuildError(f'step {step.label}: failed to create request for "{url}": {exc}') from exc

    # httpx percent-escapes what it cannot parse instead of rejecting it.
    if request.url.scheme not in ("http", "https") or not _HOST_RE.fullmatch(request.url.raw_host):
        raise RequestBuildError(f'step {step.label}: invalid URL "{url}"')
    return request
