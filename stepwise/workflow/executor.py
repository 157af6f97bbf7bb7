"""Executor — run a resolved template step by step.

Per run:

1. A child renderer scope is created and the template's env is rendered and
   registered in it, so nothing the run registers leaks to the caller.
2. Steps run strictly in declared order. For each step:

   a. ``skip`` is rendered and parsed as a strict boolean; true skips the
      step entirely.
   b. A ``uses`` step runs its sub-template recursively in the current scope
      and registers the sub-template's exports (under ``namespace_`` when the
      step declares a namespace). A ``url`` step sends one HTTP request and
      reads the full response body.
   c. The step's ``set`` batches are rendered and registered in order, each
      able to see the previous one. ``response`` holds the last result text.
   d. The step's ``out`` is rendered (also seeing ``response``) and merged
      into the run's exports.

3. The exports and the last result are returned. Any failure aborts the
   whole run; callers never see partial exports.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import httpx
import structlog

from stepwise.config import settings
from stepwise.errors import (
    BadStatusError,
    DecoderMissingError,
    RenderError,
    RequestTransportError,
    ResponseReadError,
    SkipParseError,
)
from stepwise.models.env import Env
from stepwise.models.template import Step, Template
from stepwise.render.renderer import Renderer
from stepwise.workflow.request import build_request
from stepwise.workflow.resolver import Resolver

logger = structlog.get_logger(component="workflow.executor")

_TRUE = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE = frozenset({"0", "f", "F", "FALSE", "false", "False"})


def parse_bool(text: str) -> bool:
    """Strict boolean literal parsing; anything else is a ValueError."""
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f'invalid boolean literal "{text}"')


class Executor:
    """Runs templates against a renderer scope.

    One executor (and its HTTP client) may serve many concurrent runs;
    per-run state lives on the call stack and in the run's renderer scope.

    Args:
        client:   HTTP client to send step requests with. When omitted, one
                  is created lazily and closed by ``close()``.
        resolver: Used to resolve ``uses`` steps that arrive unresolved.
        timeout:  Request timeout for the lazily created client.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        resolver: Resolver | None = None,
        timeout: float | None = None,
    ) -> None:
        self.resolver = resolver
        self.timeout = timeout if timeout is not None else settings.http_timeout
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        if self._owns_client and self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "Executor":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ── Run ───────────────────────────────────────────────────

    async def do(
        self,
        template: Template,
        renderer: Renderer,
        data: Mapping[str, Any] | None = None,
    ) -> tuple[Env, bytes]:
        """Execute ``template``.

        Args:
            template: A resolved template (read-only during the run).
            renderer: Scope to run in; a child scope is created from it.
            data:     Variables every expression renders against.

        Returns:
            ``(exported variables, raw result of the last executed step)``.
        """
        scope = renderer.child()
        try:
            env = scope.render_env(template.env, data)
        except RenderError as exc:
            raise RenderError(f'template "{template}": failed to render the environment') from exc
        scope.register_env(env)

        out: Env = {}
        result = b""
        for index, step in enumerate(template.steps):
            where = f'template "{template.identity}" step #{index} ({step.label})'

            if step.skip and self._should_skip(step, scope, data, where):
                logger.debug("step_skipped", template=str(template.identity), step=index)
                continue

            if step.uses:
                result = await self._run_template(step, scope, data, where)
            elif step.url:
                result = await self._run_request(step, scope, data, where)

            response = result.decode("utf-8", errors="replace")
            self._apply_set(step, scope, data, response, where)
            if step.out:
                try:
                    exported = scope.render_env(step.out, data, response=response)
                except RenderError as exc:
                    raise RenderError(f"{where}: failed to render the output variables") from exc
                out.update(exported)

        logger.debug("template_complete", template=str(template.identity), exported=sorted(out))
        return out, result

    # ── Step phases ───────────────────────────────────────────

    def _should_skip(self, step: Step, scope: Renderer, data: Mapping[str, Any] | None, where: str) -> bool:
        try:
            text = scope.render(step.skip, data)
        except RenderError as exc:
            raise RenderError(f'{where}: failed to render step.skip "{step.skip}"') from exc
        try:
            return parse_bool(text)
        except ValueError as exc:
            raise SkipParseError(f'{where}: failed to parse step.skip "{step.skip}": {exc}') from exc

    async def _run_template(self, step: Step, scope: Renderer, data: Mapping[str, Any] | None, where: str) -> bytes:
        sub: Template = step
        if not step.steps:
            # Resolve a copy so the template being run stays untouched.
            if self.resolver is None:
                raise DecoderMissingError(f"{where}: step is unresolved and no resolver is configured")
            sub = step.model_copy(deep=True)
            await self.resolver.resolve(step.uses, sub)

        logger.debug("sub_template_start", uses=step.uses, namespace=step.namespace)
        exported, result = await self.do(sub, scope, data)
        prefix = f"{step.namespace}_" if step.namespace else ""
        scope.register_env(exported, prefix)
        return result

    async def _run_request(self, step: Step, scope: Renderer, data: Mapping[str, Any] | None, where: str) -> bytes:
        request = build_request(step, scope, data)
        client = await self._get_client()

        logger.debug("step_request", method=request.method, url=str(request.url))
        try:
            response = await client.send(request, stream=True)
        except httpx.HTTPError as exc:
            raise RequestTransportError(f"{where}: failed to request: {exc}") from exc

        try:
            body = await response.aread()
        except httpx.HTTPError as exc:
            raise ResponseReadError(f"{where}: failed to read response body: {exc}") from exc
        finally:
            await response.aclose()

        logger.info("step_complete", method=request.method, url=str(request.url), status=response.status_code)
        if not 200 <= response.status_code < 300:
            raise BadStatusError(where, response.status_code, body)
        return body

    def _apply_set(
        self,
        step: Step,
        scope: Renderer,
        data: Mapping[str, Any] | None,
        response: str,
        where: str,
    ) -> None:
        for batch in step.set_chain():
            try:
                values = scope.render_env(batch, data, response=response)
            except RenderError as exc:
                raise RenderError(f"{where}: failed to render the set variables") from exc
            scope.register_env(values)
            logger.debug("set_registered", names=sorted(values))
