"""Renderer — scoped function registry on top of one shared Jinja2 environment.

Template variables are exposed to Jinja2 as zero-argument functions
(``{{ token() }}``), registered in batches. Renderers form a tree: a child
sees every function of its ancestors, but functions registered on a child
never reach its parent or siblings. Rendering compiles against this scope's
view only, so the shared ``jinja2.Environment`` itself is never written to
after construction.
"""

from __future__ import annotations

import uuid
from collections import ChainMap
from collections.abc import Callable, Mapping
from typing import Any

import jinja2

from stepwise.errors import InvalidNameError, RenderError
from stepwise.models.env import Env, as_functions, is_good_name
from stepwise.render.builtins import BUILTIN_FUNCTIONS


def create_environment() -> jinja2.Environment:
    """Build the shared Jinja2 environment with the built-in functions."""
    environment = jinja2.Environment(
        undefined=jinja2.StrictUndefined,
        autoescape=False,
        keep_trailing_newline=True,
    )
    environment.globals.update(BUILTIN_FUNCTIONS)
    environment.filters.update(BUILTIN_FUNCTIONS)
    return environment


class Renderer:
    """One scope of registered template functions."""

    def __init__(
        self,
        environment: jinja2.Environment | None = None,
        name: str = "root",
        parent: Renderer | None = None,
    ) -> None:
        self.environment = environment or create_environment()
        self.name = name
        self.parent = parent
        self._functions: dict[str, Callable[..., Any]] = {}

    def child(self, name: str | None = None) -> Renderer:
        """Create a child scope inheriting this scope's functions."""
        return Renderer(self.environment, name or uuid.uuid4().hex, parent=self)

    @property
    def functions(self) -> ChainMap:
        """Every function visible from this scope, nearest registration first."""
        maps: list[Mapping[str, Any]] = []
        scope: Renderer | None = self
        while scope is not None:
            maps.append(scope._functions)
            scope = scope.parent
        return ChainMap(*maps)

    # ── Registration ──────────────────────────────────────────

    def register(self, functions: Mapping[str, Callable[..., Any]]) -> None:
        """Register a batch of functions in this scope.

        Raises:
            InvalidNameError: a name is not a valid identifier; nothing from
                the batch is registered.
        """
        for name in functions:
            if not is_good_name(name):
                raise InvalidNameError(name)
        self._functions.update(functions)

    def register_env(self, env: Mapping[str, Any] | None, prefix: str = "") -> None:
        """Register every ``env`` entry as a function named ``prefix + key``."""
        functions = as_functions(env, prefix)
        if functions:
            self.register(functions)

    # ── Rendering ─────────────────────────────────────────────

    def render(self, text: str, data: Mapping[str, Any] | None = None, **extra: Any) -> str:
        """Render ``text`` against ``data`` (plus ``extra`` variables).

        Raises:
            RenderError: the text does not parse or fails while executing.
        """
        context = {**(data or {}), **extra}
        try:
            template = self.environment.from_string(text, globals=dict(self.functions))
            return template.render(context)
        except jinja2.TemplateError as exc:
            raise RenderError(f'failed to render "{text}": {exc}') from exc
        except Exception as exc:  # raised by a function called from the template
            raise RenderError(f'failed to render "{text}": {exc}') from exc

    def render_bytes(self, text: str, data: Mapping[str, Any] | None = None, **extra: Any) -> bytes:
        return self.render(text, data, **extra).encode("utf-8")

    def render_env(self, env: Mapping[str, Any] | None, data: Mapping[str, Any] | None = None, **extra: Any) -> Env:
        """Render the string values of ``env``; other values pass through."""
        out: Env = {}
        for key, value in (env or {}).items():
            if isinstance(value, str):
                out[key] = self.render(value, data, **extra)
            else:
                out[key] = value
        return out

    def __repr__(self) -> str:
        return f"Renderer(name={self.name!r}, functions={len(self._functions)})"
