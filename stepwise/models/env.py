"""Environment helpers — merging and projection into renderer functions.

An environment maps a variable name to any value the template formats
support (string, number, boolean, mapping, list). Only string values are
re-rendered at run time; everything else passes through verbatim.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from typing import Any

from stepwise.errors import InvalidNameError

Env = dict[str, Any]

_NAME_RE = re.compile(r"[^\W\d]\w*")

# Jinja2 operators and literals, plus the names Jinja2 binds in every
# render context. A function with one of these names is never callable.
RESERVED_NAMES = frozenset(
    {
        "and", "or", "not", "in", "is", "if", "else",
        "true", "false", "none", "True", "False", "None",
        "self", "loop", "caller", "varargs", "kwargs",
    }
)


def merge_env(base: Mapping[str, Any] | None, *overrides: Mapping[str, Any] | None) -> Env:
    """Return a new env: ``base`` overlaid by each override in turn (later wins)."""
    merged: Env = dict(base or {})
    for override in overrides:
        if override:
            merged.update(override)
    return merged


def is_good_name(name: str) -> bool:
    """True if ``name`` can be registered and called as a renderer function."""
    return bool(name) and _NAME_RE.fullmatch(name) is not None and name not in RESERVED_NAMES


def _getter(env: Mapping[str, Any], key: str) -> Callable[[], Any]:
    value = env[key]
    return lambda: value


def as_functions(env: Mapping[str, Any] | None, prefix: str = "") -> dict[str, Callable[[], Any]]:
    """Project ``env`` into zero-argument functions named ``prefix + key``.

    The whole batch is rejected on the first invalid name.

    Raises:
        InvalidNameError: a prefixed key is not a valid function name.
    """
    functions: dict[str, Callable[[], Any]] = {}
    for key in env or {}:
        name = prefix + key
        if not is_good_name(name):
            raise InvalidNameError(name)
        functions[name] = _getter(env, key)
    return functions
