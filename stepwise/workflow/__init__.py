"""Stepwise workflow — resolve templates and execute their steps.

Public surface
--------------
``Resolver``       — recursively decode a template and everything it uses
``Executor``       — run a resolved template, returning its exports
``build_request``  — render an HTTP step into an ``httpx.Request``
``run_template``   — resolve + override + run, as the CLI does
"""

from .executor import Executor, parse_bool
from .request import build_request
from .resolver import Resolver
from .runner import list_templates, make_decoder, parse_overrides, run_template

__all__ = [
    "Executor",
    "Resolver",
    "build_request",
    "list_templates",
    "make_decoder",
    "parse_bool",
    "parse_overrides",
    "run_template",
]
