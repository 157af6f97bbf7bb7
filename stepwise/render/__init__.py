"""Template rendering — Jinja2 adapter, built-ins and per-run sessions."""

from .builtins import BUILTIN_FUNCTIONS
from .renderer import Renderer, create_environment
from .session import SafeRenderer

__all__ = ["BUILTIN_FUNCTIONS", "Renderer", "SafeRenderer", "create_environment"]
