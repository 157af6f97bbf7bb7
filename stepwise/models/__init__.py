"""Stepwise data model — versions, identities, environments, templates."""

from .env import Env, as_functions, is_good_name, merge_env
from .template import Step, Template
from .version import Identity, Version, compare, format_version

__all__ = [
    "Env",
    "Identity",
    "Step",
    "Template",
    "Version",
    "as_functions",
    "compare",
    "format_version",
    "is_good_name",
    "merge_env",
]
