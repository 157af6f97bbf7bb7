"""Workflow runner utilities — discover, load and run templates for the CLI.

The actual execution is done by ``Executor.do()`` inside a ``SafeRenderer``
session. This module provides the helpers the CLI needs to pick a decoder,
resolve a template, apply command-line overrides and hand off.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

import structlog

from stepwise.config import settings
from stepwise.errors import StepwiseError
from stepwise.models.env import Env
from stepwise.models.template import Template
from stepwise.render.session import SafeRenderer
from stepwise.tools.decoder import Decoder, FileDecoder
from stepwise.tools.template_store import StoreDecoder, TemplateStore
from stepwise.workflow.executor import Executor
from stepwise.workflow.resolver import Resolver

logger = structlog.get_logger(component="workflow.runner")

TEMPLATE_SUFFIXES = (".json", ".yml", ".yaml")


def make_decoder(kind: str | None = None, store: TemplateStore | None = None) -> Decoder:
    """Build the decoder named by ``kind`` (default: ``settings.decoder``).

    Raises:
        ValueError: unknown decoder kind.
    """
    kind = (kind or settings.decoder).lower()
    if kind == "file":
        return FileDecoder()
    if kind == "store":
        return StoreDecoder(store or TemplateStore())
    raise ValueError(f"unknown decoder '{kind}': expected 'file' or 'store'")


def parse_overrides(args: Iterable[str]) -> Env:
    """Turn ``--name=value`` arguments into env overrides.

    Leading dashes are stripped; arguments without ``=`` are ignored.
    """
    overrides: Env = {}
    for arg in args:
        key, sep, value = arg.partition("=")
        if not sep:
            continue
        overrides[key.lstrip("-")] = value
    return overrides


def list_templates(directory: Path | None = None) -> list[Path]:
    """Return paths to all template files in ``directory``, newest first.

    Returns an empty list if the directory does not exist.
    """
    d = directory or Path(settings.templates_dir)
    if not d.exists():
        return []
    files = [f for f in d.iterdir() if f.is_file() and f.suffix.lower() in TEMPLATE_SUFFIXES]
    return sorted(files, key=lambda f: f.stat().st_mtime, reverse=True)


async def run_template(
    identity: str,
    overrides: Env | None = None,
    decoder: Decoder | None = None,
    executor: Executor | None = None,
    renderer: SafeRenderer | None = None,
) -> tuple[Template, Env]:
    """Resolve ``identity``, apply ``overrides`` to its env and run it.

    Overrides are applied after resolution, so they reach the root
    template's env only.

    Returns:
        ``(resolved template, exported variables)``.
    """
    resolver = Resolver(decoder or make_decoder())
    template = await resolver.resolve(identity)
    template.env.update(overrides or {})

    renderer = renderer or SafeRenderer()
    try:
        if executor is None:
            async with Executor(resolver=resolver) as owned:
                out, _ = await renderer.do(template, owned)
        else:
            out, _ = await renderer.do(template, executor)
    except StepwiseError as exc:
        logger.warning("run_failed", template=str(template.identity), error=str(exc))
        raise
    logger.info("run_complete", template=str(template.identity), exported=len(out))
    return template, out
