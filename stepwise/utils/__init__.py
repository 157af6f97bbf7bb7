"""structlog setup for Stepwise.

Everything is logged to stderr: stdout belongs to ``stepwise run``, which
prints the exported variables as JSON.
"""

import logging
import sys

import structlog

from stepwise.config import settings


def _level_number(name: str) -> int:
    number = logging.getLevelName(name.upper())
    return number if isinstance(number, int) else logging.INFO


def setup_logging(level: str | None = None, fmt: str | None = None) -> None:
    """(Re)configure structlog.

    Args:
        level: Minimum level name; defaults to ``settings.log_level``.
        fmt:   ``console`` or ``json``; defaults to ``settings.log_format``.
    """
    stream = sys.stderr
    fmt = (fmt or settings.log_format).lower()

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if fmt == "json":
        processors += [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=stream.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(_level_number(level or settings.log_level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=False,
    )
