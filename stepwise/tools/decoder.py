"""Decoders — turn a template identity into a Template.

The resolver only depends on the ``Decoder`` protocol. Two implementations:

``FileDecoder``
    The identity is a path to a ``.json``, ``.yml`` or ``.yaml`` document.

``StoreDecoder`` (``stepwise.tools.template_store``)
    The identity is ``author/namespace@vX.Y.Z`` looked up in Postgres.

Decoding overwrites only the fields the source actually declares, so a
document without ``env`` leaves the caller's env on the target untouched.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Protocol

import structlog
import yaml
from pydantic import ValidationError

from stepwise.config import settings
from stepwise.errors import DecodeError, TemplateNotFoundError, UnsupportedFormatError
from stepwise.models.template import Template

logger = structlog.get_logger(component="decoder")


class Decoder(Protocol):
    async def load(self, identity: str, target: Template) -> None:
        """Decode ``identity`` into ``target`` in place."""
        ...


def apply_decoded(target: Template, decoded: Template) -> None:
    """Copy every template field ``decoded`` explicitly set onto ``target``."""
    for name in Template.model_fields:
        if name in decoded.model_fields_set:
            setattr(target, name, getattr(decoded, name))


def parse_document(raw: Any, source: str) -> Template:
    """Validate a decoded JSON/YAML document as a Template.

    Raises:
        DecodeError: the document is not a template.
    """
    if not isinstance(raw, dict):
        raise DecodeError(f'template "{source}" must be a mapping, got {type(raw).__name__}')
    try:
        return Template.model_validate(raw)
    except ValidationError as exc:
        raise DecodeError(f'invalid template "{source}": {exc}') from exc


class FileDecoder:
    """Load templates from JSON or YAML files.

    Args:
        base_dir: Directory relative identities are resolved against
                  (default: ``settings.templates_dir``).
    """

    def __init__(self, base_dir: Path | str | None = None) -> None:
        self.base_dir = Path(base_dir if base_dir is not None else settings.templates_dir)

    def path_for(self, identity: str) -> Path:
        path = Path(identity)
        if not path.is_absolute():
            path = self.base_dir / path
        return path

    async def load(self, identity: str, target: Template) -> None:
        path = self.path_for(identity)
        ext = path.suffix.lower()
        if ext not in (".json", ".yml", ".yaml"):
            raise UnsupportedFormatError(f'invalid template type "{path.suffix}": {identity}')
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise TemplateNotFoundError(f"template file not found: {path}") from exc
        except (OSError, UnicodeDecodeError) as exc:
            raise DecodeError(f'failed to read template "{identity}": {exc}') from exc
        try:
            raw = json.loads(text) if ext == ".json" else yaml.safe_load(text)
        except (ValueError, yaml.YAMLError) as exc:
            raise DecodeError(f'failed to parse template "{identity}": {exc}') from exc
        apply_decoded(target, parse_document(raw, identity))
        logger.debug("template_decoded", identity=identity, path=str(path))
