"""Version and Identity — the key every template is addressed by.

A version is written ``vMAJOR.MINOR.PATCH``; an identity is
``author/namespace@vMAJOR.MINOR.PATCH``.

Inside pydantic models a ``Version`` serializes to its canonical string and
only accepts a string on input, so ``version: 1.2`` in YAML or
``"version": {"major": 1}`` in JSON are rejected rather than coerced.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from pydantic_core import core_schema

from stepwise.errors import (
    EmptyComponentError,
    EmptyInputError,
    InvalidFormatError,
    InvalidIdentityError,
    NotStringError,
)

_DIGITS_RE = re.compile(r"[0-9]+")
_MAX_COMPONENT = 2**64 - 1


def _parse_component(part: str) -> int:
    clean = part.strip()
    if not clean:
        raise EmptyComponentError("empty version component")
    if not _DIGITS_RE.fullmatch(clean):
        raise InvalidFormatError(f"invalid version number '{clean}'")
    value = int(clean)
    if value > _MAX_COMPONENT:
        raise InvalidFormatError(f"invalid version number '{clean}': value out of range")
    return value


@dataclass(frozen=True, order=True)
class Version:
    """Semantic version triple, ordered by (major, minor, patch)."""

    major: int = 0
    minor: int = 0
    patch: int = 0

    @classmethod
    def parse(cls, text: str) -> "Version":
        """Parse ``vX.Y.Z``.

        Raises:
            EmptyInputError: ``text`` is empty.
            InvalidFormatError: missing ``v`` prefix, wrong component count
                or a non-numeric component.
            EmptyComponentError: a component is empty after trimming.
        """
        if not text:
            raise EmptyInputError("empty version input")
        if text[0] != "v":
            raise InvalidFormatError(f"invalid version prefix '{text[0]}', expected 'v'")
        parts = text[1:].split(".")
        if len(parts) != 3:
            raise InvalidFormatError(f'invalid version format "{text}": expected vX.Y.Z')
        major, minor, patch = (_parse_component(p) for p in parts)
        return cls(major, minor, patch)

    def __str__(self) -> str:
        return f"v{self.major}.{self.minor}.{self.patch}"

    def is_zero(self) -> bool:
        return self.major == 0 and self.minor == 0 and self.patch == 0

    # ── pydantic integration ──────────────────────────────────

    @classmethod
    def _validate(cls, value: Any) -> "Version":
        if isinstance(value, Version):
            return value
        if not isinstance(value, str):
            raise NotStringError(f"version must be a string, got {type(value).__name__}")
        return cls.parse(value)

    @classmethod
    def __get_pydantic_core_schema__(cls, source: Any, handler: Any) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls._validate,
            serialization=core_schema.plain_serializer_function_ser_schema(str),
        )


def format_version(version: Version) -> str:
    """Canonical ``vMAJOR.MINOR.PATCH`` text."""
    return str(version)


def compare(a: Version, b: Version) -> int:
    """Return -1, 0 or 1 as ``a`` is less than, equal to or greater than ``b``."""
    if a < b:
        return -1
    if a > b:
        return 1
    return 0


@dataclass(frozen=True)
class Identity:
    """``author/namespace@version`` — lookup key and human-readable label."""

    author: str
    namespace: str
    version: Version = Version()

    @classmethod
    def parse(cls, text: str) -> "Identity":
        author, sep, rest = text.partition("/")
        if not sep:
            raise InvalidIdentityError(
                f'invalid template uses: "{text}", expected "author/namespace@vX.Y.Z"'
            )
        namespace, sep, version = rest.partition("@")
        if not sep:
            raise InvalidIdentityError(
                f'invalid template uses: "{text}", expected "author/namespace@vX.Y.Z"'
            )
        return cls(author, namespace, Version.parse(version))

    def __str__(self) -> str:
        return f"{self.author}/{self.namespace}@{self.version}"
