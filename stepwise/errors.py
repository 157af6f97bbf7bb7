"""Stepwise error hierarchy.

Every failure aborts the enclosing resolve/run. Raise sites name the
template, step and field involved and chain the underlying cause with
``raise ... from exc`` so the innermost error is never lost.
"""

from __future__ import annotations


class StepwiseError(Exception):
    """Base class for every error raised by Stepwise."""


# ── Identity & version ────────────────────────────────────────────────────────


class VersionError(StepwiseError, ValueError):
    """A version or identity string could not be parsed.

    Also a ``ValueError`` so pydantic reports it as a validation error.
    """


class EmptyInputError(VersionError):
    pass


class EmptyComponentError(VersionError):
    pass


class InvalidFormatError(VersionError):
    pass


class InvalidIdentityError(InvalidFormatError):
    """Identity is not of the form ``author/namespace@vX.Y.Z``."""


class NotStringError(VersionError):
    """A serialized version was not a string (e.g. ``version: 1.2``)."""


# ── Decoding & resolution ─────────────────────────────────────────────────────


class DecoderMissingError(StepwiseError):
    """A resolver was needed but no decoder was configured."""


class TemplateNotFoundError(StepwiseError):
    pass


class UnsupportedFormatError(StepwiseError):
    """Template file extension is not one of .json / .yml / .yaml."""


class DecodeError(StepwiseError):
    """Template source was found but is not a valid template document."""


class CycleDetectedError(StepwiseError):
    """A template (indirectly) uses itself."""

    def __init__(self, chain: list[str]) -> None:
        self.chain = chain
        super().__init__(f"template uses cycle detected: {' -> '.join(chain)}")


# ── Environment & rendering ───────────────────────────────────────────────────


class InvalidNameError(StepwiseError):
    """An environment key is not a valid renderer function name."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f'invalid environment variable name: "{name}"')


class RenderError(StepwiseError):
    pass


class SkipParseError(StepwiseError):
    pass


class InvalidSetValueError(StepwiseError):
    pass


# ── HTTP steps ────────────────────────────────────────────────────────────────


class EmptyURLError(StepwiseError):
    pass


class RequestBuildError(StepwiseError):
    pass


class RequestTransportError(StepwiseError):
    pass


class ResponseReadError(StepwiseError):
    pass


class BadStatusError(StepwiseError):
    """HTTP response status outside [200, 300)."""

    def __init__(self, step: str, status_code: int, body: bytes) -> None:
        self.step = step
        self.status_code = status_code
        self.body = body
        text = body.decode("utf-8", errors="replace")
        super().__init__(f"step {step} failed with status code: {status_code}\n{text}")


def format_error(exc: BaseException) -> str:
    """Flatten an exception and its ``__cause__`` chain into one message."""
    parts: list[str] = []
    current: BaseException | None = exc
    while current is not None:
        message = str(current) or type(current).__name__
        if message not in parts:
            parts.append(message)
        current = current.__cause__
    return ": ".join(parts)
