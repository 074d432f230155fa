"""Typed failures raised inside the generation pipeline.

Every error carries a ``kind`` tag that is copied verbatim onto the
``Failure`` outcome returned to callers, and a message that is safe to show
to end users. Provider text is kept on ``MalformedResponse.raw_text`` for
diagnostics only.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    MALFORMED_RESPONSE = "MalformedResponse"
    SCHEMA_VIOLATION = "SchemaViolation"
    PROVIDER_UNAVAILABLE = "ProviderUnavailable"
    PAST_DATE_REQUESTED = "PastDateRequested"
    INVALID_INPUT = "InvalidInput"


class PipelineError(RuntimeError):
    kind: ErrorKind = ErrorKind.INVALID_INPUT


class MalformedResponse(PipelineError):
    """No JSON object could be recovered from the provider output."""

    kind = ErrorKind.MALFORMED_RESPONSE

    def __init__(self, raw_text: str | None, reason: str = "") -> None:
        self.raw_text = raw_text or ""
        self.reason = reason
        super().__init__("The assistant returned a response that could not be read.")


class SchemaViolation(PipelineError):
    """A field the domain object cannot exist without is missing."""

    kind = ErrorKind.SCHEMA_VIOLATION

    def __init__(self, field: str, message: str | None = None) -> None:
        self.field = field
        super().__init__(message or f"Generated result is missing required '{field}'.")


class ProviderUnavailable(PipelineError):
    kind = ErrorKind.PROVIDER_UNAVAILABLE

    def __init__(self, provider: str, reason: str = "") -> None:
        self.provider = provider
        self.reason = reason
        super().__init__(f"The AI provider '{provider}' is unavailable.")


class PastDateRequested(PipelineError):
    kind = ErrorKind.PAST_DATE_REQUESTED

    def __init__(self, requested: object) -> None:
        self.requested = requested
        super().__init__("Cannot book appointments in the past.")


class InvalidInput(PipelineError):
    kind = ErrorKind.INVALID_INPUT


__all__ = [
    "ErrorKind",
    "PipelineError",
    "MalformedResponse",
    "SchemaViolation",
    "ProviderUnavailable",
    "PastDateRequested",
    "InvalidInput",
]
