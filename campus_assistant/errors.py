"""Error taxonomy for the assistant.

Every error raised across module boundaries derives from
:class:`AssistantError` so the API layer can map it to a status code and a
user-facing sentence in one place. Only configuration and validation errors
ever reach a client; provider, search and transmission errors are recovered
where they happen.
"""

from __future__ import annotations

from typing import Optional


class AssistantError(Exception):
    """Base class for assistant errors.

    Attributes:
        code: machine readable error code, e.g. ``"SERVICE_DISABLED"``.
        message: human readable description.
        http_status: status code used when the error reaches the API layer.
        extra: additional context for logging.
    """

    http_status = 500

    def __init__(self, code: str, message: str, http_status: Optional[int] = None, **extra):
        self.code = code
        self.message = message
        if http_status is not None:
            self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class ConfigurationError(AssistantError):
    """Service disabled or a required credential is missing."""

    http_status = 503


class ValidationError(AssistantError):
    """Request payload is missing required input."""

    http_status = 400


class ProviderError(AssistantError):
    """The generation provider failed or returned no content."""

    http_status = 502


class SearchError(AssistantError):
    """Articles could not be fetched or parsed."""

    http_status = 502


class TransmissionError(AssistantError):
    """A stream frame could not be encoded."""
