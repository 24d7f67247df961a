"""Error taxonomy shared by the API client and the enrichment pipeline."""

from __future__ import annotations


class ApiError(Exception):
    """Base error for calls to external services.

    ``kind`` is one of ``transient``, ``fatal``, ``parse`` or ``configuration``.
    """

    kind = "api"

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status

    def __str__(self) -> str:
        if self.status is None:
            return f"[{self.kind}] {self.message}"
        return f"[{self.kind}] HTTP {self.status}: {self.message}"


class TransientServiceError(ApiError):
    """Rate limited, temporarily unavailable, or transport failure."""

    kind = "transient"


class FatalServiceError(ApiError):
    """Non-retryable status, or a malformed/empty response after retries."""

    kind = "fatal"


class ParseError(ApiError):
    """Response text could not be recovered as JSON."""

    kind = "parse"

    def __init__(self, message: str, *, excerpt: str = "") -> None:
        super().__init__(message)
        self.excerpt = excerpt

    def __str__(self) -> str:
        return f"[{self.kind}] {self.message} (original: {self.excerpt!r})"


class ConfigurationError(ApiError):
    """A required credential or identifier is missing or malformed."""

    kind = "configuration"
