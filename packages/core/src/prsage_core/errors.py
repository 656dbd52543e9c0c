"""Error taxonomy shared by every prsage component.

The split matters for fallback: only TransportError (and its RateLimitError
subclass) describes a provider that could not be reached. ConfigurationError
and ValidationError describe a request that would fail the same way against
any provider, so they always propagate unchanged.
"""

from __future__ import annotations


class PrsageError(Exception):
    """Base class for all errors raised by prsage."""

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = {k: v for k, v in context.items() if v is not None}

    def to_dict(self) -> dict:
        return {"name": type(self).__name__, "message": self.message, "context": self.context}


class ConfigurationError(PrsageError):
    """No usable provider, missing credentials, or an invalid setting."""


class ValidationError(PrsageError):
    """A provider response could not be parsed or failed the schema."""

    def __init__(self, message: str, errors: list[str] | None = None, **context):
        super().__init__(message, **context)
        self.errors = list(errors or [])

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["errors"] = self.errors
        return data


class TransportError(PrsageError):
    """Network failure, timeout or 5xx from a collaborator."""

    def __init__(self, message: str, provider: str | None = None, status_code: int | None = None, **context):
        super().__init__(message, provider=provider, status_code=status_code, **context)
        self.provider = provider
        self.status_code = status_code


class RateLimitError(TransportError):
    """The collaborator gave up after its own rate-limit retries."""

    def __init__(self, message: str, provider: str | None = None, retry_after: float | None = None, **context):
        super().__init__(message, provider=provider, status_code=429, retry_after=retry_after, **context)
        self.retry_after = retry_after


class NotFoundError(PrsageError):
    """The pull request, file or commit does not exist."""


def format_error_for_user(error: BaseException) -> str:
    """Return text that is safe to post publicly: the message, never a traceback."""
    if isinstance(error, PrsageError):
        return error.message
    text = str(error)
    return text or "An unexpected error occurred. Please try again."
