"""Failure classes reported by completion providers."""

from __future__ import annotations

from typing import Optional

TRANSIENT_STATUS_CODES = frozenset({429, 503, 529})
AUTH_STATUS_CODES = frozenset({401, 403})
_TRANSIENT_MARKERS = ("rate limit", "rate_limit", "overloaded")
_AUTH_MARKERS = ("invalid x-api-key", "authentication_error")


class CompletionError(Exception):
    """A provider call failed and retrying will not help."""

    def __init__(self, message: str, *, status: Optional[int] = None, provider: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.provider = provider


class TransientCompletionError(CompletionError):
    """Rate limit or temporary overload; the call may succeed after a wait."""


class AuthCompletionError(CompletionError):
    """Credentials are missing, invalid, or not permitted."""


def classify_failure(message: str, *, status: Optional[int] = None, provider: str = "") -> CompletionError:
    """Map a raw provider failure onto the error hierarchy."""
    lowered = (message or "").lower()
    if status in TRANSIENT_STATUS_CODES or any(marker in lowered for marker in _TRANSIENT_MARKERS):
        return TransientCompletionError(message, status=status, provider=provider)
    if status in AUTH_STATUS_CODES or any(marker in lowered for marker in _AUTH_MARKERS):
        return AuthCompletionError(message, status=status, provider=provider)
    return CompletionError(message, status=status, provider=provider)


def is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, TransientCompletionError)


def is_auth_or_availability(exc: BaseException) -> bool:
    """True for failures that justify switching to a secondary provider."""
    return isinstance(exc, (TransientCompletionError, AuthCompletionError))
