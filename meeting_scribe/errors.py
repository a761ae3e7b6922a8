"""
Error taxonomy for the pre-processing pipeline and the remote executor.

Errors fall into three groups:
- Configuration: missing or malformed settings (fatal on first use)
- Audio processing: decode, encode and resource failures in the DSP pipeline
- Remote: failures of the language-model API, tagged with an ErrorCategory
  so the executor can tell retryable exhaustion from fatal request errors
"""

from enum import Enum
from typing import Optional


class ErrorCategory(Enum):
    """Classification of a remote failure."""

    RATE_LIMITED = "rate_limited"
    AUTH_INVALID = "auth_invalid"
    FATAL = "fatal"

    @property
    def is_transient(self) -> bool:
        return self is not ErrorCategory.FATAL


class MeetingScribeError(Exception):
    """Base class for all errors raised by meeting_scribe."""


class ConfigurationError(MeetingScribeError):
    """A required setting is missing or cannot be parsed."""


class OperationCancelled(MeetingScribeError):
    """The caller asked to stop before the operation finished."""


class AudioProcessingError(MeetingScribeError):
    """Base class for failures inside the audio pipeline."""


class DecodeError(AudioProcessingError):
    """Source bytes cannot be parsed as audio."""


class EncodingTooLargeError(AudioProcessingError):
    """Encoded output would exceed the addressable buffer ceiling."""


class ResourceExhaustionError(AudioProcessingError):
    """The audio platform could not allocate a context or buffer."""


class RemoteError(MeetingScribeError):
    """A failure reported by the remote language-model service."""

    def __init__(self, message: str, category: ErrorCategory = ErrorCategory.FATAL):
        super().__init__(message)
        self.category = category


class TransientRemoteError(RemoteError):
    """Quota or credential failure; another key or model may succeed."""

    def __init__(self, message: str, category: ErrorCategory = ErrorCategory.RATE_LIMITED):
        if not category.is_transient:
            raise ValueError("TransientRemoteError requires a transient category")
        super().__init__(message, category)


class FatalRemoteError(RemoteError):
    """Malformed request, server fault or oversized payload. Never retried."""

    def __init__(self, message: str):
        super().__init__(message, ErrorCategory.FATAL)


class PayloadTooLargeError(FatalRemoteError):
    """Audio payload is too large to be sent inline."""


class ExhaustedError(RemoteError):
    """Every credential and fallback model has been tried without success."""

    def __init__(self, message: str, last_error: Optional[BaseException] = None, attempts: int = 0):
        category = classify_error(last_error) if last_error is not None else ErrorCategory.FATAL
        super().__init__(message, category)
        self.last_error = last_error
        self.attempts = attempts


RATE_LIMIT_MARKERS = ("quota", "resource exhausted", "resource_exhausted", "rate limit")
AUTH_MARKERS = ("api key not valid", "api_key_invalid", "invalid api key")

_STATUS_CATEGORIES = {
    429: ErrorCategory.RATE_LIMITED,
    401: ErrorCategory.AUTH_INVALID,
    403: ErrorCategory.AUTH_INVALID,
}


def _status_of(exc: BaseException) -> Optional[int]:
    for attr in ("status_code", "status", "code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def classify_error(exc: BaseException) -> ErrorCategory:
    """
    Classify an exception raised by a remote call.

    Structured status codes are inspected first (429 for rate limits, 401/403
    for credentials). Otherwise the message is matched against known quota
    and invalid-key phrases. Everything else is fatal.

    Args:
        exc: Exception raised by the remote collaborator

    Returns:
        ErrorCategory of the failure
    """
    if isinstance(exc, RemoteError):
        return exc.category

    status = _status_of(exc)
    if status in _STATUS_CATEGORIES:
        return _STATUS_CATEGORIES[status]

    message = str(exc).lower()
    if any(marker in message for marker in RATE_LIMIT_MARKERS):
        return ErrorCategory.RATE_LIMITED
    if any(marker in message for marker in AUTH_MARKERS):
        return ErrorCategory.AUTH_INVALID
    return ErrorCategory.FATAL
