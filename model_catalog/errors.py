"""
Error taxonomy for catalog validation.

Structural errors (the provider reply could not be interpreted) and
cancellation are raised internally and converted to result objects at the
public boundary. Provider failures are classified into user-actionable
categories once retries are exhausted.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class CatalogError(Exception):
    """Base class for catalog validation errors."""


class NoTabularHeaderFound(CatalogError):
    """The provider reply does not contain the tabular header row."""

    def __init__(self, message: str = "Could not find tabular header in provider response"):
        super().__init__(message)


class EmptyValidationResult(CatalogError):
    """The provider reply decoded to zero records."""

    def __init__(self, message: str = "Failed to parse validated models"):
        super().__init__(message)


class NoProviderConfigured(CatalogError):
    """No enabled provider with usable credentials was found."""

    def __init__(
        self,
        message: str = "No enabled API provider found. Please configure an API provider in Settings.",
    ):
        super().__init__(message)


class ValidationCancelled(CatalogError):
    """Cooperative cancellation was requested by the user."""

    def __init__(self, message: str = "Validation cancelled by user"):
        super().__init__(message)


class ErrorKind(str, Enum):
    """User-actionable error categories."""
    NO_PROVIDER = "no_provider"
    AUTHENTICATION = "authentication"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    STRUCTURAL = "structural"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"


@dataclass
class ClassifiedError:
    """An error message paired with its category."""
    kind: ErrorKind
    message: str


# Order matters: the first matching pattern wins.
_CLASSIFICATION_RULES = [
    ("No enabled", ErrorKind.NO_PROVIDER,
     "No API providers configured. Please set up an API provider in Sync settings."),
    ("401", ErrorKind.AUTHENTICATION,
     "API authentication failed (401). Check your API key."),
    ("403", ErrorKind.FORBIDDEN,
     "API access forbidden (403). Check your account permissions."),
    ("404", ErrorKind.NOT_FOUND,
     "API endpoint not found (404). The provider may have changed their API."),
    ("429", ErrorKind.RATE_LIMITED,
     "API rate limit exceeded (429). Try again later or use a different provider."),
    ("500", ErrorKind.SERVER_ERROR,
     "API server error (500). The provider's service may be experiencing issues."),
]


def classify_error(message: str) -> ClassifiedError:
    """
    Map a raw error message to a user-actionable category.

    Unmatched messages are surfaced verbatim with kind UNKNOWN.
    """
    for needle, kind, friendly in _CLASSIFICATION_RULES:
        if needle in message:
            return ClassifiedError(kind=kind, message=friendly)
    return ClassifiedError(kind=ErrorKind.UNKNOWN, message=message)


def classify_exception(exc: BaseException) -> ClassifiedError:
    """Classify an exception, keeping structural and cancellation kinds intact."""
    if isinstance(exc, ValidationCancelled):
        return ClassifiedError(kind=ErrorKind.CANCELLED, message=str(exc))
    if isinstance(exc, (NoTabularHeaderFound, EmptyValidationResult)):
        return ClassifiedError(kind=ErrorKind.STRUCTURAL, message=str(exc))
    if isinstance(exc, NoProviderConfigured):
        return ClassifiedError(kind=ErrorKind.NO_PROVIDER, message=_CLASSIFICATION_RULES[0][2])
    return classify_error(error_message(exc))


def error_message(exc: Optional[BaseException]) -> str:
    """Return a printable message for an exception."""
    if exc is None:
        return "Unknown error"
    text = str(exc)
    return text or exc.__class__.__name__


__all__ = [
    "CatalogError",
    "NoTabularHeaderFound",
    "EmptyValidationResult",
    "NoProviderConfigured",
    "ValidationCancelled",
    "ErrorKind",
    "ClassifiedError",
    "classify_error",
    "classify_exception",
    "error_message",
]
