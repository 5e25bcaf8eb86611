"""
Centralized error handling for push dispatch.

Exception taxonomy for the dispatch core, plus a reusable helper so routes stay thin:
push-transport failures are folded into the dispatch outcome, and only validation and
persistence failures reach the API layer as hard errors.
"""
from __future__ import annotations

from typing import Callable

from fastapi import HTTPException

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class IntentValidationError(ValueError):
    """Malformed notification intent (empty title/body, unknown category). Raised before any side effect."""


class UnconfiguredProviderError(Exception):
    """Provider has no usable credentials. Non-fatal: the provider is skipped for this dispatch."""

    def __init__(self, provider: str, reason: str | None = None) -> None:
        self.provider = provider
        self.reason = reason or "credentials not configured"
        super().__init__(f"{provider}: {self.reason}")


class DeliveryFailure(Exception):
    """Provider send failed. Subclasses decide whether the handle is dead or the send may be retried."""

    permanent = False

    def __init__(self, reason: str, *, status_code: int | None = None) -> None:
        self.reason = reason
        self.status_code = status_code
        super().__init__(reason)


class PermanentDeliveryFailure(DeliveryFailure):
    """Handle is dead (unregistered token, gone subscription); its registration gets marked invalid."""

    permanent = True


class TransientDeliveryFailure(DeliveryFailure):
    """Network error, timeout, rate limit, 5xx or credential trouble. Retry is the caller's policy."""


class PersistenceError(Exception):
    """Notification record write failed. Fatal to the dispatch call."""


# ---------------------------------------------------------------------------
# Constants: status codes and user-facing messages
# ---------------------------------------------------------------------------

STATUS_UNPROCESSABLE = 422
STATUS_SERVICE_UNAVAILABLE = 503  # database down or write rejected
STATUS_INTERNAL_ERROR = 500

MSG_PERSISTENCE_FAILED = "Notification could not be saved. Try again later."
MSG_PUSH_PARTIAL = "notification saved, push delivery partial"


# ---------------------------------------------------------------------------
# Error rules: (predicate, status_code, detail)
# Add new rules here instead of scattering checks in routes.
# ---------------------------------------------------------------------------

def _is_validation_error(exc: Exception) -> bool:
    return isinstance(exc, IntentValidationError)


def _is_persistence_error(exc: Exception) -> bool:
    return isinstance(exc, PersistenceError)


# List of (predicate, status_code, detail). detail=None uses the exception message. First match wins.
DISPATCH_ERROR_RULES: list[tuple[Callable[[Exception], bool], int, str | None]] = [
    (_is_validation_error, STATUS_UNPROCESSABLE, None),
    (_is_persistence_error, STATUS_SERVICE_UNAVAILABLE, MSG_PERSISTENCE_FAILED),
]


def dispatch_error_to_http(exc: Exception) -> HTTPException:
    """
    Map an exception raised by dispatch into an HTTPException.
    Uses DISPATCH_ERROR_RULES for known error types; otherwise returns 500 with the exception message.
    """
    for predicate, status_code, detail in DISPATCH_ERROR_RULES:
        if predicate(exc):
            return HTTPException(status_code=status_code, detail=detail or str(exc))
    return HTTPException(status_code=STATUS_INTERNAL_ERROR, detail=str(exc))
