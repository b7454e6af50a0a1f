"""
Centralized error handling for notifier runs.

Error taxonomy:
  (a) PushDeliveryError or SQLAlchemyError: provider or datastore unreachable; item skipped.
  (b) PushGoneError: provider confirmed the endpoint is gone; subscription deleted.
  (c) MalformedEventError: event cannot be rendered or has no resolvable audience; retired unsent.
  (d) ConfigurationError: required settings missing; the invocation aborts before touching events.

Only (d) is fatal. Routes map exceptions with notifier_error_to_http.
"""
from __future__ import annotations

from typing import Callable

from fastapi import HTTPException

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class NotifierError(Exception):
    """Base class for notifier failures."""


class ConfigurationError(NotifierError):
    """Required configuration or credentials are absent or invalid."""

    def __init__(self, problems: list[str]):
        self.problems = problems
        super().__init__("Notifier misconfigured: " + "; ".join(problems))


class PushGoneError(NotifierError):
    """Raised when the push service returns 404/410 (subscription invalid)."""

    def __init__(self, endpoint: str):
        self.endpoint = endpoint
        super().__init__(f"Push subscription gone: {endpoint[:60]}")


class PushDeliveryError(NotifierError):
    """Raised when a single push delivery fails for any other reason."""


class MalformedEventError(NotifierError):
    """Queued event payload cannot be parsed or rendered."""


# ---------------------------------------------------------------------------
# Constants: status codes
# ---------------------------------------------------------------------------

STATUS_SERVICE_UNAVAILABLE = 503  # missing credentials / configuration
STATUS_INTERNAL_ERROR = 500


# ---------------------------------------------------------------------------
# Error rules: (predicate, status_code, detail builder)
# Add new rules here instead of scattering checks in routes.
# ---------------------------------------------------------------------------

def _is_config_error(exc: Exception) -> bool:
    return isinstance(exc, ConfigurationError)


def _config_detail(exc: Exception) -> dict:
    return {"ok": False, "error": "configuration", "problems": getattr(exc, "problems", [str(exc)])}


# List of (predicate, status_code, detail). First match wins.
NOTIFIER_ERROR_RULES: list[tuple[Callable[[Exception], bool], int, Callable[[Exception], dict]]] = [
    (_is_config_error, STATUS_SERVICE_UNAVAILABLE, _config_detail),
]


def notifier_error_to_http(exc: Exception) -> HTTPException:
    """
    Map an exception raised by a notifier run into an HTTPException.
    Uses NOTIFIER_ERROR_RULES for known error types; otherwise returns 500 with the exception message.
    """
    for predicate, status_code, detail in NOTIFIER_ERROR_RULES:
        if predicate(exc):
            return HTTPException(status_code=status_code, detail=detail(exc))
    return HTTPException(status_code=STATUS_INTERNAL_ERROR, detail={"ok": False, "error": str(exc)})
