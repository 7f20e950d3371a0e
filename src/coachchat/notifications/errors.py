"""Notification error taxonomy.

``ValidationError``, ``NotFoundError`` and ``PushConfigurationError`` fail a
whole send and are mapped to HTTP responses by the global error handlers.
``DeliveryError`` and ``LoggingError`` are always caught close to where they
are raised: a failed token or a failed log write never aborts a send.
"""

from __future__ import annotations


class NotificationError(Exception):
    """Base class for notification errors."""

    status_code = 500

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class ValidationError(NotificationError):
    """Required fields missing from a request."""

    status_code = 400


class NotFoundError(NotificationError):
    """Recipient has nothing to deliver to."""

    status_code = 404


class PushConfigurationError(NotificationError):
    """A push backend is needed but its credentials are not configured."""

    status_code = 503


class DeliveryError(NotificationError):
    """A single token's delivery attempt failed."""

    status_code = 502


class LoggingError(NotificationError):
    """Writing a delivery log entry failed."""
