"""
Push relay exception hierarchy.

``ConfigError`` and ``ProviderInitError`` abort a dispatch call before any
batch is sent. ``TransportError`` and ``RecipientError`` describe delivery
failures that are recorded and retried, never raised out of the retry loop.
"""

from __future__ import annotations


class PushError(Exception):
    """Base class for every error raised by the push relay."""


class ConfigError(PushError):
    """Missing or invalid credential identity / credential material."""

    def __init__(self, message: str, project_id: str | None = None) -> None:
        super().__init__(message)
        self.project_id = project_id


class ProviderInitError(PushError):
    """Constructing a Firebase client for a project failed."""

    def __init__(
        self, message: str, project_id: str | None = None, cause: Exception | None = None
    ) -> None:
        super().__init__(message)
        self.project_id = project_id
        self.cause = cause


class DeliveryError(PushError):
    """A delivery failure attributed to one or more recipients."""

    def __init__(
        self, message: str, code: str | None = None, cause: Exception | None = None
    ) -> None:
        super().__init__(message)
        self.code = code
        self.cause = cause


class TransportError(DeliveryError):
    """The provider rejected a whole batch before evaluating recipients."""


class RecipientError(DeliveryError):
    """The provider rejected a single recipient inside an accepted batch."""


class MessageValidationError(PushError):
    """The push request is malformed and must not be sent."""


class FeedbackError(PushError):
    """Delivering a failure report to the feedback endpoint failed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
