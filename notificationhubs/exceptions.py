# notificationhubs/exceptions.py
"""Typed error hierarchy for the Notification Hubs registration client."""

from __future__ import annotations

from enum import Enum


class ErrorKind(Enum):
    NOT_CONFIGURED = "not_configured"
    FAILED_TO_RETRIEVE_AUTHORIZATION_TOKEN = "failed_to_retrieve_authorization_token"
    UNKNOWN = "unknown"
    INVALID_CONNECTION_STRING = "invalid_connection_string"
    INVALID_TEMPLATE_NAME = "invalid_template_name"
    ALREADY_CONFIGURED = "already_configured"


class NotificationHubError(Exception):
    """Base exception for Notification Hubs client errors."""

    kind: ErrorKind = ErrorKind.UNKNOWN


class NotConfiguredError(NotificationHubError):
    """Raised when an operation runs before `configure()` succeeded."""

    kind = ErrorKind.NOT_CONFIGURED

    def __init__(self) -> None:
        super().__init__("Notification hub client is not configured")


class FailedToRetrieveAuthorizationTokenError(NotificationHubError):
    """Raised when the token source cannot produce a token for a URL."""

    kind = ErrorKind.FAILED_TO_RETRIEVE_AUTHORIZATION_TOKEN

    def __init__(self, url: str | None = None) -> None:
        super().__init__("Failed to retrieve authorization token")
        self.url = url


class UnknownHubError(NotificationHubError):
    """Raised for non-2xx responses and malformed success responses."""

    kind = ErrorKind.UNKNOWN

    def __init__(self, message: str | None = None, *, status: int | None = None):
        if message is None:
            message = (
                f"Unexpected response from notification hub (status={status})"
                if status is not None
                else "Unexpected response from notification hub"
            )
        super().__init__(message)
        self.status = status


class RegistrationDecodeError(UnknownHubError):
    """Raised when a response body does not yield the expected registrations."""


class InvalidConnectionStringError(NotificationHubError):
    """Raised when a connection string cannot be parsed."""

    kind = ErrorKind.INVALID_CONNECTION_STRING


class AlreadyConfiguredError(NotificationHubError):
    """Raised when `configure()` is called on a configured client."""

    kind = ErrorKind.ALREADY_CONFIGURED

    def __init__(self, hub_name: str) -> None:
        super().__init__(
            f"Notification hub client is already configured for {hub_name!r}"
        )
        self.hub_name = hub_name


class InvalidTemplateNameError(NotificationHubError):
    """Raised when a template name is empty, reserved or malformed."""

    kind = ErrorKind.INVALID_TEMPLATE_NAME

    def __init__(self, name: str, reason: str) -> None:
        super().__init__(f"Invalid template name {name!r}: {reason}")
        self.name = name
        self.reason = reason


__all__ = [
    "AlreadyConfiguredError",
    "ErrorKind",
    "FailedToRetrieveAuthorizationTokenError",
    "InvalidConnectionStringError",
    "InvalidTemplateNameError",
    "NotConfiguredError",
    "NotificationHubError",
    "RegistrationDecodeError",
    "UnknownHubError",
]
