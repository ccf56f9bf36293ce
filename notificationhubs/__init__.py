# notificationhubs/__init__.py
"""Device registration reconciler for Notification Hubs."""

from __future__ import annotations

from .client import NotificationClient
from .connection import ConnectionParams
from .const import API_VERSION, DEFAULT_REGISTRATION_NAME
from .decoder import Decoder, RegistrationDecoder
from .exceptions import (
    AlreadyConfiguredError,
    ErrorKind,
    FailedToRetrieveAuthorizationTokenError,
    InvalidConnectionStringError,
    InvalidTemplateNameError,
    NotConfiguredError,
    NotificationHubError,
    RegistrationDecodeError,
    UnknownHubError,
)
from .local_storage import LocalStorage
from .registration import Registration, Template, validate_template_name
from .response import Response
from .token_provider import SasTokenProvider, TokenSource
from .transport import AiohttpTransport, Transport, TransportResponse

__all__ = [
    "API_VERSION",
    "DEFAULT_REGISTRATION_NAME",
    "AiohttpTransport",
    "AlreadyConfiguredError",
    "ConnectionParams",
    "Decoder",
    "ErrorKind",
    "FailedToRetrieveAuthorizationTokenError",
    "InvalidConnectionStringError",
    "InvalidTemplateNameError",
    "LocalStorage",
    "NotConfiguredError",
    "NotificationClient",
    "NotificationHubError",
    "Registration",
    "RegistrationDecodeError",
    "RegistrationDecoder",
    "Response",
    "SasTokenProvider",
    "Template",
    "TokenSource",
    "Transport",
    "TransportResponse",
    "UnknownHubError",
    "validate_template_name",
]
