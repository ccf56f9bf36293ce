# notificationhubs/connection.py
"""Connection string parsing for Notification Hubs namespaces."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlsplit, urlunsplit

from .exceptions import InvalidConnectionStringError

_KEY_ENDPOINT = "endpoint"
_KEY_SAS_KEY_NAME = "sharedaccesskeyname"
_KEY_SAS_KEY = "sharedaccesskey"


@dataclass(frozen=True, slots=True)
class ConnectionParams:
    """Endpoint and key material resolved from a connection string.

    Attributes:
        endpoint: HTTPS base URL of the namespace, always ending with `/`.
        shared_access_key_name: Name of the SAS authorization rule.
        shared_access_key: Base64 key of the SAS authorization rule.
    """

    endpoint: str
    shared_access_key_name: str
    shared_access_key: str

    @classmethod
    def from_connection_string(cls, connection_string: str) -> ConnectionParams:
        """Parse `Endpoint=sb://...;SharedAccessKeyName=...;SharedAccessKey=...`.

        Raises:
            InvalidConnectionStringError: on malformed or incomplete input.
        """
        if not connection_string or not connection_string.strip():
            raise InvalidConnectionStringError("Connection string is empty")

        parts: dict[str, str] = {}
        for segment in connection_string.split(";"):
            if not segment.strip():
                continue
            key, sep, value = segment.partition("=")
            if not sep:
                raise InvalidConnectionStringError(
                    f"Malformed connection string segment: {key.strip()!r}"
                )
            # SharedAccessKey values are base64 and may themselves contain '='
            parts[key.strip().lower()] = value.strip()

        missing = [
            name
            for name in (_KEY_ENDPOINT, _KEY_SAS_KEY_NAME, _KEY_SAS_KEY)
            if not parts.get(name)
        ]
        if missing:
            raise InvalidConnectionStringError(
                f"Connection string is missing: {', '.join(missing)}"
            )

        return cls(
            endpoint=_normalize_endpoint(parts[_KEY_ENDPOINT]),
            shared_access_key_name=parts[_KEY_SAS_KEY_NAME],
            shared_access_key=parts[_KEY_SAS_KEY],
        )


def _normalize_endpoint(raw: str) -> str:
    """Rewrite `sb://` endpoints to HTTPS and guarantee a trailing slash."""
    split = urlsplit(raw)
    if not split.scheme or not split.netloc:
        raise InvalidConnectionStringError(f"Invalid endpoint: {raw!r}")

    scheme = split.scheme.lower()
    if scheme == "sb":
        scheme = "https"
    elif scheme not in ("http", "https"):
        raise InvalidConnectionStringError(f"Unsupported endpoint scheme: {scheme!r}")

    path = split.path if split.path.endswith("/") else f"{split.path}/"
    return urlunsplit((scheme, split.netloc, path, "", ""))
