# notificationhubs/util.py
"""Small helpers shared across the client."""

from __future__ import annotations

import platform
from typing import Any

from .const import API_VERSION, CONTENT_TYPE_JSON, CONTENT_TYPE_XML


def device_token_hex(device_token: bytes | bytearray | str) -> str:
    """Return the lowercase hex form of an APNs device token.

    Raw bytes are hex-encoded; strings are normalized the way they are often
    pasted (`<ab12 cd34>`).
    """
    if isinstance(device_token, (bytes, bytearray)):
        return bytes(device_token).hex()
    return device_token.strip().strip("<>").replace(" ", "").lower()


def content_type_for(payload: str) -> str:
    """Return the content type for a registration payload."""
    if payload.startswith("{"):
        return CONTENT_TYPE_JSON
    return CONTENT_TYPE_XML


def user_agent(api_origin: str) -> str:
    """Return the product user agent sent with every request."""
    return (
        f"NOTIFICATIONHUBS/{API_VERSION}(api-origin={api_origin}; "
        f"os={platform.system()}; os_version={platform.release()};)"
    )


def redact(value: Any, keep_tail: int = 6) -> str:
    """Return a redacted version of tokens/ids for safe logging."""
    s = str(value or "")
    if not s:
        return ""
    if len(s) <= keep_tail:
        return "•••"
    return f"•••{s[-keep_tail:]}"
