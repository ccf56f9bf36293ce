# notificationhubs/transport.py
"""HTTP transport used by the client.

`Transport` is the narrow contract the client depends on. `AiohttpTransport`
is the default implementation; it can reuse a caller-owned aiohttp
`ClientSession` or lazily create (and later close) its own.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Protocol

from aiohttp import ClientSession, ClientTimeout

_LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class TransportResponse:
    """Status, headers and raw body of a completed HTTP exchange."""

    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""


class Transport(Protocol):
    """Performs one HTTP exchange.

    Implementations raise on transport-level failures (DNS, TLS, connection,
    timeout) and return a `TransportResponse` for every HTTP status.
    """

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str],
        data: bytes | None,
        timeout: float,
    ) -> TransportResponse:
        """Send the request and return the response."""


class AiohttpTransport:
    """aiohttp-backed `Transport`."""

    def __init__(self, http_client_session: ClientSession | None = None) -> None:
        self._http_client_session: ClientSession | None = http_client_session
        self._local_session: ClientSession | None = None

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str],
        data: bytes | None,
        timeout: float,
    ) -> TransportResponse:
        async with self._session.request(
            method,
            url,
            headers=dict(headers),
            data=data,
            timeout=ClientTimeout(total=timeout),
        ) as resp:
            body = await resp.read()
            return TransportResponse(
                status=resp.status,
                headers={key: value for key, value in resp.headers.items()},
                body=body,
            )

    @property
    def _session(self) -> ClientSession:
        """Return the aiohttp session, creating one if it doesn't exist."""
        if self._http_client_session:
            return self._http_client_session
        if self._local_session is None:
            self._local_session = ClientSession()
        return self._local_session

    async def close(self) -> None:
        """Close the local aiohttp session if one was created."""
        session = self._local_session
        self._local_session = None
        if session:
            _LOGGER.debug("Closing local aiohttp session")
            await session.close()
