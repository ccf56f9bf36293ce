# notificationhubs/token_provider.py
"""Shared Access Signature (SAS) tokens for hub requests.

The client only depends on the `TokenSource` protocol; `SasTokenProvider` is
the default implementation backed by the key material of the connection
string.
"""

from __future__ import annotations

import base64
import logging
import time
from datetime import timedelta
from typing import Protocol
from urllib.parse import quote, urlsplit, urlunsplit

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, hmac

from .connection import ConnectionParams
from .const import SAS_TOKEN_EXPIRY_MARGIN_S, SAS_TOKEN_TTL_S
from .util import redact

_LOGGER = logging.getLogger(__name__)


class TokenSource(Protocol):
    """Produces an `Authorization` header value for a target URL."""

    def get_token(self, url: str) -> str | None:
        """Return a token for `url`, or None if none can be produced."""


def sas_audience(url: str) -> str:
    """Return the signed resource URI for `url` (query dropped, lowercased, encoded)."""
    split = urlsplit(url)
    bare = urlunsplit((split.scheme, split.netloc, split.path, "", ""))
    return quote(bare.lower(), safe="")


class SasTokenProvider:
    """Mint and cache SAS tokens per audience."""

    def __init__(
        self,
        params: ConnectionParams,
        *,
        ttl: timedelta = timedelta(seconds=SAS_TOKEN_TTL_S),
        clock=time.time,
    ) -> None:
        self._params = params
        self._ttl_s = int(ttl.total_seconds())
        self._clock = clock
        self._cache: dict[str, tuple[str, int]] = {}

    def get_token(self, url: str) -> str | None:
        audience = sas_audience(url)
        now = int(self._clock())

        cached = self._cache.get(audience)
        if cached is not None and cached[1] - SAS_TOKEN_EXPIRY_MARGIN_S > now:
            return cached[0]

        expiry = now + self._ttl_s
        try:
            signature = self._sign(f"{audience}\n{expiry}")
        except (UnsupportedAlgorithm, ValueError) as err:
            _LOGGER.error(
                "Unable to sign SAS token for rule %s: %s",
                self._params.shared_access_key_name,
                err,
            )
            return None

        token = (
            f"SharedAccessSignature sr={audience}"
            f"&sig={quote(signature, safe='')}"
            f"&se={expiry}"
            f"&skn={self._params.shared_access_key_name}"
        )
        self._prune(now)
        self._cache[audience] = (token, expiry)
        _LOGGER.debug(
            "Minted SAS token %s for %s (expires %d)", redact(token), audience, expiry
        )
        return token

    def _prune(self, now: int) -> None:
        expired = [key for key, (_, expiry) in self._cache.items() if expiry <= now]
        for key in expired:
            del self._cache[key]

    def _sign(self, string_to_sign: str) -> str:
        mac = hmac.HMAC(self._params.shared_access_key.encode("utf-8"), hashes.SHA256())
        mac.update(string_to_sign.encode("utf-8"))
        return base64.b64encode(mac.finalize()).decode("ascii")
