# notificationhubs/client.py
"""
Registration reconciliation client for Notification Hubs (async-first).

`NotificationClient` keeps a device's named registrations in sync with a hub:

- A per-hub `LocalStorage` remembers the last confirmed registration per name
  and the last reconciled device token, so repeat registrations become a
  single PUT instead of list + create + PUT.
- A changed device token (or a fresh/outdated cache) triggers a listing of
  the hub's registrations before any create/update, so existing server-side
  registrations are reused instead of duplicated.
- A `410 Gone` on update means the cached id is stale; the client recreates
  the registration exactly once.
- `cancel_all()` deletes every registration of a device token concurrently
  and reports the first failure.

Every operation returns a `Response` and never raises for hub/transport
failures; an optional completion callback receives the same object exactly
once. Collaborators (transport, token source, decoder, storage) are injected
for testing; defaults are built by `configure()`.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from http import HTTPStatus
from pathlib import Path
from typing import TypeVar
from urllib.parse import urlsplit

from aiohttp import ClientError

from ._typing import CompletionCallable
from .connection import ConnectionParams
from .const import (
    API_VERSION,
    CREATE_REGISTRATION_ID_PATH,
    DEFAULT_API_ORIGIN,
    DEFAULT_REGISTRATION_NAME,
    DEFAULT_STORAGE_DIR,
    ETAG_ANY,
    HEADER_AUTHORIZATION,
    HEADER_CONTENT_TYPE,
    HEADER_IF_MATCH,
    HEADER_LOCATION,
    HEADER_USER_AGENT,
    LIST_REGISTRATIONS_PATH,
    METHOD_DELETE,
    METHOD_GET,
    METHOD_POST,
    METHOD_PUT,
    REGISTRATION_PATH,
    REQUEST_TIMEOUT_S,
)
from .decoder import Decoder, RegistrationDecoder
from .exceptions import (
    AlreadyConfiguredError,
    FailedToRetrieveAuthorizationTokenError,
    NotConfiguredError,
    RegistrationDecodeError,
    UnknownHubError,
)
from .local_storage import LocalStorage
from .registration import Registration, Template, validate_template_name
from .response import Response
from .token_provider import SasTokenProvider, TokenSource
from .transport import AiohttpTransport, Transport
from .util import content_type_for, device_token_hex, redact, user_agent

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

_TRANSPORT_ERRORS = (ClientError, TimeoutError, OSError)


class NotificationClient:
    """Reconciles named registrations of one device with one hub."""

    def __init__(
        self,
        *,
        transport: Transport | None = None,
        token_provider: TokenSource | None = None,
        storage: LocalStorage | None = None,
        decoder: Decoder | None = None,
        storage_dir: Path | None = DEFAULT_STORAGE_DIR,
        request_timeout: float = REQUEST_TIMEOUT_S,
        api_origin: str = DEFAULT_API_ORIGIN,
        log_debug_verbose: bool = False,
    ) -> None:
        """
        Initialize the client.

        Args:
            transport: HTTP transport; defaults to an `AiohttpTransport`.
            token_provider: Token source; defaults to SAS tokens from the
                connection string passed to `configure()`.
            storage: Registration cache; defaults to a `LocalStorage` for the
                configured hub path inside `storage_dir`.
            decoder: Response body decoder; defaults to `RegistrationDecoder`.
            storage_dir: Directory for the default cache file, or None for a
                memory-only cache.
            request_timeout: Total timeout per request in seconds.
            api_origin: Label sent in the `User-Agent` header.
            log_debug_verbose: If True, log payload content type and size at
                debug level.
        """
        self._transport: Transport = transport or AiohttpTransport()
        self._owns_transport = transport is None
        self._token_provider: TokenSource | None = token_provider
        self._storage: LocalStorage | None = storage
        self._decoder: Decoder = decoder or RegistrationDecoder()
        self._storage_dir = storage_dir
        self._request_timeout = request_timeout
        self._user_agent = user_agent(api_origin)
        self._log_debug_verbose = log_debug_verbose

        self._endpoint = ""
        self._path = ""
        self._is_configured = False
        self._background_tasks: set[asyncio.Task[Response[bytes]]] = set()

    # ---------------------------------------------------------------------
    # Configuration
    # ---------------------------------------------------------------------
    def configure(self, hub_name: str, connection_string: str) -> None:
        """Resolve endpoint and credentials; must succeed before any operation.

        Raises:
            AlreadyConfiguredError: if the client was configured before.
            InvalidConnectionStringError: if the connection string is malformed.
        """
        if self._is_configured:
            raise AlreadyConfiguredError(self._path)
        params = ConnectionParams.from_connection_string(connection_string)

        self._endpoint = params.endpoint
        self._path = hub_name
        if self._token_provider is None:
            self._token_provider = SasTokenProvider(params)
        if self._storage is None:
            self._storage = LocalStorage(hub_name, self._storage_dir)
        self._is_configured = True
        _LOGGER.info("Configured notification hub %s at %s", hub_name, params.endpoint)

    @property
    def is_configured(self) -> bool:
        return self._is_configured

    @property
    def storage(self) -> LocalStorage | None:
        return self._storage

    # ---------------------------------------------------------------------
    # Registration
    # ---------------------------------------------------------------------
    async def register(
        self,
        device_token: bytes | str,
        tags: Iterable[str] = (),
        completion: CompletionCallable[Registration] | None = None,
    ) -> Response[Registration]:
        """Register (or refresh) the plain `$Default` registration of a device."""
        if not self._is_configured:
            return self._complete(Response.failure(NotConfiguredError()), completion)

        token = device_token_hex(device_token)
        payload = Registration.payload_for_device_token(token, tags)
        response = await self._register(token, DEFAULT_REGISTRATION_NAME, payload)
        return self._complete(response, completion)

    async def register_template(
        self,
        device_token: bytes | str,
        template: Template,
        priority: str | None = None,
        tags: Iterable[str] = (),
        completion: CompletionCallable[Registration] | None = None,
    ) -> Response[Registration]:
        """Register (or refresh) a template registration keyed by `template.name`."""
        if not self._is_configured:
            return self._complete(Response.failure(NotConfiguredError()), completion)

        if (error := validate_template_name(template.name)) is not None:
            return self._complete(Response.failure(error), completion)

        token = device_token_hex(device_token)
        payload = Registration.payload_for_template(token, template, priority, tags)
        response = await self._register(token, template.name, payload)
        return self._complete(response, completion)

    async def register_payload(
        self,
        device_token: bytes | str,
        name: str,
        payload: str,
        completion: CompletionCallable[Registration] | None = None,
    ) -> Response[Registration]:
        """Reconcile a registration whose payload was built by the caller."""
        if not self._is_configured:
            return self._complete(Response.failure(NotConfiguredError()), completion)

        response = await self._register(device_token_hex(device_token), name, payload)
        return self._complete(response, completion)

    async def get_registrations(
        self,
        device_token: bytes | str,
        completion: CompletionCallable[list[Registration]] | None = None,
    ) -> Response[list[Registration]]:
        """List the hub's registrations for a device token."""
        if not self._is_configured:
            return self._complete(Response.failure(NotConfiguredError()), completion)

        response = await self._get_registrations(device_token_hex(device_token))
        return self._complete(response, completion)

    # ---------------------------------------------------------------------
    # Unregistration
    # ---------------------------------------------------------------------
    async def cancel(
        self,
        registration: Registration,
        completion: CompletionCallable[bytes] | None = None,
    ) -> Response[bytes]:
        """Delete a single registration."""
        if not self._is_configured:
            return self._complete(Response.failure(NotConfiguredError()), completion)

        return self._complete(await self._delete(registration), completion)

    async def cancel_all(
        self,
        device_token: bytes | str,
        completion: CompletionCallable[bytes] | None = None,
    ) -> Response[bytes]:
        """Delete every registration of a device token.

        Deletes run concurrently. The first failing delete is reported; deletes
        still in flight at that point finish in the background and are not
        reported again.
        """
        if not self._is_configured:
            return self._complete(Response.failure(NotConfiguredError()), completion)

        token = device_token_hex(device_token)
        listing = await self._get_registrations(token)
        if not listing.ok:
            return self._complete(listing.failed_as(), completion)

        registrations = listing.value or []
        if not registrations:
            _LOGGER.debug("No registrations to cancel for %s", redact(token))
            return self._complete(Response.success(b""), completion)

        response = await self._delete_all(registrations)
        if response.ok:
            _LOGGER.info(
                "Cancelled %d registration(s) for %s", len(registrations), redact(token)
            )
        else:
            _LOGGER.info(
                "Cancelling registrations for %s failed: %s", redact(token), response.error
            )
        return self._complete(response, completion)

    async def close(self) -> None:
        """Close the transport if this client created it."""
        if self._owns_transport and isinstance(self._transport, AiohttpTransport):
            await self._transport.close()

    # ---------------------------------------------------------------------
    # Reconciliation pipeline
    # ---------------------------------------------------------------------
    async def _register(
        self, token: str, name: str, payload: str
    ) -> Response[Registration]:
        storage = self._require_storage()

        if storage.needs_refresh or storage.device_token != token:
            # List under the previously reconciled token so existing hub-side
            # registrations are found and updated rather than duplicated.
            list_token = storage.device_token or token
            _LOGGER.debug(
                "Refreshing registrations for %s before registering %s",
                redact(list_token),
                name,
            )
            listing = await self._get_registrations(list_token)
            if not listing.ok:
                return listing.failed_as()
            await storage.async_refresh(token, listing.value or [])

        return await self._create_or_update(name, payload)

    async def _create_or_update(self, name: str, payload: str) -> Response[Registration]:
        cached = self._require_storage().get(name)
        if cached is None or not cached.is_confirmed:
            return await self._create_and_upsert(name, payload)

        response = await self._upsert(cached.id, name, payload)
        if response.status == HTTPStatus.GONE:
            _LOGGER.warning(
                "Registration %s (%s) is gone on the hub; recreating",
                name,
                redact(cached.id),
            )
            return await self._create_and_upsert(name, payload)
        return response

    async def _create_and_upsert(self, name: str, payload: str) -> Response[Registration]:
        url = self._url(CREATE_REGISTRATION_ID_PATH)
        response = await self._send_request(url, METHOD_POST, payload=payload)
        if not response.ok:
            return response.failed_as()

        registration_id = _registration_id_from_location(response.header(HEADER_LOCATION))
        if not registration_id:
            return Response.failure(
                UnknownHubError("Create response carried no usable Location header"),
                status=response.status,
                headers=response.headers,
                body=response.body,
            )

        _LOGGER.info("Created registration id %s for %s", redact(registration_id), name)
        return await self._upsert(registration_id, name, payload)

    async def _upsert(
        self, registration_id: str, name: str, payload: str
    ) -> Response[Registration]:
        url = self._url(REGISTRATION_PATH, registration_id=registration_id)
        response = await self._send_request(url, METHOD_PUT, payload=payload)

        decoded = response.map(self._decoder.decode)
        if not decoded.ok:
            return decoded.failed_as()

        registrations = decoded.value or []
        if not registrations:
            return Response.failure(
                RegistrationDecodeError("Upsert response contained no registration"),
                status=response.status,
                headers=response.headers,
                body=response.body,
            )

        registration = registrations[0]
        await self._require_storage().async_set(name, registration)
        return Response.success(
            registration,
            status=response.status,
            headers=response.headers,
            body=response.body,
        )

    async def _get_registrations(self, token: str) -> Response[list[Registration]]:
        url = self._url(LIST_REGISTRATIONS_PATH, device_token=token)
        response = await self._send_request(url, METHOD_GET)

        decoded = response.map(self._decoder.decode)
        if decoded.ok:
            storage = self._require_storage()
            for registration in decoded.value or []:
                await storage.async_set(registration.name, registration)
        return decoded

    # ---------------------------------------------------------------------
    # Deletion
    # ---------------------------------------------------------------------
    async def _delete(self, registration: Registration) -> Response[bytes]:
        url = self._url(REGISTRATION_PATH, registration_id=registration.id)
        response = await self._send_request(url, METHOD_DELETE, etag=ETAG_ANY)
        if response.ok:
            await self._require_storage().async_remove_registration(registration.name)
        return response

    async def _delete_all(self, registrations: list[Registration]) -> Response[bytes]:
        loop = asyncio.get_running_loop()
        done: asyncio.Future[Response[bytes]] = loop.create_future()
        remaining = len(registrations)

        def _on_delete_done(task: asyncio.Task[Response[bytes]]) -> None:
            nonlocal remaining
            self._background_tasks.discard(task)
            if done.done():
                # Late outcomes are dropped but must still be retrieved.
                if not task.cancelled():
                    task.exception()
                return
            if task.cancelled():
                done.set_result(Response.failure(asyncio.CancelledError()))
                return
            if (exc := task.exception()) is not None:
                done.set_result(Response.failure(exc))
                return
            response = task.result()
            if not response.ok:
                done.set_result(response)
                return
            remaining -= 1
            if remaining == 0:
                done.set_result(Response.success(b""))

        for registration in registrations:
            task = asyncio.create_task(
                self._delete(registration),
                name=f"notificationhubs.delete.{registration.name}",
            )
            self._background_tasks.add(task)
            task.add_done_callback(_on_delete_done)

        return await done

    # ---------------------------------------------------------------------
    # Request execution
    # ---------------------------------------------------------------------
    async def _send_request(
        self,
        url: str,
        method: str,
        payload: str | None = None,
        etag: str | None = None,
    ) -> Response[bytes]:
        token_provider = self._token_provider
        auth_token = token_provider.get_token(url) if token_provider else None
        if not auth_token:
            return Response.failure(FailedToRetrieveAuthorizationTokenError(url))

        headers = {
            HEADER_AUTHORIZATION: auth_token,
            HEADER_USER_AGENT: self._user_agent,
        }
        if etag is not None:
            headers[HEADER_IF_MATCH] = f'"{etag}"'
        data: bytes | None = None
        if payload is not None:
            headers[HEADER_CONTENT_TYPE] = content_type_for(payload)
            data = payload.encode("utf-8")

        target = _log_target(url)
        if self._log_debug_verbose and data is not None:
            _LOGGER.debug(
                "%s %s content_type=%s bytes=%d",
                method,
                target,
                headers[HEADER_CONTENT_TYPE],
                len(data),
            )
        else:
            _LOGGER.debug("%s %s", method, target)

        try:
            result = await self._transport.request(
                method,
                url,
                headers=headers,
                data=data,
                timeout=self._request_timeout,
            )
        except _TRANSPORT_ERRORS as err:
            _LOGGER.debug("%s %s failed at transport level: %s", method, target, err)
            return Response.failure(err)

        if HTTPStatus.OK <= result.status < HTTPStatus.MULTIPLE_CHOICES:
            return Response.success(
                result.body, status=result.status, headers=result.headers, body=result.body
            )

        _LOGGER.debug("%s %s returned status %s", method, target, result.status)
        return Response.failure(
            UnknownHubError(status=result.status),
            status=result.status,
            headers=result.headers,
            body=result.body,
        )

    # ---------------------------------------------------------------------
    # Helpers
    # ---------------------------------------------------------------------
    def _url(self, template: str, **kwargs: str) -> str:
        return self._endpoint + template.format(
            path=self._path, api_version=API_VERSION, **kwargs
        )

    def _require_storage(self) -> LocalStorage:
        if self._storage is None:
            raise NotConfiguredError()
        return self._storage

    @staticmethod
    def _complete(
        response: Response[T], completion: CompletionCallable[T] | None
    ) -> Response[T]:
        if completion is not None:
            try:
                completion(response)
            except Exception as e:  # avoid caller breaking the flow
                _LOGGER.warning("Completion callback raised: %s", e)
        return response


def _registration_id_from_location(location: str | None) -> str | None:
    """Return the last path segment of a `Location` URL."""
    if not location:
        return None
    try:
        path = urlsplit(location).path
    except ValueError:
        return None
    segment = path.rstrip("/").rsplit("/", 1)[-1]
    return segment or None


def _log_target(url: str) -> str:
    """Return `url` without its query; list filters carry the device token."""
    return urlsplit(url).path
