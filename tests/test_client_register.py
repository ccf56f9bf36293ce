# tests/test_client_register.py
"""Tests for registration reconciliation (refresh, create, update, recreate)."""

from __future__ import annotations

import asyncio
import logging

import aiohttp
import pytest

from notificationhubs import (
    DEFAULT_REGISTRATION_NAME,
    FailedToRetrieveAuthorizationTokenError,
    InvalidTemplateNameError,
    LocalStorage,
    NotConfiguredError,
    NotificationClient,
    Registration,
    RegistrationDecodeError,
    Response,
    Template,
    UnknownHubError,
)
from tests.helpers import (
    CONNECTION_STRING,
    DEVICE_TOKEN,
    ENDPOINT,
    HUB_NAME,
    FakeTransport,
    StaticTokenSource,
    created,
    entry_xml,
    feed_xml,
    ok,
)

OTHER_TOKEN = "ff" * 32


def _seed(storage: LocalStorage, registration_id: str, token: str = DEVICE_TOKEN) -> None:
    """Mark the cache as reconciled for `token` with one confirmed registration."""
    storage.refresh(
        token,
        [Registration(id=registration_id, name=DEFAULT_REGISTRATION_NAME, device_token=token)],
    )


def test_register_before_configure_fails_without_network() -> None:
    """Unconfigured clients report NotConfiguredError and make no calls."""

    transport = FakeTransport()
    hub_client = NotificationClient(
        transport=transport, token_provider=StaticTokenSource(), storage_dir=None
    )
    completions: list[Response[Registration]] = []

    async def _exercise() -> list[Response]:
        return [
            await hub_client.register(DEVICE_TOKEN, completion=completions.append),
            await hub_client.register_template(
                DEVICE_TOKEN, Template(name="t", body="{}")
            ),
            await hub_client.register_payload(DEVICE_TOKEN, "n", "<x/>"),
            await hub_client.get_registrations(DEVICE_TOKEN),
        ]

    results = asyncio.run(_exercise())

    assert not hub_client.is_configured
    assert all(isinstance(result.error, NotConfiguredError) for result in results)
    assert len(completions) == 1 and completions[0] is results[0]
    assert transport.requests == []


def test_first_register_lists_then_creates_and_upserts(
    client: NotificationClient, transport: FakeTransport, storage: LocalStorage
) -> None:
    """A fresh cache lists first, then POSTs for an id and PUTs the payload."""

    transport.add("GET", "$filter", ok(feed_xml()))
    transport.add("POST", "registrationids", created("reg-1"))
    transport.add("PUT", "Registrations/reg-1", ok(entry_xml("reg-1")))
    completions: list[Response[Registration]] = []

    response = asyncio.run(
        client.register(bytes.fromhex(DEVICE_TOKEN), completion=completions.append)
    )

    assert response.ok, response.error
    assert response.value.id == "reg-1"
    assert response.value.device_token == DEVICE_TOKEN
    assert transport.methods == ["GET", "POST", "PUT"]
    assert f"deviceToken+eq+'{DEVICE_TOKEN}'" in transport.requests[0].url
    assert transport.requests[1].url == (
        f"{ENDPOINT}{HUB_NAME}/registrationids/?api-version=2013-04"
    )
    assert transport.requests[2].url == (
        f"{ENDPOINT}{HUB_NAME}/Registrations/reg-1?api-version=2013-04"
    )
    assert completions == [response]

    assert len(storage) == 1
    assert storage.get(DEFAULT_REGISTRATION_NAME).id == "reg-1"
    assert storage.device_token == DEVICE_TOKEN
    assert not storage.needs_refresh


def test_repeat_register_updates_cached_registration(
    client: NotificationClient, transport: FakeTransport, storage: LocalStorage
) -> None:
    """A reconciled cache turns a repeat registration into a single PUT."""

    _seed(storage, "reg-7")
    transport.add("PUT", "Registrations/reg-7", ok(entry_xml("reg-7", tags=["news"])))

    response = asyncio.run(client.register(DEVICE_TOKEN, tags=["news"]))

    assert response.ok
    assert transport.methods == ["PUT"]
    assert "If-Match" not in transport.requests[0].headers
    assert "<Tags>news</Tags>" in transport.requests[0].text
    assert storage.get(DEFAULT_REGISTRATION_NAME).tags == ["news"]


def test_device_token_change_lists_under_previous_token_first(
    client: NotificationClient, transport: FakeTransport, storage: LocalStorage
) -> None:
    """A new device token lists under the old one, then updates the found id."""

    _seed(storage, "stale", token=OTHER_TOKEN)
    transport.add("GET", "$filter", ok(feed_xml(entry_xml("reg-old", OTHER_TOKEN))))
    transport.add("PUT", "Registrations/reg-old", ok(entry_xml("reg-old")))

    response = asyncio.run(client.register(DEVICE_TOKEN))

    assert response.ok
    assert transport.methods == ["GET", "PUT"]
    assert f"deviceToken+eq+'{OTHER_TOKEN}'" in transport.requests[0].url
    assert response.value.device_token == DEVICE_TOKEN
    assert storage.device_token == DEVICE_TOKEN
    assert storage.get(DEFAULT_REGISTRATION_NAME).id == "reg-old"


def test_token_bookkeeping_changes_only_after_listing_succeeds(
    client: NotificationClient, transport: FakeTransport, storage: LocalStorage
) -> None:
    """The list call observes the old bookkeeping; the update happens afterwards."""

    _seed(storage, "reg-1", token=OTHER_TOKEN)
    seen: list[str | None] = []

    async def _listing(_request) -> object:
        seen.append(storage.device_token)
        return ok(feed_xml(entry_xml("reg-1", OTHER_TOKEN)))

    transport.add("GET", "$filter", _listing)
    transport.add("PUT", "Registrations/reg-1", ok(entry_xml("reg-1")))

    asyncio.run(client.register(DEVICE_TOKEN))

    assert seen == [OTHER_TOKEN]
    assert storage.device_token == DEVICE_TOKEN


def test_listing_failure_aborts_register(
    client: NotificationClient, transport: FakeTransport, storage: LocalStorage
) -> None:
    """A failed refresh listing surfaces unchanged and never creates."""

    transport.add("GET", "$filter", ok("denied", status=401))

    response = asyncio.run(client.register(DEVICE_TOKEN))

    assert isinstance(response.error, UnknownHubError)
    assert response.status == 401
    assert transport.methods == ["GET"]
    assert storage.needs_refresh
    assert storage.device_token is None


def test_gone_on_update_recreates_exactly_once(
    client: NotificationClient, transport: FakeTransport, storage: LocalStorage
) -> None:
    """A 410 on the cached id triggers one create and the new id is cached."""

    _seed(storage, "reg-stale")
    transport.add("PUT", "Registrations/reg-stale", ok(status=410))
    transport.add("POST", "registrationids", created("reg-new"))
    transport.add("PUT", "Registrations/reg-new", ok(entry_xml("reg-new")))

    response = asyncio.run(client.register(DEVICE_TOKEN))

    assert response.ok
    assert response.value.id == "reg-new"
    assert transport.methods == ["PUT", "POST", "PUT"]
    assert storage.get(DEFAULT_REGISTRATION_NAME).id == "reg-new"


def test_gone_after_recreate_does_not_loop(
    client: NotificationClient, transport: FakeTransport, storage: LocalStorage
) -> None:
    """A second 410 after recreation is reported instead of retried."""

    _seed(storage, "reg-stale")
    transport.add("PUT", "Registrations/", ok(status=410), repeat=True)
    transport.add("POST", "registrationids", created("reg-new"), repeat=True)

    response = asyncio.run(client.register(DEVICE_TOKEN))

    assert isinstance(response.error, UnknownHubError)
    assert response.status == 410
    assert transport.methods == ["PUT", "POST", "PUT"]
    assert storage.get(DEFAULT_REGISTRATION_NAME).id == "reg-stale"


def test_update_failure_other_than_gone_has_no_fallback(
    client: NotificationClient, transport: FakeTransport, storage: LocalStorage
) -> None:
    _seed(storage, "reg-1")
    transport.add("PUT", "Registrations/reg-1", ok("boom", status=500))

    response = asyncio.run(client.register(DEVICE_TOKEN))

    assert isinstance(response.error, UnknownHubError)
    assert response.error.status == 500
    assert transport.methods == ["PUT"]


@pytest.mark.parametrize(
    "headers",
    [{}, {"Location": ""}, {"Location": "https://contoso.servicebus.windows.net/"}],
)
def test_create_without_usable_location_is_unknown(
    client: NotificationClient,
    transport: FakeTransport,
    storage: LocalStorage,
    headers: dict[str, str],
) -> None:
    storage.refresh(DEVICE_TOKEN, [])
    transport.add("POST", "registrationids", ok(status=201, headers=headers))

    response = asyncio.run(client.register(DEVICE_TOKEN))

    assert type(response.error) is UnknownHubError
    assert transport.methods == ["POST"]
    assert len(storage) == 0


def test_upsert_without_records_is_a_decode_error(
    client: NotificationClient, transport: FakeTransport, storage: LocalStorage
) -> None:
    """An empty PUT body yields a typed failure and leaves the cache untouched."""

    _seed(storage, "reg-1")
    transport.add("PUT", "Registrations/reg-1", ok(""))

    response = asyncio.run(client.register(DEVICE_TOKEN))

    assert isinstance(response.error, RegistrationDecodeError)
    assert isinstance(response.error, UnknownHubError)
    assert storage.get(DEFAULT_REGISTRATION_NAME).id == "reg-1"


def test_upsert_with_malformed_body_is_a_decode_error(
    client: NotificationClient, transport: FakeTransport, storage: LocalStorage
) -> None:
    _seed(storage, "reg-1")
    transport.add("PUT", "Registrations/reg-1", ok("<entry><broken"))

    response = asyncio.run(client.register(DEVICE_TOKEN))

    assert isinstance(response.error, RegistrationDecodeError)
    assert response.status == 200


def test_register_template_caches_under_template_name(
    client: NotificationClient, transport: FakeTransport, storage: LocalStorage
) -> None:
    storage.refresh(DEVICE_TOKEN, [])
    transport.add("POST", "registrationids", created("tpl-1"))
    template = Template(name="greeting", body='{"aps":{"alert":"$(msg)"}}')
    transport.add(
        "PUT",
        "Registrations/tpl-1",
        ok(entry_xml("tpl-1", template_name="greeting", body_template=template.body)),
    )

    response = asyncio.run(
        client.register_template(DEVICE_TOKEN, template, priority="10", tags=["a", "b"])
    )

    assert response.ok
    assert response.value.name == "greeting"
    assert response.value.template.body == '{"aps":{"alert":"$(msg)"}}'
    assert storage.get("greeting").id == "tpl-1"
    assert DEFAULT_REGISTRATION_NAME not in storage

    put = transport.calls("PUT")[0]
    assert put.headers["Content-Type"] == "application/xml"
    assert "<TemplateName>greeting</TemplateName>" in put.text
    assert "<Priority>10</Priority>" in put.text
    assert "<Tags>a,b</Tags>" in put.text


@pytest.mark.parametrize("name", ["", "   ", DEFAULT_REGISTRATION_NAME, "a:b"])
def test_register_template_rejects_invalid_names(
    client: NotificationClient, transport: FakeTransport, name: str
) -> None:
    response = asyncio.run(
        client.register_template(DEVICE_TOKEN, Template(name=name, body="{}"))
    )

    assert isinstance(response.error, InvalidTemplateNameError)
    assert transport.requests == []


@pytest.mark.parametrize(
    ("payload", "content_type"),
    [('{"installationId": "x"}', "application/json"), ("<entry/>", "application/xml")],
)
def test_content_type_follows_payload(
    client: NotificationClient,
    transport: FakeTransport,
    storage: LocalStorage,
    payload: str,
    content_type: str,
) -> None:
    _seed(storage, "reg-1")
    storage.set("custom", Registration(id="reg-9", name="custom"))
    transport.add("PUT", "Registrations/reg-9", ok(entry_xml("reg-9", template_name="custom")))

    response = asyncio.run(client.register_payload(DEVICE_TOKEN, "custom", payload))

    assert response.ok
    put = transport.requests[0]
    assert put.headers["Content-Type"] == content_type
    assert put.data == payload.encode("utf-8")


def test_request_headers_and_timeout(
    client: NotificationClient, transport: FakeTransport, storage: LocalStorage
) -> None:
    _seed(storage, "reg-1")
    transport.add("PUT", "Registrations/reg-1", ok(entry_xml("reg-1")))

    asyncio.run(client.register(DEVICE_TOKEN))

    request = transport.requests[0]
    assert request.headers["Authorization"] == "SharedAccessSignature sr=test"
    assert request.headers["User-Agent"].startswith(
        "NOTIFICATIONHUBS/2013-04(api-origin=PythonSdk; os="
    )
    assert request.timeout == 60.0


def test_missing_authorization_token_skips_network(
    transport: FakeTransport, storage: LocalStorage
) -> None:
    hub_client = NotificationClient(
        transport=transport, token_provider=StaticTokenSource(None), storage=storage
    )
    hub_client.configure(HUB_NAME, CONNECTION_STRING)

    response = asyncio.run(hub_client.register(DEVICE_TOKEN))

    assert isinstance(response.error, FailedToRetrieveAuthorizationTokenError)
    assert transport.requests == []


def test_transport_error_is_passed_through(
    client: NotificationClient, transport: FakeTransport, storage: LocalStorage
) -> None:
    _seed(storage, "reg-1")
    error = aiohttp.ClientConnectionError("connection reset")
    transport.add("PUT", "Registrations/reg-1", error)

    response = asyncio.run(client.register(DEVICE_TOKEN))

    assert response.error is error
    assert response.status is None


def test_completion_errors_are_logged_not_raised(
    client: NotificationClient,
    transport: FakeTransport,
    storage: LocalStorage,
    caplog: pytest.LogCaptureFixture,
) -> None:
    _seed(storage, "reg-1")
    transport.add("PUT", "Registrations/reg-1", ok(entry_xml("reg-1")))

    def _explode(_response: Response[Registration]) -> None:
        raise RuntimeError("callback failure")

    with caplog.at_level(logging.WARNING):
        response = asyncio.run(client.register(DEVICE_TOKEN, completion=_explode))

    assert response.ok
    assert any(
        "Completion callback raised" in record.getMessage() for record in caplog.records
    )


def test_get_registrations_caches_listed_entries(
    client: NotificationClient, transport: FakeTransport, storage: LocalStorage
) -> None:
    transport.add(
        "GET",
        "$filter",
        ok(feed_xml(entry_xml("reg-1"), entry_xml("tpl-1", template_name="greeting"))),
    )

    response = asyncio.run(client.get_registrations(DEVICE_TOKEN))

    assert [reg.id for reg in response.value] == ["reg-1", "tpl-1"]
    assert storage.get("greeting").id == "tpl-1"
    assert storage.get(DEFAULT_REGISTRATION_NAME).id == "reg-1"


def test_device_token_never_reaches_the_logs(
    transport: FakeTransport, storage: LocalStorage, caplog: pytest.LogCaptureFixture
) -> None:
    hub_client = NotificationClient(
        transport=transport,
        token_provider=StaticTokenSource(),
        storage=storage,
        log_debug_verbose=True,
    )
    hub_client.configure(HUB_NAME, CONNECTION_STRING)
    transport.add("GET", "$filter", ok(feed_xml()), ok("busy", status=500))
    transport.add("POST", "registrationids", created("reg-1"))
    transport.add("PUT", "Registrations/reg-1", ok(entry_xml("reg-1")))

    async def _exercise() -> None:
        await hub_client.register(DEVICE_TOKEN, tags=["news"])
        await hub_client.cancel_all(DEVICE_TOKEN)

    with caplog.at_level(logging.DEBUG):
        asyncio.run(_exercise())

    assert transport.methods == ["GET", "POST", "PUT", "GET"]
    messages = [record.getMessage().lower() for record in caplog.records]
    assert any("returned status 500" in message for message in messages)
    assert not any(DEVICE_TOKEN in message for message in messages)
