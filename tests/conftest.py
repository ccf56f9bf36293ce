"""tests/conftest.py: Common fixtures for the Notification Hubs client tests."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure the package root is importable without installing the package.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from notificationhubs import LocalStorage, NotificationClient  # noqa: E402
from tests.helpers.hub import (  # noqa: E402
    CONNECTION_STRING,
    HUB_NAME,
    FakeTransport,
    StaticTokenSource,
)


@pytest.fixture
def transport() -> FakeTransport:
    """Scripted transport recording every request."""

    return FakeTransport()


@pytest.fixture
def token_source() -> StaticTokenSource:
    return StaticTokenSource()


@pytest.fixture
def storage() -> LocalStorage:
    """Memory-only registration cache for the test hub."""

    return LocalStorage(HUB_NAME)


@pytest.fixture
def client(
    transport: FakeTransport, token_source: StaticTokenSource, storage: LocalStorage
) -> NotificationClient:
    """Configured client wired to the fakes."""

    hub_client = NotificationClient(
        transport=transport, token_provider=token_source, storage=storage
    )
    hub_client.configure(HUB_NAME, CONNECTION_STRING)
    return hub_client
