# tests/helpers/__init__.py
"""Helper utilities for the Notification Hubs client tests."""

from __future__ import annotations

from .hub import (
    CONNECTION_STRING,
    DEVICE_TOKEN,
    ENDPOINT,
    HUB_NAME,
    FakeTransport,
    RecordedRequest,
    StaticTokenSource,
    created,
    entry_xml,
    feed_xml,
    ok,
    run_and_drain,
)

__all__ = [
    "CONNECTION_STRING",
    "DEVICE_TOKEN",
    "ENDPOINT",
    "HUB_NAME",
    "FakeTransport",
    "RecordedRequest",
    "StaticTokenSource",
    "created",
    "entry_xml",
    "feed_xml",
    "ok",
    "run_and_drain",
]
