# notificationhubs/local_storage.py
"""Persisted per-hub cache of registrations and the last reconciled device token.

The in-memory view is the single source of truth for the running process.
Every mutation updates memory first and then writes the full snapshot to disk
under a process-wide lock, so concurrent writers never interleave partial
files. The async mutators run the write in the default executor to keep file
I/O off the event loop.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import re
import threading
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Any

from .const import STORAGE_VERSION
from .registration import Registration

_LOGGER = logging.getLogger(__name__)

# Per-process write lock for file + memory updates (also safe from sync paths).
_write_lock = threading.RLock()

_SLUG_RE = re.compile(r"[^A-Za-z0-9._-]+")


def storage_file_for(storage_dir: Path, hub_path: str) -> Path:
    """Return the JSON file backing the cache of `hub_path`."""
    slug = _SLUG_RE.sub("_", hub_path).strip("_") or "hub"
    return storage_dir / f"{slug}.json"


class LocalStorage:
    """Cache of the last known registration per name for one hub path."""

    def __init__(self, hub_path: str, storage_dir: Path | None = None) -> None:
        self.hub_path = hub_path
        self._file: Path | None = (
            storage_file_for(storage_dir, hub_path) if storage_dir is not None else None
        )
        self._registrations: dict[str, Registration] = {}
        self._device_token: str | None = None
        self._needs_refresh = True
        self._load()

    # ---------------------------------------------------------------------
    # Read access
    # ---------------------------------------------------------------------
    @property
    def device_token(self) -> str | None:
        return self._device_token

    @property
    def needs_refresh(self) -> bool:
        return self._needs_refresh

    @property
    def path(self) -> Path | None:
        return self._file

    def get(self, name: str) -> Registration | None:
        return self._registrations.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._registrations

    def __len__(self) -> int:
        return len(self._registrations)

    def __iter__(self) -> Iterator[Registration]:
        return iter(list(self._registrations.values()))

    # ---------------------------------------------------------------------
    # Mutations (memory first, then persist)
    # ---------------------------------------------------------------------
    def set(self, name: str, registration: Registration) -> None:
        self._store(name, registration)
        self._write_snapshot()

    def remove_registration(self, name: str) -> None:
        if self._discard(name):
            self._write_snapshot()

    def refresh(
        self, device_token: str, registrations: Iterable[Registration] | None = None
    ) -> None:
        """Record `device_token` as reconciled and clear the refresh flag.

        When `registrations` is given it replaces every cached entry.
        """
        self._mark_refreshed(device_token, registrations)
        self._write_snapshot()

    async def async_set(self, name: str, registration: Registration) -> None:
        self._store(name, registration)
        await self._async_write_snapshot()

    async def async_remove_registration(self, name: str) -> None:
        if self._discard(name):
            await self._async_write_snapshot()

    async def async_refresh(
        self, device_token: str, registrations: Iterable[Registration] | None = None
    ) -> None:
        self._mark_refreshed(device_token, registrations)
        await self._async_write_snapshot()

    def _store(self, name: str, registration: Registration) -> None:
        with _write_lock:
            self._registrations[name] = registration

    def _discard(self, name: str) -> bool:
        with _write_lock:
            return self._registrations.pop(name, None) is not None

    def _mark_refreshed(
        self, device_token: str, registrations: Iterable[Registration] | None
    ) -> None:
        with _write_lock:
            if registrations is not None:
                self._registrations = {reg.name: reg for reg in registrations}
            self._device_token = device_token
            self._needs_refresh = False

    # ---------------------------------------------------------------------
    # Persistence
    # ---------------------------------------------------------------------
    async def _async_write_snapshot(self) -> None:
        if self._file is None:
            return
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._write_snapshot)

    def _snapshot(self) -> dict[str, Any]:
        return {
            "version": STORAGE_VERSION,
            "device_token": self._device_token,
            "needs_refresh": self._needs_refresh,
            "registrations": {
                name: reg.to_dict() for name, reg in self._registrations.items()
            },
        }

    def _write_snapshot(self) -> None:
        if self._file is None:
            return
        try:
            with _write_lock:
                self._file.parent.mkdir(parents=True, exist_ok=True)
                tmp = self._file.with_suffix(".tmp")
                with open(tmp, "w", encoding="utf-8") as f:
                    json.dump(self._snapshot(), f)
                os.replace(tmp, self._file)
        except OSError as err:
            _LOGGER.warning(
                "Failed to persist registration cache for %s at %s: %s",
                self.hub_path,
                self._file,
                err,
            )

    def _load(self) -> None:
        if self._file is None:
            return
        with _write_lock:
            if not self._file.exists():
                return
            try:
                with open(self._file, encoding="utf-8") as f:
                    data = json.load(f)
            except (json.JSONDecodeError, OSError) as err:
                _LOGGER.warning(
                    "Ignoring unreadable registration cache %s: %s", self._file, err
                )
                return

            if not isinstance(data, dict):
                _LOGGER.warning("Ignoring malformed registration cache %s", self._file)
                return

            raw_regs = data.get("registrations")
            try:
                registrations = (
                    {
                        name: Registration.from_dict(raw)
                        for name, raw in raw_regs.items()
                        if isinstance(raw, dict)
                    }
                    if isinstance(raw_regs, dict)
                    else {}
                )
            except (TypeError, ValueError) as err:
                _LOGGER.warning(
                    "Ignoring malformed registration cache %s: %s", self._file, err
                )
                return
            self._registrations = registrations
            token = data.get("device_token")
            self._device_token = token if isinstance(token, str) and token else None

            if data.get("version") != STORAGE_VERSION:
                _LOGGER.debug(
                    "Registration cache %s has version %s (expected %s); refresh needed",
                    self._file,
                    data.get("version"),
                    STORAGE_VERSION,
                )
                self._needs_refresh = True
            else:
                self._needs_refresh = bool(data.get("needs_refresh", True))
