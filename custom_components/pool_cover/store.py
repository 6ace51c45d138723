"""Persistence of calibration records."""

from __future__ import annotations

import logging

from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.storage import Store

from .const import DOMAIN, STORAGE_SAVE_DELAY, STORAGE_VERSION

_LOGGER = logging.getLogger(__name__)


class CalibrationStore:
    """Key/value store of opaque strings, one storage file per config entry.

    Loaded once with ``async_load``; ``get``/``set`` then work on the
    in-memory copy and writes are flushed by a delayed save.
    """

    def __init__(self, hass: HomeAssistant, entry_id: str) -> None:
        self._store: Store[dict[str, str]] = Store(
            hass, STORAGE_VERSION, f"{DOMAIN}.{entry_id}"
        )
        self._data: dict[str, str] = {}

    async def async_load(self) -> None:
        """Read the storage file into memory."""
        data = await self._store.async_load()
        if data is None:
            return
        if not isinstance(data, dict):
            _LOGGER.warning("Ignoring malformed calibration storage: %r", data)
            return
        self._data = {str(key): value for key, value in data.items()}

    def get(self, key: str) -> str | None:
        """Return the stored value for ``key``, if any."""
        return self._data.get(key)

    @callback
    def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key`` and schedule a save."""
        self._data[key] = value
        self._store.async_delay_save(self._data_to_save, STORAGE_SAVE_DELAY)

    async def async_remove(self) -> None:
        """Delete the storage file."""
        self._data = {}
        await self._store.async_remove()

    @callback
    def _data_to_save(self) -> dict[str, str]:
        return dict(self._data)
