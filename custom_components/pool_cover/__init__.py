"""Pool Cover integration."""

from __future__ import annotations

import logging

from homeassistant.config_entries import ConfigEntry
from homeassistant.const import EVENT_HOMEASSISTANT_STOP, Platform
from homeassistant.core import Event, HomeAssistant

from .const import DOMAIN
from .controller import PoolCoverController
from .hardware import open_cover_lines
from .helpers import pins_from_options, timing_from_options
from .store import CalibrationStore
from .websocket_api import async_register_websocket_api

_LOGGER = logging.getLogger(__name__)

PLATFORMS: list[Platform] = [Platform.COVER]
_WEBSOCKET_KEY = f"{DOMAIN}_websocket_registered"


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up Pool Cover from a config entry."""
    # Register the WebSocket API once (not per entry).
    if _WEBSOCKET_KEY not in hass.data:
        hass.data[_WEBSOCKET_KEY] = True
        async_register_websocket_api(hass)

    options = entry.options
    # gpiozero probes the board through sysfs, keep it off the event loop
    lines = await hass.async_add_executor_job(
        open_cover_lines, pins_from_options(options)
    )

    store = CalibrationStore(hass, entry.entry_id)
    await store.async_load()

    controller = PoolCoverController(
        lines, store, timing=timing_from_options(options)
    )
    entry.runtime_data = controller
    controller.async_start(hass)
    _LOGGER.debug(
        "Set up %s: hardware present=%s, calibration=%s",
        entry.title,
        controller.hardware_present,
        controller.get_state().calibration,
    )

    async def _async_shutdown(_event: Event) -> None:
        await controller.async_shutdown(hass)

    entry.async_on_unload(
        hass.bus.async_listen_once(EVENT_HOMEASSISTANT_STOP, _async_shutdown)
    )

    try:
        await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)
    except Exception:
        await controller.async_shutdown(hass)
        raise
    entry.async_on_unload(entry.add_update_listener(async_update_options))

    return True


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry."""
    unloaded = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
    if unloaded:
        await entry.runtime_data.async_shutdown(hass)
    return unloaded


async def async_update_options(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Handle options update - reload the entry."""
    await hass.config_entries.async_reload(entry.entry_id)


async def async_remove_entry(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Remove the calibration store of a deleted entry."""
    await CalibrationStore(hass, entry.entry_id).async_remove()
