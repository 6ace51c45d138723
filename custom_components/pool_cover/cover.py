"""Cover entity for the pool cover."""

from __future__ import annotations

import logging
from typing import Any

from homeassistant.components.cover import (
    ATTR_POSITION,
    CoverEntity,
    CoverEntityFeature,
)
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant, callback
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers import entity_platform
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from .const import POSITION_CLOSED, SERVICE_CALIBRATE, SERVICE_CANCEL_CALIBRATION
from .controller import PoolCoverController
from .cover_state import CoverState, PositionState

_LOGGER = logging.getLogger(__name__)


async def async_setup_entry(
    hass: HomeAssistant,
    config_entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up the pool cover from a config entry."""
    controller: PoolCoverController = config_entry.runtime_data
    async_add_entities(
        [PoolCover(config_entry.entry_id, config_entry.title, controller)]
    )

    platform = entity_platform.current_platform.get()
    platform.async_register_entity_service(SERVICE_CALIBRATE, {}, "async_calibrate")
    platform.async_register_entity_service(
        SERVICE_CANCEL_CALIBRATION, {}, "async_cancel_calibration"
    )


class PoolCover(CoverEntity):
    """Mirror of the controller state; commands go straight to the controller."""

    def __init__(self, entry_id: str, name: str, controller: PoolCoverController):
        """Initialize the cover."""
        self._unique_id = entry_id
        self._name = name
        self._controller = controller
        self._state: CoverState = controller.get_state()

    async def async_added_to_hass(self) -> None:
        """Follow controller state changes."""
        self.async_on_remove(
            self._controller.async_add_listener(self._handle_state_change)
        )
        self._state = self._controller.get_state()

    @callback
    def _handle_state_change(self, state: CoverState) -> None:
        self._state = state
        self.async_write_ha_state()

    @property
    def should_poll(self) -> bool:
        """State is pushed by the controller."""
        return False

    @property
    def name(self):
        """Return the name of the cover."""
        return self._name

    @property
    def unique_id(self):
        """Return the unique id."""
        return f"pool_cover_{self._unique_id}"

    @property
    def device_class(self):
        """Return the device class of the cover."""
        return None

    @property
    def extra_state_attributes(self):
        """Return the device state attributes."""
        info = self._controller.calibration_info
        return {
            "calibration": str(self._state.calibration),
            "target_position": round(self._state.target_position, 1),
            "open_travel_time": info.open_travel_ms / 1000,
            "close_travel_time": info.close_travel_ms / 1000,
            "hardware_present": self._controller.hardware_present,
        }

    @property
    def current_cover_position(self) -> int | None:
        """Return the current position of the cover."""
        return round(self._state.current_position)

    @property
    def is_opening(self):
        """Return if the cover is opening or not."""
        return self._state.position_state is PositionState.OPENING

    @property
    def is_closing(self):
        """Return if the cover is closing or not."""
        return self._state.position_state is PositionState.CLOSING

    @property
    def is_closed(self):
        """Return if the cover is closed."""
        return (
            self._state.position_state is PositionState.STOPPED
            and self._state.current_position <= POSITION_CLOSED
        )

    @property
    def supported_features(self) -> CoverEntityFeature:
        """Flag supported features."""
        return (
            CoverEntityFeature.OPEN
            | CoverEntityFeature.CLOSE
            | CoverEntityFeature.STOP
            | CoverEntityFeature.SET_POSITION
        )

    async def async_open_cover(self, **kwargs: Any) -> None:
        """Open the cover."""
        self._controller.open()

    async def async_close_cover(self, **kwargs: Any) -> None:
        """Close the cover."""
        self._controller.close()

    async def async_stop_cover(self, **kwargs: Any) -> None:
        """Stop the cover."""
        self._controller.stop()

    async def async_set_cover_position(self, **kwargs: Any) -> None:
        """Move the cover to a specific position."""
        position = kwargs[ATTR_POSITION]
        try:
            self._controller.set_target_position(position)
        except ValueError as err:
            raise HomeAssistantError(str(err)) from err

    async def async_calibrate(self) -> None:
        """Measure the travel times against the limit switches."""
        _LOGGER.debug("%s :: calibrate requested", self.entity_id)
        self._controller.calibrate()

    async def async_cancel_calibration(self) -> None:
        """Abort a running calibration."""
        if not self._controller.cancel_calibration():
            raise HomeAssistantError("No calibration in progress")
