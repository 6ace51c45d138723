"""Integration test fixtures for pool_cover.

Uses pytest-homeassistant-custom-component for a real HA instance and
gpiozero's MockFactory in place of the board's GPIO chip.
"""

from __future__ import annotations

import json

import pytest
from gpiozero import Device
from gpiozero.pins.mock import MockFactory
from homeassistant.core import HomeAssistant
from pytest_homeassistant_custom_component.common import MockConfigEntry

DOMAIN = "pool_cover"
ENTRY_ID = "pool_entry"
ENTITY_ID = "cover.pool"


@pytest.fixture(autouse=True)
def auto_enable_custom_integrations(enable_custom_integrations):
    """Enable custom integrations for all tests in this directory."""
    return


@pytest.fixture(autouse=True)
def mock_pins():
    """Route every gpiozero device to mock pins."""
    previous = Device.pin_factory
    factory = MockFactory()
    Device.pin_factory = factory
    yield factory
    factory.reset()
    Device.pin_factory = previous


@pytest.fixture
def base_options():
    """Return the default pin layout."""
    return {
        "close_limiter_pin": 17,
        "open_limiter_pin": 27,
        "motor_open_pin": 5,
        "motor_close_pin": 6,
    }


@pytest.fixture
def stored_calibration(hass_storage):
    """Seed the store with a 10 s / 10 s calibration."""
    hass_storage[f"{DOMAIN}.{ENTRY_ID}"] = {
        "version": 1,
        "minor_version": 1,
        "key": f"{DOMAIN}.{ENTRY_ID}",
        "data": {
            "cover_state": json.dumps(
                {"calibrated": True, "openTravelMs": 10000, "closeTravelMs": 10000}
            )
        },
    }


@pytest.fixture
async def setup_cover(hass: HomeAssistant, base_options):
    """Create and load a pool_cover config entry.

    Yields the entry, then unloads it on teardown to cancel the control
    loop and release the pins.
    """
    entry = MockConfigEntry(
        domain=DOMAIN,
        entry_id=ENTRY_ID,
        title="Pool",
        data={},
        options=base_options,
    )
    entry.add_to_hass(hass)
    await hass.config_entries.async_setup(entry.entry_id)
    await hass.async_block_till_done()

    state = hass.states.get(ENTITY_ID)
    assert state is not None, "Cover entity was not created"

    yield entry

    await hass.config_entries.async_unload(entry.entry_id)
    await hass.async_block_till_done()
