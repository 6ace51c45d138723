"""Smoke test: verify integration loads and creates an entity."""
from homeassistant.core import HomeAssistant

from .conftest import ENTITY_ID


async def test_integration_loads(hass: HomeAssistant, setup_cover):
    state = hass.states.get(ENTITY_ID)
    assert state is not None
    assert state.state == "closed"
    assert state.attributes["calibration"] == "uncalibrated"
    assert state.attributes["hardware_present"] is True
