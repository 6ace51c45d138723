"""Tests for helpers.py."""

import pytest
from unittest.mock import MagicMock, patch

from homeassistant.exceptions import HomeAssistantError

from custom_components.pool_cover.const import (
    CONF_COMMAND_DWELL_TIME,
    CONF_ENDPOINT_RUNON_TIME,
    CONF_LIMITER_GRACE_TIME,
    CONF_MAX_RUN_TIME,
    CONF_MOTOR_OPEN_PIN,
)
from custom_components.pool_cover.hardware import Line
from custom_components.pool_cover.helpers import (
    pins_from_options,
    resolve_controller,
    timing_from_options,
)

ENTITY_ID = "cover.pool"
ENTRY_ID = "test_entry_123"


class TestOptions:
    def test_default_pins(self):
        assert pins_from_options({}) == {
            Line.CLOSE_LIMITER: 17,
            Line.OPEN_LIMITER: 27,
            Line.MOTOR_OPEN: 5,
            Line.MOTOR_CLOSE: 6,
        }

    def test_pin_override(self):
        pins = pins_from_options({CONF_MOTOR_OPEN_PIN: 22.0})
        assert pins[Line.MOTOR_OPEN] == 22
        assert isinstance(pins[Line.MOTOR_OPEN], int)

    def test_default_timing(self):
        timing = timing_from_options({})

        assert timing.limiter_grace_ms == 3000
        assert timing.command_dwell_ms == 1000
        assert timing.endpoint_runon_ms == 2000
        assert timing.max_run_ms == 300000
        assert timing.calibration_settle_ms == 2000
        assert timing.position_epsilon == 0.1

    def test_timing_converted_to_ms(self):
        timing = timing_from_options(
            {
                CONF_LIMITER_GRACE_TIME: 5,
                CONF_COMMAND_DWELL_TIME: 0.5,
                CONF_ENDPOINT_RUNON_TIME: None,
                CONF_MAX_RUN_TIME: 120,
            }
        )

        assert timing.limiter_grace_ms == 5000
        assert timing.command_dwell_ms == 500
        assert timing.endpoint_runon_ms == 2000
        assert timing.max_run_ms == 120000


def _make_hass(domain="pool_cover", runtime_data="controller"):
    config_entry = MagicMock()
    config_entry.entry_id = ENTRY_ID
    config_entry.domain = domain
    config_entry.runtime_data = runtime_data

    registry_entry = MagicMock()
    registry_entry.config_entry_id = ENTRY_ID

    entity_reg = MagicMock()
    entity_reg.async_get.return_value = registry_entry

    hass = MagicMock()
    hass.config_entries.async_get_entry.return_value = config_entry
    return hass, entity_reg


class TestResolveController:
    def test_valid_entity(self):
        hass, entity_reg = _make_hass()
        with patch(
            "custom_components.pool_cover.helpers.er.async_get",
            return_value=entity_reg,
        ):
            assert resolve_controller(hass, ENTITY_ID) == "controller"

    def test_entity_not_found(self):
        hass, entity_reg = _make_hass()
        entity_reg.async_get.return_value = None

        with (
            patch(
                "custom_components.pool_cover.helpers.er.async_get",
                return_value=entity_reg,
            ),
            pytest.raises(HomeAssistantError, match="not found"),
        ):
            resolve_controller(hass, ENTITY_ID)

    def test_wrong_domain(self):
        hass, entity_reg = _make_hass(domain="other_domain")

        with (
            patch(
                "custom_components.pool_cover.helpers.er.async_get",
                return_value=entity_reg,
            ),
            pytest.raises(HomeAssistantError, match="pool_cover"),
        ):
            resolve_controller(hass, ENTITY_ID)

    def test_entry_not_loaded(self):
        hass, entity_reg = _make_hass(runtime_data=None)

        with (
            patch(
                "custom_components.pool_cover.helpers.er.async_get",
                return_value=entity_reg,
            ),
            pytest.raises(HomeAssistantError, match="not loaded"),
        ):
            resolve_controller(hass, ENTITY_ID)
