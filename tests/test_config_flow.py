"""Tests for config_flow.py."""

import pytest
from unittest.mock import MagicMock, patch, PropertyMock

from custom_components.pool_cover.config_flow import (
    PoolCoverConfigFlow,
    PoolCoverOptionsFlow,
    SECTION_ADVANCED,
    _build_schema,
    _flatten_input,
    _validate_pins,
)
from custom_components.pool_cover.const import (
    CONF_CLOSE_LIMITER_PIN,
    CONF_COMMAND_DWELL_TIME,
    CONF_ENDPOINT_RUNON_TIME,
    CONF_LIMITER_GRACE_TIME,
    CONF_MAX_RUN_TIME,
    CONF_MOTOR_CLOSE_PIN,
    CONF_MOTOR_OPEN_PIN,
    CONF_OPEN_LIMITER_PIN,
)
from homeassistant.const import CONF_NAME

PINS = {
    CONF_CLOSE_LIMITER_PIN: 17,
    CONF_OPEN_LIMITER_PIN: 27,
    CONF_MOTOR_OPEN_PIN: 5,
    CONF_MOTOR_CLOSE_PIN: 6,
}

ADVANCED = {
    CONF_LIMITER_GRACE_TIME: 3.0,
    CONF_COMMAND_DWELL_TIME: 1.0,
    CONF_ENDPOINT_RUNON_TIME: 2.0,
    CONF_MAX_RUN_TIME: 300.0,
}


# ===================================================================
# Helpers
# ===================================================================


class TestFlattenInput:
    """Test section flattening for config flow data."""

    def test_flattens_advanced_section(self):
        result = _flatten_input({**PINS, SECTION_ADVANCED: ADVANCED})
        assert result == {**PINS, **ADVANCED}

    def test_passes_through_non_section_keys(self):
        assert _flatten_input(dict(PINS)) == PINS

    def test_handles_empty_input(self):
        assert _flatten_input({}) == {}


class TestValidatePins:
    """Test that every line gets its own pin."""

    def test_distinct_pins_are_valid(self):
        assert _validate_pins(PINS) == {}

    def test_duplicate_pins(self):
        pins = {**PINS, CONF_MOTOR_CLOSE_PIN: 5}
        assert _validate_pins(pins) == {"base": "duplicate_pins"}

    def test_missing_pin_uses_default(self):
        pins = dict(PINS)
        del pins[CONF_CLOSE_LIMITER_PIN]
        pins[CONF_OPEN_LIMITER_PIN] = 17
        assert _validate_pins(pins) == {"base": "duplicate_pins"}


class TestBuildSchema:
    def test_defaults(self):
        schema = _build_schema()
        data = schema({SECTION_ADVANCED: {}})

        assert data[CONF_NAME] == "Pool Cover"
        assert data[CONF_CLOSE_LIMITER_PIN] == 17
        assert data[CONF_OPEN_LIMITER_PIN] == 27
        assert data[CONF_MOTOR_OPEN_PIN] == 5
        assert data[CONF_MOTOR_CLOSE_PIN] == 6

    def test_options_schema_has_no_name(self):
        schema = _build_schema(defaults=PINS, include_name=False)
        keys = {str(key) for key in schema.schema}

        assert CONF_NAME not in keys
        assert CONF_MOTOR_OPEN_PIN in keys
        assert SECTION_ADVANCED in keys


# ===================================================================
# Config flow
# ===================================================================


class TestConfigFlow:
    """Test the main config flow."""

    @pytest.mark.asyncio
    async def test_user_step_shows_form(self):
        flow = PoolCoverConfigFlow()
        flow.hass = MagicMock()

        result = await flow.async_step_user(user_input=None)

        assert result["type"] == "form"
        assert result["step_id"] == "user"

    @pytest.mark.asyncio
    async def test_user_step_creates_entry(self):
        flow = PoolCoverConfigFlow()
        flow.hass = MagicMock()

        result = await flow.async_step_user(
            user_input={
                CONF_NAME: "Pool",
                CONF_CLOSE_LIMITER_PIN: 17.0,
                CONF_OPEN_LIMITER_PIN: 27.0,
                CONF_MOTOR_OPEN_PIN: 5.0,
                CONF_MOTOR_CLOSE_PIN: 6.0,
                SECTION_ADVANCED: ADVANCED,
            }
        )

        assert result["type"] == "create_entry"
        assert result["title"] == "Pool"
        assert result["data"] == {}
        assert result["options"] == {**PINS, **ADVANCED}
        assert isinstance(result["options"][CONF_MOTOR_OPEN_PIN], int)

    @pytest.mark.asyncio
    async def test_user_step_rejects_duplicate_pins(self):
        flow = PoolCoverConfigFlow()
        flow.hass = MagicMock()

        result = await flow.async_step_user(
            user_input={
                CONF_NAME: "Pool",
                **PINS,
                CONF_MOTOR_CLOSE_PIN: 17,
            }
        )

        assert result["type"] == "form"
        assert result["errors"] == {"base": "duplicate_pins"}

    def test_options_flow_handler(self):
        handler = PoolCoverConfigFlow.async_get_options_flow(MagicMock())
        assert isinstance(handler, PoolCoverOptionsFlow)


class TestOptionsFlow:
    """Test the options reconfiguration flow."""

    def _flow(self, options):
        flow = PoolCoverOptionsFlow()
        flow.hass = MagicMock()
        config_entry = MagicMock()
        config_entry.options = options
        return flow, config_entry

    @pytest.mark.asyncio
    async def test_init_shows_current_values(self):
        flow, config_entry = self._flow({**PINS, CONF_MOTOR_OPEN_PIN: 12})

        with patch.object(
            type(flow), "config_entry", new_callable=PropertyMock
        ) as entry_prop:
            entry_prop.return_value = config_entry
            result = await flow.async_step_init(user_input=None)

        assert result["type"] == "form"
        assert result["step_id"] == "init"
        data = result["data_schema"]({SECTION_ADVANCED: {}})
        assert data[CONF_MOTOR_OPEN_PIN] == 12

    @pytest.mark.asyncio
    async def test_init_saves_options(self):
        flow, config_entry = self._flow(dict(PINS))

        with patch.object(
            type(flow), "config_entry", new_callable=PropertyMock
        ) as entry_prop:
            entry_prop.return_value = config_entry
            result = await flow.async_step_init(
                user_input={
                    **PINS,
                    CONF_MOTOR_CLOSE_PIN: 13.0,
                    SECTION_ADVANCED: {**ADVANCED, CONF_COMMAND_DWELL_TIME: 2.5},
                }
            )

        assert result["type"] == "create_entry"
        assert result["data"][CONF_MOTOR_CLOSE_PIN] == 13
        assert result["data"][CONF_COMMAND_DWELL_TIME] == 2.5

    @pytest.mark.asyncio
    async def test_init_rejects_duplicate_pins(self):
        flow, config_entry = self._flow(dict(PINS))

        with patch.object(
            type(flow), "config_entry", new_callable=PropertyMock
        ) as entry_prop:
            entry_prop.return_value = config_entry
            result = await flow.async_step_init(
                user_input={**PINS, CONF_OPEN_LIMITER_PIN: 6}
            )

        assert result["type"] == "form"
        assert result["errors"] == {"base": "duplicate_pins"}
