"""Config flow for Pool Cover integration."""

from __future__ import annotations

from typing import Any

import voluptuous as vol
from homeassistant.config_entries import (
    ConfigEntry,
    ConfigFlow,
    ConfigFlowResult,
    OptionsFlow,
)
from homeassistant.const import CONF_NAME
from homeassistant.core import callback
from homeassistant.data_entry_flow import section
from homeassistant.helpers.selector import (
    NumberSelector,
    NumberSelectorConfig,
    NumberSelectorMode,
    TextSelector,
)

from .const import (
    CONF_COMMAND_DWELL_TIME,
    CONF_ENDPOINT_RUNON_TIME,
    CONF_LIMITER_GRACE_TIME,
    CONF_MAX_RUN_TIME,
    DEFAULT_COMMAND_DWELL_TIME,
    DEFAULT_ENDPOINT_RUNON_TIME,
    DEFAULT_LIMITER_GRACE_TIME,
    DEFAULT_MAX_RUN_TIME,
    DOMAIN,
)
from .helpers import PIN_OPTIONS

SECTION_ADVANCED = "advanced"
DEFAULT_NAME = "Pool Cover"

PIN_SELECTOR = NumberSelector(
    NumberSelectorConfig(min=0, max=27, step=1, mode=NumberSelectorMode.BOX)
)

TIMING_SELECTOR = NumberSelector(
    NumberSelectorConfig(min=0, max=60, step=0.1, mode=NumberSelectorMode.BOX)
)

MAX_RUN_SELECTOR = NumberSelector(
    NumberSelectorConfig(min=10, max=1800, step=1, mode=NumberSelectorMode.BOX)
)

_TIMING_FIELDS = (
    (CONF_LIMITER_GRACE_TIME, DEFAULT_LIMITER_GRACE_TIME, TIMING_SELECTOR),
    (CONF_COMMAND_DWELL_TIME, DEFAULT_COMMAND_DWELL_TIME, TIMING_SELECTOR),
    (CONF_ENDPOINT_RUNON_TIME, DEFAULT_ENDPOINT_RUNON_TIME, TIMING_SELECTOR),
    (CONF_MAX_RUN_TIME, DEFAULT_MAX_RUN_TIME, MAX_RUN_SELECTOR),
)


def _build_schema(
    defaults: dict[str, Any] | None = None, *, include_name: bool = True
) -> vol.Schema:
    """Build the pin and timing schema."""
    d = defaults or {}
    fields: dict[vol.Marker, Any] = {}

    if include_name:
        fields[vol.Required(CONF_NAME, default=d.get(CONF_NAME, DEFAULT_NAME))] = (
            TextSelector()
        )

    for key, default in PIN_OPTIONS.values():
        fields[vol.Required(key, default=d.get(key, default))] = PIN_SELECTOR

    # Advanced section (collapsed)
    adv_fields: dict[vol.Marker, Any] = {
        vol.Required(key, default=d.get(key, default)): selector
        for key, default, selector in _TIMING_FIELDS
    }
    fields[vol.Optional(SECTION_ADVANCED)] = section(
        vol.Schema(adv_fields),
        {"collapsed": True},
    )

    return vol.Schema(fields)


def _flatten_input(user_input: dict[str, Any]) -> dict[str, Any]:
    """Flatten section data into a single dict."""
    data: dict[str, Any] = {}
    for key, value in user_input.items():
        if key == SECTION_ADVANCED and isinstance(value, dict):
            data.update(value)
        else:
            data[key] = value
    return data


def _normalize_pins(data: dict[str, Any]) -> None:
    """Store pin numbers as ints; number selectors hand back floats."""
    for key, _default in PIN_OPTIONS.values():
        if data.get(key) is not None:
            data[key] = int(data[key])


def _validate_pins(data: dict[str, Any]) -> dict[str, str]:
    """Validate that every line has its own pin."""
    pins = [data.get(key, default) for key, default in PIN_OPTIONS.values()]
    if len(set(pins)) != len(pins):
        return {"base": "duplicate_pins"}
    return {}


class PoolCoverConfigFlow(ConfigFlow, domain=DOMAIN):
    """Handle a config flow for Pool Cover."""

    VERSION = 1

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """Choose a name, the GPIO pins and the timing."""
        errors: dict[str, str] = {}
        if user_input is not None:
            data = _flatten_input(user_input)
            _normalize_pins(data)
            errors = _validate_pins(data)
            if not errors:
                name = data.pop(CONF_NAME)
                return self.async_create_entry(
                    title=name,
                    data={},
                    options=data,
                )

        schema = _build_schema(
            defaults=_flatten_input(user_input) if user_input else None
        )
        return self.async_show_form(step_id="user", data_schema=schema, errors=errors)

    @staticmethod
    @callback
    def async_get_options_flow(
        config_entry: ConfigEntry,
    ) -> PoolCoverOptionsFlow:
        """Get the options flow for this handler."""
        return PoolCoverOptionsFlow()


class PoolCoverOptionsFlow(OptionsFlow):
    """Handle options flow for reconfiguring a cover."""

    async def async_step_init(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """Change the GPIO pins and the timing."""
        errors: dict[str, str] = {}
        if user_input is not None:
            data = _flatten_input(user_input)
            _normalize_pins(data)
            errors = _validate_pins(data)
            if not errors:
                return self.async_create_entry(title="", data=data)

        current = dict(self.config_entry.options)
        if user_input is not None:
            current.update(_flatten_input(user_input))
        schema = _build_schema(defaults=current, include_name=False)
        return self.async_show_form(step_id="init", data_schema=schema, errors=errors)
