"""Shared helper functions for the pool_cover integration."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from homeassistant.core import HomeAssistant
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers import entity_registry as er

from .const import (
    CONF_CLOSE_LIMITER_PIN,
    CONF_COMMAND_DWELL_TIME,
    CONF_ENDPOINT_RUNON_TIME,
    CONF_LIMITER_GRACE_TIME,
    CONF_MAX_RUN_TIME,
    CONF_MOTOR_CLOSE_PIN,
    CONF_MOTOR_OPEN_PIN,
    CONF_OPEN_LIMITER_PIN,
    DEFAULT_CLOSE_LIMITER_PIN,
    DEFAULT_COMMAND_DWELL_TIME,
    DEFAULT_ENDPOINT_RUNON_TIME,
    DEFAULT_LIMITER_GRACE_TIME,
    DEFAULT_MAX_RUN_TIME,
    DEFAULT_MOTOR_CLOSE_PIN,
    DEFAULT_MOTOR_OPEN_PIN,
    DEFAULT_OPEN_LIMITER_PIN,
    DOMAIN,
)
from .controller import ControlTiming
from .hardware import Line

if TYPE_CHECKING:
    from .controller import PoolCoverController

PIN_OPTIONS: dict[Line, tuple[str, int]] = {
    Line.CLOSE_LIMITER: (CONF_CLOSE_LIMITER_PIN, DEFAULT_CLOSE_LIMITER_PIN),
    Line.OPEN_LIMITER: (CONF_OPEN_LIMITER_PIN, DEFAULT_OPEN_LIMITER_PIN),
    Line.MOTOR_OPEN: (CONF_MOTOR_OPEN_PIN, DEFAULT_MOTOR_OPEN_PIN),
    Line.MOTOR_CLOSE: (CONF_MOTOR_CLOSE_PIN, DEFAULT_MOTOR_CLOSE_PIN),
}


def pins_from_options(options: Mapping[str, Any]) -> dict[Line, int]:
    """Return the BCM pin of every line, falling back to the defaults."""
    return {
        line: int(options.get(key, default))
        for line, (key, default) in PIN_OPTIONS.items()
    }


def _seconds_to_ms(options: Mapping[str, Any], key: str, default: float) -> float:
    value = options.get(key)
    if value is None:
        value = default
    return float(value) * 1000


def timing_from_options(options: Mapping[str, Any]) -> ControlTiming:
    """Build the control loop timing from config entry options (seconds)."""
    return ControlTiming(
        limiter_grace_ms=_seconds_to_ms(
            options, CONF_LIMITER_GRACE_TIME, DEFAULT_LIMITER_GRACE_TIME
        ),
        command_dwell_ms=_seconds_to_ms(
            options, CONF_COMMAND_DWELL_TIME, DEFAULT_COMMAND_DWELL_TIME
        ),
        endpoint_runon_ms=_seconds_to_ms(
            options, CONF_ENDPOINT_RUNON_TIME, DEFAULT_ENDPOINT_RUNON_TIME
        ),
        max_run_ms=_seconds_to_ms(options, CONF_MAX_RUN_TIME, DEFAULT_MAX_RUN_TIME),
    )


def resolve_controller(hass: HomeAssistant, entity_id: str) -> PoolCoverController:
    """Resolve a pool_cover entity_id to the controller of its config entry.

    Returns the controller or raises HomeAssistantError.
    """
    entity_reg = er.async_get(hass)
    entry = entity_reg.async_get(entity_id)
    if not entry or not entry.config_entry_id:
        raise HomeAssistantError(f"{entity_id} not found or not a config entry entity")

    config_entry = hass.config_entries.async_get_entry(entry.config_entry_id)
    if not config_entry or config_entry.domain != DOMAIN:
        raise HomeAssistantError(f"{entity_id} does not belong to {DOMAIN}")

    controller = getattr(config_entry, "runtime_data", None)
    if controller is None:
        raise HomeAssistantError(f"{entity_id} is not loaded")
    return controller
