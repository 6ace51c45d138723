"""WebSocket API for the pool cover: state, long-poll, subscription and commands."""

from __future__ import annotations

import logging
from typing import Any

import voluptuous as vol
from homeassistant.components import websocket_api
from homeassistant.core import HomeAssistant, callback
from homeassistant.exceptions import HomeAssistantError

from .const import DOMAIN, LONGPOLL_MAX_TIMEOUT, LONGPOLL_TIMEOUT
from .cover_state import CoverState, PositionState
from .helpers import resolve_controller

_LOGGER = logging.getLogger(__name__)


def async_register_websocket_api(hass: HomeAssistant) -> None:
    """Register WebSocket API commands."""
    websocket_api.async_register_command(hass, ws_get_state)
    websocket_api.async_register_command(hass, ws_poll_state)
    websocket_api.async_register_command(hass, ws_subscribe)
    websocket_api.async_register_command(hass, ws_set_position_state)
    websocket_api.async_register_command(hass, ws_set_target_position)
    websocket_api.async_register_command(hass, ws_calibrate)
    websocket_api.async_register_command(hass, ws_cancel_calibration)


def _resolve_controller(hass: HomeAssistant, entity_id: str):
    """Resolve an entity_id to its controller.

    Returns (controller, error_msg) tuple.
    """
    try:
        return resolve_controller(hass, entity_id), None
    except HomeAssistantError as err:
        return None, str(err)


def _state_payload(state: CoverState) -> dict[str, Any]:
    return state.as_dict()


@websocket_api.websocket_command(
    {
        "type": f"{DOMAIN}/get_state",
        vol.Required("entity_id"): str,
    }
)
@websocket_api.async_response
async def ws_get_state(
    hass: HomeAssistant,
    connection: websocket_api.ActiveConnection,
    msg: dict[str, Any],
) -> None:
    """Handle get_state WebSocket command."""
    controller, error = _resolve_controller(hass, msg["entity_id"])
    if error:
        connection.send_error(msg["id"], "not_found", error)
        return

    connection.send_result(
        msg["id"],
        {
            "state": _state_payload(controller.get_state()),
            "target_position": controller.get_target_position(),
            "hardware": controller.get_hardware_state(),
            "hardware_present": controller.hardware_present,
            "calibration_info": controller.calibration_info.as_dict(),
        },
    )


@websocket_api.websocket_command(
    {
        "type": f"{DOMAIN}/poll_state",
        vol.Required("entity_id"): str,
        vol.Optional("state"): dict,
        vol.Optional("timeout", default=LONGPOLL_TIMEOUT): vol.All(
            vol.Coerce(float), vol.Range(min=0)
        ),
    }
)
@websocket_api.async_response
async def ws_poll_state(
    hass: HomeAssistant,
    connection: websocket_api.ActiveConnection,
    msg: dict[str, Any],
) -> None:
    """Answer once the state differs from the caller's copy.

    Without a ``state`` the current state is returned immediately. Otherwise
    the call waits for the next change, at most ``timeout`` seconds, and then
    returns whatever the state is.
    """
    controller, error = _resolve_controller(hass, msg["entity_id"])
    if error:
        connection.send_error(msg["id"], "not_found", error)
        return

    current = _state_payload(controller.get_state())
    known = msg.get("state")
    if known is None or known != current:
        connection.send_result(msg["id"], {"changed": True, "state": current})
        return

    timeout = min(msg["timeout"], LONGPOLL_MAX_TIMEOUT)
    state = await controller.async_wait_for_change(timeout)
    if state is None:
        connection.send_result(msg["id"], {"changed": False, "state": current})
        return
    connection.send_result(
        msg["id"], {"changed": True, "state": _state_payload(state)}
    )


@websocket_api.websocket_command(
    {
        "type": f"{DOMAIN}/subscribe",
        vol.Required("entity_id"): str,
    }
)
@callback
def ws_subscribe(
    hass: HomeAssistant,
    connection: websocket_api.ActiveConnection,
    msg: dict[str, Any],
) -> None:
    """Stream every state change until the subscription is closed."""
    controller, error = _resolve_controller(hass, msg["entity_id"])
    if error:
        connection.send_error(msg["id"], "not_found", error)
        return

    @callback
    def _forward_state(state: CoverState) -> None:
        connection.send_message(
            websocket_api.event_message(msg["id"], _state_payload(state))
        )

    connection.subscriptions[msg["id"]] = controller.async_add_listener(
        _forward_state
    )
    connection.send_result(msg["id"])
    _forward_state(controller.get_state())


@websocket_api.websocket_command(
    {
        "type": f"{DOMAIN}/set_position_state",
        vol.Required("entity_id"): str,
        vol.Required("position_state"): vol.In([int(s) for s in PositionState]),
    }
)
@websocket_api.async_response
async def ws_set_position_state(
    hass: HomeAssistant,
    connection: websocket_api.ActiveConnection,
    msg: dict[str, Any],
) -> None:
    """Open (1), close (0) or stop (2) the cover."""
    controller, error = _resolve_controller(hass, msg["entity_id"])
    if error:
        connection.send_error(msg["id"], "not_found", error)
        return

    position_state = PositionState(msg["position_state"])
    if position_state is PositionState.OPENING:
        controller.open()
    elif position_state is PositionState.CLOSING:
        controller.close()
    else:
        controller.stop()

    connection.send_result(msg["id"], {"success": True})


@websocket_api.websocket_command(
    {
        "type": f"{DOMAIN}/set_target_position",
        vol.Required("entity_id"): str,
        vol.Required("position"): vol.Coerce(float),
    }
)
@websocket_api.async_response
async def ws_set_target_position(
    hass: HomeAssistant,
    connection: websocket_api.ActiveConnection,
    msg: dict[str, Any],
) -> None:
    """Move the cover to a position between 0 and 100."""
    controller, error = _resolve_controller(hass, msg["entity_id"])
    if error:
        connection.send_error(msg["id"], "not_found", error)
        return

    try:
        controller.set_target_position(msg["position"])
    except ValueError as err:
        connection.send_error(msg["id"], "invalid_format", str(err))
        return

    connection.send_result(msg["id"], {"success": True})


@websocket_api.websocket_command(
    {
        "type": f"{DOMAIN}/calibrate",
        vol.Required("entity_id"): str,
    }
)
@websocket_api.async_response
async def ws_calibrate(
    hass: HomeAssistant,
    connection: websocket_api.ActiveConnection,
    msg: dict[str, Any],
) -> None:
    """Handle calibrate WebSocket command."""
    controller, error = _resolve_controller(hass, msg["entity_id"])
    if error:
        connection.send_error(msg["id"], "not_found", error)
        return

    if not controller.hardware_present:
        connection.send_error(
            msg["id"], "not_supported", "Calibration needs the limit switches"
        )
        return

    controller.calibrate()
    connection.send_result(msg["id"], {"success": True})


@websocket_api.websocket_command(
    {
        "type": f"{DOMAIN}/cancel_calibration",
        vol.Required("entity_id"): str,
    }
)
@websocket_api.async_response
async def ws_cancel_calibration(
    hass: HomeAssistant,
    connection: websocket_api.ActiveConnection,
    msg: dict[str, Any],
) -> None:
    """Handle cancel_calibration WebSocket command."""
    controller, error = _resolve_controller(hass, msg["entity_id"])
    if error:
        connection.send_error(msg["id"], "not_found", error)
        return

    cancelled = controller.cancel_calibration()
    _LOGGER.debug("cancel_calibration :: %s cancelled=%s", msg["entity_id"], cancelled)
    connection.send_result(msg["id"], {"cancelled": cancelled})
