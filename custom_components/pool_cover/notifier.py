"""Fan-out of cover state changes to independent listeners."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from homeassistant.core import CALLBACK_TYPE, callback

from .cover_state import CoverState

_LOGGER = logging.getLogger(__name__)

StateListener = Callable[[CoverState], None]


class ChangeNotifier:
    """Ordered registry of state-changed listeners.

    Listeners are called synchronously, in registration order, on the
    thread that publishes. Each receives the same immutable snapshot.
    """

    def __init__(self) -> None:
        self._listeners: dict[object, StateListener] = {}

    def __len__(self) -> int:
        return len(self._listeners)

    @callback
    def async_add_listener(self, listener: StateListener) -> CALLBACK_TYPE:
        """Register a listener and return the function that removes it."""
        handle = object()
        self._listeners[handle] = listener

        @callback
        def remove_listener() -> None:
            self._listeners.pop(handle, None)

        return remove_listener

    @callback
    def async_notify(self, state: CoverState) -> None:
        """Deliver ``state`` to every registered listener."""
        # Copy so listeners can remove themselves while being called
        for listener in list(self._listeners.values()):
            try:
                listener(state)
            except Exception:  # noqa: BLE001
                _LOGGER.exception("Error in cover state listener %s", listener)

    async def async_wait_for_change(self, timeout: float) -> CoverState | None:
        """Wait for the next published state, or None after ``timeout`` seconds."""
        future: asyncio.Future[CoverState] = (
            asyncio.get_running_loop().create_future()
        )

        @callback
        def _on_change(state: CoverState) -> None:
            if not future.done():
                future.set_result(state)

        remove = self.async_add_listener(_on_change)
        try:
            async with asyncio.timeout(timeout):
                return await future
        except TimeoutError:
            return None
        finally:
            remove()
