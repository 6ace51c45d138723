"""Shared fixtures for pool_cover tests."""

import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock

from custom_components.pool_cover.controller import ControlTiming, PoolCoverController
from custom_components.pool_cover.cover_state import CalibrationInfo
from custom_components.pool_cover.hardware import AbsentCoverLines, CoverLines, Line

TICK_MS = 100


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class FakeLines(CoverLines):
    """In-memory lines; limiters are set by the test."""

    def __init__(self) -> None:
        self.levels = {line: 0 for line in Line}
        self.writes: list[tuple[Line, int]] = []
        self.released: list[Line] = []

    def read_level(self, line: Line) -> int:
        return self.levels[line]

    def drive_level(self, line: Line, level: int) -> None:
        self.levels[line] = level
        self.writes.append((line, level))

    def release(self, line: Line) -> None:
        self.released.append(line)

    def engage(self, line: Line) -> None:
        self.levels[line] = 1

    def disengage(self, line: Line) -> None:
        self.levels[line] = 0


class DictStore:
    """Key/value store kept in a dict."""

    def __init__(self, data=None) -> None:
        self.data = dict(data or {})

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        self.data[key] = value


@pytest.fixture
def clock():
    """Return a fake clock starting at t=0 ms."""
    return FakeClock()


@pytest.fixture
def lines():
    """Return fake hardware lines with both limiters released."""
    return FakeLines()


@pytest.fixture
def store():
    """Return an empty calibration store."""
    return DictStore()


@pytest.fixture
def make_controller(clock, lines, store):
    """Return a factory that creates a PoolCoverController on fake hardware.

    ``calibrated`` seeds the store with a calibration record using the given
    travel times; ``absent`` builds the controller without hardware.
    """

    def _make(
        calibrated=True,
        open_travel_ms=10000,
        close_travel_ms=10000,
        absent=False,
        timing=None,
    ):
        if calibrated:
            store.set(
                "cover_state",
                CalibrationInfo(True, open_travel_ms, close_travel_ms).to_json(),
            )
        return PoolCoverController(
            AbsentCoverLines() if absent else lines,
            store,
            timing=timing or ControlTiming(),
            clock=clock,
        )

    return _make


@pytest.fixture
def run_ticks(clock):
    """Return a function that advances the clock and ticks every 100 ms."""

    def _run(controller, ms):
        for _ in range(int(ms // TICK_MS)):
            clock.advance(TICK_MS)
            controller.tick()

    return _run


@pytest.fixture
def make_hass():
    """Return a factory that creates a minimal mock HA instance."""

    def _make():
        hass = MagicMock()
        hass.data = {}
        hass.async_add_executor_job = AsyncMock(
            side_effect=lambda func, *args: func(*args)
        )
        hass.async_create_task = lambda coro: asyncio.ensure_future(coro)
        hass.config_entries.async_forward_entry_setups = AsyncMock()
        hass.config_entries.async_unload_platforms = AsyncMock(return_value=True)
        hass.config_entries.async_reload = AsyncMock()
        return hass

    return _make
