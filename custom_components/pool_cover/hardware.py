"""Digital lines wired to the cover: two limit switches and two motor relays."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from enum import StrEnum
from typing import Any

from gpiozero import DigitalInputDevice, DigitalOutputDevice

_LOGGER = logging.getLogger(__name__)


class Line(StrEnum):
    """The four lines the controller uses."""

    CLOSE_LIMITER = "close_limiter"
    OPEN_LIMITER = "open_limiter"
    MOTOR_OPEN = "motor_open"
    MOTOR_CLOSE = "motor_close"


INPUT_LINES = (Line.CLOSE_LIMITER, Line.OPEN_LIMITER)
OUTPUT_LINES = (Line.MOTOR_OPEN, Line.MOTOR_CLOSE)


class CoverLines(ABC):
    """Read, drive and release the cover's lines.

    Implementations never raise from ``read_level``/``drive_level`` for a
    missing chip; absence is reported once through ``present``.
    """

    present: bool = True

    @abstractmethod
    def read_level(self, line: Line) -> int:
        """Return the logic level (0 or 1) of a line."""

    @abstractmethod
    def drive_level(self, line: Line, level: int) -> None:
        """Drive an output line to a logic level."""

    @abstractmethod
    def release(self, line: Line) -> None:
        """Release a line. Releasing twice is allowed."""

    def release_all(self) -> None:
        """Release every line, outputs first.

        A failing release is logged and the remaining lines are still
        released.
        """
        for line in (*OUTPUT_LINES, *INPUT_LINES):
            try:
                self.release(line)
            except Exception:  # noqa: BLE001
                _LOGGER.exception("Failed to release %s line", line)


class AbsentCoverLines(CoverLines):
    """Stand-in used when no GPIO chip is available.

    Limiters always read as released and writes go nowhere, so the
    controller runs on estimated timing alone.
    """

    present = False

    def read_level(self, line: Line) -> int:
        return 0

    def drive_level(self, line: Line, level: int) -> None:
        return None

    def release(self, line: Line) -> None:
        return None


class GpioCoverLines(CoverLines):
    """Lines backed by gpiozero devices.

    Limiters are plain digital inputs (engaged = 1); motor relays are digital
    outputs that start low.
    """

    def __init__(self, pins: Mapping[Line, int], pin_factory: Any = None) -> None:
        self._devices: dict[Line, DigitalInputDevice | DigitalOutputDevice] = {}
        try:
            for line in OUTPUT_LINES:
                self._devices[line] = DigitalOutputDevice(
                    pins[line], initial_value=False, pin_factory=pin_factory
                )
            for line in INPUT_LINES:
                self._devices[line] = DigitalInputDevice(
                    pins[line], pin_factory=pin_factory
                )
        except Exception:
            # Give back whatever was acquired before the failure
            self.release_all()
            raise

    def read_level(self, line: Line) -> int:
        device = self._devices.get(line)
        if device is None or device.closed:
            return 0
        return 1 if device.value else 0

    def drive_level(self, line: Line, level: int) -> None:
        device = self._devices.get(line)
        if not isinstance(device, DigitalOutputDevice) or device.closed:
            return
        if level:
            device.on()
        else:
            device.off()

    def release(self, line: Line) -> None:
        device = self._devices.pop(line, None)
        if device is None:
            return
        if isinstance(device, DigitalOutputDevice) and not device.closed:
            device.off()
        device.close()


def open_cover_lines(pins: Mapping[Line, int], pin_factory: Any = None) -> CoverLines:
    """Acquire the cover's lines, degrading to ``AbsentCoverLines`` on failure.

    Failure is the normal case when not running on the target board.
    """
    try:
        lines = GpioCoverLines(pins, pin_factory=pin_factory)
    except Exception as exc:  # noqa: BLE001
        _LOGGER.warning(
            "GPIO lines unavailable (%s), running on estimated timing only", exc
        )
        return AbsentCoverLines()
    _LOGGER.info(
        "GPIO lines acquired: %s",
        ", ".join(f"{line}={pins[line]}" for line in Line),
    )
    return lines
