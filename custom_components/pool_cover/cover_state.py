"""State types shared by the pool cover controller and its observers.

Position convention: 0 = fully closed, 100 = fully open.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from enum import Enum, IntEnum, StrEnum
from typing import Any

from .const import DEFAULT_TRAVEL_MS, POSITION_CLOSED, POSITION_OPEN


class PositionState(IntEnum):
    """What the motor is doing right now.

    Values match the HomeKit PositionState characteristic, which is also
    the wire value of the websocket API.
    """

    CLOSING = 0
    OPENING = 1
    STOPPED = 2


class CalibrationStatus(StrEnum):
    """Calibration status exposed in the cover snapshot."""

    UNCALIBRATED = "uncalibrated"
    IN_PROGRESS = "inprogress"
    CALIBRATED = "calibrated"


class StopReason(Enum):
    """Why the motor was last switched off."""

    TARGET_REACHED = "target_reached"
    OPEN_LIMITER = "open_limiter"
    CLOSE_LIMITER = "close_limiter"
    ENDPOINT_RUNON = "endpoint_runon"
    STOP_REQUESTED = "stop_requested"
    REVERSAL = "reversal"
    MOTOR_TIMEOUT = "motor_timeout"
    SHUTDOWN = "shutdown"


def clamp_position(position: float) -> float:
    """Clamp a position to the 0-100 range."""
    return max(POSITION_CLOSED, min(POSITION_OPEN, position))


@dataclass(frozen=True, slots=True)
class CoverState:
    """Immutable snapshot of the cover handed to observers."""

    current_position: float
    target_position: float
    position_state: PositionState
    calibration: CalibrationStatus

    def as_dict(self) -> dict[str, Any]:
        """Return the flat JSON shape used by the long-poll API."""
        return {
            "currentPosition": self.current_position,
            "targetPosition": self.target_position,
            "positionState": int(self.position_state),
            "calibration": str(self.calibration),
        }


@dataclass(slots=True)
class CalibrationInfo:
    """Persisted motor timing, measured by the calibration sequence."""

    calibrated: bool = False
    open_travel_ms: int = DEFAULT_TRAVEL_MS
    close_travel_ms: int = DEFAULT_TRAVEL_MS

    def travel_ms(self, direction: PositionState) -> int:
        """Return the full-travel duration for a direction."""
        if direction is PositionState.OPENING:
            return self.open_travel_ms
        return self.close_travel_ms

    def copy(self) -> CalibrationInfo:
        """Return an independent copy."""
        return CalibrationInfo(**asdict(self))

    def as_dict(self) -> dict[str, Any]:
        """Return the persisted record shape."""
        return {
            "calibrated": self.calibrated,
            "openTravelMs": self.open_travel_ms,
            "closeTravelMs": self.close_travel_ms,
        }

    def to_json(self) -> str:
        """Serialize to the persisted record."""
        return json.dumps(self.as_dict())

    @classmethod
    def from_json(cls, raw: str | bytes) -> CalibrationInfo:
        """Parse a persisted record.

        Records written before the travel fields were renamed use
        ``openTime``/``closeTime``; both spellings are accepted.

        Raises:
            ValueError: the record is not valid JSON or not a usable record.
        """
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError(f"Calibration record is not an object: {data!r}")

        open_ms = data.get("openTravelMs", data.get("openTime"))
        close_ms = data.get("closeTravelMs", data.get("closeTime"))
        if open_ms is None or close_ms is None:
            raise ValueError("Calibration record is missing travel times")

        try:
            open_ms = int(open_ms)
            close_ms = int(close_ms)
        except (TypeError, ValueError) as err:
            raise ValueError(f"Invalid travel time in calibration record: {err}") from err
        if open_ms <= 0 or close_ms <= 0:
            raise ValueError("Calibration travel times must be positive")

        return cls(
            calibrated=bool(data.get("calibrated", False)),
            open_travel_ms=open_ms,
            close_travel_ms=close_ms,
        )


@dataclass(frozen=True, slots=True)
class Intent:
    """A commanded motion and the condition that ends it."""

    direction: PositionState
    target: float
    until_limiter: bool = False
    # How long the motor may keep running once the estimate sits at the
    # extreme. None means only a limiter (or the motor timeout) ends the run.
    runon_ms: float | None = None

    @classmethod
    def to_limiter(
        cls, direction: PositionState, runon_ms: float | None = None
    ) -> Intent:
        """Move until the limiter for this direction engages."""
        target = POSITION_OPEN if direction is PositionState.OPENING else POSITION_CLOSED
        return cls(direction, target, until_limiter=True, runon_ms=runon_ms)

    @classmethod
    def to_position(cls, direction: PositionState, target: float) -> Intent:
        """Move until the estimated position reaches ``target``."""
        return cls(direction, clamp_position(target))


@dataclass(frozen=True, slots=True)
class MotionRecord:
    """One completed motor run."""

    direction: PositionState
    started_at: float
    stopped_at: float
    reason: StopReason

    @property
    def duration_ms(self) -> float:
        """Return how long the motor ran."""
        return self.stopped_at - self.started_at
