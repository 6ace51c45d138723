"""Position estimation for a cover without a position sensor.

Interpolates linearly between an anchor (the position when the motor last
started) and the extreme in the direction of travel, using the calibrated
full-travel time of that direction. Times are milliseconds on a monotonic
clock supplied by the caller.
"""

from __future__ import annotations

from .cover_state import PositionState, clamp_position


class TravelCalculator:
    """Calculate the current position of a cover based on travel time.

    Position convention: 0 = fully closed, 100 = fully open.
    """

    __slots__ = (
        "_anchor_position",
        "_anchor_time",
        "travel_direction",
        "travel_time_close",
        "travel_time_open",
    )

    def __init__(self, travel_time_close: float, travel_time_open: float) -> None:
        """Initialize TravelCalculator.

        Args:
            travel_time_close: Milliseconds to travel from open to closed.
            travel_time_open: Milliseconds to travel from closed to open.
        """
        self.travel_direction = PositionState.STOPPED
        self.travel_time_close = travel_time_close
        self.travel_time_open = travel_time_open

        self._anchor_position = 0.0
        self._anchor_time = 0.0

    def set_travel_times(self, travel_time_close: float, travel_time_open: float) -> None:
        """Replace the full-travel durations."""
        self.travel_time_close = travel_time_close
        self.travel_time_open = travel_time_open

    def start_travel(
        self, direction: PositionState, position: float, now: float
    ) -> None:
        """Anchor the estimate at ``position`` and start moving."""
        self.travel_direction = direction
        self._anchor_position = clamp_position(position)
        self._anchor_time = now

    def stop(self) -> None:
        """Stop traveling."""
        self.travel_direction = PositionState.STOPPED

    def is_traveling(self) -> bool:
        """Return if the cover is traveling."""
        return self.travel_direction is not PositionState.STOPPED

    @property
    def anchor_position(self) -> float:
        """Return the position the current travel started from."""
        return self._anchor_position

    def current_position(self, now: float) -> float:
        """Return the estimated position at ``now``."""
        if not self.is_traveling():
            return self._anchor_position

        travel_time = (
            self.travel_time_open
            if self.travel_direction is PositionState.OPENING
            else self.travel_time_close
        )
        if travel_time <= 0:
            return self._extreme()

        elapsed = max(0.0, now - self._anchor_time)
        change = elapsed * 100 / travel_time
        if self.travel_direction is PositionState.OPENING:
            return clamp_position(self._anchor_position + change)
        return clamp_position(self._anchor_position - change)

    def arrival_time(self, target: float) -> float:
        """Return the clock value at which the estimate reaches ``target``."""
        return self._anchor_time + self.calculate_travel_time(
            self._anchor_position, target
        )

    def calculate_travel_time(self, from_position: float, to_position: float) -> float:
        """Calculate time to travel from one position to another."""
        travel_range = to_position - from_position
        # Positive range = opening (position increasing), use travel_time_open
        travel_time_full = (
            self.travel_time_open if travel_range > 0 else self.travel_time_close
        )
        return travel_time_full * abs(travel_range) / 100

    def _extreme(self) -> float:
        if self.travel_direction is PositionState.OPENING:
            return 100.0
        return 0.0
