"""Calibration sequence for the pool cover.

Travel time is the only proxy for position, so it is measured in both
directions against the limit switches: close fully, pause, open fully and
time it, pause, close fully and time it. The elapsed-time estimate itself
is never used to decide when a leg ends.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from .const import CALIBRATION_SETTLE_MS
from .cover_state import MotionRecord, PositionState, StopReason

_LOGGER = logging.getLogger(__name__)


class CalibrationError(Exception):
    """A calibration leg ended in a way that cannot be measured."""


class CalibrationStep(Enum):
    """Steps of the calibration sequence, in order."""

    INITIAL_CLOSE = "initial_close"
    AWAIT_INITIAL_CLOSE = "await_initial_close"
    PAUSE_BEFORE_OPEN = "pause_before_open"
    OPENING = "opening"
    AWAIT_OPEN_STOPPED = "await_open_stopped"
    PAUSE_BEFORE_CLOSE = "pause_before_close"
    CLOSING = "closing"
    AWAIT_CLOSE_STOPPED = "await_close_stopped"
    DONE = "done"


class CoverMover(Protocol):
    """What the sequencer needs from the control loop."""

    def request_limiter_move(self, direction: PositionState) -> None:
        """Queue a move that only a limiter ends."""

    def finished_motion(self) -> MotionRecord | None:
        """Return the requested motion once it has completed."""


@dataclass(frozen=True, slots=True)
class _StepRule:
    """Entry action and advance condition of one step."""

    on_enter: Callable[[CalibrationSequencer, float], None] | None
    advance: Callable[[CalibrationSequencer, float], bool]
    next_step: CalibrationStep


class CalibrationSequencer:
    """One-shot calibration state machine, stepped by the control loop tick."""

    def __init__(self, mover: CoverMover, settle_ms: float = CALIBRATION_SETTLE_MS) -> None:
        self._mover = mover
        self.settle_ms = settle_ms
        self.step = CalibrationStep.INITIAL_CLOSE
        self.step_started_at: float | None = None
        self.open_travel_ms: int | None = None
        self.close_travel_ms: int | None = None

    @property
    def done(self) -> bool:
        """Return True once both travel times are measured."""
        return self.step is CalibrationStep.DONE

    def tick(self, now: float) -> None:
        """Run the current step once.

        The entry action runs on the first tick spent in a step; the step
        advances on the tick its condition holds.

        Raises:
            CalibrationError: a leg ended without reaching its limiter.
        """
        if self.done:
            return
        rule = _TRANSITIONS[self.step]
        if self.step_started_at is None:
            self.step_started_at = now
            if rule.on_enter is not None:
                rule.on_enter(self, now)
        if rule.advance(self, now):
            _LOGGER.debug("calibration: %s -> %s", self.step.value, rule.next_step.value)
            self.step = rule.next_step
            self.step_started_at = None

    # -----------------------------------------------------------------------
    # Entry actions
    # -----------------------------------------------------------------------

    def _issue_close(self, _now: float) -> None:
        self._mover.request_limiter_move(PositionState.CLOSING)

    def _issue_open(self, _now: float) -> None:
        self._mover.request_limiter_move(PositionState.OPENING)

    # -----------------------------------------------------------------------
    # Advance conditions
    # -----------------------------------------------------------------------

    def _issued(self, _now: float) -> bool:
        return True

    def _settled(self, now: float) -> bool:
        assert self.step_started_at is not None
        return now - self.step_started_at >= self.settle_ms

    def _initial_close_finished(self, _now: float) -> bool:
        return self._finished_at(StopReason.CLOSE_LIMITER) is not None

    def _open_finished(self, _now: float) -> bool:
        motion = self._finished_at(StopReason.OPEN_LIMITER)
        if motion is None:
            return False
        self.open_travel_ms = self._measure(motion)
        _LOGGER.info("calibration: open travel %d ms", self.open_travel_ms)
        return True

    def _close_finished(self, _now: float) -> bool:
        motion = self._finished_at(StopReason.CLOSE_LIMITER)
        if motion is None:
            return False
        self.close_travel_ms = self._measure(motion)
        _LOGGER.info("calibration: close travel %d ms", self.close_travel_ms)
        return True

    def _finished_at(self, expected: StopReason) -> MotionRecord | None:
        """Return the finished motion, if it ended at the expected limiter."""
        motion = self._mover.finished_motion()
        if motion is None:
            return None
        if motion.reason is not expected:
            raise CalibrationError(
                f"{self.step.value} ended with {motion.reason.value}, "
                f"expected {expected.value}"
            )
        return motion

    def _measure(self, motion: MotionRecord) -> int:
        travel_ms = round(motion.duration_ms)
        if travel_ms <= 0:
            raise CalibrationError(
                f"{self.step.value} measured a non-positive travel time ({travel_ms} ms)"
            )
        return travel_ms


_TRANSITIONS: dict[CalibrationStep, _StepRule] = {
    CalibrationStep.INITIAL_CLOSE: _StepRule(
        CalibrationSequencer._issue_close,
        CalibrationSequencer._issued,
        CalibrationStep.AWAIT_INITIAL_CLOSE,
    ),
    CalibrationStep.AWAIT_INITIAL_CLOSE: _StepRule(
        None,
        CalibrationSequencer._initial_close_finished,
        CalibrationStep.PAUSE_BEFORE_OPEN,
    ),
    CalibrationStep.PAUSE_BEFORE_OPEN: _StepRule(
        None,
        CalibrationSequencer._settled,
        CalibrationStep.OPENING,
    ),
    CalibrationStep.OPENING: _StepRule(
        CalibrationSequencer._issue_open,
        CalibrationSequencer._issued,
        CalibrationStep.AWAIT_OPEN_STOPPED,
    ),
    CalibrationStep.AWAIT_OPEN_STOPPED: _StepRule(
        None,
        CalibrationSequencer._open_finished,
        CalibrationStep.PAUSE_BEFORE_CLOSE,
    ),
    CalibrationStep.PAUSE_BEFORE_CLOSE: _StepRule(
        None,
        CalibrationSequencer._settled,
        CalibrationStep.CLOSING,
    ),
    CalibrationStep.CLOSING: _StepRule(
        CalibrationSequencer._issue_close,
        CalibrationSequencer._issued,
        CalibrationStep.AWAIT_CLOSE_STOPPED,
    ),
    CalibrationStep.AWAIT_CLOSE_STOPPED: _StepRule(
        None,
        CalibrationSequencer._close_finished,
        CalibrationStep.DONE,
    ),
}
