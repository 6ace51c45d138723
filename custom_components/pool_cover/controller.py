"""Control loop for the pool cover actuator.

Every 100 ms the loop reconciles the commanded intent with what the motor
is doing, estimates the position from elapsed travel time, and honors the
limit switches. External calls only queue intent; ``tick`` is the only
place that changes the motor, the position or the position state.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from homeassistant.core import CALLBACK_TYPE, HomeAssistant, callback
from homeassistant.helpers.event import async_track_time_interval

from .calibration import CalibrationError, CalibrationSequencer
from .const import (
    CALIBRATION_KEY,
    CALIBRATION_SETTLE_MS,
    DEFAULT_COMMAND_DWELL_TIME,
    DEFAULT_ENDPOINT_RUNON_TIME,
    DEFAULT_LIMITER_GRACE_TIME,
    DEFAULT_MAX_RUN_TIME,
    DOMAIN,
    POSITION_CLOSED,
    POSITION_EPSILON,
    POSITION_OPEN,
    TICK_INTERVAL,
)
from .cover_state import (
    CalibrationInfo,
    CalibrationStatus,
    CoverState,
    Intent,
    MotionRecord,
    PositionState,
    StopReason,
)
from .hardware import CoverLines, Line
from .notifier import ChangeNotifier, StateListener
from .travel_calculator import TravelCalculator

_LOGGER = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """Persistence for the calibration record."""

    def get(self, key: str) -> str | None:
        """Return the stored value, if any."""

    def set(self, key: str, value: str) -> None:
        """Store a value."""


@dataclass(frozen=True, slots=True)
class ControlTiming:
    """Tunable timing of the control loop. Durations are milliseconds."""

    limiter_grace_ms: float = DEFAULT_LIMITER_GRACE_TIME * 1000
    command_dwell_ms: float = DEFAULT_COMMAND_DWELL_TIME * 1000
    endpoint_runon_ms: float = DEFAULT_ENDPOINT_RUNON_TIME * 1000
    max_run_ms: float = DEFAULT_MAX_RUN_TIME * 1000
    calibration_settle_ms: float = CALIBRATION_SETTLE_MS
    position_epsilon: float = POSITION_EPSILON


def monotonic_ms() -> float:
    """Return a monotonic clock reading in milliseconds."""
    return time.monotonic() * 1000


# direction -> (limiter line, position at that limiter, stop reason)
_LIMITERS: dict[PositionState, tuple[Line, float, StopReason]] = {
    PositionState.OPENING: (Line.OPEN_LIMITER, POSITION_OPEN, StopReason.OPEN_LIMITER),
    PositionState.CLOSING: (
        Line.CLOSE_LIMITER,
        POSITION_CLOSED,
        StopReason.CLOSE_LIMITER,
    ),
}


class PoolCoverController:
    """State machine driving the cover motor."""

    def __init__(
        self,
        lines: CoverLines,
        store: KeyValueStore,
        *,
        storage_key: str = CALIBRATION_KEY,
        timing: ControlTiming | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._lines = lines
        self._store = store
        self._storage_key = storage_key
        self._timing = timing or ControlTiming()
        self._clock = clock or monotonic_ms
        self._notifier = ChangeNotifier()

        self._info = self._load_calibration()
        if not lines.present:
            # Nothing can be measured without limiters; trust the stored or
            # default travel times.
            _LOGGER.warning(
                "No cover hardware, assuming travel times of %d ms (open) and %d ms (close)",
                self._info.open_travel_ms,
                self._info.close_travel_ms,
            )
            self._info.calibrated = True
        self._calibration = (
            CalibrationStatus.CALIBRATED
            if self._info.calibrated
            else CalibrationStatus.UNCALIBRATED
        )
        self._travel = TravelCalculator(
            self._info.close_travel_ms, self._info.open_travel_ms
        )

        self._position = POSITION_CLOSED
        self._position_state = PositionState.STOPPED
        self._pending: Intent | None = None
        self._active: Intent | None = None
        self._stop_requested = False
        self._sequencer: CalibrationSequencer | None = None

        self._last_state_change: float | None = None
        self._last_command: float | None = None
        self._last_direction: PositionState | None = None
        self._motion_started = 0.0
        self._last_motion: MotionRecord | None = None

        self._unsub_tick: CALLBACK_TYPE | None = None
        self._shut_down = False
        self._published = self.get_state()

    # -----------------------------------------------------------------------
    # Observers
    # -----------------------------------------------------------------------

    def get_state(self) -> CoverState:
        """Return a snapshot of the cover."""
        return CoverState(
            current_position=self._position,
            target_position=self.get_target_position(),
            position_state=self._position_state,
            calibration=self._calibration,
        )

    def get_target_position(self) -> float:
        """Resolve the current intent to an absolute target."""
        if self._pending is not None:
            return self._pending.target
        if self._active is not None and not self._stop_requested:
            return self._active.target
        return self._position

    def get_hardware_state(self) -> dict[str, int]:
        """Return raw line levels, or an empty dict without hardware."""
        if not self._lines.present:
            return {}
        return {
            "motorOpen": self._lines.read_level(Line.MOTOR_OPEN),
            "motorClose": self._lines.read_level(Line.MOTOR_CLOSE),
            "openLimiter": self._lines.read_level(Line.OPEN_LIMITER),
            "closeLimiter": self._lines.read_level(Line.CLOSE_LIMITER),
        }

    @property
    def calibration_info(self) -> CalibrationInfo:
        """Return a copy of the motor timing in use."""
        return self._info.copy()

    @property
    def hardware_present(self) -> bool:
        """Return True when real GPIO lines were acquired."""
        return self._lines.present

    @callback
    def async_add_listener(self, listener: StateListener) -> CALLBACK_TYPE:
        """Register a state-changed listener; returns its remove function."""
        return self._notifier.async_add_listener(listener)

    async def async_wait_for_change(self, timeout: float) -> CoverState | None:
        """Wait for the next state change, or None after ``timeout`` seconds."""
        return await self._notifier.async_wait_for_change(timeout)

    # -----------------------------------------------------------------------
    # Commands
    # -----------------------------------------------------------------------

    def open(self) -> None:
        """Open the cover fully."""
        _LOGGER.info("Open command received")
        self._request(
            Intent.to_limiter(PositionState.OPENING, self._timing.endpoint_runon_ms)
        )

    def close(self) -> None:
        """Close the cover fully."""
        _LOGGER.info("Close command received")
        self._request(
            Intent.to_limiter(PositionState.CLOSING, self._timing.endpoint_runon_ms)
        )

    def stop(self) -> None:
        """Stop the motor on the next tick."""
        if self._calibration is CalibrationStatus.IN_PROGRESS:
            _LOGGER.debug("stop :: ignored, calibration in progress")
            return
        _LOGGER.info("Stop command received")
        self._pending = None
        self._stop_requested = True

    def set_target_position(self, position: float) -> None:
        """Move the cover to ``position``.

        Raises:
            ValueError: ``position`` is not a number between 0 and 100.
        """
        if (
            isinstance(position, bool)
            or not isinstance(position, (int, float))
            or not math.isfinite(position)
            or not POSITION_CLOSED <= position <= POSITION_OPEN
        ):
            raise ValueError(f"Position must be between 0 and 100, got {position!r}")

        _LOGGER.info("Set position command received: %s", position)
        if position == self._position:
            _LOGGER.debug("set_target_position :: already at %s", position)
            return

        direction = (
            PositionState.OPENING if position > self._position else PositionState.CLOSING
        )
        if position in (POSITION_CLOSED, POSITION_OPEN):
            intent = Intent.to_limiter(direction, self._timing.endpoint_runon_ms)
        else:
            intent = Intent.to_position(direction, position)
        self._request(intent)

    def calibrate(self) -> None:
        """Start the calibration sequence."""
        if self._calibration is CalibrationStatus.IN_PROGRESS:
            _LOGGER.debug("calibrate :: already in progress")
            return
        if not self._lines.present:
            _LOGGER.warning("Calibration needs the limit switches, ignoring request")
            return
        _LOGGER.info("Calibration started")
        self._pending = None
        self._stop_requested = False
        self._calibration = CalibrationStatus.IN_PROGRESS
        self._sequencer = CalibrationSequencer(self, self._timing.calibration_settle_ms)

    def cancel_calibration(self) -> bool:
        """Abort a running calibration. Returns False if none was running."""
        if self._sequencer is None:
            return False
        _LOGGER.info("Calibration cancelled")
        self._abort_calibration()
        return True

    def _request(self, intent: Intent) -> None:
        now = self._clock()
        if self._calibration is CalibrationStatus.IN_PROGRESS:
            _LOGGER.debug("command ignored, calibration in progress")
            return
        if self._calibration is CalibrationStatus.UNCALIBRATED:
            _LOGGER.debug("command ignored, cover not calibrated")
            return
        if not self._dwell_elapsed(now):
            _LOGGER.debug("command ignored, inside dwell window")
            return
        self._pending = intent
        self._last_command = now

    # -----------------------------------------------------------------------
    # Calibration sequencer hooks
    # -----------------------------------------------------------------------

    def request_limiter_move(self, direction: PositionState) -> None:
        """Queue a calibration leg that only a limiter ends."""
        self._pending = Intent.to_limiter(direction)
        self._last_motion = None

    def finished_motion(self) -> MotionRecord | None:
        """Return the last requested motion once the motor is idle again."""
        if (
            self._pending is not None
            or self._active is not None
            or self._position_state is not PositionState.STOPPED
        ):
            return None
        return self._last_motion

    # -----------------------------------------------------------------------
    # Control loop
    # -----------------------------------------------------------------------

    @callback
    def async_start(self, hass: HomeAssistant) -> None:
        """Start ticking on the Home Assistant event loop."""
        if self._unsub_tick is not None or self._shut_down:
            return
        self._unsub_tick = async_track_time_interval(
            hass, self._async_tick, TICK_INTERVAL, name=f"{DOMAIN} control loop"
        )

    @callback
    def _async_tick(self, _now: datetime) -> None:
        self.tick()

    def tick(self) -> None:
        """Run one control cycle."""
        if self._shut_down:
            return
        now = self._clock()

        if self._sequencer is not None:
            self._run_sequencer(now)
        self._apply_intent(now)
        self._estimate_position(now)
        self._check_stop_condition(now)
        # Hard override, always last
        self._check_limiters(now)
        self._publish_if_changed()

    def shutdown(self) -> None:
        """Stop ticking, switch the motor off and release the lines."""
        if self._stop_loop():
            self._lines.release_all()
            _LOGGER.info("Pool cover controller shut down")

    async def async_shutdown(self, hass: HomeAssistant) -> None:
        """Like ``shutdown``, releasing the lines in the executor."""
        if self._stop_loop():
            # gpiozero closes devices through sysfs
            await hass.async_add_executor_job(self._lines.release_all)
            _LOGGER.info("Pool cover controller shut down")

    def _stop_loop(self) -> bool:
        """Stop ticking and switch the motor off. Returns False if already done."""
        if self._shut_down:
            return False
        self._shut_down = True
        if self._unsub_tick is not None:
            self._unsub_tick()
            self._unsub_tick = None

        self._sequencer = None
        self._pending = None
        try:
            if self._position_state is not PositionState.STOPPED:
                self._halt(self._clock(), StopReason.SHUTDOWN)
            else:
                self._motors_off()
        except Exception:  # noqa: BLE001
            _LOGGER.exception("Failed to switch the motor off during shutdown")
        return True

    def _apply_intent(self, now: float) -> None:
        if self._stop_requested:
            self._stop_requested = False
            if self._position_state is not PositionState.STOPPED:
                self._halt(now, StopReason.STOP_REQUESTED)

        intent = self._pending
        if intent is None:
            return

        if self._position_state is PositionState.STOPPED:
            if self._reversal_blocked(intent.direction, now):
                return
            self._pending = None
            if intent.until_limiter and self._at_limiter(intent.direction, now):
                return
            self._start(intent, now)
        elif intent.direction is self._position_state:
            self._pending = None
            self._active = intent
            _LOGGER.debug("new target %.1f while moving", intent.target)
        else:
            # Stop first; the intent stays pending until the dwell has passed
            self._halt(now, StopReason.REVERSAL)

    def _estimate_position(self, now: float) -> None:
        if self._info.calibrated and self._position_state is not PositionState.STOPPED:
            self._position = self._travel.current_position(now)

    def _check_stop_condition(self, now: float) -> None:
        intent = self._active
        if intent is None or self._position_state is PositionState.STOPPED:
            return

        if intent.until_limiter:
            line, endpoint, reason = _LIMITERS[intent.direction]
            if self._limiters_trusted(now) and self._limiter_engaged(line):
                _LOGGER.info("%s engaged", line)
                self._halt(now, reason, snap=endpoint)
                return
            if (
                intent.runon_ms is not None
                and self._info.calibrated
                and now >= self._travel.arrival_time(endpoint) + intent.runon_ms
            ):
                self._halt(now, StopReason.ENDPOINT_RUNON, snap=endpoint)
                return
        elif self._target_reached(intent):
            self._halt(now, StopReason.TARGET_REACHED)
            return

        if now - self._motion_started >= self._timing.max_run_ms:
            _LOGGER.error(
                "Motor ran %.0f ms without reaching its stop condition, stopping",
                now - self._motion_started,
            )
            self._halt(now, StopReason.MOTOR_TIMEOUT)

    def _check_limiters(self, now: float) -> None:
        if not self._limiters_trusted(now):
            return
        for line, endpoint, reason in _LIMITERS.values():
            if not self._limiter_engaged(line):
                continue
            if self._position_state is not PositionState.STOPPED:
                _LOGGER.info(
                    "%s engaged while %s, stopping motor",
                    line,
                    self._position_state.name.lower(),
                )
                self._halt(now, reason, snap=endpoint)
            else:
                self._position = endpoint
            return

    def _publish_if_changed(self) -> None:
        state = self.get_state()
        last = self._published
        epsilon = self._timing.position_epsilon
        if (
            state.position_state is last.position_state
            and state.calibration is last.calibration
            and abs(state.current_position - last.current_position) <= epsilon
            and abs(state.target_position - last.target_position) <= epsilon
        ):
            return
        self._published = state
        self._notifier.async_notify(state)

    # -----------------------------------------------------------------------
    # Motor
    # -----------------------------------------------------------------------

    def _start(self, intent: Intent, now: float) -> None:
        if intent.direction is PositionState.OPENING:
            on_line, off_line = Line.MOTOR_OPEN, Line.MOTOR_CLOSE
        else:
            on_line, off_line = Line.MOTOR_CLOSE, Line.MOTOR_OPEN
        self._lines.drive_level(off_line, 0)
        self._lines.drive_level(on_line, 1)

        self._active = intent
        self._position_state = intent.direction
        self._last_state_change = now
        self._last_direction = intent.direction
        self._motion_started = now
        self._travel.start_travel(intent.direction, self._position, now)
        _LOGGER.info(
            "Motor %s from %.1f%% towards %.1f%%",
            intent.direction.name.lower(),
            self._position,
            intent.target,
        )

    def _halt(self, now: float, reason: StopReason, snap: float | None = None) -> None:
        self._motors_off()
        direction = self._position_state
        self._estimate_position(now)
        self._position_state = PositionState.STOPPED
        self._active = None
        self._travel.stop()
        if snap is not None:
            self._position = snap
        if direction is not PositionState.STOPPED:
            self._last_state_change = now
            self._last_motion = MotionRecord(
                direction, self._motion_started, now, reason
            )
        _LOGGER.info("Motor stopped (%s) at %.1f%%", reason.value, self._position)

    def _motors_off(self) -> None:
        self._lines.drive_level(Line.MOTOR_OPEN, 0)
        self._lines.drive_level(Line.MOTOR_CLOSE, 0)

    def _at_limiter(self, direction: PositionState, now: float) -> bool:
        """Finish a limiter move without running when already at that limiter."""
        line, endpoint, reason = _LIMITERS[direction]
        if not self._limiter_engaged(line):
            return False
        # The limiter that ended the last motion needs no grace period
        stopped_here = (
            self._last_motion is not None
            and self._last_motion.reason is reason
            and self._position == endpoint
        )
        if not (stopped_here or self._limiters_trusted(now)):
            return False
        _LOGGER.debug("%s already engaged, nothing to do", line)
        self._position = endpoint
        self._last_motion = MotionRecord(direction, now, now, reason)
        return True

    # -----------------------------------------------------------------------
    # Guards
    # -----------------------------------------------------------------------

    def _limiter_engaged(self, line: Line) -> bool:
        return self._lines.read_level(line) == 1

    def _limiters_trusted(self, now: float) -> bool:
        return (
            self._last_state_change is None
            or now - self._last_state_change >= self._timing.limiter_grace_ms
        )

    def _dwell_elapsed(self, now: float) -> bool:
        marks = [
            mark
            for mark in (self._last_state_change, self._last_command)
            if mark is not None
        ]
        return not marks or now - max(marks) >= self._timing.command_dwell_ms

    def _reversal_blocked(self, direction: PositionState, now: float) -> bool:
        return (
            self._last_direction is not None
            and direction is not self._last_direction
            and self._last_state_change is not None
            and now - self._last_state_change < self._timing.command_dwell_ms
        )

    def _target_reached(self, intent: Intent) -> bool:
        if intent.direction is PositionState.OPENING:
            return self._position >= intent.target
        return self._position <= intent.target

    # -----------------------------------------------------------------------
    # Calibration
    # -----------------------------------------------------------------------

    def _run_sequencer(self, now: float) -> None:
        assert self._sequencer is not None
        try:
            self._sequencer.tick(now)
        except CalibrationError as err:
            _LOGGER.error("Calibration failed: %s", err)
            self._abort_calibration()
            return
        if self._sequencer.done:
            self._finish_calibration()

    def _finish_calibration(self) -> None:
        sequencer = self._sequencer
        assert sequencer is not None
        assert sequencer.open_travel_ms is not None
        assert sequencer.close_travel_ms is not None

        self._info = CalibrationInfo(
            calibrated=True,
            open_travel_ms=sequencer.open_travel_ms,
            close_travel_ms=sequencer.close_travel_ms,
        )
        self._travel.set_travel_times(
            self._info.close_travel_ms, self._info.open_travel_ms
        )
        self._sequencer = None
        self._calibration = CalibrationStatus.CALIBRATED
        self._store.set(self._storage_key, self._info.to_json())
        _LOGGER.info(
            "Calibration complete: open %d ms, close %d ms",
            self._info.open_travel_ms,
            self._info.close_travel_ms,
        )

    def _abort_calibration(self) -> None:
        self._sequencer = None
        self._pending = None
        self._stop_requested = True
        self._calibration = (
            CalibrationStatus.CALIBRATED
            if self._info.calibrated
            else CalibrationStatus.UNCALIBRATED
        )

    def _load_calibration(self) -> CalibrationInfo:
        raw = self._store.get(self._storage_key)
        if raw is None:
            return CalibrationInfo()
        try:
            return CalibrationInfo.from_json(raw)
        except ValueError as err:
            _LOGGER.warning(
                "Stored calibration record is corrupt (%s), starting uncalibrated", err
            )
            return CalibrationInfo()
