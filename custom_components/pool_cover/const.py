"""Constants for the pool_cover integration."""

from datetime import timedelta

DOMAIN = "pool_cover"

CONF_CLOSE_LIMITER_PIN = "close_limiter_pin"
CONF_OPEN_LIMITER_PIN = "open_limiter_pin"
CONF_MOTOR_OPEN_PIN = "motor_open_pin"
CONF_MOTOR_CLOSE_PIN = "motor_close_pin"
CONF_LIMITER_GRACE_TIME = "limiter_grace_time"
CONF_COMMAND_DWELL_TIME = "command_dwell_time"
CONF_ENDPOINT_RUNON_TIME = "endpoint_runon_time"
CONF_MAX_RUN_TIME = "max_run_time"

DEFAULT_CLOSE_LIMITER_PIN = 17
DEFAULT_OPEN_LIMITER_PIN = 27
DEFAULT_MOTOR_OPEN_PIN = 5
DEFAULT_MOTOR_CLOSE_PIN = 6

# Timing defaults, seconds in the config entry and milliseconds in the core
DEFAULT_LIMITER_GRACE_TIME = 3.0
DEFAULT_COMMAND_DWELL_TIME = 1.0
DEFAULT_ENDPOINT_RUNON_TIME = 2.0
DEFAULT_MAX_RUN_TIME = 300.0

TICK_INTERVAL = timedelta(milliseconds=100)
DEFAULT_TRAVEL_MS = 60000
POSITION_EPSILON = 0.1
CALIBRATION_SETTLE_MS = 2000

POSITION_CLOSED = 0.0
POSITION_OPEN = 100.0

STORAGE_VERSION = 1
STORAGE_SAVE_DELAY = 1
CALIBRATION_KEY = "cover_state"

LONGPOLL_TIMEOUT = 30.0
LONGPOLL_MAX_TIMEOUT = 60.0

SERVICE_CALIBRATE = "calibrate"
SERVICE_CANCEL_CALIBRATION = "cancel_calibration"
