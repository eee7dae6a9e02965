"""Constants for Smarter MELCloud integration."""
from __future__ import annotations

from datetime import timedelta

DOMAIN = "smarter_melcloud"

CONF_USERNAME = "username"
CONF_PASSWORD = "password"
CONF_DEVICES = "devices"
CONF_ENTRY_ID = "entry_id"
CONF_DEVICE_ID = "device_id"

CONF_ALWAYS_ON = "always_on"
CONF_SMART_FAN_ENABLED = "smart_fan_enabled"
CONF_SMART_FAN_SENSOR = "smart_fan_sensor"
CONF_SMART_FAN_PAUSE_MINUTES = "smart_fan_pause_minutes"
CONF_SMART_FAN_MODE = "smart_fan_mode"

CONF_ENABLED = "enabled"
CONF_START = "start"
CONF_END = "end"
CONF_MIN_TEMPERATURE = "min_temperature"
CONF_MAX_TEMPERATURE = "max_temperature"
CONF_MINUTES = "minutes"

SERVICE_REFRESH_DEVICES = "refresh_devices"
SERVICE_SET_HOLIDAY_MODE = "set_holiday_mode"
SERVICE_SET_FROST_PROTECTION = "set_frost_protection"
SERVICE_PAUSE_SMART_FAN = "pause_smart_fan"

SMART_FAN_MODE_AGGRESSIVE = "aggressive"
SMART_FAN_MODE_MODERATE = "moderate"
SMART_FAN_MODE_ECONOMICAL = "economical"
SMART_FAN_MODES = [
    SMART_FAN_MODE_AGGRESSIVE,
    SMART_FAN_MODE_MODERATE,
    SMART_FAN_MODE_ECONOMICAL,
]

DEFAULT_ALWAYS_ON = False
DEFAULT_SMART_FAN_ENABLED = False
DEFAULT_SMART_FAN_PAUSE_MINUTES = 30
DEFAULT_SMART_FAN_MODE = SMART_FAN_MODE_MODERATE

SETTINGS_SMART_FAN = (
    CONF_SMART_FAN_ENABLED,
    CONF_SMART_FAN_SENSOR,
    CONF_SMART_FAN_PAUSE_MINUTES,
    CONF_SMART_FAN_MODE,
)

UPDATE_INTERVAL = timedelta(minutes=5)
SYNC_DEBOUNCE = timedelta(seconds=1)
LIST_HOLD = timedelta(hours=2)
RELOGIN_COOLDOWN = timedelta(minutes=1)

DEVICE_TYPE_ATA = 0
DEVICE_TYPE_ATW = 1
DEVICE_TYPE_ERV = 3
DEVICE_TYPE_NAMES: dict[int, str] = {
    DEVICE_TYPE_ATA: "Ata",
    DEVICE_TYPE_ATW: "Atw",
    DEVICE_TYPE_ERV: "Erv",
}

MANUFACTURER = "Mitsubishi Electric"

PLATFORMS: list[str] = [
    "binary_sensor",
    "climate",
    "fan",
    "number",
    "select",
    "sensor",
    "switch",
]
