"""Adaptive fan speed control driven by an external temperature sensor."""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Union

from .const import (
    CONF_SMART_FAN_ENABLED,
    CONF_SMART_FAN_MODE,
    CONF_SMART_FAN_PAUSE_MINUTES,
    CONF_SMART_FAN_SENSOR,
    DEFAULT_SMART_FAN_ENABLED,
    DEFAULT_SMART_FAN_MODE,
    DEFAULT_SMART_FAN_PAUSE_MINUTES,
    SMART_FAN_MODE_AGGRESSIVE,
    SMART_FAN_MODE_ECONOMICAL,
    SMART_FAN_MODES,
)

HYSTERESIS = timedelta(seconds=60)
MANUAL_DETECTION_GRACE = timedelta(seconds=180)
OVERSHOOT_THRESHOLD = 1.5
AGGRESSIVE_THRESHOLD = 0.3
MODERATE_THRESHOLDS = (0.5, 1.0, 1.5, 2.5)
ECONOMICAL_THRESHOLDS = (1.0, 2.0, 3.0)

ACTION_NONE = "none"
ACTION_TURN_OFF = "turn_off"
ACTION_CHANGE_FAN_SPEED = "change_fan_speed"


@dataclass(frozen=True)
class SmartFanConfig:
    """Per-device fan control settings."""

    enabled: bool = DEFAULT_SMART_FAN_ENABLED
    sensor_entity_id: str | None = None
    manual_pause_minutes: int = DEFAULT_SMART_FAN_PAUSE_MINUTES
    mode: str = DEFAULT_SMART_FAN_MODE

    @classmethod
    def from_settings(cls, settings: Mapping[str, Any]) -> SmartFanConfig:
        mode = settings.get(CONF_SMART_FAN_MODE, DEFAULT_SMART_FAN_MODE)
        if mode not in SMART_FAN_MODES:
            mode = DEFAULT_SMART_FAN_MODE
        try:
            pause = int(settings.get(CONF_SMART_FAN_PAUSE_MINUTES, DEFAULT_SMART_FAN_PAUSE_MINUTES))
        except (TypeError, ValueError):
            pause = DEFAULT_SMART_FAN_PAUSE_MINUTES
        return cls(
            enabled=bool(settings.get(CONF_SMART_FAN_ENABLED, DEFAULT_SMART_FAN_ENABLED)),
            sensor_entity_id=settings.get(CONF_SMART_FAN_SENSOR) or None,
            manual_pause_minutes=max(pause, 0),
            mode=mode,
        )


@dataclass(frozen=True)
class Idle:
    last_change: datetime | None = None
    last_fan_speed: int | None = None


@dataclass(frozen=True)
class Cooldown:
    until: datetime
    last_change: datetime | None = None
    last_fan_speed: int | None = None


@dataclass(frozen=True)
class ManualOverride:
    until: datetime
    last_change: datetime | None = None
    last_fan_speed: int | None = None


SmartFanState = Union[Idle, Cooldown, ManualOverride]


@dataclass(frozen=True)
class FanAction:
    """Result of one evaluation."""

    kind: str
    speed: int | None = None

    @classmethod
    def none(cls) -> FanAction:
        return cls(ACTION_NONE)

    @classmethod
    def turn_off(cls) -> FanAction:
        return cls(ACTION_TURN_OFF)

    @classmethod
    def change_fan_speed(cls, speed: int) -> FanAction:
        return cls(ACTION_CHANGE_FAN_SPEED, speed)


def is_override_active(state: SmartFanState, now: datetime) -> bool:
    return isinstance(state, ManualOverride) and now < state.until


def _tier(error: float, thresholds: tuple[float, ...]) -> int:
    return sum(1 for threshold in thresholds if error >= threshold)


def _candidate_speed(error: float, mode: str, min_speed: int, max_speed: int) -> int:
    if error <= 0:
        return min_speed
    if mode == SMART_FAN_MODE_AGGRESSIVE:
        return max_speed if error > AGGRESSIVE_THRESHOLD else min_speed
    if mode == SMART_FAN_MODE_ECONOMICAL:
        ceiling = max(max_speed - 1, min_speed)
        return min(min_speed + _tier(error, ECONOMICAL_THRESHOLDS), ceiling)
    tier = _tier(error, MODERATE_THRESHOLDS)
    return min_speed + round(tier * (max_speed - min_speed) / len(MODERATE_THRESHOLDS))


def evaluate(
    current: float,
    target: float,
    operation_mode: str | None,
    config: SmartFanConfig,
    state: SmartFanState,
    now: datetime,
    min_speed: int,
    max_speed: int,
) -> FanAction:
    """Decide what the fan should do for one temperature observation."""
    if operation_mode not in {"heat", "cool", "auto"}:
        return FanAction.none()
    diff = current - target
    if is_override_active(state, now):
        return FanAction.none()
    if state.last_change is not None and now - state.last_change < HYSTERESIS:
        return FanAction.none()

    if state.last_fan_speed == min_speed:
        if operation_mode == "heat" and diff > OVERSHOOT_THRESHOLD:
            return FanAction.turn_off()
        if operation_mode == "cool" and diff < -OVERSHOOT_THRESHOLD:
            return FanAction.turn_off()

    if operation_mode == "heat":
        error = target - current
    elif operation_mode == "cool":
        error = current - target
    else:
        error = abs(diff)

    candidate = _candidate_speed(error, config.mode, min_speed, max_speed)
    if candidate == state.last_fan_speed:
        return FanAction.none()
    return FanAction.change_fan_speed(candidate)


def apply_action(state: SmartFanState, action: FanAction, now: datetime) -> Cooldown:
    """Advance the state after an action was written to the device."""
    last_fan_speed = state.last_fan_speed
    if action.kind == ACTION_CHANGE_FAN_SPEED:
        last_fan_speed = action.speed
    return Cooldown(until=now + HYSTERESIS, last_change=now, last_fan_speed=last_fan_speed)


def set_manual_override(state: SmartFanState, now: datetime, minutes: int) -> ManualOverride:
    return ManualOverride(
        until=now + timedelta(minutes=minutes),
        last_change=state.last_change,
        last_fan_speed=None,
    )


def detect_manual_override(
    state: SmartFanState,
    observed_speed: int | None,
    config: SmartFanConfig,
    now: datetime,
) -> SmartFanState:
    """Return a ManualOverride when someone else changed the fan speed."""
    if not config.enabled or state.last_fan_speed is None:
        return state
    if is_override_active(state, now):
        return state
    if state.last_change is not None and now - state.last_change < MANUAL_DETECTION_GRACE:
        return state
    if observed_speed is None or observed_speed == state.last_fan_speed:
        return state
    if config.manual_pause_minutes <= 0:
        return state
    return set_manual_override(state, now, config.manual_pause_minutes)


def expire(state: SmartFanState, now: datetime) -> SmartFanState:
    """Collapse a finished cooldown or override back to Idle."""
    if isinstance(state, (Cooldown, ManualOverride)) and now >= state.until:
        return Idle(last_change=state.last_change, last_fan_speed=state.last_fan_speed)
    return state
