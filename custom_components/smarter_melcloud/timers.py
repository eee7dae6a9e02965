"""Clock and timer helpers bound to the Home Assistant event loop."""
from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta

from homeassistant.core import CALLBACK_TYPE, HomeAssistant, callback
from homeassistant.helpers.event import (
    async_call_later,
    async_track_point_in_time,
    async_track_time_interval,
)
from homeassistant.util import dt as dt_util

Action = Callable[[], Awaitable[None]]


class HassScheduler:
    """Schedule coroutine actions on Home Assistant timers.

    Every method returns the cancel callable produced by the event helper.
    Devices and reports receive an instance of this class (or a test double
    with the same methods) instead of reaching for timers directly.
    """

    def __init__(self, hass: HomeAssistant) -> None:
        self._hass = hass

    def now(self) -> datetime:
        return dt_util.now()

    def call_later(self, delay: timedelta, action: Action) -> CALLBACK_TYPE:
        return async_call_later(self._hass, delay, self._wrap(action))

    def call_at(self, when: datetime, action: Action) -> CALLBACK_TYPE:
        return async_track_point_in_time(self._hass, self._wrap(action), when)

    def call_every(self, interval: timedelta, action: Action) -> CALLBACK_TYPE:
        return async_track_time_interval(self._hass, self._wrap(action), interval)

    def _wrap(self, action: Action) -> Callable[[datetime], None]:
        @callback
        def _run(_now: datetime) -> None:
            self._hass.async_create_task(action())

        return _run
