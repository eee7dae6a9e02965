"""Shared helper utilities."""
from __future__ import annotations

from typing import Any
import asyncio
import logging
import time


class AsyncRateLimiter:
    """Simple async rate limiter enforcing a minimum interval between calls."""

    def __init__(self, rate_per_sec: float) -> None:
        if rate_per_sec <= 0:
            raise ValueError("rate_per_sec must be > 0")
        self._min_interval = 1.0 / rate_per_sec
        self._next_time = 0.0
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        async with self._lock:
            now = time.monotonic()
            if now < self._next_time:
                await asyncio.sleep(self._next_time - now)
            self._next_time = max(now, self._next_time) + self._min_interval


class DeviceLoggerAdapter(logging.LoggerAdapter):
    """Prefix every record with the device name."""

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        return f"[{self.extra['device']}] {msg}", kwargs


def is_fahrenheit_unit(unit: str | None) -> bool:
    """Return True if the unit represents Fahrenheit."""
    if not unit:
        return False
    normalized = "".join(ch for ch in unit.lower() if ch.isascii())
    return normalized in {"f", "degf", "fahrenheit"}


def fahrenheit_to_celsius(value: float) -> float:
    return (value - 32) * 5 / 9


def parse_temperature(state: str | None, unit: str | None) -> float | None:
    """Convert a sensor state to Celsius, or None when it is not numeric."""
    if state is None:
        return None
    try:
        value = float(state)
    except (TypeError, ValueError):
        return None
    if is_fahrenheit_unit(unit):
        return fahrenheit_to_celsius(value)
    return value
