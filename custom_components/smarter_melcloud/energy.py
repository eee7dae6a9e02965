"""Scheduled energy report polling and derived energy metrics."""
from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any

from homeassistant.core import CALLBACK_TYPE

from .const import DEVICE_TYPE_ATA, DEVICE_TYPE_ATW
from .facade import DeviceFacade
from .mapping import DeviceTypeMapping, clean_mapping, is_total_energy
from .timers import HassScheduler

_LOGGER = logging.getLogger(__name__)

K_MULTIPLIER = 1000
EPOCH = date(1970, 1, 1)


@dataclass(frozen=True)
class ReportPlan:
    """When a report runs and which period it covers."""

    duration: timedelta
    interval: timedelta
    minus: timedelta | None = None
    values: Mapping[str, int] = field(default_factory=dict)

    def first_run(self, now: datetime) -> datetime:
        return (now + self.duration).replace(**self.values)


REGULAR_PLANS: dict[int, ReportPlan] = {
    DEVICE_TYPE_ATA: ReportPlan(
        duration=timedelta(hours=1),
        interval=timedelta(hours=1),
        minus=timedelta(hours=1),
        values={"minute": 5, "second": 0, "microsecond": 0},
    ),
    DEVICE_TYPE_ATW: ReportPlan(
        duration=timedelta(days=1),
        interval=timedelta(days=1),
        minus=timedelta(days=1),
        values={"hour": 1, "minute": 10, "second": 0, "microsecond": 0},
    ),
}
TOTAL_PLAN = ReportPlan(
    duration=timedelta(days=1),
    interval=timedelta(days=1),
    values={"hour": 1, "minute": 5, "second": 0, "microsecond": 0},
)


def get_report_plan(device_type: int, total: bool) -> ReportPlan | None:
    if device_type not in REGULAR_PLANS:
        return None
    return TOTAL_PLAN if total else REGULAR_PLANS[device_type]


def _number(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def calculate_cop(data: Mapping[str, Any], produced: Iterable[str], consumed: Iterable[str]) -> float:
    """Produced over consumed energy, with the denominator floored at 1."""
    produced_sum = sum(_number(data.get(tag)) for tag in produced)
    consumed_sum = sum(_number(data.get(tag)) for tag in consumed)
    return produced_sum / max(consumed_sum, 1)


def calculate_power(
    data: Mapping[str, Any], tags: Iterable[str], hour: int, linked_device_count: int
) -> float:
    """Average power in W for one hour of an hourly report."""
    total = 0.0
    for tag in tags:
        values = data.get(tag)
        if isinstance(values, list) and hour < len(values):
            total += _number(values[hour]) * K_MULTIPLIER
    return total / max(linked_device_count, 1)


def calculate_energy(
    data: Mapping[str, Any], tags: Iterable[str], linked_device_count: int
) -> float:
    return sum(_number(data.get(tag)) for tag in tags) / max(linked_device_count, 1)


def linked_device_count(data: Mapping[str, Any], previous: int) -> int:
    """Number of devices sharing one meter, from the usage disclaimer field."""
    disclaimer = data.get("UsageDisclaimerPercentages")
    if disclaimer is None:
        return previous
    return len(str(disclaimer).split(","))


class EnergyReport:
    """Run one energy report (regular or total) for a device on a timer."""

    def __init__(
        self,
        *,
        mapping: DeviceTypeMapping,
        total: bool,
        scheduler: HassScheduler,
        get_facade: Callable[[], DeviceFacade | None],
        get_capabilities: Callable[[], Iterable[str]],
        set_values: Callable[[dict[str, Any]], None],
        logger: logging.Logger | logging.LoggerAdapter | None = None,
        linked_devices: int = 1,
    ) -> None:
        self._mapping = mapping
        self.total = total
        self._scheduler = scheduler
        self._get_facade = get_facade
        self._get_capabilities = get_capabilities
        self._set_values = set_values
        self._logger = logger or _LOGGER
        self.linked_device_count = linked_devices
        self.plan = get_report_plan(mapping.device_type, total)
        self._first_run_unsub: CALLBACK_TYPE | None = None
        self._interval_unsub: CALLBACK_TYPE | None = None
        self._stopped = False

    @property
    def label(self) -> str:
        return "Total" if self.total else "Regular"

    @property
    def is_scheduled(self) -> bool:
        return self._first_run_unsub is not None or self._interval_unsub is not None

    def relevant_capabilities(self) -> dict[str, tuple[str, ...]]:
        energy = clean_mapping(self._mapping.energy, self._get_capabilities())
        return {
            capability: tags
            for capability, tags in energy.items()
            if is_total_energy(capability) == self.total
        }

    async def async_handle(self) -> None:
        """Fetch the report and publish the derived values."""
        if self._stopped:
            return
        capabilities = self.relevant_capabilities()
        if not capabilities or self.plan is None:
            self.unschedule()
            return
        try:
            facade = self._get_facade()
            if facade is None:
                return
            to_time = self._scheduler.now()
            if self.plan.minus is not None:
                to_time = to_time - self.plan.minus
            to_date = to_time.date()
            from_date = EPOCH if self.total else to_date
            data = await facade.async_energy(from_date, to_date)
            if not data:
                return
            if self._stopped:
                return
            self.linked_device_count = linked_device_count(data, self.linked_device_count)
            self._set_values(self.calculate(capabilities, data, to_time.hour))
        except Exception as err:  # noqa: BLE001
            self._logger.warning("%s energy report failed: %s", self.label, err)
        finally:
            self.schedule()

    def calculate(
        self, capabilities: Mapping[str, tuple[str, ...]], data: Mapping[str, Any], hour: int
    ) -> dict[str, float]:
        values: dict[str, float] = {}
        for capability, tags in capabilities.items():
            if "cop" in capability:
                values[capability] = calculate_cop(
                    data,
                    self._mapping.produced_tags(capability),
                    self._mapping.consumed_tags(capability),
                )
            elif capability.startswith("measure_power"):
                values[capability] = calculate_power(data, tags, hour, self.linked_device_count)
            else:
                values[capability] = calculate_energy(data, tags, self.linked_device_count)
        return values

    def schedule(self) -> None:
        """Plan the first run and the recurring job, unless already planned."""
        if self._stopped or self.plan is None or self.is_scheduled or not self.relevant_capabilities():
            return
        plan = self.plan
        first_run = plan.first_run(self._scheduler.now())

        async def _first_run() -> None:
            self._first_run_unsub = None
            self._interval_unsub = self._scheduler.call_every(plan.interval, self.async_handle)
            await self.async_handle()

        self._first_run_unsub = self._scheduler.call_at(first_run, _first_run)
        self._logger.info("%s energy report has been scheduled for %s", self.label, first_run)

    def stop(self) -> None:
        """Unschedule for good. A fetch still in flight neither publishes nor reschedules."""
        self._stopped = True
        self.unschedule()

    def unschedule(self) -> None:
        if not self.is_scheduled:
            return
        if self._first_run_unsub is not None:
            self._first_run_unsub()
            self._first_run_unsub = None
        if self._interval_unsub is not None:
            self._interval_unsub()
            self._interval_unsub = None
        self._logger.info("%s energy report has been stopped", self.label)
