"""Keep one MELCloud device and its Home Assistant capabilities in sync."""
from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from homeassistant.core import CALLBACK_TYPE

from .const import (
    CONF_ALWAYS_ON,
    DEFAULT_ALWAYS_ON,
    DEVICE_TYPE_ATA,
    DEVICE_TYPE_ATW,
    SETTINGS_SMART_FAN,
    SYNC_DEBOUNCE,
)
from .energy import EnergyReport
from .facade import DeviceFacade, DeviceNotFoundError, DeviceRegistry, NoDataToSetError
from .fan_control import (
    ACTION_NONE,
    ACTION_TURN_OFF,
    Idle,
    SmartFanConfig,
    SmartFanState,
    apply_action,
    detect_manual_override,
    evaluate,
    expire,
    is_override_active,
    set_manual_override,
)
from .mapping import (
    CapabilityDescriptor,
    DeviceTypeMapping,
    clean_mapping,
    fan_speed_bounds,
    get_mapping,
    is_total_energy,
    optional_capabilities,
)
from .timers import HassScheduler
from .utils import DeviceLoggerAdapter

_LOGGER = logging.getLogger(__name__)

FAN_TRIGGERS = {"target_temperature", "thermostat_mode"}
ALWAYS_ON_WARNING = "Always on is enabled, the device cannot be turned off"


class MelCloudDevice:
    """Capability model for one MELCloud device.

    Values read from MELCloud are converted into capabilities, user changes
    are batched into a single debounced write, and the adaptive fan loop and
    energy reports run on top of the same state.
    """

    def __init__(
        self,
        registry: DeviceRegistry,
        device_id: int,
        scheduler: HassScheduler,
        settings: Mapping[str, Any] | None = None,
        store: Mapping[str, Any] | None = None,
        linked_devices: int = 1,
    ) -> None:
        self._registry = registry
        self.device_id = int(device_id)
        self._scheduler = scheduler
        self.settings: dict[str, Any] = dict(settings or {})
        self.store: dict[str, Any] = dict(store or {})
        self.name = f"Device {self.device_id}"
        self.logger = DeviceLoggerAdapter(_LOGGER, {"device": self.name})
        self.capabilities: dict[str, Any] = {}
        self.capability_options: dict[str, dict[str, Any]] = {}
        self.mapping: DeviceTypeMapping | None = None
        self.warning: str | None = None
        self.reports: dict[bool, EnergyReport] = {}
        self.fan_config = SmartFanConfig.from_settings(self.settings)
        self.fan_state: SmartFanState = Idle()
        self.sensor_temperature: float | None = None
        self._linked_devices = linked_devices
        self._facade: DeviceFacade | None = None
        self._diff: dict[str, Any] = {}
        self._fan_triggered = False
        self._fan_writing = False
        self._sync_unsub: CALLBACK_TYPE | None = None
        self._sensor_unsub: CALLBACK_TYPE | None = None
        self._listeners: list[Callable[[], None]] = []
        self._removed = False

    @property
    def facade(self) -> DeviceFacade | None:
        return self._facade

    @property
    def device_type(self) -> int | None:
        return self.mapping.device_type if self.mapping else None

    @property
    def always_on(self) -> bool:
        return bool(self.settings.get(CONF_ALWAYS_ON, DEFAULT_ALWAYS_ON))

    @property
    def linked_device_count(self) -> int:
        if self.reports:
            return max(report.linked_device_count for report in self.reports.values())
        return self._linked_devices

    @property
    def sync_pending(self) -> bool:
        return bool(self._diff) or self._sync_unsub is not None

    def has_capability(self, capability: str) -> bool:
        return capability in self.capabilities

    def add_listener(self, listener: Callable[[], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()

    def set_warning(self, message: str) -> None:
        self.warning = message
        self.logger.warning("%s", message)
        self._notify()

    def clear_warning(self) -> None:
        if self.warning is not None:
            self.warning = None
            self._notify()

    def set_sensor_subscription(self, unsub: CALLBACK_TYPE | None) -> None:
        if self._sensor_unsub is not None:
            self._sensor_unsub()
        self._sensor_unsub = unsub

    async def async_fetch_device(self) -> DeviceFacade | None:
        """Resolve the facade once and initialize capabilities from it."""
        if self._facade is not None:
            return self._facade
        try:
            facade = self._registry.get(self.device_id)
        except DeviceNotFoundError as err:
            self.set_warning(str(err))
            return None

        self._facade = facade
        self.name = facade.name
        self.logger.extra["device"] = facade.name
        self.mapping = get_mapping(facade.device_type)
        self.store.update(self.mapping.get_store(facade.data))
        self.reports = {
            total: EnergyReport(
                mapping=self.mapping,
                total=total,
                scheduler=self._scheduler,
                get_facade=lambda: self._facade,
                get_capabilities=lambda: self.capabilities,
                set_values=self._set_report_values,
                logger=self.logger,
                linked_devices=self._linked_devices,
            )
            for total in (False, True)
        }
        self.reconcile_capabilities()
        self._set_capability_options()
        return facade

    def required_capabilities(self) -> set[str]:
        if self.mapping is None:
            return set()
        enabled = {
            capability
            for capability in optional_capabilities(self.mapping)
            if self.settings.get(capability)
        }
        return enabled | set(self.mapping.required_capabilities(self.store))

    def reconcile_capabilities(self) -> tuple[list[str], list[str]]:
        """Add missing capabilities and drop those no longer required."""
        required = self.required_capabilities()
        removed = [capability for capability in self.capabilities if capability not in required]
        added = sorted(capability for capability in required if capability not in self.capabilities)
        for capability in removed:
            self.capabilities.pop(capability)
            self.logger.info("Removed capability %s", capability)
        for capability in added:
            self.capabilities[capability] = None
            self.logger.info("Added capability %s", capability)
        return added, removed

    def _set_capability_options(self) -> None:
        if self.mapping is None:
            return
        options: dict[str, dict[str, Any]] = {}
        if "fan_power" in self.mapping.settable:
            minimum, maximum = fan_speed_bounds(self.store)
            options["fan_power"] = {"min": minimum, "max": maximum, "step": 1}
        if self.mapping.device_type == DEVICE_TYPE_ATA:
            options["target_temperature"] = {
                "min": min(
                    float(self.store.get(key) or 10)
                    for key in ("min_temp_heat", "min_temp_cool_dry", "min_temp_automatic")
                ),
                "max": max(
                    float(self.store.get(key) or 31)
                    for key in ("max_temp_heat", "max_temp_cool_dry", "max_temp_automatic")
                ),
            }
        elif self.mapping.device_type == DEVICE_TYPE_ATW:
            options["target_temperature.tank_water"] = {
                "min": 30.0,
                "max": float(self.store.get("max_tank_temperature") or 60),
            }
        self.capability_options = options

    async def async_sync_from_device(self, data: Mapping[str, Any] | None = None) -> None:
        """Apply a vendor snapshot to the capabilities."""
        if self._removed:
            return
        facade = await self.async_fetch_device()
        if facade is None or self.mapping is None:
            return
        if data is None:
            data = facade.data
        self._apply_snapshot(facade, data)

    def _descriptor_groups(
        self, facade: DeviceFacade, data: Mapping[str, Any]
    ) -> list[dict[str, CapabilityDescriptor]]:
        assert self.mapping is not None
        active = self.capabilities
        if self.sync_pending:
            return [clean_mapping(self.mapping.list_only, active)]
        effective = int(data.get("EffectiveFlags") or 0)
        if effective:
            flags = facade.flags
            settable = {
                capability: descriptor
                for capability, descriptor in clean_mapping(self.mapping.settable, active).items()
                if flags.get(descriptor.tag, 0) & effective
            }
            return [clean_mapping(self.mapping.observed, active), settable]
        return [
            clean_mapping(self.mapping.listed, active),
            clean_mapping(self.mapping.observed, active),
            clean_mapping(self.mapping.settable, active),
        ]

    def _apply_snapshot(self, facade: DeviceFacade, data: Mapping[str, Any]) -> None:
        assert self.mapping is not None
        for descriptors in self._descriptor_groups(facade, data):
            for capability, descriptor in descriptors.items():
                if descriptor.tag in data:
                    self.capabilities[capability] = descriptor.convert_from(data[descriptor.tag])
        if self.mapping.derive is not None:
            for capability, value in self.mapping.derive(self.capabilities, data).items():
                if capability in self.capabilities:
                    self.capabilities[capability] = value
        self._detect_manual_fan_change()
        self.logger.debug("Synced capabilities: %s", self.capabilities)
        self._notify()

    def build_payload(self, values: Mapping[str, Any]) -> dict[str, Any]:
        """Translate capability values into vendor tags."""
        if self.mapping is None:
            return {}
        settable = clean_mapping(self.mapping.settable, self.capabilities)
        payload: dict[str, Any] = {}
        for capability, value in values.items():
            descriptor = settable.get(capability)
            if descriptor is None:
                continue
            converted = descriptor.convert_to(value)
            if converted is None:
                continue
            payload[descriptor.tag] = converted
        if payload and self.always_on:
            payload["Power"] = True
        return payload

    async def _async_write(self, values: Mapping[str, Any]) -> dict[str, Any] | None:
        facade = await self.async_fetch_device()
        if facade is None:
            return None
        payload = self.build_payload(values)
        if not payload:
            raise NoDataToSetError()
        data = await facade.async_set_values(payload)
        if self._removed:
            return None
        self.clear_warning()
        await self.async_sync_from_device(data)
        return data

    async def async_set_capability_values(self, values: Mapping[str, Any]) -> dict[str, Any] | None:
        """Write capability values to MELCloud and apply the response."""
        try:
            return await self._async_write(values)
        except NoDataToSetError as err:
            self.logger.debug("%s", err)
        except Exception as err:  # noqa: BLE001
            self.set_warning(f"Failed to update device: {err}")
        return None

    async def async_on_capability(self, capability: str, value: Any) -> None:
        """Record a user change and (re)start the debounced write."""
        self.logger.debug("%s => %s", capability, value)
        if capability == "onoff" and self.always_on:
            self.set_warning(ALWAYS_ON_WARNING)
        if capability in self.capabilities:
            self.capabilities[capability] = value
        if capability == "thermostat_mode":
            self._diff["onoff"] = value != "off"
            if value != "off":
                self._diff["operation_mode"] = value
        else:
            self._diff[capability] = value
        if capability in FAN_TRIGGERS:
            self._fan_triggered = True
        if self._sync_unsub is not None:
            self._sync_unsub()
        self._sync_unsub = self._scheduler.call_later(SYNC_DEBOUNCE, self._async_sync_to_device)
        self._notify()

    async def _async_sync_to_device(self) -> None:
        self._sync_unsub = None
        values = dict(self._diff)
        self._diff.clear()
        fan_triggered, self._fan_triggered = self._fan_triggered, False
        if self._removed or not values:
            return
        await self.async_set_capability_values(values)
        if fan_triggered:
            await self.async_evaluate_fan()

    async def async_on_settings(
        self, new_settings: Mapping[str, Any], changed_keys: Iterable[str]
    ) -> bool:
        """Apply changed settings. Returns True when capabilities changed."""
        self.settings = {**self.settings, **new_settings}
        changed = set(changed_keys)
        if not changed or self.mapping is None:
            return False

        capabilities_changed = False
        if changed & set(optional_capabilities(self.mapping)):
            added, removed = self.reconcile_capabilities()
            capabilities_changed = bool(added or removed)

        if changed & set(SETTINGS_SMART_FAN):
            self.fan_config = SmartFanConfig.from_settings(self.settings)
            self.fan_state = Idle()

        energy_keys = changed & set(self.mapping.energy)
        if CONF_ALWAYS_ON in changed and self.always_on and not self.capabilities.get("onoff"):
            await self.async_on_capability("onoff", True)
        if changed - {CONF_ALWAYS_ON} - energy_keys:
            await self.async_sync_from_device()

        for total in {is_total_energy(key) for key in energy_keys}:
            report = self.reports.get(total)
            if report is not None:
                await report.async_handle()
        return capabilities_changed

    async def async_start_reports(self) -> None:
        for report in self.reports.values():
            await report.async_handle()

    def _set_report_values(self, values: Mapping[str, Any]) -> None:
        if self._removed:
            return
        for capability, value in values.items():
            if capability in self.capabilities:
                self.capabilities[capability] = value
        self._notify()

    def fan_bounds(self) -> tuple[int, int]:
        _minimum, maximum = fan_speed_bounds(self.store)
        return 1, maximum

    def _detect_manual_fan_change(self) -> None:
        if self._fan_writing or self.device_type != DEVICE_TYPE_ATA or not self.fan_config.enabled:
            return
        now = self._scheduler.now()
        state = detect_manual_override(
            expire(self.fan_state, now),
            self.capabilities.get("fan_power"),
            self.fan_config,
            now,
        )
        if state is not self.fan_state and is_override_active(state, now):
            self.logger.info("Manual fan change detected, smart fan paused until %s", state.until)
        self.fan_state = state

    def pause_smart_fan(self, minutes: int | None = None) -> None:
        now = self._scheduler.now()
        if minutes is None:
            minutes = self.fan_config.manual_pause_minutes
        self.fan_state = set_manual_override(self.fan_state, now, minutes)
        self.logger.info("Smart fan paused until %s", self.fan_state.until)
        self._notify()

    async def async_on_sensor_temperature(self, temperature: float) -> None:
        self.sensor_temperature = temperature
        await self.async_evaluate_fan()

    async def async_evaluate_fan(self) -> None:
        """Run one step of the adaptive fan loop."""
        if self._removed or self.device_type != DEVICE_TYPE_ATA or not self.fan_config.enabled:
            return
        current = self.sensor_temperature
        target = self.capabilities.get("target_temperature")
        if current is None or target is None:
            return
        if not self.capabilities.get("onoff"):
            return
        now = self._scheduler.now()
        self.fan_state = expire(self.fan_state, now)
        if is_override_active(self.fan_state, now):
            return
        min_speed, max_speed = self.fan_bounds()
        action = evaluate(
            current,
            float(target),
            self.capabilities.get("operation_mode"),
            self.fan_config,
            self.fan_state,
            now,
            min_speed,
            max_speed,
        )
        if action.kind == ACTION_NONE:
            return
        if action.kind == ACTION_TURN_OFF:
            if self.always_on:
                self.logger.debug("Smart fan turn off skipped, always on is enabled")
                return
            values: dict[str, Any] = {"onoff": False}
        else:
            values = {"fan_power": action.speed}

        self._fan_writing = True
        try:
            await self._async_write(values)
        except NoDataToSetError:
            pass
        except Exception as err:  # noqa: BLE001
            self.logger.warning("Smart fan could not apply %s: %s", action.kind, err)
            return
        finally:
            self._fan_writing = False
        if self._removed:
            return
        self.fan_state = apply_action(self.fan_state, action, now)
        self.logger.debug("Smart fan applied %s (%s)", action.kind, action.speed)

    def async_remove(self) -> None:
        """Cancel timers and subscriptions owned by this device."""
        self._removed = True
        if self._sync_unsub is not None:
            self._sync_unsub()
            self._sync_unsub = None
        self._diff.clear()
        for report in self.reports.values():
            report.stop()
        self.set_sensor_subscription(None)
        self._listeners.clear()
