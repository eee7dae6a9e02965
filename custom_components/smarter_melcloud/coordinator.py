"""Coordinator for Smarter MELCloud."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any

from homeassistant.components import persistent_notification
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import ATTR_UNIT_OF_MEASUREMENT, STATE_UNAVAILABLE, STATE_UNKNOWN
from homeassistant.core import HomeAssistant, callback
from homeassistant.exceptions import ConfigEntryAuthFailed
from homeassistant.helpers.event import async_track_state_change_event
from homeassistant.helpers.storage import Store
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator, UpdateFailed

from .api import MelCloudApi, MelCloudApiAuthError
from .const import (
    CONF_DEVICES,
    DEVICE_TYPE_NAMES,
    DOMAIN,
    MANUFACTURER,
    SETTINGS_SMART_FAN,
    UPDATE_INTERVAL,
)
from .device import MelCloudDevice
from .facade import DeviceFacade, DeviceNotFoundError, DeviceRegistry
from .timers import HassScheduler
from .utils import parse_temperature

_LOGGER = logging.getLogger(__name__)


class MelCloudCoordinator(DataUpdateCoordinator[dict[int, DeviceFacade]]):
    """Polls the MELCloud device list and owns one synchronizer per device."""

    def __init__(self, hass: HomeAssistant, api: MelCloudApi, entry: ConfigEntry) -> None:
        self.api = api
        self.entry = entry
        self.registry = DeviceRegistry(api)
        self.scheduler = HassScheduler(hass)
        self.devices: dict[int, MelCloudDevice] = {}
        self._store = Store(hass, 1, f"{DOMAIN}_{entry.entry_id}_devices.json")
        self._stored: dict[str, Any] = {}
        self._save_lock = asyncio.Lock()
        self._settings: dict[int, dict[str, Any]] = {}
        self._missing: set[int] = set()
        self._error_counter = 0

        super().__init__(
            hass,
            _LOGGER,
            name=f"{DOMAIN}-{entry.title}",
            update_interval=UPDATE_INTERVAL,
        )

    async def async_initialize(self) -> None:
        """Load persisted device flags."""
        stored = await self._store.async_load()
        if stored:
            self._stored = stored.get("devices", {})

    @property
    def device_ids(self) -> list[int]:
        return [int(device_id) for device_id in self.entry.data.get(CONF_DEVICES, [])]

    def device_settings(self, device_id: int) -> dict[str, Any]:
        devices = self.entry.options.get(CONF_DEVICES) or {}
        return dict(devices.get(str(device_id)) or {})

    def get_device(self, device_id: int | str) -> MelCloudDevice:
        device = self.devices.get(int(device_id))
        if device is None:
            raise DeviceNotFoundError(f"Device {device_id} not found")
        return device

    async def _async_update_data(self) -> dict[int, DeviceFacade]:
        """Fetch the device list and sync every selected device."""
        try:
            facades = await self.registry.async_refresh()
        except MelCloudApiAuthError as err:
            raise ConfigEntryAuthFailed(str(err)) from err
        except Exception as err:  # noqa: BLE001 - surface errors to HA
            raise UpdateFailed(f"Error fetching MELCloud data: {err}") from err

        for device_id in self.device_ids:
            await self._async_sync_device(device_id)
        await self._async_save_state()
        return dict(facades)

    async def _async_sync_device(self, device_id: int) -> None:
        device = self.devices.get(device_id)
        created = device is None
        if device is None:
            stored = self._stored.get(str(device_id)) or {}
            device = MelCloudDevice(
                self.registry,
                device_id,
                self.scheduler,
                settings=self.device_settings(device_id),
                store=stored.get("store"),
                linked_devices=int(stored.get("linked_device_count") or 1),
            )
            device.add_listener(self._handle_device_update)
            self.devices[device_id] = device
            self._settings[device_id] = dict(device.settings)

        facade = await device.async_fetch_device()
        if facade is None:
            if device_id not in self._missing:
                self._missing.add(device_id)
                self._async_notify_error("MELCloud device not found", device.warning or "")
            return
        self._missing.discard(device_id)

        if created or not device.reports or all(
            not report.is_scheduled for report in device.reports.values()
        ):
            await device.async_start_reports()
        if created:
            self._async_setup_sensor_listener(device)
        await device.async_sync_from_device()
        device.clear_warning()

    @callback
    def _handle_device_update(self) -> None:
        self.async_update_listeners()

    def _async_setup_sensor_listener(self, device: MelCloudDevice) -> None:
        """Feed the external temperature sensor into the fan loop."""
        entity_id = device.fan_config.sensor_entity_id
        if not device.fan_config.enabled or not entity_id:
            device.set_sensor_subscription(None)
            return

        state = self.hass.states.get(entity_id)
        if state is not None and state.state not in {STATE_UNKNOWN, STATE_UNAVAILABLE}:
            device.sensor_temperature = parse_temperature(
                state.state, state.attributes.get(ATTR_UNIT_OF_MEASUREMENT)
            )

        @callback
        def _handle_sensor_event(event) -> None:
            new_state = event.data.get("new_state")
            if new_state is None or new_state.state in {STATE_UNKNOWN, STATE_UNAVAILABLE}:
                return
            temperature = parse_temperature(
                new_state.state, new_state.attributes.get(ATTR_UNIT_OF_MEASUREMENT)
            )
            if temperature is None:
                return
            self.hass.async_create_task(device.async_on_sensor_temperature(temperature))

        device.set_sensor_subscription(
            async_track_state_change_event(self.hass, [entity_id], _handle_sensor_event)
        )
        _LOGGER.debug("Tracking %s for %s smart fan", entity_id, device.name)

    async def async_options_updated(self) -> None:
        """Route changed device settings to their synchronizers."""
        needs_reload = False
        for device_id, device in self.devices.items():
            new_settings = self.device_settings(device_id)
            old_settings = self._settings.get(device_id, {})
            changed = [
                key
                for key in set(new_settings) | set(old_settings)
                if new_settings.get(key) != old_settings.get(key)
            ]
            self._settings[device_id] = new_settings
            if not changed:
                continue
            _LOGGER.debug("Settings changed for %s: %s", device.name, changed)
            if await device.async_on_settings(new_settings, changed):
                needs_reload = True
            if set(changed) & set(SETTINGS_SMART_FAN):
                self._async_setup_sensor_listener(device)
        if needs_reload:
            self.hass.config_entries.async_schedule_reload(self.entry.entry_id)
        self.async_update_listeners()

    async def async_set_holiday_mode(
        self,
        device_id: int,
        enabled: bool,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> None:
        building_id = self._get_building_id(device_id)
        await self.api.async_set_holiday_mode(building_id, enabled, start, end)

    async def async_set_frost_protection(
        self,
        device_id: int,
        enabled: bool,
        min_temperature: float,
        max_temperature: float,
    ) -> None:
        building_id = self._get_building_id(device_id)
        await self.api.async_set_frost_protection(
            building_id, enabled, min_temperature, max_temperature
        )

    def _get_building_id(self, device_id: int) -> int:
        facade = self.registry.get(device_id)
        if facade.building_id is None:
            raise DeviceNotFoundError(f"Device {device_id} has no building")
        return int(facade.building_id)

    def get_device_info(self, device: MelCloudDevice) -> dict[str, Any]:
        model = DEVICE_TYPE_NAMES.get(device.device_type, "Unknown") if device.device_type is not None else None
        return {
            "identifiers": {(DOMAIN, str(device.device_id))},
            "name": device.name,
            "manufacturer": MANUFACTURER,
            "model": model,
        }

    async def async_shutdown(self) -> None:
        """Stop device timers and listeners when unloading."""
        for device in self.devices.values():
            device.async_remove()
        self.devices.clear()
        await super().async_shutdown()

    def _async_notify_error(self, title: str, message: str) -> None:
        self._error_counter += 1
        notification_id = f"{DOMAIN}_{self.entry.entry_id}_error_{self._error_counter}"
        persistent_notification.async_create(
            self.hass,
            message,
            title=title,
            notification_id=notification_id,
        )

    async def _async_save_state(self) -> None:
        async with self._save_lock:
            for device_id, device in self.devices.items():
                if device.facade is None:
                    continue
                self._stored[str(device_id)] = {
                    "store": device.store,
                    "linked_device_count": device.linked_device_count,
                }
            await self._store.async_save({"devices": self._stored})
