"""Per-device access to MELCloud snapshots, updates and energy reports."""
from __future__ import annotations

import logging
from datetime import date
from typing import Any

from .api import MelCloudApi
from .const import DEVICE_TYPE_ATA, DEVICE_TYPE_ATW, DEVICE_TYPE_ERV, DEVICE_TYPE_NAMES

_LOGGER = logging.getLogger(__name__)

EFFECTIVE_FLAGS: dict[int, dict[str, int]] = {
    DEVICE_TYPE_ATA: {
        "Power": 0x1,
        "OperationMode": 0x2,
        "SetTemperature": 0x4,
        "SetFanSpeed": 0x8,
        "VaneVertical": 0x10,
        "VaneHorizontal": 0x100,
    },
    DEVICE_TYPE_ATW: {
        "Power": 0x1,
        "OperationModeZone1": 0x8,
        "OperationModeZone2": 0x10,
        "ForcedHotWaterMode": 0x10000,
        "SetTemperatureZone1": 0x200000080,
        "SetTemperatureZone2": 0x800000200,
        "SetCoolFlowTemperatureZone1": 0x1000000000000,
        "SetCoolFlowTemperatureZone2": 0x1000000000000,
        "SetHeatFlowTemperatureZone1": 0x1000000000000,
        "SetHeatFlowTemperatureZone2": 0x1000000000000,
        "SetTankWaterTemperature": 0x1000000000020,
    },
    DEVICE_TYPE_ERV: {
        "Power": 0x1,
        "VentilationMode": 0x4,
        "SetFanSpeed": 0x8,
    },
}


class DeviceNotFoundError(Exception):
    """Raised when a device id is not part of the account."""


class NoDataToSetError(Exception):
    """Raised when an update would not change anything on the device."""

    def __init__(self, message: str = "No data to set") -> None:
        super().__init__(message)


class DeviceFacade:
    """Snapshot plus write/report operations for one MELCloud device."""

    def __init__(self, api: MelCloudApi, item: dict[str, Any]) -> None:
        self._api = api
        self.id: int = int(item["DeviceID"])
        self.building_id: int | None = item.get("BuildingID")
        self.name: str = item.get("DeviceName") or f"Device {self.id}"
        self.device_type: int = int((item.get("Device") or {}).get("DeviceType", item.get("Type", 0)))
        self._data: dict[str, Any] = dict(item.get("Device") or {})

    @property
    def data(self) -> dict[str, Any]:
        return self._data

    @property
    def type_name(self) -> str:
        return DEVICE_TYPE_NAMES.get(self.device_type, "Ata")

    @property
    def flags(self) -> dict[str, int]:
        return EFFECTIVE_FLAGS.get(self.device_type, {})

    def update(self, item: dict[str, Any]) -> None:
        """Replace the snapshot with a fresh device-list entry."""
        self.name = item.get("DeviceName") or self.name
        self.building_id = item.get("BuildingID", self.building_id)
        self._data = dict(item.get("Device") or {})

    async def async_set_values(self, values: dict[str, Any]) -> dict[str, Any]:
        """Merge values into the snapshot and post them.

        Raises NoDataToSetError when no value differs from the snapshot.
        """
        flags = self.flags
        effective = 0
        for tag, value in values.items():
            if tag not in flags:
                continue
            if self._data.get(tag) != value:
                effective |= flags[tag]
        if not effective:
            raise NoDataToSetError()

        payload: dict[str, Any] = {
            tag: self._data[tag] for tag in flags if tag in self._data
        }
        payload.update({tag: value for tag, value in values.items() if tag in flags})
        payload.update(
            {
                "DeviceID": self.id,
                "HasPendingCommand": True,
                "EffectiveFlags": effective,
            }
        )
        _LOGGER.debug("Posting update for %s: %s", self.name, payload)
        data = await self._api.async_set_device(self.type_name, payload)
        if not data:
            data = dict(payload)
        self._data.update(
            {key: value for key, value in data.items() if key != "EffectiveFlags"}
        )
        return data

    async def async_energy(self, from_date: date, to_date: date) -> dict[str, Any]:
        return await self._api.async_get_energy_report(self.id, from_date, to_date)


class DeviceRegistry:
    """Keep one facade per device id, refreshed from the device list."""

    def __init__(self, api: MelCloudApi) -> None:
        self.api = api
        self._facades: dict[int, DeviceFacade] = {}

    @property
    def facades(self) -> dict[int, DeviceFacade]:
        return self._facades

    async def async_refresh(self) -> dict[int, DeviceFacade]:
        items = await self.api.async_list_devices()
        seen: set[int] = set()
        for item in items:
            device_id = int(item["DeviceID"])
            seen.add(device_id)
            facade = self._facades.get(device_id)
            if facade is None:
                self._facades[device_id] = DeviceFacade(self.api, item)
            else:
                facade.update(item)
        for device_id in set(self._facades) - seen:
            _LOGGER.debug("Device %s no longer listed", device_id)
            self._facades.pop(device_id)
        return self._facades

    def get(self, device_id: int) -> DeviceFacade:
        facade = self._facades.get(int(device_id))
        if facade is None:
            raise DeviceNotFoundError(f"Device {device_id} not found")
        return facade
