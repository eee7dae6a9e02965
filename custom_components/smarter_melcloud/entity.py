"""Base entity shared by every Smarter MELCloud platform."""
from __future__ import annotations

from typing import Any

from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .device import MelCloudDevice


class MelCloudEntity(CoordinatorEntity):
    """Entity bound to one device synchronizer and one capability key."""

    def __init__(self, coordinator, entry_id: str, device_id: int, key: str) -> None:
        super().__init__(coordinator)
        self._entry_id = entry_id
        self._device_id = device_id
        self._key = key
        self._attr_unique_id = f"{entry_id}_{device_id}_{key}"

    @property
    def device(self) -> MelCloudDevice | None:
        return self.coordinator.devices.get(self._device_id)

    @property
    def device_info(self):
        device = self.device
        if device is None:
            return None
        return self.coordinator.get_device_info(device)

    @property
    def available(self) -> bool:
        if not self.coordinator.last_update_success:
            return False
        device = self.device
        return device is not None and device.facade is not None

    @property
    def extra_state_attributes(self) -> dict[str, Any] | None:
        device = self.device
        if device is None or device.warning is None:
            return None
        return {"warning": device.warning}

    def capability(self, capability: str) -> Any:
        device = self.device
        if device is None:
            return None
        return device.capabilities.get(capability)

    async def async_set_capability(self, capability: str, value: Any) -> None:
        device = self.device
        if device is None:
            return
        await device.async_on_capability(capability, value)
        self.async_write_ha_state()


def capability_label(capability: str) -> str:
    """Readable name for a dotted capability, e.g. ``Measure Temperature Outdoor``."""
    return capability.replace(".", " ").replace("_", " ").title()
