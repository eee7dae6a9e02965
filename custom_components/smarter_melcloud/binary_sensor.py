"""Binary sensor platform for MELCloud alarms and status flags."""
from __future__ import annotations

from homeassistant.components.binary_sensor import BinarySensorDeviceClass, BinarySensorEntity

from .const import DOMAIN
from .entity import MelCloudEntity, capability_label

BINARY_PREFIXES = ("alarm_generic.", "boolean.")


async def async_setup_entry(hass, entry, async_add_entities):
    coordinator = hass.data[DOMAIN][entry.entry_id]
    entities = [
        MelCloudBinarySensor(coordinator, entry.entry_id, device_id, capability)
        for device_id, device in coordinator.devices.items()
        for capability in device.capabilities
        if capability.startswith(BINARY_PREFIXES)
    ]
    async_add_entities(entities)


class MelCloudBinarySensor(MelCloudEntity, BinarySensorEntity):
    """Expose a boolean capability as a binary sensor."""

    def __init__(self, coordinator, entry_id: str, device_id: int, capability: str) -> None:
        super().__init__(coordinator, entry_id, device_id, capability)
        self._capability = capability
        if capability.startswith("alarm_generic."):
            self._attr_device_class = BinarySensorDeviceClass.RUNNING

    @property
    def name(self):
        device = self.device
        device_name = device.name if device else f"Device {self._device_id}"
        label = capability_label(self._capability.split(".", 1)[1])
        return f"{device_name} {label}"

    @property
    def is_on(self):
        value = self.capability(self._capability)
        if value is None:
            return None
        return bool(value)
