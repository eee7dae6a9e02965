"""Switch platform for MELCloud forced hot water."""
from __future__ import annotations

from homeassistant.components.switch import SwitchEntity

from .const import DOMAIN
from .entity import MelCloudEntity

SWITCH_CAPABILITIES = {"onoff.forced_hot_water": "Forced Hot Water"}


async def async_setup_entry(hass, entry, async_add_entities):
    coordinator = hass.data[DOMAIN][entry.entry_id]
    entities = [
        MelCloudSwitch(coordinator, entry.entry_id, device_id, capability)
        for device_id, device in coordinator.devices.items()
        for capability in SWITCH_CAPABILITIES
        if device.has_capability(capability)
    ]
    async_add_entities(entities)


class MelCloudSwitch(MelCloudEntity, SwitchEntity):
    """Switch bound to a boolean settable capability."""

    def __init__(self, coordinator, entry_id: str, device_id: int, capability: str) -> None:
        super().__init__(coordinator, entry_id, device_id, capability)
        self._capability = capability

    @property
    def name(self):
        device = self.device
        device_name = device.name if device else f"Device {self._device_id}"
        return f"{device_name} {SWITCH_CAPABILITIES[self._capability]}"

    @property
    def is_on(self):
        value = self.capability(self._capability)
        if value is None:
            return None
        return bool(value)

    async def async_turn_on(self, **kwargs):
        await self.async_set_capability(self._capability, True)

    async def async_turn_off(self, **kwargs):
        await self.async_set_capability(self._capability, False)
