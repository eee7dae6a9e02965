"""Fan platform for MELCloud energy recovery ventilation units."""
from __future__ import annotations

import math

from homeassistant.components.fan import FanEntity, FanEntityFeature
from homeassistant.util.percentage import percentage_to_ranged_value, ranged_value_to_percentage

from .const import DEVICE_TYPE_ERV, DOMAIN
from .entity import MelCloudEntity
from .mapping import VENTILATION_MODES


async def async_setup_entry(hass, entry, async_add_entities):
    coordinator = hass.data[DOMAIN][entry.entry_id]
    entities = [
        MelCloudVentilationFan(coordinator, entry.entry_id, device_id)
        for device_id, device in coordinator.devices.items()
        if device.device_type == DEVICE_TYPE_ERV
    ]
    async_add_entities(entities)


class MelCloudVentilationFan(MelCloudEntity, FanEntity):
    """Ventilation unit with speed and ventilation mode presets."""

    _attr_supported_features = (
        FanEntityFeature.SET_SPEED
        | FanEntityFeature.PRESET_MODE
        | FanEntityFeature.TURN_ON
        | FanEntityFeature.TURN_OFF
    )
    _attr_preset_modes = list(VENTILATION_MODES.values())

    def __init__(self, coordinator, entry_id: str, device_id: int) -> None:
        super().__init__(coordinator, entry_id, device_id, "fan")

    @property
    def name(self):
        device = self.device
        return device.name if device else f"Device {self._device_id}"

    def _speed_range(self) -> tuple[int, int]:
        device = self.device
        options = device.capability_options.get("fan_power", {}) if device else {}
        return 1, int(options.get("max", 5))

    @property
    def speed_count(self) -> int:
        return self._speed_range()[1]

    @property
    def is_on(self):
        value = self.capability("onoff")
        if value is None:
            return None
        return bool(value)

    @property
    def percentage(self):
        speed = self.capability("fan_power")
        if not speed:
            return None
        return ranged_value_to_percentage(self._speed_range(), speed)

    @property
    def preset_mode(self):
        return self.capability("ventilation_mode")

    async def async_set_percentage(self, percentage: int) -> None:
        if percentage == 0:
            await self.async_turn_off()
            return
        speed = math.ceil(percentage_to_ranged_value(self._speed_range(), percentage))
        await self.async_set_capability("fan_power", speed)
        await self.async_set_capability("onoff", True)

    async def async_set_preset_mode(self, preset_mode: str) -> None:
        await self.async_set_capability("ventilation_mode", preset_mode)

    async def async_turn_on(self, percentage=None, preset_mode=None, **kwargs) -> None:
        if preset_mode is not None:
            await self.async_set_capability("ventilation_mode", preset_mode)
        if percentage:
            await self.async_set_percentage(percentage)
            return
        await self.async_set_capability("onoff", True)

    async def async_turn_off(self, **kwargs) -> None:
        await self.async_set_capability("onoff", False)
