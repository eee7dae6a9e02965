"""Number platform for MELCloud tank and flow temperature setpoints."""
from __future__ import annotations

from dataclasses import dataclass

from homeassistant.components.number import NumberDeviceClass, NumberEntity, NumberEntityDescription
from homeassistant.const import UnitOfTemperature

from .const import DOMAIN
from .entity import MelCloudEntity


@dataclass(frozen=True)
class MelCloudNumberDescription(NumberEntityDescription):
    """Describe a temperature setpoint number."""

    capability: str = ""


def _temperature(
    capability: str, name: str, minimum: float, maximum: float
) -> MelCloudNumberDescription:
    return MelCloudNumberDescription(
        key=capability,
        capability=capability,
        name=name,
        native_min_value=minimum,
        native_max_value=maximum,
        native_step=1,
        native_unit_of_measurement=UnitOfTemperature.CELSIUS,
        device_class=NumberDeviceClass.TEMPERATURE,
    )


NUMBER_DESCRIPTIONS: tuple[MelCloudNumberDescription, ...] = (
    _temperature("target_temperature.tank_water", "Tank Water Target", 30, 60),
    _temperature("target_temperature.flow_heat", "Zone 1 Heat Flow Target", 25, 60),
    _temperature("target_temperature.flow_heat_zone2", "Zone 2 Heat Flow Target", 25, 60),
    _temperature("target_temperature.flow_cool", "Zone 1 Cool Flow Target", 5, 25),
    _temperature("target_temperature.flow_cool_zone2", "Zone 2 Cool Flow Target", 5, 25),
)


async def async_setup_entry(hass, entry, async_add_entities):
    coordinator = hass.data[DOMAIN][entry.entry_id]
    entities = [
        MelCloudNumber(coordinator, entry.entry_id, device_id, description)
        for device_id, device in coordinator.devices.items()
        for description in NUMBER_DESCRIPTIONS
        if device.has_capability(description.capability)
    ]
    async_add_entities(entities)


class MelCloudNumber(MelCloudEntity, NumberEntity):
    """Setpoint number for a heat pump temperature capability."""

    entity_description: MelCloudNumberDescription

    def __init__(
        self, coordinator, entry_id: str, device_id: int, description: MelCloudNumberDescription
    ) -> None:
        super().__init__(coordinator, entry_id, device_id, description.key)
        self.entity_description = description

    @property
    def name(self):
        device = self.device
        device_name = device.name if device else f"Device {self._device_id}"
        return f"{device_name} {self.entity_description.name}"

    @property
    def native_max_value(self) -> float:
        device = self.device
        options = device.capability_options.get(self.entity_description.capability, {}) if device else {}
        return float(options.get("max", self.entity_description.native_max_value))

    @property
    def native_value(self):
        return self.capability(self.entity_description.capability)

    async def async_set_native_value(self, value: float) -> None:
        await self.async_set_capability(self.entity_description.capability, float(value))
