"""Select platform for MELCloud vane positions and zone operation modes."""
from __future__ import annotations

from dataclasses import dataclass

from homeassistant.components.select import SelectEntity, SelectEntityDescription

from .const import DOMAIN
from .entity import MelCloudEntity
from .mapping import HORIZONTAL_VANES, OPERATION_MODE_ZONES, VERTICAL_VANES


@dataclass(frozen=True)
class MelCloudSelectDescription(SelectEntityDescription):
    """Describe a select bound to an enum capability."""

    capability: str = ""


SELECT_DESCRIPTIONS: tuple[MelCloudSelectDescription, ...] = (
    MelCloudSelectDescription(
        key="vertical",
        capability="vertical",
        name="Vertical Vane",
        icon="mdi:arrow-up-down",
        options=list(VERTICAL_VANES.values()),
    ),
    MelCloudSelectDescription(
        key="horizontal",
        capability="horizontal",
        name="Horizontal Vane",
        icon="mdi:arrow-left-right",
        options=list(HORIZONTAL_VANES.values()),
    ),
    MelCloudSelectDescription(
        key="operation_mode_zone",
        capability="operation_mode_zone",
        name="Zone 1 Mode",
        options=["room", "flow", "curve"],
    ),
    MelCloudSelectDescription(
        key="operation_mode_zone.zone2",
        capability="operation_mode_zone.zone2",
        name="Zone 2 Mode",
        options=["room", "flow", "curve"],
    ),
    MelCloudSelectDescription(
        key="operation_mode_zone_with_cool",
        capability="operation_mode_zone_with_cool",
        name="Zone 1 Mode",
        options=list(OPERATION_MODE_ZONES.values()),
    ),
    MelCloudSelectDescription(
        key="operation_mode_zone_with_cool.zone2",
        capability="operation_mode_zone_with_cool.zone2",
        name="Zone 2 Mode",
        options=list(OPERATION_MODE_ZONES.values()),
    ),
)


async def async_setup_entry(hass, entry, async_add_entities):
    coordinator = hass.data[DOMAIN][entry.entry_id]
    entities = [
        MelCloudSelect(coordinator, entry.entry_id, device_id, description)
        for device_id, device in coordinator.devices.items()
        for description in SELECT_DESCRIPTIONS
        if device.has_capability(description.capability)
    ]
    async_add_entities(entities)


class MelCloudSelect(MelCloudEntity, SelectEntity):
    """Select for an enum capability."""

    entity_description: MelCloudSelectDescription

    def __init__(
        self, coordinator, entry_id: str, device_id: int, description: MelCloudSelectDescription
    ) -> None:
        super().__init__(coordinator, entry_id, device_id, description.key)
        self.entity_description = description

    @property
    def name(self):
        device = self.device
        device_name = device.name if device else f"Device {self._device_id}"
        return f"{device_name} {self.entity_description.name}"

    @property
    def current_option(self):
        value = self.capability(self.entity_description.capability)
        if value not in (self.entity_description.options or []):
            return None
        return value

    async def async_select_option(self, option: str) -> None:
        await self.async_set_capability(self.entity_description.capability, option)
