"""Sensor platform for MELCloud measurements and energy reports."""
from __future__ import annotations

from dataclasses import dataclass

from homeassistant.components.sensor import (
    SensorDeviceClass,
    SensorEntity,
    SensorEntityDescription,
    SensorStateClass,
)
from homeassistant.const import (
    CONCENTRATION_MICROGRAMS_PER_CUBIC_METER,
    CONCENTRATION_PARTS_PER_MILLION,
    SIGNAL_STRENGTH_DECIBELS_MILLIWATT,
    UnitOfEnergy,
    UnitOfFrequency,
    UnitOfPower,
    UnitOfTemperature,
)

from .const import DOMAIN
from .entity import MelCloudEntity, capability_label
from .mapping import OPERATION_MODE_STATES, is_total_energy

ZONE_STATES = ["idle", "heating", "cooling", "defrost", "prohibited"]
HOT_WATER_STATES = ["idle", "dhw", "legionella", "prohibited"]


@dataclass(frozen=True)
class MelCloudSensorDescription(SensorEntityDescription):
    """Describe a MELCloud capability sensor."""

    capability: str = ""


def sensor_description(capability: str) -> MelCloudSensorDescription | None:
    """Build the description for a capability rendered as a sensor."""
    name = capability_label(capability)
    if capability.startswith("measure_temperature"):
        return MelCloudSensorDescription(
            key=capability,
            capability=capability,
            name=name,
            native_unit_of_measurement=UnitOfTemperature.CELSIUS,
            device_class=SensorDeviceClass.TEMPERATURE,
            state_class=SensorStateClass.MEASUREMENT,
        )
    if capability == "measure_power.wifi":
        return MelCloudSensorDescription(
            key=capability,
            capability=capability,
            name="Wifi Signal",
            native_unit_of_measurement=SIGNAL_STRENGTH_DECIBELS_MILLIWATT,
            device_class=SensorDeviceClass.SIGNAL_STRENGTH,
            state_class=SensorStateClass.MEASUREMENT,
        )
    if capability == "measure_power.heat_pump_frequency":
        return MelCloudSensorDescription(
            key=capability,
            capability=capability,
            name="Heat Pump Frequency",
            native_unit_of_measurement=UnitOfFrequency.HERTZ,
            device_class=SensorDeviceClass.FREQUENCY,
            state_class=SensorStateClass.MEASUREMENT,
        )
    if capability.startswith("measure_power"):
        return MelCloudSensorDescription(
            key=capability,
            capability=capability,
            name=name,
            native_unit_of_measurement=UnitOfPower.WATT,
            device_class=SensorDeviceClass.POWER,
            state_class=SensorStateClass.MEASUREMENT,
        )
    if capability.startswith("meter_power") and "cop" in capability:
        return MelCloudSensorDescription(
            key=capability,
            capability=capability,
            name=name.replace("Cop", "COP"),
            state_class=SensorStateClass.MEASUREMENT,
            suggested_display_precision=2,
        )
    if capability.startswith("meter_power"):
        return MelCloudSensorDescription(
            key=capability,
            capability=capability,
            name=name,
            native_unit_of_measurement=UnitOfEnergy.KILO_WATT_HOUR,
            device_class=SensorDeviceClass.ENERGY,
            state_class=(
                SensorStateClass.TOTAL_INCREASING
                if is_total_energy(capability)
                else SensorStateClass.TOTAL
            ),
        )
    if capability == "measure_co2":
        return MelCloudSensorDescription(
            key=capability,
            capability=capability,
            name="CO2",
            native_unit_of_measurement=CONCENTRATION_PARTS_PER_MILLION,
            device_class=SensorDeviceClass.CO2,
            state_class=SensorStateClass.MEASUREMENT,
        )
    if capability == "measure_pm25":
        return MelCloudSensorDescription(
            key=capability,
            capability=capability,
            name="PM2.5",
            native_unit_of_measurement=CONCENTRATION_MICROGRAMS_PER_CUBIC_METER,
            device_class=SensorDeviceClass.PM25,
            state_class=SensorStateClass.MEASUREMENT,
        )
    if capability == "operation_mode_state":
        return MelCloudSensorDescription(
            key=capability,
            capability=capability,
            name="Operation State",
            device_class=SensorDeviceClass.ENUM,
            options=list(OPERATION_MODE_STATES.values()),
        )
    if capability == "operation_mode_state.hot_water":
        return MelCloudSensorDescription(
            key=capability,
            capability=capability,
            name="Hot Water State",
            device_class=SensorDeviceClass.ENUM,
            options=HOT_WATER_STATES,
        )
    if capability.startswith("operation_mode_state.zone"):
        return MelCloudSensorDescription(
            key=capability,
            capability=capability,
            name=f"Zone {capability[-1]} State",
            device_class=SensorDeviceClass.ENUM,
            options=ZONE_STATES,
        )
    if capability == "fan_power_state":
        return MelCloudSensorDescription(
            key=capability,
            capability=capability,
            name="Actual Fan Speed",
            icon="mdi:fan",
        )
    if capability == "legionella":
        return MelCloudSensorDescription(
            key=capability,
            capability=capability,
            name="Last Legionella Activation",
            icon="mdi:bacteria",
        )
    return None


async def async_setup_entry(hass, entry, async_add_entities):
    coordinator = hass.data[DOMAIN][entry.entry_id]
    entities: list[MelCloudSensor] = []
    for device_id, device in coordinator.devices.items():
        for capability in device.capabilities:
            description = sensor_description(capability)
            if description is None:
                continue
            entities.append(MelCloudSensor(coordinator, entry.entry_id, device_id, description))
    async_add_entities(entities)


class MelCloudSensor(MelCloudEntity, SensorEntity):
    """Representation of a MELCloud capability sensor."""

    entity_description: MelCloudSensorDescription

    def __init__(
        self, coordinator, entry_id: str, device_id: int, description: MelCloudSensorDescription
    ) -> None:
        super().__init__(coordinator, entry_id, device_id, description.key)
        self.entity_description = description

    @property
    def name(self):
        device = self.device
        device_name = device.name if device else f"Device {self._device_id}"
        return f"{device_name} {self.entity_description.name}"

    @property
    def native_value(self):
        return self.capability(self.entity_description.capability)
