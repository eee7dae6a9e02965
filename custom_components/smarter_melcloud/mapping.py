"""Capability to MELCloud tag tables for each device type.

Every capability is described once by a ``CapabilityDescriptor`` holding the
vendor tag and optional converters. The descriptors are grouped per device
type into settable, observed (returned by a write or get), listed (device
list only) and energy maps.
"""
from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any, TypeVar

from .const import DEVICE_TYPE_ATA, DEVICE_TYPE_ATW, DEVICE_TYPE_ERV

V = TypeVar("V")

CONSUMED_SUFFIX = "Consumed"
FAN_SPEED_SILENT = 255

OPERATION_MODES = {1: "heat", 2: "dry", 3: "cool", 7: "fan", 8: "auto"}
VERTICAL_VANES = {
    0: "auto",
    1: "upwards",
    2: "mid_high",
    3: "middle",
    4: "mid_low",
    5: "downwards",
    7: "swing",
}
HORIZONTAL_VANES = {
    0: "auto",
    1: "leftwards",
    2: "center_left",
    3: "center",
    4: "center_right",
    5: "rightwards",
    8: "wide",
    12: "swing",
}
OPERATION_MODE_STATES = {
    0: "idle",
    1: "dhw",
    2: "heating",
    3: "cooling",
    5: "defrost",
    6: "legionella",
}
OPERATION_MODE_ZONES = {0: "room", 1: "flow", 2: "curve", 3: "room_cool", 4: "flow_cool"}
VENTILATION_MODES = {0: "recovery", 1: "bypass", 2: "auto"}

THERMOSTAT_MODES = ["off", "heat", "cool", "auto"]


@dataclass(frozen=True)
class CapabilityDescriptor:
    """Vendor tag and value converters for one capability."""

    tag: str
    from_device: Callable[[Any], Any] | None = None
    to_device: Callable[[Any], Any] | None = None

    def convert_from(self, value: Any) -> Any:
        if self.from_device is None:
            return value
        return self.from_device(value)

    def convert_to(self, value: Any) -> Any:
        if self.to_device is None:
            return value
        return self.to_device(value)


def _enum(tag: str, table: Mapping[int, str]) -> CapabilityDescriptor:
    reverse = {name: raw for raw, name in table.items()}
    return CapabilityDescriptor(tag, from_device=table.get, to_device=reverse.get)


@dataclass(frozen=True)
class DeviceTypeMapping:
    """All capability tables for one MELCloud device type."""

    device_type: int
    settable: Mapping[str, CapabilityDescriptor]
    observed: Mapping[str, CapabilityDescriptor]
    listed: Mapping[str, CapabilityDescriptor]
    energy: Mapping[str, tuple[str, ...]]
    store_mapping: Mapping[str, str]
    required: Callable[[Mapping[str, Any]], list[str]]
    optional: tuple[str, ...] = ()
    derived: tuple[str, ...] = ()
    derive: Callable[[Mapping[str, Any], Mapping[str, Any]], dict[str, Any]] | None = field(
        default=None
    )

    @cached_property
    def descriptors(self) -> dict[str, CapabilityDescriptor]:
        """Single lookup across set, get and list maps."""
        return {**self.listed, **self.observed, **self.settable}

    @cached_property
    def list_only(self) -> dict[str, CapabilityDescriptor]:
        return {
            name: descriptor
            for name, descriptor in self.listed.items()
            if name not in self.settable and name not in self.observed
        }

    @cached_property
    def known_capabilities(self) -> frozenset[str]:
        return frozenset(
            [*self.settable, *self.observed, *self.listed, *self.energy, *self.derived]
        )

    def produced_tags(self, capability: str) -> tuple[str, ...]:
        return tuple(
            tag for tag in self.energy.get(capability, ()) if not tag.endswith(CONSUMED_SUFFIX)
        )

    def consumed_tags(self, capability: str) -> tuple[str, ...]:
        return tuple(
            tag for tag in self.energy.get(capability, ()) if tag.endswith(CONSUMED_SUFFIX)
        )

    def get_store(self, data: Mapping[str, Any]) -> dict[str, Any]:
        return {
            key: data[tag] for key, tag in self.store_mapping.items() if tag in data
        }

    def required_capabilities(self, store: Mapping[str, Any]) -> list[str]:
        return self.required(store)


def clean_mapping(mapping: Mapping[str, V], active_capabilities: Iterable[str]) -> dict[str, V]:
    """Restrict a capability map to the capabilities currently enabled."""
    active = set(active_capabilities)
    return {name: value for name, value in mapping.items() if name in active}


def is_total_energy(capability: str) -> bool:
    """Cumulative meters go to the total report, the rest to the regular one."""
    return not (capability.startswith("measure_power") or "daily" in capability)


def fan_speed_bounds(store: Mapping[str, Any]) -> tuple[int, int]:
    """Return (min, max) for fan_power as exposed to the user."""
    maximum = int(store.get("number_of_fan_speeds") or 5)
    minimum = 0 if store.get("has_automatic_fan_speed", True) else 1
    return minimum, maximum


# Air to air ---------------------------------------------------------------

def _required_ata(store: Mapping[str, Any]) -> list[str]:
    return [
        "onoff",
        "operation_mode",
        "thermostat_mode",
        "target_temperature",
        "measure_temperature",
        "fan_power",
        "fan_power_state",
        "vertical",
        "horizontal",
    ]


def _derive_ata(capabilities: Mapping[str, Any], data: Mapping[str, Any]) -> dict[str, Any]:
    operation_mode = capabilities.get("operation_mode")
    if not capabilities.get("onoff") or operation_mode in {"dry", "fan"}:
        return {"thermostat_mode": "off"}
    return {"thermostat_mode": operation_mode}


_ATA_ENERGY_MODES = ("Auto", "Cooling", "Dry", "Fan", "Heating", "Other")
_ATA_TOTAL_TAGS = tuple(f"Total{mode}Consumed" for mode in _ATA_ENERGY_MODES)

ATA_MAPPING = DeviceTypeMapping(
    device_type=DEVICE_TYPE_ATA,
    settable={
        "onoff": CapabilityDescriptor("Power"),
        "operation_mode": _enum("OperationMode", OPERATION_MODES),
        "target_temperature": CapabilityDescriptor("SetTemperature"),
        "fan_power": CapabilityDescriptor("SetFanSpeed"),
        "vertical": _enum("VaneVertical", VERTICAL_VANES),
        "horizontal": _enum("VaneHorizontal", HORIZONTAL_VANES),
    },
    observed={
        "measure_temperature": CapabilityDescriptor("RoomTemperature"),
        "alarm_generic.silent": CapabilityDescriptor(
            "SetFanSpeed", from_device=lambda value: value == FAN_SPEED_SILENT
        ),
    },
    listed={
        "alarm_generic.silent": CapabilityDescriptor(
            "FanSpeed", from_device=lambda value: value == FAN_SPEED_SILENT
        ),
        "fan_power": CapabilityDescriptor("FanSpeed"),
        "fan_power_state": CapabilityDescriptor("ActualFanSpeed"),
        "horizontal": _enum("VaneHorizontalDirection", HORIZONTAL_VANES),
        "vertical": _enum("VaneVerticalDirection", VERTICAL_VANES),
        "measure_power.wifi": CapabilityDescriptor("WifiSignalStrength"),
        "measure_temperature.outdoor": CapabilityDescriptor("OutdoorTemperature"),
    },
    energy={
        "measure_power": _ATA_ENERGY_MODES,
        **{f"measure_power.{mode.lower()}": (mode,) for mode in _ATA_ENERGY_MODES},
        "meter_power": _ATA_TOTAL_TAGS,
        **{f"meter_power.{mode.lower()}": (f"Total{mode}Consumed",) for mode in _ATA_ENERGY_MODES},
        "meter_power.daily": _ATA_TOTAL_TAGS,
        **{
            f"meter_power.daily_{mode.lower()}": (f"Total{mode}Consumed",)
            for mode in _ATA_ENERGY_MODES
        },
    },
    store_mapping={
        "max_temp_automatic": "MaxTempAutomatic",
        "max_temp_cool_dry": "MaxTempCoolDry",
        "max_temp_heat": "MaxTempHeat",
        "min_temp_automatic": "MinTempAutomatic",
        "min_temp_cool_dry": "MinTempCoolDry",
        "min_temp_heat": "MinTempHeat",
        "number_of_fan_speeds": "NumberOfFanSpeeds",
        "has_automatic_fan_speed": "HasAutomaticFanSpeed",
    },
    required=_required_ata,
    derived=("thermostat_mode",),
    derive=_derive_ata,
)

# Air to water -------------------------------------------------------------

def _required_atw(store: Mapping[str, Any]) -> list[str]:
    can_cool = bool(store.get("can_cool"))
    has_zone2 = bool(store.get("has_zone2"))
    capabilities = [
        "onoff",
        "onoff.forced_hot_water",
        "measure_temperature",
        "measure_temperature.outdoor",
        "measure_temperature.flow",
        "measure_temperature.return",
        "measure_temperature.tank_water",
        "operation_mode_state",
        "operation_mode_state.hot_water",
        "operation_mode_state.zone1",
        "target_temperature",
        "target_temperature.flow_heat",
        "target_temperature.tank_water",
    ]
    if can_cool:
        capabilities += ["operation_mode_zone_with_cool", "target_temperature.flow_cool"]
    else:
        capabilities.append("operation_mode_zone")
    if has_zone2:
        capabilities += [
            "measure_temperature.zone2",
            "operation_mode_state.zone2",
            "target_temperature.zone2",
            "target_temperature.flow_heat_zone2",
        ]
        if can_cool:
            capabilities += [
                "operation_mode_zone_with_cool.zone2",
                "target_temperature.flow_cool_zone2",
            ]
        else:
            capabilities.append("operation_mode_zone.zone2")
    return capabilities


def _zone_state(state: Any, data: Mapping[str, Any], zone: int) -> str:
    if data.get(f"IdleZone{zone}"):
        return "idle"
    if state == "heating" and data.get(f"ProhibitHeatingZone{zone}"):
        return "prohibited"
    if state == "cooling" and data.get(f"ProhibitCoolingZone{zone}"):
        return "prohibited"
    if state in {"heating", "cooling", "defrost"}:
        return state
    return "idle"


def _derive_atw(capabilities: Mapping[str, Any], data: Mapping[str, Any]) -> dict[str, Any]:
    state = capabilities.get("operation_mode_state")
    if data.get("ProhibitHotWater"):
        hot_water = "prohibited"
    elif state in {"dhw", "legionella"}:
        hot_water = state
    else:
        hot_water = "idle"
    return {
        "operation_mode_state.hot_water": hot_water,
        "operation_mode_state.zone1": _zone_state(state, data, 1),
        "operation_mode_state.zone2": _zone_state(state, data, 2),
    }


_ATW_MODES = ("Cooling", "Heating", "HotWater")
_ATW_CONSUMED = tuple(f"Total{mode}Consumed" for mode in _ATW_MODES)
_ATW_PRODUCED = tuple(f"Total{mode}Produced" for mode in _ATW_MODES)


def _atw_energy() -> dict[str, tuple[str, ...]]:
    energy: dict[str, tuple[str, ...]] = {
        "meter_power": _ATW_CONSUMED,
        "meter_power.daily": _ATW_CONSUMED,
        "meter_power.produced": _ATW_PRODUCED,
        "meter_power.produced_daily": _ATW_PRODUCED,
        "meter_power.cop": _ATW_PRODUCED + _ATW_CONSUMED,
        "meter_power.cop_daily": _ATW_PRODUCED + _ATW_CONSUMED,
    }
    for mode in _ATW_MODES:
        suffix = mode.lower()
        consumed = (f"Total{mode}Consumed",)
        produced = (f"Total{mode}Produced",)
        energy[f"meter_power.{suffix}"] = consumed
        energy[f"meter_power.daily_{suffix}"] = consumed
        energy[f"meter_power.produced_{suffix}"] = produced
        energy[f"meter_power.produced_daily_{suffix}"] = produced
        energy[f"meter_power.cop_{suffix}"] = produced + consumed
        energy[f"meter_power.cop_daily_{suffix}"] = produced + consumed
    return energy


_ZONE_MODE = {0: "room", 1: "flow", 2: "curve"}

ATW_MAPPING = DeviceTypeMapping(
    device_type=DEVICE_TYPE_ATW,
    settable={
        "onoff": CapabilityDescriptor("Power"),
        "onoff.forced_hot_water": CapabilityDescriptor("ForcedHotWaterMode"),
        "operation_mode_zone": _enum("OperationModeZone1", _ZONE_MODE),
        "operation_mode_zone.zone2": _enum("OperationModeZone2", _ZONE_MODE),
        "operation_mode_zone_with_cool": _enum("OperationModeZone1", OPERATION_MODE_ZONES),
        "operation_mode_zone_with_cool.zone2": _enum("OperationModeZone2", OPERATION_MODE_ZONES),
        "target_temperature": CapabilityDescriptor("SetTemperatureZone1"),
        "target_temperature.zone2": CapabilityDescriptor("SetTemperatureZone2"),
        "target_temperature.flow_cool": CapabilityDescriptor("SetCoolFlowTemperatureZone1"),
        "target_temperature.flow_cool_zone2": CapabilityDescriptor("SetCoolFlowTemperatureZone2"),
        "target_temperature.flow_heat": CapabilityDescriptor("SetHeatFlowTemperatureZone1"),
        "target_temperature.flow_heat_zone2": CapabilityDescriptor("SetHeatFlowTemperatureZone2"),
        "target_temperature.tank_water": CapabilityDescriptor("SetTankWaterTemperature"),
    },
    observed={
        "boolean.idle_zone1": CapabilityDescriptor("IdleZone1"),
        "boolean.idle_zone2": CapabilityDescriptor("IdleZone2"),
        "boolean.prohibit_cooling_zone1": CapabilityDescriptor("ProhibitCoolingZone1"),
        "boolean.prohibit_cooling_zone2": CapabilityDescriptor("ProhibitCoolingZone2"),
        "boolean.prohibit_heating_zone1": CapabilityDescriptor("ProhibitHeatingZone1"),
        "boolean.prohibit_heating_zone2": CapabilityDescriptor("ProhibitHeatingZone2"),
        "boolean.prohibit_hot_water": CapabilityDescriptor("ProhibitHotWater"),
        "measure_temperature": CapabilityDescriptor("RoomTemperatureZone1"),
        "measure_temperature.outdoor": CapabilityDescriptor("OutdoorTemperature"),
        "measure_temperature.tank_water": CapabilityDescriptor("TankWaterTemperature"),
        "measure_temperature.zone2": CapabilityDescriptor("RoomTemperatureZone2"),
        "operation_mode_state": _enum("OperationMode", OPERATION_MODE_STATES),
    },
    listed={
        "alarm_generic.booster_heater1": CapabilityDescriptor("BoosterHeater1Status"),
        "alarm_generic.booster_heater2": CapabilityDescriptor("BoosterHeater2Status"),
        "alarm_generic.booster_heater2_plus": CapabilityDescriptor("BoosterHeater2PlusStatus"),
        "alarm_generic.defrost": CapabilityDescriptor("DefrostMode", from_device=bool),
        "alarm_generic.eco_hot_water": CapabilityDescriptor("EcoHotWater"),
        "alarm_generic.immersion_heater": CapabilityDescriptor("ImmersionHeaterStatus"),
        "boolean.cooling_zone1": CapabilityDescriptor("Zone1InCoolMode"),
        "boolean.cooling_zone2": CapabilityDescriptor("Zone2InCoolMode"),
        "boolean.heating_zone1": CapabilityDescriptor("Zone1InHeatMode"),
        "boolean.heating_zone2": CapabilityDescriptor("Zone2InHeatMode"),
        "legionella": CapabilityDescriptor("LastLegionellaActivationTime"),
        "measure_power": CapabilityDescriptor("CurrentEnergyConsumed"),
        "measure_power.heat_pump_frequency": CapabilityDescriptor("HeatPumpFrequency"),
        "measure_power.produced": CapabilityDescriptor("CurrentEnergyProduced"),
        "measure_power.wifi": CapabilityDescriptor("WifiSignalStrength"),
        "measure_temperature.condensing": CapabilityDescriptor("CondensingTemperature"),
        "measure_temperature.flow": CapabilityDescriptor("FlowTemperature"),
        "measure_temperature.flow_zone1": CapabilityDescriptor("FlowTemperatureZone1"),
        "measure_temperature.flow_zone2": CapabilityDescriptor("FlowTemperatureZone2"),
        "measure_temperature.return": CapabilityDescriptor("ReturnTemperature"),
        "measure_temperature.return_zone1": CapabilityDescriptor("ReturnTemperatureZone1"),
        "measure_temperature.return_zone2": CapabilityDescriptor("ReturnTemperatureZone2"),
        "measure_temperature.tank_water_mixing": CapabilityDescriptor("MixingTankWaterTemperature"),
        "measure_temperature.target_curve": CapabilityDescriptor("TargetHCTemperatureZone1"),
        "measure_temperature.target_curve_zone2": CapabilityDescriptor("TargetHCTemperatureZone2"),
    },
    energy=_atw_energy(),
    store_mapping={
        "can_cool": "CanCool",
        "has_zone2": "HasZone2",
        "max_tank_temperature": "MaxTankTemperature",
    },
    required=_required_atw,
    optional=(
        "alarm_generic.booster_heater1",
        "alarm_generic.booster_heater2",
        "alarm_generic.booster_heater2_plus",
        "alarm_generic.defrost",
        "alarm_generic.eco_hot_water",
        "alarm_generic.immersion_heater",
        "boolean.cooling_zone1",
        "boolean.cooling_zone2",
        "boolean.heating_zone1",
        "boolean.heating_zone2",
        "boolean.idle_zone1",
        "boolean.idle_zone2",
        "boolean.prohibit_cooling_zone1",
        "boolean.prohibit_cooling_zone2",
        "boolean.prohibit_heating_zone1",
        "boolean.prohibit_heating_zone2",
        "boolean.prohibit_hot_water",
        "legionella",
        "measure_power",
        "measure_power.heat_pump_frequency",
        "measure_power.produced",
        "measure_power.wifi",
        "measure_temperature.condensing",
        "measure_temperature.flow_zone1",
        "measure_temperature.flow_zone2",
        "measure_temperature.return_zone1",
        "measure_temperature.return_zone2",
        "measure_temperature.tank_water_mixing",
        "measure_temperature.target_curve",
        "measure_temperature.target_curve_zone2",
    ),
    derived=(
        "operation_mode_state.hot_water",
        "operation_mode_state.zone1",
        "operation_mode_state.zone2",
    ),
    derive=_derive_atw,
)

# Energy recovery ventilation ---------------------------------------------

def _required_erv(store: Mapping[str, Any]) -> list[str]:
    capabilities = [
        "onoff",
        "fan_power",
        "ventilation_mode",
        "measure_temperature",
        "measure_temperature.outdoor",
    ]
    if store.get("has_co2_sensor"):
        capabilities.append("measure_co2")
    if store.get("has_pm25_sensor"):
        capabilities.append("measure_pm25")
    return capabilities


ERV_MAPPING = DeviceTypeMapping(
    device_type=DEVICE_TYPE_ERV,
    settable={
        "onoff": CapabilityDescriptor("Power"),
        "fan_power": CapabilityDescriptor("SetFanSpeed"),
        "ventilation_mode": _enum("VentilationMode", VENTILATION_MODES),
    },
    observed={
        "measure_co2": CapabilityDescriptor("RoomCO2Level"),
        "measure_temperature": CapabilityDescriptor("RoomTemperature"),
        "measure_temperature.outdoor": CapabilityDescriptor("OutdoorTemperature"),
    },
    listed={
        "measure_pm25": CapabilityDescriptor("PM25Level"),
        "measure_power.wifi": CapabilityDescriptor("WifiSignalStrength"),
    },
    energy={},
    store_mapping={
        "has_co2_sensor": "HasCO2Sensor",
        "has_pm25_sensor": "HasPM25Sensor",
        "number_of_fan_speeds": "NumberOfFanSpeeds",
        "has_automatic_fan_speed": "HasAutomaticFanSpeed",
    },
    required=_required_erv,
    optional=("measure_power.wifi",),
)

MAPPINGS: dict[int, DeviceTypeMapping] = {
    DEVICE_TYPE_ATA: ATA_MAPPING,
    DEVICE_TYPE_ATW: ATW_MAPPING,
    DEVICE_TYPE_ERV: ERV_MAPPING,
}


def get_mapping(device_type: int) -> DeviceTypeMapping:
    return MAPPINGS[device_type]


def optional_capabilities(mapping: DeviceTypeMapping) -> tuple[str, ...]:
    """Capabilities the user may toggle from the device settings."""
    if mapping.optional:
        return (*mapping.optional, *mapping.energy)
    always = set(mapping.required({})) | set(mapping.derived)
    extra = [
        name
        for name in [*mapping.observed, *mapping.listed]
        if name not in always and name not in mapping.settable
    ]
    return (*dict.fromkeys(extra), *mapping.energy)
