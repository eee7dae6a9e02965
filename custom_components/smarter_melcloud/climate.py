"""Climate platform for MELCloud air conditioners and heat pump zones."""
from __future__ import annotations

from homeassistant.components.climate import ClimateEntity
from homeassistant.components.climate.const import ClimateEntityFeature, HVACAction, HVACMode
from homeassistant.const import ATTR_TEMPERATURE, UnitOfTemperature

from .const import DEVICE_TYPE_ATA, DEVICE_TYPE_ATW, DOMAIN
from .entity import MelCloudEntity

FAN_AUTO = "auto"

ATA_HVAC_MODES = {
    "heat": HVACMode.HEAT,
    "cool": HVACMode.COOL,
    "auto": HVACMode.AUTO,
    "dry": HVACMode.DRY,
    "fan": HVACMode.FAN_ONLY,
}
ATA_OPERATION_MODES = {mode: operation_mode for operation_mode, mode in ATA_HVAC_MODES.items()}

ZONE_HVAC_ACTIONS = {
    "heating": HVACAction.HEATING,
    "cooling": HVACAction.COOLING,
    "defrost": HVACAction.DEFROSTING,
    "idle": HVACAction.IDLE,
    "prohibited": HVACAction.IDLE,
}


async def async_setup_entry(hass, entry, async_add_entities):
    coordinator = hass.data[DOMAIN][entry.entry_id]
    entities = []
    for device_id, device in coordinator.devices.items():
        if device.device_type == DEVICE_TYPE_ATA:
            entities.append(MelCloudAtaClimate(coordinator, entry.entry_id, device_id))
        elif device.device_type == DEVICE_TYPE_ATW:
            entities.append(MelCloudAtwZoneClimate(coordinator, entry.entry_id, device_id, 1))
            if device.has_capability("target_temperature.zone2"):
                entities.append(MelCloudAtwZoneClimate(coordinator, entry.entry_id, device_id, 2))
    async_add_entities(entities)


class MelCloudAtaClimate(MelCloudEntity, ClimateEntity):
    """Air to air unit as a climate entity."""

    _attr_temperature_unit = UnitOfTemperature.CELSIUS
    _attr_target_temperature_step = 0.5
    _attr_supported_features = (
        ClimateEntityFeature.TARGET_TEMPERATURE
        | ClimateEntityFeature.FAN_MODE
        | ClimateEntityFeature.TURN_ON
        | ClimateEntityFeature.TURN_OFF
    )
    _attr_hvac_modes = [HVACMode.OFF, *ATA_HVAC_MODES.values()]

    def __init__(self, coordinator, entry_id: str, device_id: int) -> None:
        super().__init__(coordinator, entry_id, device_id, "climate")

    @property
    def name(self):
        device = self.device
        return device.name if device else f"Device {self._device_id}"

    @property
    def current_temperature(self):
        return self.capability("measure_temperature")

    @property
    def target_temperature(self):
        return self.capability("target_temperature")

    @property
    def min_temp(self) -> float:
        device = self.device
        options = device.capability_options.get("target_temperature", {}) if device else {}
        return float(options.get("min", 10))

    @property
    def max_temp(self) -> float:
        device = self.device
        options = device.capability_options.get("target_temperature", {}) if device else {}
        return float(options.get("max", 31))

    @property
    def hvac_mode(self):
        if not self.capability("onoff"):
            return HVACMode.OFF
        return ATA_HVAC_MODES.get(self.capability("operation_mode"))

    @property
    def fan_modes(self) -> list[str]:
        device = self.device
        options = device.capability_options.get("fan_power", {}) if device else {}
        minimum = int(options.get("min", 0))
        maximum = int(options.get("max", 5))
        modes = [FAN_AUTO] if minimum == 0 else []
        return modes + [str(speed) for speed in range(1, maximum + 1)]

    @property
    def fan_mode(self):
        speed = self.capability("fan_power")
        if speed is None:
            return None
        return FAN_AUTO if speed == 0 else str(speed)

    async def async_set_temperature(self, **kwargs):
        temperature = kwargs.get(ATTR_TEMPERATURE)
        if temperature is None:
            return
        await self.async_set_capability("target_temperature", float(temperature))

    async def async_set_hvac_mode(self, hvac_mode: HVACMode) -> None:
        if hvac_mode == HVACMode.OFF:
            await self.async_set_capability("thermostat_mode", "off")
            return
        operation_mode = ATA_OPERATION_MODES.get(hvac_mode)
        if operation_mode is None:
            return
        if operation_mode in {"dry", "fan"}:
            await self.async_set_capability("operation_mode", operation_mode)
            await self.async_set_capability("onoff", True)
            return
        await self.async_set_capability("thermostat_mode", operation_mode)

    async def async_set_fan_mode(self, fan_mode: str) -> None:
        speed = 0 if fan_mode == FAN_AUTO else int(fan_mode)
        await self.async_set_capability("fan_power", speed)

    async def async_turn_on(self) -> None:
        await self.async_set_capability("onoff", True)

    async def async_turn_off(self) -> None:
        await self.async_set_capability("onoff", False)


class MelCloudAtwZoneClimate(MelCloudEntity, ClimateEntity):
    """One heating zone of an air to water heat pump."""

    _attr_temperature_unit = UnitOfTemperature.CELSIUS
    _attr_target_temperature_step = 0.5
    _attr_min_temp = 10
    _attr_max_temp = 30
    _attr_supported_features = (
        ClimateEntityFeature.TARGET_TEMPERATURE
        | ClimateEntityFeature.TURN_ON
        | ClimateEntityFeature.TURN_OFF
    )

    def __init__(self, coordinator, entry_id: str, device_id: int, zone: int) -> None:
        super().__init__(coordinator, entry_id, device_id, f"climate_zone{zone}")
        self._zone = zone
        suffix = "" if zone == 1 else ".zone2"
        self._target = f"target_temperature{suffix}"
        self._current = "measure_temperature" if zone == 1 else "measure_temperature.zone2"
        self._state = f"operation_mode_state.zone{zone}"
        self._zone_mode = f"operation_mode_zone_with_cool{suffix}"

    @property
    def name(self):
        device = self.device
        device_name = device.name if device else f"Device {self._device_id}"
        return f"{device_name} Zone {self._zone}"

    @property
    def hvac_modes(self) -> list[HVACMode]:
        device = self.device
        if device is not None and device.has_capability(self._zone_mode):
            return [HVACMode.OFF, HVACMode.HEAT, HVACMode.COOL]
        return [HVACMode.OFF, HVACMode.HEAT]

    @property
    def hvac_mode(self):
        if not self.capability("onoff"):
            return HVACMode.OFF
        zone_mode = self.capability(self._zone_mode)
        if zone_mode in {"room_cool", "flow_cool"}:
            return HVACMode.COOL
        return HVACMode.HEAT

    @property
    def hvac_action(self):
        if not self.capability("onoff"):
            return HVACAction.OFF
        return ZONE_HVAC_ACTIONS.get(self.capability(self._state))

    @property
    def current_temperature(self):
        return self.capability(self._current)

    @property
    def target_temperature(self):
        return self.capability(self._target)

    async def async_set_temperature(self, **kwargs):
        temperature = kwargs.get(ATTR_TEMPERATURE)
        if temperature is None:
            return
        await self.async_set_capability(self._target, float(temperature))

    async def async_set_hvac_mode(self, hvac_mode: HVACMode) -> None:
        if hvac_mode == HVACMode.OFF:
            await self.async_set_capability("onoff", False)
            return
        device = self.device
        if device is not None and device.has_capability(self._zone_mode):
            await self.async_set_capability(
                self._zone_mode, "room_cool" if hvac_mode == HVACMode.COOL else "room"
            )
        await self.async_set_capability("onoff", True)

    async def async_turn_on(self) -> None:
        await self.async_set_capability("onoff", True)

    async def async_turn_off(self) -> None:
        await self.async_set_capability("onoff", False)
