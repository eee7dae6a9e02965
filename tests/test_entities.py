from homeassistant.components.binary_sensor import BinarySensorDeviceClass
from homeassistant.components.climate.const import HVACAction, HVACMode
from homeassistant.components.sensor import SensorStateClass

from custom_components.smarter_melcloud.binary_sensor import MelCloudBinarySensor
from custom_components.smarter_melcloud.climate import MelCloudAtaClimate, MelCloudAtwZoneClimate
from custom_components.smarter_melcloud.device import MelCloudDevice
from custom_components.smarter_melcloud.fan import MelCloudVentilationFan
from custom_components.smarter_melcloud.number import NUMBER_DESCRIPTIONS, MelCloudNumber
from custom_components.smarter_melcloud.select import SELECT_DESCRIPTIONS, MelCloudSelect
from custom_components.smarter_melcloud.sensor import MelCloudSensor, sensor_description
from custom_components.smarter_melcloud.switch import MelCloudSwitch


class _FakeCoordinator:
    def __init__(self, devices, last_update_success=True):
        self.devices = devices
        self.last_update_success = last_update_success

    def get_device_info(self, device):
        return {
            "identifiers": {("smarter_melcloud", str(device.device_id))},
            "name": device.name,
        }


async def _coordinator(registry, scheduler, *device_ids):
    devices = {}
    for device_id in device_ids:
        device = MelCloudDevice(registry, device_id, scheduler)
        await device.async_sync_from_device()
        devices[device_id] = device
    return _FakeCoordinator(devices)


def _silence(entity):
    entity.async_write_ha_state = lambda: None
    return entity


async def test_ata_climate_reflects_capabilities(registry, scheduler):
    coordinator = await _coordinator(registry, scheduler, 1)
    entity = MelCloudAtaClimate(coordinator, "entry1", 1)

    assert entity.unique_id == "entry1_1_climate"
    assert entity.name == "Living Room"
    assert entity.hvac_mode == HVACMode.HEAT
    assert entity.current_temperature == 19.5
    assert entity.target_temperature == 21.0
    assert entity.min_temp == 10.0
    assert entity.max_temp == 31.0
    assert entity.fan_modes == ["auto", "1", "2", "3", "4", "5"]
    assert entity.fan_mode == "3"
    assert entity.available
    assert entity.device_info["name"] == "Living Room"
    assert entity.extra_state_attributes is None


async def test_ata_climate_writes_through_debounce(registry, scheduler, fake_api):
    coordinator = await _coordinator(registry, scheduler, 1)
    entity = _silence(MelCloudAtaClimate(coordinator, "entry1", 1))

    await entity.async_set_hvac_mode(HVACMode.COOL)
    await entity.async_set_temperature(temperature=24)
    await entity.async_set_fan_mode("auto")
    await scheduler.fire("later")

    payload = fake_api.set_calls[0][1]
    assert payload["OperationMode"] == 3
    assert payload["SetTemperature"] == 24.0
    assert payload["SetFanSpeed"] == 0
    assert entity.hvac_mode == HVACMode.COOL
    assert entity.fan_mode == "auto"


async def test_ata_climate_dry_mode_and_off(registry, scheduler, fake_api):
    coordinator = await _coordinator(registry, scheduler, 1)
    entity = _silence(MelCloudAtaClimate(coordinator, "entry1", 1))

    await entity.async_set_hvac_mode(HVACMode.DRY)
    await scheduler.fire("later")
    assert fake_api.set_calls[0][1]["OperationMode"] == 2
    assert entity.hvac_mode == HVACMode.DRY

    await entity.async_set_hvac_mode(HVACMode.OFF)
    await scheduler.fire("later")
    assert fake_api.set_calls[1][1]["Power"] is False
    assert entity.hvac_mode == HVACMode.OFF


async def test_atw_zone_climate(registry, scheduler):
    coordinator = await _coordinator(registry, scheduler, 2)
    zone1 = MelCloudAtwZoneClimate(coordinator, "entry1", 2, 1)
    zone2 = MelCloudAtwZoneClimate(coordinator, "entry1", 2, 2)

    assert zone1.name == "Heat Pump Zone 1"
    assert zone1.hvac_modes == [HVACMode.OFF, HVACMode.HEAT]
    assert zone1.hvac_mode == HVACMode.HEAT
    assert zone1.hvac_action == HVACAction.HEATING
    assert zone1.current_temperature == 19.0
    assert zone2.target_temperature == 19.0
    assert zone2.current_temperature == 18.5
    assert zone2.hvac_action == HVACAction.IDLE


async def test_atw_zone_set_temperature(registry, scheduler, fake_api):
    coordinator = await _coordinator(registry, scheduler, 2)
    zone2 = _silence(MelCloudAtwZoneClimate(coordinator, "entry1", 2, 2))

    await zone2.async_set_temperature(temperature=21)
    await scheduler.fire("later")

    type_name, payload = fake_api.set_calls[0]
    assert type_name == "Atw"
    assert payload["SetTemperatureZone2"] == 21.0


def test_sensor_descriptions():
    energy = sensor_description("meter_power.heating")
    daily = sensor_description("meter_power.daily_heating")
    cop = sensor_description("meter_power.cop_daily")

    assert energy.state_class == SensorStateClass.TOTAL_INCREASING
    assert daily.state_class == SensorStateClass.TOTAL
    assert cop.native_unit_of_measurement is None
    assert "COP" in cop.name
    assert sensor_description("operation_mode_zone") is None


async def test_sensor_value(registry, scheduler):
    coordinator = await _coordinator(registry, scheduler, 2)
    sensor = MelCloudSensor(coordinator, "entry1", 2, sensor_description("measure_temperature.tank_water"))

    assert sensor.name == "Heat Pump Measure Temperature Tank Water"
    assert sensor.native_value == 48.0


async def test_binary_sensor_and_switch(registry, scheduler, fake_api):
    coordinator = await _coordinator(registry, scheduler, 2)
    device = coordinator.devices[2]
    device.capabilities["alarm_generic.defrost"] = True

    alarm = MelCloudBinarySensor(coordinator, "entry1", 2, "alarm_generic.defrost")
    assert alarm.is_on is True
    assert alarm.device_class == BinarySensorDeviceClass.RUNNING
    assert alarm.name == "Heat Pump Defrost"

    switch = _silence(MelCloudSwitch(coordinator, "entry1", 2, "onoff.forced_hot_water"))
    assert switch.is_on is False
    await switch.async_turn_on()
    await scheduler.fire("later")
    assert fake_api.set_calls[0][1]["ForcedHotWaterMode"] is True
    assert switch.is_on is True


async def test_select_and_number(registry, scheduler, fake_api):
    coordinator = await _coordinator(registry, scheduler, 1, 2)
    vertical = next(d for d in SELECT_DESCRIPTIONS if d.key == "vertical")
    select = _silence(MelCloudSelect(coordinator, "entry1", 1, vertical))
    assert select.current_option == "auto"

    await select.async_select_option("swing")
    await scheduler.fire("later")
    assert fake_api.set_calls[0][1]["VaneVertical"] == 7

    tank = next(d for d in NUMBER_DESCRIPTIONS if d.key == "target_temperature.tank_water")
    number = _silence(MelCloudNumber(coordinator, "entry1", 2, tank))
    assert number.native_value == 50.0
    assert number.native_max_value == 60.0

    await number.async_set_native_value(55)
    await scheduler.fire("later")
    assert fake_api.set_calls[1][1]["SetTankWaterTemperature"] == 55.0


async def test_entity_shows_warning_and_unavailable(registry, scheduler):
    coordinator = await _coordinator(registry, scheduler, 1)
    entity = MelCloudAtaClimate(coordinator, "entry1", 1)
    coordinator.devices[1].warning = "Failed to update device: offline"

    assert entity.extra_state_attributes == {"warning": "Failed to update device: offline"}
    coordinator.last_update_success = False
    assert not entity.available

    missing = MelCloudAtaClimate(coordinator, "entry1", 42)
    assert missing.name == "Device 42"
    assert missing.device_info is None


async def test_ventilation_fan(scheduler, fake_api, registry):
    erv_item = {
        "DeviceID": 3,
        "DeviceName": "Ventilation",
        "BuildingID": 100,
        "Device": {
            "DeviceType": 3,
            "Power": True,
            "SetFanSpeed": 3,
            "VentilationMode": 2,
            "RoomTemperature": 20.0,
            "OutdoorTemperature": 4.0,
            "NumberOfFanSpeeds": 5,
            "HasCO2Sensor": True,
            "RoomCO2Level": 600,
        },
    }
    fake_api.items.append(erv_item)
    await registry.async_refresh()
    coordinator = await _coordinator(registry, scheduler, 3)
    fan = _silence(MelCloudVentilationFan(coordinator, "entry1", 3))

    assert fan.is_on is True
    assert fan.preset_mode == "auto"
    assert fan.percentage == 60
    assert fan.speed_count == 5
    assert coordinator.devices[3].capabilities["measure_co2"] == 600

    await fan.async_set_percentage(100)
    await fan.async_set_preset_mode("bypass")
    await scheduler.fire("later")

    payload = fake_api.set_calls[0][1]
    assert payload["SetFanSpeed"] == 5
    assert payload["VentilationMode"] == 1
