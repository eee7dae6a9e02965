from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from custom_components.smarter_melcloud.facade import DeviceRegistry

START = datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)


class _FakeTimer:
    def __init__(self, kind, when, action, interval=None):
        self.kind = kind
        self.when = when
        self.action = action
        self.interval = interval
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class _FakeScheduler:
    """Scheduler double with a controllable clock."""

    def __init__(self, now=START):
        self._now = now
        self.timers: list[_FakeTimer] = []

    def now(self):
        return self._now

    def advance(self, **kwargs):
        self._now = self._now + timedelta(**kwargs)

    def _add(self, timer):
        self.timers.append(timer)
        return timer.cancel

    def call_later(self, delay, action):
        return self._add(_FakeTimer("later", self._now + delay, action))

    def call_at(self, when, action):
        return self._add(_FakeTimer("at", when, action))

    def call_every(self, interval, action):
        return self._add(_FakeTimer("every", self._now + interval, action, interval))

    def active(self, kind=None):
        return [
            timer
            for timer in self.timers
            if not timer.cancelled and (kind is None or timer.kind == kind)
        ]

    async def fire(self, kind):
        """Run the first live timer of a kind, as the event loop would."""
        timer = self.active(kind)[0]
        if timer.kind != "every":
            timer.cancelled = True
        await timer.action()


class _FakeMelCloudApi:
    def __init__(self, items=None, set_response=None, energy=None):
        self.items = list(items or [])
        self.set_response = set_response
        self.set_error = None
        self.energy = energy if energy is not None else {}
        self.set_calls = []
        self.energy_calls = []
        self.holiday_calls = []
        self.frost_calls = []

    async def async_list_devices(self):
        return self.items

    async def async_set_device(self, type_name, payload):
        self.set_calls.append((type_name, dict(payload)))
        if self.set_error is not None:
            raise self.set_error
        if self.set_response is not None:
            return dict(self.set_response)
        return dict(payload)

    async def async_get_energy_report(self, device_id, from_date, to_date):
        self.energy_calls.append((device_id, from_date, to_date))
        return self.energy

    async def async_set_holiday_mode(self, building_id, enabled, start=None, end=None):
        self.holiday_calls.append((building_id, enabled, start, end))
        return {}

    async def async_set_frost_protection(self, building_id, enabled, min_temperature, max_temperature):
        self.frost_calls.append((building_id, enabled, min_temperature, max_temperature))
        return {}


def ata_item(device_id=1, **overrides):
    device = {
        "DeviceType": 0,
        "Power": True,
        "OperationMode": 1,
        "SetTemperature": 21.0,
        "RoomTemperature": 19.5,
        "FanSpeed": 3,
        "ActualFanSpeed": 3,
        "VaneVerticalDirection": 0,
        "VaneHorizontalDirection": 3,
        "OutdoorTemperature": 5.0,
        "WifiSignalStrength": -60,
        "NumberOfFanSpeeds": 5,
        "HasAutomaticFanSpeed": True,
        "MinTempHeat": 10,
        "MaxTempHeat": 31,
        "MinTempCoolDry": 16,
        "MaxTempCoolDry": 31,
        "MinTempAutomatic": 16,
        "MaxTempAutomatic": 31,
    }
    device.update(overrides)
    return {
        "DeviceID": device_id,
        "DeviceName": "Living Room",
        "BuildingID": 100,
        "Type": 0,
        "Device": device,
    }


def atw_item(device_id=2, **overrides):
    device = {
        "DeviceType": 1,
        "Power": True,
        "ForcedHotWaterMode": False,
        "OperationMode": 2,
        "OperationModeZone1": 0,
        "OperationModeZone2": 0,
        "SetTemperatureZone1": 20.0,
        "SetTemperatureZone2": 19.0,
        "SetHeatFlowTemperatureZone1": 40.0,
        "SetHeatFlowTemperatureZone2": 40.0,
        "SetCoolFlowTemperatureZone1": 20.0,
        "SetCoolFlowTemperatureZone2": 20.0,
        "SetTankWaterTemperature": 50.0,
        "RoomTemperatureZone1": 19.0,
        "RoomTemperatureZone2": 18.5,
        "OutdoorTemperature": 3.0,
        "FlowTemperature": 35.0,
        "ReturnTemperature": 30.0,
        "TankWaterTemperature": 48.0,
        "IdleZone1": False,
        "IdleZone2": True,
        "ProhibitHeatingZone1": False,
        "ProhibitHotWater": False,
        "CanCool": False,
        "HasZone2": True,
        "MaxTankTemperature": 60,
    }
    device.update(overrides)
    return {
        "DeviceID": device_id,
        "DeviceName": "Heat Pump",
        "BuildingID": 200,
        "Type": 1,
        "Device": device,
    }


@pytest.fixture
def scheduler():
    return _FakeScheduler()


@pytest.fixture
def fake_api():
    return _FakeMelCloudApi([ata_item(), atw_item()])


@pytest.fixture
async def registry(fake_api):
    registry = DeviceRegistry(fake_api)
    await registry.async_refresh()
    return registry


@pytest.fixture
def make_ata_item():
    return ata_item


@pytest.fixture
def make_atw_item():
    return atw_item
