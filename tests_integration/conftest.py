from unittest.mock import MagicMock

import pytest

pytest_plugins = "pytest_homeassistant_custom_component"


@pytest.fixture(autouse=True)
def auto_enable_custom_integrations(enable_custom_integrations):
    """Let Home Assistant load the integration from custom_components."""
    return None


@pytest.fixture
def expected_lingering_timers() -> bool:
    # Report and debounce timers are owned by the devices and stop on unload.
    return True


@pytest.fixture(autouse=True)
def _patch_aiohttp_client(monkeypatch):
    """Avoid creating real aiohttp sessions during tests."""
    session = MagicMock()
    monkeypatch.setattr(
        "homeassistant.helpers.aiohttp_client.async_get_clientsession",
        lambda hass: session,
    )
    monkeypatch.setattr(
        "custom_components.smarter_melcloud.async_get_clientsession",
        lambda hass: session,
    )
    return session


def _ata_item():
    return {
        "DeviceID": 1,
        "DeviceName": "Living Room",
        "BuildingID": 100,
        "Type": 0,
        "Device": {
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
        },
    }


class FakeApi:
    def __init__(self):
        self.items = [_ata_item()]
        self.login_error = None
        self.calls = []

    async def async_login(self):
        if self.login_error is not None:
            raise self.login_error

    async def async_list_devices(self):
        return self.items

    async def async_set_device(self, type_name, payload):
        self.calls.append(("set_device", type_name, dict(payload)))
        return dict(payload)

    async def async_get_energy_report(self, device_id, from_date, to_date):
        self.calls.append(("energy", device_id, from_date, to_date))
        return {}

    async def async_set_holiday_mode(self, building_id, enabled, start=None, end=None):
        self.calls.append(("holiday", building_id, enabled, start, end))
        return {}

    async def async_set_frost_protection(self, building_id, enabled, min_temperature, max_temperature):
        self.calls.append(("frost", building_id, enabled, min_temperature, max_temperature))
        return {}


@pytest.fixture
def fake_api():
    return FakeApi()
