import json
from datetime import date, datetime, timedelta, timezone

import pytest

from custom_components.smarter_melcloud.api import (
    LIST_PATH,
    MelCloudApi,
    MelCloudApiAuthError,
    MelCloudApiError,
    MelCloudApiHoldError,
)
from custom_components.smarter_melcloud.utils import AsyncRateLimiter

LOGIN_OK = {"LoginData": {"ContextKey": "ctx-1", "Expiry": "2099-01-01T00:00:00"}}


class _FakeResponse:
    def __init__(self, status, payload):
        self.status = status
        self._payload = payload

    async def json(self):
        return self._payload

    async def text(self):
        if isinstance(self._payload, str):
            return self._payload
        return json.dumps(self._payload)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class _FakeSession:
    def __init__(self, responses, logins=None):
        self.responses = list(responses)
        self.logins = list(logins or [_FakeResponse(200, LOGIN_OK)])
        self.post_calls = []
        self.requests = []

    def post(self, url, **kwargs):
        self.post_calls.append((url, kwargs))
        if len(self.logins) > 1:
            return self.logins.pop(0)
        return self.logins[0]

    async def request(self, method, url, **kwargs):
        self.requests.append((method, url, kwargs))
        return self.responses.pop(0)


def _api(session):
    api = MelCloudApi(session, "user@example.com", "secret")
    api._limiter = AsyncRateLimiter(1000)
    return api


async def test_login_stores_context_key():
    session = _FakeSession([])
    api = _api(session)

    await api.async_login()

    assert api._context_key == "ctx-1"
    assert api._expiry == datetime(2098, 12, 31, 23, 55, tzinfo=timezone.utc)
    body = session.post_calls[0][1]["json"]
    assert body["Email"] == "user@example.com"
    assert body["Persist"] is True


async def test_login_without_context_key_is_auth_error():
    session = _FakeSession([], logins=[_FakeResponse(200, {"LoginData": None})])
    api = _api(session)

    with pytest.raises(MelCloudApiAuthError):
        await api.async_login()


async def test_login_http_error():
    session = _FakeSession([], logins=[_FakeResponse(500, "down")])
    api = _api(session)

    with pytest.raises(MelCloudApiError):
        await api.async_login()


async def test_request_logs_in_and_sends_context_key():
    session = _FakeSession([_FakeResponse(200, [])])
    api = _api(session)

    assert await api.async_list_devices() == []

    method, url, kwargs = session.requests[0]
    assert method == "GET"
    assert url.endswith(LIST_PATH)
    assert kwargs["headers"]["X-MitsContextKey"] == "ctx-1"


async def test_unauthorized_request_logs_in_again_once():
    session = _FakeSession(
        [_FakeResponse(401, {}), _FakeResponse(200, {"Power": True})],
        logins=[_FakeResponse(200, LOGIN_OK), _FakeResponse(200, {"LoginData": {"ContextKey": "ctx-2"}})],
    )
    api = _api(session)

    data = await api.async_set_device("Ata", {"Power": True})

    assert data == {"Power": True}
    assert len(session.post_calls) == 2
    assert session.requests[1][2]["headers"]["X-MitsContextKey"] == "ctx-2"
    assert session.requests[1][1].endswith("/Device/SetAta")


async def test_unauthorized_within_cooldown_raises():
    session = _FakeSession([_FakeResponse(401, {}), _FakeResponse(401, {}), _FakeResponse(401, {})])
    api = _api(session)

    with pytest.raises(MelCloudApiAuthError):
        await api.async_set_device("Ata", {})
    with pytest.raises(MelCloudApiAuthError):
        await api.async_set_device("Ata", {})

    assert len(session.requests) == 3


async def test_rate_limit_puts_device_list_on_hold():
    session = _FakeSession([_FakeResponse(429, {}), _FakeResponse(200, {})])
    api = _api(session)

    with pytest.raises(MelCloudApiError):
        await api.async_list_devices()
    assert api.list_hold_until > datetime.now(timezone.utc) + timedelta(hours=1)

    with pytest.raises(MelCloudApiHoldError):
        await api.async_list_devices()
    assert len(session.requests) == 1

    # Other endpoints are not held.
    assert await api.async_set_device("Ata", {}) == {}


async def test_hold_expires():
    session = _FakeSession([_FakeResponse(200, [])])
    api = _api(session)
    api._hold_list_until = datetime.now(timezone.utc) - timedelta(seconds=1)

    assert await api.async_list_devices() == []
    assert api.list_hold_until is None


async def test_non_json_body_raises():
    class _BadJson(_FakeResponse):
        async def json(self):
            raise json.JSONDecodeError("bad", "doc", 0)

    session = _FakeSession([_BadJson(200, "<html>")])
    api = _api(session)

    with pytest.raises(MelCloudApiError):
        await api.async_get_energy_report(1, date(2024, 1, 1), date(2024, 1, 2))


async def test_list_devices_walks_building_structure():
    buildings = [
        {
            "Structure": {
                "Devices": [{"DeviceID": 1}],
                "Areas": [{"Devices": [{"DeviceID": 2}]}],
                "Floors": [
                    {
                        "Devices": [{"DeviceID": 3}],
                        "Areas": [{"Devices": [{"DeviceID": 4}, {"Name": "no id"}]}],
                    }
                ],
            }
        },
        {"Structure": {"Devices": [{"DeviceID": 5}]}},
    ]
    session = _FakeSession([_FakeResponse(200, buildings)])
    api = _api(session)

    devices = await api.async_list_devices()

    assert [item["DeviceID"] for item in devices] == [1, 2, 3, 4, 5]


async def test_energy_report_payload():
    session = _FakeSession([_FakeResponse(200, {"TotalHeatingConsumed": 1})])
    api = _api(session)

    data = await api.async_get_energy_report(7, date(1970, 1, 1), date(2024, 1, 15))

    assert data == {"TotalHeatingConsumed": 1}
    payload = session.requests[0][2]["json"]
    assert payload == {
        "DeviceID": 7,
        "FromDate": "1970-01-01",
        "ToDate": "2024-01-15",
        "UseCurrency": False,
    }


async def test_holiday_mode_payload_and_attribute_errors():
    session = _FakeSession(
        [
            _FakeResponse(200, {"AttributeErrors": None}),
            _FakeResponse(200, {}),
            _FakeResponse(200, {"AttributeErrors": {"EndDate": ["invalid"]}}),
        ]
    )
    api = _api(session)
    start = datetime(2024, 2, 1, 8, 0)
    end = datetime(2024, 2, 10, 18, 30)

    await api.async_set_holiday_mode(100, True, start, end)
    payload = session.requests[0][2]["json"]
    assert payload["Enabled"] is True
    assert payload["StartDate"]["Day"] == 1
    assert payload["EndDate"]["Minute"] == 30
    assert payload["HMTimeZones"] == [{"Buildings": [100]}]

    await api.async_set_holiday_mode(100, False)
    assert session.requests[1][2]["json"]["StartDate"] is None

    with pytest.raises(MelCloudApiError):
        await api.async_set_frost_protection(100, True, 4, 6)
