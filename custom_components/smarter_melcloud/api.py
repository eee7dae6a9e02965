"""MELCloud API client."""
from __future__ import annotations

import asyncio
import json
from datetime import date, datetime, timedelta, timezone
from typing import Any

import aiohttp
import logging

from .const import LIST_HOLD, RELOGIN_COOLDOWN
from .utils import AsyncRateLimiter

_LOGGER = logging.getLogger(__name__)

APP_VERSION = "1.32.1.0"
LOGIN_PATH = "/Login/ClientLogin"
LIST_PATH = "/User/ListDevices"


class MelCloudApiError(Exception):
    """Base MELCloud API error."""


class MelCloudApiAuthError(MelCloudApiError):
    """Authentication failure with MELCloud API."""


class MelCloudApiHoldError(MelCloudApiError):
    """Request refused locally while MELCloud is rate limiting us."""


class MelCloudApi:
    """MELCloud client with context-key management."""

    BASE_URL = "https://app.melcloud.com/Mitsubishi.Wifi.Client"

    def __init__(self, session: aiohttp.ClientSession, username: str, password: str) -> None:
        self._session = session
        self._username = username
        self._password = password
        self._context_key: str | None = None
        self._expiry: datetime | None = None
        self._auth_lock = asyncio.Lock()
        self._hold_list_until: datetime | None = None
        self._retry_allowed_at: datetime | None = None
        self._limiter = AsyncRateLimiter(4.0)

    @property
    def list_hold_until(self) -> datetime | None:
        return self._hold_list_until

    async def async_login(self) -> None:
        """Log in and store the context key."""
        async with self._auth_lock:
            payload = {
                "AppVersion": APP_VERSION,
                "Email": self._username,
                "Password": self._password,
                "Persist": True,
            }
            try:
                await self._limiter.acquire()
                async with self._session.post(
                    f"{self.BASE_URL}{LOGIN_PATH}",
                    json=payload,
                    headers={"Accept": "application/json"},
                    timeout=aiohttp.ClientTimeout(total=10),
                ) as resp:
                    if resp.status in {401, 403}:
                        raise MelCloudApiAuthError("Invalid MELCloud credentials")
                    body = await resp.text()
                    if resp.status >= 400:
                        raise MelCloudApiError(f"Login failed: HTTP {resp.status}: {body}")
            except asyncio.TimeoutError as err:
                raise MelCloudApiError("Login request timed out") from err
            except aiohttp.ClientError as err:
                raise MelCloudApiError(f"Login request failed: {err}") from err

            try:
                data = json.loads(body) if body else {}
            except json.JSONDecodeError as err:
                raise MelCloudApiError(f"Login returned non-JSON body: {body}") from err

            login_data = data.get("LoginData")
            if not login_data or not login_data.get("ContextKey"):
                raise MelCloudApiAuthError("Invalid MELCloud credentials")

            self._context_key = login_data["ContextKey"]
            self._expiry = _parse_expiry(login_data.get("Expiry"))

    def _context_expired(self) -> bool:
        if not self._context_key:
            return True
        if self._expiry is None:
            return False
        return datetime.now(timezone.utc) >= self._expiry

    def _can_relogin(self) -> bool:
        if self._retry_allowed_at is None:
            return True
        return datetime.now(timezone.utc) >= self._retry_allowed_at

    async def _async_request(self, method: str, path: str, **kwargs: Any) -> Any:
        if path == LIST_PATH and self._hold_list_until:
            if datetime.now(timezone.utc) < self._hold_list_until:
                raise MelCloudApiHoldError(
                    f"Requests to {LIST_PATH} are on hold until "
                    f"{self._hold_list_until.isoformat()}"
                )
            self._hold_list_until = None

        if self._context_expired():
            await self.async_login()

        async def _do_request() -> aiohttp.ClientResponse:
            await self._limiter.acquire()
            headers = {
                "Accept": "application/json",
                "X-MitsContextKey": self._context_key or "",
            }
            try:
                return await self._session.request(
                    method,
                    f"{self.BASE_URL}{path}",
                    headers=headers,
                    timeout=aiohttp.ClientTimeout(total=10),
                    **kwargs,
                )
            except asyncio.TimeoutError as err:
                raise MelCloudApiError(f"MELCloud request to {path} timed out") from err
            except aiohttp.ClientError as err:
                raise MelCloudApiError(f"MELCloud request to {path} failed: {err}") from err

        async with await _do_request() as resp:
            if resp.status == 401 and self._can_relogin():
                self._retry_allowed_at = datetime.now(timezone.utc) + RELOGIN_COOLDOWN
                _LOGGER.debug("MELCloud context key rejected, logging in again")
                self._context_key = None
                await self.async_login()
                async with await _do_request() as retry_resp:
                    return await self._async_handle_response(path, retry_resp)
            return await self._async_handle_response(path, resp)

    async def _async_handle_response(self, path: str, resp: aiohttp.ClientResponse) -> Any:
        if resp.status in {401, 403}:
            self._context_key = None
            raise MelCloudApiAuthError("MELCloud context key expired or unauthorized")
        if resp.status == 429:
            self._hold_list_until = datetime.now(timezone.utc) + LIST_HOLD
            _LOGGER.warning(
                "MELCloud is rate limiting requests, device list on hold until %s",
                self._hold_list_until.isoformat(),
            )
            raise MelCloudApiError(f"MELCloud API error: HTTP 429 on {path}")
        if resp.status >= 400:
            body = await resp.text()
            raise MelCloudApiError(f"MELCloud API error: HTTP {resp.status}: {body}")
        try:
            return await resp.json()
        except (aiohttp.ContentTypeError, json.JSONDecodeError) as err:
            body = await resp.text()
            raise MelCloudApiError(
                f"MELCloud API non-JSON response: HTTP {resp.status}: {body}"
            ) from err

    async def async_list_devices(self) -> list[dict[str, Any]]:
        """Return raw device payloads from every building."""
        buildings = await self._async_request("GET", LIST_PATH)
        return self._extract_devices(buildings or [])

    async def async_set_device(self, device_type_name: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Post an update and return the device data echoed by MELCloud."""
        data = await self._async_request("POST", f"/Device/Set{device_type_name}", json=payload)
        return data or {}

    async def async_get_energy_report(
        self, device_id: int, from_date: date, to_date: date
    ) -> dict[str, Any]:
        """Return the energy report between two dates (inclusive)."""
        payload = {
            "DeviceID": device_id,
            "FromDate": from_date.isoformat(),
            "ToDate": to_date.isoformat(),
            "UseCurrency": False,
        }
        data = await self._async_request("POST", "/EnergyCost/Report", json=payload)
        return data or {}

    async def async_set_holiday_mode(
        self,
        building_id: int,
        enabled: bool,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> dict[str, Any]:
        """Enable or disable holiday mode for a building."""
        payload = {
            "Enabled": bool(enabled),
            "StartDate": _date_parts(start) if enabled else None,
            "EndDate": _date_parts(end) if enabled else None,
            "HMTimeZones": [{"Buildings": [building_id]}],
        }
        data = await self._async_request("POST", "/HolidayMode/Update", json=payload)
        _raise_for_attribute_errors(data)
        return data or {}

    async def async_set_frost_protection(
        self,
        building_id: int,
        enabled: bool,
        min_temperature: float,
        max_temperature: float,
    ) -> dict[str, Any]:
        """Update frost protection thresholds for a building."""
        payload = {
            "BuildingIds": [building_id],
            "Enabled": bool(enabled),
            "MinimumTemperature": float(min_temperature),
            "MaximumTemperature": float(max_temperature),
        }
        data = await self._async_request("POST", "/FrostProtection/Update", json=payload)
        _raise_for_attribute_errors(data)
        return data or {}

    @staticmethod
    def _extract_devices(buildings: list[dict[str, Any]]) -> list[dict[str, Any]]:
        devices = []
        for building in buildings:
            structure = building.get("Structure") or {}
            groups = [structure.get("Devices") or []]
            for area in structure.get("Areas") or []:
                groups.append(area.get("Devices") or [])
            for floor in structure.get("Floors") or []:
                groups.append(floor.get("Devices") or [])
                for area in floor.get("Areas") or []:
                    groups.append(area.get("Devices") or [])
            for group in groups:
                for item in group:
                    if item.get("DeviceID") is None:
                        continue
                    devices.append(item)
        return devices


def _parse_expiry(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed - timedelta(minutes=5)


def _date_parts(value: datetime | None) -> dict[str, int] | None:
    if value is None:
        return None
    return {
        "Year": value.year,
        "Month": value.month,
        "Day": value.day,
        "Hour": value.hour,
        "Minute": value.minute,
        "Second": value.second,
    }


def _raise_for_attribute_errors(data: Any) -> None:
    errors = (data or {}).get("AttributeErrors") if isinstance(data, dict) else None
    if errors:
        raise MelCloudApiError(f"MELCloud rejected the update: {errors}")
