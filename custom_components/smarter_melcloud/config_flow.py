"""Config flow for Smarter MELCloud integration."""
from __future__ import annotations

import logging
from typing import Any

import voluptuous as vol
from homeassistant import config_entries
from homeassistant.core import callback
from homeassistant.helpers import aiohttp_client, selector

from .api import MelCloudApi, MelCloudApiAuthError, MelCloudApiError
from .const import (
    CONF_ALWAYS_ON,
    CONF_DEVICE_ID,
    CONF_DEVICES,
    CONF_PASSWORD,
    CONF_SMART_FAN_ENABLED,
    CONF_SMART_FAN_MODE,
    CONF_SMART_FAN_PAUSE_MINUTES,
    CONF_SMART_FAN_SENSOR,
    CONF_USERNAME,
    DEFAULT_ALWAYS_ON,
    DEFAULT_SMART_FAN_ENABLED,
    DEFAULT_SMART_FAN_MODE,
    DEFAULT_SMART_FAN_PAUSE_MINUTES,
    DEVICE_TYPE_ATA,
    DEVICE_TYPE_NAMES,
    DOMAIN,
    SMART_FAN_MODES,
)
from .mapping import get_mapping, optional_capabilities

_LOGGER = logging.getLogger(__name__)


class SmarterMelCloudConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
    """Handle a config flow for Smarter MELCloud."""

    VERSION = 1

    def __init__(self) -> None:
        self._username: str | None = None
        self._password: str | None = None
        self._devices: dict[str, str] = {}

    async def async_step_user(self, user_input: dict[str, Any] | None = None):
        """Log in to MELCloud."""
        errors: dict[str, str] = {}

        if user_input is not None:
            session = aiohttp_client.async_get_clientsession(self.hass)
            api = MelCloudApi(session, user_input[CONF_USERNAME], user_input[CONF_PASSWORD])
            try:
                await api.async_login()
                devices = await api.async_list_devices()
            except MelCloudApiAuthError:
                errors["base"] = "auth"
            except MelCloudApiError as err:
                _LOGGER.error("MELCloud API error during login: %s", err)
                errors["base"] = "cannot_connect"
            except Exception as err:  # noqa: BLE001 - surface unexpected errors
                _LOGGER.exception("Unexpected error during login: %s", err)
                errors["base"] = "unknown"
            else:
                if not devices:
                    errors["base"] = "no_devices"
                else:
                    await self.async_set_unique_id(user_input[CONF_USERNAME].lower())
                    self._abort_if_unique_id_configured()
                    self._username = user_input[CONF_USERNAME]
                    self._password = user_input[CONF_PASSWORD]
                    self._devices = {
                        str(item["DeviceID"]): _device_label(item) for item in devices
                    }
                    return await self.async_step_devices()

        return self.async_show_form(
            step_id="user",
            data_schema=vol.Schema(
                {
                    vol.Required(CONF_USERNAME): str,
                    vol.Required(CONF_PASSWORD): str,
                }
            ),
            errors=errors,
        )

    async def async_step_devices(self, user_input: dict[str, Any] | None = None):
        """Select which devices to add."""
        errors: dict[str, str] = {}

        if user_input is not None:
            selected = [int(device_id) for device_id in user_input.get(CONF_DEVICES, [])]
            if selected:
                return self.async_create_entry(
                    title=self._username or "MELCloud",
                    data={
                        CONF_USERNAME: self._username,
                        CONF_PASSWORD: self._password,
                        CONF_DEVICES: selected,
                    },
                )
            errors["base"] = "no_devices_selected"

        return self.async_show_form(
            step_id="devices",
            data_schema=vol.Schema(
                {
                    vol.Required(CONF_DEVICES, default=list(self._devices)): selector.SelectSelector(
                        selector.SelectSelectorConfig(
                            options=[
                                selector.SelectOptionDict(value=device_id, label=label)
                                for device_id, label in self._devices.items()
                            ],
                            multiple=True,
                            mode=selector.SelectSelectorMode.LIST,
                        )
                    ),
                }
            ),
            errors=errors,
        )

    @staticmethod
    @callback
    def async_get_options_flow(config_entry: config_entries.ConfigEntry):
        """Get the options flow for this handler."""
        return SmarterMelCloudOptionsFlow()


class SmarterMelCloudOptionsFlow(config_entries.OptionsFlow):
    """Per-device settings for Smarter MELCloud."""

    def __init__(self) -> None:
        self._device_id: str | None = None

    async def async_step_init(self, user_input: dict[str, Any] | None = None):
        """Pick the device to configure."""
        coordinator = self.hass.data.get(DOMAIN, {}).get(self.config_entry.entry_id)
        if coordinator is None:
            return self.async_abort(reason="not_loaded")

        devices = {
            str(device_id): device.name
            for device_id, device in coordinator.devices.items()
            if device.mapping is not None
        }
        if not devices:
            return self.async_abort(reason="no_devices")

        if user_input is not None:
            self._device_id = user_input[CONF_DEVICE_ID]
            return await self.async_step_device_settings()

        return self.async_show_form(
            step_id="init",
            data_schema=vol.Schema({vol.Required(CONF_DEVICE_ID): vol.In(devices)}),
        )

    async def async_step_device_settings(self, user_input: dict[str, Any] | None = None):
        """Edit the settings of the selected device."""
        coordinator = self.hass.data[DOMAIN][self.config_entry.entry_id]
        device = coordinator.devices[int(self._device_id)]
        options = dict(self.config_entry.options)
        all_settings = dict(options.get(CONF_DEVICES) or {})
        settings = dict(all_settings.get(self._device_id) or {})

        if user_input is not None:
            settings.update(user_input)
            if not user_input.get(CONF_SMART_FAN_SENSOR):
                settings.pop(CONF_SMART_FAN_SENSOR, None)
            all_settings[self._device_id] = settings
            options[CONF_DEVICES] = all_settings
            return self.async_create_entry(title="", data=options)

        data_schema: dict[Any, Any] = {
            vol.Required(
                CONF_ALWAYS_ON,
                default=settings.get(CONF_ALWAYS_ON, DEFAULT_ALWAYS_ON),
            ): bool,
        }
        if device.device_type == DEVICE_TYPE_ATA:
            sensor = settings.get(CONF_SMART_FAN_SENSOR)
            data_schema.update(
                {
                    vol.Required(
                        CONF_SMART_FAN_ENABLED,
                        default=settings.get(CONF_SMART_FAN_ENABLED, DEFAULT_SMART_FAN_ENABLED),
                    ): bool,
                    vol.Optional(
                        CONF_SMART_FAN_SENSOR,
                        description={"suggested_value": sensor} if sensor else None,
                    ): selector.EntitySelector(
                        selector.EntitySelectorConfig(domain="sensor", device_class="temperature")
                    ),
                    vol.Required(
                        CONF_SMART_FAN_MODE,
                        default=settings.get(CONF_SMART_FAN_MODE, DEFAULT_SMART_FAN_MODE),
                    ): selector.SelectSelector(
                        selector.SelectSelectorConfig(
                            options=SMART_FAN_MODES,
                            mode=selector.SelectSelectorMode.DROPDOWN,
                        )
                    ),
                    vol.Required(
                        CONF_SMART_FAN_PAUSE_MINUTES,
                        default=settings.get(
                            CONF_SMART_FAN_PAUSE_MINUTES, DEFAULT_SMART_FAN_PAUSE_MINUTES
                        ),
                    ): vol.All(vol.Coerce(int), vol.Range(min=0, max=1440)),
                }
            )
        for capability in optional_capabilities(get_mapping(device.device_type)):
            data_schema[
                vol.Required(capability, default=bool(settings.get(capability, False)))
            ] = bool

        return self.async_show_form(
            step_id="device_settings",
            data_schema=vol.Schema(data_schema),
            description_placeholders={"device": device.name},
        )


def _device_label(item: dict[str, Any]) -> str:
    device_type = (item.get("Device") or {}).get("DeviceType", item.get("Type"))
    type_name = DEVICE_TYPE_NAMES.get(device_type, "Unknown")
    name = item.get("DeviceName") or f"Device {item['DeviceID']}"
    return f"{name} ({type_name})"
