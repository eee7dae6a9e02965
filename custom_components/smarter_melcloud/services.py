"""Service handlers for Smarter MELCloud."""
from __future__ import annotations

import logging

import voluptuous as vol
from homeassistant.components import persistent_notification
from homeassistant.core import HomeAssistant, ServiceCall
from homeassistant.helpers import config_validation as cv

from .const import (
    CONF_DEVICE_ID,
    CONF_ENABLED,
    CONF_END,
    CONF_ENTRY_ID,
    CONF_MAX_TEMPERATURE,
    CONF_MIN_TEMPERATURE,
    CONF_MINUTES,
    CONF_START,
    DOMAIN,
    SERVICE_PAUSE_SMART_FAN,
    SERVICE_REFRESH_DEVICES,
    SERVICE_SET_FROST_PROTECTION,
    SERVICE_SET_HOLIDAY_MODE,
)
from .coordinator import MelCloudCoordinator

_LOGGER = logging.getLogger(__name__)

NOTIFICATION_TITLE = "Smarter MELCloud error"


def _validate_frost_range(data: dict) -> dict:
    if data[CONF_MAX_TEMPERATURE] - data[CONF_MIN_TEMPERATURE] < 2:
        raise vol.Invalid("max_temperature must be at least 2 degrees above min_temperature")
    return data


REFRESH_DEVICES_SCHEMA = vol.Schema({vol.Optional(CONF_ENTRY_ID): str})

SET_HOLIDAY_MODE_SCHEMA = vol.Schema(
    {
        vol.Optional(CONF_ENTRY_ID): str,
        vol.Required(CONF_DEVICE_ID): vol.Coerce(int),
        vol.Required(CONF_ENABLED): bool,
        vol.Optional(CONF_START): cv.datetime,
        vol.Optional(CONF_END): cv.datetime,
    }
)

SET_FROST_PROTECTION_SCHEMA = vol.All(
    vol.Schema(
        {
            vol.Optional(CONF_ENTRY_ID): str,
            vol.Required(CONF_DEVICE_ID): vol.Coerce(int),
            vol.Required(CONF_ENABLED): bool,
            vol.Required(CONF_MIN_TEMPERATURE): vol.All(vol.Coerce(float), vol.Range(min=4, max=14)),
            vol.Required(CONF_MAX_TEMPERATURE): vol.All(vol.Coerce(float), vol.Range(min=6, max=16)),
        }
    ),
    _validate_frost_range,
)

PAUSE_SMART_FAN_SCHEMA = vol.Schema(
    {
        vol.Optional(CONF_ENTRY_ID): str,
        vol.Required(CONF_DEVICE_ID): vol.Coerce(int),
        vol.Optional(CONF_MINUTES): vol.All(vol.Coerce(int), vol.Range(min=1, max=1440)),
    }
)


async def async_register_services(hass: HomeAssistant) -> None:
    """Register integration services."""
    domain_data = hass.data.setdefault(DOMAIN, {})
    if domain_data.get("_services_registered"):
        return

    async def handle_refresh_devices(call: ServiceCall) -> None:
        coordinator = _get_coordinator(hass, call.data.get(CONF_ENTRY_ID))
        if not coordinator:
            return
        try:
            await coordinator.async_request_refresh()
        except Exception as err:  # noqa: BLE001
            _LOGGER.exception("Failed to refresh devices: %s", err)
            persistent_notification.async_create(
                hass,
                f"Failed to refresh devices: {err}",
                title=NOTIFICATION_TITLE,
            )

    async def handle_set_holiday_mode(call: ServiceCall) -> None:
        coordinator = _get_coordinator(hass, call.data.get(CONF_ENTRY_ID))
        if not coordinator:
            return
        device_id = call.data[CONF_DEVICE_ID]
        try:
            await coordinator.async_set_holiday_mode(
                device_id,
                call.data[CONF_ENABLED],
                call.data.get(CONF_START),
                call.data.get(CONF_END),
            )
        except Exception as err:  # noqa: BLE001
            _LOGGER.exception("Failed to set holiday mode: %s", err)
            persistent_notification.async_create(
                hass,
                f"Failed to set holiday mode for device {device_id}: {err}",
                title=NOTIFICATION_TITLE,
            )

    async def handle_set_frost_protection(call: ServiceCall) -> None:
        coordinator = _get_coordinator(hass, call.data.get(CONF_ENTRY_ID))
        if not coordinator:
            return
        device_id = call.data[CONF_DEVICE_ID]
        try:
            await coordinator.async_set_frost_protection(
                device_id,
                call.data[CONF_ENABLED],
                call.data[CONF_MIN_TEMPERATURE],
                call.data[CONF_MAX_TEMPERATURE],
            )
        except Exception as err:  # noqa: BLE001
            _LOGGER.exception("Failed to set frost protection: %s", err)
            persistent_notification.async_create(
                hass,
                f"Failed to set frost protection for device {device_id}: {err}",
                title=NOTIFICATION_TITLE,
            )

    async def handle_pause_smart_fan(call: ServiceCall) -> None:
        coordinator = _get_coordinator(hass, call.data.get(CONF_ENTRY_ID))
        if not coordinator:
            return
        device_id = call.data[CONF_DEVICE_ID]
        try:
            device = coordinator.get_device(device_id)
            device.pause_smart_fan(call.data.get(CONF_MINUTES))
        except Exception as err:  # noqa: BLE001
            _LOGGER.exception("Failed to pause smart fan: %s", err)
            persistent_notification.async_create(
                hass,
                f"Failed to pause smart fan for device {device_id}: {err}",
                title=NOTIFICATION_TITLE,
            )

    hass.services.async_register(
        DOMAIN,
        SERVICE_REFRESH_DEVICES,
        handle_refresh_devices,
        schema=REFRESH_DEVICES_SCHEMA,
    )
    hass.services.async_register(
        DOMAIN,
        SERVICE_SET_HOLIDAY_MODE,
        handle_set_holiday_mode,
        schema=SET_HOLIDAY_MODE_SCHEMA,
    )
    hass.services.async_register(
        DOMAIN,
        SERVICE_SET_FROST_PROTECTION,
        handle_set_frost_protection,
        schema=SET_FROST_PROTECTION_SCHEMA,
    )
    hass.services.async_register(
        DOMAIN,
        SERVICE_PAUSE_SMART_FAN,
        handle_pause_smart_fan,
        schema=PAUSE_SMART_FAN_SCHEMA,
    )

    domain_data["_services_registered"] = True


async def async_unregister_services(hass: HomeAssistant) -> None:
    """Unregister services if no entries remain."""
    domain_data = hass.data.get(DOMAIN, {})
    remaining = [
        value for value in domain_data.values() if isinstance(value, MelCloudCoordinator)
    ]
    if remaining:
        return

    if domain_data.pop("_services_registered", None):
        hass.services.async_remove(DOMAIN, SERVICE_REFRESH_DEVICES)
        hass.services.async_remove(DOMAIN, SERVICE_SET_HOLIDAY_MODE)
        hass.services.async_remove(DOMAIN, SERVICE_SET_FROST_PROTECTION)
        hass.services.async_remove(DOMAIN, SERVICE_PAUSE_SMART_FAN)


def _get_coordinator(hass: HomeAssistant, entry_id: str | None) -> MelCloudCoordinator | None:
    domain_data = hass.data.get(DOMAIN, {})
    if entry_id:
        coordinator = domain_data.get(entry_id)
        if isinstance(coordinator, MelCloudCoordinator):
            return coordinator
        _LOGGER.error("No coordinator found for entry_id=%s", entry_id)
        return None

    coordinators = [
        value for value in domain_data.values() if isinstance(value, MelCloudCoordinator)
    ]
    if len(coordinators) == 1:
        return coordinators[0]

    _LOGGER.error("Multiple MELCloud entries found; specify entry_id")
    return None
