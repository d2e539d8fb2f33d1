from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import voluptuous as vol

from .const import (
    CONF_DEBUG,
    CONF_DEVICE_ID,
    CONF_DEVICES,
    CONF_EXPOSE_CHARGERS,
    CONF_EXPOSE_ENERGY_MONITORING,
    CONF_EXPOSE_OUTLETS,
    CONF_HIDE,
    CONF_NAME,
    CONF_PASSWORD,
    CONF_UPDATE_INTERVAL,
    CONF_USERNAME,
    DEFAULT_UPDATE_INTERVAL_SECONDS,
    MIN_UPDATE_INTERVAL_SECONDS,
)
from .exceptions import InvalidConfigError
from .models import DeviceOverride

# Key spellings used by the Homebridge flavour of this config.
_ALIASES = {
    "updateInterval": CONF_UPDATE_INTERVAL,
    "exposeOutlets": CONF_EXPOSE_OUTLETS,
    "exposeChargers": CONF_EXPOSE_CHARGERS,
    "exposeEnergyMonitoring": CONF_EXPOSE_ENERGY_MONITORING,
    "deviceGid": CONF_DEVICE_ID,
}

DEVICE_SCHEMA = vol.Schema(
    {
        vol.Required(CONF_DEVICE_ID): vol.Coerce(int),
        vol.Optional(CONF_NAME, default=None): vol.Any(None, vol.All(str, vol.Strip)),
        vol.Optional(CONF_HIDE, default=False): bool,
    },
    extra=vol.REMOVE_EXTRA,
)

CONFIG_SCHEMA = vol.Schema(
    {
        vol.Required(CONF_USERNAME): vol.All(str, vol.Strip, vol.Length(min=1)),
        vol.Required(CONF_PASSWORD): vol.All(str, vol.Length(min=1)),
        vol.Optional(CONF_UPDATE_INTERVAL, default=DEFAULT_UPDATE_INTERVAL_SECONDS): vol.All(
            vol.Coerce(int), vol.Range(min=MIN_UPDATE_INTERVAL_SECONDS)
        ),
        vol.Optional(CONF_EXPOSE_OUTLETS, default=True): bool,
        vol.Optional(CONF_EXPOSE_CHARGERS, default=True): bool,
        vol.Optional(CONF_EXPOSE_ENERGY_MONITORING, default=False): bool,
        vol.Optional(CONF_DEBUG, default=False): bool,
        vol.Optional(CONF_DEVICES, default=list): [DEVICE_SCHEMA],
    },
    # Hosts put their own keys (platform, name, ...) next to ours.
    extra=vol.REMOVE_EXTRA,
)


def _normalize(data: Mapping[str, Any]) -> dict[str, Any]:
    return {_ALIASES.get(k, k): v for k, v in data.items()}


@dataclass(frozen=True)
class EmporiaConfig:
    username: str
    password: str = field(repr=False)
    update_interval: int = DEFAULT_UPDATE_INTERVAL_SECONDS
    expose_outlets: bool = True
    expose_chargers: bool = True
    expose_energy_monitoring: bool = False
    debug: bool = False
    devices: Mapping[int, DeviceOverride] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> EmporiaConfig:
        raw = _normalize(data)
        if isinstance(raw.get(CONF_DEVICES), list):
            raw[CONF_DEVICES] = [_normalize(d) if isinstance(d, Mapping) else d for d in raw[CONF_DEVICES]]
        try:
            conf = CONFIG_SCHEMA(raw)
        except vol.Invalid as e:
            raise InvalidConfigError(f"invalid Emporia configuration: {e}") from e

        devices = {
            d[CONF_DEVICE_ID]: DeviceOverride(name=d[CONF_NAME] or None, hidden=d[CONF_HIDE])
            for d in conf[CONF_DEVICES]
        }
        return cls(
            username=conf[CONF_USERNAME],
            password=conf[CONF_PASSWORD],
            update_interval=conf[CONF_UPDATE_INTERVAL],
            expose_outlets=conf[CONF_EXPOSE_OUTLETS],
            expose_chargers=conf[CONF_EXPOSE_CHARGERS],
            expose_energy_monitoring=conf[CONF_EXPOSE_ENERGY_MONITORING],
            debug=conf[CONF_DEBUG],
            devices=devices,
        )


def apply_debug_logging(config: EmporiaConfig) -> None:
    if config.debug:
        logging.getLogger(__package__).setLevel(logging.DEBUG)
