from __future__ import annotations

import logging
from typing import Any

from .const import DEFAULT_MAX_CHARGING_RATE
from .models import ChannelUsage, DevicesStatus, DeviceUsage, RemoteCharger, RemoteOutlet

_LOGGER = logging.getLogger(__name__)


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _as_float(value: Any, default: float = 0.0) -> float:
    if isinstance(value, bool) or value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _location_name(entry: dict[str, Any]) -> str | None:
    props = entry.get("locationProperties")
    if not isinstance(props, dict):
        return None
    name = props.get("deviceName")
    if isinstance(name, str) and name.strip():
        return name.strip()
    return None


def parse_outlet(entry: Any) -> RemoteOutlet | None:
    if not isinstance(entry, dict):
        return None
    device_id = _as_int(entry.get("deviceGid"))
    if device_id is None:
        _LOGGER.debug("Skipping outlet entry without deviceGid: %s", entry)
        return None
    return RemoteOutlet(
        device_id=device_id,
        on=bool(entry.get("outletOn") or False),
        name_hint=_location_name(entry),
        parent_device_id=_as_int(entry.get("parentDeviceGid")),
    )


def parse_charger(entry: Any) -> RemoteCharger | None:
    if not isinstance(entry, dict):
        return None
    device_id = _as_int(entry.get("deviceGid"))
    if device_id is None:
        _LOGGER.debug("Skipping charger entry without deviceGid: %s", entry)
        return None
    # A zero or missing max rate means the charger never reported one.
    max_rate = _as_int(entry.get("maxChargingRate")) or DEFAULT_MAX_CHARGING_RATE
    return RemoteCharger(
        device_id=device_id,
        on=bool(entry.get("chargerOn") or False),
        charging_rate=_as_int(entry.get("chargingRate")) or 0,
        max_charging_rate=max_rate,
        parent_device_id=_as_int(entry.get("parentDeviceGid")),
    )


def parse_devices_status(data: Any) -> DevicesStatus:
    if not isinstance(data, dict):
        return DevicesStatus(outlets=[], chargers=[])

    outlets = [o for o in (parse_outlet(e) for e in _as_list(data.get("outlets"))) if o is not None]
    chargers = [c for c in (parse_charger(e) for e in _as_list(data.get("evChargers"))) if c is not None]
    return DevicesStatus(outlets=outlets, chargers=chargers)


def parse_usage(data: Any, *, device_id: int) -> DeviceUsage:
    if not isinstance(data, dict):
        return DeviceUsage(device_id=device_id, channel_usages=[])

    usages: list[ChannelUsage] = []
    for entry in _as_list(data.get("channelUsages")):
        if not isinstance(entry, dict):
            continue
        timestamp = entry.get("timestamp")
        usages.append(
            ChannelUsage(
                device_id=_as_int(entry.get("deviceGid")) or device_id,
                channel_num=str(entry.get("channelNum") or ""),
                usage_kwh=_as_float(entry.get("usage")),
                timestamp=timestamp if isinstance(timestamp, str) else None,
            )
        )
    return DeviceUsage(device_id=_as_int(data.get("deviceGid")) or device_id, channel_usages=usages)
