from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import aiohttp
from aiohttp import ClientSession

from .auth import AuthSession
from .const import (
    API_BASE_URL,
    AUTH_HEADER,
    DEFAULT_MAX_CHARGING_RATE,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    DEFAULT_USAGE_SCALE,
    DEFAULT_USAGE_UNIT,
)
from .emporia_parse import parse_charger, parse_devices_status, parse_outlet, parse_usage
from .exceptions import (
    AuthorizationRejectedError,
    DeviceNotFoundError,
    NetworkTimeoutError,
    NetworkUnreachableError,
    RejectedStateError,
    VendorResponseError,
)
from .models import DevicesStatus, DeviceUsage, RemoteCharger, RemoteDevice, RemoteOutlet

_LOGGER = logging.getLogger(__name__)

HTTP_UNAUTHORIZED = 401
HTTP_NOT_FOUND = 404
HTTP_SERVER_ERROR = 500


@dataclass(frozen=True)
class EmporiaApiConfig:
    base_url: str = API_BASE_URL
    timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS


def format_instant(instant: datetime) -> str:
    if instant.tzinfo is None:
        raise ValueError("usage instants must be timezone-aware")
    return instant.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class EmporiaApi:
    def __init__(
        self,
        auth: AuthSession,
        *,
        aiohttp_session: ClientSession,
        config: EmporiaApiConfig | None = None,
    ) -> None:
        self._auth = auth
        self._aiohttp_session = aiohttp_session
        self._config = config or EmporiaApiConfig()

    @property
    def auth(self) -> AuthSession:
        return self._auth

    async def _request(self, method: str, path: str, *, body: dict[str, Any] | None = None, mutation: bool = False) -> Any:
        async def _send(id_token: str) -> Any:
            return await self._send(method, path, id_token=id_token, body=body, mutation=mutation)

        return await self._auth.async_call(_send)

    async def _send(
        self,
        method: str,
        path: str,
        *,
        id_token: str,
        body: dict[str, Any] | None,
        mutation: bool,
    ) -> Any:
        url = f"{self._config.base_url}{path}"
        # Emporia takes the Cognito *IdToken* as the raw `authtoken` header value.
        headers = {"content-type": "application/json", AUTH_HEADER: id_token}

        _LOGGER.debug("Emporia request %s %s", method, path)
        try:
            async with self._aiohttp_session.request(
                method,
                url,
                headers=headers,
                json=body,
                timeout=aiohttp.ClientTimeout(total=self._config.timeout),
            ) as resp:
                status = resp.status
                try:
                    text = await resp.text()
                except UnicodeDecodeError as e:
                    raise VendorResponseError(f"{method} {path} returned an undecodable body", status=status) from e
        except asyncio.TimeoutError as e:
            raise NetworkTimeoutError(f"{method} {path} timed out") from e
        except aiohttp.ClientError as e:
            raise NetworkUnreachableError(f"{method} {path} failed: {e!r}") from e

        _LOGGER.debug("Emporia response %s %s status=%d len=%d", method, path, status, len(text))
        if status == HTTP_UNAUTHORIZED:
            raise AuthorizationRejectedError(f"{method} {path} unauthorized")
        if status == HTTP_NOT_FOUND:
            raise DeviceNotFoundError(f"{method} {path} not found: {text[:200]}")
        if mutation and 400 <= status < HTTP_SERVER_ERROR:
            raise RejectedStateError(f"{method} {path} rejected ({status}): {text[:200]}")
        if status >= 400:
            raise VendorResponseError(f"{method} {path} failed ({status}): {text[:200]}", status=status)

        if not text:
            return None
        try:
            return json.loads(text)
        except ValueError:
            _LOGGER.warning("Emporia returned a non-JSON body for %s %s", method, path)
            return None

    async def async_get_devices_status(self) -> DevicesStatus:
        data = await self._request("GET", "/customers/devices/status")
        return parse_devices_status(data)

    async def async_list_outlets(self) -> list[RemoteOutlet]:
        return (await self.async_get_devices_status()).outlets

    async def async_list_chargers(self) -> list[RemoteCharger]:
        return (await self.async_get_devices_status()).chargers

    async def async_list_devices(self) -> list[RemoteDevice]:
        status = await self.async_get_devices_status()
        return [*status.outlets, *status.chargers]

    async def async_get_outlet(self, device_id: int) -> RemoteOutlet:
        for outlet in await self.async_list_outlets():
            if outlet.device_id == device_id:
                return outlet
        raise DeviceNotFoundError(f"outlet {device_id} not reported by Emporia")

    async def async_get_charger(self, device_id: int) -> RemoteCharger:
        for charger in await self.async_list_chargers():
            if charger.device_id == device_id:
                return charger
        raise DeviceNotFoundError(f"charger {device_id} not reported by Emporia")

    async def async_set_outlet_state(self, device_id: int, on: bool) -> RemoteOutlet:
        _LOGGER.debug("Setting outlet %s %s", device_id, "ON" if on else "OFF")
        data = await self._request(
            "PUT",
            "/devices/outlet",
            body={"deviceGid": device_id, "outletOn": bool(on)},
            mutation=True,
        )
        return parse_outlet(data) or RemoteOutlet(device_id=device_id, on=bool(on))

    async def async_set_charger_state(
        self,
        device_id: int,
        on: bool,
        rate: int | None = None,
        max_rate: int | None = None,
    ) -> RemoteCharger:
        _LOGGER.debug("Setting charger %s %s", device_id, "ON" if on else "OFF")
        body: dict[str, Any] = {"deviceGid": device_id, "chargerOn": bool(on)}
        if rate is not None:
            body["chargingRate"] = int(rate)
        if max_rate is not None:
            body["maxChargingRate"] = int(max_rate)

        data = await self._request("PUT", "/devices/evcharger", body=body, mutation=True)
        return parse_charger(data) or RemoteCharger(
            device_id=device_id,
            on=bool(on),
            charging_rate=int(rate or 0),
            max_charging_rate=int(max_rate or DEFAULT_MAX_CHARGING_RATE),
        )

    async def async_get_usage(
        self,
        device_id: int,
        instant: datetime | None = None,
        scale: str = DEFAULT_USAGE_SCALE,
        unit: str = DEFAULT_USAGE_UNIT,
    ) -> DeviceUsage:
        instant = instant or datetime.now(timezone.utc)
        data = await self._request(
            "POST",
            "/devices/usage",
            body={
                "deviceGids": [device_id],
                "instant": format_instant(instant),
                "scale": scale,
                "unit": unit,
            },
        )
        return parse_usage(data, device_id=device_id)
