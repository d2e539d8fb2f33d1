from __future__ import annotations

import asyncio
import contextlib
import logging
import os
from datetime import datetime

from aiohttp import ClientSession

from .api import EmporiaApi, EmporiaApiConfig
from .auth import AuthSession
from .config import EmporiaConfig, apply_debug_logging
from .const import (
    DEFAULT_CONFIRM_DELAY_SECONDS,
    DEFAULT_RETRY_DELAY_SECONDS,
    DEFAULT_USAGE_SCALE,
    DEFAULT_USAGE_UNIT,
)
from .coordinator import PollingCoordinator
from .exceptions import DeviceNotFoundError, EmporiaError, StorageReadError
from .models import (
    DeviceKind,
    DeviceUsage,
    ManagedDevice,
    RemoteCharger,
    RemoteDevice,
    RemoteOutlet,
    SessionToken,
    device_key,
)
from .registry import DeviceRegistry, ReconcileResult, reconcile
from .store import SessionStore
from .surface import DeviceSurface

_LOGGER = logging.getLogger(__name__)


class EmporiaBridge:
    def __init__(
        self,
        config: EmporiaConfig,
        surface: DeviceSurface,
        *,
        aiohttp_session: ClientSession,
        token_path: str | os.PathLike[str],
        api_config: EmporiaApiConfig | None = None,
        retry_delay: float = DEFAULT_RETRY_DELAY_SECONDS,
        confirm_delay: float = DEFAULT_CONFIRM_DELAY_SECONDS,
    ) -> None:
        self._config = config
        self._surface = surface
        self._retry_delay = retry_delay
        self._store = SessionStore(token_path)
        self.auth = AuthSession(aiohttp_session=aiohttp_session, store=self._store)
        self.api = EmporiaApi(self.auth, aiohttp_session=aiohttp_session, config=api_config)
        self.registry = DeviceRegistry()
        self.coordinator = PollingCoordinator(
            self.registry,
            self.api,
            surface,
            update_interval=config.update_interval,
            energy_monitoring=config.expose_energy_monitoring,
            confirm_delay=confirm_delay,
        )
        self._setup_task: asyncio.Task[None] | None = None

    async def async_start(self) -> None:
        apply_debug_logging(self._config)
        if self._setup_task is not None and not self._setup_task.done():
            return
        self._setup_task = asyncio.create_task(self._async_setup(), name="emporia_setup")

    async def async_wait_started(self) -> None:
        if self._setup_task is not None:
            await asyncio.shield(self._setup_task)

    async def async_stop(self) -> None:
        if self._setup_task is not None:
            self._setup_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._setup_task
            self._setup_task = None
        await self.coordinator.async_stop()

    async def _async_setup(self) -> None:
        # Startup never gives up: a bad network or a vendor outage just delays it.
        while True:
            try:
                await self.async_authenticate()
                await self.async_discover()
            except EmporiaError as e:
                _LOGGER.error(
                    "Failed to authenticate or discover devices: %s; retrying in %ss",
                    e,
                    self._retry_delay,
                )
                await asyncio.sleep(self._retry_delay)
                continue
            self.coordinator.start()
            return

    async def async_authenticate(self) -> SessionToken:
        stored: SessionToken | None = None
        try:
            stored = await self._store.async_load()
        except StorageReadError as e:
            _LOGGER.warning("Failed to load saved tokens: %s", e)

        if stored is not None and self.auth.restore(stored, self._config.username):
            _LOGGER.info("Loaded saved authentication tokens")
            return stored

        _LOGGER.info("Authenticating with Emporia API...")
        return await self.auth.async_authenticate(self._config.username, self._config.password)

    async def async_list_devices(self) -> list[RemoteDevice]:
        return await self.api.async_list_devices()

    async def async_discover(self) -> ReconcileResult:
        outlets: list[RemoteOutlet] = []
        chargers: list[RemoteCharger] = []
        if self._config.expose_outlets or self._config.expose_chargers:
            status = await self.api.async_get_devices_status()
            if self._config.expose_outlets:
                outlets = status.outlets
                _LOGGER.info("Discovered %d outlet(s)", len(outlets))
            if self._config.expose_chargers:
                chargers = status.chargers
                _LOGGER.info("Discovered %d EV charger(s)", len(chargers))

        overrides = self._config.devices
        result = reconcile(self.registry, outlets, overrides, kind=DeviceKind.OUTLET).merge(
            reconcile(self.registry, chargers, overrides, kind=DeviceKind.CHARGER)
        )

        for device in result.removed:
            self._surface.remove_device(device)
        for device in result.updated:
            self._surface.update_device(device)
        for device in result.added:
            self._surface.create_device(device)
            self.coordinator.track(device.key)

        _LOGGER.info("Device discovery complete")
        return result

    async def async_set_device_state(self, kind: DeviceKind, device_id: int, on: bool) -> ManagedDevice:
        return await self.coordinator.async_set_device_state(device_key(kind, device_id), on)

    def get_cached_state(self, kind: DeviceKind, device_id: int) -> RemoteDevice:
        device = self.registry.lookup(kind, device_id)
        if device is None:
            raise DeviceNotFoundError(f"{device_key(kind, device_id)} is not a managed device")
        return device.cached_state

    async def async_get_usage(
        self,
        device_id: int,
        instant: datetime | None = None,
        scale: str = DEFAULT_USAGE_SCALE,
        unit: str = DEFAULT_USAGE_UNIT,
    ) -> DeviceUsage:
        return await self.api.async_get_usage(device_id, instant, scale, unit)

    def remove_device(self, kind: DeviceKind, device_id: int) -> ManagedDevice | None:
        device = self.registry.remove(device_key(kind, device_id))
        if device is not None:
            _LOGGER.info("Removing %s: %s", device.kind.value, device.name)
            self._surface.remove_device(device)
        return device
