from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Coroutine
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

from .api import EmporiaApi
from .const import DEFAULT_CONFIRM_DELAY_SECONDS, DEFAULT_UPDATE_INTERVAL_SECONDS
from .exceptions import DeviceNotFoundError, EmporiaError
from .models import DeviceKind, ManagedDevice, RemoteCharger, RemoteDevice
from .registry import DeviceRegistry
from .surface import DeviceSurface

_LOGGER = logging.getLogger(__name__)


def _log_task_failure(task: asyncio.Task[Any]) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        _LOGGER.error("Background task %s failed", task.get_name(), exc_info=exc)


class PollingCoordinator:
    """Drives status refreshes for every registered device from one clock.

    Each device has at most one refresh outstanding; ticks that land while a
    refresh is still pending are dropped, never queued.
    """

    def __init__(
        self,
        registry: DeviceRegistry,
        api: EmporiaApi,
        surface: DeviceSurface,
        *,
        update_interval: float = DEFAULT_UPDATE_INTERVAL_SECONDS,
        energy_monitoring: bool = False,
        confirm_delay: float = DEFAULT_CONFIRM_DELAY_SECONDS,
    ) -> None:
        self._registry = registry
        self._api = api
        self._surface = surface
        self._update_interval = update_interval
        self._energy_monitoring = energy_monitoring
        self._confirm_delay = confirm_delay
        self._loop_task: asyncio.Task[None] | None = None
        self._refresh_tasks: set[asyncio.Task[Any]] = set()
        self._confirm_tasks: set[asyncio.Task[Any]] = set()
        self._in_flight: dict[str, asyncio.Future[None]] = {}

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    def start(self) -> None:
        if self.running:
            return
        self._loop_task = asyncio.create_task(self._async_run(), name="emporia_polling")

    async def async_stop(self) -> None:
        # In-flight refreshes are left to finish (or time out) on their own.
        tasks = list(self._confirm_tasks)
        if self._loop_task is not None:
            tasks.append(self._loop_task)
            self._loop_task = None
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def async_block_till_done(self) -> None:
        while pending := [*self._refresh_tasks, *self._confirm_tasks]:
            await asyncio.gather(*pending, return_exceptions=True)

    async def _async_run(self) -> None:
        while True:
            await asyncio.sleep(self._update_interval)
            self.refresh_all()

    def refresh_all(self) -> int:
        started = 0
        for device in self._registry:
            if device.in_flight:
                _LOGGER.debug("Skipping tick for %s; refresh still in flight", device.name)
                continue
            self._spawn(self.async_refresh_device(device.key), self._refresh_tasks)
            started += 1
        return started

    def track(self, key: str) -> None:
        self._spawn(self.async_refresh_device(key), self._refresh_tasks)

    @staticmethod
    def _spawn(coro: Coroutine[Any, Any, Any], bucket: set[asyncio.Task[Any]]) -> None:
        task = asyncio.create_task(coro)
        bucket.add(task)
        task.add_done_callback(bucket.discard)
        task.add_done_callback(_log_task_failure)

    async def _async_fetch_state(self, device: ManagedDevice) -> RemoteDevice:
        if device.kind is DeviceKind.OUTLET:
            return await self._api.async_get_outlet(device.device_id)
        return await self._api.async_get_charger(device.device_id)

    async def _async_update_energy(self, device: ManagedDevice) -> None:
        try:
            usage = await self._api.async_get_usage(device.device_id)
        except EmporiaError as e:
            # Usage is only reported for some hardware; never counts as a failure.
            _LOGGER.debug("Could not fetch energy data for %s: %s", device.name, e)
            return

        usage_kwh = usage.first_usage_kwh
        if usage_kwh is None:
            return
        # Minute buckets: kWh per minute -> watts.
        device.current_power_w = usage_kwh * 60 * 1000
        device.total_consumption_kwh += usage_kwh
        _LOGGER.debug(
            "%s - Power: %.1fW, Total: %.3fkWh",
            device.name,
            device.current_power_w,
            device.total_consumption_kwh,
        )

    async def async_refresh_device(self, key: str) -> bool:
        device = self._registry.get(key)
        if device is None:
            return False
        if device.in_flight:
            _LOGGER.debug("Refresh for %s already in flight", device.name)
            return False

        generation = device.state_generation
        done = asyncio.get_running_loop().create_future()
        self._in_flight[key] = done
        device.in_flight = True
        try:
            state = await self._async_fetch_state(device)
            if device.state_generation == generation:
                device.cached_state = state
            else:
                # A state change landed while this read was outstanding.
                _LOGGER.debug("Dropping stale status for %s", device.name)
            if self._energy_monitoring:
                await self._async_update_energy(device)
        except EmporiaError as e:
            device.consecutive_failures += 1
            _LOGGER.error(
                "Failed to update status for %s (%d in a row): %s",
                device.name,
                device.consecutive_failures,
                e,
            )
            self._surface.report_error(device, e)
            return False
        finally:
            device.in_flight = False
            self._in_flight.pop(key, None)
            done.set_result(None)

        device.last_successful_update = datetime.now(timezone.utc)
        device.consecutive_failures = 0
        if key in self._registry:
            self._surface.update_device(device)
        return True

    async def async_set_device_state(self, key: str, on: bool) -> ManagedDevice:
        device = self._registry.get(key)
        if device is None:
            raise DeviceNotFoundError(f"{key} is not a managed device")

        state = device.cached_state
        try:
            if isinstance(state, RemoteCharger):
                # Turning on resumes at the last known rate; off sends zero.
                rate = state.charging_rate if on else 0
                await self._api.async_set_charger_state(device.device_id, on, rate, state.max_charging_rate)
            else:
                await self._api.async_set_outlet_state(device.device_id, on)
        except EmporiaError as e:
            _LOGGER.error("Failed to set %s state for %s: %s", device.kind.value, device.name, e)
            self._surface.report_error(device, e)
            raise

        device.cached_state = replace(state, on=bool(on))
        device.state_generation += 1
        _LOGGER.info("%s turned %s", device.name, "ON" if on else "OFF")
        self._surface.update_device(device)
        # The vendor may clamp or ignore the request; read back what it actually did.
        self._spawn(self._async_confirm(key), self._confirm_tasks)
        return device

    async def _async_confirm(self, key: str) -> None:
        await asyncio.sleep(self._confirm_delay)
        # A refresh already in flight may have read the vendor before the change.
        while (pending := self._in_flight.get(key)) is not None:
            await asyncio.shield(pending)
        await self.async_refresh_device(key)
