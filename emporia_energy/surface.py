from __future__ import annotations

import logging
from typing import Protocol

from .models import ManagedDevice

_LOGGER = logging.getLogger(__name__)


class DeviceSurface(Protocol):
    """What the host runtime exposes to the core.

    The host renders devices however it likes (toggles, switches, ...).
    Reads from the host are answered from ``ManagedDevice.cached_state``.
    """

    def create_device(self, device: ManagedDevice) -> None: ...

    def update_device(self, device: ManagedDevice) -> None: ...

    def remove_device(self, device: ManagedDevice) -> None: ...

    def report_error(self, device: ManagedDevice, error: Exception) -> None: ...


class LoggingSurface:
    def create_device(self, device: ManagedDevice) -> None:
        _LOGGER.info("Device added: %s (%s)", device.name, device.key)

    def update_device(self, device: ManagedDevice) -> None:
        _LOGGER.debug("Device %s is %s", device.name, "ON" if device.is_on else "OFF")

    def remove_device(self, device: ManagedDevice) -> None:
        _LOGGER.info("Device removed: %s (%s)", device.name, device.key)

    def report_error(self, device: ManagedDevice, error: Exception) -> None:
        _LOGGER.error("Device %s failed: %s", device.name, error)
