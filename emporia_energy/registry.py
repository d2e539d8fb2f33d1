from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field

from .models import DeviceKind, DeviceOverride, ManagedDevice, RemoteDevice, device_key

_LOGGER = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    added: list[ManagedDevice] = field(default_factory=list)
    updated: list[ManagedDevice] = field(default_factory=list)
    removed: list[ManagedDevice] = field(default_factory=list)

    def merge(self, other: ReconcileResult) -> ReconcileResult:
        return ReconcileResult(
            added=[*self.added, *other.added],
            updated=[*self.updated, *other.updated],
            removed=[*self.removed, *other.removed],
        )


class DeviceRegistry:
    """Indexed store of managed devices, keyed by ``<kind>-<deviceId>``."""

    def __init__(self) -> None:
        self._devices: dict[str, ManagedDevice] = {}

    def __len__(self) -> int:
        return len(self._devices)

    def __iter__(self) -> Iterator[ManagedDevice]:
        return iter(list(self._devices.values()))

    def __contains__(self, key: object) -> bool:
        return key in self._devices

    def get(self, key: str) -> ManagedDevice | None:
        return self._devices.get(key)

    def lookup(self, kind: DeviceKind, device_id: int) -> ManagedDevice | None:
        return self._devices.get(device_key(kind, device_id))

    def keys(self) -> list[str]:
        return list(self._devices)

    def devices(self, kind: DeviceKind | None = None) -> list[ManagedDevice]:
        return [d for d in self._devices.values() if kind is None or d.kind is kind]

    def add(self, device: ManagedDevice) -> None:
        if device.key in self._devices:
            raise KeyError(f"device {device.key} already registered")
        self._devices[device.key] = device

    def remove(self, key: str) -> ManagedDevice | None:
        return self._devices.pop(key, None)


def display_name(remote: RemoteDevice, override: DeviceOverride | None = None) -> str:
    if override is not None and override.name:
        return override.name
    if remote.name_hint:
        return remote.name_hint
    return f"Emporia {remote.kind.label} {remote.device_id}"


def reconcile(
    registry: DeviceRegistry,
    remote_devices: Iterable[RemoteDevice],
    overrides: Mapping[int, DeviceOverride] | None = None,
    *,
    kind: DeviceKind | None = None,
) -> ReconcileResult:
    """Apply one discovery pass to the registry.

    With ``kind`` set only devices of that kind are considered, both for adding
    and for removal, so outlet and charger passes stay independent.

    Hidden devices are never created. A device that is already registered and
    later becomes hidden is left in place; callers remove it explicitly.
    """
    overrides = overrides or {}
    result = ReconcileResult()
    seen: set[str] = set()
    hidden: set[str] = set()

    for remote in remote_devices:
        if kind is not None and remote.kind is not kind:
            continue
        key = device_key(remote.kind, remote.device_id)
        override = overrides.get(remote.device_id)
        if override is not None and override.hidden:
            _LOGGER.info("Skipping hidden %s: %s", remote.kind.value, remote.device_id)
            hidden.add(key)
            continue
        if key in seen:
            continue
        seen.add(key)

        name = display_name(remote, override)
        existing = registry.get(key)
        if existing is None:
            device = ManagedDevice(
                key=key,
                device_id=remote.device_id,
                kind=remote.kind,
                name=name,
                cached_state=remote,
            )
            registry.add(device)
            result.added.append(device)
            _LOGGER.info("Adding new %s: %s", remote.kind.value, name)
            continue

        existing.cached_state = remote
        if existing.name != name:
            _LOGGER.info("Updating %s name: %s -> %s", remote.kind.value, existing.name, name)
            existing.name = name
            result.updated.append(existing)

    for device in registry.devices(kind):
        if device.key in seen or device.key in hidden:
            continue
        registry.remove(device.key)
        result.removed.append(device)
        _LOGGER.info("Removing %s no longer present: %s", device.kind.value, device.name)

    return result
