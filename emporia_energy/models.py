from __future__ import annotations

import enum
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Union


class DeviceKind(str, enum.Enum):
    OUTLET = "outlet"
    CHARGER = "charger"

    @property
    def label(self) -> str:
        return "Outlet" if self is DeviceKind.OUTLET else "Charger"


def device_key(kind: DeviceKind, device_id: int) -> str:
    # Outlets and chargers have independent id spaces on the vendor side.
    return f"{DeviceKind(kind).value}-{int(device_id)}"


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class SessionToken:
    id_token: str
    access_token: str
    refresh_token: str
    expires_at_ms: int

    def is_expired(self, now: int | None = None) -> bool:
        return self.expires_at_ms <= (now_ms() if now is None else now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "idToken": self.id_token,
            "accessToken": self.access_token,
            "refreshToken": self.refresh_token,
            "expiresAt": self.expires_at_ms,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionToken:
        if not isinstance(data, dict):
            raise ValueError("token payload must be an object")
        id_token = data.get("idToken")
        expires_at = data.get("expiresAt")
        if not isinstance(id_token, str) or not id_token:
            raise ValueError("token payload missing idToken")
        if isinstance(expires_at, bool) or not isinstance(expires_at, (int, float)):
            raise ValueError("token payload missing expiresAt")
        return cls(
            id_token=id_token,
            access_token=str(data.get("accessToken") or ""),
            refresh_token=str(data.get("refreshToken") or ""),
            expires_at_ms=int(expires_at),
        )


@dataclass(frozen=True)
class RemoteOutlet:
    device_id: int
    on: bool
    name_hint: str | None = None
    parent_device_id: int | None = None

    @property
    def kind(self) -> DeviceKind:
        return DeviceKind.OUTLET


@dataclass(frozen=True)
class RemoteCharger:
    device_id: int
    on: bool
    charging_rate: int = 0
    max_charging_rate: int = 32
    name_hint: str | None = None
    parent_device_id: int | None = None

    @property
    def kind(self) -> DeviceKind:
        return DeviceKind.CHARGER


RemoteDevice = Union[RemoteOutlet, RemoteCharger]


@dataclass(frozen=True)
class DevicesStatus:
    outlets: list[RemoteOutlet]
    chargers: list[RemoteCharger]


@dataclass(frozen=True)
class ChannelUsage:
    device_id: int
    channel_num: str
    usage_kwh: float
    timestamp: str | None


@dataclass(frozen=True)
class DeviceUsage:
    device_id: int
    channel_usages: list[ChannelUsage]

    @property
    def first_usage_kwh(self) -> float | None:
        if not self.channel_usages:
            return None
        return self.channel_usages[0].usage_kwh


@dataclass(frozen=True)
class DeviceOverride:
    name: str | None = None
    hidden: bool = False


@dataclass
class ManagedDevice:
    key: str
    device_id: int
    kind: DeviceKind
    name: str
    cached_state: RemoteDevice
    last_successful_update: datetime | None = None
    in_flight: bool = False
    state_generation: int = 0
    consecutive_failures: int = 0
    current_power_w: float = 0.0
    total_consumption_kwh: float = 0.0

    @property
    def is_on(self) -> bool:
        return bool(self.cached_state.on)

    @property
    def in_use(self) -> bool:
        return self.is_on and self.current_power_w > 0
