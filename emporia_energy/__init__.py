from __future__ import annotations

from .api import EmporiaApi, EmporiaApiConfig
from .auth import AuthSession
from .bridge import EmporiaBridge
from .config import EmporiaConfig
from .coordinator import PollingCoordinator
from .models import DeviceKind, DeviceOverride, ManagedDevice, RemoteCharger, RemoteOutlet, SessionToken
from .registry import DeviceRegistry, ReconcileResult, reconcile
from .store import SessionStore
from .surface import DeviceSurface, LoggingSurface

__version__ = "0.1.0"

__all__ = [
    "AuthSession",
    "DeviceKind",
    "DeviceOverride",
    "DeviceRegistry",
    "DeviceSurface",
    "EmporiaApi",
    "EmporiaApiConfig",
    "EmporiaBridge",
    "EmporiaConfig",
    "LoggingSurface",
    "ManagedDevice",
    "PollingCoordinator",
    "ReconcileResult",
    "RemoteCharger",
    "RemoteOutlet",
    "SessionStore",
    "SessionToken",
    "reconcile",
]
