from __future__ import annotations

import logging

import pytest

from emporia_energy.config import EmporiaConfig, apply_debug_logging
from emporia_energy.exceptions import InvalidConfigError
from emporia_energy.models import DeviceOverride


def test_defaults() -> None:
    config = EmporiaConfig.from_dict({"username": " me@example.com ", "password": "pw"})
    assert config.username == "me@example.com"
    assert config.update_interval == 60
    assert config.expose_outlets is True
    assert config.expose_chargers is True
    assert config.expose_energy_monitoring is False
    assert config.debug is False
    assert dict(config.devices) == {}


def test_camel_case_keys_and_extras() -> None:
    config = EmporiaConfig.from_dict(
        {
            "platform": "EmporiaEnergy",
            "username": "u",
            "password": "p",
            "updateInterval": "30",
            "exposeChargers": False,
            "exposeEnergyMonitoring": True,
            "devices": [
                {"deviceGid": "101", "name": " Kettle ", "hide": False},
                {"deviceGid": 102, "hide": True},
            ],
        }
    )
    assert config.update_interval == 30
    assert config.expose_chargers is False
    assert config.expose_energy_monitoring is True
    assert config.devices == {
        101: DeviceOverride(name="Kettle"),
        102: DeviceOverride(hidden=True),
    }


def test_password_not_in_repr() -> None:
    config = EmporiaConfig.from_dict({"username": "u", "password": "secret"})
    assert "secret" not in repr(config)


@pytest.mark.parametrize(
    "data",
    [
        {"password": "p"},
        {"username": "", "password": "p"},
        {"username": "u", "password": ""},
        {"username": "u", "password": "p", "updateInterval": 5},
        {"username": "u", "password": "p", "devices": [{"name": "no id"}]},
    ],
)
def test_invalid_config(data) -> None:  # noqa: ANN001
    with pytest.raises(InvalidConfigError):
        EmporiaConfig.from_dict(data)


def test_debug_logging() -> None:
    logger = logging.getLogger("emporia_energy")
    previous = logger.level
    try:
        apply_debug_logging(EmporiaConfig.from_dict({"username": "u", "password": "p", "debug": True}))
        assert logger.level == logging.DEBUG
    finally:
        logger.setLevel(previous)
