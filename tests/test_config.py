"""Tests for configuration parsing."""
from pathlib import Path

import pytest

from peerlink.config import RadioConfig, Settings


def test_defaults_without_environment():
    settings = Settings.from_env({})
    assert settings.radio.adapter is None
    assert settings.radio.batch_interval == 0.5
    assert settings.radio.paired_addresses == ()
    assert settings.connect_delay == 1.5
    assert settings.journal_path is None
    assert (settings.api_host, settings.api_port) == ("127.0.0.1", 8000)


def test_environment_overrides():
    settings = Settings.from_env({
        "PEERLINK_ADAPTER": "hci1",
        "PEERLINK_BATCH_INTERVAL": "0.25",
        "PEERLINK_SCANNING_MODE": "passive",
        "PEERLINK_PAIRED": "aa:01, BB:02,,",
        "PEERLINK_CONNECT_DELAY": "0",
        "PEERLINK_JOURNAL": "logs/journal.csv",
        "PEERLINK_API_PORT": "9001",
    })
    assert settings.radio.adapter == "hci1"
    assert settings.radio.batch_interval == 0.25
    assert settings.radio.scanning_mode == "passive"
    assert settings.radio.paired_addresses == ("AA:01", "BB:02")
    assert settings.connect_delay == 0.0
    assert settings.journal_path == Path("logs/journal.csv")
    assert settings.api_port == 9001


@pytest.mark.parametrize("name, value", [
    ("PEERLINK_BATCH_INTERVAL", "soon"),
    ("PEERLINK_CONNECT_DELAY", "-1"),
    ("PEERLINK_API_PORT", "eighty"),
    ("PEERLINK_API_PORT", "70000"),
    ("PEERLINK_SCANNING_MODE", "aggressive"),
])
def test_invalid_environment_values_raise(name, value):
    with pytest.raises(ValueError):
        Settings.from_env({name: value})


def test_radio_kwargs_do_not_override_explicit_detection_kwargs():
    config = RadioConfig(adapter="hci0", detection_kwargs={"adapter": "hci9", "bluez": {}})
    assert config.bleak_kwargs() == {"adapter": "hci9", "bluez": {}}
