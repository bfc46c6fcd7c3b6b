from __future__ import annotations

import json
from pathlib import Path

import pytest

from alarmbridge.config import AlarmState, BridgeConfig
from alarmbridge.exceptions import AlarmBridgeConfigError


def test_defaults() -> None:
    config = BridgeConfig()

    assert config.mqtt.cache == "5m"
    assert config.server.areas == 1
    assert config.hadiscovery.discovery_prefix == "homeassistant"
    assert config.payloads.alarm.for_state(AlarmState.ARM_HOME) == "armed_home"
    assert config.payloads.alarm_not_available == "offline"


def test_from_file_with_camel_case_keys(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "mqtt": {"host": "broker.local", "port": 1884, "cache": "1h"},
                "topics": {"sensors": {"topicType": "zone"}},
                "payloads": {"alarmNotvailable": "gone"},
                "hadiscovery": {"discoveryPrefix": "ha", "topics": {"eventsConfig": ""}},
                "zones": {"3": {"icon": "mdi:door"}},
                "server": {"areas": 2},
            }
        ),
        encoding="utf-8",
    )

    config = BridgeConfig.from_file(path, verbose=True)

    assert config.mqtt.host == "broker.local"
    assert config.mqtt.port == 1884
    assert config.topics.sensors.topic_type == "zone"
    assert config.payloads.alarm_not_available == "gone"
    assert config.hadiscovery.discovery_prefix == "ha"
    assert config.hadiscovery.topics.events_config == ""
    assert config.zone_override(3) is not None
    assert config.zone_override(3).icon == "mdi:door"
    assert config.server.areas == 2
    assert config.verbose is True


def test_zone_override_falls_back_to_type() -> None:
    config = BridgeConfig.from_mapping({"zones": {1: {"icon": "a"}}, "zoneTypes": {5: {"icon": "b"}}})

    assert config.zone_override(1, 5).icon == "a"
    assert config.zone_override(2, 5).icon == "b"
    assert config.zone_override(2) is None


def test_invalid_file_raises(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(AlarmBridgeConfigError):
        BridgeConfig.from_file(path)

    with pytest.raises(AlarmBridgeConfigError):
        BridgeConfig.from_file(tmp_path / "missing.json")


def test_invalid_values_raise() -> None:
    with pytest.raises(AlarmBridgeConfigError):
        BridgeConfig.from_mapping({"server": {"areas": 0}})


def test_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ALARMBRIDGE_MQTT_HOST", "10.0.0.2")
    monkeypatch.setenv("ALARMBRIDGE_MQTT_PORT", "8883")
    monkeypatch.setenv("ALARMBRIDGE_MQTT_USERNAME", "bridge")
    monkeypatch.setenv("ALARMBRIDGE_MQTT_PASSWORD", "secret")
    monkeypatch.setenv("ALARMBRIDGE_MQTT_RETAIN", "yes")
    monkeypatch.setenv("ALARMBRIDGE_VERBOSE", "1")

    config = BridgeConfig.from_env(name="Casa")

    assert config.mqtt.host == "10.0.0.2"
    assert config.mqtt.port == 8883
    assert config.mqtt.username == "bridge"
    assert config.mqtt.password == "secret"
    assert config.mqtt.retain is True
    assert config.verbose is True
    assert config.name == "Casa"


def test_from_env_explicit_overrides_win(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ALARMBRIDGE_MQTT_HOST", "10.0.0.2")
    monkeypatch.setenv("ALARMBRIDGE_VERBOSE", "true")

    config = BridgeConfig.from_env(mqtt={"host": "override"}, verbose=False)

    assert config.mqtt.host == "override"
    assert config.verbose is False


def test_from_env_bad_port(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ALARMBRIDGE_MQTT_PORT", "abc")

    with pytest.raises(AlarmBridgeConfigError):
        BridgeConfig.from_env()
