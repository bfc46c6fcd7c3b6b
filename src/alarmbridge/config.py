"""Bridge configuration for alarmbridge.

The models mirror the JSON configuration file of the bridge: keys are
camelCase on disk (``hadiscovery.topics.sensorBatteryConfig``) and
snake_case in Python (``hadiscovery.topics.sensor_battery_config``).
"""

from __future__ import annotations

import json
import os
from enum import StrEnum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from alarmbridge._constants import DEFAULT_DISCOVERY_PREFIX, DEFAULT_MAX_ZONES
from alarmbridge.exceptions import AlarmBridgeConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


class AlarmState(StrEnum):
    """Alarm states understood by the Command Sink and the hub."""

    ARM_AWAY = "arm_away"
    ARM_HOME = "arm_home"
    DISARM = "disarm"
    CANCEL = "cancel"
    TRIGGERED = "triggered"


class _ConfigModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )


class MqttSettings(_ConfigModel):
    """Broker connection and write policy.

    ``cache`` is a duration expression (``"30s"``, ``"5m"``, ``"1h"``,
    ``"1d"``); ``None`` disables the publication cache.
    """

    host: str = "localhost"
    port: int = 1883
    username: str | None = None
    password: str | None = None
    client_id: str | None = None
    keepalive: int = 60
    retain: bool = False
    cache: str | None = "5m"


class ZoneStateTopics(_ConfigModel):
    state: str = "ialarm/sensors/${zoneId}"
    alarm: str = "ialarm/sensors/${zoneId}/alarm"
    active: str = "ialarm/sensors/${zoneId}/active"
    low_battery: str = "ialarm/sensors/${zoneId}/lowBattery"
    fault: str = "ialarm/sensors/${zoneId}/fault"


class SensorTopics(_ConfigModel):
    state: str = "ialarm/sensors"
    #: ``"state"`` (array only), ``"zone"`` (per-zone topics only) or
    #: ``None`` (both).
    topic_type: str | None = None
    zone: ZoneStateTopics = Field(default_factory=ZoneStateTopics)


class AlarmTopics(_ConfigModel):
    state: str = "ialarm/alarm/state"
    command: str = "ialarm/alarm/area/${areaId}/set"
    event: str = "ialarm/alarm/event"
    bypass: str = "ialarm/sensors/${zoneId}/bypass/set"
    discovery: str = "ialarm/alarm/discovery"
    reset_cache: str = "ialarm/alarm/resetCache"
    config_status: str = "ialarm/alarm/configStatus"


class TopicSettings(_ConfigModel):
    availability: str = "ialarm/alarm/availability"
    sensors: SensorTopics = Field(default_factory=SensorTopics)
    alarm: AlarmTopics = Field(default_factory=AlarmTopics)


class AlarmPayloads(_ConfigModel):
    """Alarm-state vocabulary shared by state publications and commands."""

    arm_away: str = "armed_away"
    arm_home: str = "armed_home"
    disarm: str = "disarmed"
    cancel: str = "cancel"
    triggered: str = "triggered"

    def for_state(self, state: AlarmState) -> str:
        return str(getattr(self, state.value))


def _default_alarm_decoder() -> dict[AlarmState, tuple[str, ...]]:
    return {
        AlarmState.ARM_AWAY: ("armed_away", "ARMED_AWAY", "arm"),
        AlarmState.ARM_HOME: ("armed_home", "ARMED_HOME", "stay", "partarm"),
        AlarmState.DISARM: ("disarmed", "DISARMED", "disarm"),
        AlarmState.CANCEL: ("cancel", "CANCEL"),
        AlarmState.TRIGGERED: ("triggered", "TRIGGERED", "alarm"),
    }


class PayloadSettings(_ConfigModel):
    sensor_on: str = "1"
    sensor_off: str = "0"
    alarm_available: str = "online"
    alarm_not_available: str = Field(default="offline", alias="alarmNotvailable")
    alarm: AlarmPayloads = Field(default_factory=AlarmPayloads)
    #: Raw panel/command tokens accepted for each alarm state (case-insensitive).
    alarm_decoder: dict[AlarmState, tuple[str, ...]] = Field(default_factory=_default_alarm_decoder)


class DiscoveryTopics(_ConfigModel):
    """Discovery topic templates; ``""`` disables the entity."""

    alarm_config: str = "${discoveryPrefix}/alarm_control_panel/ialarm/${areaId}/config"
    sensor_config: str = "${discoveryPrefix}/binary_sensor/ialarm_${zoneId}/fault/config"
    sensor_battery_config: str = "${discoveryPrefix}/binary_sensor/ialarm_${zoneId}/battery/config"
    sensor_alarm_config: str = "${discoveryPrefix}/binary_sensor/ialarm_${zoneId}/alarm/config"
    sensor_connectivity_config: str = "${discoveryPrefix}/binary_sensor/ialarm_${zoneId}/connectivity/config"
    bypass_config: str = "${discoveryPrefix}/switch/ialarm_${zoneId}/bypass/config"
    events_config: str = "${discoveryPrefix}/sensor/ialarm/events/config"
    connection_config: str = "${discoveryPrefix}/binary_sensor/ialarm/connection/config"
    clear_cache_config: str = "${discoveryPrefix}/switch/ialarm/clear_cache/config"
    clear_discovery_config: str = "${discoveryPrefix}/switch/ialarm/clear_discovery/config"
    clear_triggered_config: str = "${discoveryPrefix}/switch/ialarm/clear_triggered/config"


class EventsEntity(_ConfigModel):
    name: str | None = None
    icon: str = "mdi:message-alert"


class BypassEntity(_ConfigModel):
    name: str = "Bypass"
    icon: str = "mdi:lock-open-variant"


class DiscoverySettings(_ConfigModel):
    enabled: bool = True
    discovery_prefix: str = DEFAULT_DISCOVERY_PREFIX
    sensors_qos: int = 0
    alarm_qos: int = 2
    code: str | None = None
    events: EventsEntity = Field(default_factory=EventsEntity)
    bypass: BypassEntity = Field(default_factory=BypassEntity)
    topics: DiscoveryTopics = Field(default_factory=DiscoveryTopics)


class FeatureToggles(_ConfigModel):
    sensors: bool = True
    bypass: bool = True
    arm_disarm: bool = True
    events: bool = True


class BrandingSettings(_ConfigModel):
    manufacturer: str = "Meian"
    device_name_suffix: str = ""
    unique_id_suffix: str = ""


class ServerSettings(_ConfigModel):
    areas: int = Field(default=1, ge=1)
    max_zones: int = Field(default=DEFAULT_MAX_ZONES, ge=0)


class ZoneOverride(_ConfigModel):
    icon: str | None = None
    device_class: str | None = None


class BridgeConfig(_ConfigModel):
    """Complete bridge configuration.

    Parameters
    ----------
    mqtt : MqttSettings
        Broker connection, retain policy and cache TTL expression.
    topics : TopicSettings
        State and command topic templates.
    payloads : PayloadSettings
        On/off tokens, availability tokens and the alarm-state vocabulary.
    hadiscovery : DiscoverySettings
        Home Assistant discovery prefix, QoS levels and topic templates.
    features : FeatureToggles
        Entity categories to announce.
    branding : BrandingSettings
        Manufacturer and suffixes applied to device names and unique ids.
    server : ServerSettings
        Number of areas and the highest zone index to iterate.
    zones : dict[int, ZoneOverride]
        Per-zone icon/device-class overrides, keyed by zone id.
    zone_types : dict[int, ZoneOverride]
        Fallback overrides keyed by zone type id.
    name : str or None
        Panel display name; defaults to the name reported by the panel.
    verbose : bool
        Log full payloads instead of summaries.
    """

    mqtt: MqttSettings = Field(default_factory=MqttSettings)
    topics: TopicSettings = Field(default_factory=TopicSettings)
    payloads: PayloadSettings = Field(default_factory=PayloadSettings)
    hadiscovery: DiscoverySettings = Field(default_factory=DiscoverySettings)
    features: FeatureToggles = Field(default_factory=FeatureToggles)
    branding: BrandingSettings = Field(default_factory=BrandingSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    zones: dict[int, ZoneOverride] = Field(default_factory=dict)
    zone_types: dict[int, ZoneOverride] = Field(default_factory=dict)
    name: str | None = None
    verbose: bool = False

    def zone_override(self, zone_id: int, type_id: int | None = None) -> ZoneOverride | None:
        """Return the override for a zone, falling back to its type."""
        override = self.zones.get(zone_id)
        if override is None and type_id is not None:
            override = self.zone_types.get(type_id)
        return override

    @classmethod
    def from_file(cls, path: str | Path, **overrides: Any) -> BridgeConfig:
        """Load configuration from a JSON file.

        Top-level keyword arguments replace the corresponding sections.
        """
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise AlarmBridgeConfigError(f"Cannot read config file {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise AlarmBridgeConfigError(f"Config file {path} must contain a JSON object")
        data.update(overrides)
        return cls.from_mapping(data)

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> BridgeConfig:
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise AlarmBridgeConfigError(f"Invalid configuration: {exc}") from exc

    @classmethod
    def from_env(cls, **overrides: Any) -> BridgeConfig:
        """Create configuration from environment variables.

        Reads ``ALARMBRIDGE_MQTT_*`` for the broker section and
        ``ALARMBRIDGE_VERBOSE``.  Explicit keyword arguments override
        environment values.
        """
        env = os.environ

        _ENV_MQTT_MAP = {
            "ALARMBRIDGE_MQTT_HOST": "host",
            "ALARMBRIDGE_MQTT_USERNAME": "username",
            "ALARMBRIDGE_MQTT_PASSWORD": "password",
            "ALARMBRIDGE_MQTT_CLIENT_ID": "client_id",
            "ALARMBRIDGE_MQTT_CACHE": "cache",
        }
        mqtt_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_MQTT_MAP.items():
            val = env.get(env_key)
            if val is not None:
                mqtt_kwargs[field_name] = val

        port_env = env.get("ALARMBRIDGE_MQTT_PORT")
        if port_env is not None:
            try:
                mqtt_kwargs["port"] = int(port_env)
            except ValueError as exc:
                raise AlarmBridgeConfigError(f"ALARMBRIDGE_MQTT_PORT is not a number: {port_env!r}") from exc

        retain_env = env.get("ALARMBRIDGE_MQTT_RETAIN")
        if retain_env is not None:
            mqtt_kwargs["retain"] = _env_bool(retain_env, False)

        mqtt_overrides = overrides.pop("mqtt", None)
        if isinstance(mqtt_overrides, dict):
            mqtt_kwargs.update(mqtt_overrides)
        elif isinstance(mqtt_overrides, MqttSettings):
            mqtt_kwargs = mqtt_overrides.model_dump()

        config_kwargs: dict[str, Any] = {"mqtt": mqtt_kwargs}
        if "verbose" not in overrides:
            config_kwargs["verbose"] = _env_bool(env.get("ALARMBRIDGE_VERBOSE"), False)
        config_kwargs.update(overrides)
        return cls.from_mapping(config_kwargs)
