"""Home Assistant discovery message generation.

Everything here is a pure function of ``(config, zones, reset, device)``:
the same inputs always produce the same topics and payloads, in the same
order.  A reset build computes the same topics with empty payloads, which
removes the entities from the hub.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pydantic import ValidationError

from alarmbridge._constants import (
    DISCOVERY_SCHEMA_VERSION,
    LEGACY_CLEANUP_TOPICS,
    LEGACY_ZONE_CLEANUP_TOPICS,
    PACKAGE_VERSION,
    UNUSED_ZONE_TYPE_ID,
)
from alarmbridge.config import BridgeConfig
from alarmbridge.exceptions import DiscoveryBuildError
from alarmbridge.models import DeviceIdentity, DiscoveryMessage, Zone
from alarmbridge.naming import ZoneName, normalize
from alarmbridge.topics import AREA_ID, DISCOVERY_PREFIX, ZONE_ID, resolve_topic

_logger = logging.getLogger(__name__)

DEFAULT_PANEL_NAME = "iAlarm Security Panel"


class EntityKind(StrEnum):
    ALARM = "alarm"
    FAULT = "fault"
    BATTERY = "battery"
    CONNECTIVITY = "connectivity"
    BYPASS = "bypass"


#: Suffix appended to the zone display name; the main alarm sensor has none.
ENTITY_KIND_LABELS: dict[EntityKind, str] = {
    EntityKind.ALARM: "",
    EntityKind.FAULT: "Fault",
    EntityKind.BATTERY: "Battery",
    EntityKind.CONNECTIVITY: "Connectivity",
    EntityKind.BYPASS: "Bypass",
}


@dataclass(frozen=True)
class EntityIdentity:
    unique_id: str
    name: str


@dataclass(frozen=True)
class _BinarySensorSpec:
    kind: EntityKind
    device_class: str
    status_flag: str
    topic_field: str
    default_on: bool = False


# Emission order matters: fault, low battery, main alarm, connectivity.
_ZONE_SENSORS: tuple[_BinarySensorSpec, ...] = (
    _BinarySensorSpec(EntityKind.FAULT, "safety", "fault", "sensor_config"),
    _BinarySensorSpec(EntityKind.BATTERY, "battery", "lowbat", "sensor_battery_config"),
    _BinarySensorSpec(EntityKind.ALARM, "safety", "alarm", "sensor_alarm_config"),
    # Connectivity is "on" until the panel reports a wireless loss.
    _BinarySensorSpec(EntityKind.CONNECTIVITY, "connectivity", "wirelessLoss", "sensor_connectivity_config", True),
)


def alarm_instance_id(config: BridgeConfig, device: DeviceIdentity) -> str:
    """Stable id of this bridge instance, derived from the panel MAC."""
    mac = (device.mac or "").replace(":", "")
    return f"alarm_mqtt_{mac or 'meian'}{config.branding.unique_id_suffix}"


def zone_entity_identity(alarm_id: str, zone_id: int, zone_name: ZoneName, kind: EntityKind) -> EntityIdentity:
    label = ENTITY_KIND_LABELS[kind]
    display = f"{zone_name.display_name} {label}" if label else zone_name.display_name
    return EntityIdentity(
        unique_id=f"{alarm_id}_zone_{zone_id}_{zone_name.slug}_{kind.value}_{DISCOVERY_SCHEMA_VERSION}",
        name=display,
    )


def panel_unique_id(alarm_id: str, name: str) -> str:
    return f"{alarm_id}_{name}_{DISCOVERY_SCHEMA_VERSION}"


@dataclass(frozen=True)
class DiscoveryContext:
    """Values shared by every message of one build."""

    config: BridgeConfig
    alarm_id: str
    device: dict[str, Any]
    reset: bool

    @classmethod
    def create(cls, config: BridgeConfig, device: DeviceIdentity, *, reset: bool) -> DiscoveryContext:
        alarm_id = alarm_instance_id(config, device)
        panel_name = config.name or device.name or DEFAULT_PANEL_NAME
        descriptor = {
            "identifiers": [alarm_id],
            "manufacturer": config.branding.manufacturer,
            "model": device.name or DEFAULT_PANEL_NAME,
            "name": f"{panel_name}{config.branding.device_name_suffix}",
            "sw_version": f"alarmbridge {PACKAGE_VERSION}",
        }
        return cls(config=config, alarm_id=alarm_id, device=descriptor, reset=reset)

    def topic(self, template: str, **values: Any) -> str:
        values[DISCOVERY_PREFIX] = self.config.hadiscovery.discovery_prefix
        return resolve_topic(template, values)

    def availability(self) -> list[dict[str, str]]:
        return [
            {
                "topic": self.config.topics.availability,
                "payload_available": self.config.payloads.alarm_available,
                "payload_not_available": self.config.payloads.alarm_not_available,
            }
        ]

    def zone_device(self, zone: Zone, zone_name: ZoneName) -> dict[str, Any]:
        return {
            **self.device,
            "identifiers": [f"{self.alarm_id}_zone_{zone.id}"],
            "name": zone_name.display_name,
            "model": zone.type or "Binary Sensor",
            "via_device": self.alarm_id,
        }

    def message(self, topic: str, payload: dict[str, Any]) -> DiscoveryMessage:
        return DiscoveryMessage(topic=topic, payload="" if self.reset else payload)


# ------------------------------------------------------------------
# Zone entities
# ------------------------------------------------------------------


def _on_off_template(config: BridgeConfig, flag: str, *, inverted: bool = False) -> str:
    on, off = config.payloads.sensor_on, config.payloads.sensor_off
    if inverted:
        on, off = off, on
    return f"{{{{ '{on}' if value_json.{flag} else '{off}' }}}}"


def zone_binary_sensor(ctx: DiscoveryContext, zone: Zone, zone_name: ZoneName, spec: _BinarySensorSpec) -> DiscoveryMessage:
    config = ctx.config
    assert zone.id is not None  # noqa: S101
    topic = ctx.topic(getattr(config.hadiscovery.topics, spec.topic_field), **{ZONE_ID: zone.id})
    if ctx.reset:
        return ctx.message(topic, {})

    identity = zone_entity_identity(ctx.alarm_id, zone.id, zone_name, spec.kind)
    state_topic = ctx.topic(config.topics.sensors.zone.state, **{ZONE_ID: zone.id})
    payload: dict[str, Any] = {
        "name": identity.name,
        "unique_id": identity.unique_id,
        "availability": ctx.availability(),
        "device_class": spec.device_class,
        "value_template": _on_off_template(config, spec.status_flag, inverted=spec.default_on),
        "payload_on": config.payloads.sensor_on,
        "payload_off": config.payloads.sensor_off,
        "state_topic": state_topic,
        "json_attributes_topic": state_topic,
        "json_attributes_template": "{{ value_json | tojson }}",
        "device": ctx.zone_device(zone, zone_name),
        "qos": config.hadiscovery.sensors_qos,
    }
    if spec.kind is EntityKind.FAULT:
        override = config.zone_override(zone.id, zone.type_id)
        if override is not None:
            if override.icon:
                payload["icon"] = override.icon
            payload["device_class"] = override.device_class or spec.device_class
    return ctx.message(topic, payload)


def zone_bypass_switch(ctx: DiscoveryContext, zone: Zone, zone_name: ZoneName) -> DiscoveryMessage:
    config = ctx.config
    assert zone.id is not None  # noqa: S101
    topic = ctx.topic(config.hadiscovery.topics.bypass_config, **{ZONE_ID: zone.id})
    if ctx.reset:
        return ctx.message(topic, {})

    identity = zone_entity_identity(ctx.alarm_id, zone.id, zone_name, EntityKind.BYPASS)
    label = config.hadiscovery.bypass.name
    return ctx.message(
        topic,
        {
            "name": f"{zone_name.display_name} {label}" if label else identity.name,
            "unique_id": identity.unique_id,
            "availability": ctx.availability(),
            "state_topic": ctx.topic(config.topics.sensors.zone.state, **{ZONE_ID: zone.id}),
            "value_template": _on_off_template(config, "bypass"),
            "payload_on": config.payloads.sensor_on,
            "payload_off": config.payloads.sensor_off,
            "command_topic": ctx.topic(config.topics.alarm.bypass, **{ZONE_ID: zone.id}),
            "icon": config.hadiscovery.bypass.icon,
            "device": ctx.zone_device(zone, zone_name),
            "qos": config.hadiscovery.sensors_qos,
        },
    )


def _zone_messages(ctx: DiscoveryContext, zone: Zone) -> list[DiscoveryMessage]:
    config = ctx.config
    messages: list[DiscoveryMessage] = []
    if ctx.reset:
        messages.extend(ctx.message(ctx.topic(t, **{ZONE_ID: zone.id}), {}) for t in LEGACY_ZONE_CLEANUP_TOPICS)

    zone_name = normalize(zone.name)
    if ctx.reset or config.features.sensors:
        messages.extend(zone_binary_sensor(ctx, zone, zone_name, spec) for spec in _ZONE_SENSORS)
    if ctx.reset or config.features.bypass:
        messages.append(zone_bypass_switch(ctx, zone, zone_name))
    return messages


def _resolve_zone(index: int, record: Zone | Mapping[str, Any] | None, *, reset: bool) -> Zone | None:
    zone_id = index + 1
    if reset:
        return Zone(id=zone_id, name=f"Zone_{zone_id}")
    if record is None:
        _logger.debug("Discovery: no zone information at index %s, skipping", index)
        return None

    zone = record if isinstance(record, Zone) else Zone.model_validate(record)
    updates: dict[str, Any] = {}
    if zone.id is None:
        updates["id"] = zone_id
    if zone.name is None:
        _logger.warning("Zone %s has no name, using default", zone.id or zone_id)
        updates["name"] = f"Zone_{zone.id or zone_id}"
    if updates:
        zone = zone.model_copy(update=updates)
    if not zone.id:
        _logger.warning("Invalid zone at index %s (id=%s), skipping", index, zone.id)
        return None
    if zone.type_id == UNUSED_ZONE_TYPE_ID:
        _logger.debug("Discovery: ignoring unused zone %s (typeId = 0)", zone.id)
        return None
    return zone


# ------------------------------------------------------------------
# Panel entities
# ------------------------------------------------------------------


def _config_status_switch(
    ctx: DiscoveryContext,
    *,
    topic_template: str,
    name: str,
    key: str,
    status_field: str,
    command_topic: str,
    icon: str,
    payload_on: str = "ON",
) -> DiscoveryMessage:
    config = ctx.config
    return ctx.message(
        ctx.topic(topic_template),
        {
            "name": name,
            "unique_id": panel_unique_id(ctx.alarm_id, key),
            "availability": ctx.availability(),
            "state_topic": config.topics.alarm.config_status,
            "value_template": f"{{{{ value_json.{status_field} }}}}",
            "command_topic": command_topic,
            "payload_on": payload_on,
            "payload_off": "OFF",
            "icon": icon,
            "device": ctx.device,
            "qos": config.hadiscovery.sensors_qos,
        },
    )


def clear_cache_switch(ctx: DiscoveryContext) -> DiscoveryMessage:
    return _config_status_switch(
        ctx,
        topic_template=ctx.config.hadiscovery.topics.clear_cache_config,
        name="Cache Reset",
        key="clear_cache",
        status_field="cacheClear",
        command_topic=ctx.config.topics.alarm.reset_cache,
        icon="mdi:reload-alert",
    )


def clear_discovery_switch(ctx: DiscoveryContext) -> DiscoveryMessage:
    return _config_status_switch(
        ctx,
        topic_template=ctx.config.hadiscovery.topics.clear_discovery_config,
        name="Discovery Reset",
        key="clear_discovery",
        status_field="discoveryClear",
        command_topic=ctx.config.topics.alarm.discovery,
        icon="mdi:refresh",
    )


def cancel_triggered_switch(ctx: DiscoveryContext) -> DiscoveryMessage:
    # A single switch; the cancel command is sent to area 1.
    config = ctx.config
    return _config_status_switch(
        ctx,
        topic_template=config.hadiscovery.topics.clear_triggered_config,
        name="Clear Triggered",
        key="cancel_trigger",
        status_field="cancel",
        command_topic=ctx.topic(config.topics.alarm.command, **{AREA_ID: 1}),
        icon="mdi:alarm-light",
        payload_on=config.payloads.alarm.cancel,
    )


def connection_status_sensor(ctx: DiscoveryContext) -> DiscoveryMessage:
    config = ctx.config
    return ctx.message(
        ctx.topic(config.hadiscovery.topics.connection_config),
        {
            "name": "Communication Status",
            "unique_id": panel_unique_id(ctx.alarm_id, "connection_status"),
            "availability": ctx.availability(),
            "device_class": "connectivity",
            "state_topic": config.topics.alarm.config_status,
            "value_template": "{{ 'ON' if value_json.connectionStatus.connected else 'OFF' }}",
            "payload_on": "ON",
            "payload_off": "OFF",
            "json_attributes_topic": config.topics.alarm.config_status,
            "json_attributes_template": "{{ value_json.connectionStatus | tojson }}",
            "device": ctx.device,
            "qos": config.hadiscovery.sensors_qos,
        },
    )


def alarm_control_panel(ctx: DiscoveryContext, area_id: int) -> DiscoveryMessage:
    config = ctx.config
    multi_area = config.server.areas > 1
    payload: dict[str, Any] = {
        "name": f"{ctx.device['name']} Area {area_id}" if multi_area else ctx.device["name"],
        "unique_id": panel_unique_id(ctx.alarm_id, f"unit_area{area_id}" if multi_area else "unit"),
        "device": ctx.device,
        "availability": ctx.availability(),
        "state_topic": config.topics.alarm.state,
        "value_template": f"{{{{ value_json.status_{area_id} }}}}",
        "command_topic": ctx.topic(config.topics.alarm.command, **{AREA_ID: area_id}),
        "payload_disarm": config.payloads.alarm.disarm,
        "payload_arm_home": config.payloads.alarm.arm_home,
        "payload_arm_away": config.payloads.alarm.arm_away,
        "qos": config.hadiscovery.alarm_qos,
    }
    if config.hadiscovery.code:
        payload["code"] = config.hadiscovery.code
    return ctx.message(ctx.topic(config.hadiscovery.topics.alarm_config, **{AREA_ID: area_id}), payload)


def last_event_sensor(ctx: DiscoveryContext) -> DiscoveryMessage:
    config = ctx.config
    return ctx.message(
        ctx.topic(config.hadiscovery.topics.events_config),
        {
            "name": config.hadiscovery.events.name or "Last Event",
            "unique_id": panel_unique_id(ctx.alarm_id, "events"),
            "availability": ctx.availability(),
            "state_topic": config.topics.alarm.event,
            "value_template": "{{ value_json.description }}",
            "json_attributes_topic": config.topics.alarm.event,
            "json_attributes_template": "{{ value_json | tojson }}",
            "icon": config.hadiscovery.events.icon,
            "device": ctx.device,
            "qos": config.hadiscovery.sensors_qos,
        },
    )


# ------------------------------------------------------------------
# Entry point
# ------------------------------------------------------------------


def build_discovery_messages(
    config: BridgeConfig,
    zones: Sequence[Zone | Mapping[str, Any] | None],
    *,
    reset: bool,
    device: DeviceIdentity,
) -> list[DiscoveryMessage]:
    """Generate the ordered discovery message set.

    Zone failures (invalid record, unexpected error) are logged and only
    that zone is skipped.
    """
    if isinstance(zones, (str, bytes)) or not isinstance(zones, Sequence):
        raise DiscoveryBuildError(f"zones must be a sequence, got {type(zones).__name__}")

    ctx = DiscoveryContext.create(config, device, reset=reset)
    _logger.info("Building discovery messages reset=%s zones=%s alarm_id=%s", reset, len(zones), ctx.alarm_id)
    messages: list[DiscoveryMessage] = []

    if reset:
        messages.extend(ctx.message(ctx.topic(t), {}) for t in LEGACY_CLEANUP_TOPICS)

    for index in range(config.server.max_zones):
        record = zones[index] if index < len(zones) else None
        try:
            zone = _resolve_zone(index, record, reset=reset)
            if zone is None:
                continue
            messages.extend(_zone_messages(ctx, zone))
        except ValidationError as exc:
            _logger.warning("Invalid zone at index %s, skipping: %s", index, exc)
        except Exception:
            _logger.exception("Error building discovery messages for zone index %s", index)

    messages.append(clear_cache_switch(ctx))
    messages.append(clear_discovery_switch(ctx))
    messages.append(connection_status_sensor(ctx))

    if reset or config.features.arm_disarm:
        messages.append(cancel_triggered_switch(ctx))
        messages.extend(alarm_control_panel(ctx, area_id) for area_id in range(1, config.server.areas + 1))

    if reset or config.features.events:
        messages.append(last_event_sensor(ctx))

    valid = [m for m in messages if m.topic]
    if len(valid) != len(messages):
        _logger.debug("Dropped %s discovery messages with an empty topic", len(messages) - len(valid))
    _logger.info("Built %s discovery messages (reset=%s)", len(valid), reset)
    return valid
