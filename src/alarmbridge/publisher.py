"""Cache-aware state publication.

Every write goes through :meth:`Publisher.publish`, which consults the
:class:`~alarmbridge.cache.PublicationCache` and only hands changed
payloads to the transport.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ValidationError

from alarmbridge._redact import redact_for_log, summarize_payload
from alarmbridge.cache import PublicationCache
from alarmbridge.commands import decode_alarm_state
from alarmbridge.config import AlarmState, BridgeConfig
from alarmbridge.models import Zone
from alarmbridge.topics import ZONE_ID, resolve_topic

_logger = logging.getLogger(__name__)

#: ``(topic, payload, qos, retain)``; raises on failure.
Transport = Callable[[str, str, int, bool], None]

_SWITCH_OFF = "OFF"


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True, mode="json")
    return str(value)


def encode_payload(payload: Any) -> str:
    """Wire form of *payload*: strings as-is, everything else compact JSON."""
    if isinstance(payload, str):
        return payload
    if isinstance(payload, bytes):
        return payload.decode("utf-8", errors="replace")
    return json.dumps(payload, separators=(",", ":"), default=_json_default)


class Publisher:
    """Writes bridge state to the bus, skipping payloads the bus already has."""

    def __init__(
        self,
        config: BridgeConfig,
        transport: Transport | None = None,
        *,
        cache: PublicationCache | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._config = config
        self._transport = transport
        self._clock = clock
        self._cache = cache if cache is not None else PublicationCache.from_expression(config.mqtt.cache, clock=clock)

    @property
    def cache(self) -> PublicationCache:
        return self._cache

    def attach_transport(self, transport: Transport | None) -> None:
        self._transport = transport

    def publish(
        self,
        topic: str,
        payload: Any,
        *,
        retain: bool | None = None,
        qos: int = 0,
        log_payload: bool = False,
    ) -> bool:
        """Write *payload* to *topic* when it differs from the cached copy.

        Returns ``True`` when the payload was handed to the transport.
        """
        changes = self._cache.changes(topic, payload)
        if not changes:
            _logger.debug("Topic %s unchanged, not publishing", topic)
            return False

        if self._transport is None:
            _logger.error("Not connected, cannot publish to %s", topic)
            return False

        if retain is None:
            retain = self._config.mqtt.retain
        if log_payload:
            _logger.info(
                "Sending topic %s (changed: %s): %s",
                topic,
                changes,
                summarize_payload(payload, verbose=self._config.verbose),
            )
        else:
            _logger.debug("Sending topic %s (changed: %s)", topic, changes)

        try:
            self._transport(topic, encode_payload(payload), qos, retain)
        except Exception:
            _logger.exception("Error while publishing to %s: %s", topic, redact_for_log(payload, max_string=128))
            return False

        self._cache.record(topic, payload)
        return True

    def reset_cache(self, topic: str | None = None) -> None:
        _logger.info("Resetting publication cache%s", f" for {topic}" if topic else "")
        self._cache.reset(topic)

    # ------------------------------------------------------------------
    # Zones
    # ------------------------------------------------------------------

    def _zone_topic(self, template: str, zone_id: int | None) -> str:
        return resolve_topic(template, {ZONE_ID: zone_id})

    def publish_sensor(self, zone: Zone) -> bool:
        """Publish one zone's full JSON on its own state topic."""
        topic = self._zone_topic(self._config.topics.sensors.zone.state, zone.id)
        return self.publish(topic, zone.to_payload(), log_payload=self._config.verbose)

    def publish_state_sensor(self, zones: Sequence[Zone | Mapping[str, Any]] | None) -> None:
        """Publish the zone list in every shape the configuration asks for."""
        if not zones:
            _logger.info("No zone found to publish")
            return

        parsed: list[Zone] = []
        for raw in zones:
            try:
                parsed.append(raw if isinstance(raw, Zone) else Zone.model_validate(raw))
            except ValidationError as exc:
                _logger.warning("Skipping invalid zone record %r: %s", raw, exc)

        sensors = self._config.topics.sensors
        topic_type = sensors.topic_type

        if topic_type in (None, "state"):
            self.publish(sensors.state, [zone.to_payload() for zone in parsed], log_payload=True)

        if self._config.hadiscovery.enabled:
            for zone in parsed:
                self.publish_sensor(zone)

        if topic_type in (None, "zone"):
            payloads = self._config.payloads
            on, off = payloads.sensor_on, payloads.sensor_off
            zone_topics = sensors.zone
            for zone in parsed:
                flags = (
                    (zone_topics.alarm, zone.alarm),
                    (zone_topics.active, zone.bypass),
                    (zone_topics.low_battery, zone.low_battery),
                    (zone_topics.fault, zone.fault),
                )
                for template, flag in flags:
                    self.publish(self._zone_topic(template, zone.id), on if flag else off)

    def update_state_sensor(self, zone_id: int, changed: Mapping[str, Any]) -> bool:
        """Merge *changed* into the last known zone payload and republish it.

        The zone topic's cache entry is reset afterwards so the next full
        publication is written even if it matches.
        """
        topic = self._zone_topic(self._config.topics.sensors.zone.state, zone_id)
        current = self._cache.payload(topic)
        base = dict(current) if isinstance(current, Mapping) else {"id": zone_id}
        base.update(changed)
        sent = self.publish(topic, base, log_payload=True)
        self._cache.reset(topic)
        return sent

    # ------------------------------------------------------------------
    # Panel
    # ------------------------------------------------------------------

    def publish_alarm_state(self, status: Mapping[str, str] | None) -> bool:
        """Publish per-area statuses mapped to the configured vocabulary."""
        topic = self._config.topics.alarm.state
        merged: dict[str, Any] = {}
        if status:
            cached = self._cache.payload(topic)
            if isinstance(cached, Mapping):
                merged.update(cached)
            merged.update(status)
            vocabulary = self._config.payloads.alarm
            for area, raw in merged.items():
                state = decode_alarm_state(self._config, raw)
                merged[area] = vocabulary.for_state(state) if isinstance(state, AlarmState) else raw
        return self.publish(topic, merged, log_payload=True)

    def publish_available(self, present: bool) -> bool:
        payloads = self._config.payloads
        return self.publish(
            self._config.topics.availability,
            payloads.alarm_available if present else payloads.alarm_not_available,
        )

    def publish_event(self, data: Any) -> bool:
        return self.publish(self._config.topics.alarm.event, data, log_payload=True)

    def _config_status(self) -> dict[str, Any]:
        return {
            "cacheClear": _SWITCH_OFF,
            "discoveryClear": _SWITCH_OFF,
            "cancel": _SWITCH_OFF,
        }

    def publish_config_status(self) -> bool:
        """Turn the hub's momentary config switches back off."""
        return self.publish(self._config.topics.alarm.config_status, self._config_status())

    def publish_connection_status(
        self,
        connected: bool,
        message: str | None = None,
        stack: str | None = None,
    ) -> bool:
        payload = self._config_status()
        payload["connectionStatus"] = {
            "connected": connected,
            "message": message or "OK",
            "stack": stack or "",
            "date": self._clock().isoformat(),
        }
        return self.publish(self._config.topics.alarm.config_status, payload, log_payload=True)
