"""Internal MQTT runtime: paho-mqtt network thread bridged onto asyncio."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, cast

import paho.mqtt.client as mqtt

from alarmbridge.config import MqttSettings
from alarmbridge.exceptions import AlarmBridgeTransportError


@dataclass(frozen=True)
class InboundMessage:
    """Raw message received on a subscribed topic."""

    topic: str
    payload: bytes


@dataclass(frozen=True)
class LastWill:
    topic: str
    payload: str
    qos: int = 0
    retain: bool = False


class MqttRuntime:
    """Threaded paho-mqtt runtime that hands messages and connection events to an asyncio loop.

    Subscriptions are (re)issued on every successful connection, so a
    broker restart does not silently drop command topics.
    """

    def __init__(
        self,
        settings: MqttSettings,
        *,
        loop: asyncio.AbstractEventLoop,
        on_message: Callable[[InboundMessage], None],
        on_connect: Callable[[], None] | None = None,
        on_disconnect: Callable[[], None] | None = None,
        subscriptions: Sequence[str] = (),
        will: LastWill | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._settings = settings
        self._loop = loop
        self._on_message = on_message
        self._on_connect = on_connect
        self._on_disconnect = on_disconnect
        self._subscriptions = tuple(subscriptions)
        self._will = will
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        """Whether the MQTT runtime is actively running."""
        return self._running

    @property
    def is_connected(self) -> bool:
        client = self._client
        return client is not None and client.is_connected()

    def start(self) -> None:
        """Connect to the broker and start the network loop."""
        self.stop()
        settings = self._settings
        self._logger.debug(
            "MQTT runtime start requested host=%s port=%s client_id=%s",
            settings.host,
            settings.port,
            settings.client_id,
        )

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=settings.client_id or "",
        )
        client.enable_logger(self._logger)
        if settings.username:
            client.username_pw_set(settings.username, settings.password)
        if self._will is not None:
            client.will_set(self._will.topic, self._will.payload, qos=self._will.qos, retain=self._will.retain)

        def on_connect(
            c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.is_failure:
                self._logger.warning("MQTT connect failed: %s", reason_code)
                return
            self._logger.info("MQTT connected to %s:%s", settings.host, settings.port)
            for topic in self._subscriptions:
                self._logger.debug("MQTT subscribing topic=%s", topic)
                c.subscribe(topic, qos=0)
            if self._on_connect is not None:
                self._loop.call_soon_threadsafe(self._on_connect)

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            self._logger.debug("Received PUBLISH topic=%s bytes=%s", msg.topic, len(msg.payload))
            message = InboundMessage(topic=msg.topic, payload=bytes(msg.payload))
            self._loop.call_soon_threadsafe(self._on_message, message)

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if not self._running:
                return
            self._logger.warning("MQTT disconnected: %s", reason_code)
            if self._on_disconnect is not None:
                self._loop.call_soon_threadsafe(self._on_disconnect)

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect

        try:
            client.connect(settings.host, settings.port, keepalive=settings.keepalive)
        except OSError as exc:
            raise AlarmBridgeTransportError(f"Cannot connect to MQTT broker {settings.host}:{settings.port}: {exc}") from exc
        client.loop_start()

        self._client = client
        self._running = True
        self._logger.debug("MQTT network loop started")

    def publish(self, topic: str, payload: str, qos: int = 0, retain: bool = False) -> None:
        """Queue a publish; raises :class:`AlarmBridgeTransportError` on rejection."""
        client = self._client
        if client is None:
            raise AlarmBridgeTransportError("MQTT runtime is not started", topic=topic)
        info = client.publish(topic, payload, qos=qos, retain=retain)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise AlarmBridgeTransportError(
                f"Publish to {topic} rejected: {mqtt.error_string(info.rc)}",
                topic=topic,
                reason_code=info.rc,
            )

    def stop(self) -> None:
        """Stop and disconnect current MQTT client if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")
