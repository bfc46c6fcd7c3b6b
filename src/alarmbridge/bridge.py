"""High-level bridge between an alarm panel driver and the MQTT bus."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

from alarmbridge._mqtt import InboundMessage, LastWill, MqttRuntime
from alarmbridge.cache import PublicationCache
from alarmbridge.commands import (
    Command,
    DiscoveryCommand,
    ResetCacheCommand,
    decode_command,
    subscription_topics,
)
from alarmbridge.config import BridgeConfig
from alarmbridge.discovery.orchestrator import DiscoveryOrchestrator
from alarmbridge.models import DeviceIdentity, Zone
from alarmbridge.publisher import Publisher

_logger = logging.getLogger(__name__)

CommandSink = Callable[[Command], None]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class AlarmBridge:
    """Publishes panel state and discovery, and forwards inbound commands.

    Usage::

        bridge = AlarmBridge(BridgeConfig.from_file("config.json"), handle_command)
        bridge.start()
        bridge.publisher.publish_state_sensor(zones)
        bridge.publish_discovery(zones, on=True, device=DeviceIdentity("Home", mac))

    Must be created and used from inside a running event loop unless
    *loop* is given.
    """

    def __init__(
        self,
        config: BridgeConfig,
        on_command: CommandSink,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._config = config
        self._on_command = on_command
        self._loop = loop or asyncio.get_running_loop()
        self._cache = PublicationCache.from_expression(config.mqtt.cache, clock=clock)
        self._publisher = Publisher(config, cache=self._cache, clock=clock)
        self._discovery = DiscoveryOrchestrator(config, self._publisher, loop=self._loop, clock=clock)
        self._runtime = MqttRuntime(
            config.mqtt,
            loop=self._loop,
            on_message=self._handle_message,
            on_connect=self._handle_connect,
            subscriptions=subscription_topics(config),
            will=LastWill(config.topics.availability, config.payloads.alarm_not_available),
            logger=_logger,
        )

    @property
    def config(self) -> BridgeConfig:
        return self._config

    @property
    def publisher(self) -> Publisher:
        return self._publisher

    @property
    def discovery(self) -> DiscoveryOrchestrator:
        return self._discovery

    @property
    def is_running(self) -> bool:
        return self._runtime.is_running

    def start(self) -> None:
        """Connect to the broker; state may be published once connected."""
        _logger.info("Connecting to MQTT broker %s:%s", self._config.mqtt.host, self._config.mqtt.port)
        self._runtime.start()
        self._publisher.attach_transport(self._runtime.publish)

    def stop(self) -> None:
        self._publisher.attach_transport(None)
        self._runtime.stop()

    def publish_discovery(
        self,
        zones: Sequence[Zone | Mapping[str, Any] | None],
        on: bool,
        device: DeviceIdentity,
    ) -> bool:
        """Start a guarded discovery run; ``False`` when it was rejected."""
        return self._discovery.trigger(zones, on=on, device=device)

    def reset_discovery_guard(self) -> None:
        self._discovery.force_reset()

    def _handle_connect(self) -> None:
        # The broker may have lost retained state.
        self._publisher.reset_cache()

    def _handle_message(self, message: InboundMessage) -> None:
        command = decode_command(self._config, message.topic, message.payload)
        if command is None:
            return
        _logger.info("Received command %s on %s", command, message.topic)

        if isinstance(command, ResetCacheCommand):
            self._publisher.reset_cache()
        if isinstance(command, (DiscoveryCommand, ResetCacheCommand)):
            self._publisher.publish_config_status()

        try:
            self._on_command(command)
        except Exception:
            _logger.exception("Command handler failed for %s", command)
