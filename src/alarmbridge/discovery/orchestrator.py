"""Two-phase Home Assistant discovery publication.

A run publishes the removal set first and, when discovery is on, the
entity set after a settle delay, so the hub never sees a new entity
before the stale one is gone.  The guard state machine in
:mod:`alarmbridge.discovery.guard` rejects overlapping and flapping
triggers.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping, Sequence
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from alarmbridge._constants import (
    DISCOVERY_COOLDOWN_S,
    DISCOVERY_SAFETY_TIMEOUT_S,
    DISCOVERY_SETTLE_DELAY_S,
    DISCOVERY_STUCK_THRESHOLD_S,
)
from alarmbridge.config import BridgeConfig
from alarmbridge.discovery import guard
from alarmbridge.discovery.builder import build_discovery_messages
from alarmbridge.models import DeviceIdentity, DiscoveryMessage, Zone

if TYPE_CHECKING:
    from alarmbridge.publisher import Publisher

_logger = logging.getLogger(__name__)

ZoneRecords = Sequence[Zone | Mapping[str, Any] | None]
Builder = Callable[..., list[DiscoveryMessage]]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class DiscoveryOrchestrator:
    """Owns the discovery guard and drives publication through the publisher.

    All methods must be called from the event loop thread; the settle
    delay and the safety timer are ``loop.call_later`` callbacks.
    """

    def __init__(
        self,
        config: BridgeConfig,
        publisher: Publisher,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
        clock: Callable[[], datetime] = _utcnow,
        builder: Builder = build_discovery_messages,
        cooldown: float = DISCOVERY_COOLDOWN_S,
        stuck_threshold: float = DISCOVERY_STUCK_THRESHOLD_S,
        safety_timeout: float = DISCOVERY_SAFETY_TIMEOUT_S,
        settle_delay: float = DISCOVERY_SETTLE_DELAY_S,
    ) -> None:
        self._config = config
        self._publisher = publisher
        self._loop = loop
        self._clock = clock
        self._builder = builder
        self._cooldown = timedelta(seconds=cooldown)
        self._stuck_threshold = timedelta(seconds=stuck_threshold)
        self._safety_timeout = safety_timeout
        self._settle_delay = settle_delay

        self._state = guard.IDLE
        self._run_id = 0
        self._safety_handle: asyncio.TimerHandle | None = None

    @property
    def state(self) -> guard.GuardState:
        return self._state

    def trigger(self, zones: ZoneRecords, *, on: bool, device: DeviceIdentity) -> bool:
        """Start a discovery run unless the guard rejects it.

        Returns ``True`` when the reset set has been published (and, with
        *on*, the entity set scheduled).
        """
        now = self._clock()
        previous = self._state
        _logger.info(
            "Discovery called: on=%s zones=%s phase=%s",
            on,
            len(zones) if zones else 0,
            previous.phase,
        )
        # Raises before the guard is touched when no loop is available.
        loop = self._loop or asyncio.get_running_loop()
        state, decision = guard.on_trigger(
            previous,
            now,
            has_zones=bool(zones),
            stuck_threshold=self._stuck_threshold,
            cooldown=self._cooldown,
        )
        if previous.is_running and decision != guard.TriggerDecision.ALREADY_RUNNING:
            _logger.warning("Discovery stuck since %s, forcing reset", previous.started_at)
            self._cancel_safety_timer()
        self._state = state

        if decision == guard.TriggerDecision.ALREADY_RUNNING:
            _logger.warning("Discovery already in progress since %s, skipping", previous.started_at)
            return False
        if decision == guard.TriggerDecision.COOLDOWN:
            _logger.info("Discovery cooldown active (%ss), skipping", self._cooldown.total_seconds())
            return False
        if decision == guard.TriggerDecision.NO_ZONES:
            _logger.error("Discovery called with an empty zone list, skipping")
            return False

        self._run_id += 1
        run_id = self._run_id
        self._safety_handle = loop.call_later(self._safety_timeout, self._on_safety_timeout, run_id)
        _logger.info("Starting discovery run %s at %s", run_id, now.isoformat())

        try:
            reset_messages = self._builder(self._config, zones, reset=True, device=device)
            entity_messages = self._builder(self._config, zones, reset=False, device=device) if on else []
        except Exception:
            _logger.exception("Discovery message generation failed, abandoning run %s", run_id)
            self._complete(run_id)
            return False

        _logger.info("Publishing discovery reset for %s topics", len(reset_messages))
        self._publish_all(reset_messages)

        if not on:
            _logger.info("Discovery reset requested with discovery disabled, skipping entity publish")
            self._complete(run_id)
            return True

        loop.call_later(self._settle_delay, self._publish_entities, run_id, entity_messages)
        return True

    def force_reset(self) -> None:
        """Clear the guard unconditionally (operator recovery)."""
        _logger.info("Manually resetting discovery guard")
        self._cancel_safety_timer()
        self._state = guard.force_reset()

    def _publish_all(self, messages: Sequence[DiscoveryMessage]) -> None:
        for index, message in enumerate(messages):
            if not message.topic:
                _logger.warning("Invalid discovery message at index %s: %r", index, message)
                continue
            self._publisher.publish(message.topic, message.payload, retain=True, log_payload=True)

    def _publish_entities(self, run_id: int, messages: Sequence[DiscoveryMessage]) -> None:
        _logger.info("Publishing discovery entities for %s topics", len(messages))
        self._publish_all(messages)
        self._complete(run_id)
        _logger.info("Discovery run %s completed", run_id)

    def _complete(self, run_id: int) -> None:
        if run_id != self._run_id or not self._state.is_running:
            _logger.debug("Discovery run %s finished after its guard was cleared", run_id)
            return
        self._state = guard.on_complete(self._state, self._clock())
        self._cancel_safety_timer()

    def _on_safety_timeout(self, run_id: int) -> None:
        self._safety_handle = None
        if run_id != self._run_id or not self._state.is_running:
            return
        _logger.warning("Discovery safety timeout reached for run %s, releasing guard", run_id)
        self._state = guard.on_safety_timeout(self._state, self._clock())

    def _cancel_safety_timer(self) -> None:
        handle = self._safety_handle
        self._safety_handle = None
        if handle is not None:
            handle.cancel()
