"""Inbound command decoding.

Turns raw ``(topic, payload)`` pairs received on the command topics into
typed commands for the command sink.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from alarmbridge._constants import BYPASS_ACCEPTED_TOKENS, BYPASS_ON_TOKENS, DISCOVERY_ON_TOKENS
from alarmbridge.config import AlarmState, BridgeConfig
from alarmbridge.topics import AREA_ID, ZONE_ID, compile_topic_pattern, resolve_topic

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiscoveryCommand:
    """Run discovery (``on``) or remove every discovered entity."""

    on: bool


@dataclass(frozen=True)
class ResetCacheCommand:
    """Forget cached payloads so the next state is written in full."""


@dataclass(frozen=True)
class ArmDisarmCommand:
    """Change the state of one area.

    ``state`` is the raw token when it matched no known alarm state.
    """

    area: int
    state: AlarmState | str


@dataclass(frozen=True)
class BypassCommand:
    zone: int
    bypass: bool


Command = DiscoveryCommand | ResetCacheCommand | ArmDisarmCommand | BypassCommand


def _text(payload: bytes | str | None) -> str:
    if payload is None:
        return ""
    if isinstance(payload, bytes):
        return payload.decode("utf-8", errors="replace").strip()
    return str(payload).strip()


def decode_alarm_state(config: BridgeConfig, token: str) -> AlarmState | str:
    """Map a raw panel/command token to an :class:`AlarmState`.

    Matching is case-insensitive.  Unknown tokens are returned unchanged.
    """
    needle = str(token).strip().lower()
    for state, accepted in config.payloads.alarm_decoder.items():
        if any(needle == candidate.lower() for candidate in accepted):
            return state
    _logger.debug("No alarm state matches token %r, passing it through", token)
    return token


def subscription_topics(config: BridgeConfig) -> list[str]:
    """Command topics to subscribe, with ``+`` for area and zone levels."""
    alarm_topics = config.topics.alarm
    topics = [alarm_topics.discovery, alarm_topics.reset_cache]
    if config.features.arm_disarm:
        topics.append(resolve_topic(alarm_topics.command, {AREA_ID: "+"}))
    if config.features.bypass:
        topics.append(resolve_topic(alarm_topics.bypass, {ZONE_ID: "+"}))
    return [topic for topic in topics if topic]


def decode_command(config: BridgeConfig, topic: str, payload: bytes | str | None) -> Command | None:
    """Decode one inbound message; ``None`` when it is not a valid command."""
    alarm_topics = config.topics.alarm
    token = _text(payload)

    if topic == alarm_topics.discovery:
        return DiscoveryCommand(on=token.lower() in DISCOVERY_ON_TOKENS)

    if topic == alarm_topics.reset_cache:
        return ResetCacheCommand()

    if config.features.arm_disarm:
        pattern = compile_topic_pattern(alarm_topics.command, AREA_ID)
        match = pattern.match(topic) if pattern else None
        if match:
            state = decode_alarm_state(config, token)
            if not isinstance(state, AlarmState):
                _logger.warning("Unknown alarm command %r for area %s, forwarding as is", token, match.group(1))
            return ArmDisarmCommand(area=int(match.group(1)), state=state)

    if config.features.bypass:
        pattern = compile_topic_pattern(alarm_topics.bypass, ZONE_ID)
        match = pattern.match(topic) if pattern else None
        if match:
            normalized = token.lower()
            if normalized not in BYPASS_ACCEPTED_TOKENS:
                _logger.error("Bypass command for zone %s has invalid payload %r", match.group(1), token)
                return None
            return BypassCommand(zone=int(match.group(1)), bypass=normalized in BYPASS_ON_TOKENS)

    _logger.warning("Received message on unhandled topic %s", topic)
    return None
