"""alarmbridge - MQTT state and Home Assistant discovery bridge for alarm panels."""

from alarmbridge._constants import PACKAGE_VERSION as __version__
from alarmbridge.bridge import AlarmBridge
from alarmbridge.cache import PublicationCache, parse_cache_ttl
from alarmbridge.commands import (
    ArmDisarmCommand,
    BypassCommand,
    Command,
    DiscoveryCommand,
    ResetCacheCommand,
    decode_alarm_state,
    decode_command,
    subscription_topics,
)
from alarmbridge.config import AlarmState, BridgeConfig
from alarmbridge.diff import message_diff
from alarmbridge.discovery import DiscoveryOrchestrator, build_discovery_messages
from alarmbridge.exceptions import (
    AlarmBridgeConfigError,
    AlarmBridgeError,
    AlarmBridgeTransportError,
    DiscoveryBuildError,
)
from alarmbridge.models import DeviceIdentity, DiscoveryMessage, Zone
from alarmbridge.naming import ZoneName, normalize
from alarmbridge.publisher import Publisher
from alarmbridge.topics import resolve_topic

__all__ = [
    "__version__",
    "AlarmBridge",
    "AlarmBridgeConfigError",
    "AlarmBridgeError",
    "AlarmBridgeTransportError",
    "AlarmState",
    "ArmDisarmCommand",
    "BridgeConfig",
    "BypassCommand",
    "Command",
    "DeviceIdentity",
    "DiscoveryBuildError",
    "DiscoveryCommand",
    "DiscoveryMessage",
    "DiscoveryOrchestrator",
    "PublicationCache",
    "Publisher",
    "ResetCacheCommand",
    "Zone",
    "ZoneName",
    "build_discovery_messages",
    "decode_alarm_state",
    "decode_command",
    "message_diff",
    "normalize",
    "parse_cache_ttl",
    "resolve_topic",
    "subscription_topics",
]
