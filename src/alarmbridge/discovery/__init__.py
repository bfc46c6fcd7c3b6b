"""Home Assistant discovery: message generation and guarded publication."""

from alarmbridge.discovery.builder import (
    EntityKind,
    build_discovery_messages,
    zone_entity_identity,
)
from alarmbridge.discovery.guard import GuardPhase, GuardState, TriggerDecision
from alarmbridge.discovery.orchestrator import DiscoveryOrchestrator

__all__ = [
    "DiscoveryOrchestrator",
    "EntityKind",
    "GuardPhase",
    "GuardState",
    "TriggerDecision",
    "build_discovery_messages",
    "zone_entity_identity",
]
