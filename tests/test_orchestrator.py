from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from alarmbridge.config import BridgeConfig
from alarmbridge.discovery.guard import GuardPhase
from alarmbridge.discovery.orchestrator import DiscoveryOrchestrator
from alarmbridge.models import DeviceIdentity
from alarmbridge.publisher import Publisher

DEVICE = DeviceIdentity(name="iAlarm-XR", mac="AA:BB:CC:DD:EE:FF")
ZONES: list[dict[str, Any]] = [{"id": 1, "name": "Porta", "typeId": 1}]


class _Clock:
    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class _RecordingTransport:
    def __init__(self) -> None:
        self.sent: list[tuple[str, str, int, bool]] = []

    def __call__(self, topic: str, payload: str, qos: int, retain: bool) -> None:
        self.sent.append((topic, payload, qos, retain))


def _orchestrator(
    clock: _Clock,
    transport: _RecordingTransport,
    **kwargs: Any,
) -> DiscoveryOrchestrator:
    config = BridgeConfig.from_mapping({"server": {"maxZones": 2}})
    publisher = Publisher(config, transport, clock=clock)
    kwargs.setdefault("settle_delay", 0.01)
    kwargs.setdefault("safety_timeout", 5.0)
    return DiscoveryOrchestrator(config, publisher, clock=clock, **kwargs)


@pytest.mark.asyncio
async def test_reset_published_before_entities() -> None:
    clock, transport = _Clock(), _RecordingTransport()
    orchestrator = _orchestrator(clock, transport)

    assert orchestrator.trigger(ZONES, on=True, device=DEVICE) is True
    assert orchestrator.state.phase == GuardPhase.RUNNING
    reset_count = len(transport.sent)
    assert reset_count > 0
    assert all(payload == "" for _, payload, _, _ in transport.sent)
    assert all(retain for _, _, _, retain in transport.sent)

    await asyncio.sleep(0.05)

    entities = transport.sent[reset_count:]
    assert entities
    assert all(payload.startswith("{") for _, payload, _, _ in entities)
    assert all(retain for _, _, _, retain in entities)
    assert orchestrator.state.phase == GuardPhase.COOLDOWN
    assert orchestrator.state.completed_at == clock.now


@pytest.mark.asyncio
async def test_second_trigger_while_running_is_rejected() -> None:
    clock, transport = _Clock(), _RecordingTransport()
    orchestrator = _orchestrator(clock, transport)

    assert orchestrator.trigger(ZONES, on=True, device=DEVICE)
    sent = len(transport.sent)
    clock.advance(1)

    assert orchestrator.trigger(ZONES, on=True, device=DEVICE) is False
    assert len(transport.sent) == sent

    await asyncio.sleep(0.05)


@pytest.mark.asyncio
async def test_triggers_within_cooldown_run_once() -> None:
    clock, transport = _Clock(), _RecordingTransport()
    orchestrator = _orchestrator(clock, transport)

    assert orchestrator.trigger(ZONES, on=False, device=DEVICE)
    sent = len(transport.sent)

    clock.advance(10)
    assert orchestrator.trigger(ZONES, on=False, device=DEVICE) is False
    assert len(transport.sent) == sent

    clock.advance(6)
    assert orchestrator.trigger(ZONES, on=False, device=DEVICE) is True
    assert len(transport.sent) > sent


@pytest.mark.asyncio
async def test_discovery_off_only_publishes_reset() -> None:
    clock, transport = _Clock(), _RecordingTransport()
    orchestrator = _orchestrator(clock, transport)

    assert orchestrator.trigger(ZONES, on=False, device=DEVICE)
    sent = len(transport.sent)
    assert orchestrator.state.phase == GuardPhase.COOLDOWN

    await asyncio.sleep(0.05)

    assert len(transport.sent) == sent
    assert all(payload == "" for _, payload, _, _ in transport.sent)


@pytest.mark.asyncio
async def test_stuck_run_is_cleared_by_next_trigger() -> None:
    clock, transport = _Clock(), _RecordingTransport()
    orchestrator = _orchestrator(clock, transport, settle_delay=10.0, safety_timeout=100.0)

    assert orchestrator.trigger(ZONES, on=True, device=DEVICE)
    clock.advance(61)

    assert orchestrator.trigger(ZONES, on=True, device=DEVICE) is True
    assert orchestrator.state.phase == GuardPhase.RUNNING
    assert orchestrator.state.started_at == clock.now
    orchestrator.force_reset()


@pytest.mark.asyncio
async def test_superseded_run_does_not_move_current_guard() -> None:
    clock, transport = _Clock(), _RecordingTransport()
    orchestrator = _orchestrator(clock, transport, settle_delay=0.02, safety_timeout=100.0)

    assert orchestrator.trigger(ZONES, on=True, device=DEVICE)
    clock.advance(61)
    orchestrator._settle_delay = 10.0  # type: ignore[attr-defined]
    assert orchestrator.trigger(ZONES, on=True, device=DEVICE)
    started = orchestrator.state.started_at

    await asyncio.sleep(0.05)

    assert orchestrator.state.phase == GuardPhase.RUNNING
    assert orchestrator.state.started_at == started
    orchestrator.force_reset()


@pytest.mark.asyncio
async def test_safety_timeout_releases_guard() -> None:
    clock, transport = _Clock(), _RecordingTransport()
    orchestrator = _orchestrator(clock, transport, settle_delay=10.0, safety_timeout=0.01)

    assert orchestrator.trigger(ZONES, on=True, device=DEVICE)

    await asyncio.sleep(0.05)

    assert orchestrator.state.phase == GuardPhase.COOLDOWN


@pytest.mark.asyncio
async def test_empty_zones_rejected() -> None:
    clock, transport = _Clock(), _RecordingTransport()
    orchestrator = _orchestrator(clock, transport)

    assert orchestrator.trigger([], on=True, device=DEVICE) is False
    assert orchestrator.state.phase == GuardPhase.IDLE
    assert transport.sent == []


@pytest.mark.asyncio
async def test_build_failure_moves_guard_to_cooldown() -> None:
    clock, transport = _Clock(), _RecordingTransport()

    def _broken_builder(*_args: Any, **_kwargs: Any) -> list[Any]:
        raise RuntimeError("boom")

    orchestrator = _orchestrator(clock, transport, builder=_broken_builder)

    assert orchestrator.trigger(ZONES, on=True, device=DEVICE) is False
    assert orchestrator.state.phase == GuardPhase.COOLDOWN
    assert transport.sent == []


@pytest.mark.asyncio
async def test_force_reset_allows_immediate_trigger() -> None:
    clock, transport = _Clock(), _RecordingTransport()
    orchestrator = _orchestrator(clock, transport)

    assert orchestrator.trigger(ZONES, on=False, device=DEVICE)
    orchestrator.force_reset()

    assert orchestrator.state.phase == GuardPhase.IDLE
    assert orchestrator.trigger(ZONES, on=False, device=DEVICE) is True


def test_trigger_without_event_loop_leaves_guard_idle() -> None:
    clock, transport = _Clock(), _RecordingTransport()
    orchestrator = _orchestrator(clock, transport)

    with pytest.raises(RuntimeError):
        orchestrator.trigger(ZONES, on=True, device=DEVICE)

    assert orchestrator.state.phase == GuardPhase.IDLE
    assert transport.sent == []
