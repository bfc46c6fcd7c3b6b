"""Discovery guard state machine.

Transitions are pure functions of ``(state, now, event)`` so the
orchestrator can be driven deterministically with an injected clock.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class GuardPhase(StrEnum):
    IDLE = "idle"
    RUNNING = "running"
    COOLDOWN = "cooldown"


class TriggerDecision(StrEnum):
    ACCEPTED = "accepted"
    ALREADY_RUNNING = "already_running"
    COOLDOWN = "cooldown"
    NO_ZONES = "no_zones"


class GuardState(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    phase: GuardPhase = GuardPhase.IDLE
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def is_running(self) -> bool:
        return self.phase == GuardPhase.RUNNING


IDLE = GuardState()


def is_stuck(state: GuardState, now: datetime, stuck_threshold: timedelta) -> bool:
    if not state.is_running or state.started_at is None:
        return False
    return now - state.started_at > stuck_threshold


def in_cooldown(state: GuardState, now: datetime, cooldown: timedelta) -> bool:
    if state.completed_at is None:
        return False
    return now - state.completed_at < cooldown


def on_trigger(
    state: GuardState,
    now: datetime,
    *,
    has_zones: bool,
    stuck_threshold: timedelta,
    cooldown: timedelta,
) -> tuple[GuardState, TriggerDecision]:
    """Decide whether a discovery trigger may start a run.

    A run left RUNNING past *stuck_threshold* is cleared first, so the
    trigger is evaluated as if the guard were idle.
    """
    if state.is_running:
        if not is_stuck(state, now, stuck_threshold):
            return state, TriggerDecision.ALREADY_RUNNING
        state = force_reset()

    if in_cooldown(state, now, cooldown):
        return state, TriggerDecision.COOLDOWN
    if not has_zones:
        return state, TriggerDecision.NO_ZONES
    return (
        GuardState(phase=GuardPhase.RUNNING, started_at=now, completed_at=state.completed_at),
        TriggerDecision.ACCEPTED,
    )


def on_complete(state: GuardState, now: datetime) -> GuardState:
    return GuardState(phase=GuardPhase.COOLDOWN, started_at=state.started_at, completed_at=now)


def on_safety_timeout(state: GuardState, now: datetime) -> GuardState:
    if not state.is_running:
        return state
    return on_complete(state, now)


def force_reset() -> GuardState:
    return IDLE
