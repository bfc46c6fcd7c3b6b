"""Custom exception hierarchy for alarmbridge."""

from __future__ import annotations


class AlarmBridgeError(Exception):
    """Base exception for all alarmbridge errors."""


class AlarmBridgeConfigError(AlarmBridgeError):
    """Invalid or missing configuration."""


class AlarmBridgeTransportError(AlarmBridgeError):
    """Bus-level failure (not connected, publish rejected)."""

    def __init__(
        self,
        message: str,
        *,
        topic: str = "",
        reason_code: int | None = None,
    ) -> None:
        self.topic = topic
        self.reason_code = reason_code
        super().__init__(message)


class DiscoveryBuildError(AlarmBridgeError):
    """A discovery message set could not be generated.

    Raised for whole-run failures only; errors confined to a single zone
    are logged and that zone is skipped.
    """
