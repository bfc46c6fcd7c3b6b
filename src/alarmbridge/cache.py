"""In-memory publication cache.

Remembers the last payload written to every state topic so unchanged
values are not written again until the entry expires.
"""

from __future__ import annotations

import copy
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from alarmbridge._constants import CACHE_UNIT_SECONDS, DEFAULT_CACHE_TTL_SECONDS
from alarmbridge.diff import CONFIG_CHANGE, is_config_topic, message_diff

_logger = logging.getLogger(__name__)

EXPIRED_CHANGE = "expired"

_DURATION = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([a-zA-Z]?)\s*$")


def _utcnow() -> datetime:
    return datetime.now(UTC)


def parse_cache_ttl(expression: str | None) -> timedelta:
    """Convert a duration expression (``"30s"``, ``"5m"``, ``"2h"``, ``"1d"``).

    - ``None``/empty -> zero (caching disabled)
    - unknown unit or unparsable number -> 5 minutes
    """
    if not expression:
        return timedelta(0)
    match = _DURATION.match(expression)
    unit = match.group(2).lower() if match else ""
    if match is None or unit not in CACHE_UNIT_SECONDS:
        _logger.info("Cache duration %r not understood, using default cache: 5m", expression)
        return timedelta(seconds=DEFAULT_CACHE_TTL_SECONDS)
    return timedelta(seconds=float(match.group(1)) * CACHE_UNIT_SECONDS[unit])


@dataclass
class CacheEntry:
    """Last payload written to a topic.

    ``last_checked`` is ``None`` once the entry has been reset, which
    forces the next comparison to report the topic as expired.
    """

    payload: Any
    last_checked: datetime | None


class PublicationCache:
    """Per-topic TTL store consulted before every write."""

    def __init__(
        self,
        ttl: timedelta,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._ttl = ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    @classmethod
    def from_expression(
        cls,
        expression: str | None,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> PublicationCache:
        return cls(parse_cache_ttl(expression), clock=clock)

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    @property
    def enabled(self) -> bool:
        return self._ttl > timedelta(0)

    def __contains__(self, topic: object) -> bool:
        return topic in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def expires_at(self, topic: str) -> datetime | None:
        entry = self._entries.get(topic)
        if entry is None or entry.last_checked is None:
            return None
        return entry.last_checked + self._ttl

    def is_expired(self, topic: str) -> bool:
        if not self.enabled:
            return True
        expires_at = self.expires_at(topic)
        if expires_at is None:
            return True
        return self._clock() > expires_at

    def changes(self, topic: str, payload: Any) -> list[str]:
        """Return why *payload* needs writing to *topic* (empty = skip)."""
        if is_config_topic(topic):
            return [CONFIG_CHANGE]
        if self.is_expired(topic):
            return [EXPIRED_CHANGE]
        return message_diff(self._entries[topic].payload, payload, topic)

    def record(self, topic: str, payload: Any) -> None:
        """Remember a successful write.  Configuration topics are never stored."""
        if is_config_topic(topic):
            return
        now = self._clock()
        self._entries[topic] = CacheEntry(payload=copy.deepcopy(payload), last_checked=now)
        _logger.debug("Caching %s until %s", topic, now + self._ttl)

    def payload(self, topic: str) -> Any:
        """Last payload written to *topic*, or ``None``."""
        entry = self._entries.get(topic)
        if entry is None:
            return None
        return copy.deepcopy(entry.payload)

    def reset(self, topic: str | None = None) -> None:
        """Force the next write to *topic* (or to every topic)."""
        if topic is not None:
            entry = self._entries.get(topic)
            if entry is not None:
                entry.last_checked = None
            return
        for entry in self._entries.values():
            entry.last_checked = None
