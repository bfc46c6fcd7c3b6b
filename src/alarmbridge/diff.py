"""Structural comparison of published payloads."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from alarmbridge._constants import CONFIG_TOPIC_SUFFIX

ROOT_PATH = "$"
CONFIG_CHANGE = "config"


def is_config_topic(topic: str) -> bool:
    """Whether *topic* is a discovery configuration channel."""
    return topic.endswith(CONFIG_TOPIC_SUFFIX)


def _join(prefix: str, key: Any) -> str:
    return f"{prefix}.{key}" if prefix else str(key)


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray))


def _same_scalar(old: Any, new: Any) -> bool:
    # bool is an int subclass; True must not equal 1 on the wire.
    if isinstance(old, bool) != isinstance(new, bool):
        return False
    return bool(old == new)


def _collect(old: Any, new: Any, path: str, changes: list[str]) -> None:
    if old is new:
        return
    if isinstance(old, Mapping) and isinstance(new, Mapping):
        for key in sorted(set(old) | set(new), key=str):
            child = _join(path, key)
            if key not in old or key not in new:
                changes.append(child)
            else:
                _collect(old[key], new[key], child, changes)
        return

    if _is_sequence(old) and _is_sequence(new):
        if len(old) != len(new):
            changes.append(path or ROOT_PATH)
            return
        for index, (old_item, new_item) in enumerate(zip(old, new, strict=True)):
            _collect(old_item, new_item, f"{path}[{index}]", changes)
        return

    if isinstance(old, Mapping) or isinstance(new, Mapping) or _is_sequence(old) or _is_sequence(new):
        changes.append(path or ROOT_PATH)
        return

    if not _same_scalar(old, new):
        changes.append(path or ROOT_PATH)


def message_diff(old: Any, new: Any, topic: str) -> list[str]:
    """Return the paths that differ between *old* and *new*.

    Mappings are compared by key set and value (order-insensitive),
    sequences element-wise, scalars by value.  Configuration topics are
    never suppressed and always report ``["config"]``.
    """
    if is_config_topic(topic):
        return [CONFIG_CHANGE]
    changes: list[str] = []
    _collect(old, new, "", changes)
    return changes
