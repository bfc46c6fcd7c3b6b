"""Helpers for safe logging.

Bridge configuration carries broker credentials and the alarm code, and
zone payloads can be large.  These helpers keep INFO logs short and free
of secrets.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

_SENSITIVE_VALUE_KEYS: frozenset[str] = frozenset(
    {
        "password",
        "code",
        "token",
        "authorization",
    }
)


def redact_for_log(value: Any, *, max_string: int = 512, _depth: int = 0) -> Any:
    """Return a redacted copy of *value* suitable for logs."""
    if _depth > 20:
        return "<max-depth>"

    if value is None:
        return None

    if isinstance(value, str):
        if len(value) > max_string:
            return f"{value[:max_string]}…<truncated>"
        return value

    if isinstance(value, (int, float, bool)):
        return value

    if isinstance(value, bytes):
        return f"<bytes:{len(value)}b>"

    if isinstance(value, Mapping):
        redacted: dict[str, Any] = {}
        for k, v in value.items():
            key = str(k)
            if key.lower() in _SENSITIVE_VALUE_KEYS and v is not None:
                redacted[key] = "<redacted>"
            else:
                redacted[key] = redact_for_log(v, max_string=max_string, _depth=_depth + 1)
        return redacted

    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return [redact_for_log(v, max_string=max_string, _depth=_depth + 1) for v in value]

    return repr(value)


def summarize_payload(value: Any, *, verbose: bool = False) -> Any:
    """Short description of a payload for INFO logs.

    ``verbose`` returns the full (redacted) payload instead.
    """
    if verbose or value is None or isinstance(value, (str, int, float, bool)):
        return redact_for_log(value)
    if isinstance(value, Mapping):
        return f"Object with {len(value)} keys"
    if isinstance(value, Sequence) and not isinstance(value, (bytes, bytearray)):
        return f"Array of {len(value)} elements"
    return repr(value)
