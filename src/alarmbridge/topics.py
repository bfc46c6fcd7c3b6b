"""Topic template helpers.

Templates carry ``${name}`` placeholders (``${zoneId}``, ``${areaId}``,
``${discoveryPrefix}``).  Placeholders without a value are left in the
topic verbatim.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import Any

_logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\$\{(\w+)\}")

ZONE_ID = "zoneId"
AREA_ID = "areaId"
DISCOVERY_PREFIX = "discoveryPrefix"


def resolve_topic(template: str | None, values: Mapping[str, Any] | None = None) -> str:
    """Substitute every known placeholder of *template* in a single pass."""
    if not template:
        return ""
    lookup = values or {}
    unresolved: list[str] = []

    def _replace(match: re.Match[str]) -> str:
        key = match.group(1)
        value = lookup.get(key)
        if value is None:
            unresolved.append(key)
            return match.group(0)
        return str(value)

    topic = _PLACEHOLDER.sub(_replace, template)
    if unresolved:
        _logger.debug("Topic %s left placeholders unresolved: %s", topic, unresolved)
    return topic


def compile_topic_pattern(template: str, placeholder: str) -> re.Pattern[str] | None:
    """Build a regex matching concrete topics of *template*.

    The numeric value of *placeholder* is captured as group 1; any other
    placeholder matches a single topic level.  Returns ``None`` when the
    template does not contain *placeholder*.
    """
    token = "${" + placeholder + "}"
    if not template or token not in template:
        return None
    parts: list[str] = []
    for index, chunk in enumerate(template.split(token)):
        if index == 1:
            parts.append(r"(\d{1,3})")
        elif index > 1:
            parts.append(r"\d{1,3}")
        # re.split with one group alternates literal text and placeholder names.
        for position, piece in enumerate(_PLACEHOLDER.split(chunk)):
            parts.append("[^/]+" if position % 2 else re.escape(piece))
    return re.compile("^" + "".join(parts) + "$")
