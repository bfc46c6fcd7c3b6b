"""Internal constants shared across the library."""

from importlib.metadata import PackageNotFoundError, version

try:
    PACKAGE_VERSION = version("alarmbridge")
except PackageNotFoundError:
    PACKAGE_VERSION = "0+local"

#: Topic suffix of Home Assistant discovery configuration channels.
CONFIG_TOPIC_SUFFIX = "/config"

DEFAULT_DISCOVERY_PREFIX = "homeassistant"

#: Appended to every discovery ``unique_id``.  Bump it whenever the
#: normalization or id composition changes so the hub re-registers entities.
DISCOVERY_SCHEMA_VERSION = "v11"

DEFAULT_MAX_ZONES = 128
UNUSED_ZONE_TYPE_ID = 0

# ------------------------------------------------------------------
# Publication cache
# ------------------------------------------------------------------

DEFAULT_CACHE_TTL_SECONDS = 5 * 60
CACHE_UNIT_SECONDS: dict[str, int] = {
    "s": 1,
    "m": 60,
    "h": 60 * 60,
    "d": 60 * 60 * 24,
}

# ------------------------------------------------------------------
# Discovery guard timings (seconds)
# ------------------------------------------------------------------

DISCOVERY_COOLDOWN_S = 15.0
DISCOVERY_STUCK_THRESHOLD_S = 60.0
DISCOVERY_SAFETY_TIMEOUT_S = 30.0
DISCOVERY_SETTLE_DELAY_S = 5.0

# ------------------------------------------------------------------
# Obsolete discovery topic shapes, removed on every reset run.
# ------------------------------------------------------------------

LEGACY_CLEANUP_TOPICS: tuple[str, ...] = (
    "${discoveryPrefix}/alarm_control_panel/ialarm/config",
    "${discoveryPrefix}/sensor/ialarm/error/config",
    "ialarm/alarm/error",
)
LEGACY_ZONE_CLEANUP_TOPICS: tuple[str, ...] = (
    "${discoveryPrefix}/binary_sensor/ialarm/${zoneId}/config",
    "${discoveryPrefix}/sensor/ialarm${zoneId}/battery/config",
)

BYPASS_ACCEPTED_TOKENS: frozenset[str] = frozenset({"1", "0", "true", "false", "on", "off"})
BYPASS_ON_TOKENS: frozenset[str] = frozenset({"1", "true", "on"})
DISCOVERY_ON_TOKENS: frozenset[str] = frozenset({"1", "true", "on"})
