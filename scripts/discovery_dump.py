#!/usr/bin/env python3
"""Print the Home Assistant discovery messages a configuration would announce.

Usage
-----
::

    python scripts/discovery_dump.py config.json zones.json
    python scripts/discovery_dump.py config.json zones.json --reset
    python scripts/discovery_dump.py config.json zones.json --mac AA:BB:CC:DD:EE:FF --name "Casa"

``zones.json`` holds the zone list as reported by the panel driver
(``[{"id": 1, "name": "...", "typeId": 1, ...}, ...]``).  One JSON object
``{"topic": ..., "payload": ...}`` is printed per line.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from alarmbridge import BridgeConfig, DeviceIdentity, build_discovery_messages  # noqa: E402
from alarmbridge.exceptions import AlarmBridgeError  # noqa: E402


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Dump alarmbridge discovery messages as JSON lines.")
    parser.add_argument("config", help="Bridge configuration file (JSON)")
    parser.add_argument("zones", help="Zone list file (JSON array)")
    parser.add_argument("--reset", action="store_true", help="Dump the removal set instead of the entity set")
    parser.add_argument("--mac", default=None, help="Panel MAC address used for unique ids")
    parser.add_argument("--name", default=None, help="Panel name reported by the driver")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging on stderr")
    return parser.parse_args()


def main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        config = BridgeConfig.from_file(args.config)
        zones = json.loads(Path(args.zones).read_text(encoding="utf-8"))
        messages = build_discovery_messages(
            config,
            zones,
            reset=args.reset,
            device=DeviceIdentity(name=args.name, mac=args.mac),
        )
    except (AlarmBridgeError, OSError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    for message in messages:
        print(json.dumps({"topic": message.topic, "payload": message.payload}, ensure_ascii=False))
    print(f"{len(messages)} message(s)", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
