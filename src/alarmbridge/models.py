"""Records exchanged with the external state provider and the bus.

:class:`Zone` uses the same conventions as the configuration models:
camelCase wire names (``typeId``, ``wirelessLoss``) map to snake_case
fields, and unknown provider fields are kept so they are republished
as JSON attributes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class Zone(BaseModel):
    """State of one monitored zone, as reported by the panel driver."""

    model_config = ConfigDict(
        frozen=True,
        extra="allow",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    id: int | None = None
    name: str | None = None
    type: str | None = None
    type_id: int | None = None
    alarm: bool = False
    bypass: bool = False
    low_battery: bool = Field(default=False, alias="lowbat")
    fault: bool = False
    wireless_loss: bool = False

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str | None) -> str | None:
        if value is None:
            return None
        stripped = value.strip()
        return stripped or None

    def to_payload(self) -> dict[str, Any]:
        """Wire representation published on the zone state topic."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


@dataclass(frozen=True)
class DeviceIdentity:
    """Panel identity reported by the driver (display name, MAC address)."""

    name: str | None = None
    mac: str | None = None


@dataclass(frozen=True)
class DiscoveryMessage:
    """One discovery publication.

    ``payload`` is ``""`` for removal messages.
    """

    topic: str
    payload: dict[str, Any] | str = ""

    @property
    def is_removal(self) -> bool:
        return self.payload == ""
