"""Door, lock rule and emergency status models."""

import unicodedata
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .enums import DoorLockRuleType


def normalize_door_name(name: Optional[str]) -> str:
    """Normalize a door name for display and comparison.

    Example:
        >>> normalize_door_name("  Cafe\\u0301 ")
        'Café'
    """
    if not name:
        return ""
    return unicodedata.normalize("NFC", name.strip())


class Door(BaseModel):
    """A door managed by Unifi Access."""

    id: str
    name: str = ""
    full_name: str = ""
    floor_id: str = ""
    door_position_status: str = Field(default="", description="'open', 'close' or '' without a DPS")
    door_lock_relay_status: str = Field(default="", description="'lock' or 'unlock'")
    is_bind_hub: bool = False

    @field_validator("name", "full_name", mode="before")
    @classmethod
    def normalize_name(cls, v: Any) -> str:
        return normalize_door_name(v)

    @field_validator("floor_id", "door_position_status", "door_lock_relay_status", mode="before")
    @classmethod
    def null_to_empty(cls, v: Any) -> Any:
        if v is None:
            return ""
        return v

    @property
    def is_open(self) -> bool:
        return self.door_position_status == "open"

    @property
    def is_locked(self) -> bool:
        return self.door_lock_relay_status == "lock"


class DoorLockRule(BaseModel):
    """Temporary lock rule to apply to a door.

    ``interval`` is the rule duration in minutes and is only meaningful
    (and required) for the ``custom`` rule.
    """

    type: DoorLockRuleType
    interval: Optional[int] = Field(default=None, gt=0)

    @model_validator(mode="after")
    def validate_interval(self) -> "DoorLockRule":
        if self.type == DoorLockRuleType.CUSTOM and self.interval is None:
            raise ValueError("interval is required for a custom lock rule")
        if self.type != DoorLockRuleType.CUSTOM and self.interval is not None:
            raise ValueError("interval is only allowed for a custom lock rule")
        return self

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)


class DoorLockRuleStatus(BaseModel):
    """Lock rule currently active on a door. An empty type means none."""

    type: str = ""
    ended_time: int = 0

    @field_validator("type", mode="before")
    @classmethod
    def null_to_empty(cls, v: Any) -> Any:
        if v is None:
            return ""
        return v

    @field_validator("ended_time", mode="before")
    @classmethod
    def null_to_zero(cls, v: Any) -> Any:
        if v is None:
            return 0
        return v


class EmergencyStatus(BaseModel):
    """Site-wide evacuation and lockdown switches."""

    evacuation: bool = False
    lockdown: bool = False
