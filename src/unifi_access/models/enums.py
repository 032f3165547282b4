"""Shared enumerations for the Unifi Access models."""

from enum import Enum


class SystemLogTopic(str, Enum):
    """Topics the system log endpoint can be filtered by."""

    ALL = "all"
    DOOR_OPENINGS = "door_openings"
    CRITICAL = "critical"
    UPDATES = "updates"
    DEVICE_EVENTS = "device_events"
    ADMIN_ACTIVITY = "admin_activity"
    VISITOR = "visitor"


class DoorLockRuleType(str, Enum):
    """Temporary lock rules that can be applied to a door."""

    KEEP_LOCK = "keep_lock"
    KEEP_UNLOCK = "keep_unlock"
    CUSTOM = "custom"
    RESET = "reset"
    LOCK_EARLY = "lock_early"
    LOCK_NOW = "lock_now"
