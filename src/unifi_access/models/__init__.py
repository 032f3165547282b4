"""Data models for the Unifi Access API."""

from .device import Device
from .door import Door, DoorLockRule, DoorLockRuleStatus, EmergencyStatus, normalize_door_name
from .enums import DoorLockRuleType, SystemLogTopic
from .response import SUCCESS_CODE, ApiResponse
from .system_log import SystemLogEntry, SystemLogEvent, SystemLogPage
from .user import AccessPolicy, NfcCard, User

__all__ = [
    "AccessPolicy",
    "ApiResponse",
    "Device",
    "Door",
    "DoorLockRule",
    "DoorLockRuleStatus",
    "DoorLockRuleType",
    "EmergencyStatus",
    "NfcCard",
    "SUCCESS_CODE",
    "SystemLogEntry",
    "SystemLogEvent",
    "SystemLogPage",
    "SystemLogTopic",
    "User",
    "normalize_door_name",
]
