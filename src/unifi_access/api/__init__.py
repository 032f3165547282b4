"""Unifi Access API client module.

This module provides the UnifiAccessClient class for talking to a Unifi
Access controller, along with endpoint definitions, custom exceptions,
and retry logic.
"""

from unifi_access.api.client import EnrollmentState, UnifiAccessClient, build_base_url
from unifi_access.api.endpoints import ENDPOINTS, Endpoints, build_path
from unifi_access.api.exceptions import (
    ApiResponseError,
    AuthenticationError,
    ConnectionError,
    EnrollmentCancelledError,
    EnrollmentTimeoutError,
    InvalidTimestampError,
    ResponseParseError,
    UnifiAccessError,
)
from unifi_access.api.session import create_retry_decorator

__all__ = [
    # Client
    "EnrollmentState",
    "UnifiAccessClient",
    "build_base_url",
    # Exceptions
    "ApiResponseError",
    "AuthenticationError",
    "ConnectionError",
    "EnrollmentCancelledError",
    "EnrollmentTimeoutError",
    "InvalidTimestampError",
    "ResponseParseError",
    "UnifiAccessError",
    # Endpoints
    "ENDPOINTS",
    "Endpoints",
    "build_path",
    # Session
    "create_retry_decorator",
]
