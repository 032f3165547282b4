"""Custom exceptions for Unifi Access API operations.

All exceptions inherit from UnifiAccessError for consistent error handling.
Each exception includes helpful messages for non-expert users.
"""

from typing import Any, Optional


class UnifiAccessError(Exception):
    """Base exception for all Unifi Access API errors.

    Attributes:
        message: Human-readable error message.
        hint: Optional troubleshooting hint for non-experts.
        exit_code: Suggested exit code for CLI applications.
    """

    exit_code: int = 1

    def __init__(
        self,
        message: str,
        hint: Optional[str] = None,
        exit_code: Optional[int] = None,
    ) -> None:
        self.message = message
        self.hint = hint
        if exit_code is not None:
            self.exit_code = exit_code
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the exception message with optional hint."""
        if self.hint:
            return f"{self.message}\n\nHint: {self.hint}"
        return self.message


class AuthenticationError(UnifiAccessError):
    """The controller rejected the API token.

    This typically occurs when:
    - The token was deleted or regenerated in the Access UI
    - The token lacks the permission scope for the endpoint
    """

    exit_code: int = 3

    def __init__(
        self,
        message: str = "Authentication failed",
        hint: Optional[str] = None,
    ) -> None:
        if hint is None:
            hint = (
                "Create an API token in Unifi Access under "
                "Settings > Security > Advanced and check its permission scopes."
            )
        super().__init__(message=message, hint=hint, exit_code=3)


class ConnectionError(UnifiAccessError):
    """Cannot reach the Unifi Access controller.

    This typically occurs when:
    - Incorrect hostname/IP address
    - Running off the controller's LAN without a VPN
    - Firewall blocking port 12445
    """

    exit_code: int = 2

    def __init__(
        self,
        message: str = "Cannot connect to Unifi Access controller",
        hint: Optional[str] = None,
    ) -> None:
        if hint is None:
            hint = (
                "The Access API is only reachable from the controller's LAN on port 12445. "
                "Use a VPN when connecting from offsite."
            )
        super().__init__(message=message, hint=hint, exit_code=2)


class ApiResponseError(UnifiAccessError):
    """The API answered with a non-SUCCESS envelope code.

    Attributes:
        code: The envelope code returned by the controller.
        path: API path of the failed request.
    """

    def __init__(self, path: str, code: str, msg: str = "") -> None:
        self.code = code
        self.path = path
        detail = msg or code
        super().__init__(message=f"Failed request to {path}: {detail}")


class ResponseParseError(UnifiAccessError):
    """The response body could not be parsed into the expected shape."""


class InvalidTimestampError(UnifiAccessError):
    """A time filter could not be interpreted as a timestamp."""

    def __init__(self, value: Any) -> None:
        super().__init__(
            message=f"Invalid timestamp: {value!r}",
            hint="Use an ISO 8601 date such as 2024-01-12T20:00:00Z or epoch seconds.",
        )
        self.value = value


class EnrollmentCancelledError(UnifiAccessError):
    """The NFC enrollment session no longer exists on the controller."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(message="Session has been canceled")


class EnrollmentTimeoutError(UnifiAccessError):
    """No card was scanned before the enrollment timeout elapsed."""

    def __init__(self, session_id: str, timeout: float) -> None:
        self.session_id = session_id
        self.timeout = timeout
        super().__init__(
            message=f"No card scanned within {timeout:g}s",
            hint="Hold the card against the reader while enrollment is running.",
        )
