"""Unifi Access API client.

The UnifiAccessClient wraps the Unifi Access developer API: users, access
policies, NFC card enrollment, devices, the system log and door control.
Every endpoint answers with a ``{"code", "msg", "data"}`` envelope which is
checked before the payload is parsed into pydantic models.

Features:
- Bearer token authentication (create a token in Access > Settings >
  Security > Advanced)
- Exponential backoff retry on connection failures
- Self-signed certificate support (verification is off by default)

The API is only reachable from the controller's LAN, on port 12445.

Example usage:
    from unifi_access.api import UnifiAccessClient

    with UnifiAccessClient.from_host("192.168.1.1", "your_api_token") as client:
        users = client.get_all_users()
        print(f"Found {len(users)} users")
"""

import threading
import time
from typing import Any, Dict, List, Optional, Type, TypeVar
from urllib.parse import urlparse

import httpx
import structlog
from pydantic import TypeAdapter, ValidationError

from unifi_access.config import UnifiAccessSettings
from unifi_access.models import (
    AccessPolicy,
    ApiResponse,
    Device,
    Door,
    DoorLockRule,
    DoorLockRuleStatus,
    EmergencyStatus,
    NfcCard,
    SystemLogEntry,
    SystemLogPage,
    SystemLogTopic,
    User,
)
from unifi_access.utils.timestamps import epoch_now, to_epoch_seconds

from .endpoints import ENDPOINTS, build_path
from .exceptions import (
    ApiResponseError,
    AuthenticationError,
    ConnectionError,
    EnrollmentCancelledError,
    EnrollmentTimeoutError,
    InvalidTimestampError,
    ResponseParseError,
    UnifiAccessError,
)
from .session import create_retry_decorator

logger = structlog.get_logger(__name__)

T = TypeVar("T")

SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
TOKEN_EMPTY = "TOKEN_EMPTY"


def build_base_url(host: str, port: int) -> str:
    """Build the https base URL for a controller.

    The host may carry its own scheme and/or port, which take precedence
    over the configured port.

    Example:
        >>> build_base_url("192.168.1.1", 12445)
        'https://192.168.1.1:12445'
        >>> build_base_url("https://access.lan:8443", 12445)
        'https://access.lan:8443'
    """
    parsed = urlparse(host if "://" in host else f"https://{host}")
    hostname = parsed.hostname or host
    return f"https://{hostname}:{parsed.port or port}"


class EnrollmentState:
    """Thread-safe holder for the id of the latest enrollment session.

    Pass one to UnifiAccessClient.enroll_nfc_card() and read ``session_id``
    from another thread to cancel the enrollment with
    UnifiAccessClient.end_enrollment_session().
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._session_id: Optional[str] = None

    @property
    def session_id(self) -> Optional[str]:
        with self._lock:
            return self._session_id

    def set(self, session_id: str) -> None:
        with self._lock:
            self._session_id = session_id

    def clear(self) -> None:
        with self._lock:
            self._session_id = None


class UnifiAccessClient:
    """Client for interacting with the Unifi Access developer API.

    Attributes:
        settings: UnifiAccessSettings configuration object.
        base_url: Base URL of the controller, e.g. https://192.168.1.1:12445.

    Example:
        # As context manager (recommended)
        with UnifiAccessClient(settings) as client:
            policies = client.get_all_access_policies()

        # Manual resource management
        client = UnifiAccessClient(settings)
        try:
            client.unlock_door(door_id)
        finally:
            client.close()
    """

    def __init__(self, settings: UnifiAccessSettings) -> None:
        """Initialize the client.

        Args:
            settings: Configuration settings for the controller connection.
        """
        self.settings = settings
        self.base_url = build_base_url(settings.host, settings.port)
        self._client: Optional[httpx.Client] = None

        if not settings.verify_ssl:
            logger.warning("ssl_verification_disabled", base_url=self.base_url)

        retry = create_retry_decorator(max_retries=settings.max_retries)
        self._send_with_retry = retry(self._send)

    @classmethod
    def from_host(cls, host: str, api_token: str, **overrides: Any) -> "UnifiAccessClient":
        """Create a client from a host and token, other settings use defaults."""
        return cls(UnifiAccessSettings(host=host, api_token=api_token, **overrides))

    @property
    def http_client(self) -> httpx.Client:
        """Lazy-initialize HTTP client."""
        if self._client is None:
            self._client = httpx.Client(
                verify=self.settings.verify_ssl,
                timeout=self.settings.request_timeout,
                headers={
                    "Authorization": f"Bearer {self.settings.api_token}",
                    "Accept": "application/json",
                },
            )
        return self._client

    def close(self) -> None:
        """Close HTTP client and release resources."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> "UnifiAccessClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Request plumbing
    # ------------------------------------------------------------------

    def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        return self.http_client.request(method, url, **kwargs)

    def _raw_request(
        self,
        method: str,
        path: str,
        body: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """Send a request and return the raw response.

        Connection and timeout errors are retried with backoff. 401 and 403
        responses raise AuthenticationError; any other status is returned
        for the envelope to be inspected.

        Raises:
            ConnectionError: Network-level request failed after all retries.
            AuthenticationError: The token was rejected.
        """
        url = f"{self.base_url}{path}"
        logger.debug("request", method=method, path=path, body=body, params=params)

        kwargs: Dict[str, Any] = {}
        if body is not None:
            # httpx sets Content-Type: application/json for json bodies
            kwargs["json"] = body
        if params:
            kwargs["params"] = params

        try:
            response = self._send_with_retry(method, url, **kwargs)
        except httpx.RequestError as e:
            raise ConnectionError(message=f"Request to {path} failed: {e}") from e

        if response.status_code in (401, 403):
            raise AuthenticationError(
                message=f"Authentication failed with status code {response.status_code}",
            )

        return response

    def _parse_envelope(self, response: httpx.Response, path: str) -> ApiResponse:
        """Parse the response body into the standard envelope."""
        try:
            payload = response.json()
        except ValueError:
            if response.status_code >= 400:
                raise UnifiAccessError(
                    message=f"API error: {response.status_code} {response.reason_phrase}",
                )
            raise ResponseParseError(message=f"Response from {path} is not valid JSON")

        logger.debug("response", path=path, status_code=response.status_code, payload=payload)

        try:
            return ApiResponse.model_validate(payload)
        except ValidationError as e:
            raise ResponseParseError(message=f"Unexpected response format from {path}: {e}") from e

    def _request_envelope(
        self,
        method: str,
        path: str,
        body: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Send a request, check the envelope code, and return ``data`` unparsed.

        Raises:
            ApiResponseError: The envelope code is not SUCCESS.
        """
        response = self._raw_request(method, path, body=body, params=params)
        envelope = self._parse_envelope(response, path)
        if not envelope.is_success:
            raise ApiResponseError(path=path, code=envelope.code, msg=envelope.msg)
        return envelope.data

    def _request_data(
        self,
        method: str,
        path: str,
        body: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Like _request_envelope() but a missing ``data`` field is an error."""
        data = self._request_envelope(method, path, body=body, params=params)
        if data is None:
            raise ResponseParseError(message=f"No data found in response from {path}")
        return data

    @staticmethod
    def _validate(type_: Type[T], data: Any, path: str) -> T:
        try:
            return TypeAdapter(type_).validate_python(data)
        except ValidationError as e:
            raise ResponseParseError(message=f"Unexpected data from {path}: {e}") from e

    @staticmethod
    def _epoch(value: Any) -> Optional[int]:
        try:
            return to_epoch_seconds(value)
        except (ValueError, OverflowError) as e:
            raise InvalidTimestampError(value) from e

    @staticmethod
    def _string_field(data: Any, field: str, path: str) -> str:
        if not isinstance(data, dict) or field not in data:
            raise ResponseParseError(message=f"{field} not found in response from {path}")
        value = data[field]
        if not isinstance(value, str):
            raise ResponseParseError(message=f"{field} not a string in response from {path}")
        return value

    # ------------------------------------------------------------------
    # Users and access policies
    # ------------------------------------------------------------------

    def check_connection(self) -> bool:
        """Verify the controller is reachable and accepts the token.

        Raises:
            ConnectionError: Controller unreachable.
            AuthenticationError: Token rejected.
            ApiResponseError: Token lacks permission to list users.
        """
        self._request_envelope("GET", ENDPOINTS.users)
        logger.info("connection_ok", base_url=self.base_url)
        return True

    def get_all_users(self) -> List[User]:
        """Get a list of all users.

        Access policies are not included, see
        get_all_users_with_access_information().
        """
        path = ENDPOINTS.users
        users = self._validate(List[User], self._request_data("GET", path), path)
        logger.debug("users_retrieved", count=len(users))
        return users

    def get_all_users_with_access_information(self) -> List[User]:
        """Get all users along with their access policies.

        Makes one additional request per user, which can be slow for
        large numbers of users.
        """
        users = self.get_all_users()
        for user in users:
            user.access_policies = self.get_access_policies_for_user(user.id)
        return users

    def register_user(
        self,
        first_name: str,
        last_name: str,
        email: str,
        employee_number: str,
    ) -> str:
        """Register a new user.

        Returns:
            The UUID of the newly created user.
        """
        logger.debug(
            "register_user",
            first_name=first_name,
            last_name=last_name,
            email=email,
            employee_number=employee_number,
        )
        path = ENDPOINTS.users
        data = self._request_data(
            "POST",
            path,
            body={
                "first_name": first_name,
                "last_name": last_name,
                "user_email": email,
                "employee_number": employee_number,
                "onboard_time": epoch_now(),
            },
        )
        user_id = self._string_field(data, "id", path)
        logger.info("user_registered", user_id=user_id)
        return user_id

    def get_user_by_id(self, user_id: str) -> User:
        """Get the details of an individual user by UUID."""
        path = build_path(ENDPOINTS.user, user_id=user_id)
        return self._validate(User, self._request_data("GET", path), path)

    def get_all_access_policies(self) -> List[AccessPolicy]:
        """Get the list of access policies."""
        path = ENDPOINTS.access_policies
        return self._validate(List[AccessPolicy], self._request_data("GET", path), path)

    def get_access_policies_for_user(self, user_id: str) -> List[AccessPolicy]:
        """Get the access policies assigned to a user."""
        path = build_path(ENDPOINTS.user_access_policies, user_id=user_id)
        return self._validate(List[AccessPolicy], self._request_data("GET", path), path)

    def assign_access_policies(self, user_id: str, policy_ids: List[str]) -> None:
        """Replace the access policies assigned to a user."""
        path = build_path(ENDPOINTS.user_access_policies, user_id=user_id)
        logger.debug("assign_access_policies", user_id=user_id, policy_ids=policy_ids)
        self._request_envelope("PUT", path, body={"access_policy_ids": list(policy_ids)})

    def remove_all_access_policies_from_user(self, user_id: str) -> None:
        """Remove every access policy from a user.

        The user becomes effectively inactive but keeps their NFC cards.
        """
        logger.info("removing_access_policies", user_id=user_id)
        self.assign_access_policies(user_id, [])

    # ------------------------------------------------------------------
    # Devices
    # ------------------------------------------------------------------

    def get_devices(self) -> List[Device]:
        """Get a list of all devices."""
        path = ENDPOINTS.devices
        # The endpoint returns a list of lists of devices
        groups = self._validate(List[List[Device]], self._request_data("GET", path), path)
        devices = [device for group in groups for device in group]
        logger.debug("devices_retrieved", count=len(devices))
        return devices

    # ------------------------------------------------------------------
    # NFC cards
    # ------------------------------------------------------------------

    def start_nfc_enrollment_session(self, device_id: str) -> str:
        """Start a session on a reader to enroll a new card.

        The reader polls for a card until the session is ended.

        Returns:
            The id of the created session.
        """
        path = ENDPOINTS.nfc_sessions
        data = self._request_data(
            "POST",
            path,
            body={"device_id": device_id, "reset_ua_card": True},
        )
        session_id = self._string_field(data, "session_id", path)
        logger.info("enrollment_session_started", device_id=device_id, session_id=session_id)
        return session_id

    def get_nfc_enrollment_session_status(self, session_id: str) -> Optional[NfcCard]:
        """Poll an enrollment session once.

        The session markers are matched against the raw body, since the
        controller does not always report them in a well-formed envelope.

        Returns:
            The scanned card, or None while no card has been scanned yet.

        Raises:
            EnrollmentCancelledError: The session no longer exists.
            ResponseParseError: A successful response carried no card.
        """
        path = build_path(ENDPOINTS.nfc_session, session_id=session_id)
        response = self._raw_request("GET", path)

        if SESSION_NOT_FOUND in response.text:
            raise EnrollmentCancelledError(session_id)
        if TOKEN_EMPTY in response.text:
            return None

        envelope = self._parse_envelope(response, path)
        if not envelope.is_success:
            raise ApiResponseError(path=path, code=envelope.code, msg=envelope.msg)
        if envelope.data is None:
            raise ResponseParseError(message=f"data not found in response from {path}")
        return self._validate(NfcCard, envelope.data, path)

    def enroll_nfc_card(
        self,
        device_id: str,
        state: Optional[EnrollmentState] = None,
        poll_interval: Optional[float] = None,
        timeout: Optional[float] = None,
    ) -> NfcCard:
        """Enroll a single card on a reader.

        Starts an enrollment session and polls it until a card is scanned.
        The session id is published into ``state`` so that another thread
        can cancel the enrollment by ending the session.

        Args:
            device_id: Reader to enroll on.
            state: Optional holder receiving the session id.
            poll_interval: Seconds between polls (defaults to settings).
            timeout: Give up after this many seconds. None waits forever.

        Raises:
            EnrollmentCancelledError: The session was ended while waiting.
            EnrollmentTimeoutError: No card was scanned within ``timeout``.
        """
        interval = poll_interval if poll_interval is not None else self.settings.enrollment_poll_interval
        session_id = self.start_nfc_enrollment_session(device_id)
        if state is not None:
            state.set(session_id)

        deadline = time.monotonic() + timeout if timeout is not None else None
        while True:
            card = self.get_nfc_enrollment_session_status(session_id)
            if card is not None:
                logger.info("nfc_card_enrolled", session_id=session_id, card_id=card.id)
                return card
            if deadline is not None and time.monotonic() >= deadline:
                self._end_session_quietly(session_id)
                raise EnrollmentTimeoutError(session_id, timeout)
            time.sleep(interval)

    def _end_session_quietly(self, session_id: str) -> None:
        try:
            self.end_enrollment_session(session_id)
        except UnifiAccessError as e:
            logger.warning("end_enrollment_session_failed", session_id=session_id, error=str(e))

    def end_enrollment_session(self, session_id: str) -> None:
        """End an ongoing enrollment session."""
        path = build_path(ENDPOINTS.nfc_session, session_id=session_id)
        self._request_envelope("DELETE", path)
        logger.info("enrollment_session_ended", session_id=session_id)

    def assign_nfc_card(self, user_id: str, card: NfcCard) -> None:
        """Assign a card to a user."""
        path = build_path(ENDPOINTS.user_nfc_cards, user_id=user_id)
        self._request_envelope("PUT", path, body={"token": card.token})
        logger.info("nfc_card_assigned", user_id=user_id, card_id=card.id)

    def fetch_nfc_card_user(self, card: NfcCard) -> Optional[str]:
        """Get the id of the user a card is assigned to, if any."""
        path = build_path(ENDPOINTS.nfc_token, token=card.token)
        data = self._request_data("GET", path)
        if not isinstance(data, dict):
            raise ResponseParseError(message=f"Unexpected data from {path}")
        return self._validate(Optional[str], data.get("user_id"), path) or None

    def remove_nfc_card(self, card: NfcCard) -> None:
        """Remove a card from the system entirely.

        Unassigns the card from its user first, if any. The card must be
        re-enrolled to be used again.
        """
        user_id = self.fetch_nfc_card_user(card)
        if user_id is not None:
            logger.info("unassigning_nfc_card", card_id=card.id, user_id=user_id)
            path = build_path(ENDPOINTS.user_nfc_cards_delete, user_id=user_id)
            self._request_envelope("PUT", path, body={"token": card.token})

        logger.info("deleting_nfc_card", card_id=card.id)
        self._request_envelope("DELETE", build_path(ENDPOINTS.nfc_token, token=card.token))
        logger.info("nfc_card_deleted", card_id=card.id)

    # ------------------------------------------------------------------
    # System log
    # ------------------------------------------------------------------

    def fetch_system_log(
        self,
        topic: SystemLogTopic = SystemLogTopic.ALL,
        start_time: Optional[Any] = None,
        end_time: Optional[Any] = None,
        page_num: Optional[int] = None,
        page_size: Optional[int] = None,
    ) -> List[SystemLogEntry]:
        """Query the system log.

        The system log holds door openings, device events, admin activity
        and more. It can be large, so narrow it with a topic and time range
        or walk it page by page.

        Args:
            topic: Topic to filter by.
            start_time: Only events after this time (datetime, ISO string or epoch).
            end_time: Only events before this time.
            page_num: Page to fetch (1-based).
            page_size: Entries per page.

        Raises:
            InvalidTimestampError: A time filter could not be parsed.
        """
        body: Dict[str, Any] = {
            "topic": SystemLogTopic(topic).value,
            "since": self._epoch(start_time),
        }
        if end_time is not None:
            body["until"] = self._epoch(end_time)

        params: Dict[str, Any] = {}
        if page_num is not None:
            params["page_num"] = page_num
        if page_size is not None:
            params["page_size"] = page_size

        path = ENDPOINTS.system_logs
        # The endpoint is a POST despite being a query
        data = self._request_data("POST", path, body=body, params=params or None)
        page = self._validate(SystemLogPage, data, path)
        logger.debug("system_log_retrieved", topic=body["topic"], count=len(page.hits))
        return page.hits

    # ------------------------------------------------------------------
    # Doors
    # ------------------------------------------------------------------

    def get_doors(self) -> List[Door]:
        """Get a list of all doors."""
        path = ENDPOINTS.doors
        doors = self._validate(List[Door], self._request_data("GET", path), path)
        logger.debug("doors_retrieved", count=len(doors))
        return doors

    def get_door(self, door_id: str) -> Door:
        path = build_path(ENDPOINTS.door, door_id=door_id)
        return self._validate(Door, self._request_data("GET", path), path)

    def unlock_door(self, door_id: str) -> None:
        """Remotely unlock a door for its configured unlock duration."""
        logger.info("unlocking_door", door_id=door_id)
        self._request_envelope("PUT", build_path(ENDPOINTS.door_unlock, door_id=door_id))

    def get_door_lock_rule(self, door_id: str) -> DoorLockRuleStatus:
        """Get the temporary lock rule active on a door."""
        path = build_path(ENDPOINTS.door_lock_rule, door_id=door_id)
        data = self._request_envelope("GET", path)
        if data is None:
            return DoorLockRuleStatus()
        return self._validate(DoorLockRuleStatus, data, path)

    def set_door_lock_rule(self, door_id: str, rule: DoorLockRule) -> None:
        """Apply a temporary lock rule to a door."""
        logger.info("setting_door_lock_rule", door_id=door_id, rule=rule.type.value)
        path = build_path(ENDPOINTS.door_lock_rule, door_id=door_id)
        self._request_envelope("PUT", path, body=rule.to_payload())

    def get_doors_emergency_status(self) -> EmergencyStatus:
        """Get the site-wide evacuation and lockdown status."""
        path = ENDPOINTS.doors_emergency
        return self._validate(EmergencyStatus, self._request_data("GET", path), path)

    def set_doors_emergency_status(self, status: EmergencyStatus) -> None:
        """Set the site-wide evacuation and lockdown status."""
        logger.warning(
            "setting_emergency_status",
            evacuation=status.evacuation,
            lockdown=status.lockdown,
        )
        self._request_envelope("PUT", ENDPOINTS.doors_emergency, body=status.model_dump())
