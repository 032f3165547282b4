"""Tests for the Unifi Access API client."""

import json
from unittest.mock import MagicMock

import httpx
import pytest
from tenacity import wait_none

from unifi_access.api.client import EnrollmentState, UnifiAccessClient, build_base_url
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
from unifi_access.config import UnifiAccessSettings
from unifi_access.models import (
    DoorLockRule,
    DoorLockRuleType,
    EmergencyStatus,
    NfcCard,
    SystemLogTopic,
)

BASE = "https://192.168.1.1:12445/api/v1/developer"


def make_response(payload=None, status_code=200, code="SUCCESS", msg="success"):
    """Build a mock httpx.Response carrying an API envelope."""
    response = MagicMock(spec=httpx.Response)
    response.status_code = status_code
    response.reason_phrase = "OK" if status_code == 200 else "Error"
    envelope = {"code": code, "msg": msg, "data": payload}
    response.json.return_value = envelope
    response.text = json.dumps(envelope)
    return response


def set_responses(client, *responses):
    client._client.request.side_effect = list(responses)


def sent(client, index=-1):
    """Return (method, url, kwargs) of a request sent by the client."""
    call = client._client.request.call_args_list[index]
    return call[0][0], call[0][1], call[1]


@pytest.fixture
def mock_settings():
    """Create UnifiAccessSettings for testing."""
    return UnifiAccessSettings(
        host="192.168.1.1",
        api_token="secret-token",
        verify_ssl=False,
        max_retries=1,
    )


@pytest.fixture
def client(mock_settings):
    """Create a UnifiAccessClient with a mocked HTTP transport."""
    client = UnifiAccessClient(mock_settings)
    client._client = MagicMock(spec=httpx.Client)
    return client


class TestBuildBaseUrl:
    """Tests for build_base_url()."""

    def test_plain_host_uses_port(self):
        assert build_base_url("192.168.1.1", 12445) == "https://192.168.1.1:12445"

    def test_host_with_port(self):
        assert build_base_url("access.lan:8443", 12445) == "https://access.lan:8443"

    def test_host_with_scheme(self):
        assert build_base_url("https://access.lan", 12445) == "https://access.lan:12445"

    def test_http_scheme_upgraded(self):
        assert build_base_url("http://access.lan:9000", 12445) == "https://access.lan:9000"


class TestClientSetup:
    """Tests for client construction and resource handling."""

    def test_from_host(self):
        client = UnifiAccessClient.from_host("10.0.0.2", "tok", port=443, max_retries=1)
        assert client.base_url == "https://10.0.0.2:443"
        assert client.settings.api_token == "tok"

    def test_http_client_sends_bearer_token(self, mock_settings):
        client = UnifiAccessClient(mock_settings)
        try:
            headers = client.http_client.headers
            assert headers["Authorization"] == "Bearer secret-token"
            assert headers["Accept"] == "application/json"
        finally:
            client.close()

    def test_http_client_is_reused(self, mock_settings):
        client = UnifiAccessClient(mock_settings)
        try:
            assert client.http_client is client.http_client
        finally:
            client.close()

    def test_context_manager_closes(self, client):
        transport = client._client
        with client:
            pass
        transport.close.assert_called_once()
        assert client._client is None


class TestRequestPipeline:
    """Tests for envelope handling and error mapping."""

    def test_returns_data_on_success(self, client):
        set_responses(client, make_response([]))
        assert client.get_all_access_policies() == []

    def test_non_success_code_raises(self, client):
        set_responses(
            client,
            make_response(None, code="CODE_RESOURCE_NOT_FOUND", msg="user not found"),
        )

        with pytest.raises(ApiResponseError) as exc_info:
            client.get_user_by_id("missing")

        assert exc_info.value.code == "CODE_RESOURCE_NOT_FOUND"
        assert exc_info.value.path == "/api/v1/developer/users/missing"
        assert "user not found" in str(exc_info.value)

    def test_error_status_with_envelope_uses_envelope(self, client):
        set_responses(
            client,
            make_response(None, status_code=400, code="CODE_PARAMS_INVALID", msg="bad"),
        )

        with pytest.raises(ApiResponseError, match="bad"):
            client.get_all_users()

    def test_missing_data_raises(self, client):
        set_responses(client, make_response(None))

        with pytest.raises(ResponseParseError, match="No data found"):
            client.get_all_users()

    @pytest.mark.parametrize("status_code", [401, 403])
    def test_auth_failure(self, client, status_code):
        set_responses(client, make_response(None, status_code=status_code))

        with pytest.raises(AuthenticationError) as exc_info:
            client.get_all_users()

        assert exc_info.value.exit_code == 3
        assert "Hint:" in str(exc_info.value)

    def test_invalid_json_raises_parse_error(self, client):
        response = MagicMock(spec=httpx.Response)
        response.status_code = 200
        response.json.side_effect = ValueError("Expecting value")
        set_responses(client, response)

        with pytest.raises(ResponseParseError, match="not valid JSON"):
            client.get_all_users()

    def test_invalid_json_error_status(self, client):
        response = MagicMock(spec=httpx.Response)
        response.status_code = 502
        response.reason_phrase = "Bad Gateway"
        response.json.side_effect = ValueError("Expecting value")
        set_responses(client, response)

        with pytest.raises(UnifiAccessError, match="502 Bad Gateway"):
            client.get_all_users()

    def test_unexpected_envelope_raises(self, client):
        response = MagicMock(spec=httpx.Response)
        response.status_code = 200
        response.json.return_value = ["not", "an", "envelope"]
        set_responses(client, response)

        with pytest.raises(ResponseParseError):
            client.get_all_users()

    def test_unexpected_data_shape_raises(self, client):
        set_responses(client, make_response({"id": "not-a-list"}))

        with pytest.raises(ResponseParseError):
            client.get_all_users()

    def test_connect_error_maps_to_connection_error(self, client):
        client._client.request.side_effect = httpx.ConnectError("connection refused")

        with pytest.raises(ConnectionError) as exc_info:
            client.get_all_users()

        assert exc_info.value.exit_code == 2
        assert "connection refused" in exc_info.value.message
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    def test_connect_error_is_retried(self, mock_settings):
        settings = mock_settings.model_copy(update={"max_retries": 3})
        client = UnifiAccessClient(settings)
        client._client = MagicMock(spec=httpx.Client)
        client._send_with_retry.retry.wait = wait_none()
        set_responses(
            client,
            httpx.ConnectError("refused"),
            httpx.ReadTimeout("slow"),
            make_response([]),
        )

        assert client.get_all_users() == []
        assert client._client.request.call_count == 3

    def test_error_status_is_not_retried(self, mock_settings):
        settings = mock_settings.model_copy(update={"max_retries": 3})
        client = UnifiAccessClient(settings)
        client._client = MagicMock(spec=httpx.Client)
        set_responses(client, make_response(None, status_code=401))

        with pytest.raises(AuthenticationError):
            client.get_all_users()

        assert client._client.request.call_count == 1

    def test_check_connection(self, client):
        set_responses(client, make_response([]))

        assert client.check_connection() is True
        method, url, _ = sent(client)
        assert (method, url) == ("GET", f"{BASE}/users")


class TestUsers:
    """Tests for user and access policy operations."""

    def test_get_all_users(self, client):
        set_responses(
            client,
            make_response(
                [
                    {
                        "id": "u1",
                        "first_name": "Ada",
                        "last_name": "Lovelace",
                        "employee_number": "1",
                        "user_email": "ada@example.com",
                        "nfc_cards": [{"id": "100001", "token": "tok1"}],
                    },
                    {"id": "u2", "first_name": "Grace", "last_name": "Hopper", "nfc_cards": []},
                ]
            ),
        )

        users = client.get_all_users()

        method, url, kwargs = sent(client)
        assert method == "GET"
        assert url == f"{BASE}/users"
        assert "json" not in kwargs
        assert [u.id for u in users] == ["u1", "u2"]
        assert users[0].nfc_cards[0].token == "tok1"
        assert users[0].access_policies is None

    def test_get_all_users_with_access_information(self, client):
        set_responses(
            client,
            make_response([{"id": "u1"}, {"id": "u2"}]),
            make_response([{"id": "p1", "name": "Members"}]),
            make_response([]),
        )

        users = client.get_all_users_with_access_information()

        assert users[0].access_policies[0].name == "Members"
        assert users[1].access_policies == []
        assert sent(client, 1)[1] == f"{BASE}/users/u1/access_policies"
        assert sent(client, 2)[1] == f"{BASE}/users/u2/access_policies"

    def test_register_user(self, client):
        set_responses(client, make_response({"id": "new-uuid", "first_name": "Ada"}))

        user_id = client.register_user("Ada", "Lovelace", "ada@example.com", "42")

        assert user_id == "new-uuid"
        method, url, kwargs = sent(client)
        assert method == "POST"
        assert url == f"{BASE}/users"
        body = kwargs["json"]
        assert body["first_name"] == "Ada"
        assert body["last_name"] == "Lovelace"
        assert body["user_email"] == "ada@example.com"
        assert body["employee_number"] == "42"
        assert isinstance(body["onboard_time"], int)
        assert body["onboard_time"] > 1_600_000_000

    def test_register_user_missing_id(self, client):
        set_responses(client, make_response({"first_name": "Ada"}))

        with pytest.raises(ResponseParseError, match="id not found"):
            client.register_user("Ada", "Lovelace", "ada@example.com", "42")

    def test_register_user_non_string_id(self, client):
        set_responses(client, make_response({"id": 7}))

        with pytest.raises(ResponseParseError, match="id not a string"):
            client.register_user("Ada", "Lovelace", "ada@example.com", "42")

    def test_get_user_by_id(self, client):
        set_responses(client, make_response({"id": "u1", "first_name": "Ada"}))

        user = client.get_user_by_id("u1")

        assert user.first_name == "Ada"
        assert sent(client)[1] == f"{BASE}/users/u1"

    def test_path_parameters_are_escaped(self, client):
        set_responses(client, make_response({"id": "a/b"}))

        client.get_user_by_id("a/b")

        assert sent(client)[1] == f"{BASE}/users/a%2Fb"

    def test_get_all_access_policies(self, client):
        set_responses(client, make_response([{"id": "p1", "name": "Members", "resources": []}]))

        policies = client.get_all_access_policies()

        assert policies[0].id == "p1"
        assert sent(client)[1] == f"{BASE}/access_policies"

    def test_assign_access_policies(self, client):
        set_responses(client, make_response(None))

        client.assign_access_policies("u1", ["p1", "p2"])

        method, url, kwargs = sent(client)
        assert method == "PUT"
        assert url == f"{BASE}/users/u1/access_policies"
        assert kwargs["json"] == {"access_policy_ids": ["p1", "p2"]}

    def test_remove_all_access_policies(self, client):
        set_responses(client, make_response(None))

        client.remove_all_access_policies_from_user("u1")

        method, url, kwargs = sent(client)
        assert method == "PUT"
        assert url == f"{BASE}/users/u1/access_policies"
        assert kwargs["json"] == {"access_policy_ids": []}


class TestDevices:
    """Tests for UnifiAccessClient.get_devices()."""

    def test_flattens_nested_lists(self, client):
        set_responses(
            client,
            make_response(
                [
                    [{"id": "hub1", "name": "Hub", "type": "UAH"}],
                    [
                        {"id": "rdr1", "name": "Reader 1", "type": "UA-G2-PRO"},
                        {"id": "rdr2", "name": "Reader 2", "type": "UA-LITE"},
                    ],
                ]
            ),
        )

        devices = client.get_devices()

        assert [d.id for d in devices] == ["hub1", "rdr1", "rdr2"]
        assert devices[1].device_type == "UA-G2-PRO"
        assert sent(client)[1] == f"{BASE}/devices"

    def test_empty(self, client):
        set_responses(client, make_response([]))
        assert client.get_devices() == []


class TestNfcEnrollment:
    """Tests for NFC enrollment sessions."""

    def test_start_session(self, client):
        set_responses(client, make_response({"session_id": "sess-1"}))

        session_id = client.start_nfc_enrollment_session("rdr1")

        assert session_id == "sess-1"
        method, url, kwargs = sent(client)
        assert method == "POST"
        assert url == f"{BASE}/credentials/nfc_cards/sessions"
        assert kwargs["json"] == {"device_id": "rdr1", "reset_ua_card": True}

    def test_start_session_missing_id(self, client):
        set_responses(client, make_response({}))

        with pytest.raises(ResponseParseError, match="session_id not found"):
            client.start_nfc_enrollment_session("rdr1")

    def test_status_session_not_found(self, client):
        set_responses(
            client,
            make_response(None, code="CODE_CREDS_NFC_READ_SESSION_NOT_FOUND", msg="not found"),
        )

        with pytest.raises(EnrollmentCancelledError) as exc_info:
            client.get_nfc_enrollment_session_status("sess-1")

        assert exc_info.value.session_id == "sess-1"
        assert sent(client)[1] == f"{BASE}/credentials/nfc_cards/sessions/sess-1"

    def test_status_token_empty(self, client):
        set_responses(
            client,
            make_response(None, code="CODE_CREDS_NFC_READ_POLL_TOKEN_EMPTY", msg="no card"),
        )

        assert client.get_nfc_enrollment_session_status("sess-1") is None

    def test_status_card(self, client):
        set_responses(client, make_response({"id": "100001", "token": "tok1"}))

        card = client.get_nfc_enrollment_session_status("sess-1")

        assert card == NfcCard(id="100001", token="tok1")

    def test_status_marker_outside_envelope(self, client):
        response = MagicMock(spec=httpx.Response)
        response.status_code = 404
        response.text = "CODE_CREDS_NFC_READ_SESSION_NOT_FOUND"
        response.json.side_effect = ValueError("Expecting value")
        set_responses(client, response)

        with pytest.raises(EnrollmentCancelledError):
            client.get_nfc_enrollment_session_status("sess-1")

    def test_status_success_without_data(self, client):
        set_responses(client, make_response(None))

        with pytest.raises(ResponseParseError, match="data not found"):
            client.get_nfc_enrollment_session_status("sess-1")

    def test_status_other_error(self, client):
        set_responses(client, make_response(None, code="CODE_SYSTEM_ERROR", msg="boom"))

        with pytest.raises(ApiResponseError):
            client.get_nfc_enrollment_session_status("sess-1")

    def test_enroll_polls_until_card(self, client, monkeypatch):
        sleeps = []
        monkeypatch.setattr("unifi_access.api.client.time.sleep", sleeps.append)
        empty = make_response(None, code="CODE_CREDS_NFC_READ_POLL_TOKEN_EMPTY")
        set_responses(
            client,
            make_response({"session_id": "sess-1"}),
            empty,
            empty,
            make_response({"id": "100001", "token": "tok1"}),
        )
        state = EnrollmentState()

        card = client.enroll_nfc_card("rdr1", state=state, poll_interval=0.25)

        assert card.token == "tok1"
        assert sleeps == [0.25, 0.25]
        assert state.session_id == "sess-1"
        assert client._client.request.call_count == 4

    def test_enroll_uses_configured_poll_interval(self, client, monkeypatch):
        sleeps = []
        monkeypatch.setattr("unifi_access.api.client.time.sleep", sleeps.append)
        set_responses(
            client,
            make_response({"session_id": "sess-1"}),
            make_response(None, code="CODE_CREDS_NFC_READ_POLL_TOKEN_EMPTY"),
            make_response({"id": "100001", "token": "tok1"}),
        )

        client.enroll_nfc_card("rdr1")

        assert sleeps == [client.settings.enrollment_poll_interval]

    def test_enroll_cancelled(self, client, monkeypatch):
        monkeypatch.setattr("unifi_access.api.client.time.sleep", lambda _: None)
        set_responses(
            client,
            make_response({"session_id": "sess-1"}),
            make_response(None, code="CODE_CREDS_NFC_READ_POLL_TOKEN_EMPTY"),
            make_response(None, code="CODE_CREDS_NFC_READ_SESSION_NOT_FOUND"),
        )

        with pytest.raises(EnrollmentCancelledError, match="canceled"):
            client.enroll_nfc_card("rdr1")

    def test_enroll_timeout_ends_session(self, client, monkeypatch):
        monkeypatch.setattr("unifi_access.api.client.time.sleep", lambda _: None)
        set_responses(
            client,
            make_response({"session_id": "sess-1"}),
            make_response(None, code="CODE_CREDS_NFC_READ_POLL_TOKEN_EMPTY"),
            # reply to the DELETE ending the session
            make_response(None),
        )

        with pytest.raises(EnrollmentTimeoutError) as exc_info:
            client.enroll_nfc_card("rdr1", timeout=0)

        assert exc_info.value.session_id == "sess-1"
        method, url, _ = sent(client)
        assert method == "DELETE"
        assert url == f"{BASE}/credentials/nfc_cards/sessions/sess-1"

    def test_enroll_stops_on_empty_success(self, client, monkeypatch):
        monkeypatch.setattr("unifi_access.api.client.time.sleep", lambda _: None)
        set_responses(
            client,
            make_response({"session_id": "sess-1"}),
            *[make_response(None) for _ in range(5)],
        )

        with pytest.raises(ResponseParseError):
            client.enroll_nfc_card("rdr1")

        assert client._client.request.call_count == 2

    def test_end_enrollment_session(self, client):
        set_responses(client, make_response(None))

        client.end_enrollment_session("sess-1")

        method, url, _ = sent(client)
        assert (method, url) == ("DELETE", f"{BASE}/credentials/nfc_cards/sessions/sess-1")


class TestEnrollmentState:
    def test_set_and_clear(self):
        state = EnrollmentState()
        assert state.session_id is None
        state.set("sess-1")
        assert state.session_id == "sess-1"
        state.clear()
        assert state.session_id is None


class TestNfcCards:
    """Tests for NFC card assignment and removal."""

    card = NfcCard(id="100001", token="tok1")

    def test_assign_nfc_card(self, client):
        set_responses(client, make_response(None))

        client.assign_nfc_card("u1", self.card)

        method, url, kwargs = sent(client)
        assert method == "PUT"
        assert url == f"{BASE}/users/u1/nfc_cards"
        assert kwargs["json"] == {"token": "tok1"}

    def test_fetch_nfc_card_user(self, client):
        set_responses(client, make_response({"token": "tok1", "user_id": "u1", "status": "assigned"}))

        assert client.fetch_nfc_card_user(self.card) == "u1"
        assert sent(client)[1] == f"{BASE}/credentials/nfc_cards/tokens/tok1"

    def test_fetch_nfc_card_user_unassigned(self, client):
        set_responses(client, make_response({"token": "tok1", "user_id": None}))

        assert client.fetch_nfc_card_user(self.card) is None

    def test_fetch_nfc_card_user_rejects_non_string(self, client):
        set_responses(client, make_response({"token": "tok1", "user_id": 42}))

        with pytest.raises(ResponseParseError):
            client.fetch_nfc_card_user(self.card)

    def test_remove_assigned_card(self, client):
        set_responses(
            client,
            make_response({"token": "tok1", "user_id": "u1"}),
            make_response(None),
            make_response(None),
        )

        client.remove_nfc_card(self.card)

        assert sent(client, 1)[0] == "PUT"
        assert sent(client, 1)[1] == f"{BASE}/users/u1/nfc_cards/delete"
        assert sent(client, 1)[2]["json"] == {"token": "tok1"}
        assert sent(client, 2)[0] == "DELETE"
        assert sent(client, 2)[1] == f"{BASE}/credentials/nfc_cards/tokens/tok1"

    def test_remove_unassigned_card_only_deletes(self, client):
        set_responses(
            client,
            make_response({"token": "tok1", "user_id": ""}),
            make_response(None),
        )

        client.remove_nfc_card(self.card)

        assert client._client.request.call_count == 2
        assert sent(client)[0] == "DELETE"


class TestSystemLog:
    """Tests for UnifiAccessClient.fetch_system_log()."""

    hits = {
        "hits": [
            {
                "@timestamp": "2023-11-02T14:05:12Z",
                "_id": "log-1",
                "_source": {
                    "actor": {"display_name": "Ada"},
                    "authentication": {},
                    "event": {"type": "access.door.unlock"},
                    "target": [],
                },
            }
        ],
        "page": 1,
        "total": 1,
    }

    def test_defaults(self, client):
        set_responses(client, make_response(self.hits))

        entries = client.fetch_system_log()

        method, url, kwargs = sent(client)
        assert method == "POST"
        assert url == f"{BASE}/system/logs"
        assert kwargs["json"] == {"topic": "all", "since": None}
        assert "params" not in kwargs
        assert entries[0].id == "log-1"
        assert entries[0].source.event["type"] == "access.door.unlock"

    def test_time_range_and_paging(self, client):
        set_responses(client, make_response({"hits": []}))

        entries = client.fetch_system_log(
            SystemLogTopic.DOOR_OPENINGS,
            start_time="2024-01-12T20:00:00Z",
            end_time=1705093200,
            page_num=2,
            page_size=50,
        )

        _, _, kwargs = sent(client)
        assert kwargs["json"] == {
            "topic": "door_openings",
            "since": 1705089600,
            "until": 1705093200,
        }
        assert kwargs["params"] == {"page_num": 2, "page_size": 50}
        assert entries == []

    def test_topic_as_string(self, client):
        set_responses(client, make_response({"hits": []}))

        client.fetch_system_log("critical")

        assert sent(client)[2]["json"]["topic"] == "critical"

    def test_invalid_topic(self, client):
        with pytest.raises(ValueError):
            client.fetch_system_log("nope")

    def test_invalid_start_time(self, client):
        with pytest.raises(InvalidTimestampError) as exc_info:
            client.fetch_system_log(start_time="not-a-date")

        assert exc_info.value.exit_code == 1
        assert exc_info.value.value == "not-a-date"
        client._client.request.assert_not_called()


class TestDoors:
    """Tests for door control operations."""

    def test_get_doors(self, client):
        set_responses(
            client,
            make_response(
                [
                    {
                        "id": "d1",
                        "name": "Front Door",
                        "door_position_status": "close",
                        "door_lock_relay_status": "lock",
                        "is_bind_hub": True,
                    }
                ]
            ),
        )

        doors = client.get_doors()

        assert doors[0].is_locked
        assert sent(client)[1] == f"{BASE}/doors"

    def test_get_door(self, client):
        set_responses(client, make_response({"id": "d1", "name": "Front Door"}))

        door = client.get_door("d1")

        assert door.name == "Front Door"
        assert sent(client)[1] == f"{BASE}/doors/d1"

    def test_unlock_door(self, client):
        set_responses(client, make_response(None))

        client.unlock_door("d1")

        method, url, kwargs = sent(client)
        assert (method, url) == ("PUT", f"{BASE}/doors/d1/unlock")
        assert "json" not in kwargs

    def test_get_door_lock_rule(self, client):
        set_responses(client, make_response({"type": "keep_lock", "ended_time": 1705093200}))

        status = client.get_door_lock_rule("d1")

        assert status.type == "keep_lock"
        assert status.ended_time == 1705093200
        assert sent(client)[1] == f"{BASE}/doors/d1/lock_rule"

    def test_get_door_lock_rule_none_active(self, client):
        set_responses(client, make_response(None))

        status = client.get_door_lock_rule("d1")

        assert status.type == ""
        assert status.ended_time == 0

    def test_set_door_lock_rule(self, client):
        set_responses(client, make_response(None))

        client.set_door_lock_rule("d1", DoorLockRule(type=DoorLockRuleType.CUSTOM, interval=15))

        method, url, kwargs = sent(client)
        assert (method, url) == ("PUT", f"{BASE}/doors/d1/lock_rule")
        assert kwargs["json"] == {"type": "custom", "interval": 15}

    def test_get_emergency_status(self, client):
        set_responses(client, make_response({"evacuation": False, "lockdown": True}))

        status = client.get_doors_emergency_status()

        assert status.lockdown
        assert not status.evacuation
        assert sent(client)[1] == f"{BASE}/doors/settings/emergency"

    def test_set_emergency_status(self, client):
        set_responses(client, make_response(None))

        client.set_doors_emergency_status(EmergencyStatus(evacuation=True))

        method, _, kwargs = sent(client)
        assert method == "PUT"
        assert kwargs["json"] == {"evacuation": True, "lockdown": False}
