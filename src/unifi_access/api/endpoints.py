"""API endpoint definitions for the Unifi Access developer API.

All paths live under /api/v1/developer and are served on port 12445.
Templated paths use str.format() placeholders.
"""

from dataclasses import dataclass
from urllib.parse import quote

from unifi_access.const import API_PREFIX


@dataclass(frozen=True)
class Endpoints:
    """Collection of Unifi Access API paths.

    Attributes:
        users: List (GET) and register (POST) users.
        user: Single user by id (GET).
        user_access_policies: Get (GET) or replace (PUT) a user's policies.
        user_nfc_cards: Assign a card to a user (PUT).
        user_nfc_cards_delete: Unassign a card from a user (PUT).
        access_policies: List access policies (GET).
        devices: List devices (GET).
        nfc_sessions: Start an enrollment session (POST).
        nfc_session: Poll (GET) or end (DELETE) an enrollment session.
        nfc_token: Card details (GET) or delete a card (DELETE).
        system_logs: Query the system log (POST).
        doors: List doors (GET).
        door: Single door by id (GET).
        door_unlock: Remote unlock (PUT).
        door_lock_rule: Get (GET) or set (PUT) a temporary lock rule.
        doors_emergency: Get (GET) or set (PUT) evacuation/lockdown.
    """

    users: str
    user: str
    user_access_policies: str
    user_nfc_cards: str
    user_nfc_cards_delete: str
    access_policies: str
    devices: str
    nfc_sessions: str
    nfc_session: str
    nfc_token: str
    system_logs: str
    doors: str
    door: str
    door_unlock: str
    door_lock_rule: str
    doors_emergency: str


ENDPOINTS = Endpoints(
    users=f"{API_PREFIX}/users",
    user=f"{API_PREFIX}/users/{{user_id}}",
    user_access_policies=f"{API_PREFIX}/users/{{user_id}}/access_policies",
    user_nfc_cards=f"{API_PREFIX}/users/{{user_id}}/nfc_cards",
    user_nfc_cards_delete=f"{API_PREFIX}/users/{{user_id}}/nfc_cards/delete",
    access_policies=f"{API_PREFIX}/access_policies",
    devices=f"{API_PREFIX}/devices",
    nfc_sessions=f"{API_PREFIX}/credentials/nfc_cards/sessions",
    nfc_session=f"{API_PREFIX}/credentials/nfc_cards/sessions/{{session_id}}",
    nfc_token=f"{API_PREFIX}/credentials/nfc_cards/tokens/{{token}}",
    system_logs=f"{API_PREFIX}/system/logs",
    doors=f"{API_PREFIX}/doors",
    door=f"{API_PREFIX}/doors/{{door_id}}",
    door_unlock=f"{API_PREFIX}/doors/{{door_id}}/unlock",
    door_lock_rule=f"{API_PREFIX}/doors/{{door_id}}/lock_rule",
    doors_emergency=f"{API_PREFIX}/doors/settings/emergency",
)


def build_path(template: str, **params: str) -> str:
    """Fill a path template, URL-escaping every parameter.

    Example:
        >>> build_path(ENDPOINTS.user, user_id="a/b")
        '/api/v1/developer/users/a%2Fb'
    """
    escaped = {key: quote(str(value), safe="") for key, value in params.items()}
    return template.format(**escaped)
