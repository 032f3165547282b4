"""
Entry point for the unifi-access CLI.

Usage:
    unifi-access test                   Validate configuration and connection
    unifi-access users [--with-access]  List users
    unifi-access user USER_ID           Show a single user
    unifi-access policies               List access policies
    unifi-access devices                List devices
    unifi-access doors                  List doors
    unifi-access unlock DOOR_ID         Remotely unlock a door
    unifi-access logs [--topic T]       Query the system log
    unifi-access enroll DEVICE_ID       Enroll an NFC card on a reader
    unifi-access --version              Show version and exit

Exit Codes:
    0 - Success
    1 - Configuration or API error
    2 - Connection error (cannot reach the controller)
    3 - Authentication error (invalid or under-privileged API token)
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

if TYPE_CHECKING:
    from unifi_access.api import UnifiAccessClient

from unifi_access import __version__

EXIT_SUCCESS = 0
EXIT_CONFIG_ERROR = 1
EXIT_CONNECTION_ERROR = 2
EXIT_AUTH_ERROR = 3

LOG_TOPICS = [
    "all",
    "door_openings",
    "critical",
    "updates",
    "device_events",
    "admin_activity",
    "visitor",
]


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="unifi-access",
        description="Manage users, NFC cards and doors on a Unifi Access controller",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Exit Codes:
  0   Success
  1   Configuration or API error
  2   Connection error (cannot reach controller)
  3   Authentication error (invalid API token)

Environment Variables:
  CONFIG_PATH                    Path to YAML configuration file
  UNIFI_ACCESS_HOST              Controller hostname or IP
  UNIFI_ACCESS_API_TOKEN         API token
  UNIFI_ACCESS_API_TOKEN_FILE    Path to file containing the token (Docker secrets)
  UNIFI_ACCESS_PORT              API port (default: 12445)
  UNIFI_ACCESS_VERIFY_SSL        Enable SSL verification (default: false)
  UNIFI_ACCESS_LOG_LEVEL         Logging level: DEBUG, INFO, WARNING, ERROR
  UNIFI_ACCESS_LOG_FORMAT        Log format: json or text

Examples:
  UNIFI_ACCESS_HOST=192.168.1.1 UNIFI_ACCESS_API_TOKEN=abc unifi-access users
  unifi-access --config access.yaml logs --topic door_openings --since 2024-01-01
""",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--config",
        metavar="PATH",
        help="Path to YAML configuration file (overrides CONFIG_PATH)",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("test", help="Test configuration and connection, then exit")

    users = commands.add_parser("users", help="List users")
    users.add_argument(
        "--with-access",
        action="store_true",
        help="Also fetch each user's access policies (one request per user)",
    )

    user = commands.add_parser("user", help="Show a single user")
    user.add_argument("user_id")

    commands.add_parser("policies", help="List access policies")
    commands.add_parser("devices", help="List devices")
    commands.add_parser("doors", help="List doors")

    unlock = commands.add_parser("unlock", help="Remotely unlock a door")
    unlock.add_argument("door_id")

    logs = commands.add_parser("logs", help="Query the system log")
    logs.add_argument("--topic", choices=LOG_TOPICS, default="all")
    logs.add_argument("--since", help="Start time (ISO 8601 or epoch seconds)")
    logs.add_argument("--until", help="End time (ISO 8601 or epoch seconds)")
    logs.add_argument("--page", type=int, dest="page_num")
    logs.add_argument("--page-size", type=int)

    enroll = commands.add_parser("enroll", help="Enroll an NFC card on a reader")
    enroll.add_argument("device_id")
    enroll.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Give up after this many seconds (default: wait until Ctrl+C)",
    )

    return parser.parse_args(argv)


def _parse_time(value: Optional[str]) -> Any:
    """Epoch seconds become numbers, anything else is left for dateutil."""
    if value is None:
        return None
    for number in (int, float):
        try:
            return number(value)
        except ValueError:
            continue
    return value


def _dump(result: Any) -> None:
    """Print a model, list of models or plain value as JSON."""
    if isinstance(result, list):
        payload: Any = [_to_jsonable(item) for item in result]
    else:
        payload = _to_jsonable(result)
    print(json.dumps(payload, indent=2))


def _to_jsonable(value: Any) -> Any:
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    return value


def _enroll(client: "UnifiAccessClient", args: argparse.Namespace) -> Any:
    from unifi_access.api import EnrollmentState
    from unifi_access.logging import get_logger

    log = get_logger()
    state = EnrollmentState()
    print(f"Hold a card against reader {args.device_id}...", file=sys.stderr)
    try:
        return client.enroll_nfc_card(args.device_id, state=state, timeout=args.timeout)
    except KeyboardInterrupt:
        session_id = state.session_id
        if session_id is not None:
            log.info("enrollment_interrupted", session_id=session_id)
            client.end_enrollment_session(session_id)
            state.clear()
        raise


def _logs(client: "UnifiAccessClient", args: argparse.Namespace) -> Any:
    return client.fetch_system_log(
        topic=args.topic,
        start_time=_parse_time(args.since),
        end_time=_parse_time(args.until),
        page_num=args.page_num,
        page_size=args.page_size,
    )


def _unlock(client: "UnifiAccessClient", args: argparse.Namespace) -> Any:
    client.unlock_door(args.door_id)
    return {"door_id": args.door_id, "unlocked": True}


def _test(client: "UnifiAccessClient", args: argparse.Namespace) -> Any:
    client.check_connection()
    print(f"Unifi Access client v{__version__}", file=sys.stderr)
    print(f"Controller: {client.base_url}", file=sys.stderr)
    print("Configuration and connection: OK", file=sys.stderr)
    return None


COMMANDS: Dict[str, Callable[["UnifiAccessClient", argparse.Namespace], Any]] = {
    "test": _test,
    "users": lambda client, args: (
        client.get_all_users_with_access_information()
        if args.with_access
        else client.get_all_users()
    ),
    "user": lambda client, args: client.get_user_by_id(args.user_id),
    "policies": lambda client, args: client.get_all_access_policies(),
    "devices": lambda client, args: client.get_devices(),
    "doors": lambda client, args: client.get_doors(),
    "unlock": _unlock,
    "logs": _logs,
    "enroll": _enroll,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for unifi-access.

    Returns:
        Exit code (0=success, 1=config/API error, 2=connection error, 3=auth error)
    """
    args = parse_args(argv)

    # Imported here so --help and --version work without a configuration
    from unifi_access.api import UnifiAccessClient
    from unifi_access.api.exceptions import (
        AuthenticationError,
        ConnectionError,
        UnifiAccessError,
    )
    from unifi_access.config.loader import ConfigurationError, load_config
    from unifi_access.logging import configure_logging, get_logger

    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except SystemExit as e:
        # Validation errors cause sys.exit(1) in loader
        return e.code if isinstance(e.code, int) else EXIT_CONFIG_ERROR

    configure_logging(log_format=config.log_format, log_level=config.log_level)
    log = get_logger()

    try:
        with UnifiAccessClient(config) as client:
            result = COMMANDS[args.command](client, args)
    except ConnectionError as e:
        log.error("connection_failed", error=e.message)
        print(f"\nConnection error: {e}", file=sys.stderr)
        return EXIT_CONNECTION_ERROR
    except AuthenticationError as e:
        log.error("authentication_failed", error=e.message)
        print(f"\nAuthentication error: {e}", file=sys.stderr)
        return EXIT_AUTH_ERROR
    except UnifiAccessError as e:
        log.error("command_failed", command=args.command, error=e.message)
        print(f"\nError: {e}", file=sys.stderr)
        return e.exit_code
    except KeyboardInterrupt:
        log.info("shutdown", reason="keyboard interrupt")
        return EXIT_SUCCESS

    if result is not None:
        _dump(result)
    return EXIT_SUCCESS


if __name__ == "__main__":
    sys.exit(main())
