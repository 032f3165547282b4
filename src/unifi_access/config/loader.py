"""Configuration loading for the CLI, with readable validation errors."""

from __future__ import annotations

import sys
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from unifi_access.config.settings import ENV_PREFIX, ConfigurationError, UnifiAccessSettings

__all__ = ["ConfigurationError", "format_validation_errors", "load_config"]


def format_validation_errors(errors: List[Dict[str, Any]]) -> List[str]:
    """Turn pydantic validation errors into one line per problem.

    The submitted API token is never echoed back.
    """
    messages: List[str] = []
    for error in errors:
        loc = ".".join(str(part) for part in error.get("loc", []))
        msg = error.get("msg", "Invalid value")
        input_val = error.get("input")

        if error.get("type") == "missing" or "required" in msg.lower():
            messages.append(
                f"Configuration error: '{loc}' is required. "
                f"Set {ENV_PREFIX}{loc.upper()} (or {ENV_PREFIX}{loc.upper()}_FILE) "
                f"or add '{loc}:' to the config file."
            )
        elif loc == "api_token" or input_val is None:
            messages.append(f"Configuration error: '{loc}' {msg}")
        else:
            messages.append(f"Configuration error: '{loc}' {msg}, got: {input_val}")

    return messages


def load_config(config_path: Optional[str] = None) -> UnifiAccessSettings:
    """Build settings for one CLI run.

    Args:
        config_path: YAML file to read. Falls back to CONFIG_PATH when omitted.

    Raises:
        ConfigurationError: The YAML file or a secret file cannot be read.
        SystemExit: Validation failed (exit code 1, errors on stderr).
    """
    kwargs: Dict[str, Any] = {}
    if config_path:
        kwargs["config_path"] = config_path

    try:
        settings = UnifiAccessSettings(**kwargs)
    except ValidationError as e:
        for msg in format_validation_errors(e.errors()):
            print(msg, file=sys.stderr)
        sys.exit(1)

    return settings
