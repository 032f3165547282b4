"""Pydantic settings models for Unifi Access client configuration."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Tuple, Type

import structlog
import yaml
from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from unifi_access.const import DEFAULT_PORT

logger = structlog.get_logger(__name__)

ENV_PREFIX = "UNIFI_ACCESS_"
SECRET_FILE_SUFFIX = "_FILE"


class ConfigurationError(Exception):
    """Raised when a configuration file or secret cannot be read."""


def read_yaml_file(path: str) -> Dict[str, Any]:
    """Read a YAML mapping from ``path``.

    A document that is not a mapping yields an empty dict.

    Raises:
        ConfigurationError: The file is missing, unreadable or not valid YAML.
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigurationError(
            f"Configuration file not found: {path}\n"
            "Point --config or CONFIG_PATH at a YAML file, or drop it to use environment variables only."
        )
    except PermissionError:
        raise ConfigurationError(f"Cannot read configuration file {path}: permission denied")
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in configuration file {path}: {e}")
    return data if isinstance(data, dict) else {}


def resolve_file_secrets(environ: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """Read Docker-style ``UNIFI_ACCESS_<FIELD>_FILE`` secrets.

    Example:
        UNIFI_ACCESS_API_TOKEN_FILE=/run/secrets/access_token
        -> {"api_token": "<file contents>"}

    Missing files are skipped with a warning so validation can report
    the absent value.
    """
    environ = os.environ if environ is None else environ
    secrets: Dict[str, str] = {}

    for key, filepath in environ.items():
        if not (key.startswith(ENV_PREFIX) and key.endswith(SECRET_FILE_SUFFIX)):
            continue
        field_name = key[len(ENV_PREFIX) : -len(SECRET_FILE_SUFFIX)].lower()
        path = Path(filepath)
        if not path.exists():
            logger.warning("secret_file_not_found", env_var=key, path=filepath)
            continue
        try:
            secrets[field_name] = path.read_text().strip()
        except OSError as e:
            raise ConfigurationError(f"Cannot read secret file '{filepath}' named by {key}: {e}")

    return secrets


class YamlConfigSettingsSource(PydanticBaseSettingsSource):
    """Settings source backed by a YAML file.

    The path comes from the ``config_path`` constructor argument, falling
    back to the CONFIG_PATH environment variable.
    """

    def __init__(self, settings_cls: Type[BaseSettings], config_path: Optional[str]) -> None:
        super().__init__(settings_cls)
        self.config_path = config_path

    def get_field_value(self, field: Any, field_name: str) -> Tuple[Any, str, bool]:
        return self().get(field_name), field_name, False

    def __call__(self) -> Dict[str, Any]:
        if not self.config_path:
            return {}
        return read_yaml_file(self.config_path)


class FileSecretsSettingsSource(PydanticBaseSettingsSource):
    """Settings source for ``UNIFI_ACCESS_*_FILE`` secrets."""

    def get_field_value(self, field: Any, field_name: str) -> Tuple[Any, str, bool]:
        return self().get(field_name), field_name, False

    def __call__(self) -> Dict[str, Any]:
        fields = self.settings_cls.model_fields
        return {name: value for name, value in resolve_file_secrets().items() if name in fields}


class UnifiAccessSettings(BaseSettings):
    """Unifi Access client configuration settings.

    Configuration is loaded in the following precedence (highest to lowest):
    1. Constructor arguments
    2. Environment variables (UNIFI_ACCESS_ prefix)
    3. Docker secrets (UNIFI_ACCESS_*_FILE)
    4. .env file
    5. YAML configuration file (config_path or CONFIG_PATH)
    6. Default values
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Required settings
    host: str = Field(
        ...,
        description="Unifi Access controller hostname or IP address",
    )
    api_token: str = Field(
        ...,
        description="API token from Access > Settings > Security > Advanced",
        repr=False,
    )

    # Optional connection settings
    port: int = Field(
        default=DEFAULT_PORT,
        description="Access API port",
        ge=1,
        le=65535,
    )
    verify_ssl: bool = Field(
        default=False,
        description="Verify SSL certificates (controllers ship self-signed certs)",
    )

    # Timeout and retry settings
    request_timeout: float = Field(
        default=10.0,
        description="Request timeout in seconds",
        gt=0,
    )
    max_retries: int = Field(
        default=3,
        description="Maximum number of attempts on connection failure",
        ge=1,
    )
    enrollment_poll_interval: float = Field(
        default=0.1,
        description="Seconds between NFC enrollment session polls",
        gt=0,
    )

    # Logging settings
    log_level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR",
    )
    log_format: Literal["json", "text"] = Field(
        default="text",
        description="Log output format: json (production) or text (development)",
    )

    config_path: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("config_path", "CONFIG_PATH"),
        description="YAML file the settings were read from",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        """Order sources by precedence, first wins.

        The YAML path is taken from the constructor first so that callers
        never need to publish it through the process environment.
        """
        init_kwargs = getattr(init_settings, "init_kwargs", {})
        config_path = init_kwargs.get("config_path") or os.environ.get("CONFIG_PATH")
        return (
            init_settings,
            env_settings,
            FileSecretsSettingsSource(settings_cls),
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls, config_path),
        )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "WARN", "ERROR", "CRITICAL"}
        normalized = v.upper()
        if normalized == "WARN":
            normalized = "WARNING"
        if normalized not in valid_levels:
            raise ValueError(
                f"Invalid log level '{v}'. Must be one of: DEBUG, INFO, WARNING, ERROR"
            )
        return normalized

    @field_validator("host")
    @classmethod
    def validate_host(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Host cannot be empty")
        return v.strip()

    @field_validator("api_token")
    @classmethod
    def validate_api_token(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("API token cannot be empty")
        return v.strip()
