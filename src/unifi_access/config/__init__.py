"""Configuration management for the Unifi Access client."""

from unifi_access.config.loader import load_config
from unifi_access.config.settings import ConfigurationError, UnifiAccessSettings

__all__ = [
    "ConfigurationError",
    "UnifiAccessSettings",
    "load_config",
]
