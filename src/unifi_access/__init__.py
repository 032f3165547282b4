"""
Unifi Access client - a handwritten wrapper around the Unifi Access developer API.

This package provides a typed client for managing users, access policies,
NFC cards, devices, doors and the system log of a Unifi Access controller.

Features:
- Configuration via YAML with environment variable overrides
- Docker secrets support for the API token
- Structured logging (JSON for production, text for development)
- Retry with backoff on connection failures
"""

__version__ = "0.3.0"
__all__ = ["__version__"]
