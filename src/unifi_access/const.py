"""Constants for the Unifi Access client."""

DEFAULT_PORT = 12445
API_PREFIX = "/api/v1/developer"
SUCCESS_CODE = "SUCCESS"
