"""Retry logic with exponential backoff for transport failures.

This module provides retry decorators using tenacity so that transient
network problems between the client and the controller do not surface
as immediate failures.

Example usage:
    from unifi_access.api.session import create_retry_decorator

    retry = create_retry_decorator(max_retries=5)

    @retry
    def fetch_data():
        return http.get("https://controller:12445/api/v1/developer/users")
"""

import logging
from typing import Any, Callable

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

RETRYABLE_ERRORS = (httpx.ConnectError, httpx.TimeoutException)


def create_retry_decorator(
    max_retries: int = 3,
    min_wait: float = 1,
    max_wait: float = 30,
    log_level: int = logging.WARNING,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Create a tenacity retry decorator with exponential backoff.

    Only connection and timeout errors are retried. HTTP error statuses
    and non-SUCCESS envelopes are answers from the controller and are
    never retried.

    Args:
        max_retries: Maximum number of attempts (1 disables retrying).
        min_wait: Minimum wait time in seconds between retries.
        max_wait: Maximum wait time in seconds between retries.
        log_level: Log level for retry attempt messages.

    Returns:
        A tenacity retry decorator.

    Backoff sequence (with min=1, max=30):
        Attempt 1: immediate
        Attempt 2: wait 1-2 seconds
        Attempt 3: wait 2-4 seconds
        ...
        Capped at 30 seconds max
    """
    # tenacity's before_sleep_log needs a stdlib logger
    stdlib_logger = logging.getLogger(__name__)

    return retry(
        stop=stop_after_attempt(max_retries),
        wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(RETRYABLE_ERRORS),
        before_sleep=before_sleep_log(stdlib_logger, log_level),
        reraise=True,
    )
