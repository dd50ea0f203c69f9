"""Retry policy for supplementary network fetches (posters, avatars, TMDB)."""

import logging

import requests
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

logger = logging.getLogger(__name__)

# Transport-level failures worth another attempt; HTTP status errors are not retried
RETRYABLE_ERRORS = (
    requests.ConnectionError,
    requests.Timeout,
)


def fixed_retrying(retries: int, delay_seconds: float) -> Retrying:
    """
    Build a tenacity Retrying with a small bounded count and fixed delay.

    Args:
        retries: Number of retries after the first attempt
        delay_seconds: Fixed wait between attempts

    Returns:
        Configured Retrying instance
    """
    return Retrying(
        retry=retry_if_exception_type(RETRYABLE_ERRORS),
        wait=wait_fixed(delay_seconds),
        stop=stop_after_attempt(retries + 1),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
