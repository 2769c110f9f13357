"""HTTP session for the hosted backend.

Pattern: requests.Session with connection pooling, urllib3 status retries
and tenacity retries for connection-level failures.

Only reads are retried. A repeated insert could create a duplicate booking,
so POST, PATCH and DELETE go out exactly once.
"""
import logging

import requests
from requests.adapters import HTTPAdapter
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from urllib3.util.retry import Retry

from clinicdesk import config

logger = logging.getLogger(__name__)


def create_http_session(
    max_retries: int = 3,
    backoff_factor: float = 1.0,
    timeout: int = config.HTTP_TIMEOUT_SECONDS
) -> requests.Session:
    """
    Create HTTP session with read retries and connection pooling.

    Args:
        max_retries: Maximum number of retry attempts for GET (default: 3)
        backoff_factor: Backoff multiplier; delays are 1x, 2x, 4x this value
        timeout: Request timeout in seconds applied to every method

    Returns:
        Configured requests.Session
    """
    session = requests.Session()

    retry_strategy = Retry(
        total=max_retries,
        backoff_factor=backoff_factor,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["GET"],
    )
    adapter = HTTPAdapter(
        max_retries=retry_strategy,
        pool_connections=10,
        pool_maxsize=10,
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)

    original_get = session.get
    original_post = session.post
    original_patch = session.patch
    original_delete = session.delete

    @retry(
        stop=stop_after_attempt(max_retries + 1),
        wait=wait_exponential(multiplier=backoff_factor, min=backoff_factor, max=8),
        retry=retry_if_exception_type((
            requests.exceptions.ConnectionError,
            requests.exceptions.Timeout,
        )),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True
    )
    def get_with_retry(*args, **kwargs):
        kwargs.setdefault("timeout", timeout)
        return original_get(*args, **kwargs)

    def with_timeout(send):
        def send_once(*args, **kwargs):
            kwargs.setdefault("timeout", timeout)
            return send(*args, **kwargs)
        return send_once

    session.get = get_with_retry
    session.post = with_timeout(original_post)
    session.patch = with_timeout(original_patch)
    session.delete = with_timeout(original_delete)

    return session
