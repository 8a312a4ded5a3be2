"""
Retry policy shared by every outbound HTTP call.

Transport failures (connection refused, DNS, timeouts) are retried a fixed
number of times with a fixed wait.  HTTP status errors are never retried;
callers inspect the response themselves.
"""

import logging

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from tco_agent.errors import NetworkError

logger = logging.getLogger(__name__)

RETRY_ATTEMPTS = 3
RETRY_WAIT_SECONDS = 1


def _raise_network_error(retry_state):
    exc = retry_state.outcome.exception()
    raise NetworkError(
        f"request failed after {retry_state.attempt_number} attempts: {exc}"
    ) from exc


def send_with_retry(client: httpx.Client, request: httpx.Request, **send_kwargs) -> httpx.Response:
    """
    Send a prepared request, retrying transport errors.

    send_kwargs (auth, follow_redirects) are passed to httpx.Client.send.

    Raises:
        NetworkError: when every attempt failed at the transport level.
    """

    @retry(
        stop=stop_after_attempt(RETRY_ATTEMPTS),
        wait=wait_fixed(RETRY_WAIT_SECONDS),
        retry=retry_if_exception_type(httpx.TransportError),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        retry_error_callback=_raise_network_error,
    )
    def _send() -> httpx.Response:
        return client.send(request, **send_kwargs)

    return _send()
