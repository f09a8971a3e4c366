"""Retry utilities with exponential backoff for HTTP requests."""

import httpx
import structlog
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

logger = structlog.get_logger(__name__)

_TRANSIENT_ERRORS = (
    httpx.ConnectError,
    httpx.TimeoutException,
    httpx.RemoteProtocolError,
)


def is_transient_http_error(exc: BaseException) -> bool:
    """Connection problems, timeouts, 429 and 5xx responses are worth retrying."""
    if isinstance(exc, _TRANSIENT_ERRORS):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status == 429 or status >= 500
    return False


def _log_before_sleep(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "http_retry_scheduled",
        attempt=retry_state.attempt_number,
        sleep_seconds=round(retry_state.next_action.sleep, 2) if retry_state.next_action else None,
        error=str(exc) if exc else None,
    )


# Reusable retry decorator for HTTP requests (httpx)
http_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=30),
    retry=retry_if_exception(is_transient_http_error),
    before_sleep=_log_before_sleep,
    reraise=True,
)
