from __future__ import annotations

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Optional

import httpx
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt

from qbo_actions.core.config import Settings, get_settings


THROTTLED_STATUS_CODE = 429
SERVER_ERROR_STATUS_CODES = frozenset({500, 502, 503, 504})
# A 5xx on a write may arrive after QuickBooks committed it; only reads are replayed.
IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


class ThrottledResponseError(Exception):
    """Raised inside the retry loop for responses worth another attempt."""

    def __init__(self, response: httpx.Response, retry_after: Optional[float] = None):
        self.response = response
        self.retry_after = retry_after
        super().__init__(f"Retryable QuickBooks response: {response.status_code}")


def parse_retry_after(response: httpx.Response) -> Optional[float]:
    header = response.headers.get("Retry-After")
    if not header:
        return None
    try:
        return max(float(header), 0.0)
    except ValueError:
        pass
    try:
        retry_at = parsedate_to_datetime(header)
    except (TypeError, ValueError):
        return None
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)
    delta = (retry_at - datetime.now(timezone.utc)).total_seconds()
    return max(delta, 0.0)


def is_retryable(method: str, status_code: int) -> bool:
    if status_code == THROTTLED_STATUS_CODE:
        return True
    return status_code in SERVER_ERROR_STATUS_CODES and method.upper() in IDEMPOTENT_METHODS


def _backoff_seconds(settings: Settings, retry_state: RetryCallState) -> float:
    if retry_state.outcome is not None and retry_state.outcome.failed:
        exc = retry_state.outcome.exception()
        if isinstance(exc, ThrottledResponseError) and exc.retry_after is not None:
            return min(exc.retry_after, settings.retry_max_wait_seconds)
    return min(settings.retry_max_wait_seconds, 2 ** (retry_state.attempt_number - 1))


def get_async_client(
    settings: Settings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    settings = settings or get_settings()
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.http_timeout_seconds),
        transport=transport,
    )


async def send_with_backoff(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    settings: Settings | None = None,
    **kwargs: Any,
) -> httpx.Response:
    """Send a request, retrying throttled responses and 5xx responses to reads.

    Once attempts are exhausted the last response is returned as-is so the
    caller can turn it into a proper API error.
    """
    settings = settings or get_settings()

    try:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(settings.retry_max_attempts),
            retry=retry_if_exception_type(ThrottledResponseError),
            wait=lambda retry_state: _backoff_seconds(settings, retry_state),
            reraise=True,
        ):
            with attempt:
                response = await client.request(method, url, **kwargs)
                if is_retryable(method, response.status_code):
                    raise ThrottledResponseError(response, parse_retry_after(response))
                return response
    except ThrottledResponseError as exc:
        return exc.response
    raise RuntimeError("retry loop exited without a response")
