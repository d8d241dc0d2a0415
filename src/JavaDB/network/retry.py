"""Network retry policies: Tenacity-based backoff for resilient HTTP.

Maven Central is a shared, rate-limited resource: throttling (429) and
transient 5xx responses are routine during a full crawl.  Requests are wrapped
in a Tenacity policy with full-jitter exponential backoff that honours
``Retry-After`` and can be interrupted by a cancellation token.

Example:
    >>> from JavaDB.network.retry import create_http_retry_policy
    >>> policy = create_http_retry_policy(max_attempts=6, max_delay_seconds=30)
    >>> for attempt in policy:
    ...     with attempt:
    ...         response = send_and_check(client, url)
"""

from __future__ import annotations

import email.utils
import logging
import time
from datetime import datetime, timezone
from typing import Callable, Optional

import httpx
from tenacity import (
    RetryCallState,
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    stop_after_delay,
    wait_random_exponential,
)
from tenacity.wait import wait_base

from ..errors import RepositoryError

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class RetryableStatusError(RepositoryError):
    """Response status that is worth retrying (rate limit or server error)."""

    def __init__(self, response: httpx.Response) -> None:
        super().__init__(
            f"{response.request.method} {response.request.url} returned {response.status_code}",
            status_code=response.status_code,
        )
        self.response = response


def _parse_retry_after_value(value: Optional[str]) -> Optional[float]:
    """Convert a Retry-After header value into a delay in seconds."""
    if not value:
        return None

    try:
        delay = float(int(value))
    except ValueError:
        try:
            dt = email.utils.parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return None
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        delay = (dt - datetime.now(timezone.utc)).total_seconds()

    return max(0.0, delay)


class _RetryAfterOrBackoff(wait_base):
    """Wait strategy that honours Retry-After before falling back to backoff."""

    def __init__(self, fallback_wait: wait_base, max_delay_seconds: int) -> None:
        self._fallback_wait = fallback_wait
        self._max_delay_seconds = max_delay_seconds

    def __call__(self, retry_state: RetryCallState) -> float:
        outcome = retry_state.outcome
        exc = outcome.exception() if outcome is not None else None
        response = getattr(exc, "response", None)
        if response is not None:
            delay = _parse_retry_after_value(response.headers.get("Retry-After"))
            if delay is not None:
                return min(delay, float(self._max_delay_seconds))
        return float(self._fallback_wait(retry_state))


def create_http_retry_policy(
    max_attempts: int = 10,
    max_delay_seconds: int = 300,
    *,
    sleep: Optional[Callable[[float], object]] = None,
) -> Retrying:
    """Create Tenacity retry policy for repository requests.

    Retry strategy:
    - **Retryable exceptions**: any ``httpx.TransportError`` (connect/read
      timeouts, dropped connections) and :class:`RetryableStatusError`
    - **Backoff strategy**: full-jitter exponential, Retry-After when provided
    - **Stop**: after ``max_attempts`` or ``max_delay_seconds``, whichever first

    Args:
        max_attempts: Maximum number of attempts.
        max_delay_seconds: Deadline measured from the first attempt.
        sleep: Sleep function; pass one that wakes on cancellation to keep
            workers responsive.

    Returns:
        Tenacity ``Retrying`` object for ``for attempt in policy`` loops. The
        original exception is re-raised once retries are exhausted.
    """
    wait_strategy = _RetryAfterOrBackoff(
        fallback_wait=wait_random_exponential(multiplier=0.5, max=min(60, max_delay_seconds)),
        max_delay_seconds=max_delay_seconds,
    )

    return Retrying(
        stop=stop_after_attempt(max_attempts) | stop_after_delay(max_delay_seconds),
        wait=wait_strategy,
        retry=retry_if_exception_type((httpx.TransportError, RetryableStatusError)),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        sleep=sleep or time.sleep,
        reraise=True,
    )


__all__ = ["create_http_retry_policy", "RetryableStatusError", "RETRYABLE_STATUS_CODES"]


# === NAVMAP v1 ===
# {
#   "module": "JavaDB.network.retry",
#   "purpose": "Tenacity retry policy with Retry-After support for repository requests",
#   "sections": [
#     {"id": "errors", "name": "RetryableStatusError", "anchor": "ERR", "kind": "api"},
#     {"id": "policy", "name": "create_http_retry_policy", "anchor": "POL", "kind": "api"}
#   ]
# }
# === /NAVMAP ===
