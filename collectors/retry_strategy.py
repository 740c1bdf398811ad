"""
Retry Strategy for GitHub repository lookups.

Provides:
- RetryPolicy: attempt budget and wait computation per failure kind
- classify_response: map an HTTP response onto the lookup error taxonomy
- get_retry_after_seconds: Retry-After header parsing
- Lookup errors: RepoNotFoundError, ThrottledError, TransientFetchError

Disposition of a response:
- 404                     -> RepoNotFoundError (never retried)
- 403 / 429               -> ThrottledError, wait Retry-After (default 60s)
- any other non-2xx       -> TransientFetchError, wait 1s x attempt number
- 2xx                     -> caller validates the body; a bad body is transient

Usage:
    from collectors.retry_strategy import RetryPolicy

    policy = RetryPolicy(max_attempts=3)

    async for attempt in policy.retrying(sleep=asyncio.sleep):
        with attempt:
            response = await client.get(url)
            classify_response(response)
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Awaitable, Callable, Mapping, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
)

logger = logging.getLogger(__name__)

THROTTLE_STATUS_CODES = (403, 429)


# =============================================================================
# ERRORS
# =============================================================================

class RepoNotFoundError(Exception):
    """The repository does not exist (HTTP 404)."""


class RetryableFetchError(Exception):
    """A lookup failure worth another attempt."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ThrottledError(RetryableFetchError):
    """GitHub refused the request for quota reasons (HTTP 403/429)."""

    def __init__(self, message: str, status_code: int, retry_after: Optional[float] = None):
        super().__init__(message, status_code=status_code)
        self.retry_after = retry_after


class TransientFetchError(RetryableFetchError):
    """Unexpected status, invalid body or network failure."""


# =============================================================================
# RESPONSE CLASSIFICATION
# =============================================================================

def get_retry_after_seconds(headers: Mapping[str, str]) -> Optional[float]:
    """
    Extract the Retry-After header value in seconds.

    Args:
        headers: Response headers

    Returns:
        Wait time in seconds, or None if header missing or not a finite number
    """
    retry_after = httpx.Headers(headers).get("retry-after")
    if retry_after is None:
        return None

    try:
        seconds = float(retry_after)
    except ValueError:
        # Could be an HTTP date; the policy default applies instead
        return None

    if not math.isfinite(seconds):
        return None

    return max(seconds, 0.0)


def classify_response(response: httpx.Response) -> None:
    """
    Raise the lookup error matching a non-success response.

    Returns normally for 2xx responses.

    Raises:
        RepoNotFoundError: 404
        ThrottledError: 403 or 429
        TransientFetchError: any other non-2xx status
    """
    status = response.status_code

    if status == 404:
        raise RepoNotFoundError(f"HTTP 404: {response.reason_phrase}")

    if status in THROTTLE_STATUS_CODES:
        raise ThrottledError(
            f"HTTP {status}: {response.reason_phrase}",
            status_code=status,
            retry_after=get_retry_after_seconds(response.headers),
        )

    if not response.is_success:
        raise TransientFetchError(
            f"HTTP {status}: {response.reason_phrase}",
            status_code=status,
        )


# =============================================================================
# RETRY POLICY
# =============================================================================

@dataclass
class RetryPolicy:
    """Attempt budget and backoff for a single repository lookup."""

    max_attempts: int = 3
    default_retry_after: float = 60.0  # seconds, when a throttle response has no Retry-After
    transient_backoff: float = 1.0  # seconds, multiplied by the attempt number

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")

    def get_wait_seconds(self, error: Optional[BaseException], attempt: int) -> float:
        """
        Calculate the wait after a failed attempt.

        Args:
            error: The error raised by the failed attempt
            attempt: One-indexed number of the attempt that failed

        Returns:
            Wait time in seconds
        """
        if isinstance(error, ThrottledError):
            if error.retry_after is not None:
                return error.retry_after
            return self.default_retry_after

        return self.transient_backoff * attempt

    def _wait(self, retry_state: RetryCallState) -> float:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        return self.get_wait_seconds(error, retry_state.attempt_number)

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        wait = retry_state.next_action.sleep if retry_state.next_action else 0.0
        if isinstance(error, ThrottledError):
            logger.warning(
                f"Rate limited, waiting {wait:.0f}s before retry "
                f"{retry_state.attempt_number + 1}..."
            )
        else:
            logger.warning(
                f"Attempt {retry_state.attempt_number} failed: {error}. "
                f"Retrying in {wait:.2f}s..."
            )

    def retrying(
        self,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        max_attempts: Optional[int] = None,
    ) -> AsyncRetrying:
        """
        Build the tenacity controller for one lookup.

        Only RetryableFetchError subclasses are retried; anything else (such
        as RepoNotFoundError) propagates on the first attempt. When the budget
        is spent the last error is re-raised as-is.

        Args:
            sleep: Async sleep used between attempts
            max_attempts: Override for this lookup only
        """
        attempts = max_attempts if max_attempts is not None else self.max_attempts
        if attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {attempts}")

        return AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=self._wait,
            retry=retry_if_exception_type(RetryableFetchError),
            sleep=sleep,
            before_sleep=self._log_retry,
            reraise=True,
        )
