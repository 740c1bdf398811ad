"""
Quota-aware Rate Limiter for the GitHub REST API.

Tracks the quota GitHub reports on every response and tells callers how
long to hold off before the next request:
- X-RateLimit-Limit / X-RateLimit-Remaining / X-RateLimit-Reset headers
- Wait until the reset time once the remaining quota hits zero
- One limiter per (host, credential) pair via RateLimiterPool

Usage:
    from utils.rate_limiter import QuotaRateLimiter

    limiter = QuotaRateLimiter()

    # Before making an API call
    await limiter.wait_if_needed()
    response = await client.get(url)
    limiter.record_response_metadata(response.headers)

This is advisory pacing only. Throttling responses (403/429) are handled by
the retry policy in collectors/retry_strategy.py.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Mapping, Optional, Tuple

import httpx

logger = logging.getLogger(__name__)

LOW_QUOTA_WARNING = 10

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RateLimitState:
    """Quota snapshot from the most recent API response."""

    limit: int
    remaining: int
    reset_at: int  # epoch seconds

    def seconds_until_reset(self, now: float) -> float:
        return self.reset_at - now


def _header_int(headers: Mapping[str, str], name: str) -> int:
    raw = headers.get(name)
    if raw is None:
        return 0
    try:
        return int(str(raw).strip())
    except ValueError:
        return 0


class QuotaRateLimiter:
    """
    Reactive rate limiter driven by GitHub's quota headers.

    Until the first response is observed the state is unknown and every
    request proceeds immediately.

    Args:
        clock: Returns the current time in epoch seconds (default time.time)
        sleep: Async sleep used by wait_if_needed (default asyncio.sleep)
    """

    def __init__(self, clock: Clock = time.time, sleep: Sleep = asyncio.sleep):
        self._clock = clock
        self._sleep = sleep
        self._state: Optional[RateLimitState] = None

    @property
    def state(self) -> Optional[RateLimitState]:
        return self._state

    def record_response_metadata(self, headers: Mapping[str, str]) -> RateLimitState:
        """
        Update the quota state from response headers.

        Missing or malformed headers count as 0. The state is replaced in a
        single assignment with no await in between, so concurrent fetches on
        the same event loop cannot interleave a partial update.
        """
        headers = httpx.Headers(headers)
        state = RateLimitState(
            limit=_header_int(headers, "x-ratelimit-limit"),
            remaining=_header_int(headers, "x-ratelimit-remaining"),
            reset_at=_header_int(headers, "x-ratelimit-reset"),
        )
        self._state = state

        reset_in = state.seconds_until_reset(self._clock())
        logger.debug(
            f"Rate limit: {state.remaining}/{state.limit} remaining, "
            f"resets in {max(reset_in, 0) / 60:.0f} minutes"
        )
        if 0 < state.remaining < LOW_QUOTA_WARNING:
            logger.warning(f"GitHub rate limit low: {state.remaining} remaining")

        return state

    def compute_wait(self) -> float:
        """
        Seconds to wait before the next request.

        Non-zero only when the quota is used up and the reset time is still
        in the future.
        """
        state = self._state
        if state is None or state.remaining > 0:
            return 0.0

        wait = state.seconds_until_reset(self._clock())
        return wait if wait > 0 else 0.0

    def should_proceed_now(self) -> bool:
        return self.compute_wait() <= 0

    async def wait_if_needed(self) -> float:
        """
        Suspend until the quota resets, if it is exhausted.

        Returns:
            Seconds slept (0.0 when no wait was needed)
        """
        wait = self.compute_wait()
        if wait <= 0:
            return 0.0

        logger.info(f"Rate limit exceeded. Waiting {wait:.0f} seconds...")
        await self._sleep(wait)
        return wait

    def reset(self) -> None:
        """Forget the observed quota (state becomes unknown again)."""
        self._state = None


class RateLimiterPool:
    """
    Factory for per-credential rate limiters.

    GitHub counts quota per token (or per client IP when anonymous), so each
    (host, credential) pair gets its own limiter. Tokens are hashed before
    being used as keys so they never sit in the pool in clear text.
    """

    def __init__(self, clock: Clock = time.time, sleep: Sleep = asyncio.sleep):
        self._clock = clock
        self._sleep = sleep
        self._limiters: Dict[Tuple[str, str], QuotaRateLimiter] = {}

    @staticmethod
    def _pool_key(host: str, token: Optional[str]) -> Tuple[str, str]:
        if not token:
            return (host.lower(), "anonymous")
        return (host.lower(), hashlib.sha256(token.encode("utf-8")).hexdigest())

    def get(self, host: str, token: Optional[str] = None) -> QuotaRateLimiter:
        """
        Get or create the limiter for a host and credential.

        Args:
            host: API host (e.g., "api.github.com")
            token: Credential, or None for unauthenticated requests

        Returns:
            QuotaRateLimiter shared by every caller using the same pair
        """
        key = self._pool_key(host, token)
        if key not in self._limiters:
            self._limiters[key] = QuotaRateLimiter(clock=self._clock, sleep=self._sleep)
            logger.debug(
                f"Created rate limiter for {host} "
                f"({'authenticated' if token else 'unauthenticated'})"
            )
        return self._limiters[key]

    def reset(self) -> None:
        """Drop all limiters (for testing)."""
        self._limiters.clear()
