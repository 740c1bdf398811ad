"""
GitHub Repository Client for the Awesome List Ranker

Looks up repositories referenced by an awesome list and returns their
popularity metadata (stars, last update, description, topics).

Strategy:
1. Normalize every link to an owner/repo key (duplicates collapse)
2. Split the unique keys into batches (10 with a token, 5 without)
3. Fetch each batch concurrently, pausing between batches
4. Per lookup: wait out an exhausted quota, retry throttling and transient
   failures, give up immediately on 404
5. Map each fetched record back onto every link that referenced it
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, Union

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from collectors.retry_strategy import (
    RepoNotFoundError,
    RetryableFetchError,
    RetryPolicy,
    ThrottledError,
    TransientFetchError,
    classify_response,
)
from utils.canonical_keys import DEFAULT_HOST, RepoKey, parse_repo_link
from utils.rate_limiter import QuotaRateLimiter

logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================

GITHUB_API_BASE = "https://api.github.com"
GITHUB_ACCEPT = "application/vnd.github.v3+json"

# Courtesy pacing between batches, on top of the quota limiter
AUTHENTICATED_BATCH_SIZE = 10
AUTHENTICATED_BATCH_DELAY = 1.0  # seconds
UNAUTHENTICATED_BATCH_SIZE = 5
UNAUTHENTICATED_BATCH_DELAY = 2.0  # seconds

DEFAULT_TIMEOUT = 30.0


# =============================================================================
# DATA CLASSES
# =============================================================================

class GitHubRepoPayload(BaseModel):
    """Fields of GET /repos/{owner}/{repo} the ranker relies on."""

    model_config = ConfigDict(strict=True)

    stargazers_count: Union[int, float]
    updated_at: str
    description: Optional[str]
    topics: List[str]
    full_name: str
    html_url: str


@dataclass(frozen=True)
class RepoRecord:
    """Popularity metadata for one repository"""
    key: RepoKey
    stars: Union[int, float]
    updated_at: str
    description: Optional[str]
    topics: Tuple[str, ...]
    full_name: str
    html_url: str

    @classmethod
    def from_payload(cls, key: RepoKey, payload: GitHubRepoPayload) -> RepoRecord:
        return cls(
            key=key,
            stars=payload.stargazers_count,
            updated_at=payload.updated_at,
            description=payload.description,
            topics=tuple(payload.topics),
            full_name=payload.full_name,
            html_url=payload.html_url,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for logging/serialization"""
        return {
            "repo": self.full_name,
            "stars": self.stars,
            "updated_at": self.updated_at,
            "description": self.description,
            "topics": list(self.topics),
            "html_url": self.html_url,
        }


class FetchStatus(str, Enum):
    """Result of looking up a single link."""
    SUCCESS = "success"
    INVALID_LINK = "invalid_link"
    NOT_FOUND = "not_found"
    THROTTLED_EXHAUSTED = "throttled_exhausted"
    TRANSIENT_EXHAUSTED = "transient_exhausted"


@dataclass
class FetchOutcome:
    """Outcome of fetch_one for a link."""
    link: str
    status: FetchStatus
    key: Optional[RepoKey] = None
    record: Optional[RepoRecord] = None
    attempts: int = 0
    error_message: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return self.status == FetchStatus.SUCCESS

    @property
    def is_exhausted(self) -> bool:
        return self.status in (
            FetchStatus.THROTTLED_EXHAUSTED,
            FetchStatus.TRANSIENT_EXHAUSTED,
        )


@dataclass(frozen=True)
class BatchPlan:
    """How many lookups run together and how long to pause between batches."""
    batch_size: int
    delay_seconds: float

    @classmethod
    def for_credential(cls, token: Optional[str]) -> BatchPlan:
        if token:
            return cls(AUTHENTICATED_BATCH_SIZE, AUTHENTICATED_BATCH_DELAY)
        return cls(UNAUTHENTICATED_BATCH_SIZE, UNAUTHENTICATED_BATCH_DELAY)


def group_links_by_repo(
    links: Sequence[str],
    host: str = DEFAULT_HOST,
) -> Dict[RepoKey, List[str]]:
    """
    Group links by repository key, in first-seen order.

    Links without a key are logged and dropped. Repeated identical link
    strings are kept once.
    """
    grouped: Dict[RepoKey, List[str]] = {}
    for link in links:
        key = parse_repo_link(link, host=host)
        if key is None:
            logger.warning(f"Invalid GitHub URL: {link}")
            continue
        bucket = grouped.setdefault(key, [])
        if link not in bucket:
            bucket.append(link)
    return grouped


# =============================================================================
# GITHUB CLIENT
# =============================================================================

class GitHubRepoClient:
    """
    Fetches repository metadata from the GitHub REST API.

    Usage:
        async with GitHubRepoClient(github_token=os.getenv("GITHUB_TOKEN")) as client:
            records = await client.fetch_many(links)

    An already-open httpx.AsyncClient may be passed as http_client; the
    caller then owns its lifecycle. It should follow redirects, since GitHub
    answers 301 for renamed or transferred repositories.
    """

    def __init__(
        self,
        github_token: Optional[str] = None,
        api_base_url: str = GITHUB_API_BASE,
        web_host: str = DEFAULT_HOST,
        retry_policy: Optional[RetryPolicy] = None,
        rate_limiter: Optional[QuotaRateLimiter] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Args:
            github_token: GitHub API token (None = unauthenticated requests)
            api_base_url: REST API root
            web_host: Host that repository links point at
            retry_policy: Attempt budget and backoff (default: RetryPolicy())
            rate_limiter: Quota limiter shared by lookups with this token
            http_client: Optional pre-built httpx.AsyncClient
            timeout: Request timeout in seconds for the client built here
            sleep: Async sleep for retry and batch pauses
        """
        self.github_token = github_token or None
        self.api_base_url = api_base_url.rstrip("/")
        self.web_host = web_host
        self.retry_policy = retry_policy or RetryPolicy()
        self.rate_limiter = rate_limiter or QuotaRateLimiter(sleep=sleep)
        self.timeout = timeout
        self.client: Optional[httpx.AsyncClient] = http_client
        self._owns_client = False
        self._sleep = sleep

        # Per-key outcomes of the latest fetch_many run
        self.last_outcomes: Dict[RepoKey, FetchOutcome] = {}

    async def __aenter__(self):
        """Async context manager entry"""
        if self.client is None:
            self.client = httpx.AsyncClient(timeout=self.timeout, follow_redirects=True)
            self._owns_client = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit"""
        if self._owns_client and self.client:
            await self.client.aclose()
            self.client = None
            self._owns_client = False

    @property
    def is_authenticated(self) -> bool:
        return self.github_token is not None

    @property
    def headers(self) -> Dict[str, str]:
        headers = {"Accept": GITHUB_ACCEPT}
        if self.github_token:
            headers["Authorization"] = f"Bearer {self.github_token}"
        return headers

    @property
    def batch_plan(self) -> BatchPlan:
        return BatchPlan.for_credential(self.github_token)

    def _require_client(self) -> httpx.AsyncClient:
        if self.client is None:
            raise RuntimeError("Client not initialized. Use async context manager.")
        return self.client

    async def _request_repo(self, key: RepoKey) -> RepoRecord:
        """
        One GET /repos/{owner}/{repo} attempt.

        Handles:
        - Proactive waiting when the quota is exhausted
        - Quota bookkeeping from every response
        - Status classification and payload validation
        """
        client = self._require_client()
        await self.rate_limiter.wait_if_needed()

        url = f"{self.api_base_url}/repos/{key.owner}/{key.repo}"
        logger.debug(f"GitHub API: GET /repos/{key.full_name}")
        try:
            response = await client.get(url, headers=self.headers)
        except httpx.RequestError as e:
            raise TransientFetchError(f"{type(e).__name__}: {e}") from e

        self.rate_limiter.record_response_metadata(response.headers)
        classify_response(response)

        try:
            payload = GitHubRepoPayload.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise TransientFetchError(
                f"Invalid repository payload: {e}",
                status_code=response.status_code,
            ) from e

        return RepoRecord.from_payload(key, payload)

    async def _fetch_key(
        self,
        key: RepoKey,
        link: str,
        max_attempts: Optional[int] = None,
    ) -> FetchOutcome:
        budget = max_attempts if max_attempts is not None else self.retry_policy.max_attempts
        attempts = 0
        try:
            async for attempt in self.retry_policy.retrying(
                sleep=self._sleep, max_attempts=max_attempts
            ):
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    record = await self._request_repo(key)
        except RepoNotFoundError as e:
            logger.warning(f"Repository not found: {link}")
            return FetchOutcome(
                link=link,
                status=FetchStatus.NOT_FOUND,
                key=key,
                attempts=attempts,
                error_message=str(e),
            )
        except ThrottledError as e:
            logger.error(f"Rate limit exceeded for {link} after {attempts}/{budget} attempts")
            return FetchOutcome(
                link=link,
                status=FetchStatus.THROTTLED_EXHAUSTED,
                key=key,
                attempts=attempts,
                error_message=str(e),
            )
        except RetryableFetchError as e:
            logger.error(
                f"Error fetching repo data for {link} (attempt {attempts}/{budget}): {e}"
            )
            return FetchOutcome(
                link=link,
                status=FetchStatus.TRANSIENT_EXHAUSTED,
                key=key,
                attempts=attempts,
                error_message=str(e),
            )

        return FetchOutcome(
            link=link,
            status=FetchStatus.SUCCESS,
            key=key,
            record=record,
            attempts=attempts,
        )

    async def fetch_one(self, link: str, max_attempts: Optional[int] = None) -> FetchOutcome:
        """
        Look up the repository a single link points at.

        Never raises for per-link failures; the outcome status says what
        happened.

        Args:
            link: Raw link string
            max_attempts: Override of the retry policy's attempt budget

        Returns:
            FetchOutcome
        """
        key = parse_repo_link(link, host=self.web_host)
        if key is None:
            logger.warning(f"Invalid GitHub URL: {link}")
            return FetchOutcome(
                link=link,
                status=FetchStatus.INVALID_LINK,
                error_message="Link does not reference a repository",
            )

        self._require_client()
        return await self._fetch_key(key, link, max_attempts=max_attempts)

    async def fetch_many(self, links: Sequence[str]) -> Dict[str, RepoRecord]:
        """
        Look up every repository referenced by links.

        Each unique repository is fetched once; its record is stored under
        every original link that normalized to it. Links that are invalid,
        missing on GitHub or exhausted their retries are absent.

        Args:
            links: Raw link strings

        Returns:
            Dict mapping original link -> RepoRecord

        Raises:
            ValueError: No links supplied
            RuntimeError: Client used outside its context manager
        """
        if not links:
            raise ValueError("No links supplied")
        self._require_client()

        links_by_key = group_links_by_repo(links, host=self.web_host)
        logger.info(
            f"Found {len(links_by_key)} unique repositories out of {len(links)} URLs"
        )

        plan = self.batch_plan
        keys = list(links_by_key)
        total_batches = math.ceil(len(keys) / plan.batch_size)
        logger.info(
            f"Fetching {len(keys)} repositories in batches of {plan.batch_size} "
            f"using {'authenticated' if self.is_authenticated else 'unauthenticated'} requests"
        )

        results: Dict[str, RepoRecord] = {}
        self.last_outcomes = {}

        for batch_number, start in enumerate(range(0, len(keys), plan.batch_size), start=1):
            batch = keys[start:start + plan.batch_size]
            logger.info(f"Processing batch {batch_number}/{total_batches}")

            outcomes = await asyncio.gather(
                *(self._fetch_key(key, links_by_key[key][0]) for key in batch)
            )

            for key, outcome in zip(batch, outcomes):
                self.last_outcomes[key] = outcome
                if outcome.record is not None:
                    for link in links_by_key[key]:
                        results[link] = outcome.record

            if start + plan.batch_size < len(keys):
                await self._sleep(plan.delay_seconds)

        fetched = sum(1 for o in self.last_outcomes.values() if o.is_success)
        logger.info(
            f"Fetched {fetched}/{len(keys)} repositories "
            f"({len(results)} of {len(links)} links resolved)"
        )
        return results
