"""
Awesome List Ranker Pipeline

Ties the pieces together:
  readme -> links -> fetch (dedupe, batch, retry) -> rank -> result

Usage:
    from workflows.pipeline import ListRankerPipeline, RankerConfig

    pipeline = ListRankerPipeline(RankerConfig.from_env())

    # From raw links
    result = await pipeline.rank_links(["https://github.com/psf/requests", "pallets/flask"])

    # From a rendered GitHub page
    result = await pipeline.rank_readme(page_html, "https://github.com/vinta/awesome-python")

    for repo in result.top():
        print(repo.full_name, repo.stars)

A pipeline can be reused for any number of runs. Runs sharing a token share
one quota limiter, so run them one after another rather than overlapping.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence
from urllib.parse import urlparse

import httpx

from collectors.github import (
    DEFAULT_TIMEOUT,
    GITHUB_API_BASE,
    FetchStatus,
    GitHubRepoClient,
    RepoRecord,
)
from collectors.readme_links import extract_repository_links, find_readme, is_awesome_list
from collectors.retry_strategy import RetryPolicy
from utils.canonical_keys import DEFAULT_HOST, parse_repo_link
from utils.ranking import rank_descending, top_n, unique_records
from utils.rate_limiter import RateLimiterPool

logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class RankerConfig:
    """Configuration for the ranker"""

    # GitHub
    github_token: Optional[str] = None
    api_base_url: str = GITHUB_API_BASE
    web_host: str = DEFAULT_HOST

    # Execution
    max_attempts: int = 3
    request_timeout: float = DEFAULT_TIMEOUT

    # Output
    top_n: int = 5

    @classmethod
    def from_env(cls) -> RankerConfig:
        """Load configuration from environment variables"""
        return cls(
            github_token=os.getenv("GITHUB_TOKEN") or None,
            api_base_url=os.getenv("GITHUB_API_URL", GITHUB_API_BASE),
            web_host=os.getenv("GITHUB_WEB_HOST", DEFAULT_HOST),
            max_attempts=int(os.getenv("RANKER_MAX_ATTEMPTS", "3")),
            request_timeout=float(os.getenv("RANKER_REQUEST_TIMEOUT", str(DEFAULT_TIMEOUT))),
            top_n=int(os.getenv("RANKER_TOP_N", "5")),
        )

    @property
    def api_host(self) -> str:
        return urlparse(self.api_base_url).hostname or self.api_base_url


class RankStatus(str, Enum):
    """Status of a ranking run"""
    SUCCESS = "success"                  # Every referenced repository fetched
    PARTIAL_SUCCESS = "partial_success"  # Some links invalid, missing or exhausted
    NO_README = "no_readme"              # Page has no rendered README
    NOT_AWESOME = "not_awesome"          # README is not an awesome list
    NO_LINKS = "no_links"                # Awesome list without GitHub links
    ERROR = "error"                      # Run could not start or crashed


@dataclass
class RankResult:
    """Result of a ranking run"""

    status: RankStatus = RankStatus.SUCCESS
    links_requested: int = 0
    unique_repos: int = 0
    invalid_links: int = 0
    not_found: int = 0
    exhausted: int = 0

    records_by_link: Dict[str, RepoRecord] = field(default_factory=dict)
    ranked: List[RepoRecord] = field(default_factory=list)

    top_n: int = 5
    error_message: Optional[str] = None

    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None

    def complete(self):
        """Mark run as completed"""
        self.completed_at = datetime.now(timezone.utc)

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    @property
    def repos_fetched(self) -> int:
        return len(self.ranked)

    def top(self, n: Optional[int] = None) -> List[RepoRecord]:
        """Most-starred repositories (default: config top_n)"""
        return top_n(self.ranked, self.top_n if n is None else n)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/display"""
        return {
            "status": self.status.value,
            "links": {
                "requested": self.links_requested,
                "resolved": len(self.records_by_link),
                "invalid": self.invalid_links,
            },
            "repositories": {
                "unique": self.unique_repos,
                "fetched": self.repos_fetched,
                "not_found": self.not_found,
                "exhausted": self.exhausted,
            },
            "ranked": [record.to_dict() for record in self.ranked],
            "error_message": self.error_message,
            "timing": {
                "started_at": self.started_at.isoformat(),
                "completed_at": self.completed_at.isoformat() if self.completed_at else None,
                "duration_seconds": self.duration_seconds,
            },
        }


# =============================================================================
# PIPELINE
# =============================================================================

class ListRankerPipeline:
    """
    Ranks the repositories referenced by an awesome list.

    Never raises to its caller: operation-level failures come back as a
    RankResult with status ERROR.
    """

    def __init__(
        self,
        config: Optional[RankerConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        limiter_pool: Optional[RateLimiterPool] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Args:
            config: Ranker configuration (defaults to environment variables)
            http_client: Optional shared httpx.AsyncClient (caller closes it)
            limiter_pool: Pool of quota limiters (one per token)
            sleep: Async sleep for retries and batch pauses
        """
        self.config = config or RankerConfig.from_env()
        self._http_client = http_client
        self._limiters = limiter_pool or RateLimiterPool(sleep=sleep)
        self._sleep = sleep

    def _build_client(self) -> GitHubRepoClient:
        token = self.config.github_token
        return GitHubRepoClient(
            github_token=token,
            api_base_url=self.config.api_base_url,
            web_host=self.config.web_host,
            retry_policy=RetryPolicy(max_attempts=self.config.max_attempts),
            rate_limiter=self._limiters.get(self.config.api_host, token),
            http_client=self._http_client,
            timeout=self.config.request_timeout,
            sleep=self._sleep,
        )

    async def rank_links(self, links: Sequence[str]) -> RankResult:
        """
        Fetch and rank the repositories behind a list of links.

        Args:
            links: Raw link strings

        Returns:
            RankResult with the ranked records and per-link mapping
        """
        links = list(links)
        result = RankResult(links_requested=len(links), top_n=self.config.top_n)

        try:
            async with self._build_client() as client:
                records_by_link = await client.fetch_many(links)
                outcomes = list(client.last_outcomes.values())
        except Exception as e:
            logger.exception("Ranking run failed")
            result.status = RankStatus.ERROR
            result.error_message = str(e)
            result.complete()
            return result

        result.records_by_link = records_by_link
        result.ranked = rank_descending(unique_records(records_by_link))
        result.unique_repos = len(outcomes)
        result.invalid_links = sum(
            1 for link in links if parse_repo_link(link, host=self.config.web_host) is None
        )
        result.not_found = sum(1 for o in outcomes if o.status == FetchStatus.NOT_FOUND)
        result.exhausted = sum(1 for o in outcomes if o.is_exhausted)

        if not result.unique_repos:
            logger.warning("None of the links reference a GitHub repository")
            result.status = RankStatus.NO_LINKS
        elif result.invalid_links or result.repos_fetched < result.unique_repos:
            result.status = RankStatus.PARTIAL_SUCCESS

        result.complete()
        logger.info(f"Fetched data for {result.repos_fetched} repositories")
        self._log_top(result)
        return result

    async def rank_readme(self, page_html: str, page_url: str) -> RankResult:
        """
        Rank an awesome list from the HTML of its GitHub page.

        Args:
            page_html: Rendered page (or README) HTML
            page_url: URL the page was loaded from, for resolving relative links

        Returns:
            RankResult (NO_README / NOT_AWESOME / NO_LINKS when there is nothing to rank)
        """
        readme = find_readme(page_html)
        if readme is None:
            return self._finished(RankStatus.NO_README)

        if not is_awesome_list(readme):
            logger.info("Readme is not an awesome list, skipping")
            return self._finished(RankStatus.NOT_AWESOME)

        logger.info("Awesome list detected! Analyzing page content...")
        links = extract_repository_links(readme, page_url, host=self.config.web_host)
        if not links:
            return self._finished(RankStatus.NO_LINKS)

        return await self.rank_links(links)

    def _finished(self, status: RankStatus) -> RankResult:
        result = RankResult(status=status, top_n=self.config.top_n)
        result.complete()
        return result

    def _log_top(self, result: RankResult) -> None:
        top = result.top()
        if not top:
            return
        logger.info(f"Top {len(top)} repositories by stars:")
        for index, record in enumerate(top, start=1):
            logger.info(f"{index}. {record.full_name} ({record.stars} stars)")
