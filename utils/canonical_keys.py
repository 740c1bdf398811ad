"""
Canonical Repository Keys for the Awesome List Ranker

Turns the many spellings of a GitHub repository link into one deterministic
(owner, repo) key so duplicate references collapse to a single API lookup.

Accepted inputs:
- Absolute URLs on the expected host (or a subdomain such as www.github.com)
- Scheme-less host-prefixed links ("github.com/owner/repo")
- Host-relative paths ("/owner/repo")
- Bare "owner/repo" strings

Everything else (other hosts, mailto:, fewer than two path segments) has no key.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

DEFAULT_HOST = "github.com"

_WEB_SCHEMES = ("http", "https")


@dataclass(frozen=True)
class RepoKey:
    """Canonical identity of a repository: the first two path segments."""

    owner: str
    repo: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    def __str__(self) -> str:
        return self.full_name


# =============================================================================
# NORMALIZERS
# =============================================================================

def _host_matches(hostname: str, host: str) -> bool:
    hostname = hostname.lower()
    host = host.lower()
    return hostname == host or hostname.endswith("." + host)


def _strip_repo_suffixes(repo: str) -> str:
    """Drop a query string and a trailing .git from the repo segment."""
    repo = repo.split("?", 1)[0]
    if repo.endswith(".git"):
        repo = repo[: -len(".git")]
    return repo


def parse_repo_link(link: str, host: str = DEFAULT_HOST) -> Optional[RepoKey]:
    """
    Parse an arbitrary link into a RepoKey.

    Examples:
      - "https://github.com/acme/widget" -> RepoKey("acme", "widget")
      - "acme/widget#usage" -> RepoKey("acme", "widget")
      - "/acme/widget.git?tab=readme" -> RepoKey("acme", "widget")
      - "github.com/acme/widget/issues" -> RepoKey("acme", "widget")
      - "https://gitlab.com/acme/widget" -> None
      - "https://github.com/acme" -> None

    Args:
        link: Raw link string (as found in a README)
        host: Expected web host of the catalog

    Returns:
        RepoKey, or None when the link does not reference a repository
    """
    if not isinstance(link, str):
        return None

    v = link.strip().split("#", 1)[0]
    if not v:
        return None

    if "://" in v:
        candidate = v
    elif v.startswith("//"):
        candidate = "https:" + v
    elif v.startswith("/"):
        candidate = f"https://{host}{v}"
    elif ":" in v.split("/", 1)[0]:
        # mailto:, javascript: and friends
        return None
    elif "." in v.split("/", 1)[0]:
        # Owners can't contain dots, so a dotted first segment is a hostname
        candidate = "https://" + v
    else:
        candidate = f"https://{host}/{v}"

    try:
        parsed = urlparse(candidate)
        hostname = parsed.hostname
    except ValueError:
        return None

    if parsed.scheme.lower() not in _WEB_SCHEMES or not hostname:
        return None
    if not _host_matches(hostname, host):
        return None

    segments = [s for s in parsed.path.split("/") if s]
    if len(segments) < 2:
        return None

    owner = segments[0]
    repo = _strip_repo_suffixes(segments[1])
    if not repo:
        return None

    return RepoKey(owner=owner, repo=repo)


def normalize_repo_link(link: str, host: str = DEFAULT_HOST) -> Optional[str]:
    """
    Normalize a link to 'owner/repo' format.

    Returns:
        'owner/repo' string, or None for links without a repository key
    """
    key = parse_repo_link(link, host=host)
    return key.full_name if key else None
