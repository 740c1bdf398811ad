"""
README analysis for awesome lists.

Finds the rendered README on a GitHub page, decides whether it is an
awesome list and pulls out the links that point at GitHub.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Union
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from utils.canonical_keys import DEFAULT_HOST

logger = logging.getLogger(__name__)

README_SELECTORS = (
    "article.markdown-body",
    "react-partial article.markdown-body",
    "#readme article.markdown-body",
)

# GitHub links that are never repositories
EXCLUDED_LINK_PARTS = ("/topics/", "/search?")

AWESOME_MARKER = "awesome"


def _as_tag(readme: Union[str, Tag]) -> Tag:
    if isinstance(readme, Tag):
        return readme
    return BeautifulSoup(readme, "html.parser")


def find_readme(page_html: str) -> Optional[Tag]:
    """
    Locate the rendered README in a GitHub page.

    Returns:
        The README element, or None when no selector matches
    """
    soup = BeautifulSoup(page_html, "html.parser")
    for selector in README_SELECTORS:
        element = soup.select_one(selector)
        if element is not None:
            logger.debug(f"Found readme content using selector: {selector}")
            return element

    logger.info("No readme content found on page")
    return None


def is_awesome_list(readme: Union[str, Tag]) -> bool:
    """True when the README text mentions 'awesome' (any case)."""
    text = _as_tag(readme).get_text(" ")
    is_awesome = AWESOME_MARKER in text.lower()
    logger.debug(f"Readme text length: {len(text)}, awesome list: {is_awesome}")
    return is_awesome


def extract_repository_links(
    readme: Union[str, Tag],
    page_url: str,
    host: str = DEFAULT_HOST,
) -> List[str]:
    """
    Collect candidate repository links from a README.

    Relative hrefs are resolved against page_url. Topic and search links are
    skipped; duplicates are kept (the client dedupes by repository).

    Args:
        readme: README element or HTML
        page_url: URL the README was rendered at
        host: GitHub web host

    Returns:
        Absolute link strings, in document order
    """
    anchors = _as_tag(readme).find_all("a", href=True)
    links: List[str] = []

    for anchor in anchors:
        if not isinstance(anchor, Tag):
            continue
        href = str(anchor.get("href", "")).strip()
        if not href:
            continue

        link = urljoin(page_url, href)
        if host not in link:
            continue
        if any(part in link for part in EXCLUDED_LINK_PARTS):
            continue
        links.append(link)

    logger.info(f"Extracted {len(links)} repository links from {len(anchors)} total links")
    return links
