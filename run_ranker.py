#!/usr/bin/env python3
"""
Awesome List Ranker - CLI

Rank the GitHub repositories an awesome list links to by stars.

Usage:
    python run_ranker.py page https://github.com/vinta/awesome-python
    python run_ranker.py links psf/requests pallets/flask https://github.com/django/django
    python run_ranker.py links --file links.txt --top 10 --json

Set GITHUB_TOKEN (environment or .env) for authenticated requests: larger
batches, shorter pauses and a much higher quota.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

import httpx
from dotenv import load_dotenv

from workflows.pipeline import ListRankerPipeline, RankerConfig, RankResult, RankStatus

logger = logging.getLogger(__name__)

SUCCESS_STATUSES = (RankStatus.SUCCESS, RankStatus.PARTIAL_SUCCESS)


def read_links_file(path: str) -> List[str]:
    """One link per line; blank lines and '#' comments are ignored."""
    links = []
    for line in Path(path).read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            links.append(line)
    return links


def print_banner(title: str, config: RankerConfig, args) -> None:
    print(f"\n{'='*60}")
    print(title)
    print(f"{'='*60}")
    print(f"Authenticated: {bool(config.github_token)}")
    print(f"Max attempts: {config.max_attempts}")
    print(f"Top: {args.top}")
    print(f"{'='*60}\n")


def print_result(result: RankResult, args) -> None:
    print(f"\n{'='*60}")
    print("RESULTS")
    print(f"{'='*60}")
    print(f"Status: {result.status.value}")
    print(f"Links: {result.links_requested} ({result.invalid_links} invalid)")
    print(f"Repositories: {result.repos_fetched}/{result.unique_repos} fetched")
    if result.not_found or result.exhausted:
        print(f"Not found: {result.not_found}, gave up: {result.exhausted}")

    if result.error_message:
        print(f"Error: {result.error_message}")

    top = result.top(args.top)
    if top:
        print(f"\nTop {len(top)} repositories by stars:")
        for index, record in enumerate(top, start=1):
            print(f"{index:>3}. {record.full_name} ({record.stars} stars)")

    if args.json:
        print(f"\n{json.dumps(result.to_dict(), indent=2)}")


async def run_links(args, config: RankerConfig) -> RankResult:
    """Rank repositories from links given on the command line or in a file."""
    links = list(args.links)
    if args.file:
        links.extend(read_links_file(args.file))

    print_banner("Awesome List Ranker: links", config, args)
    pipeline = ListRankerPipeline(config)
    result = await pipeline.rank_links(links)
    print_result(result, args)
    return result


async def run_page(args, config: RankerConfig) -> RankResult:
    """Download a GitHub page and rank the awesome list in its README."""
    print_banner(f"Awesome List Ranker: {args.url}", config, args)

    async with httpx.AsyncClient(timeout=config.request_timeout, follow_redirects=True) as client:
        try:
            response = await client.get(args.url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Failed to download {args.url}: {e}")
            result = RankResult(status=RankStatus.ERROR, error_message=str(e))
            result.complete()
            print_result(result, args)
            return result

        page_url = str(response.url)
        page_html = response.text

    pipeline = ListRankerPipeline(config)
    result = await pipeline.rank_readme(page_html, page_url)
    print_result(result, args)
    return result


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Awesome List Ranker CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run_ranker.py page https://github.com/vinta/awesome-python
  python run_ranker.py links psf/requests pallets/flask --top 2
  python run_ranker.py links --file links.txt --json
        """,
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--top", type=int, default=None, help="How many repositories to show (default: RANKER_TOP_N or 5)")
    common.add_argument("--json", action="store_true", help="Output full JSON result")
    common.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", help="What to rank")

    links_parser = subparsers.add_parser("links", parents=[common], help="Rank repositories from links")
    links_parser.add_argument("links", nargs="*", help="Repository links (URL, /owner/repo or owner/repo)")
    links_parser.add_argument("--file", help="File with one link per line")

    page_parser = subparsers.add_parser("page", parents=[common], help="Rank the awesome list on a GitHub page")
    page_parser.add_argument("url", help="GitHub page URL")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    load_dotenv()
    config = RankerConfig.from_env()
    if args.top is None:
        args.top = config.top_n
    config.top_n = args.top

    if args.command == "links":
        if not args.links and not args.file:
            print("ERROR: give links as arguments or --file")
            return 1
        result = asyncio.run(run_links(args, config))
    elif args.command == "page":
        result = asyncio.run(run_page(args, config))
    else:
        print(f"Unknown command: {args.command}")
        return 1

    return 0 if result.status in SUCCESS_STATUSES else 1


if __name__ == "__main__":
    sys.exit(main())
