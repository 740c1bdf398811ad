"""
Ranking helpers for fetched repository records.

Sorting is stable: repositories with equal star counts keep the order in
which they appeared in the list.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, Iterable, List, Sequence

if TYPE_CHECKING:
    from collectors.github import RepoRecord


def rank_descending(records: Iterable[RepoRecord]) -> List[RepoRecord]:
    """Sort records by stars, most popular first."""
    return sorted(records, key=lambda record: record.stars, reverse=True)


def top_n(records: Sequence[RepoRecord], n: int) -> List[RepoRecord]:
    """First n records (fewer if the input is shorter, none for n <= 0)."""
    if n <= 0:
        return []
    return list(records[:n])


def unique_records(records_by_link: Dict[str, RepoRecord]) -> List[RepoRecord]:
    """
    Collapse a link -> record map to one record per repository.

    Several links may point at the same repository; the record is kept once,
    at the position of its first link.
    """
    seen = set()
    unique: List[RepoRecord] = []
    for record in records_by_link.values():
        if record.key in seen:
            continue
        seen.add(record.key)
        unique.append(record)
    return unique
