"""Partition extracted rows by store-name prefix and rank each partition."""

from __future__ import annotations

from typing import Iterable, Sequence

from salesboard.logging_config import get_logger
from salesboard.schemas import ExtractedRow, ResultGroup

LOGGER = get_logger(__name__)


def match_prefix(store: str, prefixes: Sequence[str]) -> str | None:
    """Return the longest configured prefix that *store* starts with."""

    name = store.strip().casefold()
    best: str | None = None
    best_len = 0
    for prefix in prefixes:
        folded = prefix.strip().casefold()
        if folded and name.startswith(folded) and len(folded) > best_len:
            best, best_len = prefix, len(folded)
    return best


def group_rows(
    rows: Iterable[ExtractedRow],
    prefixes: Sequence[str],
    top_n: int = 7,
) -> list[ResultGroup]:
    """Build one ranked group per prefix, in prefix order.

    Rows are sorted by sales descending; ties keep encounter order. Each
    group keeps its top *top_n* rows and totals are computed over those only.
    Rows matching no prefix are left out.
    """

    buckets: dict[str, list[ExtractedRow]] = {prefix: [] for prefix in prefixes}
    unmatched = 0
    for row in sorted(rows, key=lambda item: item.position):
        prefix = match_prefix(row.store, prefixes)
        if prefix is None:
            unmatched += 1
            continue
        buckets[prefix].append(row)

    groups: list[ResultGroup] = []
    for prefix in prefixes:
        members = buckets[prefix]
        ranked = sorted(members, key=lambda item: item.sales, reverse=True)[:top_n]
        groups.append(ResultGroup(name=prefix, rows=ranked, matched=len(members)))

    LOGGER.info(
        "Grouped rows | groups=%s unmatched=%s top_n=%s",
        {group.name: group.matched for group in groups},
        unmatched,
        top_n,
    )
    return groups


__all__ = ["group_rows", "match_prefix"]
