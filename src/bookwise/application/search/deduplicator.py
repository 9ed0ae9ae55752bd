"""
Deduplicator - Collapse the same work reported by several catalogs

Groups ScoredBook records by identity key (normalized title + primary
author) and keeps exactly one winner per group.

Winner selection walks the configured precedence, by default:
1. Lowest source priority rank (full-text catalog first)
2. Highest completeness score
3. Highest relevance score
Remaining ties keep the record seen first.

Every aggregated search goes through ``dedupe``; there is no code path that
returns ungrouped records.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from bookwise.domain.entities import RawBook, ScoredBook, SourceId

logger = logging.getLogger(__name__)


class Precedence(Enum):
    """Criteria available for choosing a duplicate group's winner."""

    SOURCE_PRIORITY = "priority"
    COMPLETENESS = "completeness"
    RELEVANCE = "relevance"


DEFAULT_SOURCE_PRIORITY: dict[SourceId, int] = {
    SourceId.FULLTEXT: 0,
    SourceId.OPEN_CATALOG: 1,
    SourceId.COMMERCIAL: 2,
}

DEFAULT_PRECEDENCE: tuple[Precedence, ...] = (
    Precedence.SOURCE_PRIORITY,
    Precedence.COMPLETENESS,
    Precedence.RELEVANCE,
)


@dataclass(frozen=True)
class DedupConfig:
    """
    Deduplication policy.

    ``source_priority`` maps each catalog to a rank; lower ranks win.
    ``precedence`` orders the tie-break criteria.
    """

    source_priority: dict[SourceId, int] = field(default_factory=lambda: dict(DEFAULT_SOURCE_PRIORITY))
    precedence: tuple[Precedence, ...] = DEFAULT_PRECEDENCE

    @classmethod
    def from_names(
        cls,
        source_priority: dict[str, int] | None = None,
        precedence: tuple[str, ...] | list[str] | None = None,
    ) -> DedupConfig:
        """Build from plain settings values, e.g. ``{"gutenberg": 0}`` and ``("priority", ...)``."""
        priority = dict(DEFAULT_SOURCE_PRIORITY)
        for prefix, rank in (source_priority or {}).items():
            priority[SourceId.from_prefix(prefix)] = int(rank)
        order = tuple(Precedence(name) for name in precedence) if precedence else DEFAULT_PRECEDENCE
        return cls(source_priority=priority, precedence=order)

    def rank_of(self, source: SourceId) -> int:
        return self.source_priority.get(source, len(self.source_priority))


@dataclass
class DedupStats:
    """Statistics from one deduplication pass."""

    total_input: int = 0
    unique_books: int = 0
    duplicates_removed: int = 0
    by_source: dict[str, int] = field(default_factory=dict)
    winners_by_source: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_input": self.total_input,
            "unique_books": self.unique_books,
            "duplicates_removed": self.duplicates_removed,
            "by_source": self.by_source,
            "winners_by_source": self.winners_by_source,
        }


class Deduplicator:
    """
    Groups scored records and picks one winner per identity key.

    Usage:
        deduplicator = Deduplicator()
        books = deduplicator.dedupe(scored_books)

        # Keep scores for ranking
        winners = deduplicator.select_winners(scored_books)
    """

    def __init__(self, config: DedupConfig | None = None):
        self._config = config or DedupConfig()

    @property
    def config(self) -> DedupConfig:
        return self._config

    def dedupe(self, scored: list[ScoredBook]) -> list[RawBook]:
        """Deduplicated records. Output order is unspecified; callers re-sort."""
        return [s.book for s in self.select_winners(scored)]

    def select_winners(self, scored: list[ScoredBook]) -> list[ScoredBook]:
        winners, _ = self.dedupe_with_stats(scored)
        return winners

    def dedupe_with_stats(self, scored: list[ScoredBook]) -> tuple[list[ScoredBook], DedupStats]:
        stats = DedupStats(total_input=len(scored))

        groups: dict[str, list[ScoredBook]] = {}
        for item in scored:
            source = item.source.value
            stats.by_source[source] = stats.by_source.get(source, 0) + 1
            groups.setdefault(item.identity_key, []).append(item)

        winners: list[ScoredBook] = []
        for key, members in groups.items():
            winner = members[0] if len(members) == 1 else self._select_winner(members)
            if len(members) > 1:
                logger.debug(
                    f"Collapsed {len(members)} records for '{key}' into {winner.book.book_id}"
                )
            winners.append(winner)
            source = winner.source.value
            stats.winners_by_source[source] = stats.winners_by_source.get(source, 0) + 1

        stats.unique_books = len(winners)
        stats.duplicates_removed = stats.total_input - stats.unique_books
        return winners, stats

    def _select_winner(self, members: list[ScoredBook]) -> ScoredBook:
        # min() keeps the first of equal keys, so first-seen wins full ties
        return min(members, key=self._sort_key)

    def _sort_key(self, item: ScoredBook) -> tuple[float, ...]:
        key: list[float] = []
        for criterion in self._config.precedence:
            if criterion is Precedence.SOURCE_PRIORITY:
                key.append(self._config.rank_of(item.source))
            elif criterion is Precedence.COMPLETENESS:
                key.append(-item.completeness)
            else:
                key.append(-item.relevance)
        return tuple(key)
