"""
BookSearchAggregator - One ranked, deduplicated page from every catalog

Flow per search:
1. Validate query and limit (reject, never clamp)
2. Cache read under a short timeout; a slow read is a miss
3. Call every SourceClient concurrently, each under its own timeout
4. Score -> deduplicate -> sort -> truncate
5. Hand the cache write to the background queue and return

A catalog that fails or times out contributes nothing and is logged as a
PartialSourceFailure. The search only fails when every catalog failed and
no cached result exists.

Example:
    >>> aggregator = BookSearchAggregator(
    ...     sources=[gutendex, open_library, google_books],
    ...     cache=cache,
    ...     write_queue=queue,
    ... )
    >>> result = await aggregator.search("pride and prejudice", limit=10)
    >>> [b.book_id for b in result.books][:1]
    ['gutenberg:1342']
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from collections.abc import Sequence
from dataclasses import replace

from bookwise.application.ports import SourceClient
from bookwise.application.search.deduplicator import Deduplicator
from bookwise.application.search.query_interpreter import QueryInterpreter
from bookwise.application.search.relevance import RelevanceScorer
from bookwise.domain.entities import AggregatedResult, QueryInterpretation, RawBook, ScoredBook
from bookwise.infrastructure.cache import BackgroundWriteQueue, ResultCache, make_cache_key
from bookwise.shared.exceptions import (
    ConfigurationError,
    ErrorContext,
    InvalidParameterError,
    InvalidQueryError,
    PartialSourceFailure,
    UpstreamError,
    UpstreamTimeoutError,
)
from bookwise.shared.settings import SearchSettings

logger = logging.getLogger(__name__)


class BookSearchAggregator:
    """
    Aggregates book search results from several catalogs.

    Responsibilities:
    1. Fan out to all catalogs with per-source time boxes
    2. Absorb per-source failures
    3. Score, deduplicate and rank the combined candidates
    4. Serve and fill the shared result cache
    """

    def __init__(
        self,
        sources: Sequence[SourceClient],
        *,
        scorer: RelevanceScorer | None = None,
        deduplicator: Deduplicator | None = None,
        interpreter: QueryInterpreter | None = None,
        cache: ResultCache | None = None,
        write_queue: BackgroundWriteQueue | None = None,
        settings: SearchSettings | None = None,
    ):
        if not sources:
            raise ConfigurationError("BookSearchAggregator needs at least one source client")
        self._sources = list(sources)
        self._interpreter = interpreter or QueryInterpreter()
        self._scorer = scorer or RelevanceScorer(interpreter=self._interpreter)
        self._deduplicator = deduplicator or Deduplicator()
        self._cache = cache
        self._write_queue = write_queue or BackgroundWriteQueue()
        self._settings = settings or SearchSettings()

    @property
    def sources(self) -> list[SourceClient]:
        return list(self._sources)

    def per_source_limit(self, limit: int) -> int:
        """Candidates requested from each catalog so enough survive deduplication."""
        return max(self._settings.min_per_source, math.ceil(limit / len(self._sources)))

    async def search(self, query: str, limit: int = 10) -> AggregatedResult:
        """
        Search every catalog and return one ranked page.

        Args:
            query: Free-text query (title, author, topic)
            limit: Maximum books to return, 1..max_limit

        Returns:
            AggregatedResult with deduplicated books, best first

        Raises:
            InvalidQueryError: empty, too short or too long query
            InvalidParameterError: limit out of range
            UpstreamError: every catalog failed and nothing was cached
        """
        query = self._validate_query(query)
        self._validate_limit(limit)
        cache_key = self.cache_key(query, limit)

        cached = await self._read_cache(cache_key)
        if cached is not None:
            logger.debug(f"Search cache hit: {cache_key}")
            return replace(cached, from_cache=True)

        interpretation = self._interpreter.interpret(query)
        per_source = self.per_source_limit(limit)
        started = time.monotonic()

        outcomes = await asyncio.gather(
            *(self._call_source(client, query, per_source) for client in self._sources)
        )

        candidates: list[RawBook] = []
        failures: list[PartialSourceFailure] = []
        for books, failure in outcomes:
            candidates.extend(books)
            if failure is not None:
                failures.append(failure)

        if len(failures) == len(self._sources):
            cached = await self._read_cache(cache_key)
            if cached is not None:
                logger.warning(f"All sources failed for '{query}', serving cached result")
                return replace(cached, from_cache=True)
            causes = "; ".join(str(f) for f in failures)
            raise UpstreamError(
                f"all {len(failures)} book sources failed for query '{query}': {causes}",
                context=ErrorContext(
                    operation="aggregated_search",
                    input_value=query,
                    related_errors=tuple(failures),
                    suggestion="Try again shortly",
                ),
            )

        ranked = self.rank(candidates, interpretation)
        result = AggregatedResult(
            books=tuple(s.book for s in ranked[:limit]),
            total_count=len(ranked),
            query=interpretation,
            limit=limit,
            failed_sources=tuple(f.source for f in failures),
        )
        logger.info(
            f"Search '{query}' (limit={limit}): {len(candidates)} candidates, "
            f"{len(ranked)} unique, {len(failures)} failed sources, "
            f"{time.monotonic() - started:.2f}s"
        )

        self._schedule_cache_write(cache_key, result)
        return result

    def rank(self, candidates: list[RawBook], interpretation: QueryInterpretation) -> list[ScoredBook]:
        """Score, deduplicate and sort candidates; no truncation."""
        scored = self._scorer.score_all(candidates, interpretation)
        winners = self._deduplicator.select_winners(scored)
        config = self._deduplicator.config
        return sorted(
            winners,
            key=lambda s: (-s.relevance, -s.completeness, config.rank_of(s.source)),
        )

    @staticmethod
    def cache_key(query: str, limit: int) -> str:
        return make_cache_key("search", query=" ".join(query.casefold().split()), limit=limit)

    async def _call_source(
        self,
        client: SourceClient,
        query: str,
        per_source: int,
    ) -> tuple[list[RawBook], PartialSourceFailure | None]:
        source = client.source_id.value
        timeout = self._settings.per_source_timeout
        try:
            books = await asyncio.wait_for(client.search(query, per_source), timeout=timeout)
        except TimeoutError:
            failure = PartialSourceFailure(source, UpstreamTimeoutError(f"{source} search", timeout))
        except Exception as e:
            failure = PartialSourceFailure(source, e)
        else:
            books = [b for b in books if b.title]
            logger.debug(f"{source}: {len(books)} results")
            return books, None

        logger.warning(f"Source failed, continuing without it: {failure}")
        return [], failure

    async def _read_cache(self, key: str) -> AggregatedResult | None:
        if self._cache is None:
            return None
        return await self._cache.aget(key, timeout=self._settings.cache_read_timeout)

    def _schedule_cache_write(self, key: str, result: AggregatedResult) -> None:
        if self._cache is None:
            return
        cache = self._cache
        ttl = self._settings.cache_ttl
        self._write_queue.submit(lambda: cache.aset(key, result, ttl), name=f"cache:{key}")

    def _validate_query(self, query: str) -> str:
        if not isinstance(query, str):
            raise InvalidQueryError(None, "query must be a string")
        trimmed = query.strip()
        if not trimmed:
            raise InvalidQueryError(query, "query cannot be empty")
        if len(trimmed) < self._settings.min_query_length:
            raise InvalidQueryError(
                query, f"query must be at least {self._settings.min_query_length} characters"
            )
        if len(trimmed) > self._settings.max_query_length:
            raise InvalidQueryError(
                query[:50], f"query must be at most {self._settings.max_query_length} characters"
            )
        return trimmed

    def _validate_limit(self, limit: int) -> None:
        if isinstance(limit, bool) or not isinstance(limit, int):
            raise InvalidParameterError("limit", limit, f"an integer between 1 and {self._settings.max_limit}")
        if limit < 1 or limit > self._settings.max_limit:
            raise InvalidParameterError("limit", limit, f"an integer between 1 and {self._settings.max_limit}")
