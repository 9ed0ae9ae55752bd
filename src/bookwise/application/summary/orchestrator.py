"""
SummaryOrchestrator - Bounded, timeout-guarded book summaries

Pipeline for ``summarize(book_id, language, style)``:
1. Validate language and style
2. Cache lookup by (book_id, language, style), read time-boxed
3. Resolve full text (30s budget by default)
4. Thin or missing text: build a degraded input from catalog metadata
5. Truncate to the character budget and hash the exact generator input
6. Reuse a stored record whose input hash is unchanged
7. Generate (120s budget by default), recount words, build the record
8. Hand cache and store writes to the background queue and return

Concurrent identical requests share one in-flight generation.

Error mapping:
    InvalidParameterError  unsupported language/style, empty id
    NotFoundError          the book does not exist or has no text nor metadata
    UpstreamTimeoutError   content resolution or generation ran out of time
    UpstreamError          any other collaborator failure, cause in the message
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import TypeVar

from cachetools import TTLCache

from bookwise.application.ports import ContentResolver, SummaryStore, TextGenerator
from bookwise.application.summary.text import clean_summary, normalize_whitespace, truncate_chars
from bookwise.domain.entities import RawBook, SummaryRecord, source_hash
from bookwise.infrastructure.cache import BackgroundWriteQueue, ResultCache, make_cache_key
from bookwise.shared.async_utils import run_with_timeout
from bookwise.shared.exceptions import (
    BookwiseError,
    ErrorContext,
    InvalidParameterError,
    NotFoundError,
    UpstreamError,
)
from bookwise.shared.settings import SummarySettings

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class _InFlight:
    task: asyncio.Task[SummaryRecord]
    waiters: int = 0


@dataclass(frozen=True)
class _PreparedInput:
    text: str
    degraded: bool
    metadata: RawBook | None = None


def build_metadata_input(book: RawBook, thin_text: str = "") -> str:
    """Summary input assembled from catalog metadata when the text is unusable."""
    lines = [f"Book: {book.title} by {book.author_names}."]
    if book.publisher:
        lines.append(f"Publisher: {book.publisher}")
    if book.published_date:
        lines.append(f"Published: {book.published_date}")
    if book.description:
        lines.append(f"Description: {book.description.strip()}")
    if thin_text:
        lines.append(f"Excerpt: {thin_text}")
    if not book.description and not thin_text:
        lines.append("No additional content available for summarization.")
    return "\n".join(lines)


class SummaryOrchestrator:
    """
    Produces SummaryRecords for books.

    Usage:
        orchestrator = SummaryOrchestrator(resolver, generator, store=store, cache=cache,
                                           write_queue=queue)
        record = await orchestrator.summarize("gutenberg:1342", "en", "concise")
    """

    def __init__(
        self,
        resolver: ContentResolver,
        generator: TextGenerator,
        *,
        store: SummaryStore | None = None,
        cache: ResultCache | None = None,
        write_queue: BackgroundWriteQueue | None = None,
        settings: SummarySettings | None = None,
    ):
        self._resolver = resolver
        self._generator = generator
        self._store = store
        self._cache = cache
        self._write_queue = write_queue or BackgroundWriteQueue()
        self._settings = settings or SummarySettings()
        self._inflight: dict[str, _InFlight] = {}
        # Records handed to the write queue stay reachable by id until it catches up
        self._recent: TTLCache[str, SummaryRecord] = TTLCache(maxsize=256, ttl=self._settings.cache_ttl)

    @staticmethod
    def cache_key(book_id: str, language: str, style: str) -> str:
        return make_cache_key("summary", book_id=book_id, language=language, style=style)

    @staticmethod
    def id_cache_key(summary_id: str) -> str:
        return make_cache_key("summary_by_id", id=summary_id)

    async def summarize(self, book_id: str, language: str = "en", style: str = "concise") -> SummaryRecord:
        """
        Summary of ``book_id`` in ``language`` and ``style``.

        Returns:
            The cached record when one exists, otherwise a freshly generated one
        """
        book_id, language, style = self._validate(book_id, language, style)
        key = self.cache_key(book_id, language, style)

        cached = await self._read_cache(key)
        if cached is not None:
            logger.debug(f"Summary cache hit: {key}")
            return cached

        entry = self._inflight.get(key)
        if entry is None:
            task = asyncio.create_task(self._produce(book_id, language, style, key))
            entry = _InFlight(task)
            self._inflight[key] = entry
            task.add_done_callback(lambda _t, k=key, e=entry: self._forget(k, e))
        else:
            logger.debug(f"Joining in-flight summary for {key}")

        entry.waiters += 1
        try:
            return await asyncio.shield(entry.task)
        finally:
            entry.waiters -= 1
            if entry.waiters == 0 and not entry.task.done():
                # Every caller went away
                entry.task.cancel()

    async def get_summary(self, summary_id: str) -> SummaryRecord | None:
        """Look a record up by id (recent records, cache, then store)."""
        if not summary_id:
            return None
        recent = self._recent.get(summary_id)
        if recent is not None:
            return recent
        cached = await self._read_cache(self.id_cache_key(summary_id))
        if cached is not None:
            return cached
        if self._store is None:
            return None
        return await self._store.get(summary_id)

    def _forget(self, key: str, entry: _InFlight) -> None:
        if self._inflight.get(key) is entry:
            del self._inflight[key]

    async def _produce(self, book_id: str, language: str, style: str, key: str) -> SummaryRecord:
        prepared = await self._prepare_input(book_id)
        digest = source_hash(prepared.text)

        existing = await self._find_stored(book_id, language, style)
        if existing is not None and existing.source_text_hash == digest:
            logger.info(f"Reusing stored summary {existing.id} for {book_id} (source unchanged)")
            self._schedule_persist(key, existing, save=False)
            return existing

        generated = await self._guard(
            self._generator.summarize(prepared.text, language, style),
            step="summary generation",
            book_id=book_id,
            timeout=self._settings.generation_timeout,
        )
        text = clean_summary(generated or "")
        if not text:
            raise UpstreamError(
                f"summary generation returned empty text for book '{book_id}'",
                service="text-generator",
                context=ErrorContext(operation="summary generation", input_value=book_id),
            )

        metadata = prepared.metadata
        record = SummaryRecord.create(
            book_id=book_id,
            language=language,
            style=style,
            text=text,
            source_text=prepared.text,
            degraded_input=prepared.degraded,
            book_title=metadata.title if metadata else None,
            book_author=metadata.author_names if metadata else None,
        )
        logger.info(
            f"Generated summary {record.id} for {book_id} ({language}/{style}): "
            f"{record.word_count} words from {len(prepared.text)} chars"
            + (" [metadata fallback]" if prepared.degraded else "")
        )
        self._schedule_persist(key, record, save=True)
        return record

    async def _prepare_input(self, book_id: str) -> _PreparedInput:
        text = await self._guard(
            self._resolver.resolve(book_id),
            step="content resolution",
            book_id=book_id,
            timeout=self._settings.content_timeout,
        )
        text = normalize_whitespace(text or "")
        max_chars = self._settings.max_input_chars

        if len(text) >= self._settings.min_usable_chars:
            return _PreparedInput(truncate_chars(text, max_chars), degraded=False)

        metadata = await self._guard(
            self._resolver.describe(book_id),
            step="metadata lookup",
            book_id=book_id,
            timeout=self._settings.content_timeout,
        )
        if metadata is None:
            if not text:
                raise NotFoundError("Book content", book_id)
            logger.warning(f"Only {len(text)} chars of text and no metadata for {book_id}")
            return _PreparedInput(truncate_chars(text, max_chars), degraded=True)

        logger.info(f"Text for {book_id} unusable ({len(text)} chars), summarizing metadata instead")
        fallback = build_metadata_input(metadata, text)
        return _PreparedInput(truncate_chars(fallback, max_chars), degraded=True, metadata=metadata)

    async def _guard(self, coro: Awaitable[T], *, step: str, book_id: str, timeout: float) -> T:
        """Time-box one collaborator call and translate its failures."""
        try:
            return await run_with_timeout(coro, timeout, operation=step, detail=f"for book '{book_id}'")
        except BookwiseError:
            raise
        except Exception as e:
            raise UpstreamError(
                f"{step} failed for book '{book_id}': {str(e) or type(e).__name__}",
                context=ErrorContext(operation=step, input_value=book_id, related_errors=(e,)),
            ) from e

    async def _find_stored(self, book_id: str, language: str, style: str) -> SummaryRecord | None:
        if self._store is None:
            return None
        try:
            return await self._store.find(book_id, language, style)
        except Exception as e:
            # Store is an optimization here; generation still works without it
            logger.warning(f"Summary store lookup failed for {book_id}: {e}")
            return None

    async def _read_cache(self, key: str) -> SummaryRecord | None:
        if self._cache is None:
            return None
        return await self._cache.aget(key, timeout=self._settings.cache_read_timeout)

    def _schedule_persist(self, key: str, record: SummaryRecord, *, save: bool) -> None:
        self._recent[record.id] = record
        cache = self._cache
        store = self._store if save else None
        ttl = self._settings.cache_ttl

        async def persist() -> None:
            if cache is not None:
                await cache.aset(key, record, ttl)
                await cache.aset(self.id_cache_key(record.id), record, ttl)
            if store is not None:
                await store.save(record)

        self._write_queue.submit(persist, name=f"summary:{record.id}")

    def _validate(self, book_id: str, language: str, style: str) -> tuple[str, str, str]:
        if not isinstance(book_id, str) or not book_id.strip():
            raise InvalidParameterError("book_id", book_id, "a non-empty book id such as 'gutenberg:1342'")
        language = (language or "").strip().lower()
        if language not in self._settings.languages:
            raise InvalidParameterError("language", language, f"one of {', '.join(self._settings.languages)}")
        style = (style or "").strip().lower()
        if style not in self._settings.styles:
            raise InvalidParameterError("style", style, f"one of {', '.join(self._settings.styles)}")
        return book_id.strip(), language, style

