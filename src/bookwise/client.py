"""
BookwiseClient - Outward surface of the library

Three operations, each backed by one orchestrator:

    aggregated_search(query, limit)                -> AggregatedResult
    generate_summary(book_id, language, style)     -> SummaryRecord
    generate_audio(summary_id, language, voice)    -> AudioRecord

Usage:
    async with create_client() as client:
        result = await client.aggregated_search("pride and prejudice", limit=5)
        summary = await client.generate_summary(result.books[0].book_id, "en", "concise")
        audio = await client.generate_audio(summary.id)
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from dependency_injector import providers
from typing_extensions import Self

from bookwise.application.audio import AudioOrchestrator
from bookwise.application.search import BookSearchAggregator
from bookwise.application.summary import SummaryOrchestrator
from bookwise.container import ApplicationContainer, configure_logging, load_config
from bookwise.domain.entities import AggregatedResult, AudioRecord, SummaryRecord
from bookwise.infrastructure.cache import BackgroundWriteQueue, CacheStats, ResultCache
from bookwise.shared.settings import Settings

logger = logging.getLogger(__name__)


class BookwiseClient:
    """
    Facade over search, summary and audio.

    Owns the shared cache, the background write queue and any HTTP clients
    passed in ``closeables``; ``aclose()`` drains pending writes and closes
    them.
    """

    def __init__(
        self,
        aggregator: BookSearchAggregator,
        summaries: SummaryOrchestrator,
        audio: AudioOrchestrator,
        *,
        cache: ResultCache | None = None,
        write_queue: BackgroundWriteQueue | None = None,
        closeables: Sequence[Any] = (),
    ):
        self._aggregator = aggregator
        self._summaries = summaries
        self._audio = audio
        self._cache = cache
        self._write_queue = write_queue
        self._closeables = list(closeables)
        self._closed = False

    @classmethod
    def from_container(cls, container: ApplicationContainer) -> BookwiseClient:
        """Build a client from a configured container."""
        return cls(
            container.aggregator(),
            container.summary_orchestrator(),
            container.audio_orchestrator(),
            cache=container.cache(),
            write_queue=container.write_queue(),
            closeables=[
                container.gutendex(),
                container.open_library(),
                container.google_books(),
                container.huggingface_client(),
            ],
        )

    async def aggregated_search(self, query: str, limit: int = 10) -> AggregatedResult:
        """Search every catalog; see BookSearchAggregator.search."""
        return await self._aggregator.search(query, limit)

    async def generate_summary(
        self,
        book_id: str,
        language: str = "en",
        style: str = "concise",
    ) -> SummaryRecord:
        """Summarize a book; see SummaryOrchestrator.summarize."""
        return await self._summaries.summarize(book_id, language, style)

    async def generate_audio(
        self,
        summary_id: str,
        language: str = "en",
        voice_type: str | None = None,
    ) -> AudioRecord:
        """Narrate a summary; see AudioOrchestrator.synthesize."""
        return await self._audio.synthesize(summary_id, language, voice_type)

    async def get_summary(self, summary_id: str) -> SummaryRecord | None:
        return await self._summaries.get_summary(summary_id)

    def cache_stats(self) -> CacheStats | None:
        return self._cache.stats() if self._cache is not None else None

    def invalidate_cache(self) -> int:
        """Drop every cached result; returns the number of entries removed."""
        if self._cache is None:
            return 0
        removed = self._cache.invalidate_all()
        logger.info(f"Invalidated {removed} cached results")
        return removed

    async def flush(self) -> None:
        """Wait for pending background cache/store writes."""
        if self._write_queue is not None:
            await self._write_queue.drain()

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._write_queue is not None:
            await self._write_queue.close()
        for resource in self._closeables:
            await resource.close()
        logger.debug("Bookwise client closed")

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()


def create_client(
    settings: Settings | None = None,
    *,
    config_path: str | Path | None = None,
    setup_logging: bool = False,
) -> BookwiseClient:
    """
    Wire a BookwiseClient through the DI container.

    Args:
        settings: Explicit settings; when omitted they are loaded from
            ``config_path``/$BOOKWISE_CONFIG and the environment
        config_path: YAML settings file
        setup_logging: Apply ``configure_logging`` with the configured level
    """
    container = ApplicationContainer()
    if settings is not None:
        container.settings.override(providers.Object(settings))
    else:
        container.config.from_dict(load_config(config_path))

    resolved: Settings = container.settings()
    if setup_logging:
        configure_logging(resolved.log_level)
    logger.debug(f"Creating Bookwise client (log level {resolved.log_level})")
    return BookwiseClient.from_container(container)
