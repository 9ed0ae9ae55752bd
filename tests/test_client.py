"""
Tests for BookwiseClient and create_client.
"""

from __future__ import annotations

import pytest
from fakes import FakeGenerator, FakeResolver, FakeSpeech

from bookwise import BookwiseClient, create_client
from bookwise.application.audio import AudioOrchestrator
from bookwise.application.search import BookSearchAggregator
from bookwise.application.summary import SummaryOrchestrator
from bookwise.infrastructure.cache import BackgroundWriteQueue
from bookwise.infrastructure.persistence import InMemoryAudioStore, InMemorySummaryStore
from bookwise.shared.exceptions import InvalidQueryError, NotFoundError
from bookwise.shared.settings import ServiceSettings, Settings


class Closeable:
    def __init__(self):
        self.closed = 0

    async def close(self):
        self.closed += 1


@pytest.fixture
def http_client():
    return Closeable()


@pytest.fixture
def speech():
    return FakeSpeech()


@pytest.fixture
def client(sources_factory, cache, search_settings, summary_settings, audio_settings, speech, http_client):
    queue = BackgroundWriteQueue()
    summaries = SummaryOrchestrator(
        FakeResolver(text="It was the best of times, it was the worst of times. " * 20),
        FakeGenerator("Two cities, one revolution."),
        store=InMemorySummaryStore(),
        cache=cache,
        write_queue=queue,
        settings=summary_settings,
    )
    return BookwiseClient(
        BookSearchAggregator(sources_factory(), cache=cache, write_queue=queue, settings=search_settings),
        summaries,
        AudioOrchestrator(
            summaries.get_summary,
            speech,
            store=InMemoryAudioStore(),
            cache=cache,
            write_queue=queue,
            settings=audio_settings,
        ),
        cache=cache,
        write_queue=queue,
        closeables=[http_client],
    )


# =============================================================================
# Operations
# =============================================================================


class TestBookwiseClient:
    async def test_search_summary_audio_flow(self, client, speech):
        result = await client.aggregated_search("volume", limit=5)
        assert len(result.books) == 5

        summary = await client.generate_summary(result.books[0].book_id, "en", "concise")
        assert summary.text == "Two cities, one revolution."

        # Audio right after the summary, before background writes have run
        audio = await client.generate_audio(summary.id)
        assert audio.summary_id == summary.id
        assert not audio.is_synthetic_fallback
        assert speech.calls[0][0] == summary.text

        await client.aclose()

    async def test_get_summary(self, client):
        summary = await client.generate_summary("gutenberg:1")
        await client.flush()

        assert await client.get_summary(summary.id) == summary
        assert await client.get_summary("missing") is None
        await client.aclose()

    async def test_audio_for_unknown_summary(self, client):
        with pytest.raises(NotFoundError):
            await client.generate_audio("missing")
        await client.aclose()

    async def test_invalid_query(self, client):
        with pytest.raises(InvalidQueryError):
            await client.aggregated_search("   ")
        await client.aclose()

    async def test_cache_stats_and_invalidate(self, client):
        await client.aggregated_search("volume", limit=5)
        await client.flush()

        assert client.cache_stats().entry_count >= 1
        assert client.invalidate_cache() >= 1
        assert client.cache_stats().entry_count == 0
        await client.aclose()

    async def test_search_served_from_cache(self, client):
        await client.aggregated_search("volume", limit=5)
        await client.flush()

        assert (await client.aggregated_search("  VOLUME ", limit=5)).from_cache
        await client.aclose()


# =============================================================================
# Lifecycle
# =============================================================================


class TestLifecycle:
    async def test_aclose_closes_resources_once(self, client, http_client):
        await client.aclose()
        await client.aclose()

        assert http_client.closed == 1

    async def test_async_context_manager(self, client, http_client):
        async with client as entered:
            assert entered is client

        assert http_client.closed == 1

    def test_no_cache(self):
        bare = BookwiseClient(aggregator=None, summaries=None, audio=None)

        assert bare.cache_stats() is None
        assert bare.invalidate_cache() == 0


class TestCreateClient:
    async def test_from_settings(self):
        settings = Settings(services=ServiceSettings(huggingface_api_key="hf_test"))

        async with create_client(settings) as client:
            assert isinstance(client, BookwiseClient)
            assert client.cache_stats().entry_count == 0

    async def test_from_config_file(self, tmp_path, monkeypatch):
        path = tmp_path / "bookwise.yaml"
        path.write_text("cache:\n  max_size: 5\n", encoding="utf-8")
        for name in ("CACHE_MAX_CAPACITY", "CACHE_TTL_SECONDS", "BOOKWISE_CONFIG"):
            monkeypatch.delenv(name, raising=False)

        client = create_client(config_path=path)
        try:
            assert client.cache_stats().entry_count == 0
        finally:
            await client.aclose()
