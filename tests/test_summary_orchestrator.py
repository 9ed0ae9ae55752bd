"""Tests for SummaryOrchestrator."""

from __future__ import annotations

import asyncio

import pytest
from fakes import FakeGenerator, FakeResolver, make_book

from bookwise.application.summary import SummaryOrchestrator, build_metadata_input
from bookwise.domain.entities import SourceId, count_words
from bookwise.infrastructure.persistence import InMemorySummaryStore
from bookwise.shared.exceptions import (
    InvalidParameterError,
    NotFoundError,
    UpstreamError,
    UpstreamTimeoutError,
)
from bookwise.shared.settings import SummarySettings

BOOK_TEXT = "It is a truth universally acknowledged, that a single man in possession of a good fortune. " * 20


@pytest.fixture
def store():
    return InMemorySummaryStore()


@pytest.fixture
def make_orchestrator(cache, write_queue, store, summary_settings):
    def build(resolver=None, generator=None, *, settings=None, **kwargs):
        return SummaryOrchestrator(
            resolver or FakeResolver(text=BOOK_TEXT),
            generator or FakeGenerator(),
            store=kwargs.get("store", store),
            cache=kwargs.get("cache", cache),
            write_queue=write_queue,
            settings=settings or summary_settings,
        )

    return build


# ============================================================================
# Generation
# ============================================================================


class TestSummarize:
    async def test_generates_from_full_text(self, make_orchestrator):
        generator = FakeGenerator("Mr Darcy proposes. Elizabeth refuses.")
        orchestrator = make_orchestrator(generator=generator)

        record = await orchestrator.summarize("gutenberg:1342", "en", "concise")

        assert record.text == "Mr Darcy proposes. Elizabeth refuses."
        assert record.word_count == 5
        assert record.book_id == "gutenberg:1342"
        assert record.language == "en"
        assert record.style == "concise"
        assert not record.degraded_input
        assert generator.calls[0][1:] == ("en", "concise")

    async def test_word_count_matches_text(self, make_orchestrator):
        output = "\n\nOne two three.\n\n  Four five six seven.  \n"
        record = await make_orchestrator(generator=FakeGenerator(output)).summarize("gutenberg:1")

        assert record.word_count == count_words(record.text) == 7
        assert record.text == "One two three.\nFour five six seven."

    async def test_long_text_is_truncated(self, make_orchestrator):
        settings = SummarySettings(max_input_chars=1000, cache_read_timeout=1.0)
        generator = FakeGenerator()
        orchestrator = make_orchestrator(FakeResolver(text="word " * 5000), generator, settings=settings)

        await orchestrator.summarize("gutenberg:1")

        assert len(generator.calls[0][0]) <= 1000

    async def test_language_and_style_normalized(self, make_orchestrator):
        record = await make_orchestrator().summarize("gutenberg:1", " ES ", "Detailed")

        assert (record.language, record.style) == ("es", "detailed")

    @pytest.mark.parametrize(
        ("book_id", "language", "style"),
        [
            ("", "en", "concise"),
            ("gutenberg:1", "xx", "concise"),
            ("gutenberg:1", "en", "poetic"),
        ],
    )
    async def test_rejects_invalid_parameters(self, make_orchestrator, book_id, language, style):
        generator = FakeGenerator()
        orchestrator = make_orchestrator(generator=generator)

        with pytest.raises(InvalidParameterError):
            await orchestrator.summarize(book_id, language, style)
        assert generator.calls == []


# ============================================================================
# Degraded input
# ============================================================================


class TestMetadataFallback:
    async def test_thin_text_uses_metadata(self, make_orchestrator, pride_commercial):
        resolver = FakeResolver(text="", metadata=pride_commercial)
        generator = FakeGenerator()

        record = await make_orchestrator(resolver, generator).summarize("google:s1gVAAAAYAAJ")

        prompt_input = generator.calls[0][0]
        assert record.degraded_input
        assert record.book_title == "Pride and Prejudice"
        assert record.book_author == "Jane Austen"
        assert prompt_input.startswith("Book: Pride and Prejudice by Jane Austen.")
        assert "Description: The classic novel" in prompt_input

    async def test_no_text_no_metadata(self, make_orchestrator):
        generator = FakeGenerator()
        orchestrator = make_orchestrator(FakeResolver(text="", metadata=None), generator)

        with pytest.raises(NotFoundError):
            await orchestrator.summarize("gutenberg:999999")
        assert generator.calls == []

    def test_metadata_input_without_description(self):
        book = make_book(SourceId.OPEN_CATALOG, "/works/OL1W", "Emma", ())

        text = build_metadata_input(book)

        assert text == "Book: Emma by Unknown.\nNo additional content available for summarization."


# ============================================================================
# Failures
# ============================================================================


class TestSummaryFailures:
    async def test_content_timeout(self, make_orchestrator):
        settings = SummarySettings(content_timeout=0.05, cache_read_timeout=1.0)
        orchestrator = make_orchestrator(FakeResolver(text=BOOK_TEXT, delay=5), settings=settings)

        with pytest.raises(UpstreamTimeoutError) as exc_info:
            await orchestrator.summarize("gutenberg:1342")

        assert "content resolution timed out" in str(exc_info.value)
        assert "gutenberg:1342" in str(exc_info.value)

    async def test_generation_timeout(self, make_orchestrator):
        settings = SummarySettings(generation_timeout=0.05, cache_read_timeout=1.0)
        orchestrator = make_orchestrator(generator=FakeGenerator(delay=5), settings=settings)

        with pytest.raises(UpstreamTimeoutError) as exc_info:
            await orchestrator.summarize("gutenberg:1342")

        assert exc_info.value.timeout_seconds == 0.05
        assert "summary generation" in str(exc_info.value)

    async def test_generator_error_is_wrapped(self, make_orchestrator):
        orchestrator = make_orchestrator(generator=FakeGenerator(error=RuntimeError("model overloaded")))

        with pytest.raises(UpstreamError, match="summary generation failed for book 'gutenberg:1'.*model overloaded"):
            await orchestrator.summarize("gutenberg:1")

    async def test_empty_generation_is_an_error(self, make_orchestrator):
        orchestrator = make_orchestrator(generator=FakeGenerator("   \n "))

        with pytest.raises(UpstreamError, match="empty text"):
            await orchestrator.summarize("gutenberg:1")

    async def test_resolver_not_found_propagates(self, make_orchestrator):
        resolver = FakeResolver(error=NotFoundError("Book", "gutenberg:0"))

        with pytest.raises(NotFoundError):
            await make_orchestrator(resolver).summarize("gutenberg:0")


# ============================================================================
# Caching and reuse
# ============================================================================


class TestSummaryCaching:
    async def test_repeat_request_returns_same_record(self, make_orchestrator, write_queue):
        generator = FakeGenerator()
        orchestrator = make_orchestrator(generator=generator)

        first = await orchestrator.summarize("gutenberg:1342", "en", "concise")
        await write_queue.drain()
        second = await orchestrator.summarize("gutenberg:1342", "en", "concise")

        assert second.id == first.id
        assert len(generator.calls) == 1

    async def test_get_summary_by_id(self, make_orchestrator, write_queue):
        orchestrator = make_orchestrator()
        record = await orchestrator.summarize("gutenberg:1342")
        await write_queue.drain()

        assert await orchestrator.get_summary(record.id) == record
        assert await orchestrator.get_summary("unknown") is None

    async def test_stored_record_reused_when_source_unchanged(self, make_orchestrator, write_queue, store):
        first = await make_orchestrator().summarize("gutenberg:1342")
        await write_queue.drain()

        generator = FakeGenerator("A different summary.")
        second = await make_orchestrator(generator=generator, cache=None).summarize("gutenberg:1342")

        assert second.id == first.id
        assert generator.calls == []

    async def test_changed_source_regenerates(self, make_orchestrator, write_queue):
        first = await make_orchestrator().summarize("gutenberg:1342")
        await write_queue.drain()

        generator = FakeGenerator("A revised summary.")
        resolver = FakeResolver(text=BOOK_TEXT + " A newly added chapter.")
        second = await make_orchestrator(resolver, generator, cache=None).summarize("gutenberg:1342")

        assert second.id != first.id
        assert second.source_text_hash != first.source_text_hash

    async def test_concurrent_requests_share_generation(self, make_orchestrator):
        generator = FakeGenerator(delay=0.2)
        orchestrator = make_orchestrator(generator=generator)

        records = await asyncio.gather(
            *(orchestrator.summarize("gutenberg:1342", "en", "concise") for _ in range(3))
        )

        assert len({r.id for r in records}) == 1
        assert len(generator.calls) == 1

    async def test_cancelled_caller_does_not_break_others(self, make_orchestrator):
        generator = FakeGenerator(delay=0.1)
        orchestrator = make_orchestrator(generator=generator)

        first = asyncio.create_task(orchestrator.summarize("gutenberg:7"))
        second = asyncio.create_task(orchestrator.summarize("gutenberg:7"))
        await asyncio.sleep(0.01)
        first.cancel()

        record = await second
        assert record.book_id == "gutenberg:7"
        with pytest.raises(asyncio.CancelledError):
            await first
