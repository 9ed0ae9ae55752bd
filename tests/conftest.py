"""
Pytest configuration and shared fixtures.
"""

from __future__ import annotations

import pytest
from fakes import FakeGenerator, FakeResolver, FakeSource, make_book

from bookwise.domain.entities import SourceId
from bookwise.infrastructure.cache import BackgroundWriteQueue, ResultCache
from bookwise.shared.settings import AudioSettings, SearchSettings, SummarySettings

# ============================================================
# Infrastructure Fixtures
# ============================================================


@pytest.fixture
def cache():
    """Fresh result cache per test."""
    return ResultCache(max_size=100, ttl=3600)


@pytest.fixture
async def write_queue():
    """Background write queue, closed after the test."""
    queue = BackgroundWriteQueue(max_pending=64)
    yield queue
    await queue.close()


# ============================================================
# Settings Fixtures (generous cache read timeouts for slow CI)
# ============================================================


@pytest.fixture
def search_settings():
    return SearchSettings(per_source_timeout=0.5, cache_read_timeout=1.0)


@pytest.fixture
def summary_settings():
    return SummarySettings(content_timeout=0.5, generation_timeout=0.5, cache_read_timeout=1.0)


@pytest.fixture
def audio_settings():
    return AudioSettings(synthesis_timeout=0.5, cache_read_timeout=1.0)


# ============================================================
# Catalog Data
# ============================================================


@pytest.fixture
def pride_fulltext():
    """Pride and Prejudice as Project Gutenberg lists it: sparse metadata."""
    return make_book(
        SourceId.FULLTEXT,
        "1342",
        "Pride and Prejudice",
        ("Austen, Jane",),
        publisher="Project Gutenberg",
        language="en",
        full_text_url="https://www.gutenberg.org/files/1342/1342-0.txt",
    )


@pytest.fixture
def pride_commercial():
    """The same work from a commercial catalog: rich metadata."""
    return make_book(
        SourceId.COMMERCIAL,
        "s1gVAAAAYAAJ",
        "Pride and Prejudice",
        ("Jane Austen",),
        description="The classic novel of manners, marriage and first impressions.",
        isbn="9780141439518",
        publisher="Penguin",
        published_date="2003-04-29",
        page_count=480,
        language="en",
        cover_url="https://books.google.com/cover.jpg",
        preview_url="https://books.google.com/preview",
    )


@pytest.fixture
def sources_factory():
    """Three catalogs with five distinct books each."""

    def build(per_source: int = 5) -> list[FakeSource]:
        result = []
        for source in SourceId:
            books = [
                make_book(source, f"{source.value}-{i}", f"{source.value.title()} Volume {i}", (f"Author {source.value} {i}",))
                for i in range(per_source)
            ]
            result.append(FakeSource(source, books))
        return result

    return build


@pytest.fixture
def resolver():
    return FakeResolver(text="It is a truth universally acknowledged. " * 50)


@pytest.fixture
def generator():
    return FakeGenerator()
