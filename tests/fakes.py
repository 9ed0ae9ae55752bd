"""
Test doubles for the collaborator protocols.

Each fake records its calls and can be told to fail or stall.
"""

from __future__ import annotations

import asyncio
from typing import Any

from bookwise.domain.entities import RawBook, SourceId, SummaryRecord

WAV_HEADER = b"RIFF\x24\x08\x00\x00WAVEfmt "


def make_book(
    source: SourceId = SourceId.FULLTEXT,
    external_id: str = "1",
    title: str = "Untitled",
    authors: tuple[str, ...] = ("Anonymous",),
    **fields: Any,
) -> RawBook:
    return RawBook(source=source, external_id=external_id, title=title, authors=authors, **fields)


def make_summary(
    text: str = "Elizabeth Bennet meets Mr Darcy and misjudges him.",
    book_id: str = "gutenberg:1342",
    language: str = "en",
    style: str = "concise",
) -> SummaryRecord:
    return SummaryRecord.create(
        book_id=book_id,
        language=language,
        style=style,
        text=text,
        source_text="source text",
    )


class FakeSource:
    """SourceClient returning canned books."""

    def __init__(
        self,
        source_id: SourceId,
        books: list[RawBook] | None = None,
        *,
        error: Exception | None = None,
        delay: float = 0.0,
    ):
        self.source_id = source_id
        self.books = list(books or [])
        self.error = error
        self.delay = delay
        self.calls: list[tuple[str, int]] = []

    async def search(self, query: str, limit: int) -> list[RawBook]:
        self.calls.append((query, limit))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.books[:limit]


class FakeResolver:
    """ContentResolver with fixed text and metadata."""

    def __init__(
        self,
        text: str = "",
        metadata: RawBook | None = None,
        *,
        error: Exception | None = None,
        delay: float = 0.0,
    ):
        self.text = text
        self.metadata = metadata
        self.error = error
        self.delay = delay
        self.resolve_calls: list[str] = []
        self.describe_calls: list[str] = []

    async def resolve(self, book_id: str) -> str:
        self.resolve_calls.append(book_id)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.text

    async def describe(self, book_id: str) -> RawBook | None:
        self.describe_calls.append(book_id)
        return self.metadata


class FakeGenerator:
    """TextGenerator echoing a fixed summary."""

    def __init__(
        self,
        output: str = "A young woman learns that first impressions can deceive.",
        *,
        error: Exception | None = None,
        delay: float = 0.0,
    ):
        self.output = output
        self.error = error
        self.delay = delay
        self.calls: list[tuple[str, str, str]] = []

    async def summarize(self, text: str, language: str, style: str) -> str:
        self.calls.append((text, language, style))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.output


class FakeSpeech:
    """SpeechSynthesizer that fails for the voices in ``failing``."""

    def __init__(
        self,
        payload: bytes = WAV_HEADER + b"\x00" * 4096,
        *,
        failing: set[str | None] | None = None,
        error: Exception | None = None,
        delay: float = 0.0,
    ):
        self.payload = payload
        self.failing = failing or set()
        self.error = error
        self.delay = delay
        self.calls: list[tuple[str, str, str | None]] = []

    async def synthesize(self, text: str, language: str, voice: str | None = None) -> bytes:
        self.calls.append((text, language, voice))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if voice in self.failing:
            raise RuntimeError(f"voice {voice} unavailable")
        return self.payload

    def model_for(self, language: str, voice: str | None = None) -> str:
        return voice or f"fake-tts-{language}"
