"""
Collaborator interfaces consumed by the application layer.

Concrete implementations live in ``bookwise.infrastructure``; tests supply
fakes. All of them are structural (``typing.Protocol``), nothing has to
inherit from these classes.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from bookwise.domain.entities import AudioRecord, RawBook, SourceId, SummaryRecord


@runtime_checkable
class SourceClient(Protocol):
    """One external catalog. Raises on failure, never returns partial junk."""

    source_id: SourceId

    async def search(self, query: str, limit: int) -> list[RawBook]: ...


class ContentResolver(Protocol):
    async def resolve(self, book_id: str) -> str:
        """
        Full text for ``book_id``.

        Returns an empty string when the book exists but has no text
        available; raises NotFoundError when the book does not exist.
        """
        ...

    async def describe(self, book_id: str) -> RawBook | None:
        """Catalog metadata for ``book_id``, or None when unknown."""
        ...


class TextGenerator(Protocol):
    async def summarize(self, text: str, language: str, style: str) -> str: ...


class SpeechSynthesizer(Protocol):
    async def synthesize(self, text: str, language: str, voice: str | None) -> bytes: ...


class SummaryStore(Protocol):
    async def get(self, summary_id: str) -> SummaryRecord | None: ...

    async def find(self, book_id: str, language: str, style: str) -> SummaryRecord | None: ...

    async def save(self, record: SummaryRecord) -> None: ...


class AudioStore(Protocol):
    async def find(self, summary_id: str, language: str, voice_type: str) -> AudioRecord | None: ...

    async def save(self, record: AudioRecord) -> None: ...
