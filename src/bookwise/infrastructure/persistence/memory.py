"""
In-memory record stores.

Default SummaryStore/AudioStore implementations. Records live for the
lifetime of the process; a database-backed store only has to implement
the same async methods.
"""

from __future__ import annotations

import logging

from bookwise.domain.entities import AudioRecord, SummaryRecord

logger = logging.getLogger(__name__)


class InMemorySummaryStore:
    """Summaries by id and by (book_id, language, style); the newest record wins."""

    def __init__(self) -> None:
        self._by_id: dict[str, SummaryRecord] = {}
        self._latest: dict[tuple[str, str, str], str] = {}

    async def get(self, summary_id: str) -> SummaryRecord | None:
        return self._by_id.get(summary_id)

    async def find(self, book_id: str, language: str, style: str) -> SummaryRecord | None:
        summary_id = self._latest.get((book_id, language, style))
        return self._by_id.get(summary_id) if summary_id else None

    async def find_by_source_hash(self, book_id: str, source_text_hash: str) -> list[SummaryRecord]:
        """Every stored summary of ``book_id`` generated from the same input."""
        return [
            r for r in self._by_id.values()
            if r.book_id == book_id and r.source_text_hash == source_text_hash
        ]

    async def save(self, record: SummaryRecord) -> None:
        self._by_id[record.id] = record
        self._latest[record.lookup_key] = record.id
        logger.debug(f"Stored summary {record.id} for {record.book_id}")

    def __len__(self) -> int:
        return len(self._by_id)


class InMemoryAudioStore:
    """Audio records by id and by (summary_id, language, voice_type)."""

    def __init__(self) -> None:
        self._by_id: dict[str, AudioRecord] = {}
        self._latest: dict[tuple[str, str, str], str] = {}

    async def get(self, audio_id: str) -> AudioRecord | None:
        return self._by_id.get(audio_id)

    async def find(self, summary_id: str, language: str, voice_type: str) -> AudioRecord | None:
        audio_id = self._latest.get((summary_id, language, voice_type))
        return self._by_id.get(audio_id) if audio_id else None

    async def save(self, record: AudioRecord) -> None:
        if record.is_synthetic_fallback:
            logger.debug(f"Not storing synthetic audio {record.id}")
            return
        self._by_id[record.id] = record
        self._latest[record.lookup_key] = record.id
        logger.debug(f"Stored audio {record.id} for summary {record.summary_id} ({record.size_kb} KB)")

    def __len__(self) -> int:
        return len(self._by_id)
