"""
Summary Entity

A generated summary of one book in one language and style. Records are
built through ``SummaryRecord.create`` so the word count always matches
the text.
"""

from __future__ import annotations

import hashlib
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any


def source_hash(text: str) -> str:
    """SHA-256 hex digest of the exact text given to the generator."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def count_words(text: str) -> int:
    return len(text.split())


@dataclass(frozen=True)
class SummaryRecord:
    id: str
    book_id: str
    language: str
    style: str
    text: str
    word_count: int
    source_text_hash: str
    created_at: datetime
    degraded_input: bool = False
    book_title: str | None = None
    book_author: str | None = None

    @classmethod
    def create(
        cls,
        *,
        book_id: str,
        language: str,
        style: str,
        text: str,
        source_text: str,
        degraded_input: bool = False,
        book_title: str | None = None,
        book_author: str | None = None,
    ) -> SummaryRecord:
        return cls(
            id=uuid.uuid4().hex,
            book_id=book_id,
            language=language,
            style=style,
            text=text,
            word_count=count_words(text),
            source_text_hash=source_hash(source_text),
            created_at=datetime.now(UTC),
            degraded_input=degraded_input,
            book_title=book_title,
            book_author=book_author,
        )

    @property
    def lookup_key(self) -> tuple[str, str, str]:
        return (self.book_id, self.language, self.style)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "book_id": self.book_id,
            "language": self.language,
            "style": self.style,
            "summary_text": self.text,
            "word_count": self.word_count,
            "source_text_hash": self.source_text_hash,
            "created_at": self.created_at.isoformat(),
            "degraded_input": self.degraded_input,
            "book_title": self.book_title,
            "book_author": self.book_author,
        }
