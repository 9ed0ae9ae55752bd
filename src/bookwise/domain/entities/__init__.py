"""
Domain Entities

Core business objects for book discovery, summaries and narration.
"""

from __future__ import annotations

from .audio import DEFAULT_VOICE, AudioRecord, SynthesisState
from .book import (
    AggregatedResult,
    QueryInterpretation,
    RawBook,
    ScoredBook,
    SourceId,
    identity_key,
    normalize_author,
    parse_book_id,
)
from .summary import SummaryRecord, count_words, source_hash

__all__ = [
    # Book entities
    "AggregatedResult",
    "QueryInterpretation",
    "RawBook",
    "ScoredBook",
    "SourceId",
    "identity_key",
    "normalize_author",
    "parse_book_id",
    # Summary entities
    "SummaryRecord",
    "count_words",
    "source_hash",
    # Audio entities
    "AudioRecord",
    "DEFAULT_VOICE",
    "SynthesisState",
]
