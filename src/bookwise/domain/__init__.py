"""
Domain Layer - Core Business Objects

Contains:
- entities: Books, summaries and audio records
"""

from .entities import (
    AggregatedResult,
    AudioRecord,
    QueryInterpretation,
    RawBook,
    ScoredBook,
    SourceId,
    SummaryRecord,
    SynthesisState,
)

__all__ = [
    "AggregatedResult",
    "AudioRecord",
    "QueryInterpretation",
    "RawBook",
    "ScoredBook",
    "SourceId",
    "SummaryRecord",
    "SynthesisState",
]
