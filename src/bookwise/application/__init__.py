"""
Application Layer - Use Cases and Orchestration

Contains:
- ports: Collaborator protocols (catalogs, content, generation, storage)
- search: Multi-catalog aggregation, scoring and deduplication
- summary: Timeout-guarded summary generation
- audio: Narration with synthetic fallback
"""

from .audio import AudioOrchestrator, SyntheticSpeechSynthesizer
from .search import BookSearchAggregator, Deduplicator, QueryInterpreter, RelevanceScorer
from .summary import SummaryOrchestrator

__all__ = [
    "AudioOrchestrator",
    "BookSearchAggregator",
    "Deduplicator",
    "QueryInterpreter",
    "RelevanceScorer",
    "SummaryOrchestrator",
    "SyntheticSpeechSynthesizer",
]
