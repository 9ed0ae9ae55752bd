"""
Search use cases: query interpretation, relevance scoring, deduplication
and multi-catalog aggregation.
"""

from .aggregator import BookSearchAggregator
from .deduplicator import (
    DEFAULT_PRECEDENCE,
    DEFAULT_SOURCE_PRIORITY,
    DedupConfig,
    Deduplicator,
    DedupStats,
    Precedence,
)
from .query_interpreter import QueryInterpreter, interpret_query
from .relevance import RelevanceScorer, ScoringWeights

__all__ = [
    "BookSearchAggregator",
    "DEFAULT_PRECEDENCE",
    "DEFAULT_SOURCE_PRIORITY",
    "DedupConfig",
    "DedupStats",
    "Deduplicator",
    "Precedence",
    "QueryInterpreter",
    "RelevanceScorer",
    "ScoringWeights",
    "interpret_query",
]
