"""
Bookwise - Book Discovery, Summaries and Narration

Searches several public book catalogs at once, summarizes books with a
hosted language model and narrates the summaries.

Usage:
    from bookwise import create_client

    async with create_client() as client:
        result = await client.aggregated_search("pride and prejudice", limit=5)
        for book in result.books:
            print(f"{book.book_id}: {book.title} by {book.author_names}")

        summary = await client.generate_summary(result.books[0].book_id, style="concise")
        audio = await client.generate_audio(summary.id)

Features:
    - Concurrent search over Project Gutenberg, Open Library and Google Books
    - Relevance scoring and cross-catalog deduplication
    - Summaries in 12 languages and 4 styles, with metadata fallback
    - Audio that is always produced, synthetic when speech synthesis fails
    - Shared TTL/LRU result cache with background writes
"""

from .client import BookwiseClient, create_client
from .domain.entities import AggregatedResult, AudioRecord, RawBook, SourceId, SummaryRecord
from .shared.exceptions import (
    BookwiseError,
    InvalidParameterError,
    InvalidQueryError,
    NotFoundError,
    UpstreamError,
    UpstreamTimeoutError,
)

__version__ = "0.1.0"

__all__ = [
    # High-level API
    "BookwiseClient",
    "create_client",
    # Results
    "AggregatedResult",
    "AudioRecord",
    "RawBook",
    "SourceId",
    "SummaryRecord",
    # Errors
    "BookwiseError",
    "InvalidParameterError",
    "InvalidQueryError",
    "NotFoundError",
    "UpstreamError",
    "UpstreamTimeoutError",
]
