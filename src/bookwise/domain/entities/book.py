"""
Book Entities - Catalog search domain model

Key Entities:
    - SourceId: The closed set of catalogs a book can come from
    - RawBook: One catalog record, as fetched
    - ScoredBook: A RawBook plus its relevance and completeness scores
    - QueryInterpretation: Best-effort reading of a free-text query
    - AggregatedResult: The deduplicated, ranked outcome of one search

Book ids have the form ``"<source>:<external id>"``, e.g.
``"gutenberg:1342"`` or ``"openlibrary:/works/OL66554W"``.
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from bookwise.shared.exceptions import InvalidParameterError


class SourceId(Enum):
    """
    Catalogs searched by the aggregator.

    The value doubles as the book id prefix.
    """

    FULLTEXT = "gutenberg"  # Project Gutenberg, public-domain full text
    OPEN_CATALOG = "openlibrary"  # Open Library, open metadata
    COMMERCIAL = "google"  # Google Books, commercial metadata

    @classmethod
    def from_prefix(cls, prefix: str) -> SourceId:
        for source in cls:
            if source.value == prefix:
                return source
        raise InvalidParameterError(
            "book_id",
            prefix,
            f"a prefix in {', '.join(s.value for s in cls)}",
        )


def parse_book_id(book_id: str) -> tuple[SourceId, str]:
    """Split ``"<source>:<external id>"`` into its parts."""
    prefix, sep, external_id = (book_id or "").strip().partition(":")
    if not sep or not prefix or not external_id:
        raise InvalidParameterError("book_id", book_id, "'<source>:<id>' such as 'gutenberg:1342'")
    return SourceId.from_prefix(prefix.lower()), external_id


_PUNCT_RE = re.compile(r"[^\w\s]")
_SPACE_RE = re.compile(r"\s+")


def _normalize_text(text: str) -> str:
    text = unicodedata.normalize("NFKD", text)
    text = "".join(c for c in text if not unicodedata.combining(c))
    text = _PUNCT_RE.sub(" ", text.casefold())
    return _SPACE_RE.sub(" ", text).strip()


def normalize_author(name: str) -> str:
    """``"Austen, Jane"`` and ``"Jane Austen"`` normalize to the same string."""
    if name.count(",") == 1:
        last, first = (part.strip() for part in name.split(","))
        if last and first:
            name = f"{first} {last}"
    return _normalize_text(name)


def identity_key(title: str, author: str | None) -> str:
    """
    Key that treats two records as the same work.

    Case, accents, punctuation, whitespace and "Last, First" author order
    do not matter.
    """
    return f"{_normalize_text(title)}|{normalize_author(author or '')}"


@dataclass(frozen=True)
class RawBook:
    """
    A book record as returned by one catalog.

    Attributes:
        source: Catalog the record came from
        external_id: Id within that catalog
        title: Title as published
        authors: Author names in catalog order
        full_text_url: Plain-text download, only for full-text catalogs
    """

    source: SourceId
    external_id: str
    title: str
    authors: tuple[str, ...] = ()

    description: str | None = None
    isbn: str | None = None
    publisher: str | None = None
    published_date: str | None = None
    page_count: int | None = None
    language: str | None = None
    cover_url: str | None = None
    preview_url: str | None = None
    full_text_url: str | None = None

    @property
    def book_id(self) -> str:
        return f"{self.source.value}:{self.external_id}"

    @property
    def primary_author(self) -> str | None:
        return self.authors[0] if self.authors else None

    @property
    def author_names(self) -> str:
        return ", ".join(self.authors) if self.authors else "Unknown"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.book_id,
            "source": self.source.value,
            "title": self.title,
            "authors": list(self.authors),
            "description": self.description,
            "isbn": self.isbn,
            "publisher": self.publisher,
            "published_date": self.published_date,
            "page_count": self.page_count,
            "language": self.language,
            "cover_url": self.cover_url,
            "preview_url": self.preview_url,
            "full_text_url": self.full_text_url,
        }


@dataclass(frozen=True)
class ScoredBook:
    """A RawBook annotated for ranking. Lives only for one search."""

    book: RawBook
    relevance: float
    completeness: float

    @property
    def identity_key(self) -> str:
        return identity_key(self.book.title, self.book.primary_author)

    @property
    def source(self) -> SourceId:
        return self.book.source


@dataclass(frozen=True)
class QueryInterpretation:
    """
    Best-effort structure extracted from a free-text query.

    ``search_query`` is a cleaned version suitable for catalogs; the
    aggregator still sends ``original_query`` so upstream relevance is not
    second-guessed.
    """

    original_query: str
    search_query: str
    genre: str | None = None
    theme: str | None = None
    author: str | None = None
    title: str | None = None
    keywords: tuple[str, ...] = ()
    terms: tuple[str, ...] = ()
    significant_terms: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "original_query": self.original_query,
            "search_query": self.search_query,
            "genre": self.genre,
            "theme": self.theme,
            "author": self.author,
            "title": self.title,
            "keywords": list(self.keywords),
        }


@dataclass(frozen=True)
class AggregatedResult:
    """
    Outcome of one aggregated search.

    Attributes:
        books: Deduplicated books, best first, at most ``limit`` of them
        total_count: Unique candidates found before truncation to ``limit``
        query: Interpretation of the query that produced the result
        from_cache: True when served from the result cache
    """

    books: tuple[RawBook, ...]
    total_count: int
    query: QueryInterpretation
    limit: int
    from_cache: bool = False
    failed_sources: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "books": [b.to_dict() for b in self.books],
            "total_count": self.total_count,
            "query": self.query.to_dict(),
            "limit": self.limit,
            "from_cache": self.from_cache,
            "failed_sources": list(self.failed_sources),
        }
