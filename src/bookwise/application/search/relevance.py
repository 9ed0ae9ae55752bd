"""
RelevanceScorer - Score one catalog record against one query

Pure and deterministic: the same (book, query) always yields the same
ScoredBook. Scores are only compared within a single search, so no
normalization across queries is attempted.

Point values live in ``ScoringWeights`` and can be tuned per aggregator;
only their relative order matters.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from bookwise.application.search.query_interpreter import STOP_WORDS as _STOP_WORDS
from bookwise.application.search.query_interpreter import QueryInterpreter
from bookwise.domain.entities import QueryInterpretation, RawBook, ScoredBook, SourceId, normalize_author

_WORD_RE = re.compile(r"\w+", re.UNICODE)
_SPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class ScoringWeights:
    """
    Tunable point values for relevance and completeness.

    Presets:
    - default(): full-text catalogs preferred
    - metadata_focused(): rewards rich records over source preference
    """

    # Title
    title_all_terms: float = 10.0
    title_exact: float = 5.0
    title_prefix: float = 3.0
    # Author
    author_match: float = 8.0
    author_exact: float = 4.0
    # Description
    description_terms: float = 2.0
    # Source preference: unrestricted full text > open metadata > commercial
    source_bonus: dict[SourceId, float] = field(
        default_factory=lambda: {
            SourceId.FULLTEXT: 3.0,
            SourceId.OPEN_CATALOG: 2.0,
            SourceId.COMMERCIAL: 1.0,
        }
    )
    # Quality
    has_cover: float = 0.5
    has_description: float = 0.5
    has_isbn: float = 0.5
    # Completeness weights per optional field
    completeness_fields: dict[str, float] = field(
        default_factory=lambda: {
            "description": 2.0,
            "isbn": 2.0,
            "full_text_url": 2.0,
            "cover_url": 1.0,
            "publisher": 1.0,
            "published_date": 1.0,
            "page_count": 1.0,
            "language": 0.5,
            "preview_url": 0.5,
        }
    )

    @classmethod
    def default(cls) -> ScoringWeights:
        return cls()

    @classmethod
    def metadata_focused(cls) -> ScoringWeights:
        return cls(
            source_bonus={SourceId.FULLTEXT: 1.0, SourceId.OPEN_CATALOG: 1.0, SourceId.COMMERCIAL: 1.0},
            has_cover=1.5,
            has_description=1.5,
            has_isbn=1.5,
        )


def _collapse(text: str) -> str:
    return _SPACE_RE.sub(" ", text.casefold()).strip()


def _words(text: str | None) -> set[str]:
    return {w.casefold() for w in _WORD_RE.findall(text or "")}


class RelevanceScorer:
    """
    Scores RawBook records for one search.

    Usage:
        scorer = RelevanceScorer()
        interpretation = QueryInterpreter().interpret("pride and prejudice")
        scored = [scorer.score(book, interpretation) for book in books]
    """

    def __init__(
        self,
        weights: ScoringWeights | None = None,
        interpreter: QueryInterpreter | None = None,
    ):
        self._weights = weights or ScoringWeights.default()
        self._interpreter = interpreter or QueryInterpreter()

    @property
    def weights(self) -> ScoringWeights:
        return self._weights

    def score(self, book: RawBook, query: str | QueryInterpretation) -> ScoredBook:
        interpretation = self._interpreter.interpret(query) if isinstance(query, str) else query
        return ScoredBook(
            book=book,
            relevance=self.relevance(book, interpretation),
            completeness=self.completeness(book),
        )

    def score_all(self, books: list[RawBook], query: str | QueryInterpretation) -> list[ScoredBook]:
        interpretation = self._interpreter.interpret(query) if isinstance(query, str) else query
        return [self.score(book, interpretation) for book in books]

    def relevance(self, book: RawBook, query: QueryInterpretation) -> float:
        w = self._weights
        total = 0.0
        total += self._title_points(book, query)
        total += self._author_points(book, query)

        terms = query.significant_terms
        if terms and book.description:
            description_words = _words(book.description)
            if all(t in description_words for t in terms):
                total += w.description_terms

        total += w.source_bonus.get(book.source, 0.0)

        if book.cover_url:
            total += w.has_cover
        if book.description:
            total += w.has_description
        if book.isbn:
            total += w.has_isbn
        return total

    def completeness(self, book: RawBook) -> float:
        return sum(
            weight
            for name, weight in self._weights.completeness_fields.items()
            if getattr(book, name, None) not in (None, "", ())
        )

    def _title_points(self, book: RawBook, query: QueryInterpretation) -> float:
        w = self._weights
        title = _collapse(book.title)
        if not title:
            return 0.0

        # Author words in "x by author" queries should not count against the title
        author_words = _words(query.author) if query.author else set()
        terms = [t for t in query.significant_terms if t not in author_words] or list(query.significant_terms)
        target = _collapse(query.title or query.original_query)

        points = 0.0
        title_words = _words(book.title)
        if terms and all(t in title_words for t in terms):
            points += w.title_all_terms
            if title == target:
                points += w.title_exact
        if target and title.startswith(target):
            points += w.title_prefix
        return points

    def _author_points(self, book: RawBook, query: QueryInterpretation) -> float:
        w = self._weights
        if not book.authors:
            return 0.0
        authors = [normalize_author(a) for a in book.authors]

        if query.author:
            wanted = normalize_author(query.author)
            wanted_words = set(wanted.split())
            for name in authors:
                if name == wanted:
                    return w.author_match + w.author_exact
            for name in authors:
                if wanted_words and wanted_words <= set(name.split()):
                    return w.author_match
            return 0.0

        # No explicit author: the query may simply be an author's name
        text = normalize_author(query.original_query)
        if not text:
            return 0.0
        for name in authors:
            if name == text:
                return w.author_match + w.author_exact
        text_words = set(text.split()) - _STOP_WORDS
        if not text_words:
            return 0.0
        for name in authors:
            name_words = set(name.split())
            if name_words and (name_words <= text_words or text_words <= name_words):
                return w.author_match
        return 0.0
