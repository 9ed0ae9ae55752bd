"""
QueryInterpreter - Best-effort structure for free-text book queries

Extracts an author, a title, a genre, a theme and keywords from queries such
as ``"pride and prejudice by jane austen"``, ``author:tolkien`` or
``'"the hobbit" fantasy'``.

Architecture Decision:
    Pure local string parsing, no model calls. The result is echoed back to
    the caller and feeds the relevance scorer; catalogs still receive the
    query as typed.

Example:
    >>> QueryInterpreter().interpret("pride and prejudice by jane austen")
    QueryInterpretation(original_query='pride and prejudice by jane austen',
                        search_query='pride and prejudice author:jane austen', ...,
                        author='jane austen', title='pride and prejudice', ...)
"""

from __future__ import annotations

import re

from bookwise.domain.entities import QueryInterpretation

STOP_WORDS: frozenset[str] = frozenset(
    {
        "a", "an", "the", "is", "are", "was", "were", "be", "in", "on", "at",
        "for", "to", "of", "and", "or", "with", "by", "from", "as", "that",
        "this", "about", "what", "which", "who", "me", "my", "some", "any",
        "book", "books", "novel", "novels", "read", "find", "like", "want",
    }
)

# Longest names first so "science fiction" wins over "fiction"
GENRES: tuple[str, ...] = (
    "science fiction", "historical fiction", "literary fiction", "young adult",
    "graphic novel", "non-fiction", "nonfiction", "sci-fi", "fantasy",
    "mystery", "thriller", "romance", "horror", "poetry", "drama", "biography",
    "autobiography", "memoir", "history", "philosophy", "adventure",
    "children", "western", "dystopian", "satire", "fiction", "classics",
)

THEMES: tuple[str, ...] = (
    "artificial intelligence", "space travel", "time travel", "coming of age",
    "world war", "civil war", "revolution", "friendship", "love", "war",
    "family", "revenge", "survival", "slavery", "religion", "politics",
    "medieval", "magic", "crime", "detective", "sea", "identity",
)


class QueryInterpreter:
    """Stateless query parser."""

    FIELD_PATTERN = re.compile(r"\b(author|title|genre):\s*(\"[^\"]+\"|[^:]+?)(?=\s+\w+:|$)", re.IGNORECASE)
    QUOTED_PATTERN = re.compile(r"\"([^\"]{2,})\"")
    BY_PATTERN = re.compile(r"^(?P<title>.*?)\s*\bby\s+(?P<author>[^,;]+?)\s*$", re.IGNORECASE)
    TOKEN_PATTERN = re.compile(r"\w+", re.UNICODE)

    def interpret(self, query: str) -> QueryInterpretation:
        """
        Interpret a search query.

        Args:
            query: Query as typed by the user

        Returns:
            QueryInterpretation; fields that could not be extracted are None
        """
        original = re.sub(r"\s+", " ", (query or "").strip())
        remainder = original
        author: str | None = None
        title: str | None = None
        genre: str | None = None

        for match in self.FIELD_PATTERN.finditer(original):
            name = match.group(1).lower()
            value = match.group(2).strip().strip('"').strip()
            if not value:
                continue
            if name == "author":
                author = value
            elif name == "title":
                title = value
            else:
                genre = value.lower()
        remainder = self.FIELD_PATTERN.sub(" ", remainder).strip()

        if title is None:
            quoted = self.QUOTED_PATTERN.search(remainder)
            if quoted:
                title = quoted.group(1).strip()
                remainder = (remainder[: quoted.start()] + " " + remainder[quoted.end():]).strip()

        if author is None:
            by_match = self.BY_PATTERN.match(remainder)
            if by_match and by_match.group("author").strip():
                author = by_match.group("author").strip()
                leading = by_match.group("title").strip()
                if title is None and leading:
                    title = leading
                remainder = leading

        lowered = remainder.lower()
        if genre is None:
            genre = _find_phrase(lowered, GENRES)
        theme = _find_phrase(lowered, THEMES)

        terms = tuple(t.casefold() for t in self.TOKEN_PATTERN.findall(original))
        significant = tuple(dict.fromkeys(t for t in terms if t not in STOP_WORDS and t not in _FIELD_NAMES))
        keywords = self._keywords(remainder, exclude=(genre, theme))

        return QueryInterpretation(
            original_query=original,
            search_query=self._build_search_query(title, author, genre, theme, keywords, original),
            genre=genre,
            theme=theme,
            author=author,
            title=title,
            keywords=keywords,
            terms=terms,
            significant_terms=significant,
        )

    def _keywords(self, text: str, exclude: tuple[str | None, ...]) -> tuple[str, ...]:
        excluded_words = {w for phrase in exclude if phrase for w in phrase.split()}
        words = [w.casefold() for w in self.TOKEN_PATTERN.findall(text)]
        keywords = [
            w for w in words
            if len(w) > 2 and w not in STOP_WORDS and w not in excluded_words
        ]
        return tuple(dict.fromkeys(keywords))[:10]

    @staticmethod
    def _build_search_query(
        title: str | None,
        author: str | None,
        genre: str | None,
        theme: str | None,
        keywords: tuple[str, ...],
        fallback: str,
    ) -> str:
        parts: list[str] = []
        if title:
            parts.append(title)
        if author:
            parts.append(f"author:{author}")
        if genre:
            parts.append(genre)
        if theme:
            parts.append(theme)
        for keyword in keywords:
            if not any(keyword in p.casefold() for p in parts):
                parts.append(keyword)
        return " ".join(parts) if parts else fallback


_FIELD_NAMES = frozenset({"author", "title", "genre"})


def _find_phrase(text: str, phrases: tuple[str, ...]) -> str | None:
    for phrase in phrases:
        if re.search(rf"(?<!\w){re.escape(phrase)}(?!\w)", text):
            return phrase
    return None


def interpret_query(query: str) -> QueryInterpretation:
    """Convenience wrapper around ``QueryInterpreter().interpret``."""
    return QueryInterpreter().interpret(query)
