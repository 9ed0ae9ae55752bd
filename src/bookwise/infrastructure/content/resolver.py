"""
CatalogContentResolver - Book ids to text and metadata

Routes ``"<source>:<id>"`` book ids to the catalog client that owns them.
Only the full-text catalog yields book text; other catalogs resolve to an
empty string so the summary path falls back to their metadata.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Protocol

from cachetools import TTLCache

from bookwise.domain.entities import RawBook, SourceId, parse_book_id
from bookwise.shared.exceptions import ConfigurationError, NotFoundError

logger = logging.getLogger(__name__)


class CatalogClient(Protocol):
    source_id: SourceId

    async def get_book(self, external_id: str) -> RawBook | None: ...


class FullTextClient(CatalogClient, Protocol):
    async def fetch_text(self, external_id: str, text_url: str | None = None) -> str: ...


class CatalogContentResolver:
    """
    ContentResolver backed by the catalog clients.

    Metadata lookups are memoized briefly because ``resolve`` and
    ``describe`` are usually called back to back for the same book.

    Usage:
        resolver = CatalogContentResolver([gutendex, open_library, google_books])
        text = await resolver.resolve("gutenberg:1342")
        book = await resolver.describe("google:s1gVAAAAYAAJ")
    """

    def __init__(
        self,
        clients: Iterable[CatalogClient],
        *,
        metadata_ttl: float = 600.0,
        metadata_max_size: int = 256,
    ):
        self._clients: dict[SourceId, CatalogClient] = {c.source_id: c for c in clients}
        if not self._clients:
            raise ConfigurationError("CatalogContentResolver needs at least one catalog client")
        self._metadata: TTLCache[str, RawBook] = TTLCache(maxsize=metadata_max_size, ttl=metadata_ttl)

    async def resolve(self, book_id: str) -> str:
        """
        Full text of ``book_id``; "" for books without downloadable text.

        Raises:
            InvalidParameterError: malformed id or unknown prefix
            NotFoundError: the catalog does not know the book
        """
        source, external_id = parse_book_id(book_id)
        book = await self.describe(book_id)
        if book is None:
            raise NotFoundError("Book", book_id)

        fulltext = self._clients.get(source)
        if source is not SourceId.FULLTEXT or not hasattr(fulltext, "fetch_text"):
            logger.debug(f"No full text for {book_id}, metadata only")
            return ""
        text = await fulltext.fetch_text(external_id, book.full_text_url)
        logger.info(f"Resolved {len(text)} chars of text for {book_id}")
        return text

    async def describe(self, book_id: str) -> RawBook | None:
        """Catalog metadata for ``book_id``; None when the catalog has no such book."""
        source, external_id = parse_book_id(book_id)
        key = f"{source.value}:{external_id}"
        cached = self._metadata.get(key)
        if cached is not None:
            return cached

        client = self._clients.get(source)
        if client is None:
            logger.warning(f"No catalog client configured for {source.value}")
            return None
        book = await client.get_book(external_id)
        if book is not None:
            self._metadata[key] = book
        return book

    def clear(self) -> None:
        self._metadata.clear()
