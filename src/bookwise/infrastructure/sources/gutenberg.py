"""
Gutendex API Integration (Project Gutenberg)

Gutendex is a JSON front end to the Project Gutenberg catalog: 70,000+
public-domain books, every one of them with downloadable plain text. It is
the only catalog here that provides full text for summarization.

API Documentation: https://gutendex.com/

Features:
- Full-text search over titles and authors
- Book metadata with subjects, bookshelves and download formats
- Plain-text download links (UTF-8)

Rate Limits:
- None documented; keep requests polite
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any

from bookwise.domain.entities import RawBook, SourceId
from bookwise.infrastructure.sources.base_client import _CONTINUE, DEFAULT_USER_AGENT, BaseAPIClient

if TYPE_CHECKING:
    import httpx

logger = logging.getLogger(__name__)

GUTENDEX_API_BASE = "https://gutendex.com"
GUTENBERG_EBOOK_URL = "https://www.gutenberg.org/ebooks/{id}"
GUTENBERG_TEXT_URL = "https://www.gutenberg.org/files/{id}/{id}-0.txt"

# Preferred plain-text formats, best first
_TEXT_FORMATS = (
    "text/plain; charset=utf-8",
    "text/plain; charset=us-ascii",
    "text/plain",
)

_START_MARKER = re.compile(r"^\*\*\*\s*START OF (THE|THIS) PROJECT GUTENBERG.*$", re.IGNORECASE | re.MULTILINE)
_END_MARKER = re.compile(r"^\*\*\*\s*END OF (THE|THIS) PROJECT GUTENBERG.*$", re.IGNORECASE | re.MULTILINE)


def strip_gutenberg_boilerplate(text: str) -> str:
    """Drop the licence header and footer around the book body."""
    start = _START_MARKER.search(text)
    if start:
        text = text[start.end():]
    end = _END_MARKER.search(text)
    if end:
        text = text[: end.start()]
    return text.strip()


def display_author(name: str) -> str:
    """Gutenberg lists authors as "Last, First"; show them as "First Last"."""
    if name.count(",") == 1:
        last, first = (part.strip() for part in name.split(","))
        if last and first:
            return f"{first} {last}"
    return name.strip()


class GutendexClient(BaseAPIClient):
    """
    Gutendex client for Project Gutenberg search and text download.

    Usage:
        client = GutendexClient()

        books = await client.search("pride and prejudice", limit=5)
        book = await client.get_book("1342")
        text = await client.fetch_text("1342")
    """

    _service_name = "Gutendex"
    source_id = SourceId.FULLTEXT

    def __init__(
        self,
        base_url: str = GUTENDEX_API_BASE,
        timeout: float = 15.0,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: httpx.AsyncBaseTransport | None = None,
        retry_delay: float = 1.0,
    ):
        super().__init__(
            base_url=base_url,
            timeout=timeout,
            min_interval=0.1,
            headers={"User-Agent": user_agent, "Accept": "application/json"},
            transport=transport,
            retry_delay=retry_delay,
        )

    def _handle_expected_status(self, response: httpx.Response, url: str) -> Any:
        """Handle 404 (book or text file does not exist)."""
        if response.status_code == 404:
            logger.debug(f"Gutendex: not found - {url}")
            return None
        return _CONTINUE

    async def search(self, query: str, limit: int = 10) -> list[RawBook]:
        """
        Search books by title and author words.

        Args:
            query: Free-text query
            limit: Maximum results (Gutendex pages hold 32)

        Returns:
            List of RawBook records
        """
        data = await self._make_request("/books/", params={"search": query})
        if not data:
            return []
        results = data.get("results") or []
        books = [self._parse_book(item) for item in results[:limit]]
        logger.debug(f"Gutendex: {len(books)} of {data.get('count', len(results))} results for '{query}'")
        return [b for b in books if b is not None]

    async def get_book(self, external_id: str) -> RawBook | None:
        """Get one book by its Gutenberg number; None if it does not exist."""
        if not external_id.strip().isdigit():
            return None
        data = await self._make_request(f"/books/{external_id.strip()}/")
        if not data:
            return None
        return self._parse_book(data)

    async def fetch_text(self, external_id: str, text_url: str | None = None) -> str:
        """
        Download the plain text of a book, licence boilerplate removed.

        Args:
            external_id: Gutenberg book number
            text_url: Download URL from the book's formats, when known

        Returns:
            The book body, or "" when no text file exists
        """
        url = text_url or GUTENBERG_TEXT_URL.format(id=external_id.strip())
        raw = await self._make_request(url, expect_json=False, headers={"Accept": "text/plain"})
        if not raw:
            return ""
        text = strip_gutenberg_boilerplate(raw)
        logger.debug(f"Gutendex: fetched {len(text)} chars of text for {external_id}")
        return text

    def _parse_book(self, item: dict[str, Any]) -> RawBook | None:
        book_id = item.get("id")
        title = (item.get("title") or "").strip()
        if book_id is None or not title:
            return None

        authors = tuple(
            display_author(a["name"]) for a in item.get("authors") or [] if a.get("name")
        )
        formats: dict[str, str] = item.get("formats") or {}
        languages = item.get("languages") or []

        return RawBook(
            source=SourceId.FULLTEXT,
            external_id=str(book_id),
            title=title,
            authors=authors,
            description=self._description(item),
            publisher="Project Gutenberg",
            language=languages[0] if languages else None,
            cover_url=formats.get("image/jpeg"),
            preview_url=GUTENBERG_EBOOK_URL.format(id=book_id),
            full_text_url=self._text_url(formats, book_id),
        )

    @staticmethod
    def _description(item: dict[str, Any]) -> str | None:
        summaries = [s for s in item.get("summaries") or [] if s]
        if summaries:
            return summaries[0].strip()
        subjects = item.get("subjects") or []
        return "; ".join(subjects) if subjects else None

    @staticmethod
    def _text_url(formats: dict[str, str], book_id: Any) -> str:
        for mime in _TEXT_FORMATS:
            url = formats.get(mime)
            if url and not url.endswith(".zip"):
                return url
        return GUTENBERG_TEXT_URL.format(id=book_id)
