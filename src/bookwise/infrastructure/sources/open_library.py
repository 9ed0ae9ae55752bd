"""
Open Library API Integration

Open Library is the Internet Archive's open, editable book catalog with
millions of works. Metadata only: no full text is fetched from here.

API Documentation: https://openlibrary.org/developers/api

Features:
- Work search (title, author, subject)
- Work lookup by key ("/works/OL66554W")
- Cover images via covers.openlibrary.org

Rate Limits:
- Identify yourself in the User-Agent; bulk use is throttled
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from bookwise.domain.entities import RawBook, SourceId
from bookwise.infrastructure.sources.base_client import _CONTINUE, DEFAULT_USER_AGENT, BaseAPIClient

if TYPE_CHECKING:
    import httpx

logger = logging.getLogger(__name__)

OPEN_LIBRARY_API_BASE = "https://openlibrary.org"
COVER_URL = "https://covers.openlibrary.org/b/id/{cover_id}-M.jpg"
ARCHIVE_URL = "https://archive.org/details/{identifier}"

SEARCH_FIELDS = (
    "key,title,author_name,first_publish_year,isbn,publisher,"
    "number_of_pages_median,language,cover_i,subject,ia"
)

# Work pages list authors by key only
_MAX_AUTHOR_LOOKUPS = 3


def _first(values: Any) -> Any:
    if isinstance(values, list):
        return values[0] if values else None
    return values


class OpenLibraryClient(BaseAPIClient):
    """
    Open Library client for catalog search and work lookup.

    Usage:
        client = OpenLibraryClient()

        books = await client.search("pride and prejudice", limit=5)
        book = await client.get_book("/works/OL66554W")
    """

    _service_name = "OpenLibrary"
    source_id = SourceId.OPEN_CATALOG

    def __init__(
        self,
        base_url: str = OPEN_LIBRARY_API_BASE,
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
        """Handle 404 (unknown work or author key)."""
        if response.status_code == 404:
            logger.debug(f"OpenLibrary: not found - {url}")
            return None
        return _CONTINUE

    async def search(self, query: str, limit: int = 10) -> list[RawBook]:
        """
        Search works.

        Args:
            query: Free-text query
            limit: Maximum results

        Returns:
            List of RawBook records keyed by work key
        """
        data = await self._make_request(
            "/search.json",
            params={"q": query, "limit": limit, "fields": SEARCH_FIELDS},
        )
        if not data:
            return []
        docs = data.get("docs") or []
        books = [self._parse_doc(doc) for doc in docs[:limit]]
        logger.debug(f"OpenLibrary: {len(docs)} of {data.get('numFound', len(docs))} results for '{query}'")
        return [b for b in books if b is not None]

    async def get_book(self, external_id: str) -> RawBook | None:
        """Get one work by key ("/works/OL66554W" or "OL66554W")."""
        key = external_id.strip()
        if not key.startswith("/"):
            key = f"/works/{key}"
        data = await self._make_request(f"{key}.json")
        if not data or not data.get("title"):
            return None

        authors = await self._author_names(data.get("authors") or [])
        covers = [c for c in data.get("covers") or [] if isinstance(c, int) and c > 0]
        description = data.get("description")
        if isinstance(description, dict):
            description = description.get("value")

        return RawBook(
            source=SourceId.OPEN_CATALOG,
            external_id=key,
            title=data["title"].strip(),
            authors=authors,
            description=description.strip() if isinstance(description, str) and description.strip() else None,
            published_date=data.get("first_publish_date"),
            cover_url=COVER_URL.format(cover_id=covers[0]) if covers else None,
            preview_url=f"{OPEN_LIBRARY_API_BASE}{key}",
        )

    async def _author_names(self, entries: list[dict[str, Any]]) -> tuple[str, ...]:
        names: list[str] = []
        for entry in entries[:_MAX_AUTHOR_LOOKUPS]:
            author_key = (entry.get("author") or {}).get("key")
            if not author_key:
                continue
            author = await self._make_request(f"{author_key}.json")
            if author and author.get("name"):
                names.append(author["name"])
        return tuple(names)

    def _parse_doc(self, doc: dict[str, Any]) -> RawBook | None:
        key = doc.get("key")
        title = (doc.get("title") or "").strip()
        if not key or not title:
            return None

        subjects = doc.get("subject") or []
        year = doc.get("first_publish_year")
        cover_id = doc.get("cover_i")
        archive_id = _first(doc.get("ia"))

        return RawBook(
            source=SourceId.OPEN_CATALOG,
            external_id=key,
            title=title,
            authors=tuple(doc.get("author_name") or ()),
            description="; ".join(subjects[:10]) if subjects else None,
            isbn=_first(doc.get("isbn")),
            publisher=_first(doc.get("publisher")),
            published_date=str(year) if year else None,
            page_count=doc.get("number_of_pages_median"),
            language=_first(doc.get("language")),
            cover_url=COVER_URL.format(cover_id=cover_id) if cover_id else None,
            preview_url=(
                ARCHIVE_URL.format(identifier=archive_id) if archive_id else f"{OPEN_LIBRARY_API_BASE}{key}"
            ),
        )
