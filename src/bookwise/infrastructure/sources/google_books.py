"""
Google Books API Integration

Commercial catalog with rich metadata: descriptions, ISBNs, page counts,
thumbnails and preview links. Works without an API key at a low quota;
pass a key for production traffic.

API Documentation: https://developers.google.com/books/docs/v1/using

Rate Limits:
- Anonymous: shared per-IP quota, 429 when exhausted
- With API key: 1,000 requests/day by default
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from bookwise.domain.entities import RawBook, SourceId
from bookwise.infrastructure.sources.base_client import _CONTINUE, DEFAULT_USER_AGENT, BaseAPIClient

if TYPE_CHECKING:
    import httpx

logger = logging.getLogger(__name__)

GOOGLE_BOOKS_API_BASE = "https://www.googleapis.com/books/v1"

# The API caps maxResults at 40
MAX_RESULTS_PER_PAGE = 40


class GoogleBooksClient(BaseAPIClient):
    """
    Google Books volumes client.

    Usage:
        client = GoogleBooksClient(api_key="...")

        books = await client.search("pride and prejudice", limit=5)
        book = await client.get_book("s1gVAAAAYAAJ")
    """

    _service_name = "GoogleBooks"
    source_id = SourceId.COMMERCIAL

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = GOOGLE_BOOKS_API_BASE,
        timeout: float = 15.0,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: httpx.AsyncBaseTransport | None = None,
        retry_delay: float = 1.0,
    ):
        """
        Initialize Google Books client.

        Args:
            api_key: Google API key (optional, raises the quota)
            base_url: API base URL
            timeout: Request timeout in seconds
        """
        self._api_key = api_key
        super().__init__(
            base_url=base_url,
            timeout=timeout,
            min_interval=0.1,
            headers={"User-Agent": user_agent, "Accept": "application/json"},
            transport=transport,
            retry_delay=retry_delay,
        )

    def _with_key(self, params: dict[str, Any]) -> dict[str, Any]:
        if self._api_key:
            return {**params, "key": self._api_key}
        return params

    def _handle_expected_status(self, response: httpx.Response, url: str) -> Any:
        """Handle 404 (unknown volume id)."""
        if response.status_code == 404:
            logger.debug(f"GoogleBooks: volume not found - {url}")
            return None
        return _CONTINUE

    async def search(self, query: str, limit: int = 10) -> list[RawBook]:
        """
        Search volumes.

        Args:
            query: Free-text query
            limit: Maximum results (capped at 40 by the API)

        Returns:
            List of RawBook records
        """
        data = await self._make_request(
            "/volumes",
            params=self._with_key({"q": query, "maxResults": min(limit, MAX_RESULTS_PER_PAGE)}),
        )
        if not data:
            return []
        items = data.get("items") or []
        books = [self._parse_volume(item) for item in items[:limit]]
        logger.debug(f"GoogleBooks: {len(items)} of {data.get('totalItems', len(items))} results for '{query}'")
        return [b for b in books if b is not None]

    async def get_book(self, external_id: str) -> RawBook | None:
        """Get one volume by id; None if it does not exist."""
        data = await self._make_request(f"/volumes/{external_id.strip()}", params=self._with_key({}))
        if not data:
            return None
        return self._parse_volume(data)

    def _parse_volume(self, item: dict[str, Any]) -> RawBook | None:
        volume_id = item.get("id")
        info: dict[str, Any] = item.get("volumeInfo") or {}
        title = (info.get("title") or "").strip()
        if not volume_id or not title:
            return None
        subtitle = (info.get("subtitle") or "").strip()
        if subtitle:
            title = f"{title}: {subtitle}"

        images = info.get("imageLinks") or {}
        cover = images.get("thumbnail") or images.get("smallThumbnail")

        return RawBook(
            source=SourceId.COMMERCIAL,
            external_id=volume_id,
            title=title,
            authors=tuple(info.get("authors") or ()),
            description=info.get("description"),
            isbn=self._isbn(info.get("industryIdentifiers") or []),
            publisher=info.get("publisher"),
            published_date=info.get("publishedDate"),
            page_count=info.get("pageCount"),
            language=info.get("language"),
            cover_url=cover.replace("http://", "https://", 1) if cover else None,
            preview_url=info.get("previewLink"),
        )

    @staticmethod
    def _isbn(identifiers: list[dict[str, str]]) -> str | None:
        """ISBN-13 when present, else ISBN-10."""
        by_type = {i.get("type"): i.get("identifier") for i in identifiers}
        return by_type.get("ISBN_13") or by_type.get("ISBN_10")
