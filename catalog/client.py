"""
Async client for the external book catalog (Google Books volumes API).
"""

from typing import Dict, List, Optional

import httpx
import structlog
from asyncio_throttle import Throttler

from accounts.errors import Invalid
from accounts.models import DEFAULT_BOOK_LINK
from catalog.models import CatalogBook
from utilities.config import config

logger = structlog.get_logger(__name__)

NO_AUTHOR = "No author to display"


class CatalogError(Exception):
    """The upstream catalog could not be reached or answered with an error."""

    status_code = 502

    def __init__(self, message: str = "Catalog search failed"):
        self.message = message
        super().__init__(message)


def parse_volume(volume: Dict) -> Optional[CatalogBook]:
    """
    Map a catalog volume onto the saved-book shape.

    Args:
        volume: One entry of the ``items`` array

    Returns:
        CatalogBook, or None when the volume has no identifier
    """
    book_id = volume.get("id")
    if not book_id:
        return None

    info = volume.get("volumeInfo") or {}
    image_links = info.get("imageLinks") or {}

    return CatalogBook(
        book_id=book_id,
        title=info.get("title") or "",
        authors=info.get("authors") or [NO_AUTHOR],
        description=info.get("description") or "",
        image=image_links.get("thumbnail") or "",
        link=info.get("canonicalVolumeLink") or DEFAULT_BOOK_LINK,
    )


class CatalogClient:
    """
    Search proxy for the external catalog with outbound rate limiting.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10,
        max_results: int = 20,
        rate_limit_per_second: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url
        self.max_results = max_results
        self.throttler = Throttler(rate_limit=rate_limit_per_second)

        # HTTP client configuration
        self.client_config = {
            "timeout": timeout,
            "headers": config.get_headers(),
            "follow_redirects": True,
        }
        if transport is not None:
            self.client_config["transport"] = transport

    @classmethod
    def from_config(cls, app_config) -> "CatalogClient":
        return cls(
            base_url=app_config.catalog_base_url,
            timeout=app_config.catalog_timeout,
            max_results=app_config.catalog_max_results,
            rate_limit_per_second=app_config.catalog_rate_limit_per_second,
        )

    async def search(self, query: str, max_results: Optional[int] = None) -> List[CatalogBook]:
        """
        Search the catalog.

        Args:
            query: Free-text search terms
            max_results: Optional cap on the number of results

        Returns:
            List of CatalogBook in catalog order

        Raises:
            Invalid: If the query is empty or max_results is below 1
            CatalogError: If the catalog request fails
        """
        query = (query or "").strip()
        if not query:
            raise Invalid("q: search query must not be empty")
        if max_results is not None and max_results < 1:
            raise Invalid("max_results: must be at least 1")

        limit = min(max_results or self.max_results, self.max_results)
        params = {"q": query, "maxResults": limit}

        try:
            async with self.throttler:
                async with httpx.AsyncClient(**self.client_config) as client:
                    response = await client.get(self.base_url, params=params)
                    response.raise_for_status()
                    payload = response.json()
        except httpx.HTTPStatusError as e:
            logger.error("Catalog returned an error", status_code=e.response.status_code, query=query)
            raise CatalogError()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Catalog request failed", error=str(e), query=query)
            raise CatalogError()

        books = []
        for volume in payload.get("items") or []:
            book = parse_volume(volume)
            if book is not None:
                books.append(book)

        logger.debug("Catalog search completed", query=query, results=len(books))
        return books
