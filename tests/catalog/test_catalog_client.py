"""
Unit tests for the catalog search client.
"""

import httpx
import pytest

from accounts.errors import Invalid
from accounts.models import DEFAULT_BOOK_LINK
from catalog.client import NO_AUTHOR, CatalogClient, CatalogError, parse_volume


def make_client(handler, **kwargs) -> CatalogClient:
    return CatalogClient(
        base_url="https://catalog.test/books/v1/volumes",
        rate_limit_per_second=100,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class TestParseVolume:
    """Test cases for volume mapping."""

    def test_full_volume(self, sample_volume):
        book = parse_volume(sample_volume)

        assert book.book_id == "zyTCAlFPjgYC"
        assert book.title == "The Google Story"
        assert book.authors == ["David A. Vise", "Mark Malseed"]
        assert book.image.endswith("zoom=1")
        assert book.link.startswith("https://books.google.com/books/about/")
        assert book.saved is None

    def test_sparse_volume_defaults(self):
        book = parse_volume({"id": "abc", "volumeInfo": {"title": "Untitled"}})

        assert book.authors == [NO_AUTHOR]
        assert book.description == ""
        assert book.image == ""
        assert book.link == DEFAULT_BOOK_LINK

    def test_volume_without_id_skipped(self):
        assert parse_volume({"volumeInfo": {"title": "No id"}}) is None


class TestCatalogClient:
    """Test cases for CatalogClient."""

    @pytest.mark.asyncio
    async def test_search(self, sample_volume):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"totalItems": 2, "items": [sample_volume, {"volumeInfo": {}}]})

        books = await make_client(handler, max_results=10).search("  google story ")

        assert [book.book_id for book in books] == ["zyTCAlFPjgYC"]
        assert requests[0].url.params["q"] == "google story"
        assert requests[0].url.params["maxResults"] == "10"

    @pytest.mark.asyncio
    async def test_max_results_capped(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"totalItems": 0})

        books = await make_client(handler, max_results=5).search("python", max_results=40)

        assert books == []
        assert requests[0].url.params["maxResults"] == "5"

    @pytest.mark.asyncio
    async def test_empty_query_rejected(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        with pytest.raises(Invalid):
            await make_client(handler).search("   ")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("max_results", [0, -5])
    async def test_non_positive_max_results_rejected(self, max_results):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        with pytest.raises(Invalid):
            await make_client(handler).search("python", max_results=max_results)

    @pytest.mark.asyncio
    async def test_upstream_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, json={"error": "unavailable"})

        with pytest.raises(CatalogError):
            await make_client(handler).search("python")

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(CatalogError):
            await make_client(handler).search("python")

    @pytest.mark.asyncio
    async def test_non_json_response(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>not json</html>")

        with pytest.raises(CatalogError):
            await make_client(handler).search("python")
