"""Unit tests for the apibay search provider."""

import httpx
import pytest
import respx

from app.services.apibay import ApibayService, format_size

SEARCH_URL = "https://apibay.org/q.php"


class TestFormatSize:
    """Tests for human readable sizes."""

    def test_zero(self):
        assert format_size(0) == "0 B"

    def test_bytes(self):
        assert format_size(512) == "512 B"

    def test_trims_trailing_zeros(self):
        assert format_size(1536) == "1.5 KB"
        assert format_size(2 * 1024 ** 3) == "2 GB"

    def test_two_decimals(self):
        assert format_size(1234567890) == "1.15 GB"


class TestApibaySearch:
    """Tests for ApibayService.search."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_maps_results(self):
        route = respx.get(SEARCH_URL).respond(200, json=[{
            "name": "Big Buck Bunny (2008)",
            "info_hash": "ABCDEF0123456789",
            "seeders": "120",
            "leechers": "4",
            "size": "1536",
        }])

        results = await ApibayService().search("Big  Buck's Bunny")

        assert len(results) == 1
        result = results[0]
        assert result.title == "Big Buck Bunny (2008)"
        assert result.seeds == 120
        assert result.leeches == 4
        assert result.size == "1.5 KB"
        assert result.info_hash == "ABCDEF0123456789"
        assert result.magnet == "magnet:?xt=urn:btih:ABCDEF0123456789&dn=Big%20Buck%20Bunny%20(2008)"

        params = route.calls.last.request.url.params
        assert params["q"] == "Big Buck s Bunny"
        assert params["cat"] == "0"

    @pytest.mark.asyncio
    @respx.mock
    async def test_no_results_sentinel(self):
        respx.get(SEARCH_URL).respond(200, json=[{
            "name": "No results returned",
            "info_hash": "0000000000000000000000000000000000000000",
            "seeders": "0",
            "leechers": "0",
            "size": "0",
        }])

        assert await ApibayService().search("nothing here") == []

    @pytest.mark.asyncio
    @respx.mock
    async def test_network_error_is_empty(self):
        respx.get(SEARCH_URL).mock(side_effect=httpx.ConnectError("Connection refused"))

        assert await ApibayService().search("anything") == []

    @pytest.mark.asyncio
    @respx.mock
    async def test_failure_is_not_cached(self):
        """A failed lookup must not stick; the next call goes back to the network."""
        route = respx.get(SEARCH_URL).mock(side_effect=[
            httpx.ConnectError("Connection refused"),
            httpx.Response(200, json=[{
                "name": "Sintel", "info_hash": "AA", "seeders": "1", "leechers": "0", "size": "10",
            }]),
        ])
        service = ApibayService()

        first = await service.search("sintel")
        second = await service.search("sintel")

        assert first == []
        assert [r.title for r in second] == ["Sintel"]
        assert route.call_count == 2

    @pytest.mark.asyncio
    async def test_blank_query(self):
        assert await ApibayService().search("  '  ") == []

    @pytest.mark.asyncio
    @respx.mock
    async def test_repeated_query_is_cached(self):
        route = respx.get(SEARCH_URL).respond(200, json=[{
            "name": "Sintel", "info_hash": "AA", "seeders": "1", "leechers": "0", "size": "10",
        }])
        service = ApibayService()

        await service.search("sintel")
        await service.search("sintel")

        assert route.call_count == 1
