"""
Upstream client tests.

Tests verify every transport, status and decoding failure surfaces as
UpstreamError tagged with its source, and that pagination stops cleanly.
"""
import httpx
import pytest

from policy_core.api.congress import CongressClient
from policy_core.api.fec import FecClient
from policy_core.api.http import JsonApiClient, _next_link
from policy_core.api.lda import LdaClient
from policy_core.exceptions import UpstreamError

BASE = "https://api.example.gov/v1"


def paged_listing(last_page_status: int = 200):
    """Three pages: Congress.gov-style link, then LDA-style link, then a final page."""
    def handler(request: httpx.Request) -> httpx.Response:
        offset = request.url.params.get("offset")
        if offset is None:
            return httpx.Response(200, json={"items": [1], "pagination": {"next": f"{BASE}/items?offset=1"}})
        if offset == "1":
            return httpx.Response(200, json={"items": [2], "next": f"{BASE}/items?offset=2"})
        if last_page_status != 200:
            return httpx.Response(last_page_status, json={"error": "unavailable"})
        return httpx.Response(200, json={"items": [3], "next": None})
    return handler


class TestNextLink:
    """Tests for _next_link() pagination shapes."""

    def test_congress_shape(self):
        assert _next_link({"pagination": {"next": "https://x/2"}}) == "https://x/2"

    def test_lda_shape(self):
        assert _next_link({"next": "https://x/2"}) == "https://x/2"

    @pytest.mark.parametrize("payload", [
        {"pagination": {"count": 3}},
        {"next": None},
        {"next": ""},
        [],
        None,
    ])
    def test_no_link(self, payload):
        assert _next_link(payload) is None


class TestJsonApiClient:
    """Tests for JsonApiClient request and error handling."""

    @pytest.mark.asyncio
    async def test_pages_followed(self, make_transport):
        transport = make_transport({"/v1/items": paged_listing()})
        async with JsonApiClient(BASE, transport=transport) as client:
            pages = await client.get_pages("/items")
        assert [page["items"] for page in pages] == [[1], [2], [3]]

    @pytest.mark.asyncio
    async def test_max_pages(self, make_transport):
        transport = make_transport({"/v1/items": paged_listing()})
        async with JsonApiClient(BASE, transport=transport) as client:
            pages = await client.get_pages("/items", max_pages=2)
        assert len(pages) == 2

    @pytest.mark.asyncio
    async def test_later_page_failure_keeps_earlier_pages(self, make_transport):
        transport = make_transport({"/v1/items": paged_listing(last_page_status=503)})
        async with JsonApiClient(BASE, transport=transport) as client:
            pages = await client.get_pages("/items")
        assert [page["items"] for page in pages] == [[1], [2]]

    @pytest.mark.asyncio
    async def test_first_page_failure_raises(self, make_transport):
        async with JsonApiClient(BASE, transport=make_transport({"/v1/items": 500})) as client:
            with pytest.raises(UpstreamError) as exc_info:
                await client.get_pages("/items")
        assert exc_info.value.status_code == 500
        assert exc_info.value.source == "upstream"

    @pytest.mark.asyncio
    async def test_not_found_tagged_with_source(self, make_transport):
        async with CongressClient(api_key="test", transport=make_transport({})) as client:
            with pytest.raises(UpstreamError) as exc_info:
                await client.get_json("/bill/118/hr/99999")
        assert exc_info.value.status_code == 404
        assert exc_info.value.source == "congress.gov"
        assert "/v3/bill/118/hr/99999" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        async with JsonApiClient(BASE, transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(UpstreamError, match="timed out") as exc_info:
                await client.get_json("/items")
        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with JsonApiClient(BASE, transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(UpstreamError, match="request failed"):
                await client.get_json("/items")

    @pytest.mark.asyncio
    async def test_invalid_json(self, make_transport):
        async with JsonApiClient(BASE, transport=make_transport({"/v1/items": "<html>maintenance</html>"})) as client:
            with pytest.raises(UpstreamError, match="invalid JSON") as exc_info:
                await client.get_json("/items")
        assert exc_info.value.status_code == 200

    @pytest.mark.asyncio
    async def test_empty_params_dropped(self, make_transport, http_calls):
        transport = make_transport({"/v1/items": {"items": []}}, http_calls)
        async with JsonApiClient(BASE, params={"format": "json"}, transport=transport) as client:
            await client.get_json("/items", {"q": "energy", "from": None, "to": ""})

        params = http_calls[0].url.params
        assert params["q"] == "energy"
        assert params["format"] == "json"
        assert "from" not in params
        assert "to" not in params

    @pytest.mark.asyncio
    async def test_get_text_absolute_url(self, make_transport, http_calls):
        transport = make_transport({"/118/bills/hr1234/BILLS-118hr1234ih.xml": "<bill/>"}, http_calls)
        async with CongressClient(api_key="test", transport=transport) as client:
            text = await client.get_text("https://www.congress.gov/118/bills/hr1234/BILLS-118hr1234ih.xml")

        assert text == "<bill/>"
        assert http_calls[0].url.host == "www.congress.gov"


class TestCredentials:
    """Tests for per-registry credential placement."""

    @pytest.mark.asyncio
    async def test_congress_header(self, make_transport, http_calls):
        async with CongressClient(api_key="k1", transport=make_transport({"/v3/bill": {}}, http_calls)) as client:
            await client.get_json("/bill")
        assert http_calls[0].headers["X-Api-Key"] == "k1"
        assert http_calls[0].url.params["format"] == "json"

    @pytest.mark.asyncio
    async def test_lda_token(self, make_transport, http_calls):
        async with LdaClient(api_key="k2", transport=make_transport({"/api/v1/filings/": {}}, http_calls)) as client:
            await client.search_filings("energy")
        assert http_calls[0].headers["Authorization"] == "Token k2"
        assert client.has_key is True

    @pytest.mark.asyncio
    async def test_lda_anonymous(self, make_transport, http_calls):
        async with LdaClient(transport=make_transport({"/api/v1/filings/": {}}, http_calls)) as client:
            await client.search_filings("energy")
        assert "Authorization" not in http_calls[0].headers
        assert client.has_key is False

    @pytest.mark.asyncio
    async def test_fec_demo_key(self, make_transport, http_calls):
        async with FecClient(transport=make_transport({"/v1/candidates/search/": {}}, http_calls)) as client:
            await client.search_candidates("Smith, John")
        assert http_calls[0].url.params["api_key"] == "DEMO_KEY"
        assert http_calls[0].url.params["q"] == "Smith, John"
        assert client.has_key is False
