"""
Tests for listing page retrieval.
"""
import httpx
import orjson
import pytest

from apps.harvester.client import AuthContext
from apps.harvester.fetcher import PageFetcher
from utils.errors import FetchError, ParseError

LISTING_URL = "https://en.dhv-xc.de/api/fli/flights"
LOCATIONS = {"Brauneck (DE)": "9415", "Kössen (AT)": "13309"}


def _fetcher(page_size: int = 2) -> PageFetcher:
    return PageFetcher(LISTING_URL, LOCATIONS, page_size)


def test_build_params_encodes_filter_and_navigation() -> None:
    params = httpx.QueryParams(_fetcher(page_size=500).build_params(1000))

    assert params.get_list("fkto[]") == ["9415", "13309"]
    assert params.get_list("l-fkto[]") == ["Brauneck (DE)", "Kössen (AT)"]
    assert orjson.loads(params["navpars"]) == {
        "start": 1000,
        "limit": 500,
        "sort": [
            {"field": "FlightDate", "dir": -1},
            {"field": "BestTaskPoints", "dir": -1},
        ],
    }


def test_page_size_must_be_positive() -> None:
    with pytest.raises(ValueError):
        PageFetcher(LISTING_URL, LOCATIONS, 0)


@pytest.mark.asyncio
async def test_fetch_page_returns_records_and_total(portal, auth: AuthContext, flights) -> None:
    page = await _fetcher().fetch_page(2, auth)

    assert page.offset == 2
    assert page.total_count == 5
    assert [r.IDFlight for r in page.records] == [flights[2]["IDFlight"], flights[3]["IDFlight"]]
    assert page.records[0].model_dump()["FKFederation"] is None


@pytest.mark.asyncio
async def test_fetch_page_sends_token_and_credentials(portal, auth: AuthContext) -> None:
    await _fetcher().fetch_page(0, auth)

    request = portal.requests[-1]
    assert request.method == "GET"
    assert request.headers["X-CSRF-Token"] == portal.token
    assert orjson.loads(request.content) == {"uid": "pilot", "pwd": "secret"}


@pytest.mark.asyncio
async def test_rejected_listing_raises_fetch_error(credentials) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": False, "message": "session expired"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        auth = AuthContext(token="t", client=client, credentials=credentials)
        with pytest.raises(FetchError, match="session expired"):
            await _fetcher().fetch_page(0, auth)


@pytest.mark.asyncio
async def test_http_error_status_raises_fetch_error(credentials) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, content=b"busy")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        auth = AuthContext(token="t", client=client, credentials=credentials)
        with pytest.raises(FetchError, match="503"):
            await _fetcher().fetch_page(0, auth)


@pytest.mark.asyncio
async def test_transport_error_raises_fetch_error(credentials) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        auth = AuthContext(token="t", client=client, credentials=credentials)
        with pytest.raises(FetchError):
            await _fetcher().fetch_page(0, auth)


@pytest.mark.asyncio
async def test_missing_total_count_raises_parse_error(credentials) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": True, "meta": {}, "data": []})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        auth = AuthContext(token="t", client=client, credentials=credentials)
        with pytest.raises(ParseError, match="totalCount"):
            await _fetcher().fetch_page(0, auth)


@pytest.mark.asyncio
async def test_record_without_identifier_raises_parse_error(credentials) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"success": True, "meta": {"totalCount": "1"}, "data": [{"FlightDate": "2025-03-18"}]},
        )

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        auth = AuthContext(token="t", client=client, credentials=credentials)
        with pytest.raises(ParseError):
            await _fetcher().fetch_page(0, auth)


@pytest.mark.asyncio
async def test_negative_total_count_raises_parse_error(credentials) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": True, "meta": {"totalCount": -1}, "data": []})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        auth = AuthContext(token="t", client=client, credentials=credentials)
        with pytest.raises(ParseError, match="negative totalCount"):
            await _fetcher().fetch_page(0, auth)
