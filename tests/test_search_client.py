"""
Tests for the marketplace search client.

The HTTP session is replaced with a fake that records requests and replays
canned responses, so caching, failure handling and seller exclusion can be
checked without the network.
"""

import time

import aiohttp
import pytest

from comparables.config import EngineSettings
from comparables.error_handling import ErrorHandler, MalformedResponse, NetworkFailure
from comparables.marketplace import MarketplaceSearchClient
from comparables.models import DataQuality, ItemCategory


PAST = int(time.time()) - 30 * 86400
FUTURE = int(time.time()) + 2 * 86400


def sold_item(title="Carl Malmsten stol", price=1200, currency="SEK", company_id=1):
    return {
        "title": title,
        "currency": currency,
        "estimate": 1000,
        "upper_estimate": 1500,
        "bids": [{"amount": price, "timestamp": PAST}],
        "hammered": True,
        "state": "ended",
        "ends_at": PAST,
        "url": "https://auctionet.com/en/items/111-stol",
        "company_id": company_id,
    }


def live_item(title="Yamaha DX7 synthesizer", company_id=1):
    return {
        "title": title,
        "currency": "SEK",
        "estimate": 3000,
        "bids": [{"amount": 2500, "timestamp": PAST}],
        "hammered": False,
        "state": "published",
        "ends_at": FUTURE,
        "url": "https://auctionet.com/en/items/222-dx7",
        "company_id": company_id,
    }


class FakeResponse:
    def __init__(self, status=200, payload=None, text="", json_error=None):
        self.status = status
        self._payload = payload
        self._text = text
        self._json_error = json_error

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False

    async def text(self):
        return self._text

    async def json(self, content_type=None):
        if self._json_error:
            raise self._json_error
        return self._payload


class FakeSession:
    """Replays responses in order and records every request."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []
        self.closed = False

    def get(self, url, params=None):
        self.requests.append((url, dict(params or {})))
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response

    async def close(self):
        self.closed = True


def page(items, total=None):
    payload = {"items": items}
    if total is not None:
        payload["pagination"] = {"total_entries": total}
    return FakeResponse(payload=payload)


def make_client(*responses):
    session = FakeSession(*responses)
    return MarketplaceSearchClient(EngineSettings(), session=session, error_handler=ErrorHandler()), session


@pytest.mark.asyncio
async def test_search_ended_returns_records_and_uses_cache():
    client, session = make_client(page([sold_item(), sold_item(price=1500)], total=57))

    first = await client.search_ended('"Carl Malmsten" stol')
    second = await client.search_ended('"Carl Malmsten" stol')

    assert first is second
    assert len(session.requests) == 1
    assert first.total_entries == 57
    assert first.returned_items == 2
    assert [record.final_price for record in first.records] == [1200, 1500]

    url, params = session.requests[0]
    assert params == {"q": '"Carl Malmsten" stol', "per_page": "200", "is": "ended"}


@pytest.mark.asyncio
async def test_live_search_does_not_request_ended_items():
    client, session = make_client(page([live_item()]))

    result = await client.search_live("Yamaha DX7")

    assert len(result.listings) == 1
    assert "is" not in session.requests[0][1]


@pytest.mark.asyncio
async def test_total_entries_defaults_to_item_count():
    client, _ = make_client(page([sold_item(), sold_item()]))

    result = await client.search_ended("stol")

    assert result.total_entries == 2


@pytest.mark.asyncio
async def test_empty_result_is_none_and_not_cached():
    client, session = make_client(page([]))

    assert await client.search_ended("okänt") is None
    assert await client.search_ended("okänt") is None
    assert len(session.requests) == 2


@pytest.mark.asyncio
async def test_network_failure_becomes_none():
    client, _ = make_client(aiohttp.ClientConnectionError("connection refused"))

    assert await client.search_ended("stol") is None
    assert client.error_handler.failure_count == 1
    assert isinstance(client.error_handler.last_error, NetworkFailure)


@pytest.mark.asyncio
async def test_http_error_status_becomes_none():
    client, _ = make_client(FakeResponse(status=503, text="Service Unavailable"))

    assert await client.search_ended("stol") is None
    assert client.error_handler.last_error.status == 503


@pytest.mark.asyncio
async def test_malformed_body_becomes_none():
    client, _ = make_client(FakeResponse(json_error=ValueError("Expecting value")))

    assert await client.search_ended("stol") is None
    assert isinstance(client.error_handler.last_error, MalformedResponse)

    client, _ = make_client(FakeResponse(payload={"results": []}))

    assert await client.search_live("stol") is None
    assert isinstance(client.error_handler.last_error, MalformedResponse)


@pytest.mark.asyncio
async def test_foreign_currency_items_are_dropped():
    client, _ = make_client(page([sold_item(currency="EUR"), sold_item()]))

    result = await client.search_ended("stol")

    assert len(result.records) == 1
    assert result.records[0].currency == "SEK"


@pytest.mark.asyncio
async def test_only_foreign_currency_items_is_none():
    client, _ = make_client(page([sold_item(currency="EUR")]))

    assert await client.search_ended("stol") is None


@pytest.mark.asyncio
async def test_lenient_quality_reported():
    unsold_running = dict(sold_item(), hammered=False, state="published", ends_at=FUTURE, estimate=None, upper_estimate=None)
    client, _ = make_client(page([unsold_running]))

    result = await client.search_ended("stol")

    assert result.data_quality == DataQuality.LENIENT


@pytest.mark.asyncio
async def test_changing_excluded_seller_clears_cache():
    client, session = make_client(page([sold_item(company_id=1), sold_item(company_id=2)]))

    first = await client.search_ended("stol")
    client.set_excluded_seller("1")
    second = await client.search_ended("stol")

    assert len(session.requests) == 2
    assert len(first.records) == 2
    assert [record.seller_id for record in second.records] == ["2"]

    client.set_excluded_seller(" 1 ")
    await client.search_ended("stol")
    assert len(session.requests) == 2


@pytest.mark.asyncio
async def test_live_relevance_filter_for_broad_queries():
    client, _ = make_client(page([live_item(), live_item(title="Yamaha motorcykel")]))

    result = await client.search_live("yamaha", relevance=ItemCategory.SYNTHESIZER)

    assert [listing.title for listing in result.listings] == ["Yamaha DX7 synthesizer"]


@pytest.mark.asyncio
async def test_close_leaves_borrowed_session_open():
    client, session = make_client(page([]))

    await client.close()

    assert session.closed is False
