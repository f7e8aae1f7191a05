"""
Tests for the comparable-sales orchestrator.

A fake search client serves canned results per query and records every
search, so the query-authority gating and the fallback ladder can be checked
end to end.
"""

from datetime import datetime, timedelta, timezone

import pytest

from comparables.config import EngineSettings
from comparables.error_handling import ErrorHandler, NetworkFailure
from comparables.models import (
    DataQuality,
    ItemCategory,
    ListingRecord,
    LiveListing,
    LiveSearchResult,
    MarketSentiment,
    QueryMetadata,
    QuerySource,
    SearchResult,
)
from comparables.orchestrator import (
    LENIENT_MATCH,
    LIVE_SEARCH_FAILED,
    NO_CONFIRMED_SALES,
    NO_SALES_FOUND,
    NO_TERMS_SELECTED,
    SEARCH_FAILED,
    ComparableSalesOrchestrator,
)
from comparables.query import QueryAuthority
from comparables.settings_store import InMemorySettingsStore


NOW = datetime.now(timezone.utc)


def records(count, title="Carl Malmsten stol", price=1000.0, sold=True, quality=DataQuality.STRICT):
    return [
        ListingRecord(
            title=title,
            currency="SEK",
            final_price=price + 100 * i if sold else None,
            is_sold=sold,
            estimate=900.0,
            end_date=NOW - timedelta(days=20 * i + 5),
            data_quality=quality,
        )
        for i in range(count)
    ]


def result(items, quality=DataQuality.STRICT):
    return SearchResult(total_entries=len(items), returned_items=len(items), records=items, data_quality=quality)


def live_result(count):
    listings = [
        LiveListing(
            title=f"Yamaha DX7 synthesizer {i}",
            currency="SEK",
            estimate=3000.0,
            current_bid=2000.0 + i * 100,
            bid_count=i + 1,
            reserve_met=True,
            ends_at=NOW + timedelta(days=1),
        )
        for i in range(count)
    ]
    return LiveSearchResult(total_entries=count, returned_items=count, listings=listings)


class FakeClient:
    def __init__(self, ended=None, live=None, error=None):
        self.ended = ended or {}
        self.live = live or {}
        self.error = error
        self.ended_queries = []
        self.live_calls = []
        self.excluded_seller = None
        self.closed = False

    async def search_ended(self, query, max_results=None):
        self.ended_queries.append(query)
        if self.error:
            raise self.error
        return self.ended.get(query)

    async def search_live(self, query, max_results=None, relevance=None):
        self.live_calls.append((query, relevance))
        return self.live.get(query)

    def set_excluded_seller(self, seller_id):
        self.excluded_seller = seller_id

    async def close(self):
        self.closed = True


class FailingClient(FakeClient):
    """Absorbs every search as a network failure, the way the real client does."""

    def __init__(self, status=503):
        super().__init__()
        self.status = status
        self.error_handler = ErrorHandler()

    async def _fail(self, query):
        raise NetworkFailure(f"HTTP {self.status}", query=query, status=self.status)

    async def search_ended(self, query, max_results=None):
        self.ended_queries.append(query)
        return await self.error_handler.run(self._fail, query)

    async def search_live(self, query, max_results=None, relevance=None):
        self.live_calls.append((query, relevance))
        return await self.error_handler.run(self._fail, query)


def user_selected(*terms):
    authority = QueryAuthority()
    authority.update_user_selection(list(terms))
    return authority


def ai_generated(query):
    authority = QueryAuthority()
    authority.set_from_generation(
        query, [], QueryMetadata(source=QuerySource.AI_GENERATED, confidence=0.8, updated_at=NOW)
    )
    return authority


def orchestrator(client, authority=None, store=None):
    return ComparableSalesOrchestrator(
        client=client,
        authority=authority,
        settings_store=store or InMemorySettingsStore(),
        settings=EngineSettings(),
    )


# Historical

@pytest.mark.asyncio
async def test_user_selected_query_is_never_broadened():
    client = FakeClient()
    authority = user_selected('"Carl Malmsten"', "stol")

    analysis = await orchestrator(client, authority).analyze_historical("Carl Malmsten", "stol")

    assert client.ended_queries == ['"Carl Malmsten" stol']
    assert analysis.has_comparable_data is False
    assert analysis.limitations == NO_SALES_FOUND
    assert analysis.actual_search_query == '"Carl Malmsten" stol'
    assert analysis.search_strategy.startswith("User-selected query")


@pytest.mark.asyncio
async def test_fully_deselected_query_is_never_broadened():
    client = FakeClient(ended={'"Carl Malmsten" stol': result(records(6))})
    authority = QueryAuthority()
    authority.update_user_selection(["stol"])
    authority.update_user_selection([], toggled_term="stol")
    engine = orchestrator(client, authority)

    historical = await engine.analyze_historical("Carl Malmsten", "stol")
    live = await engine.analyze_live("Carl Malmsten", "stol")

    assert client.ended_queries == []
    assert client.live_calls == []
    assert historical.has_comparable_data is False
    assert historical.limitations == NO_TERMS_SELECTED
    assert historical.actual_search_query == ""
    assert live.has_live_data is False
    assert live.limitations == NO_TERMS_SELECTED


@pytest.mark.asyncio
async def test_user_selected_query_results_are_analyzed():
    client = FakeClient(ended={'"Carl Malmsten" stol': result(records(2))})
    authority = user_selected('"Carl Malmsten"', "stol")

    analysis = await orchestrator(client, authority).analyze_historical("Carl Malmsten", "stol")

    assert analysis.has_comparable_data
    assert analysis.analyzed_sales == 2
    assert len(client.ended_queries) == 1


@pytest.mark.asyncio
async def test_generated_query_with_enough_records_is_used():
    client = FakeClient(ended={'"Carl Malmsten" fåtölj Pilgrim': result(records(3))})
    authority = ai_generated('"Carl Malmsten" fåtölj Pilgrim')

    analysis = await orchestrator(client, authority).analyze_historical("Carl Malmsten", "fåtölj")

    assert client.ended_queries == ['"Carl Malmsten" fåtölj Pilgrim']
    assert analysis.has_comparable_data
    assert analysis.actual_search_query == '"Carl Malmsten" fåtölj Pilgrim'


@pytest.mark.asyncio
async def test_generated_query_with_few_records_falls_back():
    client = FakeClient(ended={
        '"Carl Malmsten" fåtölj Pilgrim': result(records(2)),
        '"Carl Malmsten"': result(records(8)),
    })
    authority = ai_generated('"Carl Malmsten" fåtölj Pilgrim')

    analysis = await orchestrator(client, authority).analyze_historical("Carl Malmsten", "fåtölj")

    assert client.ended_queries[0] == '"Carl Malmsten" fåtölj Pilgrim'
    assert '"Carl Malmsten" fåtölj' in client.ended_queries
    assert client.ended_queries[-1] == '"Carl Malmsten"'
    assert analysis.actual_search_query == '"Carl Malmsten"'
    assert analysis.analyzed_sales == 8
    assert analysis.artist_search_results == 8


@pytest.mark.asyncio
async def test_canonical_query_without_authority():
    client = FakeClient(ended={'"Carl Malmsten" stol': result(records(4))})

    analysis = await orchestrator(client).analyze_historical("Carl Malmsten", "stol")

    assert client.ended_queries == ['"Carl Malmsten" stol']
    assert analysis.has_comparable_data
    assert analysis.search_strategy.startswith("Basic combined query")


@pytest.mark.asyncio
async def test_generic_results_are_validated():
    mixed = records(4, title="Byrå ek 1800-tal") + records(2, title="Tavla olja på duk")
    client = FakeClient(ended={"byrå 1800-tal ek": result(mixed)})

    analysis = await orchestrator(client).analyze_historical(object_type="byrå", period="1800-tal", technique="ek")

    assert analysis.has_comparable_data
    assert analysis.analyzed_sales == 4


@pytest.mark.asyncio
async def test_unsold_records_mean_no_confirmed_sales():
    client = FakeClient(ended={'"Carl Malmsten" stol': result(records(5, sold=False))})

    analysis = await orchestrator(client).analyze_historical("Carl Malmsten", "stol")

    assert analysis.has_comparable_data is False
    assert analysis.limitations == NO_CONFIRMED_SALES
    assert analysis.total_matches == 5


@pytest.mark.asyncio
async def test_lenient_results_are_flagged():
    lenient = records(6, quality=DataQuality.LENIENT)
    client = FakeClient(ended={'"Carl Malmsten" stol': result(lenient, DataQuality.LENIENT)})

    analysis = await orchestrator(client).analyze_historical("Carl Malmsten", "stol")

    assert analysis.has_comparable_data
    assert LENIENT_MATCH in analysis.limitations


@pytest.mark.asyncio
async def test_historical_analysis_never_raises():
    client = FakeClient(error=RuntimeError("boom"))

    analysis = await orchestrator(client).analyze_historical("Carl Malmsten", "stol")

    assert analysis.has_comparable_data is False
    assert analysis.limitations == SEARCH_FAILED
    assert analysis.error == "boom"



@pytest.mark.asyncio
async def test_absorbed_failures_are_reported():
    client = FailingClient()
    engine = orchestrator(client)

    analysis = await engine.analyze_historical("Carl Malmsten", "stol")

    assert analysis.has_comparable_data is False
    assert analysis.limitations == SEARCH_FAILED
    assert analysis.error == "HTTP 503"
    assert client.error_handler.failure_count == len(client.ended_queries)

    description = engine.describe_last_failure()
    assert description["error_type"] == "NetworkFailure"
    assert "try again" in description["recovery_suggestions"][0]


@pytest.mark.asyncio
async def test_failures_are_forgotten_between_analyses():
    client = FakeClient()
    client.error_handler = ErrorHandler()
    client.error_handler.failure_count = 3
    client.error_handler.last_error = NetworkFailure("HTTP 503", status=503)
    engine = orchestrator(client)

    analysis = await engine.analyze_historical("Carl Malmsten", "stol")

    assert analysis.limitations == NO_SALES_FOUND
    assert analysis.error is None
    assert engine.last_failure() is None
    assert engine.describe_last_failure() is None

@pytest.mark.asyncio
async def test_nothing_to_search_for():
    client = FakeClient()

    analysis = await orchestrator(client).analyze_historical()

    assert analysis.has_comparable_data is False
    assert client.ended_queries == []


# Live

@pytest.mark.asyncio
async def test_live_user_selected_query_with_no_results():
    client = FakeClient()
    authority = user_selected("Yamaha", "DX7")

    analysis = await orchestrator(client, authority).analyze_live("Yamaha", "DX7")

    assert analysis.has_live_data is False
    assert analysis.actual_search_query == "Yamaha DX7"
    assert client.live_calls == [("Yamaha DX7", None)]


@pytest.mark.asyncio
async def test_live_needs_an_authoritative_query():
    client = FakeClient(live={"yamaha dx7": live_result(4)})

    assert await orchestrator(client).analyze_live("Yamaha", "DX7") is None
    assert await orchestrator(client, QueryAuthority()).analyze_live("Yamaha", "DX7") is None
    assert client.live_calls == []


@pytest.mark.asyncio
async def test_live_generated_query_falls_back_with_relevance_for_broad_queries():
    client = FakeClient(live={"synthesizer": live_result(4)})
    authority = ai_generated("Yamaha DX7 Rev 1")

    analysis = await orchestrator(client, authority).analyze_live("Yamaha", "DX7")

    assert analysis.has_live_data
    assert analysis.actual_search_query == "synthesizer"
    assert ("yamaha dx7", None) in client.live_calls
    assert ("synthesizer", ItemCategory.SYNTHESIZER) in client.live_calls
    assert analysis.analyzed_live_items == 4
    assert analysis.market_sentiment == MarketSentiment.STRONG
    assert analysis.current_bids.low == 2000


@pytest.mark.asyncio
async def test_live_failures_are_reported():
    client = FailingClient(status=429)
    authority = user_selected("Yamaha", "DX7")

    analysis = await orchestrator(client, authority).analyze_live("Yamaha", "DX7")

    assert analysis.has_live_data is False
    assert analysis.limitations == LIVE_SEARCH_FAILED
    assert analysis.error == "HTTP 429"


# Excluded seller

@pytest.mark.asyncio
async def test_excluded_seller_persisted_and_reloaded():
    store = InMemorySettingsStore()
    client = FakeClient()
    engine = orchestrator(client, store=store)

    await engine.set_excluded_seller("42")

    assert await store.get_excluded_seller() == "42"
    assert client.excluded_seller == "42"

    await store.set_excluded_seller("7")
    await engine.analyze_historical("Carl Malmsten", "stol")
    assert client.excluded_seller == "7"

    await engine.close()
    assert client.closed
