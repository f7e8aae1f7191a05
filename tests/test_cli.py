"""
Tests for the command line interface.
"""

import asyncio
import json
from datetime import datetime, timedelta, timezone

import pytest

from comparables import cli
from comparables.models import (
    LiveAnalysisResult,
    MarketActivity,
    MarketAnalysisResult,
    MarketSentiment,
    PriceRange,
    TrendDirection,
    TrendResult,
    ValueRange,
    ListingRecord,
    SearchResult,
)


NOW = datetime.now(timezone.utc)


class FakeClient:
    def __init__(self, settings=None):
        self.ended_queries = []

    async def search_ended(self, query, max_results=None):
        self.ended_queries.append(query)
        if query != '"Carl Malmsten" stol':
            return None
        return SearchResult(
            total_entries=4,
            returned_items=4,
            records=[
                ListingRecord(
                    title="Carl Malmsten stol",
                    currency="SEK",
                    final_price=1000.0 + 100 * i,
                    is_sold=True,
                    end_date=NOW - timedelta(days=10 * i + 1),
                )
                for i in range(4)
            ],
        )

    async def search_live(self, query, max_results=None, relevance=None):
        return None

    def set_excluded_seller(self, seller_id):
        pass

    async def close(self):
        pass


def test_parser_requires_mode():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args([])

    args = cli.build_parser().parse_args(["historical", "--artist", "Carl Malmsten", "--valuation", "8000"])
    assert args.mode == "historical"
    assert args.valuation == 8000.0
    assert args.object_type is None


def test_format_historical():
    result = MarketAnalysisResult(
        has_comparable_data=True,
        total_matches=40,
        analyzed_sales=12,
        price_range=PriceRange(low=1000, high=2500, currency="SEK"),
        confidence=0.8,
        trend=TrendResult(direction=TrendDirection.STABLE, description="Stable hammer prices"),
        market_context="Active market with regular sales",
        actual_search_query='"Carl Malmsten" stol',
        search_strategy="Basic combined query",
    )

    text = cli.format_historical(result)

    assert "Price range: 1 000 - 2 500 SEK" in text
    assert "Sales analyzed: 12 of 40 matches" in text
    assert "Trend: Stable hammer prices" in text


def test_format_no_data():
    text = cli.format_historical(MarketAnalysisResult(has_comparable_data=False, limitations="No comparable sales found"))
    assert "No comparable data: No comparable sales found" in text

    assert "No query" in cli.format_live(None)

    live = LiveAnalysisResult(
        has_live_data=True,
        total_matches=3,
        analyzed_live_items=3,
        current_bids=ValueRange(low=1500, high=3000, average=2200),
        market_activity=MarketActivity(
            total_items=3, total_bids=9, average_bids_per_item=3.0, reserves_met_percentage=67
        ),
        market_sentiment=MarketSentiment.MODERATE,
    )
    text = cli.format_live(live)
    assert "Bids: 1 500 - 3 000" in text
    assert "Sentiment: moderate" in text


def test_run_historical_with_user_query(monkeypatch, capsys):
    monkeypatch.setattr(cli, "MarketplaceSearchClient", FakeClient)
    args = cli.build_parser().parse_args(["historical", "--query", '"Carl Malmsten" stol', "--json"])

    exit_code = asyncio.run(cli.run(args))

    assert exit_code == 0
    body = json.loads(capsys.readouterr().out)
    assert body["has_comparable_data"] is True
    assert body["search_strategy"].startswith("User-selected query")


def test_run_live_without_query(monkeypatch, capsys):
    monkeypatch.setattr(cli, "MarketplaceSearchClient", FakeClient)
    args = cli.build_parser().parse_args(["live", "--artist", "Yamaha", "--object-type", "DX7"])

    exit_code = asyncio.run(cli.run(args))

    assert exit_code == 1
    assert "No query" in capsys.readouterr().out


def test_run_historical_needs_input(capsys):
    args = cli.build_parser().parse_args(["historical", "--period", "1950"])

    assert asyncio.run(cli.run(args)) == 2
