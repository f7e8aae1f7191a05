"""
Property-based tests for the result cache and the listing parser.

These tests verify how raw marketplace items are admitted, classified and
converted, and how cached results expire.
"""

from datetime import datetime, timedelta, timezone
from hypothesis import given, settings, strategies as st

from comparables.marketplace import (
    ListingParser,
    TTLCache,
    extract_auction_id,
    localize_url,
    time_remaining,
)
from comparables.models import DataQuality, ItemCategory
from comparables.search.categories import LIVE_RELEVANCE_KEYWORDS


NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
PAST = int((NOW - timedelta(days=30)).timestamp())
FUTURE = int((NOW + timedelta(days=2, hours=5)).timestamp())


def make_item(**overrides):
    item = {
        "title": "Carl Malmsten stol",
        "currency": "SEK",
        "estimate": 1000,
        "upper_estimate": 1500,
        "bids": [{"amount": 1200, "timestamp": PAST - 60}],
        "hammered": True,
        "state": "ended",
        "ends_at": PAST,
        "house": "Stockholms Auktionsverk",
        "location": "Stockholm",
        "url": "https://auctionet.com/en/items/12345-carl-malmsten-stol",
        "company_id": 42,
    }
    item.update(overrides)
    return item


class FakeClock:
    def __init__(self, start):
        self.current = start

    def __call__(self):
        return self.current

    def advance(self, seconds):
        self.current += timedelta(seconds=seconds)


# Cache

@given(ttl=st.integers(min_value=1, max_value=3600), elapsed=st.integers(min_value=0, max_value=7200))
@settings(max_examples=100)
def test_cache_entry_expires_after_ttl(ttl, elapsed):
    """
    A cached value is returned until its time-to-live has passed and never
    after.
    """
    clock = FakeClock(datetime(2024, 1, 1))
    cache = TTLCache(now=clock)
    cache.set(("ended", "stol", 200, "none"), "result", ttl)

    clock.advance(elapsed)

    if elapsed < ttl:
        assert cache.get(("ended", "stol", 200, "none")) == "result"
    else:
        assert cache.get(("ended", "stol", 200, "none")) is None
        assert len(cache) == 0


def test_cache_purge_expired():
    clock = FakeClock(datetime(2024, 1, 1))
    cache = TTLCache(now=clock)
    cache.set("short", 1, 10)
    cache.set("long", 2, 100)

    clock.advance(50)

    assert cache.purge_expired() == 1
    assert "long" in cache
    assert "short" not in cache

    cache.clear()
    assert len(cache) == 0


# URL helpers

def test_localize_url_and_auction_id():
    url = localize_url("https://auctionet.com/en/items/12345-carl-malmsten-stol")
    assert url == "https://auctionet.com/sv/items/12345-carl-malmsten-stol"
    assert extract_auction_id(url) == "12345"
    assert extract_auction_id("https://example.com/lot?auction_id=987") == "987"
    assert extract_auction_id("https://example.com/lot") is None
    assert localize_url(None) is None


def test_time_remaining_format():
    assert time_remaining(NOW + timedelta(days=2, hours=5), NOW) == "2d 5h"
    assert time_remaining(NOW + timedelta(hours=3, minutes=20), NOW) == "3h 20m"
    assert time_remaining(NOW + timedelta(minutes=45), NOW) == "45m"
    assert time_remaining(NOW - timedelta(minutes=1), NOW) == "Ended"
    assert time_remaining(None, NOW) == ""


# Ended listings

def test_parse_ended_strict_sold_record():
    parser = ListingParser("SEK", now=NOW)

    records, quality = parser.parse_ended([make_item()])

    assert quality == DataQuality.STRICT
    assert len(records) == 1
    record = records[0]
    assert record.is_sold
    assert record.final_price == 1200
    assert record.is_estimate_based_price is False
    assert record.seller_id == "42"
    assert record.url.startswith("https://auctionet.com/sv/")
    assert record.bid_timestamp < record.end_date


def test_unsold_record_has_no_final_price():
    parser = ListingParser("SEK", now=NOW)

    records, quality = parser.parse_ended([make_item(hammered=False, bids=[])])

    assert quality == DataQuality.STRICT
    assert records[0].is_sold is False
    assert records[0].final_price is None
    assert records[0].is_estimate_based_price is True


@given(currency=st.sampled_from(["EUR", "USD", "NOK", "DKK", "GBP"]))
@settings(max_examples=20)
def test_foreign_currency_never_admitted(currency):
    """Every admitted record is in the reference currency."""
    parser = ListingParser("SEK", now=NOW)

    records, _ = parser.parse_ended([make_item(currency=currency), make_item()])

    assert len(records) == 1
    assert all(record.currency == "SEK" for record in records)


def test_excluded_seller_dropped():
    parser = ListingParser("SEK", excluded_seller="42", now=NOW)

    records, _ = parser.parse_ended([make_item(), make_item(company_id=7)])

    assert [record.seller_id for record in records] == ["7"]


def test_lenient_pass_when_nothing_is_strict():
    parser = ListingParser("SEK", now=NOW)
    running_with_bids = make_item(
        hammered=False, state="published", ends_at=FUTURE, estimate=None, upper_estimate=None
    )

    records, quality = parser.parse_ended([running_with_bids])

    assert quality == DataQuality.LENIENT
    assert len(records) == 1
    assert records[0].data_quality == DataQuality.LENIENT
    assert records[0].is_sold is False


def test_items_without_any_price_signal_are_dropped():
    parser = ListingParser("SEK", now=NOW)
    bare = make_item(hammered=False, bids=[], estimate=None, upper_estimate=None)

    records, _ = parser.parse_ended([bare, "not an item"])

    assert records == []


# Live listings

def test_parse_live_keeps_only_running_auctions():
    parser = ListingParser("SEK", now=NOW)
    running = make_item(hammered=False, state="published", ends_at=FUTURE, next_bid_amount=1300)

    listings = parser.parse_live([running, make_item()])

    assert len(listings) == 1
    listing = listings[0]
    assert listing.current_bid == 1200
    assert listing.bid_count == 1
    assert listing.time_remaining == "2d 5h"
    assert listing.auction_id == "12345"


def test_parse_live_relevance_keywords():
    parser = ListingParser("SEK", now=NOW)
    synth = make_item(title="Yamaha DX7 synthesizer", hammered=False, state="published", ends_at=FUTURE)
    motorcycle = make_item(title="Yamaha motorcykel", hammered=False, state="published", ends_at=FUTURE)

    listings = parser.parse_live([synth, motorcycle], relevance_keywords=("synthesizer", "dx7"))

    assert [listing.title for listing in listings] == ["Yamaha DX7 synthesizer"]


def test_short_watch_keyword_needs_a_whole_word():
    parser = ListingParser("SEK", now=NOW)
    titles = ["Ur, Lings guld", "Armbandsuret Omega", "Figur i brons", "Kultur och konst, bok"]
    items = [make_item(title=t, hammered=False, state="published", ends_at=FUTURE) for t in titles]

    listings = parser.parse_live(items, relevance_keywords=LIVE_RELEVANCE_KEYWORDS[ItemCategory.WATCH])

    assert [listing.title for listing in listings] == ["Ur, Lings guld", "Armbandsuret Omega"]


def test_parse_live_uses_starting_bid_without_bids():
    parser = ListingParser("SEK", now=NOW)
    item = make_item(bids=[], hammered=False, state="published", ends_at=FUTURE, starting_bid_amount=500)

    listings = parser.parse_live([item])

    assert listings[0].current_bid == 500
    assert listings[0].bid_count == 0
