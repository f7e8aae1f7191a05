"""Marketplace search API access."""

from .cache import TTLCache
from .client import MarketplaceSearchClient
from .listing_parser import ListingParser, extract_auction_id, localize_url, time_remaining

__all__ = [
    'MarketplaceSearchClient',
    'ListingParser',
    'TTLCache',
    'extract_auction_id',
    'localize_url',
    'time_remaining',
]
