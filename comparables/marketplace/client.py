"""
Marketplace search client - runs single queries against the listings search API
with a time-boxed cache, for both ended (historical) and live auctions.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

from comparables.config import EngineSettings, get_engine_settings
from comparables.error_handling import ErrorHandler, MalformedResponse, NetworkFailure
from comparables.models import ItemCategory, LiveSearchResult, SearchResult
from comparables.search.categories import LIVE_RELEVANCE_KEYWORDS
from .cache import TTLCache
from .listing_parser import ListingParser


logger = logging.getLogger(__name__)

ENDED = "ended"
LIVE = "live"


class MarketplaceSearchClient:
    """
    Listings search API client with result caching.

    Ended searches are cached for 30 minutes and live searches for 5 minutes by
    default. The excluded seller is part of every cache key, and changing it
    clears the cache so results from before the change are never served.

    Failures never escape search_ended/search_live: transport errors, HTTP
    errors and malformed bodies are logged by the error handler and come back
    as None, the same as a search that found nothing.
    """

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        session: Optional[aiohttp.ClientSession] = None,
        error_handler: Optional[ErrorHandler] = None,
        cache: Optional[TTLCache] = None
    ):
        self.settings = settings or get_engine_settings()
        self.error_handler = error_handler or ErrorHandler()
        self.cache = cache or TTLCache()
        self.excluded_seller: Optional[str] = None

        self._session = session
        self._owns_session = session is None

    async def __aenter__(self):
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        """Close the HTTP session if this client opened it"""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def _ensure_session(self):
        """Ensure we have an open session"""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.settings.marketplace.request_timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True

    def set_excluded_seller(self, seller_id: Optional[str]) -> None:
        """Set the seller whose listings are dropped; a change clears the cache."""
        normalized = str(seller_id).strip() if seller_id is not None else None
        normalized = normalized or None
        if normalized != self.excluded_seller:
            logger.info(f"[SEARCH] Excluded seller changed to {normalized}, clearing cache")
            self.excluded_seller = normalized
            self.cache.clear()

    def clear_cache(self) -> None:
        self.cache.clear()

    def _cache_key(self, mode: str, query: str, max_results: int):
        return (mode, query, max_results, self.excluded_seller or "none")

    def _parser(self) -> ListingParser:
        return ListingParser(
            reference_currency=self.settings.marketplace.reference_currency,
            excluded_seller=self.excluded_seller,
        )

    async def search_ended(self, query: str, max_results: Optional[int] = None) -> Optional[SearchResult]:
        """
        Search concluded auctions.

        Args:
            query: Free-text search query
            max_results: Page size, defaults to the configured maximum

        Returns:
            SearchResult with at least one record, or None for no data or failure
        """
        return await self.error_handler.run(self._search_ended, query, max_results)

    async def search_live(
        self,
        query: str,
        max_results: Optional[int] = None,
        relevance: Optional[ItemCategory] = None
    ) -> Optional[LiveSearchResult]:
        """
        Search auctions that are still running.

        Args:
            query: Free-text search query
            max_results: Page size, defaults to the configured maximum
            relevance: Category whose title keywords a listing must contain,
                used for broad fallback queries

        Returns:
            LiveSearchResult with at least one listing, or None for no data or failure
        """
        return await self.error_handler.run(self._search_live, query, max_results, relevance)

    async def _search_ended(self, query: str, max_results: Optional[int]) -> Optional[SearchResult]:
        max_results = max_results or self.settings.marketplace.max_results
        cache_key = self._cache_key(ENDED, query, max_results)
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.info(f"[SEARCH] Cache hit for \"{query}\"")
            return cached

        data = await self._request(query, max_results, ended=True)
        items = data["items"]
        if not items:
            logger.info(f"[SEARCH] No results for \"{query}\"")
            return None

        records, quality = self._parser().parse_ended(items)
        if not records:
            logger.info(f"[SEARCH] {len(items)} results for \"{query}\" but none usable")
            return None

        result = SearchResult(
            total_entries=data["total_entries"],
            returned_items=len(items),
            records=records,
            data_quality=quality,
        )
        self.cache.set(cache_key, result, self.settings.cache.ended_ttl_seconds)
        logger.info(
            f"[SEARCH] \"{query}\": {len(records)} usable of {len(items)} returned "
            f"({result.total_entries} total, {quality.value})"
        )
        return result

    async def _search_live(
        self,
        query: str,
        max_results: Optional[int],
        relevance: Optional[ItemCategory]
    ) -> Optional[LiveSearchResult]:
        max_results = max_results or self.settings.marketplace.max_results
        relevance_key = relevance.value if relevance else None
        cache_key = self._cache_key(LIVE, query, max_results) + (relevance_key,)
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.info(f"[LIVE SEARCH] Cache hit for \"{query}\"")
            return cached

        data = await self._request(query, max_results, ended=False)
        items = data["items"]
        if not items:
            logger.info(f"[LIVE SEARCH] No results for \"{query}\"")
            return None

        keywords = LIVE_RELEVANCE_KEYWORDS.get(relevance) if relevance else None
        listings = self._parser().parse_live(items, relevance_keywords=keywords)
        if not listings:
            logger.info(f"[LIVE SEARCH] {len(items)} results for \"{query}\" but none running")
            return None

        result = LiveSearchResult(
            total_entries=data["total_entries"],
            returned_items=len(items),
            listings=listings,
        )
        self.cache.set(cache_key, result, self.settings.cache.live_ttl_seconds)
        logger.info(f"[LIVE SEARCH] \"{query}\": {len(listings)} running auctions")
        return result

    async def _request(self, query: str, max_results: int, ended: bool) -> Dict[str, Any]:
        """
        Fetch one page of listings.

        Returns:
            Dict with "items" (list of raw item dicts) and "total_entries"

        Raises:
            NetworkFailure: Transport error or non-200 status
            MalformedResponse: Body is not the expected JSON shape
        """
        await self._ensure_session()

        params = {"q": query, "per_page": str(max_results)}
        if ended:
            params["is"] = "ended"

        try:
            async with self._session.get(self.settings.marketplace.base_url, params=params) as response:
                if response.status != 200:
                    error_text = await response.text()
                    raise NetworkFailure(
                        f"Marketplace API error: {response.status} - {error_text[:200]}",
                        query=query,
                        status=response.status,
                    )
                try:
                    data = await response.json(content_type=None)
                except ValueError as e:
                    raise MalformedResponse(f"Response is not JSON: {e}", query=query, status=response.status)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NetworkFailure(f"Marketplace request failed: {type(e).__name__}: {e}", query=query)

        if not isinstance(data, dict) or not isinstance(data.get("items"), list):
            raise MalformedResponse("Response has no items list", query=query)

        pagination = data.get("pagination")
        total_entries = pagination.get("total_entries") if isinstance(pagination, dict) else None
        if not isinstance(total_entries, int):
            total_entries = len(data["items"])

        return {"items": data["items"], "total_entries": total_entries}
