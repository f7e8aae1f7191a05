"""
Comparable-sales orchestrator - top-level historical and live analysis.

Consults the query authority first, falls back to the strategy builder where
the query's provenance allows it, and hands the best result set through the
validator to the statistics engines.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import redis.asyncio as redis

from comparables.analysis import LiveMarketAnalyzer, MarketStatisticsEngine
from comparables.config import EngineSettings, get_engine_settings
from comparables.marketplace import MarketplaceSearchClient
from comparables.models import (
    DataQuality,
    LiveAnalysisResult,
    LiveSearchResult,
    MarketAnalysisResult,
    QuerySource,
    SearchResult,
    SearchStrategy,
    StrategyScope,
    TermKind,
)
from comparables.query import QueryAuthority
from comparables.search import SearchStrategyBuilder
from comparables.search.categories import classify, relevance_category
from comparables.settings_store import InMemorySettingsStore, SettingsStore
from comparables.validation import ResultValidator


logger = logging.getLogger(__name__)

NO_SALES_FOUND = "No comparable sales found"
NO_CONFIRMED_SALES = "Matching listings found, but none with a confirmed sale price"
SEARCH_FAILED = "Search for comparable sales failed"
LIVE_SEARCH_FAILED = "Search for live auctions failed"
NO_TERMS_SELECTED = "No search terms selected"
LENIENT_MATCH = "Lenient match, listings may be priced by estimate"


@dataclass
class _Outcome:
    """Best result found so far and the strategy that produced it."""
    result: Optional[object] = None
    strategy: Optional[SearchStrategy] = None
    artist_search_results: int = 0

    @property
    def count(self) -> int:
        return _size(self.result)


def _size(result) -> int:
    if result is None:
        return 0
    if isinstance(result, LiveSearchResult):
        return len(result.listings)
    return len(result.records)


class ComparableSalesOrchestrator:
    """
    Drive query authority -> strategy builder -> search client -> validator ->
    statistics for one item.

    A user-selected query is searched exactly as given and never broadened,
    even when it finds nothing. An AI-generated query is kept when it finds
    enough records and otherwise falls back to the strategy list, which is
    tried in order until a result reaches the sufficiency threshold.

    Neither entry point raises: failures come back as structured no-data
    results with a limitations string.
    """

    def __init__(
        self,
        client: MarketplaceSearchClient,
        authority: Optional[QueryAuthority] = None,
        settings_store: Optional[SettingsStore] = None,
        settings: Optional[EngineSettings] = None,
        builder: Optional[SearchStrategyBuilder] = None,
        validator: Optional[ResultValidator] = None,
        statistics: Optional[MarketStatisticsEngine] = None,
        live_analyzer: Optional[LiveMarketAnalyzer] = None
    ):
        self.settings = settings or get_engine_settings()
        self.client = client
        self.authority = authority
        self.settings_store = settings_store or InMemorySettingsStore()
        self.builder = builder or SearchStrategyBuilder()
        self.validator = validator or ResultValidator(self.settings.validation)
        self.statistics = statistics or MarketStatisticsEngine(self.settings.marketplace.reference_currency)
        self.live_analyzer = live_analyzer or LiveMarketAnalyzer()

    async def set_excluded_seller(self, seller_id: Optional[str]) -> None:
        """Persist the excluded seller and apply it to the client, clearing its cache."""
        await self.settings_store.set_excluded_seller(seller_id)
        self.client.set_excluded_seller(seller_id)

    async def _reload_excluded_seller(self) -> None:
        try:
            value = await self.settings_store.get_excluded_seller()
        except redis.RedisError as e:
            logger.warning(f"[ANALYSIS] Could not load excluded seller, keeping current value: {e}")
            return
        self.client.set_excluded_seller(value)

    def _reset_failures(self) -> None:
        handler = getattr(self.client, "error_handler", None)
        if handler is not None:
            handler.reset()

    def last_failure(self) -> Optional[Exception]:
        """The most recent search failure absorbed during the last analysis, if any."""
        handler = getattr(self.client, "error_handler", None)
        if handler is None or not handler.failure_count:
            return None
        return handler.last_error

    def describe_last_failure(self) -> Optional[Dict[str, Any]]:
        """Explanation and recovery suggestions for the last absorbed search failure."""
        failure = self.last_failure()
        if failure is None:
            return None
        return self.client.error_handler.describe_failure(failure)

    # Historical

    async def analyze_historical(
        self,
        artist: Optional[str] = None,
        object_type: Optional[str] = None,
        period: Optional[str] = None,
        technique: Optional[str] = None,
        current_valuation: Optional[float] = None
    ) -> MarketAnalysisResult:
        """
        Analyze comparable sales for an item.

        Args:
            artist: Artist, maker or brand
            object_type: Object type
            period: Period or year
            technique: Technique or material
            current_valuation: The cataloger's own valuation, for exceptional sales

        Returns:
            MarketAnalysisResult; has_comparable_data is False when nothing usable was found
        """
        try:
            if self._empty_user_selection():
                logger.info("[ANALYSIS] Every term deselected by the user, nothing to search")
                return MarketAnalysisResult(
                    has_comparable_data=False, limitations=NO_TERMS_SELECTED, actual_search_query=""
                )
            self._reset_failures()
            await self._reload_excluded_seller()
            outcome = await self._find_historical(artist, object_type, period, technique)
            return self._historical_result(outcome, artist, object_type, current_valuation)
        except Exception as e:
            logger.exception(f"[ANALYSIS] Historical analysis failed: {e}")
            return MarketAnalysisResult(
                has_comparable_data=False,
                limitations=SEARCH_FAILED,
                error=str(e) or type(e).__name__,
            )

    async def _find_historical(self, artist, object_type, period, technique) -> _Outcome:
        thresholds = self.settings.thresholds
        outcome = _Outcome()

        ssot = self._ssot_strategy()
        if ssot is not None:
            result = await self._search_ended(ssot)
            if self.authority.is_user_selection():
                logger.info(f"[ANALYSIS] User-selected query \"{ssot.query}\": {_size(result)} records, no fallback")
                return _Outcome(result=result, strategy=ssot)
            if _size(result) >= thresholds.ai_query_min_records:
                return _Outcome(result=result, strategy=ssot)
            logger.info(
                f"[ANALYSIS] Generated query \"{ssot.query}\" found {_size(result)} records, trying fallbacks"
            )
            if result is not None:
                outcome = _Outcome(result=result, strategy=ssot)

        canonical_query = self.builder.canonical_query(artist, object_type, period, technique)
        if canonical_query:
            canonical = SearchStrategy(
                query=canonical_query,
                description=f"Basic combined query: {canonical_query}",
                weight=1.0,
                scope=StrategyScope.ARTIST if artist and artist.strip() else StrategyScope.GENERIC,
                category=classify(canonical_query),
            )
            result = await self._search_ended(canonical)
            if _size(result) >= thresholds.canonical_min_records:
                return _Outcome(result=result, strategy=canonical)
            if _size(result) > outcome.count:
                outcome = _Outcome(result=result, strategy=canonical)

        for strategy in self.builder.build(artist, object_type, period, technique):
            result = await self._search_ended(strategy)
            size = _size(result)
            if strategy.scope == StrategyScope.ARTIST and strategy.description.startswith("Artist only"):
                outcome.artist_search_results = size
            if size > outcome.count:
                outcome.result = result
                outcome.strategy = strategy
            if size >= thresholds.historical_sufficiency:
                break

        return outcome

    async def _search_ended(self, strategy: SearchStrategy) -> Optional[SearchResult]:
        result = await self.client.search_ended(strategy.query)
        if result is None:
            return None
        if strategy.scope != StrategyScope.GENERIC or len(result.records) <= 3:
            return result

        validated = self.validator.validate(result.records, strategy.query, strategy.description)
        if len(validated) == len(result.records):
            return result
        logger.info(
            f"[VALIDATION] Removed {len(result.records) - len(validated)} inconsistent records for \"{strategy.query}\""
        )
        quality = DataQuality.LENIENT if result.data_quality == DataQuality.LENIENT else DataQuality.VALIDATED
        return result.model_copy(update={"records": validated, "data_quality": quality})

    def _historical_result(self, outcome: _Outcome, artist, object_type, current_valuation) -> MarketAnalysisResult:
        strategy = outcome.strategy
        common = dict(
            used_strategy=strategy,
            actual_search_query=strategy.query if strategy else None,
            search_strategy=strategy.description if strategy else None,
            artist_search_results=outcome.artist_search_results,
        )

        if outcome.count == 0:
            failure = self.last_failure()
            if failure is not None:
                logger.warning(f"[ANALYSIS] No comparable sales, last search failure: {failure}")
                return MarketAnalysisResult(
                    has_comparable_data=False, limitations=SEARCH_FAILED, error=str(failure), **common
                )
            logger.info("[ANALYSIS] No comparable sales found")
            return MarketAnalysisResult(has_comparable_data=False, limitations=NO_SALES_FOUND, **common)

        result: SearchResult = outcome.result
        analysis = self.statistics.analyze(
            result.records, artist, object_type, result.total_entries, current_valuation
        )
        if analysis is None:
            return MarketAnalysisResult(
                has_comparable_data=False,
                total_matches=result.total_entries,
                limitations=NO_CONFIRMED_SALES,
                **common,
            )

        limitations = analysis.limitations
        if result.data_quality == DataQuality.LENIENT:
            limitations = f"{limitations}, {LENIENT_MATCH}" if limitations else LENIENT_MATCH

        return MarketAnalysisResult(
            has_comparable_data=True,
            total_matches=result.total_entries,
            analyzed_sales=len(result.records),
            price_range=analysis.price_range,
            confidence=analysis.confidence,
            trend=analysis.trend,
            exceptional_sales=analysis.exceptional_sales,
            market_context=analysis.market_context,
            limitations=limitations,
            recent_sales=analysis.recent_sales,
            statistics=analysis.statistics,
            **common,
        )

    # Live

    async def analyze_live(
        self,
        artist: Optional[str] = None,
        object_type: Optional[str] = None,
        period: Optional[str] = None,
        technique: Optional[str] = None
    ) -> Optional[LiveAnalysisResult]:
        """
        Analyze running auctions for an item.

        Returns:
            LiveAnalysisResult, or None when there is no authoritative query to search
        """
        try:
            if self._empty_user_selection():
                logger.info("[LIVE ANALYSIS] Every term deselected by the user, nothing to search")
                return LiveAnalysisResult(
                    has_live_data=False, limitations=NO_TERMS_SELECTED, actual_search_query=""
                )
            if self._ssot_strategy() is None:
                logger.info("[LIVE ANALYSIS] No authoritative query, skipping live analysis")
                return None
            self._reset_failures()
            await self._reload_excluded_seller()
            outcome = await self._find_live(artist, object_type, period, technique)
            return self._live_result(outcome)
        except Exception as e:
            logger.exception(f"[LIVE ANALYSIS] Live analysis failed: {e}")
            return LiveAnalysisResult(
                has_live_data=False,
                limitations=LIVE_SEARCH_FAILED,
                error=str(e) or type(e).__name__,
            )

    async def _find_live(self, artist, object_type, period, technique) -> _Outcome:
        thresholds = self.settings.thresholds
        ssot = self._ssot_strategy()

        result = await self.client.search_live(ssot.query)
        if self.authority.is_user_selection():
            logger.info(f"[LIVE ANALYSIS] User-selected query \"{ssot.query}\": {_size(result)} listings, no fallback")
            return _Outcome(result=result, strategy=ssot)
        if _size(result) >= thresholds.ai_query_min_records:
            return _Outcome(result=result, strategy=ssot)

        logger.info(f"[LIVE ANALYSIS] Generated query found {_size(result)} listings, trying fallbacks")
        outcome = _Outcome(result=result, strategy=ssot)
        for strategy in self.builder.build(artist, object_type, period, technique):
            relevance = relevance_category(strategy.query, strategy.category) if strategy.broad else None
            result = await self.client.search_live(strategy.query, relevance=relevance)
            size = _size(result)
            if size > outcome.count:
                outcome.result = result
                outcome.strategy = strategy
            if size >= thresholds.live_sufficiency:
                break
        return outcome

    def _live_result(self, outcome: _Outcome) -> LiveAnalysisResult:
        strategy = outcome.strategy
        common = dict(
            used_strategy=strategy,
            actual_search_query=strategy.query if strategy else None,
            search_strategy=strategy.description if strategy else None,
        )

        analysis = self.live_analyzer.analyze(outcome.result.listings) if outcome.count else None
        if analysis is None:
            failure = self.last_failure() if outcome.count == 0 else None
            if failure is not None:
                logger.warning(f"[LIVE ANALYSIS] No running auctions, last search failure: {failure}")
            return LiveAnalysisResult(
                has_live_data=False,
                limitations=LIVE_SEARCH_FAILED if failure is not None else "No running auctions found",
                error=str(failure) if failure is not None else None,
                **common,
            )

        result: LiveSearchResult = outcome.result
        return LiveAnalysisResult(
            has_live_data=True,
            total_matches=result.total_entries,
            analyzed_live_items=len(result.listings),
            current_estimates=analysis.estimate_range,
            current_bids=analysis.bid_range,
            market_activity=analysis.market_activity,
            live_items=analysis.live_items,
            market_sentiment=analysis.market_sentiment,
            **common,
        )

    # Query authority

    def _empty_user_selection(self) -> bool:
        """True when the user's own selection leaves no terms; such a query is never broadened."""
        return (
            self.authority is not None
            and self.authority.is_user_selection()
            and not self.authority.has_query()
        )

    def _ssot_strategy(self) -> Optional[SearchStrategy]:
        """The authoritative query as a strategy, or None when there is none."""
        if self.authority is None or not self.authority.has_query():
            return None

        query = self.authority.get_current_query()
        metadata = self.authority.get_metadata()
        source = metadata.source if metadata else QuerySource.AI_GENERATED
        has_artist = any(term.kind == TermKind.ARTIST for term in self.authority.get_current_terms())

        if source == QuerySource.USER_SELECTED:
            description = f"User-selected query: {query}"
            scope = StrategyScope.ARTIST
        else:
            description = f"Generated query ({source.value}): {query}"
            scope = StrategyScope.ARTIST if has_artist else StrategyScope.GENERIC

        return SearchStrategy(
            query=query,
            description=description,
            weight=1.0,
            scope=scope,
            category=classify(query),
        )

    async def close(self) -> None:
        await self.client.close()
        await self.settings_store.close()
