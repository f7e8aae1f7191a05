"""
Data models for the comparable-sales engine.

Terms, strategies, listing records and analysis results shared by the search,
validation, statistics and query-authority layers.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class TermKind(str, Enum):
    """What a search term describes. Brands and makers are ARTIST."""
    ARTIST = "artist"
    OBJECT_TYPE = "object_type"
    MODEL = "model"
    REFERENCE = "reference"
    MATERIAL = "material"
    PERIOD = "period"
    MOVEMENT = "movement"
    ORIGIN = "origin"
    KEYWORD = "keyword"


class Provenance(str, Enum):
    """Where a term's selection state came from"""
    AI_DETECTED = "ai_detected"
    USER_SELECTED = "user_selected"
    DERIVED = "derived"
    FALLBACK = "fallback"


class QuerySource(str, Enum):
    """Origin of the authoritative query"""
    AI_GENERATED = "ai_generated"
    EMERGENCY_FALLBACK = "emergency_fallback"
    USER_SELECTED = "user_selected"


class ItemCategory(str, Enum):
    """Strategy families picked by keyword classification"""
    JEWELRY = "jewelry"
    WATCH = "watch"
    SYNTHESIZER = "synthesizer"
    INSTRUMENT = "instrument"
    GENERIC = "generic"


class StrategyScope(str, Enum):
    """ARTIST strategies skip result validation; GENERIC ones get it"""
    ARTIST = "artist"
    GENERIC = "generic"


class DataQuality(str, Enum):
    """How a result set was admitted"""
    STRICT = "strict"
    VALIDATED = "validated"
    LENIENT = "lenient"


class TrendDirection(str, Enum):
    RISING_STRONG = "rising_strong"
    RISING = "rising"
    STABLE = "stable"
    FALLING = "falling"
    FALLING_STRONG = "falling_strong"
    INSUFFICIENT_DATA = "insufficient_data"


class TrendDataQuality(str, Enum):
    MIXED_SUSPICIOUS = "mixed_suspicious"
    EXTREME_TREND = "extreme_trend"


class MarketSentiment(str, Enum):
    STRONG = "strong"
    MODERATE = "moderate"
    NEUTRAL = "neutral"
    WEAK = "weak"
    NO_DATA = "no_data"


class SearchTerm(BaseModel):
    """One selectable search term"""
    text: str
    kind: TermKind = TermKind.KEYWORD
    priority: int = 60
    selected: bool = False
    provenance: Provenance = Provenance.DERIVED


class SearchStrategy(BaseModel):
    """A single query attempt, most specific strategies carry the highest weight"""
    model_config = ConfigDict(frozen=True)

    query: str
    description: str
    weight: float = Field(ge=0.0, le=1.0)
    scope: StrategyScope = StrategyScope.GENERIC
    category: ItemCategory = ItemCategory.GENERIC
    broad: bool = False


class QueryMetadata(BaseModel):
    """Bookkeeping attached to the authoritative query"""
    source: QuerySource
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    reasoning: str = ""
    updated_at: datetime
    original_title: str = ""


class ListingRecord(BaseModel):
    """Normalized ended listing from the marketplace.

    A record is sold only when it was hammered with a positive top bid, and only
    sold records carry a final price.
    """
    title: str
    final_price: Optional[float] = None
    currency: str
    estimate: Optional[float] = None
    upper_estimate: Optional[float] = None
    house: Optional[str] = None
    location: Optional[str] = None
    end_date: Optional[datetime] = None
    bid_timestamp: Optional[datetime] = None
    reserve_met: Optional[bool] = None
    url: Optional[str] = None
    is_sold: bool = False
    description: Optional[str] = None
    condition: Optional[str] = None
    seller_id: Optional[str] = None
    is_estimate_based_price: bool = False
    data_quality: DataQuality = DataQuality.STRICT

    @model_validator(mode="after")
    def _check_sold_price(self) -> "ListingRecord":
        if self.is_sold and (self.final_price is None or self.final_price <= 0):
            raise ValueError("sold listing requires a positive final_price")
        if not self.is_sold and self.final_price is not None:
            raise ValueError("final_price is only allowed on sold listings")
        return self

    @property
    def sale_date(self) -> Optional[datetime]:
        """Date used for recency and trends: bid time, else end time"""
        return self.bid_timestamp or self.end_date

    @property
    def reference_price(self) -> Optional[float]:
        """Best available price signal: final price, estimate, upper estimate"""
        for value in (self.final_price, self.estimate, self.upper_estimate):
            if value and value > 0:
                return value
        return None


class SearchResult(BaseModel):
    """Outcome of one ended-auction search"""
    total_entries: int = 0
    returned_items: int = 0
    records: List[ListingRecord] = Field(default_factory=list)
    data_quality: DataQuality = DataQuality.STRICT


class LiveListing(BaseModel):
    """A listing whose auction is still running"""
    title: str
    currency: str
    estimate: Optional[float] = None
    upper_estimate: Optional[float] = None
    current_bid: Optional[float] = None
    next_bid: Optional[float] = None
    bid_count: int = 0
    reserve_met: Optional[bool] = None
    reserve_amount: Optional[float] = None
    house: Optional[str] = None
    seller_id: Optional[str] = None
    location: Optional[str] = None
    ends_at: Optional[datetime] = None
    description: Optional[str] = None
    condition: Optional[str] = None
    url: Optional[str] = None
    time_remaining: str = ""
    auction_id: Optional[str] = None


class LiveSearchResult(BaseModel):
    total_entries: int = 0
    returned_items: int = 0
    listings: List[LiveListing] = Field(default_factory=list)


class PriceRange(BaseModel):
    low: float
    high: float
    currency: str


class TrendResult(BaseModel):
    direction: TrendDirection
    description: str
    change_percent: Optional[int] = None
    time_span_years: Optional[float] = None
    data_quality: Optional[TrendDataQuality] = None
    warning: Optional[str] = None


class ExceptionalSale(BaseModel):
    price: float
    title: str
    date: Optional[datetime] = None
    house: Optional[str] = None
    location: Optional[str] = None
    estimate: Optional[float] = None
    url: Optional[str] = None
    auction_id: Optional[str] = None
    price_vs_median: int
    price_vs_estimate: Optional[int] = None
    price_vs_valuation: Optional[int] = None


class ExceptionalSalesResult(BaseModel):
    count: int
    sales: List[ExceptionalSale]
    threshold: float
    description: str
    valuation_based: bool = False


class RecentSale(BaseModel):
    date: Optional[datetime] = None
    price: float
    title: str
    house: Optional[str] = None
    estimate: Optional[float] = None
    url: Optional[str] = None


class PriceStatistics(BaseModel):
    average: int
    median: float
    min: float
    max: float
    sample_size: int
    total_matches: int


class MarketAnalysis(BaseModel):
    """Statistics computed from one set of confirmed sales"""
    price_range: PriceRange
    confidence: float = Field(ge=0.1, le=0.95)
    market_context: str
    recent_sales: List[RecentSale] = Field(default_factory=list)
    trend: TrendResult
    limitations: Optional[str] = None
    exceptional_sales: Optional[ExceptionalSalesResult] = None
    statistics: PriceStatistics


class MarketAnalysisResult(BaseModel):
    """Historical analysis handed to consumers"""
    model_config = ConfigDict(frozen=True)

    has_comparable_data: bool
    data_source: str = "marketplace_api"
    total_matches: int = 0
    analyzed_sales: int = 0
    price_range: Optional[PriceRange] = None
    confidence: float = Field(default=0.1, ge=0.1, le=0.95)
    trend: Optional[TrendResult] = None
    exceptional_sales: Optional[ExceptionalSalesResult] = None
    market_context: str = ""
    limitations: Optional[str] = None
    used_strategy: Optional[SearchStrategy] = None
    recent_sales: List[RecentSale] = Field(default_factory=list)
    statistics: Optional[PriceStatistics] = None
    actual_search_query: Optional[str] = None
    search_strategy: Optional[str] = None
    artist_search_results: int = 0
    error: Optional[str] = None


class ValueRange(BaseModel):
    low: float
    high: float
    average: float


class MarketActivity(BaseModel):
    total_items: int
    total_bids: int
    average_bids_per_item: float
    reserves_met_percentage: int


class LiveItemSummary(BaseModel):
    title: str
    estimate: Optional[float] = None
    current_bid: Optional[float] = None
    bid_count: int = 0
    reserve_met: Optional[bool] = None
    time_remaining: str = ""
    house: Optional[str] = None
    url: Optional[str] = None
    auction_id: Optional[str] = None


class LiveMarketAnalysis(BaseModel):
    estimate_range: Optional[ValueRange] = None
    bid_range: Optional[ValueRange] = None
    market_activity: MarketActivity
    market_sentiment: MarketSentiment
    live_items: List[LiveItemSummary] = Field(default_factory=list)


class LiveAnalysisResult(BaseModel):
    """Live-auction analysis handed to consumers"""
    model_config = ConfigDict(frozen=True)

    has_live_data: bool
    data_source: str = "marketplace_live"
    total_matches: int = 0
    analyzed_live_items: int = 0
    current_estimates: Optional[ValueRange] = None
    current_bids: Optional[ValueRange] = None
    market_activity: Optional[MarketActivity] = None
    live_items: List[LiveItemSummary] = Field(default_factory=list)
    market_sentiment: MarketSentiment = MarketSentiment.NO_DATA
    used_strategy: Optional[SearchStrategy] = None
    actual_search_query: Optional[str] = None
    search_strategy: Optional[str] = None
    limitations: Optional[str] = None
    error: Optional[str] = None
