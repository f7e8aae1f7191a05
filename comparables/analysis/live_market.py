"""Live auction analysis: estimate and bid ranges, bidding activity and sentiment."""

import logging
from typing import List, Optional

from comparables.models import (
    LiveItemSummary,
    LiveListing,
    LiveMarketAnalysis,
    MarketActivity,
    MarketSentiment,
    ValueRange,
)
from .market_statistics import round_half_up


logger = logging.getLogger(__name__)


def _value_range(values: List[float]) -> Optional[ValueRange]:
    if not values:
        return None
    return ValueRange(low=min(values), high=max(values), average=sum(values) / len(values))


def sentiment_for(reserves_met_percentage: float) -> MarketSentiment:
    if reserves_met_percentage > 70:
        return MarketSentiment.STRONG
    if reserves_met_percentage > 40:
        return MarketSentiment.MODERATE
    if reserves_met_percentage < 20:
        return MarketSentiment.WEAK
    return MarketSentiment.NEUTRAL


class LiveMarketAnalyzer:
    """Summarize running auctions for a query."""

    def analyze(self, listings: List[LiveListing], top: int = 5) -> Optional[LiveMarketAnalysis]:
        if not listings:
            return None

        estimates = [item.estimate for item in listings if item.estimate and item.estimate > 0]
        bids = [item.current_bid for item in listings if item.current_bid and item.current_bid > 0]

        total_bids = sum(item.bid_count for item in listings)
        reserves_met = sum(1 for item in listings if item.reserve_met)
        reserves_met_percentage = reserves_met / len(listings) * 100

        most_active = sorted(listings, key=lambda item: item.bid_count, reverse=True)[:top]

        analysis = LiveMarketAnalysis(
            estimate_range=_value_range(estimates),
            bid_range=_value_range(bids),
            market_activity=MarketActivity(
                total_items=len(listings),
                total_bids=total_bids,
                average_bids_per_item=total_bids / len(listings),
                reserves_met_percentage=round_half_up(reserves_met_percentage),
            ),
            market_sentiment=sentiment_for(reserves_met_percentage),
            live_items=[
                LiveItemSummary(
                    title=item.title[:60] + ("..." if len(item.title) > 60 else ""),
                    estimate=item.estimate,
                    current_bid=item.current_bid,
                    bid_count=item.bid_count,
                    reserve_met=item.reserve_met,
                    time_remaining=item.time_remaining,
                    house=item.house,
                    url=item.url,
                    auction_id=item.auction_id,
                )
                for item in most_active
            ],
        )
        logger.info(
            f"[LIVE ANALYSIS] {len(listings)} running auctions, {total_bids} bids, "
            f"sentiment {analysis.market_sentiment.value}"
        )
        return analysis
