"""Price statistics and live market analysis."""

from .live_market import LiveMarketAnalyzer, sentiment_for
from .market_statistics import MarketStatisticsEngine, round_half_up

__all__ = ['MarketStatisticsEngine', 'LiveMarketAnalyzer', 'round_half_up', 'sentiment_for']
