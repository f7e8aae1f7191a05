"""
Market statistics engine - price range, confidence, trend, exceptional sales
and narrative context from confirmed sales.
"""

import logging
import math
import statistics
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from comparables.models import (
    ExceptionalSale,
    ExceptionalSalesResult,
    ListingRecord,
    MarketAnalysis,
    PriceRange,
    PriceStatistics,
    RecentSale,
    TrendDataQuality,
    TrendDirection,
    TrendResult,
)
from comparables.marketplace.listing_parser import extract_auction_id
from comparables.search.query_format import strip_quotes


logger = logging.getLogger(__name__)

MONTH = timedelta(days=30)
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _date(record: ListingRecord) -> datetime:
    value = record.sale_date
    if value is None:
        return _EPOCH
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _matches(records: List[ListingRecord], needle: Optional[str]) -> int:
    needle = strip_quotes(needle or '').lower()
    if not needle:
        return 0
    return sum(1 for record in records if needle in record.title.lower())


class MarketStatisticsEngine:
    """
    Turn a validated record set into a MarketAnalysis.

    Only confirmed sales (sold records with a positive final price) feed the
    statistics; bare estimates never do. Records in a currency other than the
    reference currency are dropped before anything is computed.
    """

    def __init__(self, reference_currency: str = "SEK", now: Optional[datetime] = None):
        self.reference_currency = reference_currency
        self._now = now

    @property
    def now(self) -> datetime:
        return self._now or datetime.now(timezone.utc)

    def analyze(
        self,
        records: List[ListingRecord],
        artist: Optional[str],
        object_type: Optional[str],
        total_matches: int = 0,
        current_valuation: Optional[float] = None
    ) -> Optional[MarketAnalysis]:
        """
        Analyze confirmed sales.

        Args:
            records: Records from one search, possibly including unsold ones
            artist: Artist or maker, used for title-match signals
            object_type: Object type, used for title-match signals
            total_matches: Total hits the marketplace reported for the query
            current_valuation: The cataloger's own valuation, if any

        Returns:
            MarketAnalysis, or None if no record is a confirmed sale
        """
        admitted = [r for r in records if r.currency == self.reference_currency]
        if len(admitted) < len(records):
            logger.warning(
                f"[ANALYSIS] Dropped {len(records) - len(admitted)} records not priced in {self.reference_currency}"
            )

        sales = [r for r in admitted if r.is_sold and r.final_price and r.final_price > 0]
        if not sales:
            logger.info("[ANALYSIS] No confirmed sales to analyze")
            return None

        prices = [r.final_price for r in sales]
        confidence = self.confidence(sales, artist, object_type, total_matches)
        median = statistics.median(prices)

        analysis = MarketAnalysis(
            price_range=self.price_range(prices),
            confidence=confidence,
            market_context=self.market_context(sales, artist),
            recent_sales=self.recent_sales(sales),
            trend=self.trend(sales, total_matches),
            limitations=self.limitations(sales, artist),
            exceptional_sales=self.exceptional_sales(sales, current_valuation),
            statistics=PriceStatistics(
                average=round_half_up(sum(prices) / len(prices)),
                median=median,
                min=min(prices),
                max=max(prices),
                sample_size=len(sales),
                total_matches=total_matches,
            ),
        )
        logger.info(
            f"[ANALYSIS] {len(sales)} sales, range {analysis.price_range.low:,.0f}-"
            f"{analysis.price_range.high:,.0f} {self.reference_currency}, confidence {confidence:.2f}"
        )
        return analysis

    def price_range(self, prices: List[float]) -> PriceRange:
        """Full observed min-to-max span, widened to 15% of the mean for tiny samples."""
        ordered = sorted(prices)
        low = round_half_up(ordered[0])
        high = round_half_up(ordered[-1])

        if len(ordered) <= 3:
            mean = sum(ordered) / len(ordered)
            width = high - low
            min_width = mean * 0.15
            if width < min_width:
                center = (low + high) / 2
                expansion = (min_width - width) / 2
                low = max(0, round_half_up(center - width / 2 - expansion))
                high = round_half_up(center + width / 2 + expansion)

        return PriceRange(low=low, high=high, currency=self.reference_currency)

    def confidence(
        self,
        sales: List[ListingRecord],
        artist: Optional[str],
        object_type: Optional[str],
        total_matches: int = 0
    ) -> float:
        confidence = 0.5
        count = len(sales)

        if total_matches >= 500:
            confidence += 0.4
        elif total_matches >= 100:
            confidence += 0.3
        elif total_matches >= 50:
            confidence += 0.2
        elif total_matches >= 20:
            confidence += 0.1

        if count >= 20:
            confidence += 0.2
        elif count >= 10:
            confidence += 0.15
        elif count >= 5:
            confidence += 0.1
        elif count >= 3:
            confidence += 0.05

        if count:
            recent = self._within_months(sales, 24)
            if recent >= count * 0.7:
                confidence += 0.15
            elif recent >= count * 0.5:
                confidence += 0.1

            if strip_quotes(artist or ''):
                artist_matches = _matches(sales, artist)
                if artist_matches >= count * 0.8:
                    confidence += 0.15
                elif artist_matches >= count * 0.5:
                    confidence += 0.1

            if strip_quotes(object_type or ''):
                if _matches(sales, object_type) >= count * 0.8:
                    confidence += 0.1

        # Never claim certainty
        return min(0.95, max(0.1, confidence))

    def trend(self, sales: List[ListingRecord], total_matches: int = 0) -> TrendResult:
        if len(sales) < 3:
            return TrendResult(
                direction=TrendDirection.INSUFFICIENT_DATA,
                description="Insufficient data for trend analysis",
            )

        ordered = sorted(sales, key=_date)
        span_years = (_date(ordered[-1]) - _date(ordered[0])).total_seconds() / (365.25 * 86400)
        span_text = self._span_text(len(sales), total_matches, span_years)

        midpoint = len(ordered) // 2
        older, newer = ordered[:midpoint], ordered[midpoint:]
        older_avg = sum(r.final_price for r in older) / len(older)
        newer_avg = sum(r.final_price for r in newer) / len(newer)
        change = (newer_avg - older_avg) / older_avg * 100

        if abs(change) > 1000:
            logger.warning(f"[ANALYSIS] Trend of {change:.1f}% points to mixed market data")
            if change > 0:
                return TrendResult(
                    direction=TrendDirection.RISING_STRONG,
                    description=f"Strong rise in hammer prices (mixed market data){span_text}",
                    change_percent=round_half_up(min(change, 200)),
                    time_span_years=round(span_years, 1),
                    data_quality=TrendDataQuality.MIXED_SUSPICIOUS,
                )
            return TrendResult(
                direction=TrendDirection.FALLING_STRONG,
                description=f"Strong fall in hammer prices (mixed market data){span_text}",
                change_percent=round_half_up(max(change, -80)),
                time_span_years=round(span_years, 1),
                data_quality=TrendDataQuality.MIXED_SUSPICIOUS,
            )

        extreme = abs(change) > 500
        if extreme:
            change = min(change, 300) if change > 0 else max(change, -75)

        rounded = round_half_up(change)
        if change > 15:
            direction = TrendDirection.RISING_STRONG
            percent = f">{rounded}%" if extreme else f"+{rounded}%"
            description = f"Strong rise: {percent}{span_text}"
        elif change > 5:
            direction = TrendDirection.RISING
            description = f"Rising: +{rounded}%{span_text}"
        elif change < -15:
            direction = TrendDirection.FALLING_STRONG
            description = f"Strong fall: {rounded}%{span_text}"
        elif change < -5:
            direction = TrendDirection.FALLING
            description = f"Falling: {rounded}%{span_text}"
        else:
            direction = TrendDirection.STABLE
            description = f"Stable hammer prices{span_text}"

        return TrendResult(
            direction=direction,
            description=description,
            change_percent=rounded,
            time_span_years=round(span_years, 1),
            data_quality=TrendDataQuality.EXTREME_TREND if extreme else None,
            warning="Extreme trends can indicate mixed market data" if extreme else None,
        )

    def exceptional_sales(
        self,
        sales: List[ListingRecord],
        current_valuation: Optional[float] = None
    ) -> Optional[ExceptionalSalesResult]:
        """
        Sales far above the crowd, and above the cataloger's valuation when given.

        The threshold is max(3 x median, 2 x Q3), raised to the valuation if that
        is higher. Needs at least three prices.
        """
        prices = sorted(r.final_price for r in sales)
        if len(prices) < 3:
            return None

        median = statistics.median(prices)
        q3 = prices[int(len(prices) * 0.75)]
        threshold = max(median * 3, q3 * 2)

        valuation_based = bool(current_valuation and current_valuation > 0)
        if valuation_based:
            threshold = max(threshold, current_valuation)

        exceptional = []
        for record in sales:
            if record.final_price <= threshold:
                continue
            exceptional.append(ExceptionalSale(
                price=record.final_price,
                title=record.title,
                date=record.sale_date,
                house=record.house,
                location=record.location,
                estimate=record.estimate,
                url=record.url,
                auction_id=extract_auction_id(record.url),
                price_vs_median=round_half_up(record.final_price / median * 100),
                price_vs_estimate=(
                    round_half_up(record.final_price / record.estimate * 100) if record.estimate else None
                ),
                price_vs_valuation=(
                    round_half_up(record.final_price / current_valuation * 100) if valuation_based else None
                ),
            ))

        if not exceptional:
            return None

        currency = self.reference_currency
        if len(exceptional) == 1:
            sale = exceptional[0]
            if valuation_based:
                description = (
                    f"One confirmed sale at {sale.price:,.0f} {currency} "
                    f"({sale.price_vs_valuation}% of your valuation)"
                )
            else:
                description = (
                    f"One exceptional confirmed sale at {sale.price:,.0f} {currency} "
                    f"({sale.price_vs_median}% of the median price)"
                )
        elif valuation_based:
            average = round_half_up(
                sum(sale.price_vs_valuation or 0 for sale in exceptional) / len(exceptional)
            )
            description = (
                f"{len(exceptional)} confirmed sales above your valuation "
                f"(on average {average}% of your valuation)"
            )
        else:
            description = (
                f"{len(exceptional)} exceptional confirmed sales above "
                f"{round_half_up(threshold):,} {currency}"
            )

        logger.info(f"[ANALYSIS] {len(exceptional)} exceptional sales above {threshold:,.0f}")
        return ExceptionalSalesResult(
            count=len(exceptional),
            sales=exceptional,
            threshold=threshold,
            description=description,
            valuation_based=valuation_based,
        )

    def market_context(self, sales: List[ListingRecord], artist: Optional[str]) -> str:
        contexts = []

        name = strip_quotes(artist or '')
        if name:
            artist_sales = _matches(sales, name)
            if artist_sales >= 3:
                contexts.append(f"{name}: established on the auction market")
            elif artist_sales > 0:
                contexts.append(f"{name}: limited auction history")

        if len(sales) >= 10:
            contexts.append("Active market with regular sales")
        elif len(sales) >= 5:
            contexts.append("Moderate market activity")
        else:
            contexts.append("Limited market activity")

        estimates = [r.estimate for r in sales if r.estimate and r.estimate > 0]
        if len(estimates) >= 3:
            average_price = sum(r.final_price for r in sales) / len(sales)
            ratio = average_price / (sum(estimates) / len(estimates))
            if ratio > 1.2:
                contexts.append("Typically sells above estimate")
            elif ratio < 0.8:
                contexts.append("Typically sells below estimate")
            else:
                contexts.append("Sells near estimate")

        return " • ".join(contexts)

    def limitations(self, sales: List[ListingRecord], artist: Optional[str]) -> Optional[str]:
        limitations = []

        if len(sales) < 5:
            limitations.append("Limited sample size")

        if self._within_months(sales, 12) < len(sales) * 0.5:
            limitations.append("Few recent sales")

        if strip_quotes(artist or '') and _matches(sales, artist) < len(sales) * 0.7:
            limitations.append("Includes similar artists/makers")

        return ", ".join(limitations) if limitations else None

    def recent_sales(self, sales: List[ListingRecord], limit: int = 5) -> List[RecentSale]:
        newest = sorted(sales, key=_date, reverse=True)[:limit]
        return [
            RecentSale(
                date=record.sale_date,
                price=record.final_price,
                title=record.title[:60] + ("..." if len(record.title) > 60 else ""),
                house=record.house,
                estimate=record.estimate,
                url=record.url,
            )
            for record in newest
        ]

    def _within_months(self, sales: List[ListingRecord], months: int) -> int:
        cutoff = self.now - MONTH * months
        return sum(1 for record in sales if record.sale_date is not None and _date(record) >= cutoff)

    @staticmethod
    def _span_text(analyzed: int, total_matches: int, span_years: float) -> str:
        if span_years >= 1:
            span = f"{round_half_up(span_years)} years back"
        else:
            span = f"{round_half_up(span_years * 12)} months back"
        if total_matches > analyzed:
            return f" (based on {analyzed} analyzed of {total_matches} found items, {span})"
        return f" (based on {analyzed} analyzed items, {span})"
