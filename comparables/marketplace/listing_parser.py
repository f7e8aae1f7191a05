"""
Listing parser - normalizes raw marketplace items into ListingRecord and
LiveListing models.

Raw items are the JSON objects of the listings endpoint: title, currency,
estimate, upper_estimate, bids (newest first, each with amount and timestamp),
hammered, state, ends_at (epoch seconds), house, location, url, company_id and
a few optional descriptive fields.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError

from comparables.models import DataQuality, ListingRecord, LiveListing
from comparables.search.categories import is_relevant


logger = logging.getLogger(__name__)

_AUCTION_ID_PATTERNS = (
    re.compile(r'/auctions/(\d+)'),
    re.compile(r'/items/(\d+)'),
    re.compile(r'auction_id=(\d+)'),
    re.compile(r'[?&]id=(\d+)'),
)


def localize_url(url: Optional[str]) -> Optional[str]:
    """Point marketplace links at the Swedish site."""
    if url and '/en/' in url:
        return url.replace('/en/', '/sv/', 1)
    return url


def extract_auction_id(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    for pattern in _AUCTION_ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


def time_remaining(ends_at: Optional[datetime], now: datetime) -> str:
    """Human-readable countdown such as "2d 5h", "3h 20m" or "45m"."""
    if ends_at is None:
        return ""
    seconds = int((ends_at - now).total_seconds())
    if seconds <= 0:
        return "Ended"
    days, seconds = divmod(seconds, 86400)
    hours, seconds = divmod(seconds, 3600)
    minutes = seconds // 60
    if days > 0:
        return f"{days}d {hours}h"
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def _from_epoch(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return datetime.fromtimestamp(float(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def _positive(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def _bids(item: Dict[str, Any]) -> List[Dict[str, Any]]:
    bids = item.get('bids')
    return [bid for bid in bids if isinstance(bid, dict)] if isinstance(bids, list) else []


def _top_bid_amount(item: Dict[str, Any]) -> Optional[float]:
    bids = _bids(item)
    return _positive(bids[0].get('amount')) if bids else None


def _seller(item: Dict[str, Any]) -> Optional[str]:
    company_id = item.get('company_id')
    return str(company_id) if company_id is not None else None


class ListingParser:
    """
    Filter and convert raw marketplace items.

    Attributes:
        reference_currency: Only items priced in this currency are admitted
        excluded_seller: Seller id whose items are always dropped, if set
    """

    def __init__(
        self,
        reference_currency: str,
        excluded_seller: Optional[str] = None,
        now: Optional[datetime] = None
    ):
        self.reference_currency = reference_currency
        self.excluded_seller = excluded_seller
        self._now = now

    @property
    def now(self) -> datetime:
        return self._now or datetime.now(timezone.utc)

    def is_admissible(self, item: Dict[str, Any]) -> bool:
        """Reference currency and not from the excluded seller."""
        if item.get('currency') != self.reference_currency:
            return False
        if self.excluded_seller and _seller(item) == self.excluded_seller:
            logger.debug(f"[FILTER] Excluding item from seller {self.excluded_seller}: {str(item.get('title'))[:50]}")
            return False
        return True

    def is_concluded(self, item: Dict[str, Any]) -> bool:
        if item.get('hammered'):
            return True
        ends_at = _from_epoch(item.get('ends_at'))
        if ends_at is not None and ends_at < self.now:
            return True
        return item.get('state') == 'ended'

    def has_strict_price(self, item: Dict[str, Any]) -> bool:
        hammered_with_bid = bool(item.get('hammered')) and _top_bid_amount(item) is not None
        has_estimate = _positive(item.get('estimate')) is not None or _positive(item.get('upper_estimate')) is not None
        return hammered_with_bid or has_estimate

    def has_lenient_price(self, item: Dict[str, Any]) -> bool:
        has_estimate = _positive(item.get('estimate')) is not None or _positive(item.get('upper_estimate')) is not None
        return has_estimate or bool(_bids(item))

    def parse_ended(self, items: Iterable[Dict[str, Any]]) -> Tuple[List[ListingRecord], DataQuality]:
        """
        Convert ended items, strictly first and leniently when nothing passes.

        Returns:
            The admitted records and the quality tag of the pass that produced them
        """
        candidates = [item for item in items if isinstance(item, dict) and self.is_admissible(item)]

        strict = [
            item for item in candidates
            if self.has_strict_price(item) and self.is_concluded(item)
        ]
        if strict:
            return self._to_records(strict, DataQuality.STRICT), DataQuality.STRICT

        lenient = [item for item in candidates if self.has_lenient_price(item)]
        if lenient:
            logger.info(f"[FILTER] No strict matches, lenient filtering kept {len(lenient)} items")
        return self._to_records(lenient, DataQuality.LENIENT), DataQuality.LENIENT

    def parse_live(
        self,
        items: Iterable[Dict[str, Any]],
        relevance_keywords: Optional[Iterable[str]] = None
    ) -> List[LiveListing]:
        """Convert running auctions, optionally requiring a relevance keyword in the title."""
        keywords = tuple(relevance_keywords) if relevance_keywords else ()
        now = self.now
        listings = []

        for item in items:
            if not isinstance(item, dict) or not self.is_admissible(item):
                continue
            ends_at = _from_epoch(item.get('ends_at'))
            if item.get('hammered') or item.get('state') != 'published':
                continue
            if ends_at is None or ends_at <= now:
                continue
            title = str(item.get('title') or '')
            if keywords and not is_relevant(title, keywords):
                logger.debug(f"[LIVE SEARCH] Irrelevant listing dropped: {title[:50]}")
                continue

            url = localize_url(item.get('url'))
            bids = _bids(item)
            try:
                listings.append(LiveListing(
                    title=title,
                    currency=item['currency'],
                    estimate=_positive(item.get('estimate')),
                    upper_estimate=_positive(item.get('upper_estimate')),
                    current_bid=_top_bid_amount(item) if bids else _positive(item.get('starting_bid_amount')),
                    next_bid=_positive(item.get('next_bid_amount')),
                    bid_count=len(bids),
                    reserve_met=item.get('reserve_met'),
                    reserve_amount=_positive(item.get('reserve_amount')),
                    house=item.get('house'),
                    seller_id=_seller(item),
                    location=item.get('location'),
                    ends_at=ends_at,
                    description=item.get('description'),
                    condition=item.get('condition'),
                    url=url,
                    time_remaining=time_remaining(ends_at, now),
                    auction_id=extract_auction_id(url),
                ))
            except ValidationError as e:
                logger.warning(f"[LIVE SEARCH] Skipping unusable listing {title[:50]!r}: {e.error_count()} errors")

        return listings

    def _to_records(self, items: List[Dict[str, Any]], quality: DataQuality) -> List[ListingRecord]:
        records = []
        for item in items:
            try:
                records.append(self.to_record(item, quality))
            except ValidationError as e:
                logger.warning(
                    f"[FILTER] Skipping unusable item {str(item.get('title'))[:50]!r}: {e.error_count()} errors"
                )
        return records

    def to_record(self, item: Dict[str, Any], quality: DataQuality = DataQuality.STRICT) -> ListingRecord:
        bids = _bids(item)
        top_bid = _top_bid_amount(item)
        is_sold = bool(item.get('hammered')) and top_bid is not None
        end_date = _from_epoch(item.get('ends_at'))
        bid_timestamp = _from_epoch(bids[0].get('timestamp')) if bids else None

        return ListingRecord(
            title=str(item.get('title') or ''),
            final_price=top_bid if is_sold else None,
            currency=item['currency'],
            estimate=_positive(item.get('estimate')),
            upper_estimate=_positive(item.get('upper_estimate')),
            house=item.get('house'),
            location=item.get('location'),
            end_date=end_date,
            bid_timestamp=bid_timestamp or end_date,
            reserve_met=item.get('reserve_met'),
            url=localize_url(item.get('url')),
            is_sold=is_sold,
            description=item.get('description'),
            condition=item.get('condition'),
            seller_id=_seller(item),
            is_estimate_based_price=not bids,
            data_quality=quality,
        )
