"""
Result validator - post-filters broad search results so unrelated items do not
end up in the price sample.
"""

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from comparables.config import ValidationConfig
from comparables.models import ListingRecord
from comparables.search.categories import MATERIALS, OBJECT_TYPES, OBJECT_VOCABULARY


logger = logging.getLogger(__name__)

_NAME_TOKEN = re.compile(r'^[a-zåäöüéæø]+$')
_DECADE = re.compile(r'^(\d{2,4})[-\s]?tal$')
_QUOTED_PHRASE = re.compile(r'"([^"]+)"')
_NAME_VOCABULARY = OBJECT_VOCABULARY | frozenset(OBJECT_TYPES) | frozenset(MATERIALS)


def significant_terms(query: str) -> List[str]:
    """Lowercased query words longer than two characters that contain a letter."""
    words = query.replace('"', ' ').lower().split()
    return [word for word in words if len(word) > 2 and any(ch.isalpha() for ch in word)]


def _is_name_token(term: str) -> bool:
    return len(term) > 3 and bool(_NAME_TOKEN.match(term)) and term not in _NAME_VOCABULARY


def _decade_variants(term: str) -> List[str]:
    match = _DECADE.match(term)
    if not match:
        return [term]
    digits = match.group(1)
    return [f"{digits}-tal", f"{digits} tal", f"{digits}tal"]


class ResultValidator:
    """
    Topical and temporal consistency filter for generic-scope strategies.

    Three guards run in order on the surviving records: price ratio, term
    consistency, temporal clustering. A guard's output is adopted only when it
    keeps at least min_survivors records, so the validator never empties a
    usable sample.
    """

    def __init__(self, config: Optional[ValidationConfig] = None, now: Optional[datetime] = None):
        self.config = config or ValidationConfig()
        self._now = now

    @property
    def now(self) -> datetime:
        return self._now or datetime.now(timezone.utc)

    def validate(
        self,
        records: List[ListingRecord],
        query_text: str,
        strategy_description: str = ""
    ) -> List[ListingRecord]:
        """
        Filter records for consistency with the query.

        Args:
            records: Records returned by one strategy
            query_text: The query that produced them
            strategy_description: Strategy label, used for logging

        Returns:
            The surviving records, never fewer than min_survivors unless the
            input itself was that small
        """
        if len(records) <= 3:
            logger.info(f"[VALIDATION] {len(records)} records, too few to validate")
            return records

        minimum = self.config.min_survivors

        current = records
        by_ratio = self._ratio_guard(current)
        if by_ratio is not None and len(by_ratio) < len(current):
            if len(by_ratio) >= minimum:
                logger.info(
                    f"[VALIDATION] Ratio guard kept {len(by_ratio)} of {len(current)} ({strategy_description})"
                )
                current = by_ratio
            else:
                logger.info(f"[VALIDATION] Ratio guard would leave {len(by_ratio)} records, not applied")

        by_terms = self._term_guard(current, query_text)
        if len(by_terms) < len(current) and len(by_terms) >= minimum:
            logger.info(
                f"[VALIDATION] Term guard kept {len(by_terms)} of {len(current)} for \"{query_text}\""
            )
            return by_terms

        by_time = self._temporal_guard(current)
        if len(by_time) < len(current) and len(by_time) >= minimum:
            logger.info(f"[VALIDATION] Temporal guard kept {len(by_time)} recent of {len(current)}")
            return by_time

        return current

    def _ratio_guard(self, records: List[ListingRecord]) -> Optional[List[ListingRecord]]:
        """Log the max/min price ratio; remove IQR outliers only when enabled."""
        prices = sorted(price for price in (r.reference_price for r in records) if price)
        if len(prices) < 3:
            logger.info("[VALIDATION] Not enough prices for a ratio check")
            return None

        ratio = prices[-1] / prices[0]
        logger.info(f"[VALIDATION] Price ratio {ratio:.1f}x across {len(prices)} prices")

        if not self.config.ratio_outlier_removal or ratio <= self.config.ratio_threshold:
            return None

        q1 = prices[int(len(prices) * 0.25)]
        q3 = prices[int(len(prices) * 0.75)]
        iqr = q3 - q1
        lower = q1 - self.config.iqr_multiplier * iqr
        upper = q3 + self.config.iqr_multiplier * iqr

        kept = []
        for record in records:
            price = record.reference_price
            if price is None or lower <= price <= upper:
                kept.append(record)
            else:
                logger.info(f"[VALIDATION] Outlier removed: {record.title[:50]} ({price:,.0f})")
        return kept

    def _term_guard(self, records: List[ListingRecord], query_text: str) -> List[ListingRecord]:
        terms = significant_terms(query_text)
        if not terms:
            return records

        name_terms = self._name_terms(query_text, terms)
        if name_terms:
            other_terms = [term for term in terms if term not in name_terms]
            return [r for r in records if self._matches_name_search(r, name_terms, other_terms)]
        return [r for r in records if self._matches_object_search(r, terms)]

    def _name_terms(self, query_text: str, terms: List[str]) -> List[str]:
        """Name tokens when the query looks like a person or maker search, else []."""
        quoted = _QUOTED_PHRASE.search(query_text)
        if quoted:
            phrase_words = quoted.group(1).lower().split()
            if phrase_words and not any(word in _NAME_VOCABULARY for word in phrase_words):
                return phrase_words

        candidates = [term for term in terms if _is_name_token(term)]
        if len(candidates) >= 2:
            return candidates
        return []

    def _matches_name_search(self, record: ListingRecord, name_terms: List[str], other_terms: List[str]) -> bool:
        title = record.title.lower()
        missing = [term for term in name_terms if term not in title]
        if missing:
            logger.debug(f"[VALIDATION] Name mismatch: {record.title[:50]} (missing {', '.join(missing)})")
            return False
        if not other_terms:
            return True
        text = f"{title} {(record.description or '').lower()}"
        return any(term in text for term in other_terms)

    def _matches_object_search(self, record: ListingRecord, terms: List[str]) -> bool:
        text = f"{record.title.lower()} {(record.description or '').lower()}"
        matching = [
            term for term in terms
            if any(variant in text for variant in _decade_variants(term))
        ]
        return len(matching) >= len(terms) * 0.5

    def _temporal_guard(self, records: List[ListingRecord]) -> List[ListingRecord]:
        dated = [r for r in records if r.sale_date is not None]
        if len(dated) < self.config.temporal_min_dated:
            return records

        dates = [_aware(r.sale_date) for r in dated]
        span_years = (max(dates) - min(dates)).days / 365
        if span_years <= self.config.temporal_span_years:
            return records

        cutoff = self.now - timedelta(days=365 * self.config.temporal_recent_years)
        recent = [r for r in dated if _aware(r.sale_date) >= cutoff]
        logger.info(
            f"[VALIDATION] Sales span {span_years:.1f} years, {len(recent)} in the last "
            f"{self.config.temporal_recent_years}"
        )
        if len(recent) >= self.config.min_survivors:
            return recent
        return records


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
