"""Search strategy construction and query formatting."""

from .categories import classify, classify_term, term_priority
from .query_format import (
    build_query_string,
    combine,
    format_artist,
    parse_query_preserving_quotes,
    quote_term,
    strip_quotes,
)
from .strategy_builder import SearchStrategyBuilder

__all__ = [
    'SearchStrategyBuilder',
    'classify',
    'classify_term',
    'term_priority',
    'build_query_string',
    'combine',
    'format_artist',
    'parse_query_preserving_quotes',
    'quote_term',
    'strip_quotes',
]
