"""Authoritative search query: generation, parsing and selection state."""

from .authority import QUERY_CLEARED, QUERY_UPDATED, QueryAuthority
from .generator import QueryGenerator
from .parser import (
    ParseError,
    ParseErrorKind,
    ParsedQuery,
    parse_generated_query,
    term_from_text,
)

__all__ = [
    'QueryAuthority',
    'QueryGenerator',
    'ParseError',
    'ParseErrorKind',
    'ParsedQuery',
    'parse_generated_query',
    'term_from_text',
    'QUERY_UPDATED',
    'QUERY_CLEARED',
]
