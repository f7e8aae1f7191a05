"""
Query string formatting.

Multi-word terms travel through the engine wrapped in double quotes so the
marketplace treats them as one phrase. These helpers apply that quoting exactly
once, whatever shape the input arrives in.
"""

import re
from typing import Iterable, List, Optional

from comparables.models import SearchTerm

_QUOTE_CHARS = '"\''
_REPEATED_QUOTES = re.compile(r'(["\'])\1+')


def strip_quotes(text: str) -> str:
    """Remove any number of surrounding quote characters and tidy whitespace."""
    if not text:
        return ''
    cleaned = text.strip()
    while len(cleaned) >= 2 and cleaned[0] in _QUOTE_CHARS and cleaned[-1] == cleaned[0]:
        cleaned = cleaned[1:-1].strip()
    return ' '.join(cleaned.split())


def quote_term(text: str) -> str:
    """Quote a multi-word term once; single words are returned bare."""
    bare = strip_quotes(text)
    if len(bare.split()) > 1:
        inner = bare.replace('"', '')
        return f'"{inner}"'
    return bare


def format_artist(name: Optional[str]) -> str:
    """Format an artist or maker name for searching.

    Trailing commas are dropped and multi-word names are quoted, so
    "Carl Malmsten," becomes '"Carl Malmsten"' and "Omega" stays as is.
    """
    if not name or not isinstance(name, str):
        return ''
    cleaned = re.sub(r',\s*$', '', name.strip())
    return quote_term(cleaned)


def combine(*parts: Optional[str]) -> str:
    """Join the present parts with spaces, skipping repeated words."""
    words: List[str] = []
    seen = set()
    for part in parts:
        if not part:
            continue
        for word in parse_query_preserving_quotes(part.strip()):
            key = word.lower()
            if key in seen:
                continue
            seen.add(key)
            words.append(word)
    return ' '.join(words)


def parse_query_preserving_quotes(query: Optional[str]) -> List[str]:
    """Split a query on spaces while keeping quoted phrases whole.

    >>> parse_query_preserving_quotes('"Niels Thorsson" fat 1960-tal')
    ['"Niels Thorsson"', 'fat', '1960-tal']
    """
    if not query or not isinstance(query, str):
        return []

    # ""Carl Malmsten"" is one phrase, not two half-quoted words
    query = _REPEATED_QUOTES.sub(r'\1', query)

    terms = []
    current = ''
    quote_char = None

    for char in query:
        if char in _QUOTE_CHARS and quote_char is None and not current:
            quote_char = char
            current += char
        elif char == quote_char:
            quote_char = None
            current += char
        elif char.isspace() and quote_char is None:
            if current.strip():
                terms.append(current.strip())
            current = ''
        else:
            current += char

    if current.strip():
        terms.append(current.strip())

    return terms


def order_terms(terms: Iterable[SearchTerm]) -> List[SearchTerm]:
    """Selected terms in query order: priority first, then selection, then position."""
    indexed = list(enumerate(terms))
    indexed.sort(key=lambda pair: (-pair[1].priority, not pair[1].selected, pair[0]))
    return [term for _, term in indexed]


def build_query_string(terms: Iterable[SearchTerm]) -> str:
    """Build the search string from the selected terms.

    Rebuilding from the same terms always yields the same string, and parsing
    the result with parse_query_preserving_quotes gives back one entry per
    selected term.
    """
    parts = []
    seen = set()
    for term in order_terms(terms):
        if not term.selected:
            continue
        text = quote_term(term.text)
        key = strip_quotes(text).lower()
        if not key or key in seen:
            continue
        seen.add(key)
        parts.append(text)
    return ' '.join(parts)
