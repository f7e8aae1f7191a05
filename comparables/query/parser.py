"""
Parser for AI-generated query metadata.

The generator replies with JSON of the form

    {
      "searchTerms": ["\"Carl Malmsten\"", "stol"],
      "candidateTerms": [{"term": "Carl Malmsten", "category": "artist", "preSelected": true}, ...],
      "reasoning": "...",
      "confidence": 0.9
    }

parse_generated_query returns either a ParsedQuery or a ParseError describing
exactly what was wrong; it never raises and never silently substitutes data.
"""

import json
import unicodedata
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from comparables.models import Provenance, SearchTerm, TermKind
from comparables.search.categories import classify_term, term_priority
from comparables.search.query_format import build_query_string, format_artist, strip_quotes


CORE_ARTIST_PRIORITY = 100
PRESELECTED_PRIORITY = 90

_CATEGORY_KINDS = {
    'artist': TermKind.ARTIST,
    'brand': TermKind.ARTIST,
    'object': TermKind.OBJECT_TYPE,
    'object_type': TermKind.OBJECT_TYPE,
    'model': TermKind.MODEL,
    'reference': TermKind.REFERENCE,
    'material': TermKind.MATERIAL,
    'period': TermKind.PERIOD,
}


class ParseErrorKind(str, Enum):
    INVALID_JSON = "invalid_json"
    MISSING_FIELD = "missing_field"
    MALFORMED_QUOTING = "malformed_quoting"
    CONTROL_CHARACTERS = "control_characters"


@dataclass(frozen=True)
class ParseError:
    kind: ParseErrorKind
    message: str
    field: Optional[str] = None


@dataclass(frozen=True)
class ParsedQuery:
    query: str
    terms: List[SearchTerm] = field(default_factory=list)
    confidence: float = 0.5
    reasoning: str = ""


ParseResult = Union[ParsedQuery, ParseError]


def _strip_fences(text: str) -> str:
    if '```json' in text:
        return text.split('```json')[1].split('```')[0].strip()
    if '```' in text:
        return text.split('```')[1].split('```')[0].strip()
    return text


def _has_control_characters(text: str) -> bool:
    return any(unicodedata.category(ch) == 'Cc' for ch in text)


def _check_term(raw: Any, field_name: str) -> Union[str, ParseError]:
    """Validate one term string and normalize its quoting."""
    if not isinstance(raw, str) or not raw.strip():
        return ParseError(ParseErrorKind.MISSING_FIELD, f"{field_name} contains an empty or non-string term", field_name)
    if _has_control_characters(raw):
        return ParseError(ParseErrorKind.CONTROL_CHARACTERS, f"Control characters in term {raw!r}", field_name)
    if raw.count('"') % 2:
        return ParseError(ParseErrorKind.MALFORMED_QUOTING, f"Unbalanced quotes in term {raw!r}", field_name)
    return strip_quotes(raw)


def _classify(raw: str, cleaned: str) -> TermKind:
    """A term that arrived quoted is a name; anything else goes through classify_term."""
    if raw.strip().startswith('"') and ' ' in cleaned:
        return TermKind.ARTIST
    return classify_term(cleaned)


def _kind_for(category: Any, raw: str, cleaned: str) -> TermKind:
    if isinstance(category, str) and category.lower() in _CATEGORY_KINDS:
        return _CATEGORY_KINDS[category.lower()]
    return _classify(raw, cleaned)


def parse_generated_query(raw: str, artist: Optional[str] = None) -> ParseResult:
    """
    Parse the generator's JSON reply into search terms.

    Args:
        raw: Raw reply text, optionally wrapped in a markdown code fence
        artist: Artist field of the item; always added as a selected core term

    Returns:
        ParsedQuery on success, ParseError otherwise
    """
    if not isinstance(raw, str) or not raw.strip():
        return ParseError(ParseErrorKind.INVALID_JSON, "Empty reply")

    try:
        data = json.loads(_strip_fences(raw.strip()))
    except json.JSONDecodeError as e:
        return ParseError(ParseErrorKind.INVALID_JSON, f"Reply is not JSON: {e.msg}")

    if not isinstance(data, dict):
        return ParseError(ParseErrorKind.INVALID_JSON, "Reply is not a JSON object")

    search_terms = data.get('searchTerms')
    if not isinstance(search_terms, list) or not search_terms:
        return ParseError(ParseErrorKind.MISSING_FIELD, "searchTerms must be a non-empty list", 'searchTerms')

    terms: Dict[str, SearchTerm] = {}

    def add(text: str, kind: TermKind, selected: bool, priority: Optional[int] = None):
        key = text.lower()
        existing = terms.get(key)
        if existing is not None:
            existing.selected = existing.selected or selected
            if priority is not None and priority > existing.priority:
                existing.priority = priority
            return
        if kind is TermKind.ARTIST:
            selected = True
        if priority is None:
            priority = PRESELECTED_PRIORITY if selected else term_priority(kind)
        terms[key] = SearchTerm(
            text=text,
            kind=kind,
            priority=priority,
            selected=selected,
            provenance=Provenance.AI_DETECTED if kind is TermKind.ARTIST else Provenance.DERIVED,
        )

    artist_text = strip_quotes(format_artist(artist))
    if artist_text:
        add(artist_text, TermKind.ARTIST, True, CORE_ARTIST_PRIORITY)

    for raw_term in search_terms:
        checked = _check_term(raw_term, 'searchTerms')
        if isinstance(checked, ParseError):
            return checked
        add(checked, _classify(raw_term, checked), True)

    candidates = data.get('candidateTerms') or []
    if not isinstance(candidates, list):
        return ParseError(ParseErrorKind.MISSING_FIELD, "candidateTerms must be a list", 'candidateTerms')
    for candidate in candidates:
        if not isinstance(candidate, dict):
            return ParseError(ParseErrorKind.MISSING_FIELD, "candidateTerms entries must be objects", 'candidateTerms')
        checked = _check_term(candidate.get('term'), 'candidateTerms')
        if isinstance(checked, ParseError):
            return checked
        add(checked, _kind_for(candidate.get('category'), candidate.get('term'), checked), bool(candidate.get('preSelected')))

    reasoning = data.get('reasoning') or ""
    if not isinstance(reasoning, str):
        reasoning = str(reasoning)
    if _has_control_characters(reasoning.replace('\n', ' ').replace('\t', ' ')):
        return ParseError(ParseErrorKind.CONTROL_CHARACTERS, "Control characters in reasoning", 'reasoning')

    confidence = data.get('confidence', 0.5)
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        confidence = 0.5
    confidence = min(1.0, max(0.0, float(confidence)))

    term_list = list(terms.values())
    return ParsedQuery(
        query=build_query_string(term_list),
        terms=term_list,
        confidence=confidence,
        reasoning=reasoning,
    )


def term_from_text(text: str, selected: bool = True, provenance: Provenance = Provenance.USER_SELECTED) -> SearchTerm:
    """Classify a free-text term the way generated terms are classified."""
    cleaned = strip_quotes(text)
    kind = _classify(text, cleaned)
    return SearchTerm(
        text=cleaned,
        kind=kind,
        priority=term_priority(kind),
        selected=selected,
        provenance=provenance,
    )
