"""
Query authority - the single source of truth for the current search query.

Historical analysis, live analysis and the interactive term picker all read the
query from one QueryAuthority instance, so what the user sees is what gets
searched. The instance is owned by the session that creates it and passed to
each consumer explicitly.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional
from urllib.parse import urlencode

from comparables.models import Provenance, QueryMetadata, QuerySource, SearchTerm, TermKind
from comparables.search.query_format import (
    build_query_string,
    parse_query_preserving_quotes,
    strip_quotes,
)
from .parser import term_from_text


logger = logging.getLogger(__name__)

Subscriber = Callable[[str, Dict], None]

PROTECTED_PRIORITY = 95

QUERY_UPDATED = "query_updated"
QUERY_CLEARED = "query_cleared"


def _key(text: str) -> str:
    return strip_quotes(text).lower()


class QueryAuthority:
    """
    Owns the authoritative query, its terms and where it came from.

    Every mutation notifies subscribers synchronously before returning, so all
    consumers observe the same query after any update. Mutation is
    last-writer-wins.
    """

    def __init__(self, search_page_url: str = "https://auctionet.com/sv/search"):
        self.search_page_url = search_page_url
        self._query = ""
        self._terms: List[SearchTerm] = []
        self._metadata: Optional[QueryMetadata] = None
        self._subscribers: List[Subscriber] = []

    # Reads

    def has_query(self) -> bool:
        return bool(self._query)

    def get_current_query(self) -> str:
        return self._query

    def get_current_terms(self) -> List[SearchTerm]:
        """Selected terms, in query order."""
        return [term.model_copy() for term in self._terms if term.selected]

    def get_available_terms(self) -> List[SearchTerm]:
        """Every candidate term, selected or not."""
        return [term.model_copy() for term in self._terms]

    def get_metadata(self) -> Optional[QueryMetadata]:
        return self._metadata.model_copy() if self._metadata else None

    def is_user_selection(self) -> bool:
        return self._metadata is not None and self._metadata.source == QuerySource.USER_SELECTED

    def is_term_selected(self, text: str) -> bool:
        key = _key(text)
        return any(term.selected and _key(term.text) == key for term in self._terms)

    @staticmethod
    def parse_query_preserving_quotes(query: str) -> List[str]:
        return parse_query_preserving_quotes(query)

    def get_search_urls(self) -> Dict[str, str]:
        """Marketplace search page links for the current query."""
        if not self._query:
            return {}
        historical = urlencode({"event_id": "", "is": "ended", "q": self._query})
        live = urlencode({"event_id": "", "is": "", "q": self._query})
        return {
            "historical": f"{self.search_page_url}?{historical}",
            "live": f"{self.search_page_url}?{live}",
        }

    # Writes

    def set_from_generation(
        self,
        query: str,
        terms: Iterable[SearchTerm],
        metadata: QueryMetadata
    ) -> None:
        """
        Install a generated query, replacing all prior state.

        Args:
            query: Query string, parsed into terms when no terms are given.
                The stored query is always rebuilt from the selected terms.
            terms: Candidate terms, selected ones make up the query
            metadata: Source (ai_generated or emergency_fallback) and confidence
        """
        installed = [term.model_copy() for term in terms]
        if not installed and query:
            provenance = (
                Provenance.FALLBACK if metadata.source == QuerySource.EMERGENCY_FALLBACK
                else Provenance.DERIVED
            )
            installed = [
                term_from_text(text, selected=True, provenance=provenance)
                for text in parse_query_preserving_quotes(query)
            ]

        self._terms = self._single_detected_artist(installed)
        self._query = build_query_string(self._terms)
        self._metadata = metadata.model_copy()

        logger.info(
            f"[SSOT] Query set from {metadata.source.value}: \"{self._query}\" "
            f"({len(self._terms)} terms, confidence {metadata.confidence:.2f})"
        )
        self._notify(QUERY_UPDATED)

    def update_user_selection(
        self,
        selected_terms: Iterable[str],
        toggled_term: Optional[str] = None
    ) -> str:
        """
        Reconcile the candidate terms with what the user has checked.

        Protected terms (AI-detected artists, high-priority artist terms and
        artist terms that were already selected) stay selected when they are
        missing from selected_terms, because an unrelated checkbox change must
        not drop them. Only an explicit toggle of that exact term deselects one.

        Args:
            selected_terms: Texts of every term that is now checked
            toggled_term: The term the user actually clicked, if known

        Returns:
            The rebuilt query string
        """
        wanted = {}
        for text in selected_terms:
            key = _key(text)
            if key and key not in wanted:
                wanted[key] = text
        toggled = _key(toggled_term) if toggled_term else None

        merged = []
        for term in self._terms:
            key = _key(term.text)
            was_selected = term.selected
            updated = term.model_copy()

            if key in wanted:
                updated.selected = True
                if updated.provenance != Provenance.AI_DETECTED:
                    updated.provenance = Provenance.USER_SELECTED
            elif was_selected and self._is_protected(term) and key != toggled:
                logger.info(f"[SSOT] Keeping protected term \"{term.text}\" selected")
                updated.selected = True
            else:
                updated.selected = False
                if key == toggled and updated.provenance == Provenance.AI_DETECTED:
                    updated.provenance = Provenance.USER_SELECTED

            merged.append(updated)

        known = {_key(term.text) for term in self._terms}
        for key, text in wanted.items():
            if key not in known:
                merged.append(term_from_text(text, selected=True, provenance=Provenance.USER_SELECTED))

        self._terms = merged
        self._query = build_query_string(self._terms)

        previous = self._metadata
        self._metadata = QueryMetadata(
            source=QuerySource.USER_SELECTED,
            confidence=previous.confidence if previous else 1.0,
            reasoning="Terms selected by the user",
            updated_at=datetime.now(timezone.utc),
            original_title=previous.original_title if previous else "",
        )

        logger.info(f"[SSOT] User selection: \"{self._query}\"")
        self._notify(QUERY_UPDATED)
        return self._query

    def clear(self) -> None:
        """Forget the query at session reset."""
        self._query = ""
        self._terms = []
        self._metadata = None
        logger.info("[SSOT] Query cleared")
        self._notify(QUERY_CLEARED)

    # Subscribers

    def subscribe(self, callback: Subscriber) -> None:
        if callback not in self._subscribers:
            self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def _notify(self, event: str) -> None:
        data = {
            "query": self._query,
            "source": self._metadata.source.value if self._metadata else None,
            "terms": [term.text for term in self._terms if term.selected],
        }
        for callback in list(self._subscribers):
            try:
                callback(event, data)
            except Exception:
                logger.exception(f"[SSOT] Subscriber {callback!r} failed on {event}")

    @staticmethod
    def _is_protected(term: SearchTerm) -> bool:
        if term.provenance == Provenance.AI_DETECTED:
            return True
        if term.kind == TermKind.ARTIST and term.priority >= PROTECTED_PRIORITY:
            return True
        return term.kind == TermKind.ARTIST and term.selected

    @staticmethod
    def _single_detected_artist(terms: List[SearchTerm]) -> List[SearchTerm]:
        """Keep at most one AI-detected artist term, the highest-priority one."""
        detected = [
            term for term in terms
            if term.kind == TermKind.ARTIST and term.provenance == Provenance.AI_DETECTED
        ]
        if len(detected) <= 1:
            return terms
        keep = max(detected, key=lambda term: term.priority)
        for term in detected:
            if term is not keep:
                term.provenance = Provenance.DERIVED
        return terms
