"""
Query generator - drafts the authoritative search query for an item using
Claude Haiku, with a heuristic fallback when the model is unavailable or its
reply does not parse.
"""

import logging
import os
import re
from datetime import datetime, timezone
from typing import List, Optional

import anthropic

from comparables.config import GeneratorConfig
from comparables.models import Provenance, QueryMetadata, QuerySource, SearchTerm, TermKind
from comparables.search.categories import classify_term, term_priority
from comparables.search.query_format import build_query_string, format_artist, strip_quotes
from .authority import QueryAuthority
from .parser import CORE_ARTIST_PRIORITY, ParseError, ParsedQuery, parse_generated_query


logger = logging.getLogger(__name__)

FALLBACK_OBJECT_TYPES = (
    'skulptur', 'målning', 'tavla', 'keramik', 'fat', 'vas',
    'armbandsur', 'klocka', 'ur', 'halsband', 'ring', 'brosch',
)
FALLBACK_STOP_WORDS = frozenset((
    'och', 'med', 'för', 'från', 'till', 'signerad', 'numrerad', 'höjd', 'diameter',
))
MAX_FALLBACK_TERMS = 3

SYSTEM_PROMPT = """You are an expert in the Swedish auction market. You pick search terms that find comparable sold items on an online auction marketplace.

CRITICAL RULES:
- If an artist field is provided it MUST be a search term, exactly as written
- Keep brand names and model numbers EXACTLY as written
- Prefer specific object types (fat, armbandsur, synthesizer) over generic words
- Terms stay in the language they appear in
- Return ONLY valid JSON"""


class QueryGenerator:
    """
    Generate candidate search terms for an item and install them in the
    query authority.

    The model proposes 8-12 candidate terms with categories and pre-selection
    flags. Without an API key, or when the call or the parse fails, the
    emergency fallback builds a short query from the artist field and title.
    """

    def __init__(
        self,
        authority: Optional[QueryAuthority] = None,
        config: Optional[GeneratorConfig] = None,
        client: Optional[anthropic.Anthropic] = None
    ):
        self.authority = authority
        self.config = config or GeneratorConfig()
        if client is None:
            api_key = os.getenv("ANTHROPIC_API_KEY")
            client = anthropic.Anthropic(api_key=api_key) if api_key else None
        self.client = client
        self.use_llm = self.client is not None

    def generate(self, title: str, description: str = "", artist: Optional[str] = None) -> ParsedQuery:
        """
        Generate the search query for an item.

        Args:
            title: Item title
            description: Item description
            artist: Artist or maker field, always part of the query when set

        Returns:
            The parsed query that was installed in the authority
        """
        parsed = None
        source = QuerySource.AI_GENERATED

        if self.use_llm:
            reply = self._generate_with_llm(title, description, artist)
            if reply is not None:
                result = parse_generated_query(reply, artist=artist)
                if isinstance(result, ParseError):
                    logger.warning(
                        f"[QUERY] Generated query rejected ({result.kind.value}): {result.message}"
                    )
                else:
                    parsed = result

        if parsed is None:
            parsed = self.emergency_fallback(title, artist, description)
            source = QuerySource.EMERGENCY_FALLBACK

        if self.authority is not None:
            self.authority.set_from_generation(
                parsed.query,
                parsed.terms,
                QueryMetadata(
                    source=source,
                    confidence=parsed.confidence,
                    reasoning=parsed.reasoning,
                    updated_at=datetime.now(timezone.utc),
                    original_title=title,
                ),
            )

        logger.info(f"[QUERY] {source.value} query for \"{title[:60]}\": {parsed.query}")
        return parsed

    def _generate_with_llm(self, title: str, description: str, artist: Optional[str]) -> Optional[str]:
        """Ask Claude Haiku for candidate terms; returns the raw reply text or None."""
        prompt = f"""Generate search terms for market analysis of this auction item.

Title: "{title}"
Description: "{description[:1000]}"
"""
        if artist and artist.strip():
            prompt += f'Artist field (MANDATORY to include): "{artist.strip()}"\n'

        prompt += """
List 8-12 candidate terms: the artist or brand, object type, model numbers,
materials, period and other distinctive words. Pre-select the 2-4 terms that
give the most relevant comparable sales. Multi-word names go in double quotes
in searchTerms.

Return ONLY valid JSON:
{
  "searchTerms": ["<pre-selected term>", "..."],
  "candidateTerms": [{"term": "<term>", "category": "<artist|brand|object|model|material|period|descriptive>", "preSelected": <true|false>}],
  "reasoning": "<brief explanation>",
  "confidence": <0.0-1.0>
}"""

        try:
            response = self.client.messages.create(
                model=self.config.model,
                max_tokens=self.config.max_tokens,
                temperature=0.2,
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": prompt}]
            )
            return response.content[0].text.strip()
        except anthropic.APIError as e:
            logger.error(f"[QUERY] Query generation call failed: {e}")
            return None

    def emergency_fallback(
        self,
        title: str,
        artist: Optional[str] = None,
        description: str = ""
    ) -> ParsedQuery:
        """
        Heuristic query from the artist field and title words.

        The formatted artist comes first, then one known object type found in
        the title, then significant title words, up to three terms in total.
        """
        terms: List[SearchTerm] = []
        seen = set()

        def add(text: str, kind: TermKind, priority: int, provenance: Provenance):
            key = text.lower()
            if not key or key in seen or len(terms) >= MAX_FALLBACK_TERMS:
                return
            seen.add(key)
            terms.append(SearchTerm(
                text=text, kind=kind, priority=priority, selected=True, provenance=provenance,
            ))

        artist_text = strip_quotes(format_artist(artist))
        if artist_text:
            add(artist_text, TermKind.ARTIST, CORE_ARTIST_PRIORITY, Provenance.AI_DETECTED)

        words = [w.strip('.,;:!?()"\'').lower() for w in (title or '').split()]
        words = [w for w in words if w]

        for word in words:
            if word in FALLBACK_OBJECT_TYPES:
                add(word, TermKind.OBJECT_TYPE, term_priority(TermKind.OBJECT_TYPE), Provenance.FALLBACK)
                break

        artist_words = set(artist_text.lower().split())
        for word in words:
            if len(word) <= 2 or word in FALLBACK_STOP_WORDS or word in artist_words:
                continue
            if re.fullmatch(r'[\d.,x×-]+', word):
                continue
            kind = classify_term(word)
            add(word, kind, term_priority(kind), Provenance.FALLBACK)

        return ParsedQuery(
            query=build_query_string(terms),
            terms=terms,
            confidence=0.7 if artist_text else 0.2,
            reasoning="Emergency fallback from the artist field and title",
        )
