"""
Search strategy builder - turns item attributes into an ordered list of
marketplace queries, most specific first.
"""

import logging
from typing import Callable, Dict, List, Optional

from comparables.models import ItemCategory, SearchStrategy, StrategyScope
from . import categories
from .categories import classify
from .query_format import combine, format_artist, parse_query_preserving_quotes, strip_quotes


logger = logging.getLogger(__name__)


class SearchStrategyBuilder:
    """
    Build progressive-fallback search strategies for an item.

    The combined description is classified into a category (jewelry, watch,
    synthesizer, instrument or generic) and each category has its own ladder of
    queries, narrowing from the full description down to the single most
    distinctive token. Multi-word artist and brand names are quoted before they
    enter any query.
    """

    def __init__(self):
        self._builders: Dict[ItemCategory, Callable[..., List[SearchStrategy]]] = {
            ItemCategory.JEWELRY: self._jewelry_strategies,
            ItemCategory.WATCH: self._watch_strategies,
            ItemCategory.SYNTHESIZER: self._synthesizer_strategies,
            ItemCategory.INSTRUMENT: self._instrument_strategies,
            ItemCategory.GENERIC: self._generic_strategies,
        }

    def build(
        self,
        artist: Optional[str] = None,
        object_type: Optional[str] = None,
        period: Optional[str] = None,
        technique: Optional[str] = None
    ) -> List[SearchStrategy]:
        """
        Build strategies for an item description.

        Args:
            artist: Artist, maker or brand name
            object_type: Object type such as "stol" or "armbandsur"
            period: Period or year such as "1950" or "1960-tal"
            technique: Technique or material such as "trä" or "olja på duk"

        Returns:
            Strategies ordered by descending weight. Empty when neither an
            artist nor an object type is given, which means "cannot search".
        """
        formatted_artist = format_artist(artist)
        object_type = _clean(object_type)
        period = _clean(period)
        technique = _clean(technique)

        if not formatted_artist and not object_type:
            logger.info("[STRATEGIES] No artist or object type - nothing to search for")
            return []

        full_text = combine(formatted_artist, object_type, period, technique)
        category = classify(full_text)

        strategies = self._builders[category](
            full_text=full_text,
            artist=formatted_artist,
            object_type=object_type,
            period=period,
            technique=technique,
        )
        strategies = _dedupe(strategies)
        strategies.sort(key=lambda strategy: -strategy.weight)

        logger.info(
            f"[STRATEGIES] {category.value} category, {len(strategies)} strategies for \"{full_text}\""
        )
        return strategies

    def canonical_query(
        self,
        artist: Optional[str] = None,
        object_type: Optional[str] = None,
        period: Optional[str] = None,
        technique: Optional[str] = None
    ) -> str:
        """The plain combined query tried before any strategy ladder."""
        return combine(format_artist(artist), _clean(object_type), _clean(period), _clean(technique))

    def _generic_strategies(self, full_text, artist, object_type, period, technique) -> List[SearchStrategy]:
        strategies = []

        def add(query, label, weight, scope):
            strategies.append(SearchStrategy(
                query=query,
                description=f"{label}: {query}",
                weight=weight,
                scope=scope,
                category=ItemCategory.GENERIC,
                broad=len(parse_query_preserving_quotes(query)) == 1,
            ))

        if artist and object_type:
            add(combine(artist, object_type), "Artist + object type", 1.0, StrategyScope.ARTIST)
        if artist and technique:
            add(combine(artist, technique), "Artist + technique", 0.9, StrategyScope.ARTIST)
        if artist and period:
            add(combine(artist, period), "Artist + period", 0.8, StrategyScope.ARTIST)
        if artist:
            add(artist, "Artist only", 0.7, StrategyScope.ARTIST)
        if object_type and technique and period:
            add(combine(object_type, technique, period), "Object + technique + period", 0.6, StrategyScope.GENERIC)
        if object_type and period:
            add(combine(object_type, period), "Object + period", 0.5, StrategyScope.GENERIC)

        return strategies

    def _jewelry_strategies(self, full_text, artist, object_type, period, technique) -> List[SearchStrategy]:
        tokens = _tokens(full_text)
        jewelry_type = _type_token(tokens, categories.JEWELRY_TYPES, object_type)
        materials = [t for t in tokens if categories.JEWELRY_MATERIAL_PATTERN.search(t)]

        strategies = [_strategy(full_text, "Jewelry specific", 1.0, ItemCategory.JEWELRY)]

        if materials:
            strategies.append(_strategy(
                combine(jewelry_type, *materials), "Jewelry material", 0.8, ItemCategory.JEWELRY
            ))

        if any('18k' in m for m in materials):
            strategies.append(_strategy(
                combine(jewelry_type, 'guld'), "Jewelry broad material", 0.6, ItemCategory.JEWELRY
            ))
        elif any('silver' in m for m in materials):
            strategies.append(_strategy(
                combine(jewelry_type, 'silver'), "Jewelry broad material", 0.6, ItemCategory.JEWELRY
            ))

        strategies.append(_strategy(jewelry_type, "Jewelry type only", 0.4, ItemCategory.JEWELRY, broad=True))
        return strategies

    def _watch_strategies(self, full_text, artist, object_type, period, technique) -> List[SearchStrategy]:
        tokens = _tokens(full_text)
        watch_type = _type_token(tokens, categories.WATCH_TYPES, object_type)
        brands = categories.tokens_containing(tokens, categories.WATCH_BRANDS)
        materials = [t for t in tokens if categories.WATCH_MATERIAL_PATTERN.search(t)]

        strategies = []
        if len(full_text) <= 30:
            strategies.append(_strategy(full_text, "Watch specific", 1.0, ItemCategory.WATCH))

        if brands:
            strategies.append(_strategy(
                combine(watch_type, brands[0]), "Watch brand", 0.9, ItemCategory.WATCH
            ))

        if materials:
            if any(m in ('guld', 'gold') for m in materials):
                primary = 'guld'
            elif 'silver' in materials:
                primary = 'silver'
            elif 'platina' in materials:
                primary = 'platina'
            else:
                primary = materials[0]
            strategies.append(_strategy(
                combine(watch_type, primary), "Watch material", 0.7, ItemCategory.WATCH
            ))

        strategies.append(_strategy(watch_type, "Watch type only", 0.5, ItemCategory.WATCH, broad=True))
        return strategies

    def _synthesizer_strategies(self, full_text, artist, object_type, period, technique) -> List[SearchStrategy]:
        tokens = _tokens(full_text)
        brands = categories.tokens_containing(tokens, categories.SYNTHESIZER_BRANDS)
        models = categories.model_tokens(tokens)

        strategies = []
        if brands and models:
            strategies.append(_strategy(
                combine(brands[0], models[0]), "Synthesizer brand + model", 1.0, ItemCategory.SYNTHESIZER
            ))
        if models:
            strategies.append(_strategy(models[0], "Synthesizer model", 0.9, ItemCategory.SYNTHESIZER))
        if brands:
            strategies.append(_strategy(
                combine(brands[0], 'synthesizer'), "Synthesizer brand", 0.8, ItemCategory.SYNTHESIZER
            ))
            strategies.append(_strategy(
                brands[0], "Brand only", 0.7, ItemCategory.SYNTHESIZER, broad=True
            ))
        strategies.append(_strategy(
            'synthesizer', "Synthesizer generic", 0.5, ItemCategory.SYNTHESIZER, broad=True
        ))
        return strategies

    def _instrument_strategies(self, full_text, artist, object_type, period, technique) -> List[SearchStrategy]:
        tokens = _tokens(full_text)
        brands = categories.tokens_containing(tokens, categories.PIANO_BRANDS)
        instrument_type = _type_token(
            tokens, categories.INSTRUMENT_TYPES, object_type, default=brands[0] if brands else None
        )
        materials = [t for t in tokens if categories.INSTRUMENT_MATERIAL_PATTERN.search(t)]
        periods = [t for t in tokens if categories.INSTRUMENT_PERIOD_PATTERN.search(t)]

        strategies = []
        if brands:
            strategies.append(_strategy(
                combine(instrument_type, brands[0]), "Instrument brand", 1.0, ItemCategory.INSTRUMENT
            ))
        elif len(full_text) <= 25:
            strategies.append(_strategy(full_text, "Instrument specific", 1.0, ItemCategory.INSTRUMENT))

        if materials:
            for preferred in ('valnöt', 'eben', 'mahogny'):
                if preferred in materials:
                    primary = preferred
                    break
            else:
                primary = materials[0]
            strategies.append(_strategy(
                combine(instrument_type, primary), "Instrument material", 0.8, ItemCategory.INSTRUMENT
            ))

        if periods:
            strategies.append(_strategy(
                combine(instrument_type, periods[0]), "Instrument period", 0.7, ItemCategory.INSTRUMENT
            ))

        strategies.append(_strategy(
            instrument_type, "Instrument type only", 0.5, ItemCategory.INSTRUMENT, broad=True
        ))
        return strategies


def _clean(value: Optional[str]) -> str:
    return ' '.join(value.split()) if value and isinstance(value, str) else ''


def _tokens(text: str) -> List[str]:
    return [strip_quotes(token).lower() for token in text.split() if strip_quotes(token)]


def _type_token(tokens, type_keywords, object_type: str, default: Optional[str] = None) -> str:
    """Category type word: first matching token, else the object type, else the first token."""
    match = categories.first_token_matching(tokens, type_keywords)
    if match:
        return match
    if object_type:
        return object_type.lower()
    if default:
        return default
    return tokens[0] if tokens else ''


def _strategy(query: str, label: str, weight: float, category: ItemCategory, broad: bool = False) -> SearchStrategy:
    return SearchStrategy(
        query=query,
        description=f"{label}: {query}",
        weight=weight,
        scope=StrategyScope.GENERIC,
        category=category,
        broad=broad or len(parse_query_preserving_quotes(query)) == 1,
    )


def _dedupe(strategies: List[SearchStrategy]) -> List[SearchStrategy]:
    """Drop empty queries and later repeats of an earlier query."""
    seen = set()
    unique = []
    for strategy in strategies:
        key = strategy.query.strip().lower()
        if not key or key in seen:
            continue
        seen.add(key)
        unique.append(strategy)
    return unique
