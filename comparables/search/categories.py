"""
Keyword tables for item categories and search-term classification.

Every category and term-kind decision in the engine is a lookup against the
tables in this module, so the classification can be tested on its own.
"""

import re
from typing import Iterable, Optional

from comparables.models import ItemCategory, TermKind


JEWELRY_TYPES = ('ring', 'armband', 'halsband', 'örhängen', 'brosch', 'klocka')
JEWELRY_MEASUREMENT_PATTERN = re.compile(r'gram|längd|diameter|storlek|cm|mm')
JEWELRY_MATERIAL_PATTERN = re.compile(r'18k|guld|gold|silver|platina')

WATCH_TYPES = ('armbandsur', 'fickur', 'klocka', 'watch', 'wristwatch', 'timepiece')
WATCH_BRANDS = ('rolex', 'omega', 'lings', 'halda', 'tissot', 'longines', 'seiko', 'citizen')
WATCH_MATERIAL_PATTERN = re.compile(r'guld|gold|silver|platina|doublé|stål|steel')

INSTRUMENT_TYPES = (
    'flygel', 'piano', 'pianino', 'klaver', 'keyboard',
    'violin', 'viola', 'cello', 'kontrabas', 'fiol', 'altfiol',
    'gitarr', 'guitar', 'banjo', 'mandolin', 'luta', 'harp', 'harpa',
    'flöjt', 'flute', 'klarinett', 'oboe', 'fagott', 'saxofon',
    'trumpet', 'kornett', 'trombon', 'tuba', 'horn',
    'orgel', 'harmonium', 'dragspel', 'accordion',
    'trummor', 'drums', 'cymbaler', 'timpani', 'xylofon',
    'synthesizer', 'synth', 'synthesiser', 'syntetiserare', 'syntheziser',
    'drum machine', 'trummaskin', 'sampler', 'sequencer',
)
INSTRUMENT_BRANDS = (
    'steinway', 'yamaha', 'kawai', 'grotrian', 'bechstein', 'blüthner',
    'petrof', 'estonia', 'seiler', 'schimmel', 'ibach', 'nordiska',
    'roland', 'korg', 'moog', 'sequential', 'oberheim', 'arp', 'ensoniq',
    'kurzweil', 'akai', 'emu', 'fairlight', 'synclavier', 'nord',
)
PIANO_BRANDS = (
    'steinway', 'yamaha', 'kawai', 'grotrian', 'bechstein', 'blüthner',
    'petrof', 'estonia', 'seiler', 'schimmel', 'ibach', 'nordiska', 'steinweg',
)
SYNTHESIZER_BRANDS = (
    'yamaha', 'roland', 'korg', 'moog', 'sequential', 'oberheim', 'arp',
    'ensoniq', 'kurzweil', 'akai',
)
SYNTHESIZER_PATTERN = re.compile(r'synthesizer|synth|keyboard|drum machine|sampler')
INSTRUMENT_MATERIAL_PATTERN = re.compile(
    r'valnöt|walnut|eben|ebony|mahogny|mahogany|lönn|maple|trä|wood'
)
INSTRUMENT_PERIOD_PATTERN = re.compile(r'19\d{2}|20\d{2}|\d{2}-tal')
MODEL_PATTERN = re.compile(r'^[a-z]{1,4}\d{1,4}[a-z]*$', re.IGNORECASE)

# Title keywords a live listing needs when a broad fallback query is used
LIVE_RELEVANCE_KEYWORDS = {
    ItemCategory.SYNTHESIZER: (
        'synthesizer', 'synth', 'keyboard', 'piano', 'dx7', 'juno', 'jupiter', 'moog',
    ),
    ItemCategory.WATCH: (
        'klocka', 'armbandsur', 'fickur', 'watch', 'timepiece', 'ur',
    ),
}

# Object and material words that never count as parts of a person's name
OBJECT_VOCABULARY = frozenset((
    'byrå', 'teak', 'glas', 'keramik', 'silver', 'guld', 'koppar', 'mässing',
    'järn', 'stål', 'trä', 'ek', 'furu', 'björk', 'mahogny', 'valnöt',
    'porslin', 'stengods', 'fajans', 'kristall', 'målning', 'tavla',
    'skulptur', 'lampa', 'vas', 'skål', 'tallrik', 'kopp', 'kanna',
))

KNOWN_BRANDS = (
    'dux', 'källemo', 'lammhults', 'norrlands', 'svenskt tenn', 'ikea',
    'royal copenhagen', 'copenhagen', 'bing & grøndahl', 'arabia', 'rörstrand', 'gustavsberg',
    'omega', 'rolex', 'breitling', 'tag heuer', 'seiko', 'citizen', 'patek', 'cartier',
    'yamaha', 'roland', 'korg', 'moog', 'sequential', 'oberheim',
    'orrefors', 'kosta boda', 'målerås', 'bergdala',
) + WATCH_BRANDS + PIANO_BRANDS + SYNTHESIZER_BRANDS

OBJECT_TYPES = (
    'sängbord', 'nattduksbord', 'bord', 'stol', 'fåtölj', 'soffa', 'skrivbord',
    'byrå', 'skåp', 'hylla', 'lampa', 'ljuskrona', 'fat', 'skål', 'vas',
    'tallrik', 'kopp', 'kanna', 'skulptur', 'målning', 'tavla', 'lithografi',
    'etsning', 'keramik', 'halsband', 'ring', 'brosch', 'armband', 'örhängen',
    'watch', 'ur', 'dx7',
) + WATCH_TYPES + INSTRUMENT_TYPES

MATERIALS = (
    'guld', 'gold', 'silver', 'platina', 'doublé', 'stål', 'steel', 'teak',
    'glas', 'koppar', 'mässing', 'järn', 'trä', 'ek', 'furu', 'björk',
    'mahogny', 'valnöt', 'porslin', 'stengods', 'fajans', 'kristall', 'eben',
    'lönn', '18k',
)

MOVEMENTS = (
    'art deco', 'art nouveau', 'jugend', 'funkis', 'funktionalism', 'bauhaus',
    'gustaviansk', 'rokoko', 'barock', 'empire', 'modernism', 'swedish grace',
)

ORIGINS = (
    'japan', 'japanese', 'germany', 'swiss', 'sweden', 'sverige', 'danmark',
    'denmark', 'norge', 'finland', 'frankrike', 'tyskland', 'england', 'italien', 'schweiz',
)

PERIOD_PATTERN = re.compile(r'^\d{4}$|\d{4}[-\s]?tal|\d{2}[-\s]tal')
REFERENCE_PATTERN = re.compile(r'^(?:ref|reference|nr|no)\.?\s*[\w./-]+$|^\d{2,}[./-]\d+', re.IGNORECASE)

TERM_PRIORITIES = {
    TermKind.ARTIST: 90,
    TermKind.OBJECT_TYPE: 85,
    TermKind.MODEL: 80,
    TermKind.REFERENCE: 78,
    TermKind.PERIOD: 75,
    TermKind.MOVEMENT: 72,
    TermKind.MATERIAL: 72,
    TermKind.ORIGIN: 70,
    TermKind.KEYWORD: 60,
}

_WORD_START = r'(?<!\w)'


def has_keyword(text: str, keywords: Iterable[str]) -> bool:
    """True when any keyword starts a word in the lowercased text."""
    lowered = text.lower()
    return any(re.search(_WORD_START + re.escape(keyword), lowered) for keyword in keywords)


def has_word(text: str, words: Iterable[str]) -> bool:
    """True when any of the words appears whole in the lowercased text."""
    lowered = text.lower()
    return any(
        re.search(_WORD_START + re.escape(word) + r'(?!\w)', lowered) for word in words
    )


def is_relevant(title: str, keywords: Iterable[str]) -> bool:
    """True when the title carries a relevance keyword.

    Short keywords such as "ur" must stand as whole words, so "kultur" and
    "figur" do not count; longer ones may sit inside compounds like "armbandsuret".
    """
    lowered = title.lower()
    for keyword in keywords:
        if len(keyword) <= 3:
            if has_word(lowered, (keyword,)):
                return True
        elif keyword in lowered:
            return True
    return False


def first_token_matching(tokens: Iterable[str], keywords: Iterable[str]) -> Optional[str]:
    """First token that begins with one of the keywords."""
    keywords = tuple(keywords)
    for token in tokens:
        if any(token.startswith(keyword) for keyword in keywords):
            return token
    return None


def tokens_containing(tokens: Iterable[str], keywords: Iterable[str]) -> list:
    keywords = tuple(keywords)
    return [token for token in tokens if any(keyword in token for keyword in keywords)]


def model_tokens(tokens: Iterable[str]) -> list:
    return [token for token in tokens if MODEL_PATTERN.match(token)]


def is_jewelry(text: str) -> bool:
    return has_keyword(text, JEWELRY_TYPES) and bool(JEWELRY_MEASUREMENT_PATTERN.search(text.lower()))


def is_watch(text: str) -> bool:
    return has_keyword(text, WATCH_TYPES)


def is_instrument(text: str) -> bool:
    return has_keyword(text, INSTRUMENT_TYPES) or has_word(text, INSTRUMENT_BRANDS)


def is_synthesizer(text: str) -> bool:
    """Synthesizer keyword, or a synthesizer brand next to a model code like DX7."""
    lowered = text.lower()
    if SYNTHESIZER_PATTERN.search(lowered):
        return True
    tokens = [token.strip('"') for token in lowered.split()]
    return bool(tokens_containing(tokens, SYNTHESIZER_BRANDS)) and bool(model_tokens(tokens))


def classify(text: str) -> ItemCategory:
    """Pick the strategy family for a combined item description.

    Checked in order: jewelry, watch, instrument (split into synthesizer and
    traditional), generic.
    """
    if not text:
        return ItemCategory.GENERIC
    if is_jewelry(text):
        return ItemCategory.JEWELRY
    if is_watch(text):
        return ItemCategory.WATCH
    if is_instrument(text):
        if is_synthesizer(text):
            return ItemCategory.SYNTHESIZER
        return ItemCategory.INSTRUMENT
    return ItemCategory.GENERIC


def relevance_category(query: str, category: ItemCategory) -> Optional[ItemCategory]:
    """Category whose live-relevance keywords apply to a broad query, if any."""
    if category in LIVE_RELEVANCE_KEYWORDS:
        return category
    lowered = query.lower()
    if 'synthesizer' in lowered:
        return ItemCategory.SYNTHESIZER
    if 'klocka' in lowered or 'armbandsur' in lowered:
        return ItemCategory.WATCH
    return None


def classify_term(text: str) -> TermKind:
    """Closed classification of a single search term."""
    raw = text.strip()
    lowered = raw.strip('"').strip().lower()
    if not lowered:
        return TermKind.KEYWORD
    if raw.startswith('"') and raw.endswith('"') and len(raw) > 1:
        return TermKind.ARTIST
    if lowered in KNOWN_BRANDS:
        return TermKind.ARTIST
    if PERIOD_PATTERN.search(lowered):
        return TermKind.PERIOD
    if lowered in OBJECT_TYPES:
        return TermKind.OBJECT_TYPE
    if lowered in MATERIALS:
        return TermKind.MATERIAL
    if lowered in MOVEMENTS:
        return TermKind.MOVEMENT
    if lowered in ORIGINS:
        return TermKind.ORIGIN
    if MODEL_PATTERN.match(lowered):
        return TermKind.MODEL
    if REFERENCE_PATTERN.search(lowered):
        return TermKind.REFERENCE
    return TermKind.KEYWORD


def term_priority(kind: TermKind) -> int:
    return TERM_PRIORITIES.get(kind, 50)
