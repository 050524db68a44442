"""
Game title normalization for provider searches.

Removes platform and edition noise from a raw list entry so that
"Halo: Reach PC Game of the Year Edition™" is searched as "Halo: Reach".
The same function is used before every provider call, so two lookups of the
same raw name always send the same query.
"""
import re
import unicodedata

# Typographic variants folded to their plain ASCII form before filtering
_REPLACEMENTS = {
    '‘': "'",
    '’': "'",
    '“': '"',
    '”': '"',
    '–': '-',
    '—': '-',
}

PLATFORM_TOKENS = [
    r"PS[1-5]",
    r"Xbox",
    r"PC",
    r"Switch",
    r"Steam",
    r"Epic",
    r"GOG",
    r"Origin",
]

# Multi-word phrases must come before the single tokens they contain
EDITION_PHRASES = [
    r"Game\s+of\s+the\s+Year",
    r"Director's\s+Cut",
    r"Enhanced\s+Edition",
    r"Special\s+Edition",
]

EDITION_TOKENS = [
    r"Edition",
    r"Deluxe",
    r"GOTY",
    r"Complete",
    r"Ultimate",
    r"Remastered",
    r"HD",
    r"Definitive",
]

_TRADEMARKS_RE = re.compile(r"[®™©]")
_DISALLOWED_RE = re.compile(r"[^\w\s\-:.']")
_WHITESPACE_RE = re.compile(r"\s+")
# Only after a space and before a space or the end: a leading word is part of
# the title ("Epic Mickey"), and a glued token ("Deluxe-Edition") stays
_NOISE_RE = re.compile(
    r"(?<=\s)(?:" + "|".join(EDITION_PHRASES + EDITION_TOKENS + PLATFORM_TOKENS) + r")(?=\s|$)",
    re.IGNORECASE,
)
# Separators left dangling once a suffix is gone ("Baldur's Gate -")
_EDGE_CHARS = " -:"


def _collapse(s: str) -> str:
    return _WHITESPACE_RE.sub(" ", s).strip(_EDGE_CHARS)


def normalize(raw: str) -> str:
    """
    Normalize a raw game name for searching.

    Deterministic and total: any string in, a (possibly empty) string out.
    normalize(normalize(s)) == normalize(s) for every s.
    """
    name = unicodedata.normalize("NFC", raw or "")
    for old, new in _REPLACEMENTS.items():
        name = name.replace(old, new)

    name = _TRADEMARKS_RE.sub("", name)
    name = _DISALLOWED_RE.sub("", name)
    name = _collapse(name)

    # Dropping one token can join the words around it into a new phrase
    # ("Halo Game of the HD Year"), so strip until nothing changes.
    while True:
        stripped = _collapse(_NOISE_RE.sub(" ", name))
        if stripped == name:
            return name
        name = stripped


def names_match(provider_name: str, query: str) -> bool:
    """Exact-match rule: names are equal ignoring case and outer whitespace."""
    return (provider_name or "").strip().casefold() == (query or "").strip().casefold()
