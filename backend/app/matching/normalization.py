"""String cleanup applied before venue names and event titles are compared."""

from __future__ import annotations

import re

VENUE_SUFFIXES = (
    "amphitheater",
    "amphitheatre",
    "auditorium",
    "ballroom",
    "center",
    "centre",
    "club",
    "coliseum",
    "complex",
    "field",
    "forum",
    "garden",
    "gardens",
    "hall",
    "house",
    "lounge",
    "music hall",
    "pavilion",
    "plaza",
    "room",
    "stadium",
    "stage",
    "theater",
    "theatre",
    "arena",
    "venue",
)

TITLE_FILLER_WORDS = frozenset({"the", "a", "an", "at"})

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")
_LEADING_THE = re.compile(r"^the\s+")
_SUFFIX_PATTERNS = tuple(
    re.compile(rf"\b{re.escape(suffix)}\b\s*$")
    for suffix in sorted(VENUE_SUFFIXES, key=len, reverse=True)
)


def _clean(value: str) -> str:
    lowered = value.lower()
    lowered = _PUNCTUATION.sub("", lowered)
    return _WHITESPACE.sub(" ", lowered).strip()


def normalize_venue_name(name: str) -> str:
    """Reduce a venue name to its distinctive core.

    "The Showbox" and "Showbox Theater" both become "showbox". Stripping is
    repeated until nothing more can be removed, and never empties the name,
    so the result is a fixed point of this function.
    """
    normalized = _clean(name)

    changed = True
    while changed:
        changed = False
        stripped = _LEADING_THE.sub("", normalized, count=1).strip()
        if stripped and stripped != normalized:
            normalized = stripped
            changed = True
        for pattern in _SUFFIX_PATTERNS:
            stripped = _WHITESPACE.sub(" ", pattern.sub("", normalized)).strip()
            if stripped and stripped != normalized:
                normalized = stripped
                changed = True

    return normalized


def normalize_event_title(title: str) -> str:
    """Lowercase, drop punctuation and article/connector words, collapse whitespace.

    Filler words are removed wherever they appear, not only as a leading
    article, so "The Black Tones Live at The Showbox" lines up with "Black
    Tones Live Showbox". The cost is that a word like the "A" in "Plan A" is
    dropped too. A title made only of filler words is kept as-is rather than
    emptied.
    """
    normalized = _clean(title)
    words = [word for word in normalized.split(" ") if word not in TITLE_FILLER_WORDS]
    if not words:
        return normalized
    return " ".join(words)
