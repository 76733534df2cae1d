"""Script-based detection of the translation direction (Russian <-> English)."""

from __future__ import annotations

import re

# Any character of the Cyrillic block marks the text as Russian.
_CYRILLIC_RE = re.compile(r"[\u0400-\u04FF]")

RUSSIAN = "ru"
ENGLISH = "en"


def contains_cyrillic(text: str) -> bool:
    return _CYRILLIC_RE.search(text) is not None


def resolve_direction(text: str) -> tuple[str, str]:
    """Return the (source, target) language pair for *text*.

    Text with at least one Cyrillic character is translated from Russian to
    English; everything else (including blank text) from English to Russian.
    """
    if not text or not text.strip():
        return ENGLISH, RUSSIAN
    if contains_cyrillic(text):
        return RUSSIAN, ENGLISH
    return ENGLISH, RUSSIAN
