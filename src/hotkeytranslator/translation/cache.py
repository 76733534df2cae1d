"""Single-slot memo of the last translation, used to answer repeat requests."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class CacheEntry:
    source_text: str
    translated_text: str
    provider_name: str


class TranslationCache:
    """Remembers the last (source, translation, provider) triple.

    Lookups compare the source text exactly, without any normalization. The
    cache has no lock of its own: the orchestrator only touches it while
    holding its single processing slot.
    """

    def __init__(self) -> None:
        self._entry: CacheEntry | None = None

    @property
    def entry(self) -> CacheEntry | None:
        return self._entry

    def lookup(self, source_text: str) -> CacheEntry | None:
        """Return the cached entry for *source_text*, or None on a miss."""
        entry = self._entry
        if entry is None or entry.source_text != source_text:
            return None
        if not entry.translated_text.strip():
            return None
        return entry

    def store(self, source_text: str, translated_text: str, provider_name: str) -> None:
        """Replace the cached entry."""
        self._entry = CacheEntry(source_text, translated_text, provider_name)

    def clear(self) -> bool:
        """Forget the cached entry. Returns True if there was one."""
        had_entry = self._entry is not None
        self._entry = None
        return had_entry
