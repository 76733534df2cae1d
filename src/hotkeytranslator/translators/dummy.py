"""Dummy translator for offline runs and tests: prefixes text with a [XX] tag."""

from __future__ import annotations

import asyncio

from hotkeytranslator.cancel import CancelScope
from hotkeytranslator.translators.base import guarded_translate


class DummyTranslator:
    """Offline translator that prefixes the text with the target language tag.

    Example: "Привет" -> "[EN] Привет"

    An optional delay simulates network latency so that races between several
    dummy providers behave like races between real ones.
    """

    def __init__(self, name: str = "Dummy", delay: float = 0.0) -> None:
        self.name = name
        self._delay = delay

    async def translate(
        self,
        text: str,
        source_lang: str,
        target_lang: str,
        cancel: CancelScope,
    ) -> str | None:
        return await guarded_translate(
            self.name, text, cancel, lambda: self._tag(text, target_lang)
        )

    async def _tag(self, text: str, target_lang: str) -> str:
        if self._delay > 0:
            await asyncio.sleep(self._delay)
        return f"[{target_lang.upper()}] {text}"
