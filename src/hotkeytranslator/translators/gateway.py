"""Client for the local translation gateway that fronts several named engines.

One gateway process (Mozhi) serves every engine on a single port; the engine
is picked per request with the ``engine`` query parameter.
"""

from __future__ import annotations

import json
import logging

import aiohttp

from hotkeytranslator.cancel import CancelScope
from hotkeytranslator.translators.base import guarded_translate

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3000
TRANSLATE_PATH = "/api/translate"
RESULT_KEY = "translated-text"


def translate_url(host: str, port: int) -> str:
    return f"http://{host}:{port}{TRANSLATE_PATH}"


def is_success(status: int) -> bool:
    return 200 <= status < 300


async def fetch_translation(
    session: aiohttp.ClientSession,
    url: str,
    *,
    engine: str,
    source_lang: str,
    target_lang: str,
    text: str,
) -> tuple[int, str]:
    """Issue one translate request. Returns (status, body)."""
    params = {
        "engine": engine,
        "from": source_lang or "",
        "to": target_lang or "",
        "text": text,
    }
    async with session.get(url, params=params) as response:
        return response.status, await response.text()


def parse_translated_text(name: str, body: str) -> str | None:
    """Pull the translation out of a gateway JSON body."""
    try:
        data = json.loads(body)
    except ValueError:
        logger.warning("%s returned a malformed response: %.200s", name, body)
        return None

    if not isinstance(data, dict):
        logger.warning("%s returned an unexpected response: %.200s", name, body)
        return None

    translated = data.get(RESULT_KEY)
    if not isinstance(translated, str):
        logger.warning("%s response has no %r field.", name, RESULT_KEY)
        return None
    return translated


class GatewayTranslator:
    """Translator for one named engine of the shared gateway."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        engine: str,
        *,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
    ) -> None:
        self.name = engine
        self._session = session
        self._engine = engine
        self._url = translate_url(host, port)

    @property
    def engine(self) -> str:
        return self._engine

    async def translate(
        self,
        text: str,
        source_lang: str,
        target_lang: str,
        cancel: CancelScope,
    ) -> str | None:
        return await guarded_translate(
            self.name,
            text,
            cancel,
            lambda: self._request(text, source_lang, target_lang),
        )

    async def _request(self, text: str, source_lang: str, target_lang: str) -> str | None:
        status, body = await fetch_translation(
            self._session,
            self._url,
            engine=self._engine,
            source_lang=source_lang,
            target_lang=target_lang,
            text=text,
        )
        if not is_success(status):
            logger.error("%s API error: %s - %s", self.name, status, body)
            return None
        return parse_translated_text(self.name, body)
