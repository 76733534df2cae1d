"""Client for the custom DeepL translation server.

The server speaks the gateway's ``/api/translate`` protocol on its own port,
but its engine parameter does not select a backend the way the gateway's
does, so every request asks for the fixed engine below.
"""

from __future__ import annotations

import logging
import re

import aiohttp

from hotkeytranslator.cancel import CancelScope
from hotkeytranslator.translators.base import guarded_translate
from hotkeytranslator.translators.gateway import (
    DEFAULT_HOST,
    fetch_translation,
    is_success,
    parse_translated_text,
    translate_url,
)

logger = logging.getLogger(__name__)

DEFAULT_PORT = 3001
FIXED_ENGINE = "google"
MAX_ERROR_LENGTH = 200

# e.g. "Time limit exceeded for line 2. (15000 ms)"
_TIME_LIMIT_RE = re.compile(r"Time limit exceeded.*?\((\d+)\s*ms\)", re.IGNORECASE | re.DOTALL)
_LINE_RE = re.compile(r"line (\d+)", re.IGNORECASE)
_MESSAGE_RE = re.compile(r"<p>Message:\s*(.+?)</p>", re.IGNORECASE | re.DOTALL)


def truncate(text: str, limit: int = MAX_ERROR_LENGTH) -> str:
    return text[:limit] + "..." if len(text) > limit else text


def parse_time_limit(body: str) -> tuple[int, int | None] | None:
    """Find a "time limit exceeded" report in a server error page.

    Returns (timeout_ms, line_number) or None when the body is some other
    error. The line number is None when the page does not name one.
    """
    match = _TIME_LIMIT_RE.search(body)
    if match is None:
        return None
    line_match = _LINE_RE.search(body)
    line = int(line_match.group(1)) if line_match else None
    return int(match.group(1)), line


def extract_error_message(body: str) -> str:
    """Return the ``<p>Message: ...</p>`` text of an error page, truncated."""
    match = _MESSAGE_RE.search(body)
    if match:
        return truncate(match.group(1).strip())
    return truncate(body)


class DeepLTranslator:
    """Translator backed by the custom DeepL server."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        *,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        name: str = "DeepL",
    ) -> None:
        self.name = name
        self._session = session
        self._port = port
        self._url = translate_url(host, port)

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
        logger.debug("%s sending HTTP request to port %d", self.name, self._port)
        status, body = await fetch_translation(
            self._session,
            self._url,
            engine=FIXED_ENGINE,
            source_lang=source_lang,
            target_lang=target_lang,
            text=text,
        )
        logger.debug("%s received response: %s", self.name, status)

        if not is_success(status):
            if status == 500:
                self._log_server_error(body)
            else:
                logger.error("%s API error: %s - %s", self.name, status, body)
            return None

        return parse_translated_text(self.name, body)

    def _log_server_error(self, body: str) -> None:
        time_limit = parse_time_limit(body)
        if time_limit is None:
            logger.error("%s server error (500): %s", self.name, extract_error_message(body))
            return

        timeout_ms, line = time_limit
        logger.error(
            "%s timeout error: Translation exceeded time limit of %.1f seconds (%d ms)",
            self.name, timeout_ms / 1000, timeout_ms,
        )
        if line is not None:
            logger.warning("%s timeout occurred at line %d", self.name, line)
