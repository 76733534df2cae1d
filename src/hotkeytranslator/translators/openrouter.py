"""Translator using chat-completion models served by OpenRouter."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass

import aiohttp

from hotkeytranslator.cancel import CancelScope
from hotkeytranslator.translators.base import guarded_translate
from hotkeytranslator.translators.chat_response import first_choice_content
from hotkeytranslator.translators.gateway import is_success

logger = logging.getLogger(__name__)

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
"""Base URL of the OpenRouter API (chat completions live under it)."""

DEFAULT_REFERER = "https://hotkeytranslator.local"
DEFAULT_TITLE = "Hotkey Translator"

PROMPT = (
    "You are a translation assistant. Respond with only the translated text "
    "while preserving line breaks.\n\n"
    "Source language: {source}\n"
    "Target language: {target}"
)
"""User prompt header; the text to translate follows after a blank line."""

EXPLANATION_PROMPT = (
    "If the english sentence contains errors, add ONE --- after the translation, "
    "then add a short, compact explanation of the english errors in russian"
)
"""Appended when the model should explain mistakes in the source text."""


@dataclass(frozen=True)
class OpenRouterModel:
    """One chat model used as a translation provider."""

    model_id: str
    display_name: str
    include_error_explanation: bool = False
    strip_reasoning_tags: bool = False
    reasoning_start: str = "<think>"
    reasoning_end: str = "</think>"


def build_prompt(
    text: str,
    source_lang: str,
    target_lang: str,
    *,
    include_explanation: bool = False,
    explanation_language: str = "en",
) -> str:
    """Build the single user message sent to the model."""
    prompt = PROMPT.format(
        source=(source_lang or "").strip() or "auto",
        target=(target_lang or "").strip() or "auto",
    )
    if include_explanation and source_lang == explanation_language:
        prompt += "\n" + EXPLANATION_PROMPT
    return f"{prompt}\n\n{text}"


def strip_reasoning(text: str, start: str = "<think>", end: str = "</think>") -> str:
    """Remove every ``start ... end`` block (case-insensitive, across lines)."""
    pattern = re.compile(re.escape(start) + ".*?" + re.escape(end), re.IGNORECASE | re.DOTALL)
    return pattern.sub("", text)


class OpenRouterTranslator:
    """Translator for one OpenRouter chat model."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        api_key: str | None,
        model: OpenRouterModel,
        *,
        base_url: str = OPENROUTER_BASE_URL,
        explanation_language: str = "en",
        referer: str = DEFAULT_REFERER,
        title: str = DEFAULT_TITLE,
    ) -> None:
        self.name = model.display_name
        self._session = session
        self._api_key = api_key
        self._model = model
        self._url = base_url.rstrip("/") + "/chat/completions"
        self._explanation_language = explanation_language
        self._referer = referer
        self._title = title

    @property
    def model(self) -> OpenRouterModel:
        return self._model

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
            self.post_process,
        )

    def post_process(self, translation: str) -> str | None:
        if not translation.strip():
            return None
        if self._model.strip_reasoning_tags:
            translation = strip_reasoning(
                translation, self._model.reasoning_start, self._model.reasoning_end
            )
        return translation.strip() or None

    async def _request(self, text: str, source_lang: str, target_lang: str) -> str | None:
        if not self._api_key:
            logger.warning(
                "%s: OpenRouter API key is missing. Set OPENROUTER_API_KEY "
                "or place it in the configured key file.",
                self.name,
            )
            return None

        prompt = build_prompt(
            text,
            source_lang,
            target_lang,
            include_explanation=self._model.include_error_explanation,
            explanation_language=self._explanation_language,
        )
        payload = {
            "model": self._model.model_id,
            "messages": [{"role": "user", "content": prompt}],
        }
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "HTTP-Referer": self._referer,
            "X-Title": self._title,
        }

        logger.debug(
            "--- %s HTTP Request ---\nPOST %s\nBody:\n%s",
            self.name, self._url, json.dumps(payload, ensure_ascii=False),
        )
        async with self._session.post(self._url, json=payload, headers=headers) as response:
            status = response.status
            reason = response.reason
            body = await response.text()
        logger.debug(
            "--- %s HTTP Response ---\n%s %s\nBody:\n%s",
            self.name, status, reason, body or "<empty>",
        )

        if not is_success(status):
            logger.error("%s request failed (%s): %s. Body: %s", self.name, status, reason, body)
            return None

        if not body or not body.strip():
            logger.warning("%s response body was empty.", self.name)
            return None

        return self._extract(body)

    def _extract(self, body: str) -> str | None:
        try:
            data = json.loads(body)
        except ValueError:
            logger.warning("%s returned a malformed response: %.200s", self.name, body)
            return None

        choices = data.get("choices") if isinstance(data, dict) else None
        if not isinstance(choices, list) or not choices:
            logger.warning("%s response did not contain any choices.", self.name)
            return None

        content = first_choice_content(choices)
        if content is None:
            logger.warning("%s response did not contain any usable content.", self.name)
        return content
