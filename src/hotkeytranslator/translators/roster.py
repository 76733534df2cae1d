"""Build the set of translators raced and streamed for every session."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

import aiohttp

from hotkeytranslator.config import Settings
from hotkeytranslator.translators.base import Translator


@dataclass(frozen=True)
class TranslatorRoster:
    """Primary translators are raced for the clipboard; variants are only streamed."""

    primary: tuple[Translator, ...] = ()
    variants: tuple[Translator, ...] = ()

    @property
    def all(self) -> tuple[Translator, ...]:
        return self.primary + self.variants

    def describe(self) -> list[tuple[str, str, str]]:
        """Return (role, name, kind) rows for display."""
        rows = [("primary", t.name, type(t).__name__) for t in self.primary]
        rows += [("variant", t.name, type(t).__name__) for t in self.variants]
        return rows


@dataclass
class HttpSessions:
    """Client sessions shared by all translators, one per timeout budget."""

    gateway: aiohttp.ClientSession
    deepl: aiohttp.ClientSession
    chat: aiohttp.ClientSession


@asynccontextmanager
async def open_http_sessions(settings: Settings) -> AsyncIterator[HttpSessions]:
    """Open the client sessions used by the HTTP translators and close them on exit."""
    gateway = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=settings.gateway.timeout))
    deepl = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=settings.deepl.timeout))
    chat = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=settings.openrouter.timeout))
    try:
        yield HttpSessions(gateway=gateway, deepl=deepl, chat=chat)
    finally:
        await gateway.close()
        await deepl.close()
        await chat.close()


def build_roster(
    settings: Settings,
    sessions: HttpSessions,
    *,
    api_key: str | None = None,
) -> TranslatorRoster:
    """Create the configured translators.

    Primaries are the gateway engines followed by the DeepL server (when
    enabled); variants are the OpenRouter chat models.
    """
    from hotkeytranslator.translators.deepl import DeepLTranslator
    from hotkeytranslator.translators.gateway import GatewayTranslator
    from hotkeytranslator.translators.openrouter import OpenRouterTranslator

    primary: list[Translator] = [
        GatewayTranslator(
            sessions.gateway,
            engine,
            host=settings.gateway.host,
            port=settings.gateway.port,
        )
        for engine in settings.gateway.engines
    ]
    if settings.deepl.enabled:
        primary.append(DeepLTranslator(
            sessions.deepl,
            host=settings.deepl.host,
            port=settings.deepl.port,
        ))

    variants: list[Translator] = [
        OpenRouterTranslator(
            sessions.chat,
            api_key,
            model,
            base_url=settings.openrouter.base_url,
            explanation_language=settings.openrouter.explanation_language,
        )
        for model in settings.openrouter.models
    ]
    return TranslatorRoster(primary=tuple(primary), variants=tuple(variants))


def build_dummy_roster(settings: Settings, delay_step: float = 0.05) -> TranslatorRoster:
    """Offline roster with the same shape as the configured one.

    Each dummy answers a little later than the previous one, so the first
    primary always wins the race.
    """
    from hotkeytranslator.translators.dummy import DummyTranslator

    names = list(settings.gateway.engines)
    if settings.deepl.enabled:
        names.append("DeepL")
    primary = tuple(
        DummyTranslator(name, delay=delay_step * (i + 1)) for i, name in enumerate(names)
    )
    offset = len(primary) + 1
    variants = tuple(
        DummyTranslator(model.display_name, delay=delay_step * (offset + i))
        for i, model in enumerate(settings.openrouter.models)
    )
    return TranslatorRoster(primary=primary, variants=variants)
