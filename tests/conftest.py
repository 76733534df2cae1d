"""Shared test fixtures for hotkeytranslator tests."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any

import pytest

from hotkeytranslator.cancel import CancelScope
from hotkeytranslator.config import Settings
from hotkeytranslator.translators.base import guarded_translate


# ── HTTP doubles ──


class FakeResponse:
    """Stands in for an aiohttp response used as ``async with session.get(...)``."""

    def __init__(
        self,
        status: int = 200,
        body: str = "",
        *,
        reason: str = "OK",
        delay: float = 0.0,
        error: BaseException | None = None,
    ) -> None:
        self.status = status
        self.body = body
        self.reason = reason
        self.delay = delay
        self.error = error

    async def __aenter__(self) -> FakeResponse:
        if self.delay > 0:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self

    async def __aexit__(self, *exc_info: Any) -> bool:
        return False

    async def text(self) -> str:
        return self.body


def json_response(data: Any, status: int = 200, **kwargs: Any) -> FakeResponse:
    return FakeResponse(status, json.dumps(data, ensure_ascii=False), **kwargs)


@dataclass
class FakeRequest:
    method: str
    url: str
    params: dict[str, str] | None = None
    json: Any = None
    headers: dict[str, str] = field(default_factory=dict)


class FakeSession:
    """Replays canned responses in order; the last one repeats."""

    def __init__(self, *responses: FakeResponse) -> None:
        self.responses = list(responses)
        self.requests: list[FakeRequest] = []

    def get(self, url: str, params: dict[str, str] | None = None, **kwargs: Any) -> FakeResponse:
        self.requests.append(FakeRequest("GET", url, params=params))
        return self._next()

    def post(
        self,
        url: str,
        json: Any = None,
        headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> FakeResponse:
        self.requests.append(FakeRequest("POST", url, json=json, headers=headers or {}))
        return self._next()

    def _next(self) -> FakeResponse:
        if not self.responses:
            return FakeResponse(404, "not found", reason="Not Found")
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


# ── Translator doubles ──


class ScriptedTranslator:
    """Translator that answers after scripted delays.

    *delays* is consumed one entry per call; the last entry repeats. With
    ``guarded=False`` the error escapes ``translate`` instead of being turned
    into None, like a provider that ignores the shared guard.
    """

    def __init__(
        self,
        name: str,
        result: str | None = "ok",
        *,
        delays: tuple[float, ...] = (0.0,),
        error: BaseException | None = None,
        guarded: bool = True,
    ) -> None:
        self.name = name
        self.result = result
        self.error = error
        self.guarded = guarded
        self._delays = list(delays)
        self.calls: list[tuple[str, str, str]] = []
        self.completed = 0
        self.cancelled = 0

    def _next_delay(self) -> float:
        if len(self._delays) > 1:
            return self._delays.pop(0)
        return self._delays[0] if self._delays else 0.0

    async def translate(
        self,
        text: str,
        source_lang: str,
        target_lang: str,
        cancel: CancelScope,
    ) -> str | None:
        self.calls.append((text, source_lang, target_lang))
        delay = self._next_delay()
        if not self.guarded:
            await asyncio.sleep(delay)
            raise self.error or RuntimeError(f"{self.name} exploded")
        return await guarded_translate(self.name, text, cancel, lambda: self._answer(delay))

    async def _answer(self, delay: float) -> str | None:
        try:
            await asyncio.sleep(delay)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        if self.error is not None:
            raise self.error
        self.completed += 1
        return self.result


class RecordingCapture:
    """Capture double that tracks how many captures overlap."""

    def __init__(self, delay: float = 0.0) -> None:
        self.delay = delay
        self.active = 0
        self.max_active = 0
        self.count = 0

    async def capture_selection(self, cancel: CancelScope) -> None:
        self.count += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.active -= 1


# ── Fixtures ──


@pytest.fixture
def settings() -> Settings:
    """Default settings, independent of any translators.toml on disk."""
    return Settings()


@pytest.fixture
def no_api_key_env(monkeypatch):
    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)


@pytest.fixture
def config_file(tmp_path):
    """Write a translators.toml into tmp_path and return its path."""
    def write(content: str):
        path = tmp_path / "translators.toml"
        path.write_text(content, encoding="utf-8")
        return path
    return write
