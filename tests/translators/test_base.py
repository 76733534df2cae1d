"""Tests for the shared provider failure guard."""

import asyncio
import logging

import aiohttp

from hotkeytranslator.cancel import SUPERSEDED, CancelScope
from hotkeytranslator.translators.base import guarded_translate


def _run(coro_factory):
    async def scenario():
        return await coro_factory(CancelScope())
    return asyncio.run(scenario())


class TestGuardedTranslate:
    def test_returns_stripped_result(self):
        async def call():
            return "  Hola  "

        assert _run(lambda cancel: guarded_translate("Test", "Hello", cancel, call)) == "Hola"

    def test_blank_text_skips_call(self):
        calls = []

        async def call():
            calls.append(True)
            return "never"

        assert _run(lambda cancel: guarded_translate("Test", "   ", cancel, call)) is None
        assert calls == []

    def test_none_result_skips_post_process(self):
        processed = []

        async def call():
            return None

        def post_process(text):
            processed.append(text)
            return text

        result = _run(lambda cancel: guarded_translate("Test", "Hi", cancel, call, post_process))
        assert result is None
        assert processed == []

    def test_custom_post_process(self):
        async def call():
            return "hola"

        result = _run(lambda cancel: guarded_translate("Test", "Hi", cancel, call, str.upper))
        assert result == "HOLA"

    def test_unexpected_error_becomes_none(self, caplog):
        async def call():
            raise RuntimeError("kaput")

        with caplog.at_level(logging.ERROR):
            assert _run(lambda cancel: guarded_translate("Test", "Hi", cancel, call)) is None
        assert any("kaput" in r.message for r in caplog.records)

    def test_http_error_becomes_none(self, caplog):
        async def call():
            raise aiohttp.ClientConnectionError("refused")

        with caplog.at_level(logging.ERROR):
            assert _run(lambda cancel: guarded_translate("Test", "Hi", cancel, call)) is None
        assert any("HTTP error" in r.message for r in caplog.records)

    def test_timeout_becomes_none(self, caplog):
        async def call():
            raise asyncio.TimeoutError()

        with caplog.at_level(logging.ERROR):
            assert _run(lambda cancel: guarded_translate("Test", "Hi", cancel, call)) is None
        assert any("timed out" in r.message for r in caplog.records)

    def test_cancellation_becomes_none(self, caplog):
        async def scenario():
            scope = CancelScope()

            async def call():
                await asyncio.sleep(10)
                return "late"

            async def cancel_soon():
                await asyncio.sleep(0.01)
                scope.cancel(SUPERSEDED)

            canceller = asyncio.create_task(cancel_soon())
            result = await guarded_translate("Test", "Hi", scope, call)
            await canceller
            return result

        with caplog.at_level(logging.INFO):
            assert asyncio.run(scenario()) is None
        assert any("canceled" in r.message for r in caplog.records)
        assert not any(r.levelno >= logging.ERROR for r in caplog.records)
