"""Tests for the capture adapters."""

import asyncio
import threading
from unittest.mock import patch

import pyperclip
import pytest

from hotkeytranslator.cancel import SHUTDOWN, CancelScope, SessionCancelled
from hotkeytranslator.capture import (
    MemoryClipboard,
    SelectionCapture,
    SimulationGuard,
    SystemClipboard,
)


class TestSimulationGuard:
    def test_not_suppressed_by_default(self):
        assert not SimulationGuard().suppressed

    def test_suppressed_inside_scope(self):
        guard = SimulationGuard()
        with guard.simulation_scope():
            assert guard.suppressed
        assert not guard.suppressed

    def test_nested_scopes(self):
        guard = SimulationGuard()
        with guard.simulation_scope():
            with guard.simulation_scope():
                assert guard.suppressed
            assert guard.suppressed
        assert not guard.suppressed

    def test_released_on_error(self):
        guard = SimulationGuard()
        with pytest.raises(RuntimeError):
            with guard.simulation_scope():
                raise RuntimeError("copy failed")
        assert not guard.suppressed

    def test_visible_from_other_threads(self):
        guard = SimulationGuard()
        seen = []
        with guard.simulation_scope():
            thread = threading.Thread(target=lambda: seen.append(guard.suppressed))
            thread.start()
            thread.join()
        assert seen == [True]


class TestSelectionCapture:
    def test_runs_copy_action(self):
        copies = []
        capture = SelectionCapture(send_copy=lambda: copies.append(True), copy_delay=0)
        asyncio.run(capture.capture_selection(CancelScope()))
        assert copies == [True]

    def test_without_copy_action(self):
        asyncio.run(SelectionCapture(copy_delay=0).capture_selection(CancelScope()))

    def test_cancelled_delay_returns_quietly(self):
        async def scenario():
            scope = CancelScope()
            capture = SelectionCapture(copy_delay=10)

            async def cancel_soon():
                await asyncio.sleep(0.01)
                scope.cancel(SHUTDOWN)

            canceller = asyncio.create_task(cancel_soon())
            await asyncio.wait_for(capture.capture_selection(scope), 1)
            await canceller

        asyncio.run(scenario())


class TestMemoryClipboard:
    def test_get_and_set(self):
        async def scenario():
            clipboard = MemoryClipboard("Hello")
            scope = CancelScope()
            before = await clipboard.get_text(scope)
            await clipboard.set_text("Привет", scope)
            return before, clipboard

        before, clipboard = asyncio.run(scenario())
        assert before == "Hello"
        assert clipboard.text == "Привет"
        assert clipboard.writes == ["Привет"]

    def test_cancelled_scope(self):
        scope = CancelScope()
        scope.cancel(SHUTDOWN)
        with pytest.raises(SessionCancelled):
            asyncio.run(MemoryClipboard("x").set_text("y", scope))


class TestSystemClipboard:
    def test_reads_with_pyperclip(self):
        with patch("pyperclip.paste", return_value="copied") as paste:
            text = asyncio.run(SystemClipboard().get_text(CancelScope()))
        assert text == "copied"
        paste.assert_called_once()

    def test_writes_with_pyperclip(self):
        with patch("pyperclip.copy") as copy:
            asyncio.run(SystemClipboard().set_text("Привет", CancelScope()))
        copy.assert_called_once_with("Привет")

    def test_unavailable_clipboard_reads_empty(self):
        with patch("pyperclip.paste", side_effect=pyperclip.PyperclipException("no clipboard")):
            assert asyncio.run(SystemClipboard().get_text(CancelScope())) == ""
