"""Adapters for the selection-capture collaborators: clipboard, copy action, guard."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from collections.abc import Callable, Iterator

import pyperclip

from hotkeytranslator.cancel import CancelScope, SessionCancelled

logger = logging.getLogger(__name__)

DEFAULT_COPY_DELAY = 0.1


class SimulationGuard:
    """Suppresses trigger detection while we inject keystrokes ourselves.

    The trigger source checks ``suppressed`` before firing; the orchestrator
    holds a ``simulation_scope()`` around the simulated copy so the injected
    key presses cannot start another session.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._depth = 0

    @property
    def suppressed(self) -> bool:
        with self._lock:
            return self._depth > 0

    @contextlib.contextmanager
    def simulation_scope(self) -> Iterator[None]:
        with self._lock:
            self._depth += 1
        try:
            yield
        finally:
            with self._lock:
                self._depth -= 1


class SelectionCapture:
    """Copies the current selection to the clipboard.

    *send_copy* performs the copy action (normally a simulated Ctrl+C); it
    blocks, so it runs on a worker thread. Without one, the user is expected
    to have copied the text already. The settle delay gives the clipboard
    owner time to publish the new contents.
    """

    def __init__(
        self,
        send_copy: Callable[[], None] | None = None,
        copy_delay: float = DEFAULT_COPY_DELAY,
    ) -> None:
        self._send_copy = send_copy
        self._copy_delay = copy_delay

    async def capture_selection(self, cancel: CancelScope) -> None:
        if self._send_copy is not None:
            await asyncio.to_thread(self._send_copy)
        if self._copy_delay > 0:
            # Cutting the delay short is fine; the clipboard read that follows
            # observes the cancellation itself.
            with contextlib.suppress(SessionCancelled):
                await cancel.run(asyncio.sleep(self._copy_delay))


class SystemClipboard:
    """The OS clipboard, accessed through pyperclip on a worker thread."""

    async def get_text(self, cancel: CancelScope) -> str:
        return await cancel.run(asyncio.to_thread(self._read))

    async def set_text(self, text: str, cancel: CancelScope) -> None:
        await cancel.run(asyncio.to_thread(self._write, text))

    @staticmethod
    def _read() -> str:
        try:
            return pyperclip.paste() or ""
        except pyperclip.PyperclipException as e:
            logger.error("Error reading clipboard text: %s", e)
            return ""

    @staticmethod
    def _write(text: str) -> None:
        try:
            pyperclip.copy(text)
        except pyperclip.PyperclipException as e:
            logger.error("Error writing clipboard text: %s", e)


class MemoryClipboard:
    """In-process clipboard for one-shot runs and tests."""

    def __init__(self, text: str = "") -> None:
        self.text = text
        self.writes: list[str] = []

    async def get_text(self, cancel: CancelScope) -> str:
        cancel.raise_if_cancelled()
        return self.text

    async def set_text(self, text: str, cancel: CancelScope) -> None:
        cancel.raise_if_cancelled()
        self.text = text
        self.writes.append(text)
