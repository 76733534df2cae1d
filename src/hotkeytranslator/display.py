"""Display sinks: where "working" indicators and translation variants are sent.

Every variant carries the id of the session that produced it. A sink must
drop variants from a session once a newer session has started showing
results, since a slow provider of an old session can finish late.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from queue import Queue
from typing import Protocol

from rich.console import Console
from rich.markup import escape

logger = logging.getLogger(__name__)

WORKING = "working"
VARIANT = "variant"

# How many superseded session ids a sink remembers.
RETIRED_SESSIONS = 32


@dataclass
class DisplayMessage:
    """Message from the orchestrator to a display surface."""
    kind: str  # "working", "variant"
    session_id: str = ""
    provider_name: str = ""
    text: str = ""


class DisplaySink(Protocol):
    """One-way, fire-and-forget display channel. Methods must not block."""

    def show_working(self) -> None:
        ...

    def show_variant(self, session_id: str, provider_name: str, text: str) -> None:
        ...


class SessionFilter:
    """Tracks the current session and rejects messages from superseded ones.

    Only the last *retired_limit* superseded ids are remembered, so a
    long-running listener does not grow without bound.
    """

    def __init__(self, retired_limit: int = RETIRED_SESSIONS) -> None:
        self.current: str | None = None
        self._retired: deque[str] = deque(maxlen=retired_limit)

    def accept(self, session_id: str) -> bool:
        if session_id in self._retired:
            return False
        if session_id != self.current:
            if self.current is not None:
                self._retired.append(self.current)
            self.current = session_id
        return True


class QueueDisplaySink:
    """Puts every message on a queue for a consumer thread (or a test)."""

    def __init__(self) -> None:
        self.queue: Queue[DisplayMessage] = Queue()

    def show_working(self) -> None:
        self.queue.put(DisplayMessage(kind=WORKING))

    def show_variant(self, session_id: str, provider_name: str, text: str) -> None:
        self.queue.put(DisplayMessage(
            kind=VARIANT,
            session_id=session_id,
            provider_name=provider_name,
            text=text,
        ))

    def drain(self) -> list[DisplayMessage]:
        """Remove and return all queued messages."""
        messages = []
        while not self.queue.empty():
            messages.append(self.queue.get_nowait())
        return messages


class ConsoleDisplaySink:
    """Prints variants to the terminal with rich."""

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()
        self._sessions = SessionFilter()

    def show_working(self) -> None:
        self._console.print("[dim]Translating...[/dim]")

    def show_variant(self, session_id: str, provider_name: str, text: str) -> None:
        if not self._sessions.accept(session_id):
            logger.debug("Dropping %s result from superseded session %s", provider_name, session_id)
            return
        self._console.print(f"[bold cyan]{escape(provider_name)}[/bold cyan]: {escape(text)}")


# ── Overlay pipe ──


def encode_message(message: DisplayMessage) -> bytes:
    """Serialize a message in the overlay's wire format."""
    if message.kind == WORKING:
        return b"SHOW_RHOMBUS"
    payload = {
        "SessionId": message.session_id,
        "VariantName": message.provider_name,
        "Text": message.text,
    }
    return ("SHOW_VARIANT:" + json.dumps(payload, ensure_ascii=False)).encode("utf-8")


def pipe_path(pipe_name: str) -> str:
    """Named pipe path on Windows, a FIFO in the temp dir elsewhere."""
    if os.name == "nt":
        return rf"\\.\pipe\{pipe_name}"
    return os.path.join(tempfile.gettempdir(), pipe_name)


class PipeDisplaySink:
    """Sends messages to the overlay process over its named pipe.

    Each message is written over a fresh connection, as the overlay expects.
    Writes happen on a single worker thread so they keep their order and
    never block the caller.
    """

    def __init__(self, pipe_name: str = "DotNetTranslatorPipe") -> None:
        self._path = pipe_path(pipe_name)
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="display-pipe")

    @property
    def path(self) -> str:
        return self._path

    def show_working(self) -> None:
        self._submit(DisplayMessage(kind=WORKING))

    def show_variant(self, session_id: str, provider_name: str, text: str) -> None:
        self._submit(DisplayMessage(
            kind=VARIANT,
            session_id=session_id,
            provider_name=provider_name,
            text=text,
        ))

    def close(self) -> None:
        """Flush pending writes and stop the worker thread."""
        self._executor.shutdown(wait=True)

    def _submit(self, message: DisplayMessage) -> None:
        self._executor.submit(self._send, encode_message(message))

    def _send(self, data: bytes) -> None:
        # O_NONBLOCK makes opening a FIFO without a reader fail instead of hang.
        flags = os.O_WRONLY | getattr(os, "O_NONBLOCK", 0) | getattr(os, "O_BINARY", 0)
        try:
            fd = os.open(self._path, flags)
        except OSError as e:
            logger.warning("Could not connect to the display pipe %s: %s", self._path, e)
            return
        try:
            if os.name != "nt":
                # Non-blocking mode was only needed to detect a missing reader.
                os.set_blocking(fd, True)
            view = memoryview(data)
            while view:
                written = os.write(fd, view)
                view = view[written:]
            logger.debug("Message sent to display pipe.")
        except OSError as e:
            logger.error("Error sending message to display pipe: %s", e)
        finally:
            os.close(fd)
