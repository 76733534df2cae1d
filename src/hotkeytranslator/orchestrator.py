"""Session orchestration: single-flight triggers, provider fan-out and the primary race.

One trigger (a hotkey press) becomes one session:

1. take the processing slot, superseding the session that holds it;
2. copy the selection and read it from the clipboard;
3. answer from the cache, or race the primary translators for a clipboard
   result;
4. stream every translator's result to the display as it arrives.

The slot is released as soon as the clipboard result is known. Slow providers
keep streaming in the background until they finish or the session is
cancelled.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from functools import partial
from typing import Protocol

from hotkeytranslator.cancel import SHUTDOWN, SUPERSEDED, CancelScope, SessionCancelled
from hotkeytranslator.capture import SimulationGuard
from hotkeytranslator.display import DisplaySink
from hotkeytranslator.translation.cache import TranslationCache
from hotkeytranslator.translation.direction import resolve_direction
from hotkeytranslator.translators.base import Translator
from hotkeytranslator.translators.roster import TranslatorRoster

logger = logging.getLogger(__name__)


class Capture(Protocol):
    async def capture_selection(self, cancel: CancelScope) -> None:
        ...


class Clipboard(Protocol):
    async def get_text(self, cancel: CancelScope) -> str:
        ...

    async def set_text(self, text: str, cancel: CancelScope) -> None:
        ...


@dataclass(frozen=True)
class VariantResult:
    provider_name: str
    text: str


@dataclass
class Session:
    """One trigger's translation attempt."""
    scope: CancelScope
    id: str
    source_text: str
    direction: tuple[str, str]
    fanout_started: bool = False


class SessionOrchestrator:
    """Runs translation sessions, at most one capturing/racing at a time."""

    def __init__(
        self,
        *,
        capture: Capture,
        clipboard: Clipboard,
        roster: TranslatorRoster,
        display: DisplaySink,
        guard: SimulationGuard | None = None,
        cache: TranslationCache | None = None,
        resolver: Callable[[str], tuple[str, str]] = resolve_direction,
    ) -> None:
        self._capture = capture
        self._clipboard = clipboard
        self._roster = roster
        self._display = display
        self._guard = guard or SimulationGuard()
        self._cache = cache or TranslationCache()
        self._resolve = resolver

        self._slot = asyncio.Semaphore(1)
        self._shutdown = CancelScope()
        self._session_lock = threading.Lock()
        self._active: CancelScope | None = None
        self._triggers: set[asyncio.Task] = set()
        self._fanouts: dict[asyncio.Task, Session] = {}

    @property
    def cache(self) -> TranslationCache:
        return self._cache

    @property
    def has_active_session(self) -> bool:
        with self._session_lock:
            return self._active is not None

    @property
    def pending_fanouts(self) -> int:
        return len(self._fanouts)

    async def handle_trigger(self, shutdown: CancelScope | None = None) -> None:
        """Run one session. Never raises; every outcome is logged."""
        parent = shutdown if shutdown is not None else self._shutdown
        task = asyncio.current_task()
        if task is not None:
            self._triggers.add(task)

        acquired = False
        scope: CancelScope | None = None
        session: Session | None = None
        try:
            if self._slot.locked():
                # Supersedes the slot holder only; waiting triggers keep their turn.
                self._cancel_active(SUPERSEDED)
            await self._slot.acquire()
            acquired = True

            scope = parent.child()
            self._register(scope)
            if self._shutdown.cancelled:
                scope.cancel(SHUTDOWN)
            scope.raise_if_cancelled()

            self._notify_working()

            with self._guard.simulation_scope():
                await scope.run(self._capture.capture_selection(scope))

            text = await scope.run(self._clipboard.get_text(scope))
            if not text or not text.strip():
                logger.info("Clipboard is empty; nothing to translate.")
                return

            session = Session(
                scope=scope,
                id=uuid.uuid4().hex,
                source_text=text,
                direction=self._resolve(text),
            )
            await self._translate(session)

        except SessionCancelled:
            if scope is not None and scope.reason == SUPERSEDED:
                logger.info("Translation session canceled (superseded by a new request).")
            else:
                logger.info("Translation session canceled during shutdown.")
        except Exception:
            logger.exception("Hotkey workflow error")
        finally:
            # Once the fan-out has started it owns the scope and releases it.
            if scope is not None and not (session is not None and session.fanout_started):
                self._release_session(scope)
            if acquired:
                self._slot.release()
            if task is not None:
                self._triggers.discard(task)

    async def close(self) -> None:
        """Cancel every running session and wait for all of them to settle."""
        self._shutdown.cancel(SHUTDOWN)
        self._cancel_active(SHUTDOWN)
        for session in list(self._fanouts.values()):
            session.scope.cancel(SHUTDOWN)
        await self.drain()

    async def drain(self) -> None:
        """Wait until running triggers and background fan-outs have finished."""
        current = asyncio.current_task()
        while True:
            pending = [t for t in (*self._triggers, *self._fanouts) if t is not current]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    # ── Session steps ──

    async def _translate(self, session: Session) -> None:
        """Answer from the cache, or race the primaries for the clipboard."""
        scope = session.scope
        cached = self._cache.lookup(session.source_text)

        if cached is not None:
            provider = cached.provider_name or self._fallback_provider()
            logger.info("Using cached translation (%s): %s", provider, cached.translated_text)
            self._show_variant(session.id, provider, cached.translated_text)
            self._cache.store(session.source_text, cached.translated_text, provider)
            await scope.run(self._clipboard.set_text(cached.translated_text, scope))
            # Refresh the variants without waiting on the race.
            self._start_fanout(session, display_primary=False)
            return

        primary = self._start_fanout(session, display_primary=True)
        if not primary:
            return

        winner = await self._first_primary(primary, scope)
        if winner is None:
            logger.warning("No primary translator produced a result for session %s.", session.id)
            return

        self._cache.store(session.source_text, winner.text, winner.provider_name)
        await scope.run(self._clipboard.set_text(winner.text, scope))

    def _start_fanout(
        self, session: Session, *, display_primary: bool
    ) -> list[asyncio.Task[VariantResult | None]] | None:
        """Start every translator for *session*; returns the primary tasks.

        Returns None when the session was cancelled before anything started.
        """
        if session.scope.cancelled:
            return None

        primary = [self._spawn(t, session) for t in self._roster.primary]
        variants = [self._spawn(t, session) for t in self._roster.variants]

        stream = partial(self._stream_result, session)
        if display_primary:
            for task in primary:
                task.add_done_callback(stream)
        for task in variants:
            task.add_done_callback(stream)

        session.fanout_started = True
        pipeline = asyncio.create_task(
            self._settle(session, primary + variants), name=f"fanout-{session.id}"
        )
        self._fanouts[pipeline] = session
        pipeline.add_done_callback(self._fanout_done)
        return primary

    def _spawn(self, translator: Translator, session: Session) -> asyncio.Task[VariantResult | None]:
        return asyncio.create_task(
            self._run_translator(translator, session),
            name=f"{translator.name}-{session.id}",
        )

    async def _run_translator(self, translator: Translator, session: Session) -> VariantResult | None:
        source_lang, target_lang = session.direction
        logger.info(
            "TranslationStart session=%s provider=%s original: %s",
            session.id, translator.name, session.source_text,
        )
        try:
            text = await translator.translate(
                session.source_text, source_lang, target_lang, session.scope
            )
        except SessionCancelled:
            logger.info("%s canceled with session %s.", translator.name, session.id)
            return None
        except Exception as e:
            logger.error("Variant %r error: %s", translator.name, e)
            return None

        if not text or not text.strip():
            return None

        logger.info(
            "TranslationEnd session=%s provider=%s translated: %s",
            session.id, translator.name, text,
        )
        return VariantResult(translator.name, text)

    async def _first_primary(
        self,
        tasks: Sequence[asyncio.Task[VariantResult | None]],
        scope: CancelScope,
    ) -> VariantResult | None:
        """Return the first non-empty primary result in completion order."""
        # Done callbacks fire in the order the tasks finish, even when several
        # finish before this coroutine resumes.
        finished: asyncio.Queue[asyncio.Task[VariantResult | None]] = asyncio.Queue()
        for task in tasks:
            task.add_done_callback(finished.put_nowait)

        for _ in range(len(tasks)):
            task = await scope.run(finished.get())
            if task.cancelled() or task.exception() is not None:
                continue
            result = task.result()
            if result is not None:
                return result
        return None

    async def _settle(self, session: Session, tasks: list[asyncio.Task]) -> None:
        try:
            await asyncio.gather(*tasks, return_exceptions=True)
            if session.scope.cancelled:
                logger.info(
                    "Translation session %s canceled before all translators completed.",
                    session.id,
                )
        finally:
            self._release_session(session.scope)

    def _fanout_done(self, task: asyncio.Task) -> None:
        self._fanouts.pop(task, None)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Translation pipeline faulted: %s", task.exception())

    # ── Display ──

    def _stream_result(self, session: Session, task: asyncio.Task[VariantResult | None]) -> None:
        if task.cancelled() or task.exception() is not None:
            return
        result = task.result()
        if result is None or session.scope.cancelled:
            return
        self._show_variant(session.id, result.provider_name, result.text)

    def _show_variant(self, session_id: str, provider_name: str, text: str) -> None:
        try:
            self._display.show_variant(session_id, provider_name, text)
        except Exception:
            logger.exception("Display sink failed to show %s result", provider_name)

    def _notify_working(self) -> None:
        try:
            self._display.show_working()
        except Exception:
            logger.exception("Display sink failed to show the working indicator")

    def _fallback_provider(self) -> str:
        return self._roster.primary[0].name if self._roster.primary else "cached"

    # ── Active session registry ──

    def _register(self, scope: CancelScope) -> None:
        with self._session_lock:
            self._active = scope

    def _cancel_active(self, reason: str) -> None:
        with self._session_lock:
            scope = self._active
        if scope is not None:
            scope.cancel(reason)

    def _release_session(self, scope: CancelScope) -> None:
        with self._session_lock:
            if self._active is scope:
                self._active = None
        scope.close()
