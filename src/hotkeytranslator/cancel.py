"""Cooperative cancellation scopes shared by a session and its provider calls.

A scope is cancelled once and stays cancelled. Scopes form a tree: the
process-wide shutdown scope is the root and every translation session gets a
child, so stopping the process stops every session while superseding one
session leaves its siblings alone.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

T = TypeVar("T")

SUPERSEDED = "superseded"
SHUTDOWN = "shutdown"


class SessionCancelled(Exception):
    """Raised when work is abandoned because its scope was cancelled."""

    def __init__(self, reason: str | None = None) -> None:
        super().__init__(f"Session cancelled ({reason or 'unknown reason'})")
        self.reason = reason


class CancelScope:
    """A cancellation source that can be awaited alongside other work."""

    def __init__(self, parent: CancelScope | None = None) -> None:
        self._parent = parent
        self._event = asyncio.Event()
        self._children: set[CancelScope] = set()
        self.reason: str | None = None
        if parent is not None:
            parent._children.add(self)
            if parent.cancelled:
                self.cancel(parent.reason or SHUTDOWN)

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def child(self) -> CancelScope:
        """Create a scope that is cancelled together with this one."""
        return CancelScope(self)

    def cancel(self, reason: str = SHUTDOWN) -> None:
        """Cancel this scope and all of its children. Later calls are no-ops."""
        if self._event.is_set():
            return
        self.reason = reason
        self._event.set()
        for child in list(self._children):
            child.cancel(reason)

    def close(self) -> None:
        """Detach from the parent scope once the owner is done with it."""
        if self._parent is not None:
            self._parent._children.discard(self)
            self._parent = None

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise SessionCancelled(self.reason)

    async def wait(self) -> None:
        await self._event.wait()

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Await *awaitable* unless the scope is cancelled first.

        The awaitable and the cancellation signal are raced in the same wait,
        so a cancelled scope aborts the pending work immediately instead of
        after it finishes. Raises SessionCancelled in that case.
        """
        task = asyncio.ensure_future(awaitable)
        if self._event.is_set():
            await _abandon(task)
            raise SessionCancelled(self.reason)

        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            waiter.cancel()
            task.cancel()
            raise

        if task in done:
            waiter.cancel()
            return task.result()

        await _abandon(task)
        raise SessionCancelled(self.reason)


async def _abandon(task: asyncio.Future) -> None:
    """Cancel *task* and wait for it to unwind, discarding its outcome."""
    task.cancel()
    await asyncio.wait({task})
    if not task.cancelled():
        task.exception()
