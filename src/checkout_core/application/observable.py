"""Change notification and background-work bookkeeping for resolvers.

A rendering layer subscribes to a resolver (or to the coordinator) and
re-reads its snapshot whenever it is told something changed.  Nothing
here knows about rendering.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from checkout_core.domain.exceptions import CheckoutLockedError

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


class Observable:

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener*; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("Checkout listener %r failed", listener)


class Resolver(Observable):
    """Owns one slice of checkout state and the async work feeding it."""

    def __init__(self) -> None:
        super().__init__()
        self._tasks: set[asyncio.Task[Any]] = set()
        self._locked = False

    # --- Locking (driven by the coordinator) ----------------------------------

    @property
    def locked(self) -> bool:
        return self._locked

    def lock(self) -> None:
        self._locked = True
        self._notify()

    def unlock(self) -> None:
        self._locked = False
        self._notify()

    def _ensure_editable(self) -> None:
        if self._locked:
            raise CheckoutLockedError("Checkout is being finalized and cannot be changed")

    # --- Background work ------------------------------------------------------

    def _spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "Background task %s failed", task.get_name(), exc_info=task.exception()
            )

    @property
    def busy(self) -> bool:
        return bool(self._tasks)

    async def settle(self) -> None:
        """Wait until every debounce, lookup and quotation has finished."""
        while self._tasks:
            await asyncio.wait(set(self._tasks))

    async def aclose(self) -> None:
        """Cancel outstanding work; the session is being discarded."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
