"""Admission control for requests sharing the single RCON connection.

Many coroutines may call send() at once, but the server (and the
correlation scheme) should only see `max_pending` requests in flight.
SendQueue holds the excess and launches them strictly in submission
order as slots free up:

    queue = SendQueue(max_pending=2)
    result = await queue.add(lambda: transmit(packet))

add() takes a factory rather than a coroutine so nothing runs (and no
packet is written) until the task is admitted.

The queue starts paused. The connection resumes it once authentication
succeeds and pauses it again when the connection ends; clear() then
fails everything still waiting so no caller hangs on a dead connection.
"""
from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Any, Awaitable, Callable

log = logging.getLogger(__name__)

TaskFactory = Callable[[], Awaitable[Any]]


class SendQueue:
    """FIFO queue with at most `max_pending` concurrently running tasks."""

    def __init__(self, max_pending: int = 1) -> None:
        if max_pending < 1:
            raise ValueError(f"max_pending must be at least 1, got {max_pending}")
        self._max_pending = max_pending
        self._waiting: deque[tuple[TaskFactory, asyncio.Future[Any]]] = deque()
        self._active = 0
        self._paused = True

    @property
    def max_pending(self) -> int:
        return self._max_pending

    @property
    def active(self) -> int:
        """Tasks launched and not yet settled."""
        return self._active

    @property
    def paused(self) -> bool:
        return self._paused

    def __len__(self) -> int:
        return len(self._waiting)

    def add(self, factory: TaskFactory) -> asyncio.Future[Any]:
        """Queue a task; the returned future settles with its outcome."""
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._waiting.append((factory, future))
        self._launch()
        return future

    def pause(self) -> None:
        """Stop launching tasks. Running tasks are not affected."""
        self._paused = True

    def resume(self) -> None:
        self._paused = False
        self._launch()

    def clear(self, exc_factory: Callable[[], BaseException]) -> int:
        """Fail every task still waiting for a slot. Returns how many."""
        waiting = list(self._waiting)
        self._waiting.clear()
        rejected = 0
        for _factory, future in waiting:
            if not future.done():
                future.set_exception(exc_factory())
                rejected += 1
        return rejected

    def _launch(self) -> None:
        while not self._paused and self._active < self._max_pending and self._waiting:
            factory, outer = self._waiting.popleft()
            if outer.done():
                # Cancelled by the caller while queued.
                continue
            try:
                task = asyncio.ensure_future(factory())
            except Exception as exc:
                outer.set_exception(exc)
                continue
            self._active += 1
            task.add_done_callback(lambda t, outer=outer: self._settle(outer, t))
            outer.add_done_callback(lambda f, task=task: task.cancel() if f.cancelled() else None)

    def _settle(self, outer: asyncio.Future[Any], task: asyncio.Future[Any]) -> None:
        self._active -= 1
        if task.cancelled():
            if not outer.done():
                outer.cancel()
        else:
            exc = task.exception()
            if outer.done():
                if exc is not None:
                    log.debug("Dropping result of abandoned task: %r", exc)
            elif exc is not None:
                outer.set_exception(exc)
            else:
                outer.set_result(task.result())
        self._launch()
