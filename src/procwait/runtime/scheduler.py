"""Cooperative single-threaded scheduler over an asyncio event loop.

procwait runtime module

The scheduler runs queued callbacks and coroutines on the calling thread,
only when it is explicitly driven:

- drain_once(): one loop iteration, processes currently ready work and
  returns without waiting for timers
- run_to_completion(): blocks until no pending work remains

Pending work is counted by the scheduler itself (posted callbacks that have
not run yet, spawned tasks that have not finished), so completion does not
depend on asyncio internals.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from ..errors import SchedulerBusyError, SchedulerClosedError

__all__ = ["Scheduler"]

logger = logging.getLogger(__name__)


def _running_loop_in_thread() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


class Scheduler:
    """Cooperative work runner driven from the calling thread.

    A default-constructed scheduler owns a fresh event loop and closes it on
    ``close()``. ``Scheduler.borrow(loop)`` wraps a loop owned by someone
    else; closing the wrapper then leaves the loop alone.

    Example:
        with Scheduler() as scheduler:
            scheduler.post(print, "ready")
            scheduler.spawn(some_coroutine())
            scheduler.run_to_completion()
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._owns_loop = loop is None
        self._loop = loop if loop is not None else asyncio.new_event_loop()
        self._tasks: set[asyncio.Task[Any]] = set()
        self._posted = 0
        self._failures: list[BaseException] = []
        self._closed = False

    @classmethod
    def borrow(cls, loop: asyncio.AbstractEventLoop) -> "Scheduler":
        """Wrap an existing event loop without taking ownership of it."""
        return cls(loop)

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    @property
    def owns_loop(self) -> bool:
        return self._owns_loop

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        """Number of posted callbacks not yet run plus unfinished tasks."""
        return self._posted + len(self._tasks)

    @property
    def has_pending(self) -> bool:
        return self.pending > 0

    def post(self, callback: Callable[..., Any], *args: Any) -> None:
        """Queue a callback to run on the next drain."""
        self._check_open()
        self._posted += 1

        def _run() -> None:
            self._posted -= 1
            try:
                callback(*args)
            except Exception as e:
                self._failures.append(e)

        self._loop.call_soon(_run)

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        """Schedule a coroutine; it counts as pending work until it finishes."""
        self._check_open()
        task = self._loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def drain_once(self) -> None:
        """Run exactly one loop iteration without waiting for timers.

        Raises:
            Exception: The first failure of a posted callback or spawned task
                that completed during this iteration
        """
        self._check_drivable()
        # stop() queued behind the ready work ends run_forever after one pass
        self._loop.call_soon(self._loop.stop)
        self._loop.run_forever()
        self._raise_failures()

    def run_to_completion(self) -> None:
        """Run until no pending work remains.

        Raises:
            Exception: The first failure of a posted callback or spawned task
        """
        self._check_drivable()
        while self.has_pending:
            if self._tasks:
                self._loop.run_until_complete(asyncio.wait(set(self._tasks)))
                self._raise_failures()
            else:
                self.drain_once()

    def close(self) -> None:
        """Cancel leftover tasks and close the owned loop. Idempotent."""
        if self._closed:
            return
        leftovers = [task for task in self._tasks if not task.done()]
        if leftovers:
            logger.debug(f"Cancelling {len(leftovers)} pending task(s) on close")
            for task in leftovers:
                task.cancel()
            if not self._loop.is_running() and not _running_loop_in_thread():
                self._loop.run_until_complete(
                    asyncio.gather(*leftovers, return_exceptions=True)
                )
        self._tasks.clear()
        self._posted = 0
        self._closed = True
        if self._owns_loop:
            self._loop.close()
        logger.debug(f"Scheduler closed (owned_loop={self._owns_loop})")

    def __enter__(self) -> "Scheduler":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else f"pending={self.pending}"
        return f"Scheduler({state}, owns_loop={self._owns_loop})"

    def _on_task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            self._failures.append(task.exception())  # type: ignore[arg-type]

    def _raise_failures(self) -> None:
        if self._failures:
            failure, *discarded = self._failures
            self._failures.clear()
            for e in discarded:
                logger.warning(f"Discarding additional scheduler failure: {e!r}")
            raise failure

    def _check_open(self) -> None:
        if self._closed:
            raise SchedulerClosedError("scheduler is closed")

    def _check_drivable(self) -> None:
        self._check_open()
        if not _running_loop_in_thread():
            return
        raise SchedulerBusyError(
            "cannot drive a scheduler from inside a running event loop"
        )
