"""Coroutine integration built on start + notify-on-completion.

The calling coroutine is suspended until the child exits; the thread and
the event loop keep running other work. Exit is observed by the same
scheduler-driven watcher that ``start()`` uses, so no thread is spawned.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import anyio

from .options import LaunchOptions
from .runtime.scheduler import Scheduler
from .strategy import LAUNCH_FAILED
from .system import Dispatcher

__all__ = ["launch_async"]

logger = logging.getLogger(__name__)


async def launch_async(
    *options: Any,
    dispatcher: Dispatcher | None = None,
    **fields: Any,
) -> int:
    """Launch a child and suspend the calling coroutine until it exits.

    Must run on an asyncio event loop. A scheduler passed in the options is
    ignored in favour of one borrowed from the running loop.

    Args:
        *options: Tagged options, or a single LaunchOptions
        dispatcher: Dispatcher to start the child with (default: new one)
        **fields: LaunchOptions field overrides

    Returns:
        The child's exit status, or LAUNCH_FAILED (-1)
    """
    dispatcher = dispatcher if dispatcher is not None else Dispatcher()
    scheduler = Scheduler.borrow(asyncio.get_running_loop())
    exited = anyio.Event()
    result: dict[str, int] = {}

    def _on_exit(exit_code: int, error: BaseException | None) -> None:
        result.setdefault("exit_code", exit_code)
        exited.set()

    launch_options = LaunchOptions.from_args(*options, **fields)
    launch_options = launch_options.with_scheduler(scheduler).with_handlers([_on_exit])

    child = dispatcher.start(launch_options)
    if not child.valid:
        return LAUNCH_FAILED

    try:
        await exited.wait()
    finally:
        # leave the borrowed loop running; only cancel our watcher
        scheduler.close()

    logger.debug(f"{child.argv[0]} exited with status {result['exit_code']}")
    return result["exit_code"]
