"""Waiting strategies and their selection.

Four strategies, picked by whether the options need a scheduler to deliver
notifications and whether the caller supplied one:

    needs  supplies  strategy
    -----  --------  ----------------------
    yes    yes       DRIVE_SUPPLIED
    yes    no        OWN_AND_RUN
    no     yes       BLOCKING_WITH_SUPPLIED
    no     no        BLOCKING_PLAIN

Every strategy creates exactly one child and returns LAUNCH_FAILED without
waiting if it could not be created.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING

from .errors import OptionError
from .runtime.child import ChildProcess
from .runtime.scheduler import Scheduler

if TYPE_CHECKING:
    from .options import LaunchOptions

__all__ = [
    "LAUNCH_FAILED",
    "WaitStrategy",
    "ExitFlag",
    "select_strategy",
    "run_strategy",
]

logger = logging.getLogger(__name__)

# Exit status reported when the child could not be created
LAUNCH_FAILED = -1

SchedulerFactory = Callable[[], Scheduler]


class WaitStrategy(str, Enum):
    """How a launch waits for its child to exit."""

    DRIVE_SUPPLIED = "drive-supplied"
    OWN_AND_RUN = "own-and-run"
    BLOCKING_WITH_SUPPLIED = "blocking-with-supplied"
    BLOCKING_PLAIN = "blocking-plain"


# (needs_scheduler, supplies_scheduler) -> strategy
_STRATEGY_TABLE: dict[tuple[bool, bool], WaitStrategy] = {
    (True, True): WaitStrategy.DRIVE_SUPPLIED,
    (True, False): WaitStrategy.OWN_AND_RUN,
    (False, True): WaitStrategy.BLOCKING_WITH_SUPPLIED,
    (False, False): WaitStrategy.BLOCKING_PLAIN,
}


def select_strategy(needs_scheduler: bool, supplies_scheduler: bool) -> WaitStrategy:
    """Map the two option predicates onto a waiting strategy."""
    return _STRATEGY_TABLE[(bool(needs_scheduler), bool(supplies_scheduler))]


class ExitFlag:
    """Exit flag set by the completion hook.

    Setting is idempotent; ``set_count`` records every attempt so a second
    delivery of the same exit is visible without changing the outcome.
    """

    def __init__(self) -> None:
        self._is_set = False
        self.set_count = 0

    @property
    def is_set(self) -> bool:
        return self._is_set

    def set(self) -> bool:
        """Mark the exit. Returns False if it was already marked."""
        self.set_count += 1
        if self._is_set:
            logger.debug(f"Exit flag set again (count={self.set_count})")
            return False
        self._is_set = True
        return True


def _drive_supplied(
    options: LaunchOptions,
    scheduler_factory: SchedulerFactory,
    poll_interval: float | None,
) -> int:
    scheduler = options.scheduler
    if scheduler is None:
        raise OptionError("drive-supplied strategy needs a supplied scheduler")
    exited = ExitFlag()

    child = ChildProcess.create(
        options,
        on_exit=[lambda exit_code, error: exited.set()],
        poll_interval=poll_interval,
    )
    if not child.valid:
        return LAUNCH_FAILED

    # Poll, never block: the caller's scheduler may carry unrelated work
    while not exited.is_set:
        scheduler.drain_once()

    # Already exited, wait() only collects the status
    return child.wait()


def _own_and_run(
    options: LaunchOptions,
    scheduler_factory: SchedulerFactory,
    poll_interval: float | None,
) -> int:
    with scheduler_factory() as scheduler:
        child = ChildProcess.create(
            options.with_scheduler(scheduler),
            poll_interval=poll_interval,
        )
        if not child.valid:
            return LAUNCH_FAILED

        scheduler.run_to_completion()
        return child.wait()


def _blocking_with_supplied(
    options: LaunchOptions,
    scheduler_factory: SchedulerFactory,
    poll_interval: float | None,
) -> int:
    child = ChildProcess.create(options)
    if not child.valid:
        return LAUNCH_FAILED
    return child.wait()


def _blocking_plain(
    options: LaunchOptions,
    scheduler_factory: SchedulerFactory,
    poll_interval: float | None,
) -> int:
    child = ChildProcess.create(options, default_signals=True)
    if not child.valid:
        return LAUNCH_FAILED
    return child.wait()


_STRATEGY_IMPLS: dict[WaitStrategy, Callable[[LaunchOptions, SchedulerFactory, float | None], int]] = {
    WaitStrategy.DRIVE_SUPPLIED: _drive_supplied,
    WaitStrategy.OWN_AND_RUN: _own_and_run,
    WaitStrategy.BLOCKING_WITH_SUPPLIED: _blocking_with_supplied,
    WaitStrategy.BLOCKING_PLAIN: _blocking_plain,
}


def run_strategy(
    strategy: WaitStrategy,
    options: LaunchOptions,
    *,
    scheduler_factory: SchedulerFactory = Scheduler,
    poll_interval: float | None = None,
) -> int:
    """Launch the child described by ``options`` and wait using ``strategy``.

    Args:
        strategy: Waiting strategy to use
        options: Launch options
        scheduler_factory: Creates the scheduler owned by OWN_AND_RUN
        poll_interval: Exit-watcher poll interval (default from config)

    Returns:
        The child's exit status, or LAUNCH_FAILED
    """
    return _STRATEGY_IMPLS[strategy](options, scheduler_factory, poll_interval)
