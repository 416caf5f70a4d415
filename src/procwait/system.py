"""Launch a child process, wait for it and return its exit status.

Works like ``system()`` but takes the full set of launch options:

    status = launch(Target(["ls", "-l"]), Cwd("/tmp"))

With asynchronous options (completion handlers, a suspension token, exit
futures) and no scheduler, launch creates a scheduler, runs it to completion
and closes it. With a scheduler supplied, launch drives that scheduler one
iteration at a time until the child has exited, so other work queued on it
keeps running.

Binding stdout/stderr to pipes nobody reads can deadlock a blocking launch
once the pipe buffer fills.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from .config import Config, get_config
from .errors import OptionError, SchedulerBusyError
from .options import LaunchOptions
from .runtime.child import ChildProcess
from .runtime.scheduler import Scheduler
from .strategy import (
    LAUNCH_FAILED,
    SchedulerFactory,
    WaitStrategy,
    run_strategy,
    select_strategy,
)

__all__ = [
    "LAUNCH_FAILED",
    "Dispatcher",
    "launch",
    "start",
]

logger = logging.getLogger(__name__)


def _in_running_loop() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


class Dispatcher:
    """Picks a waiting strategy per launch and runs it.

    Attributes:
        config: Runtime configuration (poll interval)
        scheduler_factory: Creates the scheduler owned by OWN_AND_RUN
    """

    def __init__(
        self,
        config: Config | None = None,
        scheduler_factory: SchedulerFactory = Scheduler,
    ) -> None:
        self.config = config if config is not None else get_config()
        self.scheduler_factory = scheduler_factory

    def strategy_for(self, options: LaunchOptions) -> WaitStrategy:
        """Return the strategy a launch with ``options`` would use."""
        return select_strategy(*options.classify())

    def launch(self, *options: Any, **fields: Any) -> int:
        """Launch a child and block until it exits.

        Args:
            *options: Tagged options, or a single LaunchOptions
            **fields: LaunchOptions field overrides

        Returns:
            The child's exit status, or LAUNCH_FAILED (-1) if it could not
            be created

        Raises:
            OptionError: Invalid option set
            SchedulerBusyError: Asynchronous options used from inside a
                running event loop
            SchedulerClosedError: Completion must be delivered on a closed
                scheduler; nothing is spawned
        """
        launch_options = LaunchOptions.from_args(*options, **fields)
        strategy = self.strategy_for(launch_options)

        if strategy in (WaitStrategy.DRIVE_SUPPLIED, WaitStrategy.OWN_AND_RUN) and _in_running_loop():
            raise SchedulerBusyError(
                "launch() cannot drive a scheduler from inside a running event loop; "
                "use launch_async()"
            )

        logger.debug(f"Launching {launch_options.argv[0]} strategy={strategy.value}")

        status = run_strategy(
            strategy,
            launch_options,
            scheduler_factory=self.scheduler_factory,
            poll_interval=self.config.poll_interval,
        )

        if status == LAUNCH_FAILED:
            logger.warning(f"Could not start {launch_options.argv[0]}")
        else:
            logger.debug(f"{launch_options.argv[0]} exited with status {status}")
        return status

    def start(self, *options: Any, **fields: Any) -> ChildProcess:
        """Start a child and return at once; completion is notified later.

        Notifications (completion handlers, suspension token, exit futures)
        are delivered on the supplied scheduler whenever the caller drives
        it.

        Returns:
            The child handle; check ``valid`` for creation failure

        Raises:
            OptionError: No scheduler supplied, or invalid option set
            SchedulerClosedError: The supplied scheduler is closed; nothing
                is spawned
        """
        launch_options = LaunchOptions.from_args(*options, **fields)
        if launch_options.scheduler is None:
            raise OptionError("start() needs a scheduler to deliver completion")

        child = ChildProcess.create(launch_options, poll_interval=self.config.poll_interval)
        if not child.valid:
            logger.warning(f"Could not start {launch_options.argv[0]}: {child.error}")
        return child


def launch(*options: Any, **fields: Any) -> int:
    """Launch a child with the default dispatcher and wait for its exit."""
    return Dispatcher().launch(*options, **fields)


def start(*options: Any, **fields: Any) -> ChildProcess:
    """Start a child with the default dispatcher without waiting."""
    return Dispatcher().start(*options, **fields)
