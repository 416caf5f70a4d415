"""procwait exception classes.

A child process that cannot be created is not an exception at the
``launch`` boundary; it is reported through the ``LAUNCH_FAILED`` sentinel.
These classes cover caller mistakes and scheduler misuse.
"""

from __future__ import annotations

__all__ = [
    "ProcwaitError",
    "OptionError",
    "SchedulerError",
    "SchedulerClosedError",
    "SchedulerBusyError",
    "ProcessNotStartedError",
]


class ProcwaitError(Exception):
    """Base exception for procwait."""
    pass


class OptionError(ProcwaitError, ValueError):
    """Invalid option set (duplicate scheduler, missing target, ...)."""
    pass


class SchedulerError(ProcwaitError):
    """Scheduler misuse."""
    pass


class SchedulerClosedError(SchedulerError):
    """The scheduler was driven after it had been closed."""
    pass


class SchedulerBusyError(SchedulerError):
    """The scheduler cannot be driven from inside a running event loop."""
    pass


class ProcessNotStartedError(ProcwaitError):
    """Operation on a child process that could not be created.

    Attributes:
        argv: Command line of the failed launch
        cause: The OSError raised by the platform, if any
    """

    def __init__(self, argv: list[str], cause: BaseException | None = None) -> None:
        self.argv = argv
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"process {argv[0] if argv else '?'} was not started{detail}")
