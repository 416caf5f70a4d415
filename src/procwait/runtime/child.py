"""Child process handle with blocking and scheduler-driven exit observation.

procwait runtime module

This module provides:
- Process creation that never raises: launch failures are recorded on the
  handle and reported through ``valid``
- Blocking wait for callers that do not need notifications
- An exit-watcher coroutine, run on a Scheduler, that delivers completion
  handlers, the suspension token and exit futures on the scheduler's thread

Key design points:
- No extra OS threads: the watcher polls the child from the scheduler
- Exit codes of signal-terminated children follow the shell convention
  (128 + signal number), keeping -1 free for the launch-failure sentinel
"""

from __future__ import annotations

import asyncio
import logging
import subprocess
import sys
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from ..config import get_config
from ..errors import ProcessNotStartedError, SchedulerClosedError

if TYPE_CHECKING:
    from ..options import ExitHandler, LaunchOptions

__all__ = [
    "ChildProcess",
    "normalize_returncode",
]

logger = logging.getLogger(__name__)

# Platform detection
IS_WINDOWS = sys.platform == "win32"


def normalize_returncode(returncode: int) -> int:
    """Map a Popen returncode onto a non-negative exit status.

    Popen reports death by signal N as -N; that becomes 128 + N.
    """
    if returncode < 0:
        return 128 - returncode
    return returncode


class ChildProcess:
    """One spawned OS process, owned by a single launch call.

    Example:
        child = ChildProcess.create(LaunchOptions.from_args(Target(["true"])))
        if child.valid:
            code = child.wait()
    """

    def __init__(
        self,
        argv: list[str],
        popen: subprocess.Popen[Any] | None,
        error: OSError | None = None,
        handlers: Iterable[ExitHandler] = (),
    ) -> None:
        self.argv = argv
        self._popen = popen
        self._error = error
        self._handlers = list(handlers)
        self._notified = False

    @classmethod
    def create(
        cls,
        options: LaunchOptions,
        *,
        on_exit: Iterable[ExitHandler] = (),
        default_signals: bool = False,
        poll_interval: float | None = None,
    ) -> "ChildProcess":
        """Spawn the child described by ``options``.

        Never raises on launch failure; check ``valid`` instead. If the
        options carry a scheduler, an exit watcher is spawned on it that
        delivers ``options.on_exit`` followed by ``on_exit``.

        Args:
            options: Launch options
            on_exit: Extra completion handlers, run after the caller's
            default_signals: Force default signal disposition in the child
            poll_interval: Watcher poll interval (default from config)

        Returns:
            The child handle

        Raises:
            SchedulerClosedError: The exit watcher's scheduler is closed;
                raised before anything is spawned
        """
        argv = list(options.argv)
        handlers = [*options.on_exit, *on_exit]
        kwargs = cls._build_popen_kwargs(options, default_signals)

        watcher_scheduler = None
        if options.scheduler is not None and (
            handlers or options.suspension is not None or options.exit_futures
        ):
            watcher_scheduler = options.scheduler
            if watcher_scheduler.closed:
                raise SchedulerClosedError(
                    f"cannot watch {argv[0]}: scheduler is closed"
                )

        try:
            popen = subprocess.Popen(argv, **kwargs)
        except OSError as e:
            # ENOENT, EACCES, EAGAIN, ENOMEM...
            logger.debug(f"Failed to start {argv[0]}: {e}")
            return cls(argv, None, error=e)

        logger.debug(
            f"Started child pid={popen.pid} argv={argv[0]} "
            f"cwd={options.cwd or '.'}"
        )
        child = cls(argv, popen, handlers=handlers)

        if watcher_scheduler is not None:
            interval = poll_interval if poll_interval is not None else get_config().poll_interval
            watcher_scheduler.spawn(child._watch_exit(popen, options, interval))

        return child

    @staticmethod
    def _build_popen_kwargs(options: LaunchOptions, default_signals: bool) -> dict[str, Any]:
        """Build subprocess.Popen kwargs from launch options."""
        kwargs: dict[str, Any] = {
            "shell": options.shell,
            "stdin": options.stdin,
            "stdout": options.stdout,
            "stderr": options.stderr,
        }

        if options.cwd is not None:
            kwargs["cwd"] = options.cwd

        env = options.build_env()
        if env is not None:
            kwargs["env"] = env

        if not IS_WINDOWS:
            kwargs["restore_signals"] = default_signals or options.restore_signals

        return kwargs

    @property
    def valid(self) -> bool:
        return self._popen is not None

    @property
    def error(self) -> OSError | None:
        return self._error

    @property
    def pid(self) -> int | None:
        return self._popen.pid if self._popen is not None else None

    @property
    def running(self) -> bool:
        return self._popen is not None and self._popen.poll() is None

    @property
    def exit_code(self) -> int | None:
        """Observed exit status, None while running. Does not block."""
        if self._popen is None:
            return None
        returncode = self._popen.poll()
        if returncode is None:
            return None
        return normalize_returncode(returncode)

    def wait(self) -> int:
        """Block until the child exits and return its exit status.

        Raises:
            ProcessNotStartedError: The child could not be created
        """
        if self._popen is None:
            raise ProcessNotStartedError(self.argv, self._error)
        returncode = self._popen.wait()
        logger.debug(f"Child exited pid={self._popen.pid} returncode={returncode}")
        return normalize_returncode(returncode)

    async def _watch_exit(
        self,
        popen: subprocess.Popen[Any],
        options: LaunchOptions,
        interval: float,
    ) -> None:
        """Poll the child from the scheduler and notify once it exited."""
        while popen.poll() is None:
            await asyncio.sleep(interval)

        exit_code = normalize_returncode(popen.returncode)
        logger.debug(f"Child exited pid={popen.pid} exit_code={exit_code}")
        self._notify(exit_code, options)

    def _notify(self, exit_code: int, options: LaunchOptions) -> None:
        if self._notified:
            return
        self._notified = True

        for handler in self._handlers:
            try:
                handler(exit_code, None)
            except Exception as e:
                logger.warning(f"Error in exit handler for pid={self.pid}: {e}")

        if options.suspension is not None:
            options.suspension.resume(exit_code)
        for exit_future in options.exit_futures:
            exit_future.resolve(exit_code)

    def __repr__(self) -> str:
        if not self.valid:
            return f"ChildProcess(argv={self.argv[0]}, invalid, error={self._error})"
        return f"ChildProcess(pid={self.pid}, exit_code={self.exit_code})"
