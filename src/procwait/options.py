"""Launch options and their classification.

Options are passed as tagged objects in any order and folded into one
``LaunchOptions`` value:

    options = LaunchOptions.from_args(
        Target(["make", "all"]),
        Cwd("/workspace"),
        OnExit(lambda code, error: print(code)),
    )

Two predicates classify a value for strategy selection:

- needs_scheduler: a completion handler, suspension token or exit future is
  present; their notification has to be delivered by a scheduler
- supplies_scheduler: an explicit Scheduler reference is present
"""

from __future__ import annotations

import os
from collections.abc import Callable, Iterable, Mapping, Sequence
from concurrent.futures import Future
from dataclasses import dataclass, replace
from pathlib import Path
from typing import IO, Any, Union

from .errors import OptionError
from .runtime.scheduler import Scheduler

__all__ = [
    "Target",
    "Cwd",
    "Env",
    "Stdio",
    "OnExit",
    "ExitHandler",
    "SuspensionToken",
    "ExitFuture",
    "LaunchOptions",
    "needs_scheduler",
    "supplies_scheduler",
]

# (exit_code, error) -> None
ExitHandler = Callable[[int, Union[BaseException, None]], None]

# Anything subprocess.Popen accepts for stdin/stdout/stderr
StreamBinding = Union[None, int, IO[Any]]


@dataclass(frozen=True)
class Target:
    """Executable and arguments.

    Attributes:
        argv: Command line arguments (first element is the executable)
        shell: Run argv[0] through the platform shell
    """

    argv: Sequence[str]
    shell: bool = False

    requires_scheduler = False

    def __post_init__(self) -> None:
        if isinstance(self.argv, str):
            object.__setattr__(self, "argv", [self.argv])
        if not self.argv:
            raise OptionError("target needs at least an executable")

    @classmethod
    def shell_command(cls, command: str) -> "Target":
        """Run a command line through the platform shell."""
        return cls([command], shell=True)


@dataclass(frozen=True)
class Cwd:
    """Working directory of the child."""

    path: str | os.PathLike[str]

    requires_scheduler = False


@dataclass(frozen=True)
class Env:
    """Environment overrides.

    With ``inherit=True`` the overrides are merged onto the parent's
    environment; with ``inherit=False`` they replace it.
    """

    overrides: Mapping[str, str]
    inherit: bool = True

    requires_scheduler = False


@dataclass(frozen=True)
class Stdio:
    """I/O stream bindings, passed through to the child unchanged."""

    stdin: StreamBinding = None
    stdout: StreamBinding = None
    stderr: StreamBinding = None

    requires_scheduler = False


@dataclass(frozen=True)
class OnExit:
    """Completion handler, invoked once with ``(exit_code, error)``."""

    handler: ExitHandler

    requires_scheduler = True


class SuspensionToken:
    """Handle for an execution context parked until the child exits.

    The completion hook resumes the token with the exit code. Resuming is
    idempotent: only the first call reaches the callback.

    Attributes:
        exit_code: Code the token was resumed with, None until resumed
    """

    requires_scheduler = True

    def __init__(self, on_resume: Callable[[int], None] | None = None) -> None:
        self._on_resume = on_resume
        self.exit_code: int | None = None
        self._resumed = False

    @property
    def resumed(self) -> bool:
        return self._resumed

    def resume(self, exit_code: int) -> bool:
        """Resume the parked context. Returns False if already resumed."""
        if self._resumed:
            return False
        self._resumed = True
        self.exit_code = exit_code
        if self._on_resume is not None:
            self._on_resume(exit_code)
        return True

    def __repr__(self) -> str:
        return f"SuspensionToken(resumed={self._resumed}, exit_code={self.exit_code})"


class ExitFuture:
    """A ``concurrent.futures.Future`` resolved with the exit code."""

    requires_scheduler = True

    def __init__(self) -> None:
        self.future: Future[int] = Future()

    def resolve(self, exit_code: int) -> None:
        if not self.future.done():
            self.future.set_result(exit_code)

    def result(self, timeout: float | None = None) -> int:
        return self.future.result(timeout)


Option = Union[Target, Cwd, Env, Stdio, OnExit, SuspensionToken, ExitFuture, Scheduler]


@dataclass(frozen=True)
class LaunchOptions:
    """One launch request, consumed by a single ``launch`` call.

    Attributes:
        argv: Command line arguments (first element is the executable)
        shell: Run through the platform shell
        cwd: Working directory (None = inherit)
        env: Environment overrides (None = inherit unchanged)
        inherit_env: Merge env onto the parent's environment
        stdin/stdout/stderr: Stream bindings passed to the child
        scheduler: Explicit scheduler reference
        on_exit: Completion handlers
        suspension: Suspension token resumed on exit
        exit_futures: Futures resolved on exit
        restore_signals: Default signal disposition in the child (POSIX)
    """

    argv: tuple[str, ...]
    shell: bool = False
    cwd: Path | None = None
    env: Mapping[str, str] | None = None
    inherit_env: bool = True
    stdin: StreamBinding = None
    stdout: StreamBinding = None
    stderr: StreamBinding = None
    scheduler: Scheduler | None = None
    on_exit: tuple[ExitHandler, ...] = ()
    suspension: SuspensionToken | None = None
    exit_futures: tuple[ExitFuture, ...] = ()
    restore_signals: bool = True

    def __post_init__(self) -> None:
        if not self.argv:
            raise OptionError("no target given")

    @classmethod
    def from_args(cls, *options: Option | "LaunchOptions", **fields: Any) -> "LaunchOptions":
        """Fold tagged options into a LaunchOptions value.

        A single prebuilt LaunchOptions is returned as is (with ``fields``
        applied). Keyword arguments override the folded fields.

        Raises:
            OptionError: Duplicate scheduler, token, target or cwd; missing
                target; unknown option object
        """
        if len(options) == 1 and isinstance(options[0], LaunchOptions):
            return replace(options[0], **fields) if fields else options[0]

        target: Target | None = None
        cwd: Cwd | None = None
        env: dict[str, str] = {}
        has_env = False
        inherit_env = True
        stdio = Stdio()
        scheduler: Scheduler | None = None
        handlers: list[ExitHandler] = []
        suspension: SuspensionToken | None = None
        futures: list[ExitFuture] = []

        for option in options:
            if isinstance(option, Target):
                if target is not None:
                    raise OptionError("more than one target given")
                target = option
            elif isinstance(option, Cwd):
                if cwd is not None:
                    raise OptionError("more than one working directory given")
                cwd = option
            elif isinstance(option, Env):
                env.update(option.overrides)
                has_env = True
                inherit_env = inherit_env and option.inherit
            elif isinstance(option, Stdio):
                stdio = _merge_stdio(stdio, option)
            elif isinstance(option, Scheduler):
                if scheduler is not None:
                    raise OptionError("more than one scheduler given")
                scheduler = option
            elif isinstance(option, OnExit):
                handlers.append(option.handler)
            elif isinstance(option, SuspensionToken):
                if suspension is not None:
                    raise OptionError("more than one suspension token given")
                suspension = option
            elif isinstance(option, ExitFuture):
                futures.append(option)
            else:
                raise OptionError(f"unknown launch option: {option!r}")

        if target is None and "argv" not in fields:
            raise OptionError("no target given")

        values: dict[str, Any] = {
            "argv": tuple(target.argv) if target else (),
            "shell": target.shell if target else False,
            "cwd": Path(cwd.path) if cwd else None,
            "env": env if has_env else None,
            "inherit_env": inherit_env,
            "stdin": stdio.stdin,
            "stdout": stdio.stdout,
            "stderr": stdio.stderr,
            "scheduler": scheduler,
            "on_exit": tuple(handlers),
            "suspension": suspension,
            "exit_futures": tuple(futures),
        }
        values.update(fields)
        if "argv" in fields:
            values["argv"] = tuple(fields["argv"])
        return cls(**values)

    def with_scheduler(self, scheduler: Scheduler) -> "LaunchOptions":
        """Copy with the scheduler injected; self is left unchanged."""
        return replace(self, scheduler=scheduler)

    def with_handlers(self, handlers: Iterable[ExitHandler]) -> "LaunchOptions":
        """Copy with extra completion handlers appended."""
        return replace(self, on_exit=self.on_exit + tuple(handlers))

    def classify(self) -> tuple[bool, bool]:
        """Return ``(needs_scheduler, supplies_scheduler)``."""
        return needs_scheduler(self), supplies_scheduler(self)

    def build_env(self) -> dict[str, str] | None:
        """Environment for the child, or None to inherit unchanged."""
        if self.env is None:
            return None
        if not self.inherit_env:
            return dict(self.env)
        merged = dict(os.environ)
        merged.update(self.env)
        return merged


def _merge_stdio(current: Stdio, update: Stdio) -> Stdio:
    return Stdio(
        stdin=update.stdin if update.stdin is not None else current.stdin,
        stdout=update.stdout if update.stdout is not None else current.stdout,
        stderr=update.stderr if update.stderr is not None else current.stderr,
    )


def needs_scheduler(options: LaunchOptions) -> bool:
    """True if any option needs a scheduler to deliver its notification."""
    return bool(options.on_exit or options.suspension is not None or options.exit_futures)


def supplies_scheduler(options: LaunchOptions) -> bool:
    """True if the options carry an explicit scheduler reference."""
    return options.scheduler is not None
