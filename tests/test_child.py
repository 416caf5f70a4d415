"""ChildProcess unit tests.

Test coverage:
- Creation success and failure (never raises)
- Blocking wait and non-blocking exit_code
- Signal termination mapping
- Scheduler-driven exit notification (handlers, token, futures)
- Environment and working directory pass-through
"""

from __future__ import annotations

import signal
import subprocess
import sys
from pathlib import Path

import pytest

from procwait.errors import ProcessNotStartedError
from procwait.options import Cwd, Env, ExitFuture, LaunchOptions, OnExit, Stdio, SuspensionToken, Target
from procwait.runtime.child import IS_WINDOWS, ChildProcess, normalize_returncode
from procwait.runtime.scheduler import Scheduler


class TestNormalizeReturncode:
    """Test exit status normalization."""

    @pytest.mark.parametrize("returncode", [0, 1, 7, 255])
    def test_regular_codes_unchanged(self, returncode: int):
        assert normalize_returncode(returncode) == returncode

    def test_signal_codes_follow_shell_convention(self):
        assert normalize_returncode(-9) == 137
        assert normalize_returncode(-15) == 143

    def test_never_collides_with_sentinel(self):
        assert normalize_returncode(-1) == 129


class TestCreation:
    """Test child creation."""

    def test_valid_child(self, fake_child):
        child = ChildProcess.create(LaunchOptions.from_args(Target(fake_child(0))))
        assert child.valid is True
        assert child.error is None
        assert child.pid is not None
        assert child.wait() == 0

    def test_missing_executable_is_invalid(self, missing_executable: str):
        child = ChildProcess.create(LaunchOptions.from_args(Target([missing_executable])))
        assert child.valid is False
        assert isinstance(child.error, OSError)
        assert child.pid is None
        assert child.exit_code is None
        assert child.running is False

    def test_wait_on_invalid_child_raises(self, missing_executable: str):
        child = ChildProcess.create(LaunchOptions.from_args(Target([missing_executable])))
        with pytest.raises(ProcessNotStartedError) as exc_info:
            child.wait()
        assert exc_info.value.argv == [missing_executable]
        assert isinstance(exc_info.value.cause, OSError)

    @pytest.mark.skipif(IS_WINDOWS, reason="POSIX permission bits")
    def test_not_executable_is_invalid(self, tmp_path: Path):
        script = tmp_path / "not-executable.sh"
        script.write_text("#!/bin/sh\nexit 0\n")
        script.chmod(0o644)
        child = ChildProcess.create(LaunchOptions.from_args(Target([str(script)])))
        assert child.valid is False
        assert isinstance(child.error, PermissionError)

    def test_repr(self, missing_executable: str):
        child = ChildProcess.create(LaunchOptions.from_args(Target([missing_executable])))
        assert "invalid" in repr(child)


class TestWaiting:
    """Test exit observation without a scheduler."""

    @pytest.mark.parametrize("code", [0, 3, 42])
    def test_wait_returns_exit_code(self, fake_child, code: int):
        child = ChildProcess.create(LaunchOptions.from_args(Target(fake_child(code))))
        assert child.wait() == code
        assert child.exit_code == code
        assert child.running is False

    def test_exit_code_none_while_running(self, fake_child):
        child = ChildProcess.create(LaunchOptions.from_args(Target(fake_child(0, delay=0.5))))
        try:
            assert child.exit_code is None
            assert child.running is True
        finally:
            child.wait()

    @pytest.mark.skipif(IS_WINDOWS, reason="POSIX signals")
    def test_signal_termination(self, fake_child):
        argv = fake_child(0, extra=["--kill-self", str(int(signal.SIGTERM))])
        child = ChildProcess.create(LaunchOptions.from_args(Target(argv)))
        assert child.wait() == 128 + signal.SIGTERM

    def test_shell_target(self):
        child = ChildProcess.create(LaunchOptions.from_args(Target.shell_command("exit 5")))
        assert child.wait() == 5


class TestPassThrough:
    """Test options passed through to the child."""

    def test_env_override(self, fake_child):
        argv = fake_child(0, extra=["--echo-env", "PROCWAIT_TEST_VAR"])
        options = LaunchOptions.from_args(
            Target(argv),
            Env({"PROCWAIT_TEST_VAR": "value_123"}),
            Stdio(stdout=subprocess.PIPE),
        )
        child = ChildProcess.create(options)
        assert child.wait() == 0
        assert child._popen is not None and child._popen.stdout is not None
        assert child._popen.stdout.read().decode().strip() == "value_123"
        child._popen.stdout.close()

    def test_cwd(self, tmp_path: Path):
        argv = [sys.executable, "-c", "import os; print(os.getcwd())"]
        options = LaunchOptions.from_args(Target(argv), Cwd(tmp_path), Stdio(stdout=subprocess.PIPE))
        child = ChildProcess.create(options)
        assert child.wait() == 0
        assert child._popen is not None and child._popen.stdout is not None
        output = child._popen.stdout.read().decode().strip()
        child._popen.stdout.close()
        assert Path(output).resolve() == tmp_path.resolve()

    @pytest.mark.skipif(IS_WINDOWS, reason="POSIX only")
    def test_default_signals_forced(self):
        options = LaunchOptions.from_args(Target(["true"]), restore_signals=False)
        kwargs = ChildProcess._build_popen_kwargs(options, default_signals=True)
        assert kwargs["restore_signals"] is True
        kwargs = ChildProcess._build_popen_kwargs(options, default_signals=False)
        assert kwargs["restore_signals"] is False


class TestExitNotification:
    """Test scheduler-driven exit notification."""

    def test_handlers_invoked_once_with_exit_code(self, fake_child):
        calls: list[tuple[int, BaseException | None]] = []
        with Scheduler() as scheduler:
            options = LaunchOptions.from_args(
                Target(fake_child(7, delay=0.1)),
                scheduler,
                OnExit(lambda code, error: calls.append((code, error))),
            )
            child = ChildProcess.create(options, poll_interval=0.01)
            assert child.valid
            assert scheduler.pending == 1

            scheduler.run_to_completion()

        assert calls == [(7, None)]
        assert child.exit_code == 7

    def test_extra_handlers_run_after_callers(self, fake_child):
        order: list[str] = []
        with Scheduler() as scheduler:
            options = LaunchOptions.from_args(
                Target(fake_child(0)),
                scheduler,
                OnExit(lambda code, error: order.append("caller")),
            )
            ChildProcess.create(options, on_exit=[lambda code, error: order.append("extra")])
            scheduler.run_to_completion()
        assert order == ["caller", "extra"]

    def test_token_and_future_resolved(self, fake_child):
        token = SuspensionToken()
        exit_future = ExitFuture()
        with Scheduler() as scheduler:
            options = LaunchOptions.from_args(Target(fake_child(4)), scheduler, token, exit_future)
            ChildProcess.create(options)
            scheduler.run_to_completion()
        assert token.resumed is True
        assert token.exit_code == 4
        assert exit_future.result(timeout=0) == 4

    def test_failing_handler_does_not_block_others(self, fake_child, caplog):
        calls: list[int] = []

        def broken(code, error):
            raise RuntimeError("handler failed")

        with Scheduler() as scheduler:
            options = LaunchOptions.from_args(
                Target(fake_child(2)),
                scheduler,
                OnExit(broken),
                OnExit(lambda code, error: calls.append(code)),
            )
            ChildProcess.create(options)
            scheduler.run_to_completion()

        assert calls == [2]
        assert "handler failed" in caplog.text

    def test_no_watcher_without_async_options(self, fake_child):
        with Scheduler() as scheduler:
            options = LaunchOptions.from_args(Target(fake_child(0)), scheduler)
            child = ChildProcess.create(options)
            assert scheduler.pending == 0
            child.wait()

    def test_invalid_child_spawns_no_watcher(self, missing_executable: str):
        with Scheduler() as scheduler:
            options = LaunchOptions.from_args(
                Target([missing_executable]),
                scheduler,
                OnExit(lambda code, error: None),
            )
            child = ChildProcess.create(options)
            assert child.valid is False
            assert scheduler.pending == 0

    def test_notify_is_idempotent(self, fake_child):
        calls: list[int] = []
        options = LaunchOptions.from_args(
            Target(fake_child(0)), OnExit(lambda code, error: calls.append(code))
        )
        child = ChildProcess.create(options)
        child.wait()
        child._notify(0, options)
        child._notify(0, options)
        assert calls == [0]
