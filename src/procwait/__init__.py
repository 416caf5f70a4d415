"""procwait - launch a child process and wait for its exit status.

环境变量:
    PROCWAIT_POLL_INTERVAL: 退出监视协程的轮询间隔 (默认 0.01s)
    PROCWAIT_DEBUG: DEBUG 级别日志 (默认 false)
    PROCWAIT_LOG_DEBUG: 日志输出到临时文件 (默认 false)

用法:
    from procwait import launch, Target
    status = launch(Target(["ls", "-l"]))
"""

__version__ = "0.1.0"

from .aio import launch_async
from .errors import (
    OptionError,
    ProcessNotStartedError,
    ProcwaitError,
    SchedulerBusyError,
    SchedulerClosedError,
    SchedulerError,
)
from .options import (
    Cwd,
    Env,
    ExitFuture,
    LaunchOptions,
    OnExit,
    Stdio,
    SuspensionToken,
    Target,
    needs_scheduler,
    supplies_scheduler,
)
from .runtime import ChildProcess, Scheduler
from .strategy import LAUNCH_FAILED, WaitStrategy, select_strategy
from .system import Dispatcher, launch, start

__all__ = [
    "__version__",
    "LAUNCH_FAILED",
    "ChildProcess",
    "Cwd",
    "Dispatcher",
    "Env",
    "ExitFuture",
    "LaunchOptions",
    "OnExit",
    "OptionError",
    "ProcessNotStartedError",
    "ProcwaitError",
    "Scheduler",
    "SchedulerBusyError",
    "SchedulerClosedError",
    "SchedulerError",
    "Stdio",
    "SuspensionToken",
    "Target",
    "WaitStrategy",
    "launch",
    "launch_async",
    "needs_scheduler",
    "select_strategy",
    "start",
    "supplies_scheduler",
]
