"""procwait 命令行入口。

用法:
    procwait [--async] [--cwd DIR] [--env KEY=VALUE ...] [--shell] -- CMD ARGS...

子进程的退出码作为本进程的退出码；无法启动子进程时退出码为 127。
"""

from __future__ import annotations

import argparse
import logging
import sys

from .config import Config, get_config
from .options import Cwd, Env, OnExit, Target
from .system import LAUNCH_FAILED, Dispatcher

__all__ = ["setup_logging", "build_parser", "run", "main"]

logger = logging.getLogger(__name__)

# 与 shell 的 "command not found" 一致
EXIT_NOT_STARTED = 127


def setup_logging(config: Config) -> None:
    """按配置设置日志输出。"""
    log_handlers: list[logging.Handler] = []

    if config.log_debug and config.log_file:
        # LOG_DEBUG 模式：输出到临时文件
        file_handler = logging.FileHandler(config.log_file, encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
        log_handlers.append(file_handler)
        log_level = logging.DEBUG
    else:
        # 默认模式：输出到 stderr
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
        log_handlers.append(stderr_handler)
        log_level = logging.DEBUG if config.debug else logging.WARNING

    # root logger 保持 WARNING，减少第三方库噪音
    logging.basicConfig(
        level=logging.WARNING,
        handlers=log_handlers,
    )
    # 只对 procwait 命名空间启用详细日志
    logging.getLogger("procwait").setLevel(log_level)


def _parse_env(pairs: list[str]) -> dict[str, str]:
    """解析 KEY=VALUE 列表。"""
    env: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise argparse.ArgumentTypeError(f"invalid --env value: {pair!r}")
        env[key] = value
    return env


def build_parser() -> argparse.ArgumentParser:
    """创建命令行解析器。"""
    parser = argparse.ArgumentParser(
        prog="procwait",
        description="Run a command, wait for it and exit with its status",
    )
    parser.add_argument("--async", dest="use_async", action="store_true",
                        help="Wait through a completion handler on an owned scheduler")
    parser.add_argument("--cwd", type=str, default=None, help="Working directory")
    parser.add_argument("--env", action="append", default=[], metavar="KEY=VALUE",
                        help="Environment override (repeatable)")
    parser.add_argument("--shell", action="store_true",
                        help="Run the command line through the shell")
    parser.add_argument("command", nargs=argparse.REMAINDER, help="Command and arguments")
    return parser


def run(argv: list[str] | None = None, dispatcher: Dispatcher | None = None) -> int:
    """解析参数并执行命令，返回退出码。"""
    parser = build_parser()
    args = parser.parse_args(argv)

    command = list(args.command)
    if command and command[0] == "--":
        command = command[1:]
    if not command:
        parser.error("no command given")

    try:
        env = _parse_env(args.env)
    except argparse.ArgumentTypeError as e:
        parser.error(str(e))

    if args.shell:
        options: list[object] = [Target.shell_command(" ".join(command))]
    else:
        options = [Target(command)]
    if args.cwd:
        options.append(Cwd(args.cwd))
    if env:
        options.append(Env(env))
    if args.use_async:
        def _log_exit(exit_code: int, error: BaseException | None) -> None:
            logger.info(f"{command[0]} exited with status {exit_code}")

        options.append(OnExit(_log_exit))

    dispatcher = dispatcher if dispatcher is not None else Dispatcher()
    status = dispatcher.launch(*options)

    if status == LAUNCH_FAILED:
        print(f"procwait: cannot run {command[0]}", file=sys.stderr)
        return EXIT_NOT_STARTED
    return status


def main() -> None:
    """主入口点。"""
    setup_logging(get_config())
    sys.exit(run())


if __name__ == "__main__":
    main()
