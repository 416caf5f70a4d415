"""Pytest 配置和 fixtures。"""

from __future__ import annotations

import sys
from collections.abc import Callable, Sequence
from pathlib import Path

import pytest

# 项目根目录
PROJECT_ROOT = Path(__file__).parent.parent

# 添加 src 目录到 Python 路径
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

# 测试用子进程脚本
FAKE_CHILD_PATH = PROJECT_ROOT / "tests" / "fixtures" / "fake_child.py"

# 不存在的可执行文件
MISSING_EXECUTABLE = "procwait-definitely-missing-executable"


@pytest.fixture
def fake_child() -> Callable[..., list[str]]:
    """构造运行 fake_child.py 的命令行。"""

    def _argv(exit_code: int = 0, delay: float = 0.0, extra: Sequence[str] = ()) -> list[str]:
        argv = [sys.executable, str(FAKE_CHILD_PATH), "--exit-code", str(exit_code)]
        if delay:
            argv += ["--delay", str(delay)]
        argv += list(extra)
        return argv

    return _argv


@pytest.fixture
def missing_executable() -> str:
    """不存在的可执行文件名。"""
    return MISSING_EXECUTABLE


@pytest.fixture(autouse=True)
def _fresh_config(monkeypatch: pytest.MonkeyPatch):
    """每个测试使用干净的配置。"""
    from procwait import config

    for name in ("PROCWAIT_POLL_INTERVAL", "PROCWAIT_DEBUG", "PROCWAIT_LOG_DEBUG"):
        monkeypatch.delenv(name, raising=False)
    config.reload_config()
    yield
    config._config = None
