"""procwait 环境变量配置管理。

环境变量:
    PROCWAIT_POLL_INTERVAL: 退出监视协程的轮询间隔（秒）
        - 默认 0.01 秒
        - 限制在 0.001-1.0 秒范围，无效值使用默认值

    PROCWAIT_DEBUG: 调试模式
        - true/1/yes = 开启 (stderr 输出 DEBUG 级别日志)
        - false/0/no = 关闭 (默认)

    PROCWAIT_LOG_DEBUG: 日志调试模式
        - true/1/yes = 开启 (日志输出到临时文件)
        - false/0/no = 关闭 (默认，日志输出到 stderr)
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

__all__ = ["Config", "load_config", "get_config", "reload_config", "DEFAULT_POLL_INTERVAL"]

DEFAULT_POLL_INTERVAL = 0.01
MIN_POLL_INTERVAL = 0.001
MAX_POLL_INTERVAL = 1.0


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """解析布尔值环境变量。"""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_poll_interval(value: str | None) -> float:
    """解析轮询间隔环境变量。"""
    if not value:
        return DEFAULT_POLL_INTERVAL
    try:
        interval = float(value)
    except ValueError:
        return DEFAULT_POLL_INTERVAL
    if interval != interval:  # NaN
        return DEFAULT_POLL_INTERVAL
    return max(MIN_POLL_INTERVAL, min(interval, MAX_POLL_INTERVAL))


@dataclass
class Config:
    """procwait 配置。

    Attributes:
        poll_interval: 退出监视协程的轮询间隔（秒）
        debug: 调试模式（DEBUG 级别日志）
        log_debug: 日志调试模式（输出到临时文件）
        log_file: 日志文件路径（当 log_debug=True 时自动设置）
    """

    poll_interval: float = DEFAULT_POLL_INTERVAL
    debug: bool = False
    log_debug: bool = False
    log_file: str | None = None

    def __repr__(self) -> str:
        return (
            f"Config(poll_interval={self.poll_interval}, "
            f"debug={self.debug}, "
            f"log_debug={self.log_debug}, "
            f"log_file={self.log_file})"
        )


def _generate_log_file_path() -> str:
    """生成日志文件路径。

    Returns:
        临时目录下的日志文件绝对路径
    """
    log_dir = Path(tempfile.gettempdir()) / "procwait"
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"procwait_debug_{timestamp}.log"

    return str(log_file.resolve())


def load_config() -> Config:
    """从环境变量加载配置。"""
    log_debug = _parse_bool(os.environ.get("PROCWAIT_LOG_DEBUG"), default=False)
    log_file = _generate_log_file_path() if log_debug else None

    return Config(
        poll_interval=_parse_poll_interval(os.environ.get("PROCWAIT_POLL_INTERVAL")),
        debug=_parse_bool(os.environ.get("PROCWAIT_DEBUG"), default=False),
        log_debug=log_debug,
        log_file=log_file,
    )


# 全局配置实例（延迟加载）
_config: Config | None = None


def get_config() -> Config:
    """获取全局配置实例。"""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """重新加载配置（用于测试）。"""
    global _config
    _config = load_config()
    return _config
