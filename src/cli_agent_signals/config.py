"""CAS 环境变量配置管理。

环境变量:
    CAS_PASSTHROUGH: monitor 是否将 agent 的 stdout 实时回显到父进程 stdout
        - true/1/yes = 回显 (默认)
        - false/0/no = 静默

    CAS_TIMEOUT: 默认运行超时（秒）
        - 0 或未设置 = 不限时 (默认)

    CAS_TERM_TIMEOUT: 发送 SIGTERM 后等待进程退出的时间（秒）
        - 默认 2.0 秒，限制在 0.1-60 秒范围

    CAS_KILL_TIMEOUT: 发送 SIGKILL 后等待进程退出的时间（秒）
        - 默认 1.0 秒，限制在 0.1-60 秒范围

    CAS_AGENT_PATHS: agent 可执行文件路径覆盖
        - 逗号分割的 name=path 列表，name 忽略大小写
        - 例: "claude=/opt/bin/claude, codex=~/bin/codex"

    CAS_LOG_DEBUG: 日志调试模式
        - true/1/yes = 开启 (日志输出到临时文件)
        - false/0/no = 关闭 (默认，日志输出到 stderr)
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

__all__ = ["Config", "load_config", "get_config", "reload_config"]

DEFAULT_TERM_TIMEOUT = 2.0
DEFAULT_KILL_TIMEOUT = 1.0


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """解析布尔值环境变量。"""
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("true", "1", "yes", "on")


def _parse_seconds(
    value: str | None,
    default: float,
    minimum: float = 0.0,
    maximum: float | None = None,
) -> float:
    """解析秒数环境变量，无效值返回默认值。"""
    if not value or not value.strip():
        return default
    try:
        seconds = float(value)
    except ValueError:
        return default
    if seconds != seconds:  # NaN
        return default
    seconds = max(minimum, seconds)
    if maximum is not None:
        seconds = min(seconds, maximum)
    return seconds


def _parse_agent_paths(value: str | None) -> dict[str, str]:
    """解析 agent 路径覆盖列表。

    Args:
        value: 环境变量值，形如 "claude=/opt/bin/claude,codex=codex-dev"

    Returns:
        name -> path 映射，name 统一为小写
    """
    if not value or not value.strip():
        return {}

    paths: dict[str, str] = {}
    for item in value.split(","):
        name, sep, path = item.partition("=")
        name = name.strip().lower()
        path = path.strip()
        if not sep or not name or not path:
            continue
        paths[name] = os.path.expanduser(path)

    return paths


@dataclass
class Config:
    """CAS 配置。

    Attributes:
        passthrough: monitor 默认是否回显 agent 输出
        timeout: 默认运行超时（秒），0 表示不限时
        term_timeout: SIGTERM 后的等待时间（秒）
        kill_timeout: SIGKILL 后的等待时间（秒）
        agent_paths: agent 可执行文件路径覆盖
        log_debug: 日志调试模式（输出到临时文件）
        log_file: 日志文件路径（当 log_debug=True 时自动设置）
    """

    passthrough: bool = True
    timeout: float = 0.0
    term_timeout: float = DEFAULT_TERM_TIMEOUT
    kill_timeout: float = DEFAULT_KILL_TIMEOUT
    agent_paths: dict[str, str] = field(default_factory=dict)
    log_debug: bool = False
    log_file: str | None = None

    def agent_path(self, name: str) -> str | None:
        """获取 agent 的可执行文件路径覆盖。"""
        return self.agent_paths.get(name.lower())

    def __repr__(self) -> str:
        paths_str = ",".join(f"{k}={v}" for k, v in sorted(self.agent_paths.items())) or "default"
        return (
            f"Config(passthrough={self.passthrough}, "
            f"timeout={self.timeout}, "
            f"term_timeout={self.term_timeout}, "
            f"kill_timeout={self.kill_timeout}, "
            f"agent_paths={paths_str}, "
            f"log_debug={self.log_debug}, "
            f"log_file={self.log_file})"
        )


def _generate_log_file_path() -> str:
    """生成日志文件路径。

    Returns:
        临时目录下的日志文件绝对路径
    """
    log_dir = Path(tempfile.gettempdir()) / "cli-agent-signals"
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"cas_debug_{timestamp}.log"

    return str(log_file.resolve())


def load_config() -> Config:
    """从环境变量加载配置。"""
    log_debug = _parse_bool(os.environ.get("CAS_LOG_DEBUG"), default=False)
    log_file = _generate_log_file_path() if log_debug else None

    return Config(
        passthrough=_parse_bool(os.environ.get("CAS_PASSTHROUGH"), default=True),
        timeout=_parse_seconds(os.environ.get("CAS_TIMEOUT"), 0.0),
        term_timeout=_parse_seconds(
            os.environ.get("CAS_TERM_TIMEOUT"), DEFAULT_TERM_TIMEOUT, 0.1, 60.0
        ),
        kill_timeout=_parse_seconds(
            os.environ.get("CAS_KILL_TIMEOUT"), DEFAULT_KILL_TIMEOUT, 0.1, 60.0
        ),
        agent_paths=_parse_agent_paths(os.environ.get("CAS_AGENT_PATHS")),
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
