"""异常类定义。

信号解析永远不会抛出异常；只有无法启动子进程才视为致命错误。
"""

from __future__ import annotations

from pathlib import Path

__all__ = [
    "AgentSignalsError",
    "AgentLaunchError",
]


class AgentSignalsError(Exception):
    """cli-agent-signals 基础异常。"""
    pass


class AgentLaunchError(AgentSignalsError):
    """子进程无法启动（可执行文件不存在、权限不足等）。

    与"进程运行后以非零退出码结束"不同，此时不会产生任何 RunResult。

    Attributes:
        argv: 尝试执行的命令行
        cwd: 工作目录
        message: 错误消息
    """

    def __init__(self, argv: list[str], cwd: Path | str, message: str) -> None:
        self.argv = list(argv)
        self.cwd = cwd
        self.message = message
        executable = self.argv[0] if self.argv else "<empty>"
        super().__init__(f"Failed to launch {executable!r} in {cwd}: {message}")
