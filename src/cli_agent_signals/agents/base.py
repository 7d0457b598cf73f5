"""Agent 适配器描述符。

适配器是纯配置，只描述：
1. 要执行的命令行
2. prompt 通过 stdin 传递还是作为最后一个参数传递

执行态（进程、解析器、输出缓冲）全部由 ProcessRunner 的单次运行持有。
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

__all__ = ["AgentAdapter"]


@dataclass(frozen=True)
class AgentAdapter:
    """Agent 适配器 - 不可变、无状态，可在多次运行间安全共享。

    Attributes:
        name: 适配器名称（如 'claude'）
        argv: 命令行参数（第一个元素是可执行文件）
        stdin: True = prompt 写入 stdin 后关闭；False = prompt 作为位置参数
    """

    name: str
    argv: tuple[str, ...]
    stdin: bool = True

    def __post_init__(self) -> None:
        """确保 argv 是非空元组。"""
        argv = self.argv
        if isinstance(argv, str) or not isinstance(argv, Sequence):
            raise TypeError(f"argv must be a sequence of strings, got {type(argv).__name__}")
        if not argv:
            raise ValueError(f"adapter {self.name!r} has an empty argv")
        object.__setattr__(self, "argv", tuple(str(arg) for arg in argv))

    @property
    def uses_stdin_prompt(self) -> bool:
        """是否通过 stdin 传递 prompt。"""
        return self.stdin

    @property
    def executable(self) -> str:
        return self.argv[0]

    def build_command(self, prompt: str = "") -> list[str]:
        """构建本次运行的命令行。

        Args:
            prompt: 任务 prompt（仅在非 stdin 模式下追加到末尾）

        Returns:
            命令行参数列表
        """
        cmd = list(self.argv)
        if not self.stdin:
            cmd.append(prompt)
        return cmd
