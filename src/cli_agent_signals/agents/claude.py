"""Claude Agent 适配器。"""

from __future__ import annotations

from collections.abc import Sequence

from .base import AgentAdapter

__all__ = ["ClaudeAdapter"]


class ClaudeAdapter(AgentAdapter):
    """Claude CLI 适配器。

    非交互模式（--print），跳过权限确认，prompt 通过 stdin 传递。
    """

    def __init__(
        self,
        claude_path: str = "claude",
        *,
        name: str = "claude",
        argv: Sequence[str] | None = None,
        stdin: bool = True,
    ) -> None:
        """初始化适配器。

        Args:
            claude_path: claude 可执行文件路径
            name: 适配器名称
            argv: 完整命令行（给出时忽略 claude_path，供 dataclasses.replace 使用）
            stdin: 是否通过 stdin 传递 prompt
        """
        if argv is None:
            argv = (claude_path, "--dangerously-skip-permissions", "--print")
        super().__init__(name=name, argv=argv, stdin=stdin)
