"""Codex Agent 适配器。"""

from __future__ import annotations

from collections.abc import Sequence

from .base import AgentAdapter

__all__ = ["CodexAdapter"]


class CodexAdapter(AgentAdapter):
    """Codex CLI 适配器。

    全自动模式，安静输出，prompt 通过 stdin 传递。
    """

    def __init__(
        self,
        codex_path: str = "codex",
        *,
        name: str = "codex",
        argv: Sequence[str] | None = None,
        stdin: bool = True,
    ) -> None:
        """初始化适配器。

        Args:
            codex_path: codex 可执行文件路径
            name: 适配器名称
            argv: 完整命令行（给出时忽略 codex_path）
            stdin: 是否通过 stdin 传递 prompt
        """
        if argv is None:
            argv = (codex_path, "--full-auto", "--quiet")
        super().__init__(name=name, argv=argv, stdin=stdin)
