"""Gemini Agent 适配器。"""

from __future__ import annotations

from collections.abc import Sequence

from .base import AgentAdapter

__all__ = ["GeminiAdapter"]


class GeminiAdapter(AgentAdapter):
    """Gemini CLI 适配器，prompt 通过 stdin 传递。"""

    def __init__(
        self,
        gemini_path: str = "gemini",
        *,
        name: str = "gemini",
        argv: Sequence[str] | None = None,
        stdin: bool = True,
    ) -> None:
        super().__init__(name=name, argv=(gemini_path,) if argv is None else argv, stdin=stdin)
