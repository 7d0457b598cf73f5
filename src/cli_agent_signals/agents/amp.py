"""Amp Agent 适配器。"""

from __future__ import annotations

from collections.abc import Sequence

from .base import AgentAdapter

__all__ = ["AmpAdapter"]


class AmpAdapter(AgentAdapter):
    """Amp CLI 适配器，允许全部工具调用，prompt 通过 stdin 传递。"""

    def __init__(
        self,
        amp_path: str = "amp",
        *,
        name: str = "amp",
        argv: Sequence[str] | None = None,
        stdin: bool = True,
    ) -> None:
        if argv is None:
            argv = (amp_path, "--dangerously-allow-all")
        super().__init__(name=name, argv=argv, stdin=stdin)
