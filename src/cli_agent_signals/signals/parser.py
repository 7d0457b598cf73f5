"""有状态的信号解析器。

逐行消费 agent 的 stdout，在块闭合时产生 Signal。
解析器从不抛出异常：格式错误的属性只会导致解析出的属性变少，
无法识别的行直接忽略。
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from .base import (
    ATTR_RE,
    LEGACY_COMPLETE_MARKER,
    SIGNAL_CLOSE_RE,
    SIGNAL_OPEN_RE,
    SignalType,
)
from .models import Signal, make_signal

__all__ = [
    "SignalParser",
    "ParserState",
    "parse_attrs",
    "parse_signals",
]

logger = logging.getLogger(__name__)


def parse_attrs(raw: str) -> dict[str, str]:
    """解析开标记中的 key="value" 属性，重复键以最后一次为准。"""
    attrs: dict[str, str] = {}
    for match in ATTR_RE.finditer(raw):
        attrs[match.group(1)] = match.group(2)
    return attrs


@dataclass
class ParserState:
    """解析器的块状态。

    pending 非空 当且仅当 已看到开标记但尚未看到对应的闭标记。

    Attributes:
        pending: 未闭合块的 (tag, attrs)
        body_lines: 已累积的正文行
    """

    pending: tuple[str, dict[str, str]] | None = None
    body_lines: list[str] = field(default_factory=list)

    def clear(self) -> None:
        self.pending = None
        self.body_lines = []


class SignalParser:
    """逐行信号解析器。

    每次运行持有一个独立实例，不在运行之间共享。

    Example:
        parser = SignalParser()
        for line in lines:
            signal = parser.feed(line)
            if signal:
                handle(signal)
    """

    def __init__(self) -> None:
        self._state = ParserState()

    @property
    def pending(self) -> bool:
        """是否有未闭合的块。"""
        return self._state.pending is not None

    def feed(self, line: str) -> Signal | None:
        """喂入一行（不含换行符）。

        优先级：
        1. 旧版完成标记，任何状态下都立即产生 COMPLETE
        2. 有未闭合块且本行含闭标记：闭合并产生信号
        3. 本行含开标记：同一行后面还有闭标记则立即产生信号（不改变状态），
           否则开始累积正文
        4. 有未闭合块：原样追加到正文（包括块内再次出现的开标记行）
        5. 其他：忽略

        Args:
            line: 一行输出

        Returns:
            完成的信号，或 None
        """
        if LEGACY_COMPLETE_MARKER in line:
            # 未闭合的块保持打开，之后的闭标记仍然可以完成它
            return Signal(type=SignalType.COMPLETE)

        state = self._state

        if state.pending is not None and SIGNAL_CLOSE_RE.search(line):
            tag, attrs = state.pending
            body = "\n".join(state.body_lines).strip()
            state.clear()
            return make_signal(tag, attrs, body)

        if state.pending is None:
            open_match = SIGNAL_OPEN_RE.search(line)
            if open_match:
                tag = open_match.group(1)
                attrs = parse_attrs(open_match.group(2) or "")

                rest = line[open_match.end():]
                close_match = SIGNAL_CLOSE_RE.search(rest)
                if close_match:
                    return make_signal(tag, attrs, rest[:close_match.start()].strip())

                state.pending = (tag, attrs)
                state.body_lines = []
                return None

        if state.pending is not None:
            state.body_lines.append(line)

        return None

    def feed_lines(self, lines: Iterable[str]) -> Iterator[Signal]:
        """依次喂入多行，产出所有完成的信号。"""
        for line in lines:
            signal = self.feed(line)
            if signal is not None:
                yield signal

    def reset(self) -> None:
        """丢弃未完成的块状态，便于在独立的运行之间复用。"""
        if self._state.pending is not None:
            logger.debug(
                f"Discarding unterminated {self._state.pending[0]} block "
                f"({len(self._state.body_lines)} body lines)"
            )
        self._state.clear()


def parse_signals(text: str) -> list[Signal]:
    """用新的解析器解析一段完整文本。

    Args:
        text: 已捕获的完整输出

    Returns:
        按出现顺序排列的信号列表
    """
    return list(SignalParser().feed_lines(text.split("\n")))
