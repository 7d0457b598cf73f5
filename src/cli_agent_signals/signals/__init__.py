"""信号协议模块。

用法：
    from cli_agent_signals.signals import SignalParser, SignalType

    parser = SignalParser()
    signal = parser.feed('<!-- SIGNAL:BLOCKED reason="missing key" --><!-- /SIGNAL -->')
    if signal and signal.type is SignalType.BLOCKED:
        print(signal.get("reason"))
"""

from __future__ import annotations

from .base import (
    ATTR_RE,
    LEGACY_COMPLETE_MARKER,
    SIGNAL_CLOSE_RE,
    SIGNAL_OPEN_RE,
    SignalType,
)
from .models import Signal, make_signal
from .parser import ParserState, SignalParser, parse_attrs, parse_signals

__all__ = [
    # 类型
    "SignalType",
    "Signal",
    "ParserState",
    # 解析
    "SignalParser",
    "parse_attrs",
    "parse_signals",
    "make_signal",
    # 协议常量
    "LEGACY_COMPLETE_MARKER",
    "SIGNAL_OPEN_RE",
    "SIGNAL_CLOSE_RE",
    "ATTR_RE",
]
