"""信号协议的基础类型和标记定义。

Agent 在 stdout 中嵌入 HTML 注释形式的信号：

    <!-- SIGNAL:TYPE attr="val" -->
    可选的正文
    <!-- /SIGNAL -->

开闭标记也可以出现在同一行（自闭合形式）。旧版 ralph 协议的
``<promise>COMPLETE</promise>`` 字面量被视为 COMPLETE 信号。
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Final

__all__ = [
    "SignalType",
    "LEGACY_COMPLETE_MARKER",
    "SIGNAL_OPEN_RE",
    "SIGNAL_CLOSE_RE",
    "ATTR_RE",
]

LEGACY_COMPLETE_MARKER: Final[str] = "<promise>COMPLETE</promise>"

SIGNAL_OPEN_RE: Final[re.Pattern[str]] = re.compile(
    r'<!--\s*SIGNAL:(\w+)((?:\s+\w+="[^"]*")*)\s*-->'
)
SIGNAL_CLOSE_RE: Final[re.Pattern[str]] = re.compile(r"<!--\s*/SIGNAL\s*-->")
ATTR_RE: Final[re.Pattern[str]] = re.compile(r'(\w+)="([^"]*)"')


class SignalType(str, Enum):
    """已知的信号类型。

    未知标签统一映射为 OTHER，原始标签保存在 Signal.tag 中。
    """

    # 迭代循环 / 执行阶段
    TASK_COMPLETE = "TASK_COMPLETE"
    CHECKPOINT = "CHECKPOINT"
    BLOCKED = "BLOCKED"
    COMPLETE = "COMPLETE"
    ERROR = "ERROR"
    ITERATION_ESTIMATE = "ITERATION_ESTIMATE"

    # 规划 / 验证
    PLAN_COMPLETE = "PLAN_COMPLETE"
    PLAN_PROPOSAL = "PLAN_PROPOSAL"
    DISCOVERY_QUESTIONS = "DISCOVERY_QUESTIONS"
    VERIFICATION = "VERIFICATION"

    # 优化 / 评审 / 设计稿还原
    OPTIMIZATION_COMPLETE = "OPTIMIZATION_COMPLETE"
    REVIEW_FINDING = "REVIEW_FINDING"
    REVIEW_COMPLETE = "REVIEW_COMPLETE"
    FIGMA_COMPONENT_COMPLETE = "FIGMA_COMPONENT_COMPLETE"
    VISUAL_MATCH = "VISUAL_MATCH"
    VISUAL_MISMATCH = "VISUAL_MISMATCH"

    OTHER = "OTHER"

    @classmethod
    def from_tag(cls, tag: str) -> "SignalType":
        """从原始标签解析类型。

        Args:
            tag: 开标记中 ``SIGNAL:`` 之后的标签

        Returns:
            对应的 SignalType，未知标签返回 OTHER
        """
        try:
            return cls(tag)
        except ValueError:
            return cls.OTHER
