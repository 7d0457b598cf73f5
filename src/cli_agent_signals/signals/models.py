"""信号模型定义。

Signal 是解析器在一个块闭合时产生的不可变事件。
设计原则：
1. 封闭枚举 - type 只取 SignalType 中的值，未知标签为 OTHER
2. 不丢信息 - tag 始终保留原始标签字符串
3. 不做语义解释 - attrs 一律为字符串，由上层工作流自行解读
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .base import SignalType

__all__ = [
    "Signal",
    "make_signal",
]


class Signal(BaseModel):
    """一个完整的信号块。

    Attributes:
        type: 信号类型（未知标签为 SignalType.OTHER）
        tag: 原始标签字符串
        attrs: 属性映射（键唯一，重复键取最后一次出现的值）
        body: 去除首尾空白后的正文
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
    )

    type: SignalType
    tag: str = ""
    attrs: dict[str, str] = Field(default_factory=dict)
    body: str = ""

    @model_validator(mode="before")
    @classmethod
    def _fill_tag(cls, data: Any) -> Any:
        """未显式给出 tag 时使用类型值。"""
        if isinstance(data, dict) and not data.get("tag") and data.get("type") is not None:
            signal_type = data["type"]
            data = {**data, "tag": signal_type.value if isinstance(signal_type, SignalType) else str(signal_type)}
        return data

    @property
    def is_known(self) -> bool:
        """是否为已知信号类型。"""
        return self.type is not SignalType.OTHER

    def get(self, name: str, default: str | None = None) -> str | None:
        """读取属性值。"""
        return self.attrs.get(name, default)

    def __str__(self) -> str:
        attrs = " ".join(f'{k}="{v}"' for k, v in self.attrs.items())
        return f"Signal({self.tag}{' ' + attrs if attrs else ''})"


def make_signal(tag: str, attrs: dict[str, str] | None = None, body: str = "") -> Signal:
    """根据原始标签创建信号。

    Args:
        tag: 原始标签（如 "TASK_COMPLETE"）
        attrs: 属性映射
        body: 正文（调用方负责 trim）

    Returns:
        Signal 实例
    """
    return Signal(
        type=SignalType.from_tag(tag),
        tag=tag,
        attrs=dict(attrs or {}),
        body=body,
    )
