"""Agent 适配器模块。

提供不可变的适配器描述符和内置 agent 的注册表。

用法：
    from cli_agent_signals.agents import AgentAdapter, get_adapter

    # 内置 agent（可通过 CAS_AGENT_PATHS 覆盖可执行文件路径）
    adapter = get_adapter("claude")

    # 任意命令行程序
    adapter = AgentAdapter(name="local", argv=("my-agent", "--json"), stdin=False)
"""

from __future__ import annotations

from typing import Callable

from ..config import get_config
from .amp import AmpAdapter
from .base import AgentAdapter
from .claude import ClaudeAdapter
from .codex import CodexAdapter
from .gemini import GeminiAdapter

__all__ = [
    # 描述符
    "AgentAdapter",
    # 具体适配器
    "ClaudeAdapter",
    "AmpAdapter",
    "CodexAdapter",
    "GeminiAdapter",
    # 工厂函数
    "ADAPTER_FACTORIES",
    "available_adapters",
    "create_adapter",
    "get_adapter",
    "clear_adapter_cache",
]

ADAPTER_FACTORIES: dict[str, Callable[[str], AgentAdapter]] = {
    "claude": ClaudeAdapter,
    "amp": AmpAdapter,
    "codex": CodexAdapter,
    "gemini": GeminiAdapter,
}

# 适配器单例缓存（适配器不可变，可以安全缓存）
_ADAPTER_CACHE: dict[str, AgentAdapter] = {}


def available_adapters() -> list[str]:
    """返回所有内置适配器名称。"""
    return list(ADAPTER_FACTORIES)


def create_adapter(name: str, executable: str | None = None) -> AgentAdapter:
    """创建内置 agent 的适配器实例。

    Args:
        name: agent 名称（claude, amp, codex, gemini），忽略大小写
        executable: 可执行文件路径（默认读取 CAS_AGENT_PATHS，否则使用 name）

    Returns:
        对应的适配器实例

    Raises:
        ValueError: 未知的 agent 名称
    """
    key = name.strip().lower()
    factory = ADAPTER_FACTORIES.get(key)
    if factory is None:
        available = ", ".join(ADAPTER_FACTORIES)
        raise ValueError(f'Unknown tool "{name}". Available: {available}')

    path = executable or get_config().agent_path(key) or key
    return factory(path)


def get_adapter(name: str) -> AgentAdapter:
    """获取内置 agent 的适配器实例（带缓存）。

    Args:
        name: agent 名称，忽略大小写

    Returns:
        对应的适配器实例（缓存的）
    """
    key = name.strip().lower()
    if key not in _ADAPTER_CACHE:
        _ADAPTER_CACHE[key] = create_adapter(key)
    return _ADAPTER_CACHE[key]


def clear_adapter_cache() -> None:
    """清空适配器缓存（配置重新加载后使用）。"""
    _ADAPTER_CACHE.clear()
