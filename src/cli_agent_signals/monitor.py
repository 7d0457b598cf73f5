"""Agent monitor - 基于 ProcessRunner 的高层信号分发。

为调用方提供"每种信号一个处理器 + 一个兜底处理器"的接口，
免去手动按类型匹配信号。

用法：
    monitor = AgentMonitor()

    @monitor.on(SignalType.TASK_COMPLETE)
    def task_done(signal: Signal) -> None:
        print("completed", signal.get("task"))

    result = await monitor.run(get_adapter("claude"), prompt, cwd=workspace)
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from .agents import AgentAdapter
from .config import get_config
from .runtime import (
    LineCallback,
    ProcessRunner,
    RunOptions,
    RunResult,
    SignalCallback,
    invoke_callback,
)
from .signals import Signal, SignalType

__all__ = [
    "AgentMonitor",
    "MonitorOptions",
    "SignalHandler",
    "monitor_agent",
]

logger = logging.getLogger(__name__)

# 处理器可以是普通函数，也可以是协程函数
SignalHandler = SignalCallback


@dataclass
class MonitorOptions(RunOptions):
    """monitor_agent 的参数。

    在 RunOptions 基础上增加：

    Attributes:
        handlers: 信号类型（SignalType 或原始标签）到处理器的映射
        on_any_signal: 兜底处理器，先于类型处理器调用
        passthrough: 是否将 agent 输出实时回显到 stdout（None = 读取 CAS_PASSTHROUGH，默认开启）
    """

    handlers: Mapping[SignalType | str, SignalHandler] = field(default_factory=dict)
    on_any_signal: SignalHandler | None = None
    passthrough: bool | None = None


def _echo_stdout(line: str) -> None:
    sys.stdout.write(line + "\n")
    sys.stdout.flush()


def _lookup_handler(
    handlers: Mapping[SignalType | str, SignalHandler],
    signal: Signal,
) -> SignalHandler | None:
    """按原始标签优先、类型其次查找处理器。

    对已知类型两者等价；对 OTHER，标签处理器优先于 SignalType.OTHER 处理器。
    """
    handler = handlers.get(signal.tag)
    if handler is None:
        handler = handlers.get(signal.type)
    return handler


async def monitor_agent(
    options: MonitorOptions,
    runner: ProcessRunner | None = None,
) -> RunResult:
    """运行 agent 并按类型分发信号。

    每个信号依次调用：on_any_signal -> 类型处理器 -> on_signal。
    异步处理器会在处理下一行输出之前被 await。

    Args:
        options: monitor 参数
        runner: 自定义 ProcessRunner（默认新建）

    Returns:
        RunResult

    Raises:
        AgentLaunchError: 子进程无法启动
    """
    passthrough = options.passthrough
    if passthrough is None:
        passthrough = get_config().passthrough

    user_on_output = options.on_output
    user_on_signal = options.on_signal
    handlers = dict(options.handlers)
    on_any_signal = options.on_any_signal

    async def on_output(line: str) -> None:
        if passthrough:
            _echo_stdout(line)
        await invoke_callback(user_on_output, line)

    async def on_signal(signal: Signal) -> None:
        await invoke_callback(on_any_signal, signal)
        handler = _lookup_handler(handlers, signal)
        if handler is not None:
            await invoke_callback(handler, signal)
        else:
            logger.debug(f"No handler registered for {signal.tag}")
        await invoke_callback(user_on_signal, signal)

    run_options = RunOptions(
        adapter=options.adapter,
        prompt=options.prompt,
        cwd=options.cwd,
        env=options.env,
        on_signal=on_signal,
        on_output=on_output if (passthrough or user_on_output) else None,
        on_stderr=options.on_stderr,
        timeout=options.timeout,
    )
    return await (runner or ProcessRunner()).run(run_options)


class AgentMonitor:
    """可复用的信号处理器注册表。

    同一个 AgentMonitor 可以多次调用 run()，每次运行都有独立的解析器和缓冲。

    Attributes:
        passthrough: 是否回显 agent 输出（None = 读取配置）
        runner: 使用的 ProcessRunner
    """

    def __init__(
        self,
        passthrough: bool | None = None,
        runner: ProcessRunner | None = None,
    ) -> None:
        self.passthrough = passthrough
        self.runner = runner or ProcessRunner()
        self._handlers: dict[SignalType | str, SignalHandler] = {}
        self._any_handler: SignalHandler | None = None

    def on(
        self,
        signal_type: SignalType | str,
        handler: SignalHandler | None = None,
    ) -> Callable[[SignalHandler], SignalHandler] | SignalHandler:
        """注册类型处理器，可直接调用或作为装饰器使用。

        同一类型重复注册时，后注册的处理器覆盖之前的。
        """
        if handler is not None:
            self._handlers[signal_type] = handler
            return handler

        def decorator(func: SignalHandler) -> SignalHandler:
            self._handlers[signal_type] = func
            return func

        return decorator

    def on_any(self, handler: SignalHandler) -> SignalHandler:
        """注册兜底处理器（对每个信号都会调用）。"""
        self._any_handler = handler
        return handler

    @property
    def handlers(self) -> dict[SignalType | str, SignalHandler]:
        return dict(self._handlers)

    async def run(
        self,
        adapter: AgentAdapter,
        prompt: str,
        *,
        cwd: Path | str | None = None,
        env: Mapping[str, str] | None = None,
        timeout: float | None = None,
        on_output: LineCallback | None = None,
        on_stderr: LineCallback | None = None,
    ) -> RunResult:
        """运行一次 agent。

        Args:
            adapter: agent 适配器
            prompt: 任务 prompt
            cwd: 工作目录
            env: 环境变量覆盖
            timeout: 超时（秒），None = 读取 CAS_TIMEOUT
            on_output: 原始输出回调
            on_stderr: stderr 行回调

        Returns:
            RunResult
        """
        options = MonitorOptions(
            adapter=adapter,
            prompt=prompt,
            cwd=cwd,
            env=env,
            on_output=on_output,
            on_stderr=on_stderr,
            timeout=get_config().timeout if timeout is None else timeout,
            handlers=dict(self._handlers),
            on_any_signal=self._any_handler,
            passthrough=self.passthrough,
        )
        return await monitor_agent(options, self.runner)
