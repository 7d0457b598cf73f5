"""CLI Agent Signals - 编码 agent 子进程编排与信号协议。

启动 agent 子进程、实时读取其输出，并解析 agent 嵌入在 stdout 中的信号块：

    <!-- SIGNAL:TASK_COMPLETE task="T1" -->
    Done
    <!-- /SIGNAL -->

环境变量:
    CAS_PASSTHROUGH: monitor 是否回显 agent 输出 (默认 true)
    CAS_TIMEOUT: 默认运行超时秒数 (默认 0 = 不限时)
    CAS_AGENT_PATHS: agent 可执行文件路径覆盖
    CAS_LOG_DEBUG: 调试日志输出到临时文件 (默认 false)

用法:
    from cli_agent_signals import AgentMonitor, SignalType, get_adapter

    monitor = AgentMonitor()
    monitor.on(SignalType.BLOCKED, lambda s: print("blocked:", s.get("reason")))
    result = await monitor.run(get_adapter("claude"), prompt, cwd=workspace)
"""

__version__ = "0.1.0"

from .agents import AgentAdapter, create_adapter, get_adapter
from .config import Config, get_config, load_config, reload_config
from .errors import AgentLaunchError, AgentSignalsError
from .logging_config import setup_logging
from .monitor import AgentMonitor, MonitorOptions, monitor_agent
from .runtime import ProcessRunner, RunOptions, RunResult, run_agent, run_agent_sync
from .signals import Signal, SignalParser, SignalType, parse_signals

__all__ = [
    "__version__",
    # 适配器
    "AgentAdapter",
    "create_adapter",
    "get_adapter",
    # 信号
    "Signal",
    "SignalType",
    "SignalParser",
    "parse_signals",
    # 运行
    "ProcessRunner",
    "RunOptions",
    "RunResult",
    "run_agent",
    "run_agent_sync",
    # 监控
    "AgentMonitor",
    "MonitorOptions",
    "monitor_agent",
    # 配置 / 日志 / 异常
    "Config",
    "load_config",
    "get_config",
    "reload_config",
    "setup_logging",
    "AgentSignalsError",
    "AgentLaunchError",
]
