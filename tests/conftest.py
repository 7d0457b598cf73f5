"""Pytest 配置和 fixtures。"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Callable

import pytest

# 项目根目录
PROJECT_ROOT = Path(__file__).parent.parent

# 添加 src 目录到 Python 路径
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from cli_agent_signals.agents import AgentAdapter, clear_adapter_cache  # noqa: E402
from cli_agent_signals.config import reload_config  # noqa: E402
from cli_agent_signals.runtime import ProcessRunner  # noqa: E402

# 模拟 agent 脚本
FAKE_AGENT = Path(__file__).parent / "fixtures" / "fake_agent.py"


@pytest.fixture
def fake_agent_path() -> Path:
    """模拟 agent 脚本路径。"""
    return FAKE_AGENT


@pytest.fixture
def make_adapter() -> Callable[..., AgentAdapter]:
    """构建运行模拟 agent 的适配器。

    用法：make_adapter("--task", "T1", stdin=False)
    """

    def _make(*args: str, stdin: bool = True, name: str = "fake") -> AgentAdapter:
        return AgentAdapter(
            name=name,
            argv=(sys.executable, str(FAKE_AGENT), *args),
            stdin=stdin,
        )

    return _make


@pytest.fixture
def runner() -> ProcessRunner:
    """使用较短终止等待时间的 ProcessRunner。"""
    return ProcessRunner(term_timeout=0.5, kill_timeout=0.5)


@pytest.fixture
def temp_workspace(tmp_path: Path) -> Path:
    """临时工作目录。"""
    workspace = tmp_path / "workspace"
    workspace.mkdir()
    return workspace


@pytest.fixture
def fresh_config(monkeypatch: pytest.MonkeyPatch):
    """清除 CAS_* 环境变量，测试结束后重新加载全局配置。"""
    for key in list(os.environ):
        if key.startswith("CAS_"):
            monkeypatch.delenv(key, raising=False)
    clear_adapter_cache()
    yield reload_config
    monkeypatch.undo()
    reload_config()
    clear_adapter_cache()
