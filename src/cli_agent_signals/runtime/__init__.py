"""Runtime module for agent subprocess execution and signal streaming.

This module provides isolated process execution with concurrent stream
draining, real-time signal extraction and timeout-based termination.
"""

from __future__ import annotations

from .process_runner import (
    LineCallback,
    ProcessRunner,
    RunOptions,
    RunResult,
    SignalCallback,
    invoke_callback,
    run_agent,
    run_agent_sync,
)

__all__ = [
    "ProcessRunner",
    "RunOptions",
    "RunResult",
    "SignalCallback",
    "LineCallback",
    "invoke_callback",
    "run_agent",
    "run_agent_sync",
]
