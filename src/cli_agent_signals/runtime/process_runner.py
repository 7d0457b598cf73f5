"""Process runner for agent subprocesses with real-time signal extraction.

cli-agent-signals runtime module v0.1.0

This module provides:
- Cross-platform subprocess isolation (new session/process group)
- Prompt delivery via stdin (then closed) or as a trailing argument
- Concurrent stdout/stderr draining with line buffering
- Per-line signal parsing with in-order callback dispatch
- Timeout watchdog with graceful shutdown (SIGTERM -> timeout -> SIGKILL)
- Cancel-safe cleanup using asyncio.shield

Key design points:
- POSIX: start_new_session=True so termination reaches the whole group
- Windows: CREATE_NEW_PROCESS_GROUP for signal isolation
- A line is never handed to the parser before its newline (or EOF) arrives
- Signal callbacks for line N complete before line N+1 is processed
"""

from __future__ import annotations

import asyncio
import codecs
import inspect
import logging
import os
import signal
import subprocess
import sys
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Union

import anyio

from ..agents import AgentAdapter
from ..config import get_config
from ..errors import AgentLaunchError
from ..signals import Signal, SignalParser, SignalType

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

logger = logging.getLogger(__name__)

# Platform detection
IS_WINDOWS = sys.platform == "win32"

READ_CHUNK_SIZE = 4096

# Callbacks may be plain functions or coroutine functions
SignalCallback = Callable[[Signal], Union[Awaitable[None], None]]
LineCallback = Callable[[str], Union[Awaitable[None], None]]


@dataclass
class RunOptions:
    """Options for a single agent run.

    Attributes:
        adapter: Agent adapter (argv + prompt delivery mode)
        prompt: Prompt text for the agent
        cwd: Working directory (None = current directory)
        env: Environment overrides layered over os.environ
        on_signal: Called for each completed signal, in stream order
        on_output: Called for each raw stdout line, before signal parsing
        on_stderr: Called for each stderr line (None = forward to sys.stderr)
        timeout: Seconds before the process is terminated (0 = unbounded)
    """

    adapter: AgentAdapter
    prompt: str = ""
    cwd: Path | str | None = None
    env: Mapping[str, str] | None = None
    on_signal: SignalCallback | None = None
    on_output: LineCallback | None = None
    on_stderr: LineCallback | None = None
    timeout: float = 0.0


@dataclass
class RunResult:
    """Aggregated result of one agent run.

    Attributes:
        exit_code: Process return code (negative signal number if killed on POSIX)
        stdout: Captured stdout lines joined with newlines
        signals: Signals in the order their blocks closed
        timed_out: Whether the timeout watchdog terminated the process
        duration_sec: Wall-clock run time
    """

    exit_code: int
    stdout: str
    signals: list[Signal] = field(default_factory=list)
    timed_out: bool = False
    duration_sec: float = 0.0

    @property
    def success(self) -> bool:
        return self.exit_code == 0 and not self.timed_out

    def signals_of(self, signal_type: SignalType | str) -> list[Signal]:
        """Return signals matching a type or raw tag."""
        return [
            s for s in self.signals
            if s.type == signal_type or s.tag == signal_type
        ]

    def last_signal(self, signal_type: SignalType | str | None = None) -> Signal | None:
        matching = self.signals if signal_type is None else self.signals_of(signal_type)
        return matching[-1] if matching else None


@dataclass
class _RunState:
    """Per-run mutable state. Never shared between runs."""

    parser: SignalParser = field(default_factory=SignalParser)
    output_lines: list[str] = field(default_factory=list)
    signals: list[Signal] = field(default_factory=list)
    timed_out: bool = False


class _LineBuffer:
    """Incremental UTF-8 decoder that only releases complete lines."""

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""

    def feed(self, chunk: bytes) -> list[str]:
        self._pending += self._decoder.decode(chunk)
        if "\n" not in self._pending:
            return []
        *lines, self._pending = self._pending.split("\n")
        return lines

    def flush(self) -> str | None:
        """Return the trailing partial line at EOF, if any."""
        self._pending += self._decoder.decode(b"", final=True)
        rest, self._pending = self._pending, ""
        return rest or None


async def invoke_callback(callback: Callable[[Any], Any] | None, arg: Any) -> None:
    """Call a sync or async callback and wait for it to finish."""
    if callback is None:
        return
    result = callback(arg)
    if inspect.isawaitable(result):
        await result


def _forward_stderr(line: str) -> None:
    sys.stderr.write(line + "\n")
    sys.stderr.flush()


@dataclass
class ProcessRunner:
    """Cross-platform agent runner with isolation and reliable termination.

    One call to run() drives exactly one child process. The runner itself
    holds no per-run state, so one instance can serve concurrent runs.

    Example:
        runner = ProcessRunner()
        result = await runner.run(RunOptions(
            adapter=get_adapter("claude"),
            prompt="Implement task T1",
            cwd=Path("/workspace"),
            on_signal=lambda s: print(s.type, s.attrs),
            timeout=1800,
        ))
    """

    term_timeout: float = field(default_factory=lambda: get_config().term_timeout)
    kill_timeout: float = field(default_factory=lambda: get_config().kill_timeout)

    async def run(self, options: RunOptions) -> RunResult:
        """Run the agent to completion (or timeout) and aggregate its output.

        This method:
        1. Starts the subprocess in an isolated process group/session
        2. Writes the prompt to stdin and closes it (stdin adapters only)
        3. Reads stdout and stderr concurrently, line by line
        4. Feeds stdout lines to a fresh SignalParser, dispatching callbacks
        5. Terminates the process group if the timeout elapses
        6. Ensures cleanup even if cancelled or a callback raises

        Args:
            options: Run options

        Returns:
            RunResult with exit code, captured stdout and ordered signals

        Raises:
            AgentLaunchError: If the process could not be started
        """
        adapter = options.adapter
        argv = adapter.build_command(options.prompt)
        cwd = Path(options.cwd) if options.cwd is not None else Path.cwd()
        env = self._build_env(options.env)
        kwargs = self._build_subprocess_kwargs()

        started_at = time.monotonic()
        try:
            # stdin=None would inherit the parent's stdin, use DEVNULL instead
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE if adapter.stdin else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                env=env,
                **kwargs,
            )
        except OSError as e:
            logger.debug(f"Failed to launch {argv[0]!r} cwd={cwd}: {e}")
            raise AgentLaunchError(argv, cwd, e.strerror or str(e)) from e
        except ValueError as e:
            # Embedded null byte in argv or env
            logger.debug(f"Invalid launch arguments for {argv[0]!r}: {e}")
            raise AgentLaunchError(argv, cwd, str(e)) from e

        logger.debug(
            f"Started agent {adapter.name} pid={process.pid} "
            f"argv={argv[0]} cwd={cwd} timeout={options.timeout or 'none'}"
        )

        state = _RunState()
        tasks: list[asyncio.Task[None]] = []

        try:
            if options.timeout and options.timeout > 0:
                tasks.append(asyncio.create_task(
                    self._watchdog(process, options.timeout, state)
                ))

            io_tasks = [
                asyncio.create_task(self._read_stdout(process, options, state)),
                asyncio.create_task(self._read_stderr(process, options)),
            ]
            if adapter.stdin:
                io_tasks.append(asyncio.create_task(
                    self._write_stdin(process, options.prompt)
                ))
            tasks.extend(io_tasks)

            # Both streams must drain before the exit code is final
            await asyncio.gather(*io_tasks)
            await process.wait()

        finally:
            await self._safe_cleanup(process, tasks)

        duration = time.monotonic() - started_at
        exit_code = process.returncode if process.returncode is not None else -1

        logger.debug(
            f"Agent {adapter.name} completed pid={process.pid} "
            f"returncode={exit_code} signals={len(state.signals)} "
            f"timed_out={state.timed_out} duration={duration:.2f}s"
        )

        return RunResult(
            exit_code=exit_code,
            stdout="\n".join(state.output_lines),
            signals=state.signals,
            timed_out=state.timed_out,
            duration_sec=duration,
        )

    def _build_env(self, overrides: Mapping[str, str] | None) -> dict[str, str]:
        """Overlay caller overrides on the parent environment."""
        env = dict(os.environ)
        if overrides:
            env.update({str(k): str(v) for k, v in overrides.items()})
        return env

    def _build_subprocess_kwargs(self) -> dict[str, Any]:
        """Build platform-specific subprocess kwargs.

        Returns:
            Dict of kwargs for asyncio.create_subprocess_exec
        """
        kwargs: dict[str, Any] = {}

        if IS_WINDOWS:
            kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
        else:
            kwargs["start_new_session"] = True

        return kwargs

    async def _write_stdin(
        self,
        process: asyncio.subprocess.Process,
        prompt: str,
    ) -> None:
        """Write the full prompt to stdin, then close it."""
        if process.stdin is None:
            return
        try:
            process.stdin.write(prompt.encode("utf-8"))
            await process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError):
            # Agent exited (or closed stdin) before reading the prompt
            logger.debug(f"stdin closed early by pid={process.pid}")
        finally:
            process.stdin.close()
            try:
                await process.stdin.wait_closed()
            except (BrokenPipeError, ConnectionResetError):
                pass

    async def _read_stdout(
        self,
        process: asyncio.subprocess.Process,
        options: RunOptions,
        state: _RunState,
    ) -> None:
        """Read stdout, feeding every complete line through the signal parser."""
        if process.stdout is None:
            return

        buffer = _LineBuffer()
        while True:
            chunk = await process.stdout.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            for line in buffer.feed(chunk):
                await self._handle_stdout_line(line, options, state)

        rest = buffer.flush()
        if rest is not None:
            await self._handle_stdout_line(rest, options, state)

    async def _handle_stdout_line(
        self,
        line: str,
        options: RunOptions,
        state: _RunState,
    ) -> None:
        state.output_lines.append(line)
        await invoke_callback(options.on_output, line)

        signal_ = state.parser.feed(line)
        if signal_ is None:
            return

        logger.debug("Signal detected: %s", signal_)
        state.signals.append(signal_)
        await invoke_callback(options.on_signal, signal_)

    async def _read_stderr(
        self,
        process: asyncio.subprocess.Process,
        options: RunOptions,
    ) -> None:
        """Drain stderr to prevent buffer deadlock. Lines are never parsed."""
        if process.stderr is None:
            return

        on_stderr = options.on_stderr or _forward_stderr
        buffer = _LineBuffer()
        while True:
            chunk = await process.stderr.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            for line in buffer.feed(chunk):
                await invoke_callback(on_stderr, line)

        rest = buffer.flush()
        if rest is not None:
            await invoke_callback(on_stderr, rest)

    async def _watchdog(
        self,
        process: asyncio.subprocess.Process,
        timeout: float,
        state: _RunState,
    ) -> None:
        """Terminate the process if it does not exit within timeout seconds."""
        try:
            await asyncio.wait_for(process.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.info(
                f"Agent pid={process.pid} exceeded timeout of {timeout}s, terminating"
            )
            state.timed_out = True
            await self._terminate_process(process)

    async def _safe_cleanup(
        self,
        process: asyncio.subprocess.Process,
        tasks: list[asyncio.Task[None]],
    ) -> None:
        """Safely cleanup subprocess and tasks, shielded from cancellation.

        Args:
            process: The subprocess to terminate
            tasks: Reader, writer and watchdog tasks
        """
        try:
            await asyncio.shield(self._do_cleanup(process, tasks))
        except asyncio.CancelledError:
            # If shield itself is cancelled, still try cleanup
            await self._do_cleanup(process, tasks)
            raise

    async def _do_cleanup(
        self,
        process: asyncio.subprocess.Process,
        tasks: list[asyncio.Task[None]],
    ) -> None:
        """Perform actual cleanup.

        Args:
            process: The subprocess to terminate
            tasks: Tasks to cancel if still running
        """
        # Terminate first so readers see EOF instead of blocking forever
        if process.returncode is None:
            await self._terminate_process(process)

        for task in tasks:
            if not task.done():
                task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                # The original error is already propagating from run()
                logger.debug(f"Task ended with error during cleanup: {e!r}")

    async def _terminate_process(
        self,
        process: asyncio.subprocess.Process,
    ) -> None:
        """Terminate subprocess gracefully, then forcefully if needed.

        Termination strategy:
        1. Send SIGTERM (or CTRL_BREAK_EVENT on Windows)
        2. Wait up to term_timeout for graceful exit
        3. If still running, send SIGKILL (or kill() on Windows)
        4. Wait up to kill_timeout for forced exit

        Args:
            process: The subprocess to terminate
        """
        pid = process.pid
        logger.debug(f"Terminating agent pid={pid}")

        try:
            if IS_WINDOWS:
                await self._windows_terminate(process)
            else:
                await self._posix_terminate(process)

            try:
                await asyncio.wait_for(process.wait(), timeout=self.term_timeout)
                logger.debug(
                    f"Agent terminated gracefully pid={pid} "
                    f"returncode={process.returncode}"
                )
                return
            except asyncio.TimeoutError:
                pass

            logger.debug(f"Force killing agent pid={pid}")
            if IS_WINDOWS:
                await self._windows_kill(process)
            else:
                await self._posix_kill(process)

            try:
                await asyncio.wait_for(process.wait(), timeout=self.kill_timeout)
                logger.debug(
                    f"Agent killed pid={pid} "
                    f"returncode={process.returncode}"
                )
            except asyncio.TimeoutError:
                logger.warning(f"Agent did not exit after kill pid={pid}")

        except ProcessLookupError:
            logger.debug(f"Agent already exited pid={pid}")

    async def _posix_terminate(
        self,
        process: asyncio.subprocess.Process,
    ) -> None:
        """Send SIGTERM to the process group on POSIX systems."""
        try:
            pgid = os.getpgid(process.pid)
            os.killpg(pgid, signal.SIGTERM)
            logger.debug(f"Sent SIGTERM to process group pgid={pgid}")
        except ProcessLookupError:
            pass
        except OSError as e:
            logger.debug(f"killpg failed, falling back to terminate: {e}")
            process.terminate()

    async def _posix_kill(
        self,
        process: asyncio.subprocess.Process,
    ) -> None:
        """Send SIGKILL to the process group on POSIX systems."""
        try:
            pgid = os.getpgid(process.pid)
            os.killpg(pgid, signal.SIGKILL)
            logger.debug(f"Sent SIGKILL to process group pgid={pgid}")
        except ProcessLookupError:
            pass
        except OSError as e:
            logger.debug(f"killpg failed, falling back to kill: {e}")
            process.kill()

    async def _windows_terminate(
        self,
        process: asyncio.subprocess.Process,
    ) -> None:
        """Send CTRL_BREAK_EVENT on Windows."""
        try:
            # Works because of CREATE_NEW_PROCESS_GROUP
            os.kill(process.pid, signal.CTRL_BREAK_EVENT)
            logger.debug(f"Sent CTRL_BREAK_EVENT to pid={process.pid}")
        except (ProcessLookupError, OSError) as e:
            logger.debug(f"CTRL_BREAK_EVENT failed, falling back: {e}")
            process.terminate()

    async def _windows_kill(
        self,
        process: asyncio.subprocess.Process,
    ) -> None:
        """Force kill on Windows."""
        try:
            process.kill()
            logger.debug(f"Called kill() on pid={process.pid}")
        except ProcessLookupError:
            pass


async def run_agent(options: RunOptions) -> RunResult:
    """Run an agent with a default ProcessRunner."""
    return await ProcessRunner().run(options)


def run_agent_sync(options: RunOptions) -> RunResult:
    """Blocking variant of run_agent for non-async callers.

    Must not be called from inside a running event loop.
    """
    return anyio.run(run_agent, options, backend="asyncio")
