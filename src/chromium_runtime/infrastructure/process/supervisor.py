"""
Process Supervisor

Runs the browser as a child process with bounded output capture, a
timeout and caller-driven cancellation. Termination always escalates
from SIGTERM to SIGKILL after a grace period, so every run reaches a
terminal state within ``timeout + grace_period`` plus a bounded
pipe drain, even when descendants keep the output pipes open.
"""

import asyncio
import os
import signal
import time
from pathlib import Path
from typing import Callable, List, Mapping, Optional, Sequence

import structlog

from chromium_runtime.domain.ports.supervisor_port import ISupervisorPort
from chromium_runtime.domain.value_objects import (
    InvocationMetrics,
    InvocationStatus,
    SupervisorOutcome,
)
from chromium_runtime.infrastructure.process.capture import BoundedCapture, drain
from chromium_runtime.infrastructure.process.monitoring import ProcessTreeMonitor


logger = structlog.get_logger(__name__)

DEFAULT_GRACE_PERIOD = 2.0
DEFAULT_CAPTURE_LIMIT = 1024 * 1024
EXIT_POLL_INTERVAL = 0.02


def signal_name(returncode: Optional[int]) -> Optional[str]:
    """Name of the signal encoded in a negative return code."""
    if returncode is None or returncode >= 0:
        return None
    try:
        return signal.Signals(-returncode).name
    except ValueError:
        return f"SIG{-returncode}"


class ProcessSupervisor(ISupervisorPort):
    """
    asyncio-based supervisor for one child process per ``run`` call.

    Each call owns its process, capture buffers and monitor; a single
    supervisor instance can serve many concurrent runs.
    """

    def __init__(
        self,
        grace_period: float = DEFAULT_GRACE_PERIOD,
        capture_limit: int = DEFAULT_CAPTURE_LIMIT,
        drain_timeout: float = 1.0,
        monitor_memory: bool = True,
    ):
        """
        Initialize the supervisor.

        Args:
            grace_period: Seconds between SIGTERM and SIGKILL
            capture_limit: Bytes retained per output channel
            drain_timeout: Seconds to wait for pipes to close after exit
            monitor_memory: Sample process tree memory with psutil
        """
        if grace_period < 0:
            raise ValueError("grace_period must not be negative")
        self.grace_period = grace_period
        self.capture_limit = capture_limit
        self.drain_timeout = drain_timeout
        self.monitor_memory = monitor_memory

    async def run(
        self,
        argv: Sequence[str],
        env: Mapping[str, str],
        cwd: Optional[Path],
        timeout: float,
        cancel_event: Optional[asyncio.Event] = None,
        on_started: Optional[Callable[[int], None]] = None,
    ) -> SupervisorOutcome:
        """
        Run ``argv`` to a terminal state.

        Raises:
            OSError: If the executable cannot be spawned
            asyncio.CancelledError: If the awaiting task is cancelled; the
                child is terminated before the error propagates
        """
        if timeout <= 0:
            raise ValueError("timeout must be positive")

        stdout_capture = BoundedCapture(self.capture_limit)
        stderr_capture = BoundedCapture(self.capture_limit)
        start_time = time.perf_counter()

        process = await asyncio.create_subprocess_exec(
            *argv,
            cwd=str(cwd) if cwd else None,
            env=dict(env),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=True,
        )
        log = logger.bind(pid=process.pid)
        log.info("Browser process started", executable=os.path.basename(argv[0]))

        monitor = ProcessTreeMonitor(process.pid) if self.monitor_memory else None
        if monitor:
            monitor.start()
        if on_started:
            on_started(process.pid)

        readers = [
            asyncio.create_task(drain(process.stdout, stdout_capture)),
            asyncio.create_task(drain(process.stderr, stderr_capture)),
        ]
        exit_task = asyncio.create_task(self._wait_for_exit(process))
        cancel_task = asyncio.create_task(cancel_event.wait()) if cancel_event else None

        status: Optional[InvocationStatus] = None
        try:
            waiters = {exit_task}
            if cancel_task is not None:
                waiters.add(cancel_task)
            done, _ = await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)

            if exit_task in done:
                status = InvocationStatus.SUCCEEDED if process.returncode == 0 else InvocationStatus.CRASHED
            elif cancel_task is not None and cancel_task in done:
                log.info("Cancellation requested, terminating browser")
                status = InvocationStatus.KILLED
                await self._terminate(process, exit_task, log)
            else:
                log.warning("Browser timed out, terminating", timeout=timeout)
                status = InvocationStatus.TIMED_OUT
                await self._terminate(process, exit_task, log)
        finally:
            if cancel_task is not None:
                cancel_task.cancel()
            if status is None:
                # The awaiting task was cancelled before a terminal state
                await self._terminate(process, exit_task, log)
            exit_task.cancel()
            await self._finish_readers(process, readers, log)
            if monitor:
                monitor.stop()

        duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
        outcome = SupervisorOutcome(
            status=status,
            exit_code=process.returncode,
            signal=signal_name(process.returncode),
            stdout=stdout_capture.snapshot(),
            stderr=stderr_capture.snapshot(),
            metrics=InvocationMetrics(
                duration_ms=duration_ms,
                peak_memory_mb=monitor.get_peak_memory() if monitor else None,
                pid=process.pid,
            ),
        )
        log.info(
            "Browser process finished",
            status=status.value,
            exit_code=process.returncode,
            duration_ms=duration_ms,
            output_truncated=stdout_capture.truncated or stderr_capture.truncated,
        )
        return outcome

    @staticmethod
    async def _wait_for_exit(process: asyncio.subprocess.Process) -> int:
        """
        Wait until the child itself has exited.

        ``Process.wait()`` only returns once every pipe is closed, which
        never happens while a descendant still holds stdout or stderr. The
        return code is set as soon as the child is reaped, so poll it.
        """
        while process.returncode is None:
            await asyncio.sleep(EXIT_POLL_INTERVAL)
        return process.returncode

    def _signal_group(self, process: asyncio.subprocess.Process, sig: int) -> None:
        """Signal the child's process group (the whole browser tree)."""
        try:
            os.killpg(process.pid, sig)
        except ProcessLookupError:
            pass
        except PermissionError:
            if process.returncode is None:
                process.send_signal(sig)

    async def _terminate(self, process: asyncio.subprocess.Process, exit_task: asyncio.Task, log) -> None:
        """Graceful termination, escalating to SIGKILL after the grace period."""
        if exit_task.done():
            return
        self._signal_group(process, signal.SIGTERM)
        try:
            await asyncio.wait_for(asyncio.shield(exit_task), timeout=self.grace_period)
            return
        except asyncio.TimeoutError:
            log.warning("Browser ignored SIGTERM, sending SIGKILL", grace_period=self.grace_period)
        self._signal_group(process, signal.SIGKILL)
        try:
            await asyncio.wait_for(asyncio.shield(exit_task), timeout=self.drain_timeout)
        except asyncio.TimeoutError:
            log.error("Browser did not exit after SIGKILL", drain_timeout=self.drain_timeout)

    async def _finish_readers(self, process: asyncio.subprocess.Process, readers: List[asyncio.Task], log) -> None:
        """
        Wait for both pipes to reach EOF.

        Descendants that outlive the child keep the pipes open; they are
        killed with the rest of the process group. Descendants that left
        the group cannot be signalled, so capture stops and the pipes are
        closed on our side.
        """
        _, pending = await asyncio.wait(readers, timeout=self.drain_timeout)
        if pending:
            log.warning("Descendant processes still hold output pipes, killing process group")
            self._signal_group(process, signal.SIGKILL)
            _, pending = await asyncio.wait(pending, timeout=self.drain_timeout)
        if pending:
            log.warning("Output pipes held outside the process group, abandoning capture")
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            # asyncio has no public API to close the pipes of an exited process
            process._transport.close()
        for task in readers:
            if task.done() and not task.cancelled() and task.exception() is not None:
                log.warning("Output capture failed", error=str(task.exception()))
