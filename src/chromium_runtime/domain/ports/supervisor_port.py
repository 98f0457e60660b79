"""
Supervisor Port Interface

Defines the contract for running one child process to a terminal state.
This is an output port - implemented by the infrastructure layer.
"""

import asyncio
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Mapping, Optional, Sequence

from chromium_runtime.domain.value_objects import SupervisorOutcome


class ISupervisorPort(ABC):
    """
    Port interface for process supervision.

    Implementations start the child, capture its output, enforce the
    timeout and cancellation, and always return a terminal outcome.
    """

    @abstractmethod
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
        Run ``argv`` until exit, timeout or cancellation.

        Args:
            argv: Full argument vector, executable first
            env: Environment for the child
            cwd: Working directory for the child
            timeout: Seconds before the child is terminated
            cancel_event: Set by the caller to request termination
            on_started: Called with the pid once the child is running

        Returns:
            SupervisorOutcome with a terminal status
        """
        pass
