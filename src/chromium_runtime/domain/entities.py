"""
Invocation Entities

Tracks the lifecycle of one browser launch as an explicit state machine:

    NOT_STARTED -> RUNNING -> {SUCCEEDED, CRASHED, TIMED_OUT, KILLED}
    NOT_STARTED -> ARTIFACT_NOT_FOUND

Terminal states are final.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from chromium_runtime.domain.errors import InvalidStateTransition
from chromium_runtime.domain.value_objects import InvocationResult, InvocationStatus


_TRANSITIONS = {
    InvocationStatus.NOT_STARTED: {
        InvocationStatus.RUNNING,
        InvocationStatus.ARTIFACT_NOT_FOUND,
    },
    InvocationStatus.RUNNING: {
        InvocationStatus.SUCCEEDED,
        InvocationStatus.CRASHED,
        InvocationStatus.TIMED_OUT,
        InvocationStatus.KILLED,
    },
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_invocation_id() -> str:
    return f"inv_{uuid.uuid4().hex[:12]}"


@dataclass
class Invocation:
    """
    A single launch attempt of the browser binary.

    Exactly one launch is performed per invocation; retry policy belongs
    to the caller.
    """

    invocation_id: str = field(default_factory=new_invocation_id)
    task_argument: Optional[str] = None
    status: InvocationStatus = InvocationStatus.NOT_STARTED
    result: Optional[InvocationResult] = None
    pid: Optional[int] = None
    created_at: datetime = field(default_factory=_utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None

    def _transition(self, target: InvocationStatus) -> None:
        if target not in _TRANSITIONS.get(self.status, set()):
            raise InvalidStateTransition(self.status.value, target.value)
        self.status = target
        if target.is_terminal:
            self.completed_at = _utcnow()

    def mark_as_running(self, pid: Optional[int] = None) -> None:
        """Mark the invocation as running."""
        self._transition(InvocationStatus.RUNNING)
        self.pid = pid
        self.started_at = _utcnow()

    def mark_as_artifact_not_found(self, error: str) -> None:
        """Resolution failed before any process was started."""
        self._transition(InvocationStatus.ARTIFACT_NOT_FOUND)
        self.error_message = error

    def finish(self, status: InvocationStatus, result: Optional[InvocationResult] = None) -> None:
        """Move a running invocation into one of its terminal states."""
        self._transition(status)
        self.result = result
        if result is not None and result.error:
            self.error_message = result.error

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def duration_ms(self) -> Optional[int]:
        """Calculate wall-clock duration in milliseconds."""
        if self.started_at and self.completed_at:
            delta = self.completed_at - self.started_at
            return int(delta.total_seconds() * 1000)
        return None
