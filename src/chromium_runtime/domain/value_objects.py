"""
Invocation Value Objects

Immutable value objects describing one launch of the browser binary:
the resolved artifact, the per-invocation environment, the validated
command line and the structured result.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple


class InvocationStatus(str, Enum):
    """Lifecycle state of a single invocation."""

    NOT_STARTED = "not_started"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    CRASHED = "crashed"
    TIMED_OUT = "timed_out"
    KILLED = "killed"
    ARTIFACT_NOT_FOUND = "artifact_not_found"

    @property
    def is_terminal(self) -> bool:
        return self not in (InvocationStatus.NOT_STARTED, InvocationStatus.RUNNING)


class OutputKind(str, Enum):
    """Kind of document the browser is asked to produce."""

    PDF = "pdf"
    SCREENSHOT = "screenshot"
    DOM = "dom"


@dataclass(frozen=True)
class ExecutableArtifact:
    """
    The external browser binary.

    Attributes:
        path: Absolute path of the executable
        executable: Whether the executable permission bit is set
        checksum: Optional SHA256 checksum the file was validated against
        version: Optional version tag reported by the binary
    """

    path: Path
    executable: bool = True
    checksum: Optional[str] = None
    version: Optional[str] = None

    def __post_init__(self):
        if not self.path.is_absolute():
            raise ValueError("Artifact path must be absolute")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": str(self.path),
            "executable": self.executable,
            "checksum": self.checksum,
            "version": self.version,
        }


@dataclass(frozen=True)
class RuntimeEnvironment:
    """
    Environment handed to exactly one child process.

    The variables mapping is read-only; ``as_dict()`` hands out a fresh
    copy so concurrent invocations never share a mutable environment.

    Attributes:
        variables: Environment variable name to value
        library_paths: Ordered, deduplicated shared library search path
        scratch_home: Writable directory substituted for the home directory
        home_redirected: Whether the home variable points at scratch_home
    """

    variables: Mapping[str, str]
    library_paths: Tuple[str, ...] = ()
    scratch_home: Optional[Path] = None
    home_redirected: bool = False

    def __post_init__(self):
        object.__setattr__(self, "variables", MappingProxyType(dict(self.variables)))

    def as_dict(self) -> Dict[str, str]:
        """Return a mutable copy suitable for passing to a subprocess."""
        return dict(self.variables)

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.variables.get(name, default)


@dataclass(frozen=True)
class LaunchSpec:
    """
    Validated command line for the browser.

    Attributes:
        flags: Ordered command-line flags
        task_argument: Task-specific positional argument (e.g. a target URL)
        unvalidated_flags: Flags passed through without allowlist coverage
    """

    flags: Tuple[str, ...]
    task_argument: Optional[str] = None
    unvalidated_flags: Tuple[str, ...] = ()

    def argv(self, artifact: ExecutableArtifact) -> List[str]:
        """Build the full argument vector for ``artifact``."""
        argv = [str(artifact.path), *self.flags]
        if self.task_argument:
            argv.append(self.task_argument)
        return argv

    def with_flags(self, *extra: str) -> "LaunchSpec":
        """Return a copy with ``extra`` flags appended (skipping duplicates)."""
        flags = list(self.flags)
        for flag in extra:
            if flag not in flags:
                flags.append(flag)
        return LaunchSpec(
            flags=tuple(flags),
            task_argument=self.task_argument,
            unvalidated_flags=self.unvalidated_flags,
        )


@dataclass(frozen=True)
class CapturedStream:
    """
    Bytes captured from one output channel of the child.

    Attributes:
        data: Captured bytes, most recent ones retained
        truncated: Whether older bytes were discarded
        dropped_bytes: How many bytes were discarded
    """

    data: bytes = b""
    truncated: bool = False
    dropped_bytes: int = 0

    @property
    def text(self) -> str:
        return self.data.decode("utf-8", errors="replace")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "size": len(self.data),
            "truncated": self.truncated,
            "dropped_bytes": self.dropped_bytes,
        }


@dataclass(frozen=True)
class OutputArtifact:
    """
    Document written by the browser at the output destination.

    Attributes:
        path: Absolute path of the file
        size: File size in bytes
        mime_type: MIME type guessed from the file name
        checksum: SHA256 checksum of the file contents
        created_at: Timestamp when the file was created
    """

    path: Path
    size: int
    mime_type: str
    checksum: str
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": str(self.path),
            "size": self.size,
            "mime_type": self.mime_type,
            "checksum": self.checksum,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class InvocationMetrics:
    """
    Measurements collected while the child was running.

    Not frozen because metrics are collected during execution.
    """

    duration_ms: float
    peak_memory_mb: Optional[float] = None
    pid: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "duration_ms": self.duration_ms,
            "peak_memory_mb": self.peak_memory_mb,
            "pid": self.pid,
        }


@dataclass(frozen=True)
class SupervisorOutcome:
    """
    What the supervisor observed for one child process.

    Attributes:
        status: Terminal status (succeeded, crashed, timed_out or killed)
        exit_code: Process return code; negative when killed by a signal
        signal: Name of the terminating signal, if any
        stdout: Captured standard output
        stderr: Captured standard error
        metrics: Timing and memory measurements
    """

    status: InvocationStatus
    exit_code: Optional[int]
    signal: Optional[str] = None
    stdout: CapturedStream = field(default_factory=CapturedStream)
    stderr: CapturedStream = field(default_factory=CapturedStream)
    metrics: Optional[InvocationMetrics] = None


@dataclass
class InvocationResult:
    """
    Outcome of one launch.

    Owned by the caller once returned; the launcher keeps no reference.

    Attributes:
        invocation_id: Identifier of the invocation
        status: Terminal status
        exit_code: Process exit code, if the process exited
        signal: Name of the signal that terminated the process, if any
        output_path: Path of the produced document, if it exists
        output: Metadata of the produced document
        stdout: Captured standard output
        stderr: Captured standard error
        error: Human-readable description of a failure
        metrics: Timing and memory measurements
        scratch_directory: Per-invocation scratch directory, if kept
        artifact: The executable that was launched
    """

    invocation_id: str
    status: InvocationStatus
    exit_code: Optional[int] = None
    signal: Optional[str] = None
    output_path: Optional[Path] = None
    output: Optional[OutputArtifact] = None
    stdout: CapturedStream = field(default_factory=CapturedStream)
    stderr: CapturedStream = field(default_factory=CapturedStream)
    error: Optional[str] = None
    metrics: Optional[InvocationMetrics] = None
    scratch_directory: Optional[Path] = None
    artifact: Optional[ExecutableArtifact] = None

    @property
    def output_truncated(self) -> bool:
        """Advisory flag: captured diagnostics lost their oldest bytes."""
        return self.stdout.truncated or self.stderr.truncated

    def is_success(self) -> bool:
        return self.status == InvocationStatus.SUCCEEDED

    def raise_for_status(self) -> "InvocationResult":
        """Raise ``InvocationFailed`` unless the invocation succeeded."""
        if not self.is_success():
            from chromium_runtime.domain.errors import InvocationFailed

            raise InvocationFailed(self)
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "invocation_id": self.invocation_id,
            "status": self.status.value,
            "exit_code": self.exit_code,
            "signal": self.signal,
            "output_path": str(self.output_path) if self.output_path else None,
            "output": self.output.to_dict() if self.output else None,
            "output_truncated": self.output_truncated,
            "stdout": self.stdout.to_dict(),
            "stderr": self.stderr.to_dict(),
            "error": self.error,
            "metrics": self.metrics.to_dict() if self.metrics else None,
            "scratch_directory": str(self.scratch_directory) if self.scratch_directory else None,
            "artifact": self.artifact.to_dict() if self.artifact else None,
        }
