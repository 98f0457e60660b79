"""
chromium-runtime

Launches a prebuilt headless browser inside read-only, ephemeral compute
environments: resolves the executable, prepares an isolated per-invocation
environment and scratch directory, supervises the child process with a
timeout and cancellation, and reports a structured result.
"""

__version__ = "0.1.0"

from .application.dto.invoke_request import InvokeRequest
from .application.services.launcher_service import InvocationHandle, LauncherService
from .domain.errors import (
    ArtifactChecksumMismatch,
    ArtifactNotExecutable,
    ArtifactNotFound,
    InvalidFlagCombination,
    InvalidLaunchSpec,
    InvocationFailed,
    LauncherError,
)
from .domain.value_objects import (
    ExecutableArtifact,
    InvocationResult,
    InvocationStatus,
    LaunchSpec,
    OutputKind,
    RuntimeEnvironment,
)

__all__ = [
    "ArtifactChecksumMismatch",
    "ArtifactNotExecutable",
    "ArtifactNotFound",
    "ExecutableArtifact",
    "InvalidFlagCombination",
    "InvalidLaunchSpec",
    "InvocationFailed",
    "InvocationHandle",
    "InvocationResult",
    "InvocationStatus",
    "InvokeRequest",
    "LaunchSpec",
    "LauncherError",
    "LauncherService",
    "OutputKind",
    "RuntimeEnvironment",
]
