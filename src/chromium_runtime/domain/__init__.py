"""
Launcher Domain Layer

Invocation entity, value objects, error taxonomy and domain services.
"""

from .entities import Invocation
from .errors import (
    ArtifactChecksumMismatch,
    ArtifactNotExecutable,
    ArtifactNotFound,
    InvalidFlagCombination,
    InvalidLaunchSpec,
    InvalidStateTransition,
    InvocationFailed,
    LauncherError,
)
from .value_objects import (
    CapturedStream,
    ExecutableArtifact,
    InvocationMetrics,
    InvocationResult,
    InvocationStatus,
    LaunchSpec,
    OutputArtifact,
    OutputKind,
    RuntimeEnvironment,
    SupervisorOutcome,
)

__all__ = [
    "ArtifactChecksumMismatch",
    "ArtifactNotExecutable",
    "ArtifactNotFound",
    "CapturedStream",
    "ExecutableArtifact",
    "InvalidFlagCombination",
    "InvalidLaunchSpec",
    "InvalidStateTransition",
    "Invocation",
    "InvocationFailed",
    "InvocationMetrics",
    "InvocationResult",
    "InvocationStatus",
    "LaunchSpec",
    "LauncherError",
    "OutputArtifact",
    "OutputKind",
    "RuntimeEnvironment",
    "SupervisorOutcome",
]
