"""
Launcher error taxonomy.

Resolution and validation errors are raised before any process starts.
Runtime outcomes (timeout, crash, cancellation) are terminal statuses on
the InvocationResult; ``InvocationFailed`` wraps them for callers that
prefer exceptions.
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional, Sequence


class LauncherError(Exception):
    """Base error with message, detail and arbitrary structured context."""

    def __init__(
        self,
        message: str,
        detail: Optional[str] = None,
        **kwargs: Any
    ):
        self.message = message
        self.detail = detail
        self.extra = kwargs
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary format."""
        error_dict = {
            "error": type(self).__name__,
            "message": self.message,
            "detail": self.detail,
        }
        error_dict.update(self.extra)
        return {k: v for k, v in error_dict.items() if v is not None}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message}: {self.detail}"
        return self.message

    def __repr__(self) -> str:
        return f"{type(self).__name__}(message={self.message!r}, detail={self.detail!r}, extra={self.extra!r})"


class ArtifactNotFound(LauncherError):
    """None of the candidate paths exists."""

    def __init__(self, candidates: Sequence[str]):
        self.candidates = [str(c) for c in candidates]
        super().__init__(
            "Browser executable not found",
            detail="tried " + ", ".join(self.candidates) if self.candidates else "no candidates configured",
            candidates=self.candidates,
        )


class ArtifactNotExecutable(LauncherError):
    """A candidate exists but lacks the executable permission bit."""

    def __init__(self, path: Path):
        self.path = Path(path)
        super().__init__(
            "Browser executable is not executable",
            detail=f"{self.path} exists but has no execute permission",
            path=str(self.path),
        )


class ArtifactChecksumMismatch(LauncherError):
    """The resolved file does not match the expected checksum."""

    def __init__(self, path: Path, expected: str, actual: str):
        self.path = Path(path)
        self.expected = expected
        self.actual = actual
        super().__init__(
            "Browser executable checksum mismatch",
            detail=f"{self.path}: expected {expected}, got {actual}",
            path=str(self.path),
            expected=expected,
            actual=actual,
        )


class InvalidLaunchSpec(LauncherError):
    """A requested flag is malformed."""


class InvalidFlagCombination(InvalidLaunchSpec):
    """Two mutually exclusive flags were requested together."""

    def __init__(self, flag: str, conflicting_flag: str, reason: Optional[str] = None):
        self.flag = flag
        self.conflicting_flag = conflicting_flag
        super().__init__(
            "Invalid flag combination",
            detail=f"{flag} cannot be combined with {conflicting_flag}" + (f" ({reason})" if reason else ""),
            flag=flag,
            conflicting_flag=conflicting_flag,
        )


class InvalidStateTransition(LauncherError):
    """An invocation was moved out of a terminal state or skipped a state."""

    def __init__(self, current: str, target: str):
        super().__init__(
            "Invalid invocation state transition",
            detail=f"{current} -> {target}",
            current=current,
            target=target,
        )


class InvocationFailed(LauncherError):
    """Raised by ``InvocationResult.raise_for_status`` for non-successful results."""

    def __init__(self, result):
        self.result = result
        detail = result.error
        if detail is None and result.exit_code is not None:
            detail = f"exit code {result.exit_code}"
        super().__init__(
            f"Invocation {result.status.value}",
            detail=detail,
            invocation_id=result.invocation_id,
            status=result.status.value,
            exit_code=result.exit_code,
        )
