"""
Launcher Service

Application service implementing the invocation use case:
resolve -> validate -> prepare scratch -> build environment -> supervise
-> collect output.
"""

import asyncio
import os
import shutil
import tempfile
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Union

from chromium_runtime.application.dto.invoke_request import InvokeRequest
from chromium_runtime.domain.entities import Invocation, new_invocation_id
from chromium_runtime.domain.errors import (
    ArtifactNotExecutable,
    ArtifactNotFound,
    LauncherError,
)
from chromium_runtime.domain.ports.supervisor_port import ISupervisorPort
from chromium_runtime.domain.services import (
    SERVERLESS_FLAGS,
    ArtifactResolver,
    EnvironmentBuilder,
    FlagValidator,
    OutputCollector,
    flag_name,
)
from chromium_runtime.domain.value_objects import (
    ExecutableArtifact,
    InvocationResult,
    InvocationStatus,
    LaunchSpec,
    OutputKind,
    SupervisorOutcome,
)
from chromium_runtime.infrastructure.config.settings import Settings, get_settings
from chromium_runtime.infrastructure.logging import get_logger
from chromium_runtime.infrastructure.process.supervisor import ProcessSupervisor


DEFAULT_OUTPUT_NAMES = {
    OutputKind.PDF: "output.pdf",
    OutputKind.SCREENSHOT: "screenshot.png",
    OutputKind.DOM: "dom.html",
}

# Writable locations the browser needs, relative to the scratch directory
SCRATCH_LOCATION_FLAGS = {
    "--homedir": "",
    "--user-data-dir": "profile",
    "--data-path": "data",
    "--disk-cache-dir": "cache",
}


class InvocationHandle:
    """
    A started invocation.

    ``cancel()`` may be called at any time before completion; the child
    is terminated gracefully, then forcefully, and the result reports
    ``killed``.
    """

    def __init__(self, invocation_id: str, task: asyncio.Task, cancel_event: asyncio.Event):
        self.invocation_id = invocation_id
        self.task = task
        self.cancel_event = cancel_event

    def cancel(self) -> None:
        self.cancel_event.set()

    def done(self) -> bool:
        return self.task.done()

    async def result(self) -> InvocationResult:
        return await self.task

    def __await__(self):
        return self.task.__await__()


class LauncherService:
    """
    Entry point for launching the browser.

    Holds only immutable configuration; every invocation gets its own
    environment copy, scratch directory and capture buffers, so one
    service can run many invocations concurrently.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        supervisor: Optional[ISupervisorPort] = None,
        validator: Optional[FlagValidator] = None,
        collector: Optional[OutputCollector] = None,
        base_env: Optional[Mapping[str, str]] = None,
    ):
        """
        Initialize the launcher.

        Args:
            settings: Launcher settings (defaults to environment settings)
            supervisor: Process supervisor implementation
            validator: Flag validator
            collector: Output collector
            base_env: Environment inherited by children (defaults to a
                snapshot of os.environ taken now)
        """
        self.settings = settings or get_settings()
        self.supervisor = supervisor or ProcessSupervisor(
            grace_period=self.settings.grace_period_seconds,
            capture_limit=self.settings.capture_limit_bytes,
        )
        self.validator = validator or FlagValidator()
        self.collector = collector or OutputCollector()
        self.base_env: Dict[str, str] = dict(os.environ if base_env is None else base_env)

    def resolver_for(self, request: InvokeRequest) -> ArtifactResolver:
        candidates = [request.artifact_path] if request.artifact_path else self.settings.candidates
        return ArtifactResolver(
            candidates,
            expected_checksum=self.settings.artifact_checksum,
            detect_version=self.settings.detect_version,
        )

    def _use_default_flags(self, request: InvokeRequest) -> bool:
        if request.use_default_flags is None:
            return self.settings.use_default_flags
        return request.use_default_flags

    def requested_flags(self, request: InvokeRequest) -> List[str]:
        flags: List[str] = list(SERVERLESS_FLAGS) if self._use_default_flags(request) else []
        flags.extend(self.settings.extra_flags)
        flags.extend(request.flags)
        return flags

    async def invoke(
        self,
        request: InvokeRequest,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> InvocationResult:
        """
        Launch the browser once and wait for a terminal state.

        Args:
            request: What to launch
            cancel_event: Set to cancel the invocation

        Returns:
            InvocationResult with status succeeded, crashed, timed_out or killed

        Raises:
            ArtifactNotFound: If no executable could be resolved
            ArtifactNotExecutable: If the executable lacks permission
            ArtifactChecksumMismatch: If the executable fails validation
            InvalidFlagCombination: If mutually exclusive flags were requested
            InvalidLaunchSpec: If a flag is malformed
        """
        invocation = Invocation(
            invocation_id=request.invocation_id or new_invocation_id(),
            task_argument=request.task_argument or self.settings.task_argument,
        )
        log = get_logger(__name__, invocation_id=invocation.invocation_id)

        try:
            artifact = self.resolver_for(request).resolve()
        except ArtifactNotFound as e:
            invocation.mark_as_artifact_not_found(str(e))
            log.error("Browser executable not found", candidates=e.candidates)
            raise

        spec = self.validator.validate(self.requested_flags(request), invocation.task_argument)
        use_defaults = self._use_default_flags(request)
        keep_scratch = self.settings.keep_scratch if request.keep_scratch is None else request.keep_scratch
        timeout_ms = request.timeout_millis or self.settings.timeout_millis

        scratch_root = Path(self.settings.scratch_directory)
        scratch_root.mkdir(parents=True, exist_ok=True)
        scratch = Path(tempfile.mkdtemp(prefix=f"{invocation.invocation_id}-", dir=scratch_root))
        output_path = self._output_path(request, scratch)

        try:
            if use_defaults:
                spec = self._with_scratch_locations(spec, scratch)
            spec = self._with_output_flags(spec, request.output_kind, output_path)
            self.validator.check_exclusions(spec.flags)

            library_paths = self.settings.library_paths if request.library_paths is None else request.library_paths
            environment = EnvironmentBuilder(
                library_paths=library_paths,
                scratch_home=scratch,
                extra_env=request.extra_env,
                force_scratch_home=self.settings.force_scratch_home,
            ).build(self.base_env)

            log.info(
                "Launching browser",
                artifact=str(artifact.path),
                version=artifact.version,
                task_argument=invocation.task_argument,
                timeout_ms=timeout_ms,
                unvalidated_flags=list(spec.unvalidated_flags),
            )
            outcome = await self._supervise(
                invocation, artifact, spec, environment.as_dict(), scratch, timeout_ms, cancel_event
            )
            result = self._build_result(invocation, outcome, request.output_kind, output_path, timeout_ms)
            result.artifact = artifact
            # A document written inside the scratch directory keeps it alive
            keep_scratch = keep_scratch or self._inside(result.output_path, scratch)
            if keep_scratch:
                result.scratch_directory = scratch
            invocation.finish(outcome.status, result)
            return result
        finally:
            if not keep_scratch:
                shutil.rmtree(scratch, ignore_errors=True)

    async def _supervise(
        self,
        invocation: Invocation,
        artifact: ExecutableArtifact,
        spec: LaunchSpec,
        env: Dict[str, str],
        scratch: Path,
        timeout_ms: int,
        cancel_event: Optional[asyncio.Event],
    ) -> SupervisorOutcome:
        try:
            return await self.supervisor.run(
                spec.argv(artifact),
                env,
                cwd=scratch,
                timeout=timeout_ms / 1000,
                cancel_event=cancel_event,
                on_started=invocation.mark_as_running,
            )
        except FileNotFoundError as e:
            # The executable disappeared between resolution and spawn
            invocation.mark_as_artifact_not_found(str(e))
            raise ArtifactNotFound([str(artifact.path)]) from e
        except PermissionError as e:
            raise ArtifactNotExecutable(artifact.path) from e

    def start(self, request: InvokeRequest) -> InvocationHandle:
        """
        Start an invocation in the background and return its handle.

        Must be called from a running event loop.
        """
        if request.invocation_id is None:
            request = request.model_copy(update={"invocation_id": new_invocation_id()})
        cancel_event = asyncio.Event()
        task = asyncio.create_task(self.invoke(request, cancel_event=cancel_event))
        return InvocationHandle(request.invocation_id, task, cancel_event)

    async def invoke_many(
        self, requests: Sequence[InvokeRequest]
    ) -> List[Union[InvocationResult, LauncherError]]:
        """
        Run several invocations concurrently.

        Results are returned in request order; resolution and validation
        errors are returned in place of the failed request's result.
        """
        outcomes = await asyncio.gather(
            *(self.invoke(request) for request in requests),
            return_exceptions=True,
        )
        for outcome in outcomes:
            if isinstance(outcome, BaseException) and not isinstance(outcome, LauncherError):
                raise outcome
        return list(outcomes)

    @staticmethod
    def _inside(path: Optional[Path], directory: Path) -> bool:
        if path is None:
            return False
        try:
            path.resolve().relative_to(directory.resolve())
            return True
        except ValueError:
            return False

    @staticmethod
    def _output_path(request: InvokeRequest, scratch: Path) -> Optional[Path]:
        if request.output_path:
            path = Path(request.output_path)
            return path if path.is_absolute() else scratch / path
        if request.output_kind is not None:
            return scratch / DEFAULT_OUTPUT_NAMES[request.output_kind]
        return None

    @staticmethod
    def _with_scratch_locations(spec: LaunchSpec, scratch: Path) -> LaunchSpec:
        present = {flag_name(f) for f in spec.flags}
        extra = []
        for flag, subdir in SCRATCH_LOCATION_FLAGS.items():
            if flag not in present:
                extra.append(f"{flag}={scratch / subdir if subdir else scratch}")
        return spec.with_flags(*extra)

    @staticmethod
    def _with_output_flags(spec: LaunchSpec, kind: Optional[OutputKind], output_path: Optional[Path]) -> LaunchSpec:
        if kind is None:
            return spec
        if output_path is not None:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            # Only a document written by this run may be reported
            output_path.unlink(missing_ok=True)
        if kind == OutputKind.PDF:
            return spec.with_flags(f"--print-to-pdf={output_path}")
        if kind == OutputKind.SCREENSHOT:
            return spec.with_flags(f"--screenshot={output_path}")
        return spec.with_flags("--dump-dom")

    def _build_result(
        self,
        invocation: Invocation,
        outcome: SupervisorOutcome,
        kind: Optional[OutputKind],
        output_path: Optional[Path],
        timeout_ms: int,
    ) -> InvocationResult:
        partial_dom = kind == OutputKind.DOM and outcome.stdout.truncated
        if (
            kind == OutputKind.DOM
            and output_path is not None
            and outcome.status == InvocationStatus.SUCCEEDED
            and outcome.stdout.data
            and not partial_dom
        ):
            output_path.write_bytes(outcome.stdout.data)

        output = None if partial_dom else self.collector.collect(output_path)
        error = self._describe(outcome, timeout_ms)
        if partial_dom and error is None:
            error = f"DOM exceeded the capture limit ({outcome.stdout.dropped_bytes} bytes dropped)"
        return InvocationResult(
            invocation_id=invocation.invocation_id,
            status=outcome.status,
            exit_code=outcome.exit_code,
            signal=outcome.signal,
            output_path=output.path if output else None,
            output=output,
            stdout=outcome.stdout,
            stderr=outcome.stderr,
            error=error,
            metrics=outcome.metrics,
        )

    @staticmethod
    def _describe(outcome: SupervisorOutcome, timeout_ms: int) -> Optional[str]:
        if outcome.status == InvocationStatus.TIMED_OUT:
            return f"Browser timed out after {timeout_ms} ms"
        if outcome.status == InvocationStatus.KILLED:
            return "Invocation cancelled"
        if outcome.status == InvocationStatus.CRASHED:
            if outcome.signal:
                return f"Browser terminated by {outcome.signal}"
            return f"Browser exited with code {outcome.exit_code}"
        return None
