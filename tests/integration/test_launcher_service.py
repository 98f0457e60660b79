"""
Integration tests for LauncherService.

Covers the full invocation flow against a shell script standing in for
the browser: resolution, flag validation, environment construction,
supervision and output collection.
"""

import asyncio
import os
from unittest.mock import AsyncMock

import pytest

from chromium_runtime.application.dto.invoke_request import InvokeRequest
from chromium_runtime.application.services.launcher_service import LauncherService
from chromium_runtime.domain.errors import (
    ArtifactNotExecutable,
    ArtifactNotFound,
    InvalidFlagCombination,
    InvalidLaunchSpec,
)
from chromium_runtime.domain.value_objects import InvocationStatus, OutputKind


READ_ONLY_HOME = "/nonexistent/home/sbx_user1051"


def _base_env():
    return {
        "PATH": os.environ.get("PATH", "/usr/bin:/bin"),
        "HOME": READ_ONLY_HOME,
        "LD_LIBRARY_PATH": "/usr/lib",
    }


def _lines(result):
    return dict(line.split("=", 1) for line in result.stdout.text.splitlines() if "=" in line)


@pytest.mark.integration
class TestResolutionAndValidation:
    """Failures detected before any process starts."""

    @pytest.mark.asyncio
    async def test_missing_artifact_never_spawns(self, settings_factory, tmp_path):
        supervisor = AsyncMock()
        launcher = LauncherService(
            settings=settings_factory(artifact_path=str(tmp_path / "missing" / "chrome")),
            supervisor=supervisor,
        )

        with pytest.raises(ArtifactNotFound) as exc_info:
            await launcher.invoke(InvokeRequest(task_argument="https://example.com"))

        assert str(tmp_path / "missing" / "chrome") in exc_info.value.candidates
        supervisor.run.assert_not_called()

    @pytest.mark.asyncio
    async def test_non_executable_artifact(self, settings_factory, make_browser):
        browser = make_browser("exit 0\n", executable=False)
        supervisor = AsyncMock()
        launcher = LauncherService(settings=settings_factory(artifact_path=str(browser)), supervisor=supervisor)

        with pytest.raises(ArtifactNotExecutable):
            await launcher.invoke(InvokeRequest(task_argument="https://example.com"))

        supervisor.run.assert_not_called()

    @pytest.mark.asyncio
    async def test_exclusive_flags_rejected_before_start(self, settings_factory, fake_browser, scratch_root):
        supervisor = AsyncMock()
        launcher = LauncherService(
            settings=settings_factory(artifact_path=str(fake_browser), use_default_flags=True),
            supervisor=supervisor,
        )

        with pytest.raises(InvalidFlagCombination):
            await launcher.invoke(InvokeRequest(task_argument="https://example.com", flags=["--enable-sandbox"]))

        supervisor.run.assert_not_called()
        assert list(scratch_root.iterdir()) == []

    @pytest.mark.asyncio
    async def test_malformed_flag_rejected(self, settings_factory, fake_browser):
        launcher = LauncherService(settings=settings_factory(artifact_path=str(fake_browser)))

        with pytest.raises(InvalidLaunchSpec):
            await launcher.invoke(InvokeRequest(task_argument="https://example.com", flags=["headless"]))

    def test_flag_like_task_argument_rejected(self):
        with pytest.raises(ValueError):
            InvokeRequest(task_argument="--remote-debugging-port=9222")


@pytest.mark.integration
class TestInvocation:
    """Full invocations against the browser stand-in."""

    @pytest.mark.asyncio
    async def test_pdf_output(self, settings_factory, fake_browser):
        launcher = LauncherService(settings=settings_factory(artifact_path=str(fake_browser)), base_env=_base_env())

        result = await launcher.invoke(
            InvokeRequest(task_argument="https://example.com", output_kind=OutputKind.PDF)
        )

        assert result.status == InvocationStatus.SUCCEEDED
        assert result.exit_code == 0
        assert result.output is not None
        assert result.output.mime_type == "application/pdf"
        assert result.output_path.read_bytes().startswith(b"%PDF")
        assert result.scratch_directory is not None
        assert result.output_path.parent == result.scratch_directory
        assert _lines(result)["TASK"] == "https://example.com"

    @pytest.mark.asyncio
    async def test_explicit_output_path(self, settings_factory, fake_browser, tmp_path):
        launcher = LauncherService(settings=settings_factory(artifact_path=str(fake_browser)), base_env=_base_env())
        destination = tmp_path / "out" / "page.png"

        result = await launcher.invoke(InvokeRequest(
            task_argument="https://example.com",
            output_kind=OutputKind.SCREENSHOT,
            output_path=str(destination),
        ))

        assert result.output_path == destination
        assert result.output.mime_type == "image/png"
        assert result.scratch_directory is None

    @pytest.mark.asyncio
    async def test_dom_output_written_from_stdout(self, settings_factory, make_browser):
        browser = make_browser("printf '<html><body>dom</body></html>'\n")
        launcher = LauncherService(settings=settings_factory(artifact_path=str(browser)), base_env=_base_env())

        result = await launcher.invoke(InvokeRequest(task_argument="https://example.com", output_kind=OutputKind.DOM))

        assert result.output.mime_type == "text/html"
        assert result.output_path.read_text() == "<html><body>dom</body></html>"

    @pytest.mark.asyncio
    async def test_environment_reaches_child(self, settings_factory, fake_browser):
        launcher = LauncherService(
            settings=settings_factory(artifact_path=str(fake_browser), keep_scratch=True),
            base_env=_base_env(),
        )

        result = await launcher.invoke(InvokeRequest(task_argument="https://example.com"))

        seen = _lines(result)
        assert seen["HOME"] == str(result.scratch_directory)
        assert seen["LD_LIBRARY_PATH"].split(os.pathsep) == ["/opt/chromium/lib", "/usr/lib"]

    @pytest.mark.asyncio
    async def test_launcher_environment_is_untouched(self, settings_factory, fake_browser):
        base_env = _base_env()
        snapshot = dict(base_env)
        launcher = LauncherService(settings=settings_factory(artifact_path=str(fake_browser)), base_env=base_env)

        await launcher.invoke(InvokeRequest(task_argument="https://example.com"))

        assert base_env == snapshot
        assert launcher.base_env == snapshot

    @pytest.mark.asyncio
    async def test_default_flags_and_scratch_locations(self, settings_factory, make_browser):
        browser = make_browser('for arg in "$@"; do echo "$arg"; done\n')
        launcher = LauncherService(
            settings=settings_factory(artifact_path=str(browser), use_default_flags=True, keep_scratch=True),
            base_env=_base_env(),
        )

        result = await launcher.invoke(InvokeRequest(task_argument="https://example.com"))

        argv = result.stdout.text.splitlines()
        assert argv[:6] == [
            "--headless",
            "--no-sandbox",
            "--single-process",
            "--no-zygote",
            "--disable-gpu",
            "--disable-dev-shm-usage",
        ]
        assert f"--user-data-dir={result.scratch_directory / 'profile'}" in argv
        assert argv[-1] == "https://example.com"

    @pytest.mark.asyncio
    async def test_scratch_removed_after_run(self, settings_factory, fake_browser, scratch_root):
        launcher = LauncherService(settings=settings_factory(artifact_path=str(fake_browser)), base_env=_base_env())

        result = await launcher.invoke(InvokeRequest(task_argument="https://example.com"))

        assert result.scratch_directory is None
        assert list(scratch_root.iterdir()) == []

    @pytest.mark.asyncio
    async def test_crash_reports_stderr(self, settings_factory, make_browser):
        browser = make_browser("echo 'error while loading shared libraries: libnss3.so' >&2\nexit 127\n")
        launcher = LauncherService(settings=settings_factory(artifact_path=str(browser)), base_env=_base_env())

        result = await launcher.invoke(InvokeRequest(task_argument="https://example.com", output_kind=OutputKind.PDF))

        assert result.status == InvocationStatus.CRASHED
        assert result.exit_code == 127
        assert result.output is None
        assert result.output_path is None
        assert "libnss3.so" in result.stderr.text
        assert result.error == "Browser exited with code 127"

    @pytest.mark.asyncio
    async def test_timeout(self, settings_factory, make_browser):
        browser = make_browser("exec sleep 30\n")
        launcher = LauncherService(settings=settings_factory(artifact_path=str(browser)), base_env=_base_env())

        result = await launcher.invoke(InvokeRequest(task_argument="https://example.com", timeout_millis=300))

        assert result.status == InvocationStatus.TIMED_OUT
        assert result.error == "Browser timed out after 300 ms"


@pytest.mark.integration
class TestConcurrency:
    """Concurrent invocations and cancellation."""

    @pytest.mark.asyncio
    async def test_concurrent_invocations_are_isolated(self, settings_factory, fake_browser):
        launcher = LauncherService(
            settings=settings_factory(artifact_path=str(fake_browser), keep_scratch=True),
            base_env=_base_env(),
        )
        urls = [f"https://example.com/page/{i}" for i in range(5)]

        results = await asyncio.gather(*(
            launcher.invoke(InvokeRequest(task_argument=url, output_kind=OutputKind.PDF)) for url in urls
        ))

        homes = set()
        for url, result in zip(urls, results):
            seen = _lines(result)
            assert result.status == InvocationStatus.SUCCEEDED
            assert seen["TASK"] == url
            assert seen["HOME"] == str(result.scratch_directory)
            homes.add(seen["HOME"])
        assert len(homes) == len(urls)
        assert len({result.output_path for result in results}) == len(urls)

    @pytest.mark.asyncio
    async def test_invoke_many_keeps_order_and_errors(self, settings_factory, fake_browser, tmp_path):
        launcher = LauncherService(settings=settings_factory(artifact_path=str(fake_browser)), base_env=_base_env())

        outcomes = await launcher.invoke_many([
            InvokeRequest(task_argument="https://a.example"),
            InvokeRequest(task_argument="https://b.example", artifact_path=str(tmp_path / "gone")),
            InvokeRequest(task_argument="https://c.example"),
        ])

        assert _lines(outcomes[0])["TASK"] == "https://a.example"
        assert isinstance(outcomes[1], ArtifactNotFound)
        assert _lines(outcomes[2])["TASK"] == "https://c.example"

    @pytest.mark.asyncio
    async def test_handle_cancel(self, settings_factory, make_browser):
        browser = make_browser("exec sleep 30\n")
        launcher = LauncherService(settings=settings_factory(artifact_path=str(browser)), base_env=_base_env())

        handle = launcher.start(InvokeRequest(task_argument="https://example.com"))
        await asyncio.sleep(0.3)
        handle.cancel()
        result = await asyncio.wait_for(handle.result(), timeout=5.0)

        assert handle.done()
        assert result.invocation_id == handle.invocation_id
        assert result.status == InvocationStatus.KILLED
        assert result.error == "Invocation cancelled"


@pytest.mark.integration
class TestOutputIntegrity:
    """Only documents produced by the current run are reported."""

    @pytest.mark.asyncio
    async def test_stale_file_at_destination_is_not_reported(self, settings_factory, make_browser, tmp_path):
        browser = make_browser("exit 0\n")
        destination = tmp_path / "out.pdf"
        destination.write_bytes(b"%PDF-1.4 from an earlier run")
        launcher = LauncherService(settings=settings_factory(artifact_path=str(browser)), base_env=_base_env())

        result = await launcher.invoke(InvokeRequest(
            task_argument="https://example.com",
            output_kind=OutputKind.PDF,
            output_path=str(destination),
        ))

        assert result.status == InvocationStatus.SUCCEEDED
        assert result.output is None
        assert result.output_path is None
        assert not destination.exists()

    @pytest.mark.asyncio
    async def test_destination_overwritten_by_new_document(self, settings_factory, fake_browser, tmp_path):
        destination = tmp_path / "out.pdf"
        destination.write_bytes(b"old")
        launcher = LauncherService(settings=settings_factory(artifact_path=str(fake_browser)), base_env=_base_env())

        result = await launcher.invoke(InvokeRequest(
            task_argument="https://example.com",
            output_kind=OutputKind.PDF,
            output_path=str(destination),
        ))

        assert result.output_path == destination
        assert destination.read_bytes().startswith(b"%PDF")

    @pytest.mark.asyncio
    async def test_truncated_dom_is_not_reported(self, settings_factory, make_browser, tmp_path):
        browser = make_browser(
            "printf '<html><head></head><body>'\n"
            "i=0\n"
            "while [ $i -lt 200 ]; do printf 'xxxxxxxxxx'; i=$((i+1)); done\n"
            "printf '</body></html>'\n"
        )
        destination = tmp_path / "dom.html"
        launcher = LauncherService(
            settings=settings_factory(artifact_path=str(browser), capture_limit_bytes=500),
            base_env=_base_env(),
        )

        result = await launcher.invoke(InvokeRequest(
            task_argument="https://example.com",
            output_kind=OutputKind.DOM,
            output_path=str(destination),
        ))

        assert result.stdout.truncated
        assert result.output is None
        assert result.output_path is None
        assert not destination.exists()
        assert "capture limit" in result.error

    @pytest.mark.asyncio
    async def test_flag_like_default_task_argument_rejected(self, settings_factory, fake_browser):
        supervisor = AsyncMock()
        launcher = LauncherService(
            settings=settings_factory(
                artifact_path=str(fake_browser),
                use_default_flags=True,
                task_argument="--enable-sandbox",
            ),
            supervisor=supervisor,
        )

        with pytest.raises(InvalidLaunchSpec):
            await launcher.invoke(InvokeRequest())

        supervisor.run.assert_not_called()

    @pytest.mark.asyncio
    async def test_detected_version_reported(self, settings_factory, make_browser):
        browser = make_browser(
            'if [ "$1" = "--version" ]; then echo "Chromium 126.0.6478.126"; exit 0; fi\n'
            "echo rendered\n"
        )
        launcher = LauncherService(
            settings=settings_factory(artifact_path=str(browser), detect_version=True),
            base_env=_base_env(),
        )

        result = await launcher.invoke(InvokeRequest(task_argument="https://example.com"))

        assert result.artifact.version == "Chromium 126.0.6478.126"
        assert result.to_dict()["artifact"]["version"] == "Chromium 126.0.6478.126"
