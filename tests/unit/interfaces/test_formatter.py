"""
Unit tests for CLI result formatting.
"""

import json
from datetime import datetime
from pathlib import Path

import pytest
import yaml

from chromium_runtime.domain.value_objects import (
    CapturedStream,
    InvocationMetrics,
    InvocationResult,
    InvocationStatus,
    OutputArtifact,
)
from chromium_runtime.interfaces.cli.formatter import ResultFormatter


@pytest.fixture
def succeeded():
    return InvocationResult(
        invocation_id="inv_ok",
        status=InvocationStatus.SUCCEEDED,
        exit_code=0,
        output_path=Path("/tmp/inv_ok/output.pdf"),
        output=OutputArtifact(
            path=Path("/tmp/inv_ok/output.pdf"),
            size=2048,
            mime_type="application/pdf",
            checksum="abc",
            created_at=datetime(2024, 1, 1),
        ),
        stdout=CapturedStream(data=b"renderer ready\n"),
        metrics=InvocationMetrics(duration_ms=812.4, peak_memory_mb=153.2, pid=99),
    )


@pytest.fixture
def crashed():
    return InvocationResult(
        invocation_id="inv_bad",
        status=InvocationStatus.CRASHED,
        exit_code=-11,
        signal="SIGSEGV",
        stderr=CapturedStream(data=b"Received signal 11 SEGV_MAPERR", truncated=True, dropped_bytes=100),
        error="Browser terminated by SIGSEGV",
    )


@pytest.mark.unit
class TestResultFormatter:
    """Tests for ResultFormatter."""

    def test_json(self, succeeded):
        data = json.loads(ResultFormatter(format="json").format_result(succeeded))

        assert data["status"] == "succeeded"
        assert data["output"]["mime_type"] == "application/pdf"

    def test_yaml(self, crashed):
        data = yaml.safe_load(ResultFormatter(format="yaml").format_result(crashed))

        assert data["status"] == "crashed"
        assert data["signal"] == "SIGSEGV"
        assert data["output_truncated"] is True

    def test_pretty_success_hides_streams(self, succeeded):
        text = ResultFormatter(use_colors=False).format_result(succeeded)

        assert "inv_ok: succeeded" in text
        assert "2048 bytes" in text
        assert "153.2 MB" in text
        assert "renderer ready" not in text

    def test_pretty_verbose_shows_streams(self, succeeded):
        text = ResultFormatter(verbose=True, use_colors=False).format_result(succeeded)

        assert "STDOUT:" in text
        assert "renderer ready" in text

    def test_pretty_failure_shows_stderr(self, crashed):
        text = ResultFormatter(use_colors=False).format_result(crashed)

        assert "Browser terminated by SIGSEGV" in text
        assert "SEGV_MAPERR" in text
        assert "truncated" in text
