"""
Result formatting utilities for CLI output
"""

import json
import sys

import yaml

from chromium_runtime.domain.value_objects import InvocationResult, InvocationStatus


_STATUS_COLORS = {
    InvocationStatus.SUCCEEDED: "green",
    InvocationStatus.CRASHED: "red",
    InvocationStatus.TIMED_OUT: "yellow",
    InvocationStatus.KILLED: "magenta",
}

_COLOR_CODES = {
    'reset': '\033[0m',
    'red': '\033[91m',
    'green': '\033[92m',
    'yellow': '\033[93m',
    'blue': '\033[94m',
    'magenta': '\033[95m',
    'dim': '\033[2m',
}


class ResultFormatter:
    """
    Format invocation results for different output types
    """

    def __init__(self, format: str = "pretty", verbose: bool = False, use_colors: bool = True):
        self.format = format
        self.verbose = verbose
        self.use_colors = use_colors and hasattr(sys.stdout, "isatty") and sys.stdout.isatty()

    def _colorize(self, text: str, color: str) -> str:
        if not self.use_colors:
            return text
        return f"{_COLOR_CODES[color]}{text}{_COLOR_CODES['reset']}"

    def format_result(self, result: InvocationResult) -> str:
        if self.format == "json":
            return json.dumps(result.to_dict(), indent=2, ensure_ascii=False)
        if self.format == "yaml":
            return yaml.safe_dump(result.to_dict(), sort_keys=False, allow_unicode=True)
        return self._format_pretty(result)

    def _format_pretty(self, result: InvocationResult) -> str:
        """Format result in human-readable form"""
        color = _STATUS_COLORS.get(result.status, "red")
        headline = f"Invocation {result.invocation_id}: {result.status.value}"
        if result.error:
            headline += f" ({result.error})"
        output = [self._colorize(headline, color), ""]

        if result.output:
            output.append(f"Output:    {result.output.path} ({result.output.size} bytes, {result.output.mime_type})")
        if result.artifact and result.artifact.version:
            output.append(f"Browser:   {result.artifact.version}")
        if result.exit_code is not None:
            output.append(f"Exit code: {result.exit_code}")
        if result.metrics:
            output.append(f"Duration:  {result.metrics.duration_ms:.0f} ms")
            if result.metrics.peak_memory_mb is not None:
                output.append(f"Memory:    {result.metrics.peak_memory_mb:.1f} MB peak")
        if result.output_truncated:
            output.append(self._colorize("Captured output was truncated", "yellow"))

        streams = [("STDOUT", result.stdout, "blue"), ("STDERR", result.stderr, "yellow")]
        for label, stream, stream_color in streams:
            # Diagnostics are only shown on failure unless verbose
            if not stream.data or (result.is_success() and not self.verbose):
                continue
            output.append("")
            output.append(self._colorize(f"{label}:", stream_color))
            output.append(self._colorize("-" * 40, "dim"))
            output.append(stream.text.rstrip())

        return "\n".join(output)
