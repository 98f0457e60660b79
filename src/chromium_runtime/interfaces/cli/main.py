#!/usr/bin/env python3
"""
chromium-run - launch the headless browser once and report the result
"""

import argparse
import asyncio
import signal
import sys
from typing import List, Optional

from pydantic import ValidationError

from chromium_runtime import __version__
from chromium_runtime.application.dto.invoke_request import InvokeRequest
from chromium_runtime.application.services.launcher_service import LauncherService
from chromium_runtime.domain.errors import (
    ArtifactChecksumMismatch,
    ArtifactNotExecutable,
    ArtifactNotFound,
    InvalidLaunchSpec,
)
from chromium_runtime.domain.value_objects import InvocationStatus, OutputKind
from chromium_runtime.infrastructure.config.settings import get_settings
from chromium_runtime.infrastructure.logging import configure_logging
from chromium_runtime.interfaces.cli.formatter import ResultFormatter


EXIT_CODES = {
    InvocationStatus.SUCCEEDED: 0,
    InvocationStatus.CRASHED: 1,
    InvocationStatus.TIMED_OUT: 4,
    InvocationStatus.KILLED: 130,
}
EXIT_USAGE = 2
EXIT_ARTIFACT = 3


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        prog="chromium-run",
        description="Launch the headless browser against a URL and collect the document it produces",
    )

    parser.add_argument(
        "task_argument",
        nargs="?",
        help="Target URL (defaults to CHROMIUM_TASK_ARGUMENT)",
    )

    output_group = parser.add_mutually_exclusive_group()
    output_group.add_argument("--pdf", dest="output_kind", action="store_const", const=OutputKind.PDF,
                              help="Print the page to PDF")
    output_group.add_argument("--screenshot", dest="output_kind", action="store_const",
                              const=OutputKind.SCREENSHOT, help="Capture a PNG screenshot")
    output_group.add_argument("--dom", dest="output_kind", action="store_const", const=OutputKind.DOM,
                              help="Dump the serialized DOM")
    parser.add_argument("--output", "-o", help="Output document path")

    parser.add_argument(
        "--flag",
        dest="flags",
        action="append",
        default=[],
        metavar="FLAG",
        help="Extra browser flag, e.g. --flag=--window-size=1280,720 (repeatable)",
    )
    parser.add_argument(
        "--no-default-flags",
        dest="use_default_flags",
        action="store_false",
        default=None,
        help="Do not prepend the serverless flag profile",
    )
    parser.add_argument("--timeout-ms", type=int, help="Timeout in milliseconds")
    parser.add_argument("--artifact", help="Browser executable path")
    parser.add_argument("--library-path", dest="library_paths", action="append",
                        help="Shared library directory (repeatable)")
    parser.add_argument("--scratch-dir", help="Parent directory for scratch directories")
    parser.add_argument("--keep-scratch", action="store_true", default=None,
                        help="Keep the scratch directory after the run")

    parser.add_argument("--format", choices=["pretty", "json", "yaml"], default="pretty",
                        help="Output format (default: pretty)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Always show captured output")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], default=None,
                        help="Logging level (default: CHROMIUM_LOG_LEVEL)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    return parser.parse_args(argv)


def build_request(args: argparse.Namespace) -> InvokeRequest:
    return InvokeRequest(
        task_argument=args.task_argument,
        flags=args.flags,
        timeout_millis=args.timeout_ms,
        output_path=args.output,
        output_kind=args.output_kind,
        artifact_path=args.artifact,
        library_paths=args.library_paths,
        use_default_flags=args.use_default_flags,
        keep_scratch=args.keep_scratch,
    )


async def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI function"""
    args = parse_args(argv)
    settings = get_settings()
    configure_logging(args.log_level or settings.log_level, settings.log_format)

    if args.scratch_dir:
        settings = settings.model_copy(update={"scratch_directory": args.scratch_dir})

    try:
        request = build_request(args)
    except ValidationError as e:
        print(f"Error: Invalid request: {e}", file=sys.stderr)
        return EXIT_USAGE

    if not (request.task_argument or settings.task_argument):
        print("Error: No target URL given", file=sys.stderr)
        return EXIT_USAGE

    launcher = LauncherService(settings=settings)
    handle = launcher.start(request)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle.cancel)

    try:
        result = await handle
    except (ArtifactNotFound, ArtifactNotExecutable, ArtifactChecksumMismatch) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ARTIFACT
    except InvalidLaunchSpec as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_USAGE
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)

    formatter = ResultFormatter(format=args.format, verbose=args.verbose)
    print(formatter.format_result(result))
    return EXIT_CODES[result.status]


def entry_point():
    """CLI entry point"""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    entry_point()
