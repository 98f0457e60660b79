"""
Command-line flag validation.

Documented flags are checked against an allowlist; flags outside it are
passed through to the browser and logged as unvalidated. Mutually
exclusive pairs are rejected before any process starts.
"""

from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional, Sequence, Tuple

import structlog

from chromium_runtime.domain.errors import InvalidFlagCombination, InvalidLaunchSpec
from chromium_runtime.domain.value_objects import LaunchSpec


logger = structlog.get_logger(__name__)


DOCUMENTED_FLAGS: FrozenSet[str] = frozenset({
    # Process model and isolation
    "--headless",
    "--no-sandbox",
    "--enable-sandbox",
    "--disable-setuid-sandbox",
    "--single-process",
    "--no-zygote",
    # Rendering
    "--disable-gpu",
    "--use-gl",
    "--disable-dev-shm-usage",
    "--hide-scrollbars",
    "--mute-audio",
    "--window-size",
    "--force-device-scale-factor",
    "--virtual-time-budget",
    "--run-all-compositor-stages-before-draw",
    "--font-render-hinting",
    # Writable locations
    "--homedir",
    "--data-path",
    "--disk-cache-dir",
    "--user-data-dir",
    "--crash-dumps-dir",
    # Remote debugging
    "--remote-debugging-port",
    "--remote-debugging-address",
    "--remote-debugging-pipe",
    # Networking
    "--proxy-server",
    "--ignore-certificate-errors",
    "--user-agent",
    # Diagnostics
    "--enable-logging",
    "--log-level",
    "--v",
    # Output
    "--print-to-pdf",
    "--no-pdf-header-footer",
    "--screenshot",
    "--dump-dom",
})


@dataclass(frozen=True)
class ExclusionRule:
    """Two flags that must never be requested together."""

    flag: str
    conflicts_with: str
    reason: str


# --single-process disables per-process OS isolation; --enable-sandbox
# assumes that isolation is active.
EXCLUSIVE_FLAG_PAIRS: Tuple[ExclusionRule, ...] = (
    ExclusionRule(
        flag="--single-process",
        conflicts_with="--enable-sandbox",
        reason="the sandbox requires separate renderer processes",
    ),
)


# Flags that let the browser run in a read-only, sandbox-less container
SERVERLESS_FLAGS: Tuple[str, ...] = (
    "--headless",
    "--no-sandbox",
    "--single-process",
    "--no-zygote",
    "--disable-gpu",
    "--disable-dev-shm-usage",
)


def flag_name(flag: str) -> str:
    """Return the switch name of ``flag`` (the part before '=')."""
    return flag.split("=", 1)[0]


class FlagValidator:
    """Validates requested flags and builds a LaunchSpec."""

    def __init__(
        self,
        allowlist: Iterable[str] = DOCUMENTED_FLAGS,
        exclusions: Sequence[ExclusionRule] = EXCLUSIVE_FLAG_PAIRS,
    ):
        self.allowlist = frozenset(allowlist)
        self.exclusions = tuple(exclusions)

    def _check_syntax(self, flag: str) -> None:
        if not isinstance(flag, str) or not flag.strip():
            raise InvalidLaunchSpec("Empty flag", detail=repr(flag))
        if not flag.startswith("--") or flag == "--":
            raise InvalidLaunchSpec("Malformed flag", detail=f"{flag!r} must start with '--'", flag=flag)

    def check_exclusions(self, flags: Iterable[str]) -> None:
        """
        Raise if ``flags`` contain both members of an exclusion pair.

        Raises:
            InvalidFlagCombination: Naming the two conflicting flags
        """
        names = {flag_name(f) for f in flags}
        for rule in self.exclusions:
            if rule.flag in names and rule.conflicts_with in names:
                raise InvalidFlagCombination(rule.flag, rule.conflicts_with, rule.reason)

    def validate(self, flags: Iterable[str], task_argument: Optional[str] = None) -> LaunchSpec:
        """
        Validate ``flags`` and return the LaunchSpec.

        Args:
            flags: Requested flags in launch order
            task_argument: Positional argument such as the target URL

        Returns:
            LaunchSpec with duplicates removed and unvalidated flags listed

        Raises:
            InvalidLaunchSpec: If a flag is malformed or the task argument
                looks like a flag
            InvalidFlagCombination: If a mutually exclusive pair is present
        """
        if task_argument and task_argument.startswith("-"):
            raise InvalidLaunchSpec(
                "Task argument looks like a flag",
                detail=f"{task_argument!r} would be parsed as a browser switch",
            )

        ordered: List[str] = []
        for flag in flags:
            self._check_syntax(flag)
            if flag not in ordered:
                ordered.append(flag)

        self.check_exclusions(ordered)

        unvalidated = tuple(f for f in ordered if flag_name(f) not in self.allowlist)
        for flag in unvalidated:
            logger.warning("Passing unvalidated flag to browser", flag=flag)

        return LaunchSpec(
            flags=tuple(ordered),
            task_argument=task_argument or None,
            unvalidated_flags=unvalidated,
        )
