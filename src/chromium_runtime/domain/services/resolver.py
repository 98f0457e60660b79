"""
Artifact resolution.

Locates the browser executable among an ordered list of candidate paths.
Resolution only inspects the filesystem; it never modifies it.
"""

import hashlib
import os
import shutil
import subprocess
from dataclasses import replace
from pathlib import Path
from typing import Iterable, List, Optional, Union

import structlog

from chromium_runtime.domain.errors import (
    ArtifactChecksumMismatch,
    ArtifactNotExecutable,
    ArtifactNotFound,
    LauncherError,
)
from chromium_runtime.domain.value_objects import ExecutableArtifact


logger = structlog.get_logger(__name__)

PathLike = Union[str, Path]


def file_checksum(path: Path) -> str:
    """Calculate SHA256 checksum of a file."""
    sha256_hash = hashlib.sha256()
    with open(path, "rb") as f:
        for byte_block in iter(lambda: f.read(65536), b""):
            sha256_hash.update(byte_block)
    return sha256_hash.hexdigest()


class ArtifactResolver:
    """
    Resolves the first usable executable from configured candidates.

    Candidates containing a path separator are checked as paths; bare
    names are looked up on ``PATH``. A candidate that exists but lacks the
    executable bit is reported with ``ArtifactNotExecutable`` so callers can
    fix permissions instead of re-provisioning.
    """

    def __init__(
        self,
        candidates: Iterable[PathLike],
        expected_checksum: Optional[str] = None,
        search_path: Optional[str] = None,
        detect_version: bool = False,
    ):
        """
        Initialize the resolver.

        Args:
            candidates: Ordered candidate paths or command names
            expected_checksum: Optional SHA256 the resolved file must match
            search_path: PATH used for bare command names (defaults to os.environ)
            detect_version: Run the binary with --version and record the result
        """
        self.candidates: List[str] = [str(c) for c in candidates if str(c)]
        self.expected_checksum = expected_checksum.lower() if expected_checksum else None
        self.search_path = search_path
        self.detect_version = detect_version

    def _expand(self, candidate: str) -> Optional[Path]:
        if os.sep in candidate or (os.altsep and os.altsep in candidate):
            return Path(candidate).expanduser().absolute()
        found = shutil.which(candidate, mode=os.F_OK, path=self.search_path)
        return Path(found).absolute() if found else None

    def resolve(self) -> ExecutableArtifact:
        """
        Return the first existing, executable candidate.

        Returns:
            ExecutableArtifact for the resolved path

        Raises:
            ArtifactNotFound: If no candidate exists
            ArtifactNotExecutable: If the first existing candidate is not executable
            ArtifactChecksumMismatch: If the file does not match expected_checksum
            LauncherError: If detect_version is set and the binary reports no version
        """
        not_executable: Optional[Path] = None

        for candidate in self.candidates:
            path = self._expand(candidate)
            if path is None or not path.is_file():
                continue
            if not os.access(path, os.X_OK):
                if not_executable is None:
                    not_executable = path
                continue
            return self._verified(path)

        if not_executable is not None:
            raise ArtifactNotExecutable(not_executable)
        raise ArtifactNotFound(self.candidates)

    def _verified(self, path: Path) -> ExecutableArtifact:
        checksum = None
        if self.expected_checksum:
            checksum = file_checksum(path)
            if checksum != self.expected_checksum:
                raise ArtifactChecksumMismatch(path, self.expected_checksum, checksum)
        artifact = ExecutableArtifact(path=path, executable=True, checksum=checksum)
        if self.detect_version:
            artifact = replace(artifact, version=read_version(artifact))
        logger.debug("Resolved browser executable", path=str(path), version=artifact.version)
        return artifact


def read_version(artifact: ExecutableArtifact, timeout: float = 10.0) -> str:
    """
    Ask the binary for its version.

    Args:
        artifact: Resolved executable
        timeout: Seconds to wait for the answer

    Returns:
        Version string as printed by the binary (e.g. "Chromium 126.0.6478.126")

    Raises:
        LauncherError: If the binary cannot report a version
    """
    try:
        result = subprocess.run(
            [str(artifact.path), "--version"],
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        raise LauncherError("Timeout getting browser version", path=str(artifact.path))
    except OSError as e:
        raise LauncherError("Failed to run browser", detail=str(e), path=str(artifact.path))

    if result.returncode != 0 or not result.stdout.strip():
        raise LauncherError(
            "Failed to get browser version",
            detail=result.stderr.strip() or None,
            path=str(artifact.path),
            exit_code=result.returncode,
        )
    return result.stdout.strip()
