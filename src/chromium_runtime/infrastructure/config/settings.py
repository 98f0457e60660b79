"""
Environment configuration for chromium-runtime.

Loads configuration from ``CHROMIUM_*`` environment variables (and an
optional ``.env`` file) using pydantic-settings.
"""

from functools import lru_cache
from typing import Annotated, List, Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


DEFAULT_ARTIFACT_PATH = "/opt/chromium/chrome"


class Settings(BaseSettings):
    """Launcher settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CHROMIUM_",
        env_file=".env",
        extra="ignore",
    )

    # Artifact
    artifact_path: str = Field(
        default=DEFAULT_ARTIFACT_PATH, description="Path of the browser executable"
    )
    artifact_candidates: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: ["/opt/chrome/chrome", "chromium", "chromium-browser", "google-chrome"],
        description="Fallback executables tried after artifact_path",
    )
    artifact_checksum: Optional[str] = Field(
        default=None, description="Expected SHA256 of the executable"
    )
    detect_version: bool = Field(
        default=False, description="Record the executable version reported by --version"
    )
    library_paths: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: ["/opt/chromium/lib"],
        description="Shared library directories put first on LD_LIBRARY_PATH",
    )

    # Scratch space
    scratch_directory: str = Field(
        default="/tmp", description="Writable parent of per-invocation scratch directories"
    )
    force_scratch_home: bool = Field(
        default=False, description="Always point HOME at the scratch directory"
    )
    keep_scratch: bool = Field(
        default=False, description="Keep per-invocation scratch directories after completion"
    )

    # Launch
    timeout_millis: int = Field(default=30000, gt=0, description="Default invocation timeout")
    grace_period_millis: int = Field(
        default=2000, ge=0, le=60000, description="Wait between SIGTERM and SIGKILL"
    )
    capture_limit_bytes: int = Field(
        default=1024 * 1024, ge=0, description="Bytes retained per output channel"
    )
    extra_flags: Annotated[List[str], NoDecode] = Field(default_factory=list, description="Flags added to every launch")
    use_default_flags: bool = Field(
        default=True, description="Prepend the serverless flag profile"
    )
    task_argument: Optional[str] = Field(default=None, description="Default task argument (URL)")

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )
    log_format: Literal["text", "json"] = Field(
        default="json", description="Logging format - text for human-readable, json for structured logs"
    )

    @field_validator("library_paths", "extra_flags", "artifact_candidates", mode="before")
    @classmethod
    def _split_csv(cls, value):
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @property
    def candidates(self) -> List[str]:
        """artifact_path followed by the fallbacks, without duplicates."""
        ordered: List[str] = []
        for candidate in [self.artifact_path, *self.artifact_candidates]:
            if candidate and candidate not in ordered:
                ordered.append(candidate)
        return ordered

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_millis / 1000

    @property
    def grace_period_seconds(self) -> float:
        return self.grace_period_millis / 1000


@lru_cache()
def get_settings() -> Settings:
    return Settings()
