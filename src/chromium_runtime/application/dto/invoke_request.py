"""
Invoke Request DTO

Data transfer object describing one requested browser invocation.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from chromium_runtime.domain.value_objects import OutputKind


class InvokeRequest(BaseModel):
    """
    Request for a single browser launch.

    Fields left as None fall back to the launcher settings.
    """

    invocation_id: Optional[str] = Field(default=None, description="Caller-chosen identifier")
    task_argument: Optional[str] = Field(default=None, description="Target URL or input payload")
    flags: List[str] = Field(default_factory=list, description="Additional command-line flags")
    timeout_millis: Optional[int] = Field(default=None, gt=0, description="Timeout in milliseconds")
    output_path: Optional[str] = Field(default=None, description="Where the browser writes its document")
    output_kind: Optional[OutputKind] = Field(default=None, description="pdf, screenshot or dom")
    artifact_path: Optional[str] = Field(default=None, description="Executable overriding the configured candidates")
    library_paths: Optional[List[str]] = Field(default=None, description="Overrides the configured library paths")
    extra_env: Dict[str, str] = Field(default_factory=dict, description="Extra environment variables")
    use_default_flags: Optional[bool] = Field(default=None, description="Prepend the serverless flag profile")
    keep_scratch: Optional[bool] = Field(default=None, description="Keep the scratch directory afterwards")

    model_config = {"frozen": True}

    @field_validator("task_argument")
    @classmethod
    def _reject_flag_like_task(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value.startswith("-"):
            raise ValueError("task_argument must not look like a flag")
        return value
