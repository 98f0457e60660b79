"""
Domain Services

Resolution, environment construction, flag validation and output collection.
"""

from .environment import EnvironmentBuilder, merge_search_path
from .flags import (
    DOCUMENTED_FLAGS,
    EXCLUSIVE_FLAG_PAIRS,
    SERVERLESS_FLAGS,
    ExclusionRule,
    FlagValidator,
    flag_name,
)
from .output import OutputCollector
from .resolver import ArtifactResolver, file_checksum, read_version

__all__ = [
    "ArtifactResolver",
    "DOCUMENTED_FLAGS",
    "EXCLUSIVE_FLAG_PAIRS",
    "EnvironmentBuilder",
    "ExclusionRule",
    "FlagValidator",
    "OutputCollector",
    "SERVERLESS_FLAGS",
    "file_checksum",
    "flag_name",
    "merge_search_path",
    "read_version",
]
