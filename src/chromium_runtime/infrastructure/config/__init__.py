"""
Configuration Infrastructure

Settings loaded from the environment.
"""

from .settings import DEFAULT_ARTIFACT_PATH, Settings, get_settings

__all__ = ["DEFAULT_ARTIFACT_PATH", "Settings", "get_settings"]
