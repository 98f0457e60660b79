"""
Application Services

Use cases orchestrating domain services and infrastructure adapters.
"""

from .launcher_service import InvocationHandle, LauncherService

__all__ = ["InvocationHandle", "LauncherService"]
