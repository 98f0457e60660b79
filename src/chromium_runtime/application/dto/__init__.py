"""
Data Transfer Objects
"""

from .invoke_request import InvokeRequest

__all__ = ["InvokeRequest"]
