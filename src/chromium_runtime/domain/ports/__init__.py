"""
Domain Ports

Port interfaces defining contracts between layers.
"""

from .supervisor_port import ISupervisorPort

__all__ = ["ISupervisorPort"]
