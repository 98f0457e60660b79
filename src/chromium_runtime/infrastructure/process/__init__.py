"""
Process Infrastructure

Child process supervision, bounded capture and memory monitoring.
"""

from .capture import BoundedCapture, drain
from .monitoring import ProcessTreeMonitor
from .supervisor import ProcessSupervisor, signal_name

__all__ = [
    "BoundedCapture",
    "ProcessSupervisor",
    "ProcessTreeMonitor",
    "drain",
    "signal_name",
]
