"""
Process tree memory monitoring.

The browser forks renderer and utility processes, so memory is sampled
across the child and all of its descendants.
"""

import threading
from typing import Optional

import psutil
import structlog


logger = structlog.get_logger(__name__)


class ProcessTreeMonitor:
    """
    Samples resident memory of a process tree on a background thread.
    """

    def __init__(self, pid: int, sample_interval: float = 0.05):
        self.pid = pid
        self.sample_interval = sample_interval
        self.peak_memory: float = 0.0
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """
        Start sampling.
        """
        self.peak_memory = 0.0
        self._stop.clear()
        self._thread = threading.Thread(target=self._monitor_loop, daemon=True)
        self._thread.start()

    def _tree_rss(self, process: psutil.Process) -> int:
        total = process.memory_info().rss
        for child in process.children(recursive=True):
            try:
                total += child.memory_info().rss
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue
        return total

    def _monitor_loop(self) -> None:
        try:
            process = psutil.Process(self.pid)
            while not self._stop.is_set():
                memory_mb = self._tree_rss(process) / (1024 * 1024)
                if memory_mb > self.peak_memory:
                    self.peak_memory = memory_mb
                self._stop.wait(self.sample_interval)
        except psutil.NoSuchProcess:
            pass
        except psutil.Error as e:
            logger.debug("Memory sampling stopped", pid=self.pid, error=str(e))

    def stop(self) -> None:
        """
        Stop sampling.
        """
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=1.0)

    def get_peak_memory(self) -> Optional[float]:
        """
        Peak resident memory of the tree in MB, or None if never sampled.
        """
        return round(self.peak_memory, 2) if self.peak_memory else None
