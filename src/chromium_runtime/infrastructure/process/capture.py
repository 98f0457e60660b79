"""
Bounded output capture.

Keeps the most recent ``limit`` bytes of a child's output channel so a
runaway browser cannot exhaust memory.
"""

import asyncio

from chromium_runtime.domain.value_objects import CapturedStream


DEFAULT_CHUNK_SIZE = 64 * 1024


class BoundedCapture:
    """Ring-style byte buffer that discards the oldest bytes beyond ``limit``."""

    def __init__(self, limit: int):
        if limit < 0:
            raise ValueError("capture limit must not be negative")
        self.limit = limit
        self.dropped_bytes = 0
        self._buffer = bytearray()

    def write(self, chunk: bytes) -> None:
        if not chunk:
            return
        if len(chunk) >= self.limit:
            self.dropped_bytes += len(self._buffer) + len(chunk) - self.limit
            self._buffer = bytearray(chunk[len(chunk) - self.limit:])
            return
        self._buffer.extend(chunk)
        overflow = len(self._buffer) - self.limit
        if overflow > 0:
            del self._buffer[:overflow]
            self.dropped_bytes += overflow

    @property
    def truncated(self) -> bool:
        return self.dropped_bytes > 0

    def __len__(self) -> int:
        return len(self._buffer)

    def snapshot(self) -> CapturedStream:
        return CapturedStream(
            data=bytes(self._buffer),
            truncated=self.truncated,
            dropped_bytes=self.dropped_bytes,
        )


async def drain(
    stream: asyncio.StreamReader,
    capture: BoundedCapture,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> None:
    """Copy ``stream`` into ``capture`` until EOF, preserving order."""
    while True:
        chunk = await stream.read(chunk_size)
        if not chunk:
            break
        capture.write(chunk)
