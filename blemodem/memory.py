"""Fixed-size buffers and a bounded pool for outgoing packets."""

from __future__ import annotations

import threading
import weakref
from collections import deque
from dataclasses import dataclass
from typing import Optional

BUFFER_SIZE = 249
"""Largest packet: BLE_EVT_LEN_MAX (247) plus a 2-byte response code."""

TX_POOL_SIZE = 8
"""Number of TX buffers available at once."""

RX_BUFFER_SIZE = BUFFER_SIZE


class BufferPoolError(Exception):
    """Base class for buffer failures."""


class PoolExhausted(BufferPoolError):
    """No buffer is free."""


class BufferTooSmall(BufferPoolError):
    """The data is larger than a buffer."""


class InvalidSize(BufferPoolError):
    """A requested length is out of range."""


class TxPool:
    """Counts the TX buffers handed out, up to a fixed size."""

    def __init__(self, size: int = TX_POOL_SIZE) -> None:
        self._size = size
        self._allocated = 0
        self._lock = threading.Lock()

    def acquire(self) -> None:
        """Take one buffer, raising PoolExhausted if none is free."""
        with self._lock:
            if self._allocated >= self._size:
                raise PoolExhausted(f"all {self._size} TX buffers are in use")
            self._allocated += 1

    def release(self) -> None:
        """Return one buffer to the pool."""
        with self._lock:
            if self._allocated > 0:
                self._allocated -= 1

    def available(self) -> int:
        with self._lock:
            return self._size - self._allocated

    def allocated(self) -> int:
        with self._lock:
            return self._allocated


_DEFAULT_POOL = TxPool()


class TxPacket:
    """An outgoing packet holding one buffer of its pool until released."""

    def __init__(self, data: bytes, pool: Optional[TxPool] = None) -> None:
        data = bytes(data)
        if len(data) > BUFFER_SIZE:
            raise BufferTooSmall(f"{len(data)} bytes do not fit a {BUFFER_SIZE}-byte buffer")
        pool = _DEFAULT_POOL if pool is None else pool
        pool.acquire()
        self._data = data
        self._finalizer = weakref.finalize(self, pool.release)

    def release(self) -> None:
        """Give the buffer back to the pool; later calls do nothing."""
        self._finalizer()

    def __enter__(self) -> "TxPacket":
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()

    def __len__(self) -> int:
        return len(self._data)

    def __bytes__(self) -> bytes:
        return self._data

    def is_empty(self) -> bool:
        return not self._data


class RxBuffer:
    """A fixed-capacity receive buffer with a current length."""

    def __init__(self) -> None:
        self._data = bytearray(RX_BUFFER_SIZE)
        self._len = 0

    def write(self, data: bytes) -> None:
        """Store ``data`` at the start of the buffer and set the length to it."""
        data = bytes(data)
        if len(data) > RX_BUFFER_SIZE:
            raise InvalidSize(f"{len(data)} bytes exceed the {RX_BUFFER_SIZE}-byte buffer")
        self._data[:len(data)] = data
        self._len = len(data)

    def set_len(self, length: int) -> None:
        """Set the number of valid bytes."""
        if not 0 <= length <= RX_BUFFER_SIZE:
            raise InvalidSize(f"length {length} is outside 0..{RX_BUFFER_SIZE}")
        self._len = length

    def __len__(self) -> int:
        return self._len

    def __bytes__(self) -> bytes:
        return bytes(self._data[:self._len])

    def is_empty(self) -> bool:
        return self._len == 0

    def clear(self) -> None:
        self._len = 0


class TxQueue:
    """A FIFO of packets waiting for transmission, bounded by the pool size."""

    def __init__(self) -> None:
        self._queue: deque[TxPacket] = deque()

    def enqueue(self, packet: TxPacket) -> None:
        if self.is_full():
            raise PoolExhausted(f"TX queue already holds {TX_POOL_SIZE} packets")
        self._queue.append(packet)

    def dequeue(self) -> Optional[TxPacket]:
        return self._queue.popleft() if self._queue else None

    def is_empty(self) -> bool:
        return not self._queue

    def is_full(self) -> bool:
        return len(self._queue) >= TX_POOL_SIZE

    def __len__(self) -> int:
        return len(self._queue)


@dataclass(frozen=True)
class PoolStats:
    tx_allocated: int
    tx_available: int
    rx_active: bool


def get_stats(pool: Optional[TxPool] = None) -> PoolStats:
    """Current usage of a TX pool (the shared one by default)."""
    pool = _DEFAULT_POOL if pool is None else pool
    return PoolStats(
        tx_allocated=pool.allocated(),
        tx_available=pool.available(),
        rx_active=True,
    )