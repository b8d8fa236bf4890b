"""Snowflake-style ID generator for business identifiers.

Used for request ids, batch ids, and AWB numbers issued by the simulated
carrier. Monotonically increasing within one process; not coordinated
across processes (machine_id separates them).
"""

import threading
import time


class SnowflakeIdGenerator:
    """Layout (64 bits): 41 bits ms timestamp | 10 bits machine_id | 12 bits sequence."""

    _EPOCH_MS = 1_704_067_200_000  # 2024-01-01T00:00:00Z
    _MACHINE_BITS = 10
    _SEQUENCE_BITS = 12
    _MAX_SEQUENCE = (1 << _SEQUENCE_BITS) - 1

    def __init__(self, machine_id: int = 0) -> None:
        if not (0 <= machine_id < (1 << self._MACHINE_BITS)):
            raise ValueError(f"machine_id must be 0-{(1 << self._MACHINE_BITS) - 1}")
        self._machine_id = machine_id
        self._sequence = 0
        self._last_ms = -1
        self._lock = threading.Lock()

    def next_int(self) -> int:
        with self._lock:
            now = self._now_ms()
            if now == self._last_ms:
                self._sequence = (self._sequence + 1) & self._MAX_SEQUENCE
                if self._sequence == 0:
                    while now <= self._last_ms:
                        now = self._now_ms()
            else:
                self._sequence = 0
            self._last_ms = now
            return (
                ((now - self._EPOCH_MS) << (self._MACHINE_BITS + self._SEQUENCE_BITS))
                | (self._machine_id << self._SEQUENCE_BITS)
                | self._sequence
            )

    def next_id(self, prefix: str = "") -> str:
        return f"{prefix}{self.next_int()}"

    @staticmethod
    def _now_ms() -> int:
        return int(time.time() * 1000)


_default_generator = SnowflakeIdGenerator()


def generate_id(prefix: str = "") -> str:
    """Unique string id from the module-level generator, optionally prefixed."""
    return _default_generator.next_id(prefix)
