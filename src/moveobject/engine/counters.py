# src/moveobject/engine/counters.py
"""Process-wide progress counters for one run."""

from __future__ import annotations

from threading import Lock


class ProgressCounters:
    """Thread-safe processed/failed counters.

    Each completed task increments exactly one counter exactly once, from the
    worker that completed it. Both counters only ever increase.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._processed = 0
        self._failed = 0

    def increment_processed(self) -> None:
        with self._lock:
            self._processed += 1

    def increment_failed(self) -> None:
        with self._lock:
            self._failed += 1

    @property
    def processed(self) -> int:
        with self._lock:
            return self._processed

    @property
    def failed(self) -> int:
        with self._lock:
            return self._failed

    def snapshot(self) -> dict[str, int]:
        """Consistent read of both counters."""
        with self._lock:
            return {"processed": self._processed, "failed": self._failed}
