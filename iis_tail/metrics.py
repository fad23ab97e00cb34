"""Thread-safe counters for the tailer."""

import threading

COUNTERS = (
    "cycles",
    "cycle_errors",
    "lines_read",
    "records_emitted",
    "batches_emitted",
    "unknown_directives",
    "truncations",
)


class Metrics:
    def __init__(self):
        self._lock = threading.Lock()
        self._counts = {name: 0 for name in COUNTERS}

    def increment(self, name: str, amount: int = 1):
        with self._lock:
            self._counts[name] += amount

    def get(self, name: str) -> int:
        with self._lock:
            return self._counts[name]

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return dict(self._counts)

    def summary(self) -> str:
        snap = self.snapshot()
        return " ".join(f"{name}={snap[name]}" for name in COUNTERS)
