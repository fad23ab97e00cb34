import os
import time

import pytest

from iis_tail.scheduler import TaskScheduler


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class CollectingSink:
    def __init__(self):
        self.batches: list[tuple[str, list[dict]]] = []

    def emit(self, tag, records):
        self.batches.append((tag, list(records)))

    @property
    def records(self) -> list[dict]:
        return [r for _, batch in self.batches for r in batch]

    def clear(self):
        self.batches.clear()


class LogFile:
    """A log on disk that tests append to, bumping mtime past any read."""

    def __init__(self, path):
        self.path = str(path)

    def write(self, *lines: str):
        with open(self.path, "w", encoding="utf-8") as f:
            for line in lines:
                f.write(line + "\n")
        self.touch()

    def append(self, *lines: str):
        with open(self.path, "a", encoding="utf-8") as f:
            for line in lines:
                f.write(line + "\n")
        self.touch()

    def write_raw(self, text: str):
        with open(self.path, "w", encoding="utf-8") as f:
            f.write(text)
        self.touch()

    def append_raw(self, text: str):
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(text)
        self.touch()

    def touch(self, offset: float = 5.0):
        stamp = time.time() + offset
        os.utime(self.path, (stamp, stamp))

    def size(self) -> int:
        return os.path.getsize(self.path)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler(clock):
    return TaskScheduler(clock=clock)


@pytest.fixture
def sink():
    return CollectingSink()


@pytest.fixture
def make_log(tmp_path):
    def _make(name: str = "iis.log") -> LogFile:
        return LogFile(tmp_path / name)
    return _make
