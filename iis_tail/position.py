"""Read checkpoints for watched logs, persisted to a plain text position file.

Each line of the position file is ``<path> <last_directives_pos> <last_read_pos>``.
An offset of -1 means no position has been recorded yet.
"""

import logging
import os
import tempfile
import threading
from dataclasses import dataclass

from iis_tail.errors import PositionFileError

logger = logging.getLogger(__name__)

UNSET = -1


@dataclass
class Position:
    path: str
    last_directives_pos: int = UNSET  # start of the last directive block
    last_read_pos: int = UNSET        # offset the next read starts from

    @classmethod
    def from_string(cls, line: str) -> "Position":
        """Parse a line written by ``str(position)``. Raises ValueError."""
        parts = line.split()
        if len(parts) != 3:
            raise ValueError(f"expected 3 fields, got {len(parts)}")
        return cls(parts[0], int(parts[1]), int(parts[2]))

    def reset(self):
        self.last_directives_pos = UNSET
        self.last_read_pos = UNSET

    def __str__(self) -> str:
        return f"{self.path} {self.last_directives_pos} {self.last_read_pos}"


class PositionStore:
    """Thread-safe map of path -> Position backed by a position file."""

    def __init__(self, pos_file: str):
        self._path = pos_file
        self._lock = threading.Lock()
        self._positions: dict[str, Position] = {}
        self._load()

    @property
    def pos_file(self) -> str:
        return self._path

    def _load(self):
        if not os.path.exists(self._path):
            logger.info("No position file at %s, starting fresh", self._path)
            return
        with open(self._path, "r", encoding="utf-8") as f:
            for number, line in enumerate(f, start=1):
                try:
                    position = Position.from_string(line)
                except ValueError as e:
                    raise PositionFileError(self._path, number, line.rstrip("\n"), str(e)) from e
                self._positions[position.path] = position
        logger.info("Loaded %d position(s) from %s", len(self._positions), self._path)

    def get(self, path: str) -> Position:
        """Return the Position for *path*, creating an unset one if needed."""
        with self._lock:
            position = self._positions.get(path)
            if position is None:
                position = Position(path)
                self._positions[path] = position
            return position

    def remove(self, path: str) -> Position | None:
        with self._lock:
            return self._positions.pop(path, None)

    def paths(self) -> list[str]:
        with self._lock:
            return list(self._positions)

    def __len__(self) -> int:
        with self._lock:
            return len(self._positions)

    def last_modified(self) -> float:
        """mtime of the position file, or 0.0 if it has never been written."""
        try:
            return os.path.getmtime(self._path)
        except FileNotFoundError:
            return 0.0

    def flush(self):
        """Atomic write: dump every position to a tmp file then replace."""
        directory = os.path.dirname(self._path) or "."
        os.makedirs(directory, exist_ok=True)
        with self._lock:
            lines = [f"{position}\n" for position in self._positions.values()]
        fd, tmp = tempfile.mkstemp(dir=directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.writelines(lines)
            os.replace(tmp, self._path)
        except Exception:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
        logger.debug("Wrote %d position(s) to %s", len(lines), self._path)
